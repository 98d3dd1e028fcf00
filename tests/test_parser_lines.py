import pytest

from engine.catalog import DEFAULT_CATALOG
from engine.parser_lines import (
    extract_from_line,
    find_alias_match,
    find_value_candidate,
    looks_like_unit_token,
    parse_numeric_token,
    prepare_line,
)


def _extract(raw, seen=frozenset()):
    return extract_from_line(prepare_line(raw), DEFAULT_CATALOG, seen)


# ------------------------------------------------------------
# alias boundaries
# ------------------------------------------------------------

def test_alias_needs_token_boundaries():
    assert find_alias_match("glucosa: 92", "glucosa") == (0, 7)
    assert find_alias_match("glucosamina 92", "glucosa") is None
    assert find_alias_match("hba1c 5.4", "a1c") is None
    assert find_alias_match("hb a1c 5.4", "a1c") == (3, 6)


def test_alias_later_occurrence_found_after_bad_one():
    assert find_alias_match("ureasa urea 31", "urea") == (7, 11)


# ------------------------------------------------------------
# numeric tokens / units
# ------------------------------------------------------------

def test_parse_numeric_token():
    assert parse_numeric_token("92").value == "92"
    assert parse_numeric_token("14,2").value == "14.2"
    cand = parse_numeric_token("92mg/dL")
    assert cand.value == "92" and cand.units == "mg/dL"
    assert parse_numeric_token("mg/dl") is None
    assert parse_numeric_token("<0.5") is None


def test_looks_like_unit_token():
    assert looks_like_unit_token("mg/dL")
    assert looks_like_unit_token("%")
    assert looks_like_unit_token("10^3/µL")
    assert not looks_like_unit_token("x")
    assert not looks_like_unit_token("")


@pytest.mark.parametrize("text", [
    "150 - 200",
    "150 – 200",
    "< 0.5 mg/L",
    "hasta 200",
    "Inf. 40",
    "7 10^3",
    "5x10^9/L",
])
def test_reference_expressions_are_not_values(text):
    assert find_value_candidate(text) is None


def test_unit_from_previous_token():
    cand = find_value_candidate("mg/dL 92")
    assert cand.value == "92" and cand.units == "mg/dL"


def test_first_acceptable_number_wins():
    cand = find_value_candidate("< 5 12.5 mg/L")
    assert cand.value == "12.5"
    assert cand.units == "mg/L"


# ------------------------------------------------------------
# full line extraction
# ------------------------------------------------------------

def test_dotted_leader_and_unit_case():
    m = _extract("Glucosa ............ 92 mg/dl")
    assert (m.canonical, m.value, m.units) == ("Glucosa", "92", "mg/dl")

    m = _extract("Colesterol Total: 210 mg/dL")
    assert (m.canonical, m.value, m.units) == ("Colesterol Total", "210", "mg/dL")


def test_longest_alias_wins():
    m = _extract("Colesterol HDL 55 mg/dL")
    assert m.canonical == "Colesterol HDL"


def test_index_before_name_ignored():
    m = _extract("3 Glucosa 92 mg/dl")
    assert m.value == "92"


def test_attached_unit():
    m = _extract("Glucosa 92mg/dL")
    assert (m.value, m.units) == ("92", "mg/dL")


def test_comparator_value_rejected():
    assert _extract("PCR < 0.5 mg/L") is None
    assert _extract("PCR <0.5 mg/L") is None
    assert _extract("Glucosa < 100 mg/dl") is None


def test_range_only_line_rejected():
    assert _extract("Colesterol 150 - 200 mg/dl") is None


def test_exclusion_rule():
    m = _extract("Saturación de transferrina 28 %")
    assert m.canonical == "Saturación de Transferrina"
    assert _extract("Transferrina (saturacion) 30 %") is None


def test_no_alias_no_match():
    assert _extract("Paciente: Juan Pérez 45 años") is None
    assert _extract("") is None


def test_seen_biomarker_lets_other_alias_on_line_through():
    line = "Hemoglobina 14 g/dL Hematocrito 42 %"
    first = _extract(line)
    assert first.canonical == "Hemoglobina"

    second = _extract(line, seen={"Hemoglobina"})
    assert second.canonical == "Hematocrito"
    assert second.value == "42"


def test_qualifier_with_trailing_dot():
    assert find_value_candidate("Sup. 150 mg/dL") is None
    assert find_value_candidate("max. 5") is None
    assert find_value_candidate("Sup. 150 7 mg/dL").value == "7"
