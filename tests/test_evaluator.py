import pytest

from reference.evaluator import (
    compute_level,
    match_rule,
    match_single_rule,
    pick_sex_rule,
    reference_display,
    split_rule,
)


def test_split_rule():
    assert split_rule("< 70 o > 125") == ["< 70", "> 125"]
    assert split_rule("15 - 29 ; 151 - 300") == ["15 - 29", "151 - 300"]
    assert split_rule("0,5 - 0,99 / 2,51 - 4") == ["0,5 - 0,99", "2,51 - 4"]
    assert split_rule("O 100") == ["100"]


@pytest.mark.parametrize("rule,value,expected", [
    ("70 - 99", 70, True),
    ("70 - 99", 99, True),
    ("70 - 99", 99.5, False),
    ("70 – 99", 80, True),
    ("99 - 70", 80, True),
    ("< 70", 69.9, True),
    ("< 70", 70, False),
    ("<= 70", 70, True),
    ("≤ 70", 70, True),
    ("> 125", 126, True),
    (">= 125", 125, True),
    ("≥ 125", 124, False),
    ("100", 100, True),
    ("100", 100.5, False),
    ("0,5 - 0,99", 0.75, True),
    ("cualquiera", 5, False),
])
def test_match_single_rule(rule, value, expected):
    assert match_single_rule(rule, value) is expected


def test_match_rule_or_alternatives():
    assert match_rule("< 70 o > 125", 60)
    assert match_rule("< 70 o > 125", 130)
    assert not match_rule("< 70 o > 125", 100)
    assert not match_rule(None, 100)
    assert not match_rule("", 100)


def test_compute_level_best_to_worst(reference):
    glucosa = reference.lookup("Glucosa")
    assert compute_level(glucosa, 85) == "excelente"
    assert compute_level(glucosa, 95) == "bueno"
    assert compute_level(glucosa, 110) == "regular"
    assert compute_level(glucosa, 60) == "malo"
    assert compute_level(glucosa, 200) == "malo"


def test_compute_level_gap_returns_none(reference):
    glucosa = reference.lookup("Glucosa")
    assert compute_level(glucosa, 90.5) is None


def test_sex_specific_rules(reference):
    hdl = reference.lookup("Colesterol HDL")
    assert pick_sex_rule(hdl, "bueno", "male") == "40 - 60"
    assert pick_sex_rule(hdl, "bueno", "female") == "50 - 60"
    assert pick_sex_rule(hdl, "excelente", "female") == "> 60"

    assert compute_level(hdl, 45, "male") == "bueno"
    assert compute_level(hdl, 45, "female") == "regular"
    assert compute_level(hdl, 70, "female") == "excelente"


def test_unisex_request_falls_back_to_sexed_rule(reference):
    hdl = reference.lookup("Colesterol HDL")
    # no unisex rule: first of male / female
    assert pick_sex_rule(hdl, "bueno") == "40 - 60"


def test_bare_string_levels_and_decimal_commas(reference):
    tsh = reference.lookup("TSH")
    assert compute_level(tsh, 2.0) == "excelente"
    assert compute_level(tsh, 3.2) == "bueno"
    assert compute_level(tsh, 0.2) == "malo"
    assert compute_level(tsh, 4.5) is None


def test_reference_display(reference):
    assert reference_display(reference.lookup("Glucosa")) == "70 - 90"
    assert reference_display(reference.lookup("TSH")) == "1 - 2,5"
    assert reference_display(reference.lookup("Colesterol HDL")) == "> 60"
