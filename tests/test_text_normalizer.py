from engine.text_normalizer import fold_text, normalize_text, slugify


def test_strips_diacritics_and_lowercases():
    assert normalize_text("Hemoglobina Glicósilada") == "hemoglobina glicosilada"
    assert normalize_text("ÁCIDO ÚRICO") == "acido urico"


def test_disallowed_characters_become_single_space():
    assert normalize_text("Glucosa:\t 92 (mg/dl)") == "glucosa 92 mg/dl"
    assert normalize_text("  Urea  ***  31  ") == "urea 31"


def test_unit_symbols_are_kept():
    assert normalize_text("Leucocitos 6,1 10^3/µL 45%") == "leucocitos 6,1 10^3/µl 45%"


def test_fold_text_preserves_case():
    assert fold_text("Colesterol Total: 210 mg/dL") == "Colesterol Total 210 mg/dL"


def test_comparators_dropped_unless_kept():
    assert normalize_text("PCR < 0.5") == "pcr 0.5"
    assert normalize_text("PCR < 0.5", keep="<") == "pcr < 0.5"


def test_folded_and_lowercase_views_have_same_length():
    s = "Hemoglobina  14,2 g/dL  (13,0 – 17,0) ≤ µUI/mL"
    assert len(fold_text(s, keep="–≤")) == len(normalize_text(s, keep="–≤"))


def test_idempotent_and_total():
    s = "  Triglicéridos ..... 125 mg/dL  "
    once = normalize_text(s)
    assert normalize_text(once) == once
    assert normalize_text("") == ""
    assert normalize_text(None) == ""


def test_slugify():
    assert slugify("Colesterol Total") == "colesterol_total"
    assert slugify("Ácido Úrico") == "acido_urico"
    assert slugify("Lipoproteína (a)") == "lipoproteina_a"
    assert slugify("") == ""
