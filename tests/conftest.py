import copy

import pytest

from reference.dataset import parse_reference_data

REFERENCE_DOC = {
    "version": 2,
    "generated_at": "2025-05-02T10:00:00Z",
    "biomarkers": [
        {
            "id": "glucosa",
            "name": "Glucosa",
            "units": "mg/dL",
            "category": "metabolic",
            "levels": {
                "excelente": {"unisex": "70 - 90", "male": None, "female": None},
                "bueno": {"unisex": "91 - 99", "male": None, "female": None},
                "regular": {"unisex": "100 - 125", "male": None, "female": None},
                "malo": {"unisex": "< 70 o > 125", "male": None, "female": None},
            },
            "raw": {"excelente": "70-90 mg/dL"},
        },
        {
            "name": "Colesterol HDL",
            "units": "mg/dL",
            "category": "cardiovascular",
            "levels": {
                "excelente": {"unisex": "> 60"},
                "bueno": {"male": "40 - 60", "female": "50 - 60"},
                "regular": {"male": "35 - 39", "female": "45 - 49"},
                "malo": {"male": "< 35", "female": "< 45"},
            },
        },
        {
            "name": "TSH",
            "category": "hormonal",
            "levels": {
                "excelente": "1 - 2,5",
                "bueno": "0,5 - 0,99 / 2,51 - 4",
                "regular": None,
                "malo": "< 0,35 o > 5",
            },
            "raw": {"excelente": "1-2,5 µUI/mL"},
        },
    ],
}


@pytest.fixture
def reference_doc():
    return copy.deepcopy(REFERENCE_DOC)


@pytest.fixture
def reference(reference_doc):
    return parse_reference_data(reference_doc, source="test")
