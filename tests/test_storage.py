from datetime import datetime

from engine.schema import BiomarkerRecord
from engine.storage import AnalysisStore, default_analysis_name

RECORDS = [
    BiomarkerRecord("Glucosa", 92.0, "mg/dL", "2024-03-12", "metabolic"),
    BiomarkerRecord("VSG", "negativo"),
]


def test_default_name():
    assert default_analysis_name(datetime(2024, 3, 5)) == "Analítica 05/03/2024"


def test_save_list_get_remove(tmp_path):
    store = AnalysisStore(str(tmp_path / "sub" / "analyses.json"))
    assert store.analyses() == []

    first = store.save(RECORDS, name="Chequeo anual")
    second = store.save(RECORDS[:1])

    assert first.id != second.id
    assert second.name.startswith("Analítica ")
    assert [a.id for a in store.analyses()] == [first.id, second.id]

    loaded = store.get(first.id)
    assert loaded.name == "Chequeo anual"
    assert loaded.data[0] == {
        "biomarker": "Glucosa",
        "value": 92.0,
        "units": "mg/dL",
        "date": "2024-03-12",
        "category": "metabolic",
    }
    assert loaded.records() == RECORDS

    assert store.remove(first.id) is True
    assert store.remove(first.id) is False
    assert store.get(first.id) is None
    assert [a.id for a in store.analyses()] == [second.id]


def test_corrupt_file_reads_as_empty(tmp_path, caplog):
    path = tmp_path / "analyses.json"
    path.write_text("{oops", encoding="utf-8")
    with caplog.at_level("WARNING"):
        assert AnalysisStore(str(path)).analyses() == []
    assert "not valid JSON" in caplog.text


def test_invalid_stored_entries_skipped(tmp_path, caplog):
    store = AnalysisStore(str(tmp_path / "analyses.json"))
    saved = store.save(RECORDS)
    items = store._read()
    items[0]["data"] += [
        {"biomarker": "", "value": 1},
        {"biomarker": "Urea", "value": 31, "category": "renal"},
        "junk",
    ]
    store._write(items)

    with caplog.at_level("WARNING"):
        records = store.get(saved.id).records()
    assert records == RECORDS
    assert "category: 'renal' invalid" in caplog.text
    assert "biomarker: missing" in caplog.text
