import json

import pytest

import reference.dataset as dataset
from engine.errors import InvalidConfigurationError
from reference.dataset import (
    load_reference_data,
    parse_reference_data,
    read_reference_file,
)


def test_parse_builds_index(reference):
    assert reference.version == 2
    assert len(reference) == 3
    assert set(reference.by_id) == {"glucosa", "colesterol_hdl", "tsh"}
    assert reference.lookup("colesterol hdl").name == "Colesterol HDL"
    assert reference.lookup("Unknown") is None


def test_entry_fields(reference):
    glucosa = reference.lookup("Glucosa")
    assert glucosa.units == "mg/dL"
    assert glucosa.category == "metabolic"
    assert glucosa.levels["malo"].unisex == "< 70 o > 125"
    assert glucosa.raw == {"excelente": "70-90 mg/dL"}


def test_data_is_immutable(reference):
    with pytest.raises(TypeError):
        reference.by_id["x"] = None
    with pytest.raises(TypeError):
        reference.lookup("Glucosa").levels["bueno"] = None


def test_unknown_category_folds_into_general(reference_doc, caplog):
    reference_doc["biomarkers"][0]["category"] = "renal"
    with caplog.at_level("WARNING"):
        data = parse_reference_data(reference_doc)
    assert data.lookup("Glucosa").category == "general"
    assert "renal" in caplog.text


@pytest.mark.parametrize("mutate,message", [
    (lambda d: d.update(version="2"), "version"),
    (lambda d: d.update(version=True), "version"),
    (lambda d: d.update(biomarkers={}), "biomarkers"),
    (lambda d: d.update(generated_at=5), "generated_at"),
    (lambda d: d["biomarkers"][0].pop("name"), "name"),
    (lambda d: d["biomarkers"][0].pop("levels"), "levels"),
    (lambda d: d["biomarkers"][0]["levels"].update(optimo="1 - 2"), "unknown levels"),
    (lambda d: d["biomarkers"][1].update(id="glucosa"), "duplicate"),
    (lambda d: d["biomarkers"][0]["levels"]["bueno"].update(male=5), "string"),
])
def test_structural_errors(reference_doc, mutate, message):
    mutate(reference_doc)
    with pytest.raises(InvalidConfigurationError, match=message):
        parse_reference_data(reference_doc, source="ref.json")


def test_error_carries_source(reference_doc):
    reference_doc["version"] = None
    with pytest.raises(InvalidConfigurationError) as exc:
        parse_reference_data(reference_doc, source="ref.json")
    assert str(exc.value).startswith("ref.json: ")
    assert exc.value.source == "ref.json"


def test_read_reference_file(tmp_path, reference_doc):
    path = tmp_path / "ref.json"
    path.write_text(json.dumps(reference_doc), encoding="utf-8")
    assert len(read_reference_file(str(path))) == 3

    with pytest.raises(FileNotFoundError):
        read_reference_file(str(tmp_path / "missing.json"))

    bad = tmp_path / "bad.json"
    bad.write_text("[", encoding="utf-8")
    with pytest.raises(InvalidConfigurationError):
        read_reference_file(str(bad))


def test_load_prefers_explicit_path_then_cache(tmp_path, reference_doc):
    cache = tmp_path / "cache.json"
    cache.write_text(json.dumps(reference_doc), encoding="utf-8")

    assert load_reference_data(cache_path=str(cache), fetch=False).version == 2

    other = dict(reference_doc, version=7)
    explicit = tmp_path / "explicit.json"
    explicit.write_text(json.dumps(other), encoding="utf-8")
    assert load_reference_data(str(explicit), cache_path=str(cache)).version == 7


def test_load_without_cache_or_fetch_returns_none(tmp_path):
    assert load_reference_data(cache_path=str(tmp_path / "none.json"), fetch=False) is None


def test_load_without_repo_id_returns_none(tmp_path, monkeypatch):
    monkeypatch.setattr(dataset, "REFERENCE_REPO_ID", None)
    assert load_reference_data(cache_path=str(tmp_path / "none.json")) is None


def test_fetch_downloads_into_cache(tmp_path, reference_doc, monkeypatch):
    downloaded = tmp_path / "hub" / "reference_ranges.dashboard.json"
    downloaded.parent.mkdir()
    downloaded.write_text(json.dumps(reference_doc), encoding="utf-8")
    calls = []

    def fake_download(**kwargs):
        calls.append(kwargs)
        return str(downloaded)

    monkeypatch.setattr(dataset, "hf_hub_download", fake_download)
    monkeypatch.setattr(dataset, "REFERENCE_REPO_ID", "someone/lab-reference")

    cache = tmp_path / "data" / "ref.json"
    data = load_reference_data(cache_path=str(cache))

    assert data.version == 2
    assert cache.exists()
    assert calls[0]["repo_id"] == "someone/lab-reference"
    assert calls[0]["repo_type"] == "dataset"


def test_fetch_without_repo_id_is_a_configuration_error(monkeypatch, tmp_path):
    monkeypatch.setattr(dataset, "REFERENCE_REPO_ID", None)
    with pytest.raises(InvalidConfigurationError, match="LABREPORT_REFERENCE_REPO_ID"):
        dataset.fetch_reference_file(cache_path=str(tmp_path / "x.json"))
