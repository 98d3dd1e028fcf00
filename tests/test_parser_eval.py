import json
import os

from training.parser_eval import evaluate_single_test, main, run_parser_eval, wrong_cases_frame

GOLD = os.path.join(os.path.dirname(__file__), "..", "training", "gold_tests.json")


def test_gold_set_parses_perfectly():
    summary = run_parser_eval(GOLD)
    assert summary["tests"] >= 5
    assert summary["overall_accuracy"] == 1.0
    assert summary["wrong_cases"] == []


def test_wrong_and_unexpected_fields_reported():
    out = evaluate_single_test({
        "input": "Glucosa 92 mg/dL\nUrea 31 mg/dL",
        "expected": {"Glucosa": 95, "Creatinina": 0.9},
    })
    assert out["correct"] == 0
    assert out["total"] == 2
    assert out["wrong"]["Glucosa"] == {"expected": 95, "got": 92.0}
    assert out["wrong"]["Creatinina"]["got"] is None
    assert out["unexpected"] == ["Urea"]


def test_wrong_cases_frame(tmp_path):
    gold = tmp_path / "gold.json"
    gold.write_text(json.dumps([
        {"name": "mal", "input": "Glucosa 92", "expected": {"Glucosa": 93}},
    ]), encoding="utf-8")
    frame = wrong_cases_frame(run_parser_eval(str(gold)))
    assert list(frame.columns) == ["test", "biomarker", "expected", "got"]
    assert frame.iloc[0].to_dict() == {"test": "mal", "biomarker": "Glucosa", "expected": 93, "got": 92.0}


def test_cli_prints_summary(capsys):
    assert main(["--gold", GOLD]) == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["overall_accuracy"] == 1.0
