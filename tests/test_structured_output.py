"""Tests for the JSONL structured output writer."""

import json

from gaspredictor.structured_output import StructuredOutputWriter


def test_record_prediction_appends_lines(tmp_path):
    writer = StructuredOutputWriter(str(tmp_path / "structured"))
    
    writer.record_prediction({"type": "prediction", "fast": 5, "median": 3, "low": 1})
    writer.record_prediction({"type": "prediction", "fast": 6, "median": 3, "low": 1})
    
    lines = writer.predictions_path.read_text().splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["fast"] == 5
    assert "timestamp" in first


def test_record_chain_head_keeps_given_timestamp(tmp_path):
    writer = StructuredOutputWriter(str(tmp_path), heads_filename="heads.jsonl")
    
    writer.record_chain_head({"type": "chain_head", "number": 7, "timestamp": "2024-01-01T00:00:00Z"})
    
    record = json.loads((tmp_path / "heads.jsonl").read_text())
    assert record["timestamp"] == "2024-01-01T00:00:00Z"
