"""Tests for baseline canonicalization and hashing."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from src.drift_engine.services.baseline_hash import (
    calculate_baseline_hash,
    canonicalize,
    compute_schema_hash,
    recalculate_baseline_hash,
    verify_baseline_hash,
)
from src.drift_engine.services.baseline_document import dump_baseline_document


class _Color(str, Enum):
    RED = "red"


class TestCanonicalize:
    def test_sorts_keys_recursively(self):
        result = canonicalize({"b": 1, "a": {"d": 2, "c": 3}})
        assert list(result) == ["a", "b"]
        assert list(result["a"]) == ["c", "d"]

    def test_preserves_array_order(self):
        assert canonicalize([3, 1, 2]) == [3, 1, 2]

    def test_datetimes_become_utc_iso_strings(self):
        value = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
        assert canonicalize(value) == "2025-01-15T12:00:00Z"

    def test_tuples_sets_and_enums(self):
        assert canonicalize((1, 2)) == [1, 2]
        assert canonicalize({"b", "a"}) == ["a", "b"]
        assert canonicalize(_Color.RED) == "red"

    def test_model_matches_its_dump(self, sample_baseline):
        assert canonicalize(sample_baseline) == canonicalize(dump_baseline_document(sample_baseline))


class TestCalculateBaselineHash:
    def test_independent_of_key_order(self, sample_baseline):
        document = dump_baseline_document(sample_baseline)
        reordered = {key: document[key] for key in reversed(list(document))}
        reordered["metadata"] = {
            key: document["metadata"][key] for key in reversed(list(document["metadata"]))
        }
        assert calculate_baseline_hash(document) == calculate_baseline_hash(reordered)

    def test_changing_a_leaf_changes_the_hash(self, sample_baseline):
        document = dump_baseline_document(sample_baseline)
        original = calculate_baseline_hash(document)
        document["capabilities"]["tools"][0]["description"] = "changed"
        assert calculate_baseline_hash(document) != original

    def test_excludes_hash_field(self, sample_baseline):
        altered = sample_baseline.model_copy(update={"hash": "something-else"})
        assert calculate_baseline_hash(altered) == calculate_baseline_hash(sample_baseline)

    def test_model_and_document_hash_equal(self, sample_baseline):
        document = dump_baseline_document(sample_baseline)
        assert calculate_baseline_hash(sample_baseline) == calculate_baseline_hash(document)

    def test_hash_length(self, sample_baseline):
        assert len(calculate_baseline_hash(sample_baseline)) == 16


class TestVerifyAndRecalculate:
    def test_fresh_baseline_verifies(self, sample_baseline):
        assert verify_baseline_hash(sample_baseline)

    def test_tampered_baseline_fails(self, sample_baseline):
        tampered = sample_baseline.model_copy(update={"summary": "tampered"})
        assert not verify_baseline_hash(tampered)
        assert verify_baseline_hash(recalculate_baseline_hash(tampered))


class TestComputeSchemaHash:
    def test_absent_schema(self):
        assert compute_schema_hash(None) == "empty"
        assert compute_schema_hash({}) == "empty"

    def test_key_order_independent(self):
        a = {"type": "object", "properties": {"x": {"type": "string"}, "y": {"type": "integer"}}}
        b = {"properties": {"y": {"type": "integer"}, "x": {"type": "string"}}, "type": "object"}
        assert compute_schema_hash(a) == compute_schema_hash(b)
        assert len(compute_schema_hash(a)) == 16
