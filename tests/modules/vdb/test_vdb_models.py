"""Tests for vector records and snapshot payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import numpy as np
import pytest

from ragsync.core.errors import VectorIndexError
from ragsync.modules.vdb import (
    SearchHit,
    VectorRecord,
    VectorSnapshot,
    read_snapshot,
    write_snapshot,
)


def test_vector_record_normalizes_inputs() -> None:
    record = VectorRecord(" doc-chunk-0 ", np.array([1, 2], dtype=np.int32), {"k": 1})

    assert record.id == "doc-chunk-0"
    assert record.vector == (1.0, 2.0)
    assert record.dimension == 2
    with pytest.raises(TypeError):
        record.metadata["k"] = 2  # type: ignore[index]


@pytest.mark.parametrize(
    ("record_id", "vector", "error"),
    [
        ("", [1.0], ValueError),
        (7, [1.0], TypeError),
        ("a", [], ValueError),
        ("a", "abc", TypeError),
        ("a", [float("nan")], ValueError),
        ("a", [True, 1.0], TypeError),
    ],
)
def test_vector_record_rejects_invalid_values(record_id, vector, error) -> None:
    with pytest.raises(error):
        VectorRecord(record_id, vector)


def test_vector_record_mapping_round_trip() -> None:
    record = VectorRecord("a", [0.5, 0.25], {"parentId": "doc"})

    assert VectorRecord.from_mapping(record.to_mapping()) == record


def test_search_hit_to_mapping() -> None:
    hit = SearchHit(id="a", score=0.9, metadata={"text": "alpha"})

    assert hit.to_mapping() == {"id": "a", "score": 0.9, "metadata": {"text": "alpha"}}


def test_snapshot_payload_layout(tmp_path: Path) -> None:
    saved_at = datetime(2024, 3, 4, 5, 6, 7, 891000, tzinfo=timezone.utc)
    path = tmp_path / "vectors.json"

    snapshot = write_snapshot(
        path,
        [VectorRecord("a", [1.0], {"fileName": "a.txt"})],
        saved_at=saved_at,
    )

    payload = snapshot.to_payload()
    assert payload["savedAt"] == "2024-03-04T05:06:07Z"
    assert payload["count"] == 1
    assert payload["vectors"][0] == {
        "id": "a",
        "vector": [1.0],
        "metadata": {"fileName": "a.txt"},
    }

    loaded = read_snapshot(path)
    assert loaded is not None
    assert loaded.records == snapshot.records
    assert loaded.saved_at == saved_at.replace(microsecond=0)


def test_read_snapshot_missing_and_invalid(tmp_path: Path) -> None:
    assert read_snapshot(tmp_path / "absent.json") is None

    bad = tmp_path / "bad.json"
    bad.write_text('{"vectors": "nope"}', encoding="utf-8")
    with pytest.raises(VectorIndexError):
        read_snapshot(bad)


def test_snapshot_from_payload_tolerates_missing_saved_at() -> None:
    snapshot = VectorSnapshot.from_payload({"vectors": []})

    assert snapshot.saved_at is None
    assert snapshot.count == 0
