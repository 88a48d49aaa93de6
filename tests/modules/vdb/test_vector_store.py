"""Tests for :mod:`ragsync.modules.vdb.store`."""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from pathlib import Path

import numpy as np
import pytest

from ragsync.core.errors import DimensionMismatchError
from ragsync.modules.vdb import VectorRecord, VectorStore, cosine_similarity

_FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _store(path: Path | None = None, **options: object) -> VectorStore:
    return VectorStore(path, now=lambda: _FIXED_NOW, **options)  # type: ignore[arg-type]


def _read(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def test_cosine_similarity_basics() -> None:
    assert cosine_similarity([1.0, 0.0], [3.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 2.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_search_returns_self_match_first() -> None:
    store = _store()
    store.upsert("a", [1.0, 0.0, 0.0], {"fileName": "a.txt"})
    store.upsert("b", [0.0, 1.0, 0.0], {"fileName": "b.txt"})
    store.upsert("c", [0.7, 0.7, 0.0], {"fileName": "c.txt"})

    hits = store.search([0.0, 1.0, 0.0], top_k=2)

    assert [hit.id for hit in hits] == ["b", "c"]
    assert hits[0].score == pytest.approx(1.0)
    assert hits[1].score == pytest.approx(math.sqrt(0.5))
    assert hits[0].metadata["fileName"] == "b.txt"


def test_search_ties_keep_insertion_order() -> None:
    store = _store()
    for record_id in ("first", "second", "third"):
        store.upsert(record_id, [1.0, 1.0])

    hits = store.search([2.0, 2.0], top_k=3)

    assert [hit.id for hit in hits] == ["first", "second", "third"]


def test_search_limits_and_handles_empty_store() -> None:
    store = _store()
    assert store.search([1.0, 0.0]) == []

    for index in range(8):
        store.upsert(f"r{index}", [1.0, float(index)])

    assert len(store.search([1.0, 0.0], top_k=5)) == 5
    assert len(store.search([1.0, 0.0], top_k=50)) == 8
    assert store.search([1.0, 0.0], top_k=0) == []


def test_search_applies_exact_match_filter() -> None:
    store = _store()
    store.upsert("a", [1.0, 0.0], {"language": "english", "chunkIndex": 0})
    store.upsert("b", [1.0, 0.1], {"language": "french", "chunkIndex": 0})
    store.upsert("c", [1.0, 0.2], {"language": "french", "chunkIndex": 1})

    hits = store.search([1.0, 0.0], where={"language": "french", "chunkIndex": 1})

    assert [hit.id for hit in hits] == ["c"]
    assert store.search([1.0, 0.0], where={"missing": None}) == []


def test_zero_vector_scores_zero() -> None:
    store = _store()
    store.upsert("zero", [0.0, 0.0])
    store.upsert("unit", [1.0, 0.0])

    hits = store.search([1.0, 0.0])

    assert [(hit.id, hit.score) for hit in hits] == [("unit", 1.0), ("zero", 0.0)]


def test_upsert_overwrites_and_enforces_dimension() -> None:
    store = _store()
    store.upsert("a", np.array([1.0, 2.0]), {"v": 1})
    store.upsert("a", [3.0, 4.0], {"v": 2})

    assert store.count() == 1
    assert store.get("a").vector == (3.0, 4.0)
    assert store.get("a").metadata["v"] == 2
    assert store.dimension == 2

    with pytest.raises(DimensionMismatchError):
        store.upsert("b", [1.0, 2.0, 3.0])
    with pytest.raises(DimensionMismatchError):
        store.search([1.0, 2.0, 3.0])


def test_batch_upsert_is_all_or_nothing_on_dimension() -> None:
    store = _store(dimension=2)
    batch = [
        VectorRecord("ok", [1.0, 0.0]),
        VectorRecord("bad", [1.0, 0.0, 0.0]),
    ]

    with pytest.raises(DimensionMismatchError):
        store.batch_upsert(batch)

    assert store.count() == 0


def test_delete_and_delete_where(tmp_path: Path) -> None:
    store = _store(tmp_path / "vectors.json")
    store.batch_upsert(
        [
            VectorRecord("doc-chunk-0", [1.0, 0.0], {"parentId": "doc"}),
            VectorRecord("doc-chunk-1", [0.0, 1.0], {"parentId": "doc"}),
            VectorRecord("other-chunk-0", [1.0, 1.0], {"parentId": "other"}),
        ]
    )

    assert store.delete("other-chunk-0") is True
    assert store.delete("other-chunk-0") is False
    assert store.delete_where("parentId", "doc") == 2
    assert store.count() == 0
    assert _read(tmp_path / "vectors.json")["count"] == 0


def test_snapshot_written_every_n_upserts(tmp_path: Path) -> None:
    path = tmp_path / "vectors.json"
    store = _store(path, snapshot_every_n=3)

    store.upsert("a", [1.0, 0.0])
    store.upsert("b", [0.0, 1.0])
    assert not path.exists()

    store.upsert("c", [1.0, 1.0])
    payload = _read(path)
    assert payload["count"] == 3
    assert payload["savedAt"] == "2024-05-01T12:00:00Z"
    assert [entry["id"] for entry in payload["vectors"]] == ["a", "b", "c"]

    store.upsert("d", [2.0, 1.0])
    assert _read(path)["count"] == 3
    assert store.flush() is True
    assert _read(path)["count"] == 4


def test_reload_restores_records_and_search(tmp_path: Path) -> None:
    path = tmp_path / "vectors.json"
    store = _store(path)
    store.batch_upsert(
        [
            VectorRecord("a", [1.0, 0.0], {"fileName": "a.txt"}),
            VectorRecord("b", [0.0, 1.0], {"fileName": "b.txt"}),
        ]
    )

    restored = _store(path)

    assert restored.count() == 2
    assert restored.dimension == 2
    assert restored.last_saved_at == _FIXED_NOW
    assert restored.search([0.0, 1.0], top_k=1)[0].id == "b"


def test_corrupt_snapshot_starts_empty(tmp_path: Path) -> None:
    path = tmp_path / "vectors.json"
    path.write_text("{broken", encoding="utf-8")

    store = _store(path)

    assert store.count() == 0
    store.upsert("a", [1.0])
    assert store.flush() is True
    assert _read(path)["count"] == 1


def test_snapshot_records_with_foreign_dimension_are_skipped(tmp_path: Path) -> None:
    path = tmp_path / "vectors.json"
    path.write_text(
        json.dumps(
            {
                "vectors": [
                    {"id": "a", "vector": [1.0, 0.0], "metadata": {}},
                    {"id": "b", "vector": [1.0, 0.0, 0.0], "metadata": {}},
                ],
                "savedAt": "2024-01-01T00:00:00Z",
                "count": 2,
            }
        ),
        encoding="utf-8",
    )

    store = _store(path)

    assert store.all_ids() == {"a"}


def test_snapshot_write_failure_keeps_memory_authoritative(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file", encoding="utf-8")
    store = _store(blocker / "vectors.json", snapshot_every_n=1)

    store.upsert("a", [1.0, 0.0])
    store.batch_upsert([VectorRecord("b", [0.0, 1.0])])

    assert store.count() == 2
    assert store.flush() is False
    assert store.search([1.0, 0.0], top_k=1)[0].id == "a"


def test_documents_group_by_parent() -> None:
    store = _store()
    store.batch_upsert(
        [
            VectorRecord(
                "report-chunk-0",
                [1.0, 0.0],
                {
                    "parentId": "report",
                    "fileName": "report.txt",
                    "fileType": "text/plain",
                    "language": "english",
                },
            ),
            VectorRecord("report-chunk-1", [0.0, 1.0], {"parentId": "report"}),
            VectorRecord("orphan", [1.0, 1.0], {}),
            VectorRecord("notes-chunk-0", [1.0, 1.0], {"parentId": "notes"}),
        ]
    )

    documents = store.documents()

    assert [(doc.parent_id, doc.chunks) for doc in documents] == [
        ("report", 2),
        ("notes", 1),
    ]
    assert documents[0].to_mapping() == {
        "parentId": "report",
        "fileName": "report.txt",
        "fileType": "text/plain",
        "language": "english",
        "chunks": 2,
    }


def test_clear_and_has_where() -> None:
    store = _store()
    store.upsert("a", [1.0], {"fileName": "a.txt"})

    assert store.has_where("fileName", "a.txt")
    assert not store.has_where("fileName", "b.txt")
    assert store.clear() == 1
    assert store.records() == []


def test_metadata_values_collects_distinct_values() -> None:
    store = _store()
    store.upsert("a-chunk-0", [1.0, 0.0], {"parentId": "a", "fileName": "x.txt"})
    store.upsert("a-chunk-1", [0.0, 1.0], {"parentId": "a", "fileName": "x.txt"})
    store.upsert("b-chunk-0", [1.0, 1.0], {"parentId": "b"})

    assert store.metadata_values("parentId") == {"a", "b"}
    assert store.metadata_values("fileName") == {"x.txt"}
    assert store.metadata_values("missing") == set()
