"""Integration tests for named FAISS collections."""

import tempfile

import pytest

from datachat.exceptions import VectorStoreError
from datachat.vectorstore.faiss_store import FAISSCollectionStore


@pytest.fixture
def base_path():
    return tempfile.mkdtemp()


POINTS = [
    ("m_ticket", [1.0, 0.0, 0.0], {"title": "Tabel m_ticket", "content": "status, closed_at"}),
    ("log_absen", [0.0, 1.0, 0.0], {"title": "Tabel log_absen", "content": "jam_masuk"}),
]


async def test_search_returns_nearest_with_payload(base_path):
    store = FAISSCollectionStore(dimensions=3, base_path=base_path)
    await store.upsert("schema_context", POINTS)
    hits = await store.search("schema_context", [0.9, 0.1, 0.0], k=2)
    assert [h.id for h in hits] == ["m_ticket", "log_absen"]
    assert hits[0].payload["title"] == "Tabel m_ticket"
    assert hits[0].score > hits[1].score


async def test_upsert_replaces_existing_point(base_path):
    store = FAISSCollectionStore(dimensions=3, base_path=base_path)
    await store.upsert("schema_context", POINTS)
    await store.upsert("schema_context", [("m_ticket", [0.0, 0.0, 1.0], {"title": "baru"})])
    assert store.collection_sizes() == {"schema_context": 2}
    hits = await store.search("schema_context", [0.0, 0.0, 1.0], k=1)
    assert hits[0].id == "m_ticket"
    assert hits[0].payload == {"title": "baru"}


async def test_empty_and_unknown_collections(base_path):
    store = FAISSCollectionStore(dimensions=3, base_path=base_path)
    await store.ensure_collection("aggregated_insights")
    assert await store.search("aggregated_insights", [1.0, 0.0, 0.0], k=5) == []
    with pytest.raises(VectorStoreError):
        await store.search("missing", [1.0, 0.0, 0.0], k=5)


async def test_save_and_reload(base_path):
    store = FAISSCollectionStore(dimensions=3, base_path=base_path)
    await store.upsert("schema_context", POINTS)
    await store.ensure_collection("aggregated_insights")
    store.save()

    reloaded = FAISSCollectionStore(dimensions=3, base_path=base_path)
    assert reloaded.collection_sizes() == {"aggregated_insights": 0, "schema_context": 2}
    hits = await reloaded.search("schema_context", [0.0, 1.0, 0.0], k=1)
    assert hits[0].id == "log_absen"
    assert hits[0].payload["content"] == "jam_masuk"
