"""Named FAISS collections with payloads, ID mapping and persistence."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

import faiss
import numpy as np

from datachat.exceptions import VectorStoreError
from datachat.models.domain import VectorHit
from datachat.observability.logger import get_logger

logger = get_logger("faiss_store")


class _Collection:
    def __init__(self, dimensions: int) -> None:
        self.index = faiss.IndexIDMap(faiss.IndexFlatIP(dimensions))
        self.id_to_point_id: dict[int, str] = {}
        self.point_id_to_int: dict[str, int] = {}
        self.payloads: dict[str, dict] = {}
        self.next_id = 0

    @property
    def size(self) -> int:
        return self.index.ntotal

    def upsert(self, points: list[tuple[str, list[float], dict]]) -> None:
        existing = [self.point_id_to_int[pid] for pid, _, _ in points if pid in self.point_id_to_int]
        if existing:
            self.index.remove_ids(np.array(existing, dtype=np.int64))

        vectors = np.array([vec for _, vec, _ in points], dtype=np.float32)
        faiss.normalize_L2(vectors)
        int_ids = []
        for point_id, _, payload in points:
            if point_id not in self.point_id_to_int:
                self.point_id_to_int[point_id] = self.next_id
                self.id_to_point_id[self.next_id] = point_id
                self.next_id += 1
            int_ids.append(self.point_id_to_int[point_id])
            self.payloads[point_id] = payload
        self.index.add_with_ids(vectors, np.array(int_ids, dtype=np.int64))

    def search(self, vector: list[float], k: int) -> list[VectorHit]:
        if self.index.ntotal == 0 or k <= 0:
            return []
        query = np.array(vector, dtype=np.float32).reshape(1, -1)
        faiss.normalize_L2(query)
        scores, indices = self.index.search(query, min(k, self.index.ntotal))
        hits = []
        for idx, score in zip(indices[0], scores[0]):
            idx = int(idx)
            if idx == -1:
                continue
            point_id = self.id_to_point_id.get(idx)
            if point_id is not None:
                hits.append(
                    VectorHit(id=point_id, score=float(score), payload=self.payloads.get(point_id, {}))
                )
        return hits


class FAISSCollectionStore:
    """One inner-product index per named collection.

    Each collection persists to ``<base_path>/<name>/index.faiss`` plus a
    JSON file holding the ID mapping and point payloads.
    """

    def __init__(self, dimensions: int, base_path: str | None = None) -> None:
        self._dimensions = dimensions
        self._base_path = base_path
        self._collections: dict[str, _Collection] = {}
        self._write_lock = asyncio.Lock()

        if base_path:
            self._try_load(base_path)

    def _try_load(self, base_path: str) -> None:
        if not os.path.isdir(base_path):
            return
        for name in sorted(os.listdir(base_path)):
            path = os.path.join(base_path, name)
            index_file = os.path.join(path, "index.faiss")
            mapping_file = os.path.join(path, "points.json")
            if not (os.path.exists(index_file) and os.path.exists(mapping_file)):
                continue
            collection = _Collection(self._dimensions)
            collection.index = faiss.read_index(index_file)
            with open(mapping_file) as f:
                data = json.load(f)
            collection.id_to_point_id = {int(k): v for k, v in data["id_to_point_id"].items()}
            collection.point_id_to_int = data["point_id_to_int"]
            collection.payloads = data["payloads"]
            collection.next_id = data["next_id"]
            self._collections[name] = collection
            logger.info("faiss_collection_loaded", collection=name, size=collection.size)

    async def ensure_collection(self, name: str) -> None:
        async with self._write_lock:
            if name not in self._collections:
                self._collections[name] = _Collection(self._dimensions)
                logger.info("faiss_collection_created", collection=name)

    async def upsert(self, collection: str, points: list[tuple[str, list[float], dict]]) -> None:
        if not points:
            return
        await self.ensure_collection(collection)
        async with self._write_lock:
            await asyncio.to_thread(self._collections[collection].upsert, points)
        logger.info(
            "faiss_upserted",
            collection=collection,
            count=len(points),
            total=self._collections[collection].size,
        )

    async def search(self, collection: str, vector: list[float], k: int) -> list[VectorHit]:
        target = self._collections.get(collection)
        if target is None:
            raise VectorStoreError(f"Unknown collection: {collection}")
        try:
            return await asyncio.to_thread(target.search, vector, k)
        except Exception as e:
            raise VectorStoreError(f"Search failed in {collection}: {e}") from e

    def collection_sizes(self) -> dict[str, int]:
        return {name: c.size for name, c in self._collections.items()}

    def save(self, base_path: str | None = None) -> None:
        base_path = base_path or self._base_path
        if not base_path:
            return
        for name, collection in self._collections.items():
            path = Path(base_path) / name
            path.mkdir(parents=True, exist_ok=True)
            faiss.write_index(collection.index, str(path / "index.faiss"))
            with open(path / "points.json", "w") as f:
                json.dump(
                    {
                        "id_to_point_id": collection.id_to_point_id,
                        "point_id_to_int": collection.point_id_to_int,
                        "payloads": collection.payloads,
                        "next_id": collection.next_id,
                    },
                    f,
                )
            logger.info("faiss_saved", collection=name, path=str(path), size=collection.size)
