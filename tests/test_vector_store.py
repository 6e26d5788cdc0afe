"""Tests for FAISSIndex and the named VectorStore (real FAISS, 4-dim vectors)."""
import threading

import numpy as np
import pytest

from conftest import unit_vectors
from repobot.chunking.schemas import Chunk
from repobot.embedding.faiss_index import FAISSIndex
from repobot.embedding.store import VectorStore


def _chunk(path: str, text: str) -> Chunk:
    return Chunk(doc_id=path, chunk_index=0, chunk_strategy="keep_whole", text=text, source_path=path)


class TestFAISSIndex:
    def test_empty_index_returns_no_results(self):
        index = FAISSIndex(dimensions=4)

        assert index.search_hybrid(unit_vectors(1)[0], "anything") == []
        assert not index.is_built

    def test_dense_search_finds_exact_vector(self):
        index = FAISSIndex(dimensions=4)
        vectors = unit_vectors(3)
        chunks = [_chunk(f"docs/{i}.md", f"text {i}") for i in range(3)]
        index.add(chunks, vectors)

        results = index.search_dense(vectors[1], top_k=1)

        assert results[0][0].source_path == "docs/1.md"
        assert results[0][1] == pytest.approx(1.0, abs=1e-5)

    def test_sparse_search_matches_keywords(self):
        index = FAISSIndex(dimensions=4)
        index.add(
            [
                _chunk("docs/cache.md", "configure the redis cache"),
                _chunk("docs/auth.md", "login tokens"),
                _chunk("docs/deploy.md", "ship the container"),
            ],
            unit_vectors(3),
        )

        results = index.search_sparse("redis", top_k=5)

        assert [c.source_path for c, _ in results] == ["docs/cache.md"]

    def test_add_appends_and_rejects_mismatches(self):
        index = FAISSIndex(dimensions=4)
        index.add([_chunk("a.md", "a")], unit_vectors(1))
        index.add([_chunk("a.md", "a")], unit_vectors(1, seed=3))

        assert index.faiss_index.ntotal == 2
        with pytest.raises(ValueError):
            index.add([_chunk("b.md", "b")], unit_vectors(2))
        with pytest.raises(ValueError):
            index.add([_chunk("b.md", "b")], unit_vectors(1, dims=8))


class TestVectorStore:
    def test_ensure_index_creates_once(self, tmp_path):
        store = VectorStore(tmp_path, dimensions=4)

        assert store.ensure_index("docs") is True
        assert store.ensure_index("docs") is False
        assert store.exists("docs")
        assert store.stats("docs")["vectors"] == 0

    def test_upsert_persists_across_instances(self, tmp_path):
        store = VectorStore(tmp_path, dimensions=4)
        store.ensure_index("docs")
        vectors = unit_vectors(2)
        store.upsert("docs", [_chunk("docs/a.md", "alpha"), _chunk("docs/b.md", "beta")], vectors)
        store.flush("docs")

        reloaded = VectorStore(tmp_path, dimensions=4).get("docs")

        assert reloaded.faiss_index.ntotal == 2
        assert [c.source_path for c in reloaded.chunks] == ["docs/a.md", "docs/b.md"]
        hits = reloaded.search_hybrid(vectors[0], "alpha", top_k=1)
        assert hits[0][0].source_path == "docs/a.md"

    def test_reingesting_same_path_duplicates_vectors(self, tmp_path):
        store = VectorStore(tmp_path, dimensions=4)
        store.ensure_index("docs")
        for _ in range(2):
            store.upsert("docs", [_chunk("docs/a.md", "alpha")], unit_vectors(1))

        stats = store.stats("docs")
        assert stats["vectors"] == 2
        assert stats["source_paths"] == 1

    def test_missing_index_raises(self, tmp_path):
        store = VectorStore(tmp_path, dimensions=4)

        with pytest.raises(FileNotFoundError):
            store.get("nope")
        with pytest.raises(FileNotFoundError):
            store.upsert("nope", [_chunk("a.md", "a")], unit_vectors(1))

    def test_upserts_stay_in_memory_until_flush(self, tmp_path, monkeypatch):
        store = VectorStore(tmp_path, dimensions=4)
        store.ensure_index("docs")
        saves = []
        original_save = FAISSIndex.save
        monkeypatch.setattr(FAISSIndex, "save", lambda self, path: (saves.append(path), original_save(self, path)))

        for i in range(20):
            store.upsert("docs", [_chunk(f"docs/{i}.md", f"text {i}")], unit_vectors(1, seed=i))

        assert saves == []
        assert store.stats("docs")["vectors"] == 20
        assert VectorStore(tmp_path, dimensions=4).stats("docs")["vectors"] == 0

        assert store.flush("docs") is True
        assert store.flush("docs") is False
        assert len(saves) == 1
        assert VectorStore(tmp_path, dimensions=4).stats("docs")["vectors"] == 20

    def test_sparse_index_rebuilt_after_new_chunks(self, tmp_path):
        store = VectorStore(tmp_path, dimensions=4)
        store.ensure_index("docs")
        store.upsert("docs", [_chunk("docs/a.md", "alpha"), _chunk("docs/b.md", "beta")], unit_vectors(2))
        store.search_hybrid("docs", unit_vectors(1)[0], "alpha")
        store.upsert("docs", [_chunk("docs/redis.md", "redis cache")], unit_vectors(1, seed=9))

        sparse = store.get("docs").search_sparse("redis")

        assert [c.source_path for c, _ in sparse] == ["docs/redis.md"]

    def test_search_while_upserting_from_another_thread(self, tmp_path):
        store = VectorStore(tmp_path, dimensions=4)
        store.ensure_index("docs")
        store.upsert("docs", [_chunk("docs/seed.md", "seed")], unit_vectors(1))
        errors: list[BaseException] = []
        done = threading.Event()

        def writer():
            try:
                for i in range(300):
                    store.upsert("docs", [_chunk(f"docs/{i}.md", f"page {i}")], unit_vectors(1, seed=i))
            except BaseException as exc:
                errors.append(exc)
            finally:
                done.set()

        thread = threading.Thread(target=writer)
        thread.start()
        query = unit_vectors(1, seed=7)[0]
        while not done.is_set():
            try:
                hits = store.search_hybrid("docs", query, "page", top_k=5)
                assert all(chunk.source_path.startswith("docs/") for chunk, _ in hits)
            except BaseException as exc:
                errors.append(exc)
                break
        thread.join()

        assert errors == []
        assert store.size("docs") == 301

    @pytest.mark.parametrize("name", ["", "Docs", "../escape", "a/b", "x" * 80])
    def test_rejects_unsafe_index_names(self, tmp_path, name):
        with pytest.raises(ValueError):
            VectorStore(tmp_path, dimensions=4).ensure_index(name)
