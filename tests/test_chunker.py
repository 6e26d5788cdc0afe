"""Tests for DocumentChunker (needs the tiktoken cl100k_base encoding)."""
import pytest

from repobot.chunking import chunker as chunker_module
from repobot.chunking.chunker import DocumentChunker, count_tokens
from repobot.schemas import RawDocument


@pytest.fixture(autouse=True)
def _require_encoding():
    try:
        chunker_module._encoder()
    except Exception as exc:  # encoding files are downloaded on first use
        pytest.skip(f"tiktoken encoding unavailable: {exc}")


def _doc(content: str, path: str = "docs/guide.md") -> RawDocument:
    return RawDocument(source_path=path, content=content, url=f"https://example.test/{path}")


def test_short_document_is_kept_whole():
    doc = _doc("# Guide\n\nInstall with `pip install acme`.")

    chunks = DocumentChunker(max_tokens=100, overlap_tokens=10).chunk_document(doc)

    assert len(chunks) == 1
    chunk = chunks[0]
    assert chunk.chunk_strategy == "keep_whole"
    assert chunk.text.startswith("[docs/guide.md]\n\n# Guide")
    assert chunk.source_path == "docs/guide.md"
    assert chunk.metadata["source_path"] == "docs/guide.md"
    assert chunk.doc_id == doc.id


def test_long_document_is_split_with_overlap():
    doc = _doc(" ".join(f"word{i}" for i in range(600)))
    max_tokens = 100

    chunks = DocumentChunker(max_tokens=max_tokens, overlap_tokens=20).chunk_document(doc)

    assert len(chunks) > 1
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
    assert all(c.chunk_strategy == "fixed_overlap" for c in chunks)
    assert all(c.token_count <= max_tokens for c in chunks)
    assert "word0" in chunks[0].text
    assert "word599" in chunks[-1].text


def test_count_tokens_is_positive_for_text():
    assert count_tokens("hello world") > 0


def test_overlap_must_be_smaller_than_window():
    with pytest.raises(ValueError):
        DocumentChunker(max_tokens=50, overlap_tokens=50)
