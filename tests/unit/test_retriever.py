"""Tests for loading the knowledge base and retrieving passages."""
import asyncio
from pathlib import Path

import pytest

from kb_assistant.rag.chunker import Chunk, TextChunker
from kb_assistant.rag.retriever import KnowledgeBase, RetrievalResult, format_reference


def make_kb(knowledge_dir: Path, client, mode: str = "embedding") -> KnowledgeBase:
    return KnowledgeBase(
        knowledge_dir=knowledge_dir,
        mode=mode,
        top_k=8,
        client=client,
        chunker=TextChunker(chunk_size=800, chunk_overlap=150),
    )


def test_format_reference_without_results_is_empty():
    assert format_reference([]) == ""


def test_format_reference_numbers_entries_with_sources():
    results = [
        RetrievalResult(chunk=Chunk(text="Refunds take five days.", source="Policies"), score=0.9, rank=1),
        RetrievalResult(chunk=Chunk(text="Parking is behind.", source="Front Desk"), score=0.5, rank=2),
    ]

    reference = format_reference(results, title="Studio Reference")

    assert reference == (
        "\n\nStudio Reference:\n"
        "[1] (Policies) Refunds take five days.\n\n"
        "[2] (Front Desk) Parking is behind.\n\n"
    )


def test_load_chunks_and_embeds_every_document(knowledge_dir: Path, fake_client):
    kb = make_kb(knowledge_dir, fake_client)

    stats = asyncio.run(kb.load())

    assert stats == {"documents": 2, "chunks": 4, "embeddings": 4}
    assert kb.chunk_count == 4
    assert (knowledge_dir / ".index.json").exists()


def test_embedding_search_returns_best_passage_first(knowledge_dir: Path, fake_client):
    kb = make_kb(knowledge_dir, fake_client)
    asyncio.run(kb.load())

    results = asyncio.run(kb.search("How long does a refund take?", top_k=2))

    assert len(results) == 2
    assert results[0].source == "Policies"
    assert results[0].content.startswith("Refund requests")
    assert results[0].rank == 1
    assert results[0].score == pytest.approx(1.0)
    assert fake_client.embed_calls[-1] == ["How long does a refund take?"]


def test_search_with_empty_corpus_skips_the_model(tmp_path: Path, fake_client):
    kb = make_kb(tmp_path / "missing", fake_client)
    asyncio.run(kb.load())

    assert asyncio.run(kb.search("refund")) == []
    assert fake_client.embed_calls == []


def test_blank_question_returns_nothing(knowledge_dir: Path, fake_client):
    kb = make_kb(knowledge_dir, fake_client)
    asyncio.run(kb.load())
    calls = len(fake_client.embed_calls)

    assert asyncio.run(kb.search("   ")) == []
    assert len(fake_client.embed_calls) == calls


def test_reload_reuses_cache_when_corpus_is_unchanged(knowledge_dir: Path, fake_client):
    kb = make_kb(knowledge_dir, fake_client)
    asyncio.run(kb.load())
    asyncio.run(kb.load())

    assert len(fake_client.embed_calls) == 1


def test_reload_picks_up_new_files(knowledge_dir: Path, fake_client):
    kb = make_kb(knowledge_dir, fake_client)
    asyncio.run(kb.load())

    (knowledge_dir / "Payroll.txt").write_text("Payroll runs on the 15th.", encoding="utf-8")
    asyncio.run(kb.load())

    assert kb.chunk_count == 5
    results = asyncio.run(kb.search("payroll date", top_k=1))
    assert results[0].source == "Payroll"


def test_failed_reload_keeps_previous_corpus(knowledge_dir: Path, fake_client):
    kb = make_kb(knowledge_dir, fake_client)
    asyncio.run(kb.load())

    (knowledge_dir / "Payroll.txt").write_text("Payroll runs on the 15th.", encoding="utf-8")
    fake_client.fail_embeddings = True

    with pytest.raises(RuntimeError):
        asyncio.run(kb.load())

    assert kb.chunk_count == 4
    assert len(kb.store) == 4


def test_keyword_mode_never_calls_the_model(knowledge_dir: Path, fake_client):
    kb = make_kb(knowledge_dir, fake_client, mode="keyword")
    asyncio.run(kb.load())

    results = asyncio.run(kb.search("Where is staff parking?"))

    assert [r.source for r in results] == ["Front Desk"]
    assert fake_client.embed_calls == []
    assert not (knowledge_dir / ".index.json").exists()


def test_unknown_mode_is_rejected(tmp_path: Path, fake_client):
    with pytest.raises(ValueError):
        KnowledgeBase(knowledge_dir=tmp_path, mode="fuzzy", client=fake_client)


def test_debug_info(knowledge_dir: Path, fake_client):
    kb = make_kb(knowledge_dir, fake_client)
    asyncio.run(kb.load())

    info = kb.debug_info()

    assert info["knowledgeDir"] == str(knowledge_dir)
    assert info["exists"] is True
    assert info["files"] == ["Front Desk.txt", "Policies.txt", "archive", "notes.md"]
    assert info["chunkCount"] == 4


def test_explicit_zero_top_k_returns_nothing(knowledge_dir: Path, fake_client):
    kb = make_kb(knowledge_dir, fake_client)
    asyncio.run(kb.load())

    assert asyncio.run(kb.search("refund", top_k=0)) == []
    assert len(asyncio.run(kb.search("refund"))) == 4


def test_scalar_cache_does_not_break_search(knowledge_dir: Path, fake_client):
    (knowledge_dir / ".index.json").write_text('{"embeddings": [1, 2, 3, 4]}', encoding="utf-8")
    kb = make_kb(knowledge_dir, fake_client)
    asyncio.run(kb.load())

    results = asyncio.run(kb.search("refund", top_k=1))

    assert results[0].source == "Policies"
