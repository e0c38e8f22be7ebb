"""Tests for the sliding-window chunker."""

import re

import pytest

from memory_engine.rag.chunker import chunk_text


def test_short_text_is_one_chunk():
    chunks = chunk_text("  tiny note  ", "MEMORY.md", "fact", chunk_size=100)
    assert len(chunks) == 1
    assert chunks[0].text == "tiny note"
    assert chunks[0].id == "MEMORY.md-0"
    assert chunks[0].type == "fact"


def test_empty_text_has_no_chunks():
    assert chunk_text("", "a.md", "history") == []
    assert chunk_text(" \n\r\n ", "a.md", "history") == []


def test_length_exactly_chunk_size_is_one_chunk():
    text = "x" * 100
    chunks = chunk_text(text, "a.md", "history", chunk_size=100, overlap=20, min_length=5)
    assert len(chunks) == 1
    assert chunks[0].text == text


def test_one_past_chunk_size_gives_two_overlapping_chunks():
    text = "".join(chr(ord("a") + i % 26) for i in range(101))
    chunks = chunk_text(text, "a.md", "history", chunk_size=100, overlap=20, min_length=5)
    assert len(chunks) == 2
    first, second = chunks
    assert first.text == text[:100]
    assert second.text == text[80:]
    assert first.text[-20:] == second.text[:20]


def test_window_trims_back_to_word_boundary():
    words = " ".join(f"word{i:03d}" for i in range(60))  # 8 chars per word incl. space
    chunks = chunk_text(words, "a.md", "history", chunk_size=100, overlap=10, min_length=5)
    assert len(chunks) > 1
    for chunk in chunks[:-1]:
        assert len(chunk.text) <= 100
        # windows end on a whole word
        assert re.fullmatch(r"word\d{3}", chunk.text.split()[-1])


def test_newline_preferred_over_space():
    text = "alpha beta gamma delta\nepsilon zeta eta theta iota kappa"
    chunks = chunk_text(text, "a.md", "history", chunk_size=40, overlap=0, min_length=1)
    assert chunks[0].text == "alpha beta gamma delta"


def test_no_boundary_keeps_full_width():
    text = "y" * 250
    chunks = chunk_text(text, "a.md", "history", chunk_size=100, overlap=0, min_length=1)
    assert [len(c.text) for c in chunks] == [100, 100, 50]


def test_noise_chunks_are_dropped():
    text = "z" * 100 + " " + "ok"
    chunks = chunk_text(text, "a.md", "history", chunk_size=100, overlap=0, min_length=10)
    assert len(chunks) == 1
    assert chunks[0].id == "a.md-0"


def test_crlf_normalized():
    text = ("line one\r\n" * 30).strip()
    chunks = chunk_text(text, "a.md", "history", chunk_size=50, overlap=5, min_length=1)
    assert all("\r" not in c.text for c in chunks)


def test_overlap_larger_than_window_still_terminates():
    text = "q" * 300
    chunks = chunk_text(text, "a.md", "history", chunk_size=10, overlap=50, min_length=1)
    assert chunks
    assert chunks[-1].text.endswith("q")
    assert len(chunks) <= 300


def test_ids_unique_and_sequential():
    text = " ".join(["lorem ipsum dolor sit amet"] * 100)
    chunks = chunk_text(text, "notes.md", "history", chunk_size=200, overlap=40, min_length=10)
    ids = [c.id for c in chunks]
    assert len(set(ids)) == len(ids)
    assert ids == [f"notes.md-{i}" for i in range(len(ids))]


def test_chunks_cover_every_word():
    words = [f"w{i}" for i in range(400)]
    text = " ".join(words)
    chunks = chunk_text(text, "a.md", "history", chunk_size=120, overlap=30, min_length=1)
    seen = set()
    for chunk in chunks:
        seen.update(chunk.text.split())
    assert set(words) <= seen


def test_invalid_chunk_size():
    with pytest.raises(ValueError):
        chunk_text("abc", "a.md", "fact", chunk_size=0)
