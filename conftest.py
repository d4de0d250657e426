"""
Shared pytest fixtures for transcript-search tests.

Provides a mock embedder so tests never load a real model, and helpers for
writing session logs in both supported formats.
"""

import hashlib
import json
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from transcript_indexer import ConversationIndexer, IndexerConfig


class MockEmbedder:
    """
    Deterministic mock embedding generator for testing.

    Generates consistent embeddings based on text hash - no ML model loading.
    Specific texts can be pinned to chosen vectors through `overrides`.
    """

    dimension = 384
    model_name = "mock-model"

    def __init__(self, overrides: Optional[Dict[str, List[float]]] = None):
        self.overrides = overrides or {}
        self.batch_calls = 0
        self.fail_on: Optional[str] = None

    def embed_text(self, text: str) -> List[float]:
        if text in self.overrides:
            return self.overrides[text]
        h = hashlib.md5(text.encode()).hexdigest()
        embedding = [(int(h[i:i + 2], 16) + 1) / 256.0 for i in range(0, 32, 2)]
        return (embedding * 24)[:self.dimension]

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        self.batch_calls += 1
        if self.fail_on and any(self.fail_on in t for t in texts):
            raise RuntimeError("embedding backend failed")
        return [self.embed_text(t) for t in texts]


def unit_vector(index: int, dimension: int = MockEmbedder.dimension, weight: float = 1.0) -> List[float]:
    """A vector pointing mostly along one axis"""
    vector = [0.01] * dimension
    vector[index] = weight
    return vector


def claude_record(role: str, text, timestamp: str = "2025-06-01T10:00:00.000Z", **extra) -> dict:
    record = {
        "type": role,
        "timestamp": timestamp,
        "message": {"role": role, "content": text},
    }
    record.update(extra)
    return record


def codex_message(role: str, text: str, timestamp: str = "2025-06-01T10:00:00.000Z") -> dict:
    block_type = "input_text" if role == "user" else "output_text"
    return {
        "timestamp": timestamp,
        "type": "response_item",
        "payload": {"type": "message", "role": role, "content": [{"type": block_type, "text": text}]},
    }


def write_jsonl(path: Path, records: list, raw_lines: Optional[Dict[int, str]] = None) -> Path:
    """Write records one per line; raw_lines inserts literal lines at given positions"""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [json.dumps(r) for r in records]
    for position, raw in sorted((raw_lines or {}).items()):
        lines.insert(position, raw)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def config(tmp_path):
    return IndexerConfig(
        data_dir=tmp_path / "data",
        claude_projects_dir=tmp_path / "claude" / "projects",
        codex_sessions_dir=tmp_path / "codex" / "sessions",
        collection_name="test_conversations",
        debounce_delay=0.05,
    )


@pytest.fixture
def mock_embedder():
    return MockEmbedder()


@pytest.fixture
def indexer(config, mock_embedder):
    indexer = ConversationIndexer(config, embedder=mock_embedder)
    indexer.initialize()
    return indexer
