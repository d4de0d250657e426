"""
transcript-search Indexer

Parses coding-assistant session logs, chunks conversations, and generates
embeddings for vector search.
"""

from .config import IndexerConfig, configure_logging
from .transcript_parser import TranscriptParser, Message, Conversation, LogSource
from .chunker import MessageChunker, ConversationChunk
from .embeddings import EmbeddingGenerator
from .vector_store import ConversationStore, FileCheckpoints, IndexStatus, StoreNotInitializedError
from .search import SearchResult, parse_date_range
from .pipeline import ConversationIndexer, IndexStats
from .watcher import ConversationWatcher, DebounceRegistry

__version__ = "0.1.0"
__all__ = [
    "IndexerConfig", "configure_logging",
    "TranscriptParser", "Message", "Conversation", "LogSource",
    "MessageChunker", "ConversationChunk",
    "EmbeddingGenerator",
    "ConversationStore", "FileCheckpoints", "IndexStatus", "StoreNotInitializedError",
    "SearchResult", "parse_date_range",
    "ConversationIndexer", "IndexStats",
    "ConversationWatcher", "DebounceRegistry"
]
