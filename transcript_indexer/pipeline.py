"""
Main indexing pipeline for transcript search

Orchestrates the full pipeline: log parsing → chunking → embedding → indexing
"""

import os
import asyncio
import logging
from typing import List, Dict, Optional
from dataclasses import dataclass, field
from pathlib import Path

from .config import IndexerConfig
from .transcript_parser import TranscriptParser
from .chunker import MessageChunker
from .embeddings import EmbeddingGenerator
from .vector_store import ConversationStore, IndexStatus, StoreNotInitializedError
from .search import SearchResult, search_conversations

logger = logging.getLogger(__name__)


@dataclass
class IndexStats:
    """Outcome of an indexing run"""
    processed: int = 0
    added: int = 0
    errors: List[str] = field(default_factory=list)

    def merge(self, other: 'IndexStats') -> None:
        self.processed += other.processed
        self.added += other.added
        self.errors.extend(other.errors)


class ConversationIndexer:
    """Main indexer class that orchestrates the full pipeline"""

    def __init__(
        self,
        config: Optional[IndexerConfig] = None,
        parser: Optional[TranscriptParser] = None,
        chunker: Optional[MessageChunker] = None,
        embedder: Optional[EmbeddingGenerator] = None,
        store: Optional[ConversationStore] = None
    ):
        """
        Initialize the conversation indexer

        Args:
            config: Paths and model settings (defaults to IndexerConfig.from_env())
            parser: Log parser; built from the config roots if omitted
            chunker: Chunker; built from config.max_chunk_size if omitted
            embedder: Embedding generator; built from the config if omitted
            store: Vector store; built from config.persist_directory if omitted
        """
        self.config = config or IndexerConfig.from_env()

        self.parser = parser or TranscriptParser(
            claude_projects_dir=self.config.claude_projects_dir,
            codex_sessions_dir=self.config.codex_sessions_dir
        )
        self.chunker = chunker or MessageChunker(max_chunk_size=self.config.max_chunk_size)
        self.embedder = embedder or EmbeddingGenerator(
            model_type=self.config.embedding_model,
            model_name=self.config.embedding_model_name,
            openai_api_key=self.config.openai_api_key
        )
        self.store = store or ConversationStore(
            persist_directory=str(self.config.persist_directory),
            collection_name=self.config.collection_name
        )
        # Serializes per-file work between the watcher and full runs
        self._file_lock = asyncio.Lock()

    def initialize(self) -> None:
        """Open the vector store and load checkpoints"""
        self.store.initialize()

    def _require_store(self) -> None:
        if not self.store.is_initialized:
            raise StoreNotInitializedError("Indexer not initialized. Call initialize() first.")

    async def index_all(self, force: bool = False) -> IndexStats:
        """
        Index every log file that changed since it was last indexed

        Args:
            force: Reindex all files regardless of checkpoints

        Returns:
            IndexStats with processed/added counts and per-file errors
        """
        self._require_store()
        stats = IndexStats()
        files_to_index: List[str] = []

        for file_path in self.parser.list_conversation_files():
            try:
                mtime = os.stat(file_path).st_mtime
            except OSError as e:
                logger.error(f"Error reading {file_path}: {e}")
                stats.processed += 1
                stats.errors.append(f"{file_path}: {e}")
                continue

            if self.store.needs_indexing(file_path, mtime, force=force):
                files_to_index.append(file_path)

        if not files_to_index:
            logger.info("No new conversations to index")
            return stats

        logger.info(f"Indexing {len(files_to_index)} conversations{' (forced)' if force else ''}...")

        # One file at a time so each checkpoint is a precise resume point
        total = len(files_to_index)
        for i, file_path in enumerate(files_to_index, 1):
            result = await self._index_one(file_path, progress=f"[{i}/{total}] ")
            stats.merge(result)

        logger.info(f"Indexing complete: processed {stats.processed} files, added {stats.added} chunks")
        return stats

    async def index_file(self, file_path: str) -> IndexStats:
        """Index a single log file; failures are reported in the result"""
        self._require_store()
        return await self._index_one(file_path)

    async def _index_one(self, file_path: str, progress: str = '') -> IndexStats:
        """Parse, chunk, embed and store one file, then checkpoint it"""
        async with self._file_lock:
            return await self._index_locked(file_path, progress)

    async def _index_locked(self, file_path: str, progress: str) -> IndexStats:
        name = Path(file_path).name
        try:
            # Stat under the lock so the checkpoint matches the content parsed
            stat = os.stat(file_path)
            mtime = stat.st_mtime
            conversation = self.parser.parse(file_path, stat=stat)
            if conversation is None:
                self.store.mark_indexed(file_path, mtime)
                return IndexStats(processed=1)

            chunks = self.chunker.chunk_conversation(conversation)
            if not chunks:
                self.store.mark_indexed(file_path, mtime)
                return IndexStats(processed=1)

            chunk_stats = self.chunker.get_chunking_stats(chunks)
            logger.info(
                f"{progress}Embedding {chunk_stats['total_chunks']} chunks from {conversation.source.value} log {name} "
                f"(avg {chunk_stats['avg_text_length']:.0f} chars)..."
            )
            embeddings = await asyncio.to_thread(
                self.embedder.embed_texts, [chunk.content for chunk in chunks]
            )

            # Delete-then-add runs without yielding to the event loop
            self.store.replace_session_chunks(conversation.session_id, chunks, embeddings)
            self.store.mark_indexed(file_path, mtime)

            logger.info(f"{progress}Saved {len(chunks)} chunks from {name}")
            return IndexStats(processed=1, added=len(chunks))

        except Exception as e:
            logger.error(f"Error indexing {file_path}: {e}")
            return IndexStats(processed=1, errors=[f"{file_path}: {e}"])

    async def search(
        self,
        query: str,
        limit: int = 5,
        project: Optional[str] = None,
        date_range: Optional[str] = None,
        sort_by: str = 'relevance'
    ) -> List[SearchResult]:
        """
        Semantic search over indexed conversations

        Args:
            query: Search query text
            limit: Number of results to return
            project: Keep only results whose project contains this string
            date_range: 'today', 'yesterday', 'last week', 'last month', 'last N days'
            sort_by: 'relevance' (similarity order) or 'recency' (newest first)
        """
        return await search_conversations(
            self.store,
            self.embedder,
            query,
            limit=limit,
            project=project,
            date_range=date_range,
            sort_by=sort_by
        )

    def status(self) -> IndexStatus:
        self._require_store()
        return self.store.status()

    def get_stats(self) -> Dict:
        """Get comprehensive statistics about the current index"""
        stats = {'vector_store': self.store.get_stats()}
        stats['sources'] = self.parser.get_source_statistics()
        stats['config'] = {
            'embedding_model': self.config.embedding_model,
            'embedding_model_name': self.embedder.model_name,
            'max_chunk_size': self.config.max_chunk_size,
            'claude_projects_dir': str(self.config.claude_projects_dir),
            'codex_sessions_dir': str(self.config.codex_sessions_dir),
        }
        return stats
