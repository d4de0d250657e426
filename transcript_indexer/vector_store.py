"""
ChromaDB vector store integration for transcript search

Persistent chunk storage with similarity search, plus the per-file checkpoints
that make indexing resumable.
"""

import os
import json
import logging
import tempfile
from typing import List, Dict, Optional, Any
from dataclasses import dataclass
from pathlib import Path

import chromadb
from chromadb.config import Settings

from .chunker import ConversationChunk

logger = logging.getLogger(__name__)

CHECKPOINT_FILE = 'indexed_files.json'


class StoreNotInitializedError(RuntimeError):
    """Raised when the store is used before initialize()"""


@dataclass
class IndexStatus:
    total_records: int
    distinct_projects: int
    last_updated: Optional[str]


class FileCheckpoints:
    """Last-modified time at which each log file was fully indexed"""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._entries: Dict[str, float] = {}

    def load(self) -> None:
        """Read checkpoints from disk; a missing file means nothing is indexed"""
        self._entries = {}
        if not self.path.exists():
            return
        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        self._entries = {str(k): float(v) for k, v in data.get('files', {}).items()}

    def save(self) -> None:
        """Rewrite the whole checkpoint file"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix='.checkpoints-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump({'files': self._entries}, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, file_path: str) -> Optional[float]:
        return self._entries.get(file_path)

    def set(self, file_path: str, mtime: float) -> None:
        self._entries[file_path] = mtime

    def __contains__(self, file_path: str) -> bool:
        return file_path in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class ConversationStore:
    """ChromaDB-based store for conversation chunks and file checkpoints"""

    def __init__(
        self,
        persist_directory: str = ".chromadb",
        collection_name: str = "conversations"
    ):
        """
        Args:
            persist_directory: Directory to persist the database and checkpoints
            collection_name: Name of the collection for conversation chunks
        """
        self.persist_directory = Path(persist_directory)
        self.collection_name = collection_name
        self.checkpoints = FileCheckpoints(self.persist_directory / CHECKPOINT_FILE)
        self.client = None
        self.collection = None

    @property
    def is_initialized(self) -> bool:
        return self.collection is not None

    def initialize(self) -> None:
        """Open (or create) the collection and load checkpoints"""
        if self.is_initialized:
            return

        self.persist_directory.mkdir(parents=True, exist_ok=True)

        self.client = chromadb.PersistentClient(
            path=str(self.persist_directory),
            settings=Settings(
                anonymized_telemetry=False  # Disable telemetry for privacy
            )
        )

        # We generate embeddings ourselves, so no embedding function here
        self.collection = self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={
                "hnsw:space": "cosine",
                "description": "Coding assistant conversation chunks"
            }
        )
        self.checkpoints.load()

        logger.info(
            f"Store initialized at {self.persist_directory} "
            f"({self.collection.count()} chunks, {len(self.checkpoints)} files indexed)"
        )

    def _require_collection(self):
        if self.collection is None:
            raise StoreNotInitializedError("Store not initialized. Call initialize() first.")
        return self.collection

    def replace_session_chunks(
        self,
        session_id: str,
        chunks: List[ConversationChunk],
        embeddings: List[List[float]]
    ) -> None:
        """Drop every stored chunk of a session, then add the new set"""
        collection = self._require_collection()
        if len(embeddings) != len(chunks):
            raise ValueError("Number of embeddings must match number of chunks")

        collection.delete(where={"session_id": session_id})
        if not chunks:
            return

        collection.add(
            ids=[chunk.id for chunk in chunks],
            embeddings=embeddings,
            documents=[chunk.content for chunk in chunks],
            metadatas=[
                {
                    'session_id': chunk.session_id,
                    'project': chunk.project,
                    'timestamp': chunk.timestamp,
                    'chunk_index': chunk.chunk_index,
                }
                for chunk in chunks
            ]
        )

    def needs_indexing(self, file_path: str, mtime: float, force: bool = False) -> bool:
        self._require_collection()
        if force:
            return True
        last_indexed = self.checkpoints.get(file_path)
        return last_indexed is None or last_indexed < mtime

    def mark_indexed(self, file_path: str, mtime: float) -> None:
        """Record a successfully indexed file and persist immediately"""
        self._require_collection()
        self.checkpoints.set(file_path, mtime)
        self.persist_checkpoints()

    def persist_checkpoints(self) -> None:
        self._require_collection()
        self.checkpoints.save()

    def query(self, query_embedding: List[float], n_results: int) -> List[Dict[str, Any]]:
        """
        Nearest-neighbor search

        Returns row dicts ordered by similarity, best first. `distance` is the
        cosine distance from ChromaDB and `score` is 1 - distance.
        """
        collection = self._require_collection()
        if n_results < 1 or collection.count() == 0:
            return []

        results = collection.query(
            query_embeddings=[query_embedding],
            n_results=min(n_results, collection.count()),
            include=['metadatas', 'documents', 'distances']
        )

        rows = []
        if results['ids'] and len(results['ids'][0]) > 0:
            for i, chunk_id in enumerate(results['ids'][0]):
                metadata = results['metadatas'][0][i] or {}
                distance = float(results['distances'][0][i])
                rows.append({
                    'id': chunk_id,
                    'content': results['documents'][0][i],
                    'session_id': metadata.get('session_id', ''),
                    'project': metadata.get('project', ''),
                    'timestamp': metadata.get('timestamp', ''),
                    'chunk_index': metadata.get('chunk_index', 0),
                    'distance': distance,
                    'score': 1.0 - distance,
                })

        return rows

    def get_session_chunks(self, session_id: str) -> List[Dict[str, Any]]:
        """Stored chunks of one session, ordered by chunk_index"""
        collection = self._require_collection()
        results = collection.get(where={"session_id": session_id}, include=['metadatas', 'documents'])

        rows = []
        for i, chunk_id in enumerate(results['ids']):
            metadata = results['metadatas'][i] or {}
            rows.append({
                'id': chunk_id,
                'content': results['documents'][i],
                'chunk_index': metadata.get('chunk_index', 0),
                'timestamp': metadata.get('timestamp', ''),
                'project': metadata.get('project', ''),
            })
        rows.sort(key=lambda row: row['chunk_index'])
        return rows

    def count(self) -> int:
        return self._require_collection().count()

    def status(self) -> IndexStatus:
        """Record count, distinct projects and newest chunk timestamp"""
        collection = self._require_collection()
        if collection.count() == 0:
            return IndexStatus(total_records=0, distinct_projects=0, last_updated=None)

        results = collection.get(include=['metadatas'])
        metadatas = [m or {} for m in results['metadatas']]
        projects = set(m.get('project') for m in metadatas if m.get('project') is not None)
        timestamps = [m['timestamp'] for m in metadatas if isinstance(m.get('timestamp'), str) and m['timestamp']]

        return IndexStatus(
            total_records=len(results['ids']),
            distinct_projects=len(projects),
            last_updated=max(timestamps) if timestamps else None
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the vector store"""
        status = self.status()
        return {
            'total_chunks': status.total_records,
            'projects': status.distinct_projects,
            'last_updated': status.last_updated,
            'indexed_files': len(self.checkpoints),
            'collection_name': self.collection_name,
            'persist_directory': str(self.persist_directory)
        }
