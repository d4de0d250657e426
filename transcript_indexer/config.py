"""
Configuration and logging setup for transcript-search

Paths and model settings come from environment variables with sensible
defaults, so the server, the CLI and the tests all build the same config.
"""

import os
import sys
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def _env_path(name: str, default: Path) -> Path:
    value = os.environ.get(name)
    return Path(value).expanduser() if value else default


@dataclass
class IndexerConfig:
    """Settings shared by the indexer, the watcher and the server"""
    data_dir: Path = field(default_factory=lambda: Path.home() / '.transcript-search')
    claude_projects_dir: Path = field(default_factory=lambda: Path.home() / '.claude' / 'projects')
    codex_sessions_dir: Path = field(default_factory=lambda: Path.home() / '.codex' / 'sessions')
    embedding_model: str = 'local'  # 'local' or 'openai'
    embedding_model_name: Optional[str] = None
    openai_api_key: Optional[str] = None
    collection_name: str = 'conversations'
    max_chunk_size: int = 2000
    debounce_delay: float = 3.0

    @classmethod
    def from_env(cls) -> 'IndexerConfig':
        """Build a config from TRANSCRIPT_SEARCH_* and related variables"""
        home = Path.home()
        return cls(
            data_dir=_env_path('TRANSCRIPT_SEARCH_HOME', home / '.transcript-search'),
            claude_projects_dir=_env_path('CLAUDE_PROJECTS_DIR', home / '.claude' / 'projects'),
            codex_sessions_dir=_env_path('CODEX_SESSIONS_DIR', home / '.codex' / 'sessions'),
            embedding_model=os.environ.get('TRANSCRIPT_SEARCH_EMBEDDINGS', 'local'),
            embedding_model_name=os.environ.get('TRANSCRIPT_SEARCH_EMBEDDING_MODEL') or None,
            openai_api_key=os.environ.get('OPENAI_API_KEY') or None,
        )

    @property
    def persist_directory(self) -> Path:
        return self.data_dir / 'chroma'

    @property
    def log_file(self) -> Path:
        return self.data_dir / 'transcript-search.log'


def configure_logging(config: IndexerConfig, verbose: bool = False) -> None:
    """
    Send log records to stderr and to the log file under the data directory.

    stdout is left alone for command output.
    """
    config.data_dir.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    file_handler = logging.FileHandler(config.log_file, encoding='utf-8')
    file_handler.setFormatter(formatter)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        handlers=[stderr_handler, file_handler],
        force=True
    )

    # Model loading and the vector store are chatty at INFO
    for name in ('sentence_transformers', 'transformers', 'chromadb', 'httpx'):
        logging.getLogger(name).setLevel(logging.WARNING)
