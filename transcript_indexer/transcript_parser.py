"""
Coding-assistant transcript parser

Reads the JSONL session logs written by Claude Code and Codex and normalizes
them into Conversation objects.
Claude logs live at: ~/.claude/projects/<encoded-project>/<session>.jsonl
Codex logs live at:  ~/.codex/sessions/YYYY/MM/DD/rollout-*.jsonl
"""

import os
import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List, Dict, Optional, Any
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

LOG_EXTENSION = '.jsonl'
MIN_MESSAGE_LENGTH = 20

# Block types that carry displayable text
TEXT_BLOCK_TYPES = ('text', 'input_text', 'output_text')

COMMAND_MARKERS = ('<command-name>', '<local-command')

# Synthetic framing that Codex injects as "user" messages
CODEX_BOILERPLATE_PREFIXES = (
    '<user_instructions>',
    '<environment_context>',
    '# AGENTS.md instructions',
    '<permissions instructions>',
    '<collaboration_mode>',
)

CODEX_DEFAULT_PROJECT = 'codex'


class LogSource(Enum):
    """Which tool wrote a log file"""
    CLAUDE = 'claude'
    CODEX = 'codex'


@dataclass(frozen=True)
class Message:
    """A single user or assistant turn"""
    role: str  # 'user' or 'assistant'
    content: str
    timestamp: str  # ISO-8601, as written in the log


@dataclass
class Conversation:
    """All qualifying messages from one session log"""
    session_id: str
    project: str
    messages: List[Message]
    file_path: str
    last_modified: float  # st_mtime of the log when it was read
    source: LogSource = LogSource.CLAUDE


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def _record_timestamp(record: Dict[str, Any]) -> str:
    """The record's timestamp if it is a non-empty string, else now"""
    value = record.get('timestamp')
    if isinstance(value, str) and value.strip():
        return value
    return _now_iso()


def extract_text(content: Any) -> str:
    """Flatten message content (plain string or list of typed blocks) to text"""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [
            block.get('text', '')
            for block in content
            if isinstance(block, dict)
            and block.get('type') in TEXT_BLOCK_TYPES
            and isinstance(block.get('text'), str)
        ]
        return '\n'.join(parts)
    return ''


def decode_project_dir(dir_name: str) -> str:
    """Turn Claude's encoded project directory back into a path

    '-Users-me-app' -> '/Users/me/app'. Names without the leading marker are
    returned unchanged.
    """
    if dir_name.startswith('-'):
        return '/' + dir_name[1:].replace('-', '/')
    return dir_name


def _read_records(file_path: Path):
    """Yield each JSON object in a JSONL file, skipping malformed lines"""
    with open(file_path, 'r', encoding='utf-8', errors='replace') as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(record, dict):
                yield record


class TranscriptParser:
    """Finds and parses session logs from both supported tools"""

    def __init__(
        self,
        claude_projects_dir: Optional[Path] = None,
        codex_sessions_dir: Optional[Path] = None
    ):
        home = Path.home()
        self.claude_projects_dir = Path(claude_projects_dir or home / '.claude' / 'projects')
        self.codex_sessions_dir = Path(codex_sessions_dir or home / '.codex' / 'sessions')

    def watch_dirs(self) -> List[Path]:
        """Log roots that currently exist"""
        return [d for d in (self.claude_projects_dir, self.codex_sessions_dir) if d.is_dir()]

    def list_conversation_files(self) -> List[str]:
        """List every session log across both roots, deduplicated by path"""
        files: List[str] = []

        if self.claude_projects_dir.is_dir():
            # One directory per project, logs directly inside it
            for project_dir in sorted(self.claude_projects_dir.iterdir()):
                if not project_dir.is_dir():
                    continue
                for log_file in sorted(project_dir.glob(f'*{LOG_EXTENSION}')):
                    if log_file.is_file():
                        files.append(str(log_file))

        if self.codex_sessions_dir.is_dir():
            for log_file in sorted(self.codex_sessions_dir.rglob(f'*{LOG_EXTENSION}')):
                if log_file.is_file():
                    files.append(str(log_file))

        return list(dict.fromkeys(files))

    def source_for(self, file_path: str) -> LogSource:
        """Route a path to its log format by which root it lives under"""
        path = Path(file_path).resolve()
        codex_root = self.codex_sessions_dir.resolve()
        if path == codex_root or codex_root in path.parents:
            return LogSource.CODEX
        return LogSource.CLAUDE

    def parse(self, file_path: str, stat: Optional[os.stat_result] = None) -> Optional[Conversation]:
        """
        Parse one session log.

        Returns None when the file holds no qualifying messages. Raises
        OSError when the file itself cannot be read.
        """
        path = Path(file_path)
        if stat is None:
            stat = path.stat()

        source = self.source_for(file_path)
        if source is LogSource.CODEX:
            project, messages = self._parse_codex_log(path)
        else:
            project, messages = self._parse_claude_log(path)

        if not messages:
            return None

        return Conversation(
            session_id=path.stem,
            project=project,
            messages=messages,
            file_path=str(path),
            last_modified=stat.st_mtime,
            source=source
        )

    def _parse_claude_log(self, path: Path):
        project = decode_project_dir(path.parent.name)
        messages: List[Message] = []

        for record in _read_records(path):
            record_type = record.get('type')

            # Meta records, file snapshots and summaries are not conversation
            if record.get('isMeta'):
                continue
            if record_type in ('file-history-snapshot', 'summary'):
                continue
            if record_type not in ('user', 'assistant'):
                continue

            body = record.get('message')
            text = extract_text(body.get('content') if isinstance(body, dict) else None)

            if not text or text.startswith(COMMAND_MARKERS):
                continue
            if len(text.strip()) < MIN_MESSAGE_LENGTH:
                continue

            messages.append(Message(
                role=record_type,
                content=text,
                timestamp=_record_timestamp(record)
            ))

        return project, messages

    def _parse_codex_log(self, path: Path):
        project = CODEX_DEFAULT_PROJECT
        messages: List[Message] = []

        for record in _read_records(path):
            payload = record.get('payload')
            if not isinstance(payload, dict):
                continue

            if record.get('type') == 'session_meta':
                cwd = payload.get('cwd')
                if isinstance(cwd, str) and cwd:
                    project = cwd
                continue

            if record.get('type') != 'response_item' or payload.get('type') != 'message':
                continue
            role = payload.get('role')
            if role not in ('user', 'assistant'):
                continue

            text = extract_text(payload.get('content'))
            if not text or text.lstrip().startswith(CODEX_BOILERPLATE_PREFIXES):
                continue
            if len(text.strip()) < MIN_MESSAGE_LENGTH:
                continue

            messages.append(Message(
                role=role,
                content=text,
                timestamp=_record_timestamp(record)
            ))

        return project, messages

    def get_source_statistics(self) -> Dict[str, int]:
        """Count log files per source"""
        stats = {source.value: 0 for source in LogSource}
        for file_path in self.list_conversation_files():
            stats[self.source_for(file_path).value] += 1
        stats['total_files'] = sum(stats.values())
        return stats
