"""
Search over indexed conversation chunks

Post-processes nearest-neighbor rows with project and date filters and an
optional recency sort.
"""

import re
import asyncio
import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Optional, Tuple, Any

# Candidates fetched per requested result, to leave room for filtering
OVERFETCH_MULTIPLIER = 4

SORT_MODES = ('relevance', 'recency')

_LAST_N_DAYS = re.compile(r'last\s*(\d+)\s*days?', re.IGNORECASE)


@dataclass
class SearchResult:
    content: str
    project: str
    session_id: str
    timestamp: str
    score: float


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware datetime (local time if naive)"""
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed.astimezone()


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=999999)


def _month_before(moment: datetime) -> datetime:
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (moment.year - 1, 12)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def parse_date_range(token: str, now: Optional[datetime] = None) -> Optional[Tuple[datetime, datetime]]:
    """
    Resolve a date-range token to a (start, end) interval in local time.

    Accepts 'today', 'yesterday', 'last week'/'week', 'last month'/'month' and
    'last N days'. Returns None for anything else.
    """
    now = (now or datetime.now()).astimezone()
    key = ' '.join(token.strip().lower().replace('_', ' ').split())

    if key == 'today':
        return _start_of_day(now), _end_of_day(now)
    if key == 'yesterday':
        yesterday = now - timedelta(days=1)
        return _start_of_day(yesterday), _end_of_day(yesterday)
    if key in ('last week', 'week'):
        return _start_of_day(now - timedelta(days=7)), _end_of_day(now)
    if key in ('last month', 'month'):
        return _start_of_day(_month_before(now)), _end_of_day(now)

    match = _LAST_N_DAYS.fullmatch(key)
    if match:
        days = int(match.group(1))
        if days > 0:
            return _start_of_day(now - timedelta(days=days)), _end_of_day(now)
    return None


def filter_results(
    rows: List[Dict[str, Any]],
    limit: int,
    project: Optional[str] = None,
    date_range: Optional[str] = None,
    sort_by: str = 'relevance',
    now: Optional[datetime] = None
) -> List[SearchResult]:
    """Apply project/date filters and sorting to similarity-ordered rows"""
    if sort_by not in SORT_MODES:
        raise ValueError(f"Unknown sort mode: {sort_by}")

    filtered = list(rows)

    if project:
        filtered = [row for row in filtered if project in (row.get('project') or '')]

    if date_range:
        interval = parse_date_range(date_range, now=now)
        if interval:
            start, end = interval
            kept = []
            for row in filtered:
                ts = parse_timestamp(row.get('timestamp', ''))
                if ts is not None and start <= ts <= end:
                    kept.append(row)
            filtered = kept

    if sort_by == 'recency':
        epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
        filtered.sort(key=lambda row: parse_timestamp(row.get('timestamp', '')) or epoch, reverse=True)

    return [
        SearchResult(
            content=row['content'],
            project=row.get('project', ''),
            session_id=row.get('session_id', ''),
            timestamp=row.get('timestamp', ''),
            score=row.get('score', 0.0)
        )
        for row in filtered[:limit]
    ]


async def search_conversations(
    store,
    embedder,
    query: str,
    limit: int = 5,
    project: Optional[str] = None,
    date_range: Optional[str] = None,
    sort_by: str = 'relevance'
) -> List[SearchResult]:
    """Embed the query, over-fetch neighbors and filter them down to `limit`"""
    if limit < 1:
        raise ValueError("limit must be at least 1")
    if sort_by not in SORT_MODES:
        raise ValueError(f"Unknown sort mode: {sort_by}")

    # Check the store before paying for a query embedding
    if store.count() == 0:
        return []

    query_embedding = await asyncio.to_thread(embedder.embed_text, query)
    rows = store.query(query_embedding, limit * OVERFETCH_MULTIPLIER)
    return filter_results(rows, limit, project=project, date_range=date_range, sort_by=sort_by)
