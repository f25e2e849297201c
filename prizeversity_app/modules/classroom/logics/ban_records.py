"""
Ban record normalization - pure functions.

Older classrooms stored bans as bare user ids, later ones as
{user, reason, bannedAt} dicts (sometimes with a populated user object).
Everything is turned into BanEntry once, at ingestion.

NO database, NO Flask, NO model dependencies allowed.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional


@dataclass(frozen=True)
class BanEntry:
    user_id: int
    banned_at: Optional[datetime] = None
    reason: str = ''


def _coerce_user_id(value: Any) -> Optional[int]:
    if isinstance(value, dict):
        value = value.get('user_id', value.get('userId', value.get('id', value.get('_id'))))
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _coerce_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_ban_entry(raw: Any) -> Optional[BanEntry]:
    """One legacy ban value to a BanEntry, or None when it names no user."""
    if isinstance(raw, dict):
        user_id = _coerce_user_id(raw.get('user', raw.get('userId', raw.get('user_id'))))
        if user_id is None:
            return None
        return BanEntry(
            user_id=user_id,
            banned_at=_coerce_datetime(raw.get('bannedAt', raw.get('banned_at'))),
            reason=str(raw.get('reason') or ''),
        )
    user_id = _coerce_user_id(raw)
    if user_id is None:
        return None
    return BanEntry(user_id=user_id)


def normalize_ban_entries(raw_entries: Iterable[Any]) -> List[BanEntry]:
    """
    Merge mixed legacy shapes, one entry per user.

    A structured entry wins over a bare id for the same user, since it
    carries the reason and timestamp.
    """
    merged = {}
    for raw in raw_entries or []:
        entry = normalize_ban_entry(raw)
        if entry is None:
            continue
        existing = merged.get(entry.user_id)
        if existing is None or (not existing.reason and existing.banned_at is None):
            merged[entry.user_id] = entry
    return list(merged.values())
