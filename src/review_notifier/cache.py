"""Persisted watermarks for tracked pull requests."""

import copy
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class AuthoredRecord:
    """Last seen activity on a pull request the user authored.

    Comments and reviews are independent streams, so each keeps its own
    watermark. None means nothing has been seen yet.
    """

    last_issue_comment: datetime | None = None
    last_review: datetime | None = None


@dataclass
class State:
    """Everything written to the cache file."""

    initialized: bool = False
    assigned_prs: dict[str, datetime] = field(default_factory=dict)
    authored_prs: dict[str, AuthoredRecord] = field(default_factory=dict)


def later(current: datetime | None, candidate: datetime | None) -> datetime | None:
    """Return whichever timestamp is later, treating None as the zero time."""
    if candidate is None:
        return current
    if current is None or candidate > current:
        return candidate
    return current


class StateStore:
    """Thread-safe wrapper around State.

    Every read-modify-write of a watermark runs under a single lock. Writes
    never move a watermark backwards.
    """

    def __init__(self, state: State | None = None) -> None:
        self._state = state if state is not None else State()
        self._lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        with self._lock:
            return self._state.initialized

    def mark_initialized(self) -> bool:
        """Set the initialized flag. Returns True if it was not set before."""
        with self._lock:
            if self._state.initialized:
                return False
            self._state.initialized = True
            return True

    def assigned(self, key: str) -> datetime | None:
        with self._lock:
            return self._state.assigned_prs.get(key)

    def advance_assigned(self, key: str, updated_at: datetime) -> datetime:
        """Move the assigned watermark for key forward to updated_at."""
        with self._lock:
            current = self._state.assigned_prs.get(key)
            new = later(current, updated_at)
            self._state.assigned_prs[key] = new
            return new

    def authored(self, key: str) -> AuthoredRecord:
        with self._lock:
            record = self._state.authored_prs.get(key)
            if record is None:
                return AuthoredRecord()
            return AuthoredRecord(record.last_issue_comment, record.last_review)

    def advance_authored(self, key: str, record: AuthoredRecord) -> AuthoredRecord:
        """Merge record into the stored watermark pair, component by component."""
        with self._lock:
            current = self._state.authored_prs.get(key, AuthoredRecord())
            merged = AuthoredRecord(
                last_issue_comment=later(current.last_issue_comment, record.last_issue_comment),
                last_review=later(current.last_review, record.last_review),
            )
            self._state.authored_prs[key] = merged
            return AuthoredRecord(merged.last_issue_comment, merged.last_review)

    def snapshot(self) -> State:
        """Return a deep copy of the current state, safe to serialize."""
        with self._lock:
            return copy.deepcopy(self._state)


def get_cache_path() -> Path:
    """Return the default cache file path."""
    return Path.home() / ".config" / "review-notifier" / "state.json"


def _format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    # Older state files spell "never" as the year-1 zero time.
    if parsed.year == 1:
        return None
    return parsed


def _decode(data: dict) -> State:
    if not isinstance(data, dict):
        raise ValueError("cache root must be an object")

    assigned = {}
    for key, value in (data.get("assigned_prs") or {}).items():
        parsed = _parse_time(value)
        if parsed is not None:
            assigned[key] = parsed

    authored = {}
    for key, value in (data.get("authored_prs") or {}).items():
        authored[key] = AuthoredRecord(
            last_issue_comment=_parse_time(value.get("last_issue_comment")),
            last_review=_parse_time(value.get("last_review")),
        )

    initialized = data.get("initialized", False)
    if not isinstance(initialized, bool):
        raise ValueError(f"initialized must be a boolean (got: {initialized!r})")

    return State(
        initialized=initialized,
        assigned_prs=assigned,
        authored_prs=authored,
    )


def load_cache(cache_path: Path) -> State:
    """Load state from file.

    Args:
        cache_path: Path to the state file.

    Returns:
        State object. Returns empty state if the file doesn't exist, is empty
        or is corrupted.

    Raises:
        OSError: If the file exists but cannot be read.
    """
    if not cache_path.exists():
        return State()

    try:
        text = cache_path.read_text()
        if not text.strip():
            return State()
        return _decode(json.loads(text))
    except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
        logger.warning("Ignoring unreadable cache file %s: %s", cache_path, e)
        return State()


def save_cache(state: State, cache_path: Path) -> None:
    """Save state to file.

    The file is replaced atomically so a crash mid-write keeps the previous
    contents.

    Args:
        state: State to save.
        cache_path: Path to save to.

    Raises:
        OSError: If the directory or file cannot be written.
    """
    cache_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "initialized": state.initialized,
        "assigned_prs": {key: _format_time(ts) for key, ts in state.assigned_prs.items()},
        "authored_prs": {
            key: {
                "last_issue_comment": _format_time(record.last_issue_comment),
                "last_review": _format_time(record.last_review),
            }
            for key, record in state.authored_prs.items()
        },
    }

    fd, tmp_name = tempfile.mkstemp(dir=cache_path.parent, prefix=".state-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_name, cache_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
