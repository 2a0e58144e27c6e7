"""
Cross-run state.

Two small JSON-backed stores, each loaded once at run start and
committed at most once at run end:

- HistoryStore: identifiers already reported, so nothing is emailed twice.
- RankSnapshotStore: last observed App Store rank per (market, item),
  used to detect rank movement between runs.

Loading never raises: a missing or unreadable file is treated as empty
state. Commits write to a temp file and replace the target, so a failed
write leaves the previously committed file untouched.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from .errors import PersistenceCorrupt, PersistenceWriteFailed

logger = logging.getLogger("scout.state")


def _read_json(path: Path) -> Any:
    """Read a JSON file, raising PersistenceCorrupt if it cannot be parsed."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise PersistenceCorrupt(f"Failed to read {path}: {e}") from e


def _atomic_write_json(path: Path, data: Any) -> None:
    """Write JSON to `path` via a temp file in the same directory."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise PersistenceWriteFailed(f"Failed to write {path}: {e}") from e


class HistoryStore:
    """
    Ordered set of identifiers that have already been reported.

    Insertion order is kept so that truncation drops the oldest entries.
    """

    def __init__(self, path: str, ceiling: int = 2000, retain: int = 1000):
        if retain > ceiling:
            raise ValueError("retain must not exceed ceiling")
        self.path = Path(path)
        self.ceiling = ceiling
        self.retain = retain
        # dict preserves insertion order and gives O(1) membership
        self._ids: dict[str, None] = {}
        self._pending: list[str] = []
        self._committed = False

    def load(self) -> set[str]:
        """Load history from disk. Missing or malformed files yield an empty set."""
        self._ids = {}
        self._pending = []
        self._committed = False

        if not self.path.exists():
            logger.info(f"No history file at {self.path}, starting empty")
            return set()

        try:
            data = _read_json(self.path)
            if not isinstance(data, list) or not all(isinstance(i, str) for i in data):
                raise PersistenceCorrupt(f"{self.path} does not contain a list of identifiers")
        except PersistenceCorrupt as e:
            logger.warning(f"History unreadable, treating as empty: {e}")
            return set()

        self._ids = dict.fromkeys(data)
        logger.info(f"Loaded {len(self._ids)} identifiers from history")
        return set(self._ids)

    def contains(self, identifier: str) -> bool:
        return identifier in self._ids

    def __contains__(self, identifier: str) -> bool:
        return self.contains(identifier)

    def __len__(self) -> int:
        return len(self._ids)

    def record(self, identifier: str) -> None:
        """Append an identifier. No-op if it is already present."""
        if identifier in self._ids:
            return
        self._ids[identifier] = None
        self._pending.append(identifier)

    @property
    def pending(self) -> list[str]:
        """Identifiers recorded during this run, in order."""
        return list(self._pending)

    def snapshot(self) -> list[str]:
        """Current contents after applying the size bound."""
        ids = list(self._ids)
        if len(ids) > self.ceiling:
            ids = ids[-self.retain:]
        return ids

    def commit(self) -> int:
        """
        Persist the history, keeping only the newest entries once over the ceiling.

        Returns:
            Number of identifiers written.

        Raises:
            PersistenceWriteFailed: If the file could not be written.
        """
        if self._committed:
            raise RuntimeError("HistoryStore.commit() called twice in one run")

        ids = self.snapshot()
        if len(ids) < len(self._ids):
            logger.info(f"History over ceiling ({len(self._ids)} > {self.ceiling}), keeping last {self.retain}")

        _atomic_write_json(self.path, ids)
        self._ids = dict.fromkeys(ids)
        self._committed = True
        logger.info(f"History committed: {len(ids)} identifiers ({len(self._pending)} new)")
        return len(ids)


class RankSnapshotStore:
    """
    Last-seen App Store rank per (market, item id).

    The snapshot written at commit is exactly what was observed this run;
    items that dropped out of the tracked window disappear from it.
    """

    def __init__(self, path: str, tracked_window: int = 300):
        self.path = Path(path)
        self.tracked_window = tracked_window
        self._previous: dict[tuple[str, str], int] = {}
        self._current: dict[tuple[str, str], int] = {}
        self._committed = False

    @property
    def unranked(self) -> int:
        """Rank assumed for items not present in the previous snapshot."""
        return self.tracked_window + 1

    def load(self) -> dict[tuple[str, str], int]:
        """Load the previous snapshot. Missing or malformed files yield an empty map."""
        self._previous = {}
        self._current = {}
        self._committed = False

        if not self.path.exists():
            logger.info(f"No rank snapshot at {self.path}, starting empty")
            return {}

        try:
            data = _read_json(self.path)
            self._previous = self._parse(data)
        except PersistenceCorrupt as e:
            logger.warning(f"Rank snapshot unreadable, treating as empty: {e}")
            self._previous = {}
            return {}

        logger.info(f"Loaded {len(self._previous)} ranks from snapshot")
        return dict(self._previous)

    def _parse(self, data: Any) -> dict[tuple[str, str], int]:
        if not isinstance(data, dict):
            raise PersistenceCorrupt(f"{self.path} is not a market -> ranks mapping")

        ranks: dict[tuple[str, str], int] = {}
        for market, items in data.items():
            if not isinstance(items, dict):
                raise PersistenceCorrupt(f"Ranks for market {market!r} are not a mapping")
            for item_id, rank in items.items():
                if isinstance(rank, bool) or not isinstance(rank, int):
                    raise PersistenceCorrupt(f"Rank for {market}/{item_id} is not an integer")
                ranks[(market, str(item_id))] = rank
        return ranks

    def previous_rank(self, market: str, item_id: str) -> int:
        """Rank from the last run, or the unranked sentinel."""
        return self._previous.get((market, item_id), self.unranked)

    def record_current(self, market: str, item_id: str, rank: int) -> None:
        """Stage this run's observation. A later observation for the same key wins."""
        self._current[(market, item_id)] = rank

    @property
    def staged(self) -> dict[tuple[str, str], int]:
        return dict(self._current)

    def commit(self) -> int:
        """
        Replace the stored snapshot with this run's observations.

        Returns:
            Number of ranks written.

        Raises:
            PersistenceWriteFailed: If the file could not be written.
        """
        if self._committed:
            raise RuntimeError("RankSnapshotStore.commit() called twice in one run")

        data: dict[str, dict[str, int]] = {}
        for (market, item_id), rank in self._current.items():
            data.setdefault(market, {})[item_id] = rank

        _atomic_write_json(self.path, data)
        self._previous = dict(self._current)
        self._committed = True
        logger.info(f"Rank snapshot committed: {len(self._current)} ranks across {len(data)} market(s)")
        return len(self._current)


def load_stores(
    history_path: str,
    snapshot_path: str,
    history_ceiling: int = 2000,
    history_retain: int = 1000,
    tracked_window: int = 300,
) -> tuple[HistoryStore, RankSnapshotStore]:
    """Create both stores and load them from disk."""
    history = HistoryStore(history_path, ceiling=history_ceiling, retain=history_retain)
    history.load()
    snapshot = RankSnapshotStore(snapshot_path, tracked_window=tracked_window)
    snapshot.load()
    return history, snapshot


def commit_stores(
    history: HistoryStore,
    snapshot: Optional[RankSnapshotStore],
) -> list[str]:
    """
    Commit both stores independently.

    Returns:
        Error messages for stores that failed to write (empty if all succeeded).
    """
    errors = []
    try:
        history.commit()
    except PersistenceWriteFailed as e:
        logger.error(f"History commit failed: {e}")
        errors.append(str(e))

    if snapshot is not None:
        try:
            snapshot.commit()
        except PersistenceWriteFailed as e:
            logger.error(f"Rank snapshot commit failed: {e}")
            errors.append(str(e))

    return errors
