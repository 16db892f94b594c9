import threading
from typing import Dict, Iterable, List, Optional, Tuple

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from timing_arena import db
from timing_arena.models import LeaderboardEntry, utcnow
from .errors import PersistenceFailure


PendingBest = Tuple[str, str, Optional[int]]


def _rank_key(row: dict):
    best = row.get('bestAccuracyMs')
    return (best is None, best if best is not None else 0)


class LeaderboardStore:
    """Durable best-accuracy table plus a small in-process view of it.

    ``upsert_best`` and ``top_n`` hit the database directly. The game
    coordinator only uses ``record_many`` (fire-and-forget) and
    ``standings`` (served from the cache), so a slow or failing database
    never holds up a broadcast.
    """

    def __init__(self, app, socketio=None, cache_size: int = 10):
        self.app = app
        self.socketio = socketio
        self.cache_size = cache_size
        self._cache: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def upsert_best(self, identity_key: str, username: str, accuracy_ms: Optional[int]) -> dict:
        def _write():
            try:
                entry = db.session.get(LeaderboardEntry, identity_key)
                now = utcnow()
                if entry is None:
                    entry = LeaderboardEntry(
                        identity_key=identity_key,
                        username=username,
                        best_accuracy_ms=accuracy_ms,
                        games_played=1,
                        last_played_at=now,
                    )
                    db.session.add(entry)
                else:
                    entry.games_played = (entry.games_played or 0) + 1
                    if accuracy_ms is not None and (entry.best_accuracy_ms is None or accuracy_ms < entry.best_accuracy_ms):
                        entry.best_accuracy_ms = accuracy_ms
                    entry.username = username
                    entry.last_played_at = now
                db.session.commit()
                return entry.to_dict()
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise PersistenceFailure(f"could not record {identity_key}: {exc}") from exc

        row = self._in_context(_write)
        with self._lock:
            self._cache[identity_key] = row
            self._trim()
        return row

    def top_n(self, n: int) -> List[dict]:
        def _read():
            try:
                entries = (
                    LeaderboardEntry.query
                    .order_by(
                        LeaderboardEntry.best_accuracy_ms.is_(None),
                        LeaderboardEntry.best_accuracy_ms.asc(),
                        LeaderboardEntry.last_played_at.asc(),
                    )
                    .limit(n)
                    .all()
                )
                return [e.to_dict() for e in entries]
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise PersistenceFailure(f"could not read leaderboard: {exc}") from exc

        return self._in_context(_read)

    def warm(self, n: int) -> None:
        """Seed the cache with the current top ``n`` rows."""
        rows = self.top_n(n)
        with self._lock:
            for row in rows:
                self._cache.setdefault(row['identityKey'], row)
            self._trim()

    def record_many(self, rows: Iterable[PendingBest]) -> None:
        """Persist each (identity, username, best) without blocking the caller."""
        rows = list(rows)
        if not rows:
            return
        if self.app.config.get('TESTING') or self.socketio is None:
            self._write_all(rows)
        else:
            self.socketio.start_background_task(self._write_all, rows)

    def record(self, identity_key: str, username: str, accuracy_ms: Optional[int]) -> None:
        self.record_many([(identity_key, username, accuracy_ms)])

    def standings(self, n: int, pending: Iterable[PendingBest] = ()) -> List[dict]:
        """Top ``n`` from the cache, with ``pending`` bests folded in."""
        with self._lock:
            rows = {key: dict(row) for key, row in self._cache.items()}
        for identity_key, username, best in pending:
            row = rows.get(identity_key)
            if row is None:
                rows[identity_key] = {
                    'identityKey': identity_key,
                    'username': username,
                    'bestAccuracyMs': best,
                    'gamesPlayed': 1,
                    'lastPlayedAt': None,
                }
            elif best is not None and (row['bestAccuracyMs'] is None or best < row['bestAccuracyMs']):
                row['bestAccuracyMs'] = best
                row['username'] = username
        return sorted(rows.values(), key=_rank_key)[:n]

    def _trim(self) -> None:
        # standings never reads past the top cache_size rows
        if len(self._cache) <= self.cache_size:
            return
        keep = sorted(self._cache.values(), key=_rank_key)[:self.cache_size]
        self._cache = {row['identityKey']: row for row in keep}

    def _write_all(self, rows: List[PendingBest]) -> None:
        for identity_key, username, accuracy_ms in rows:
            try:
                self.upsert_best(identity_key, username, accuracy_ms)
            except PersistenceFailure as exc:
                self.app.logger.error(f"[leaderboard-fail] identity={identity_key} error={exc}")

    def _in_context(self, fn):
        if has_app_context() and current_app._get_current_object() is self.app:
            return fn()
        with self.app.app_context():
            return fn()
