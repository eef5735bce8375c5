"""
Client-side session state kept consistent with the server-issued token.

Two stores hold identity: a durable record ({token, user}) and a fast-path cache (just
the user) that UIs read from. The durable record is authoritative: whenever the two
disagree, the cache is overwritten from it, never the other way round. File-backed stores
in a shared directory let several processes (tabs, windows, CLIs) observe each other's
logins and logouts.
"""

import json
import logging
import os
import tempfile
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

import jwt

logger = logging.getLogger(__name__)

DURABLE_FILENAME = "session.json"
CACHE_FILENAME = "user.json"
DEFAULT_WATCH_INTERVAL_SEC = 2.0

Listener = Callable[[dict[str, Any] | None], None]


class Store(Protocol):
    def read(self) -> Any | None: ...

    def write(self, value: Any) -> None: ...

    def clear(self) -> None: ...

    def fingerprint(self) -> object: ...


class JsonFileStore:
    """One JSON document on disk. Unreadable or corrupt content reads as absent."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> Any | None:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read session store", extra={"store": str(self.path), "error": str(e)})
            return None
        try:
            return json.loads(text)
        except ValueError:
            return None

    def write(self, value: Any) -> None:
        # Write-then-rename so readers in other processes never see a half-written file
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

    def fingerprint(self) -> object:
        """Changes whenever the file is rewritten or removed."""
        try:
            st = self.path.stat()
        except FileNotFoundError:
            return None
        return (st.st_mtime_ns, st.st_size, st.st_ino)


class MemoryStore:
    """In-process store with the same interface, for single-process clients and tests."""

    def __init__(self) -> None:
        self._value: Any | None = None
        self._version = 0

    def read(self) -> Any | None:
        return json.loads(json.dumps(self._value)) if self._value is not None else None

    def write(self, value: Any) -> None:
        self._value = json.loads(json.dumps(value))
        self._version += 1

    def clear(self) -> None:
        if self._value is not None:
            self._value = None
            self._version += 1

    def fingerprint(self) -> object:
        return self._version


def token_expiry(token: str | None) -> float | None:
    """exp claim of a JWT read locally (no signature check; the server verifies tokens)."""
    if not token:
        return None
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return float(exp)


class SessionSynchronizer:
    """Keeps the fast-path user cache in line with the durable {token, user} record."""

    def __init__(
        self,
        durable: Store,
        cache: Store,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.durable = durable
        self.cache = cache
        self._clock = clock
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []

    @classmethod
    def in_directory(cls, directory: str | Path, **kwargs: Any) -> "SessionSynchronizer":
        """File-backed stores under directory; every process using it shares one session."""
        directory = Path(directory)
        return cls(
            JsonFileStore(directory / DURABLE_FILENAME),
            JsonFileStore(directory / CACHE_FILENAME),
            **kwargs,
        )

    @classmethod
    def in_memory(cls, **kwargs: Any) -> "SessionSynchronizer":
        return cls(MemoryStore(), MemoryStore(), **kwargs)

    # --- reads ---

    def _record(self) -> dict[str, Any] | None:
        data = self.durable.read()
        if not isinstance(data, dict):
            return None
        if not isinstance(data.get("token"), str) or not isinstance(data.get("user"), dict):
            return None
        return data

    def token(self) -> str | None:
        record = self._record()
        return record["token"] if record else None

    def current_user(self) -> dict[str, Any] | None:
        """Fast-path read of the cached user."""
        user = self.cache.read()
        return user if isinstance(user, dict) else None

    def is_authenticated(self) -> bool:
        """True iff a token is present and its exp is still ahead; recomputed on every call."""
        exp = token_expiry(self.token())
        return exp is not None and exp > self._clock()

    def has_role(self, role: str) -> bool:
        """Role check against the durable record; the cache is never consulted."""
        record = self._record()
        return record is not None and record["user"].get("role") == role

    def is_admin(self) -> bool:
        return self.has_role("ADMIN")

    def has_orphaned_cache(self) -> bool:
        """True when the cache holds a user but the durable store has no record."""
        return self.cache.read() is not None and self._record() is None

    # --- writes ---

    def start(self) -> dict[str, Any] | None:
        """App-start reconciliation: a live token syncs the cache, otherwise it is dropped."""
        if self.is_authenticated():
            return self.reconcile()
        with self._lock:
            had_user = self.cache.read() is not None
            self.cache.clear()
        if had_user:
            self._notify(None)
        return None

    def reconcile(self) -> dict[str, Any] | None:
        """Make the cache match the durable record; returns the resulting user."""
        with self._lock:
            record = self._record()
            cached = self.cache.read()
            if record is None:
                if cached is not None:
                    self.cache.clear()
                    self._notify(None)
                return None
            user = record["user"]
            if cached != user:
                logger.warning("Session cache mismatch detected, syncing from durable store")
                self.cache.write(user)
                self._notify(user)
            return user

    def set_session(self, token: str, user: dict[str, Any]) -> None:
        with self._lock:
            self.durable.write({"token": token, "user": user})
            self.cache.write(user)
        self._notify(user)

    def update_user(self, user: dict[str, Any]) -> None:
        """Store a refreshed user alongside the existing token; no-op when signed out."""
        with self._lock:
            record = self._record()
            if record is None:
                return
            self.set_session(record["token"], user)

    def logout(self) -> None:
        """Clear both stores unconditionally. Idempotent."""
        with self._lock:
            had_session = self.durable.read() is not None or self.cache.read() is not None
            self.durable.clear()
            self.cache.clear()
        if had_session:
            self._notify(None)

    # --- change notification ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for user changes; returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, user: dict[str, Any] | None) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(user)
            except Exception:
                logger.exception("Session listener failed")

    def fingerprint(self) -> tuple[object, object]:
        return (self.durable.fingerprint(), self.cache.fingerprint())

    def watch(self, interval: float = DEFAULT_WATCH_INTERVAL_SEC) -> "SessionWatcher":
        """Start a background watcher; call stop() on the result when done."""
        watcher = SessionWatcher(self, interval)
        watcher.start()
        return watcher


class SessionWatcher(threading.Thread):
    """
    Re-checks the stores every `interval` seconds.

    Any change to either store (another process logging in or out, an edit to the cache)
    triggers reconciliation. While authenticated the cache is also re-validated on every
    tick to catch edits that leave no trace in the file metadata, and a cached user with no
    durable record behind it is cleared whenever it is seen.
    """

    def __init__(self, sync: SessionSynchronizer, interval: float = DEFAULT_WATCH_INTERVAL_SEC) -> None:
        super().__init__(name="session-watcher", daemon=True)
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.sync = sync
        self.interval = interval
        self._stopped = threading.Event()
        self._last = sync.fingerprint()

    def tick(self) -> None:
        current = self.sync.fingerprint()
        changed = current != self._last
        self._last = current
        if changed or self.sync.is_authenticated() or self.sync.has_orphaned_cache():
            self.sync.reconcile()
            self._last = self.sync.fingerprint()

    def run(self) -> None:
        while not self._stopped.wait(self.interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Session watcher tick failed")

    def stop(self, timeout: float | None = None) -> None:
        self._stopped.set()
        if self.is_alive():
            self.join(timeout)
