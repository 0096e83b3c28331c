"""JSON key-value store with expiring entries, shared between processes.

Every operation re-reads the backing file while holding an exclusive
``flock`` on a sidecar ``.lock`` file, and writes go through a private temp
file + ``os.replace``. Several stores (threads or processes) pointed at the
same file therefore see each other's writes and never interleave a
read-modify-write. ``update()`` is the primitive used for shared counters.

Writes refuse to proceed over an unreadable file instead of replacing it,
and expired entries are dropped whenever the file is rewritten.
"""

import fcntl
import json
import logging
import os
import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path

log = logging.getLogger(__name__)


class JsonStore:
    def __init__(self, path=None):
        self._path = Path(path) if path else None
        self._lock = threading.RLock()
        self._memory = {}

    @property
    def path(self):
        return self._path

    # ── Raw file access (lock held by caller) ────────────────────────

    @contextmanager
    def _locked(self):
        with self._lock:
            if self._path is None:
                yield
                return
            self._path.parent.mkdir(parents=True, exist_ok=True)
            lock_path = self._path.with_name(self._path.name + ".lock")
            with open(lock_path, "a") as fh:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_UN)

    def _load(self, strict=False):
        """Read the whole store.

        An unreadable file reads as empty, unless ``strict`` is set, in
        which case the error propagates so a writer never saves over it.
        """
        if self._path is None:
            return dict(self._memory)
        if not self._path.exists():
            return {}
        try:
            with open(self._path) as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"Unexpected store format in {self._path}")
        except (OSError, ValueError):
            if strict:
                log.error("Store %s is unreadable; refusing to overwrite it", self._path)
                raise
            log.exception("Failed to read store %s", self._path)
            return {}
        return data

    def _save(self, data, now=None):
        if now is not None:
            data = {k: e for k, e in data.items() if self._live(e, now)}
        if self._path is None:
            self._memory = data
            return
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=self._path.name + ".",
                                   suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f)
            os.replace(tmp, self._path)
        except BaseException:
            os.unlink(tmp)
            raise

    @staticmethod
    def _live(entry, now):
        if not isinstance(entry, dict) or "value" not in entry:
            return False
        expires = entry.get("expires")
        return expires is None or now < expires

    # ── Public API ───────────────────────────────────────────────────

    def get(self, key, default=None, now=None):
        now = time.time() if now is None else now
        with self._locked():
            entry = self._load().get(key)
        if not self._live(entry, now):
            return default
        return entry["value"]

    def set(self, key, value, ttl=None, now=None):
        now = time.time() if now is None else now
        with self._locked():
            data = self._load(strict=True)
            data[key] = {"value": value, "expires": now + ttl if ttl else None}
            self._save(data, now)

    def delete(self, key):
        with self._locked():
            data = self._load(strict=True)
            if key not in data:
                return False
            del data[key]
            self._save(data)
            return True

    def update(self, key, fn, ttl=None, now=None, touch=False):
        """Atomically apply ``fn`` to the current value of ``key``.

        ``fn`` receives the live value (or None) and returns
        ``(new_value, result)``. A ``new_value`` of None deletes the key.
        ``ttl`` applies when the key is created, or on every write when
        ``touch`` is set; otherwise an existing entry keeps its expiry.
        Returns ``result``.
        """
        now = time.time() if now is None else now
        with self._locked():
            data = self._load(strict=True)
            entry = data.get(key)
            live = self._live(entry, now)
            new_value, result = fn(entry["value"] if live else None)
            if new_value is None:
                data.pop(key, None)
            else:
                if live and not touch:
                    expires = entry.get("expires")
                else:
                    expires = now + ttl if ttl else None
                data[key] = {"value": new_value, "expires": expires}
            self._save(data, now)
            return result

    def expires_at(self, key, now=None):
        """Return the expiry timestamp of a live key, or None."""
        now = time.time() if now is None else now
        with self._locked():
            entry = self._load().get(key)
        if not self._live(entry, now):
            return None
        return entry.get("expires")

    def delete_prefix(self, prefix):
        with self._locked():
            data = self._load(strict=True)
            doomed = [k for k in data if k.startswith(prefix)]
            for k in doomed:
                del data[k]
            if doomed:
                self._save(data)
            return len(doomed)
