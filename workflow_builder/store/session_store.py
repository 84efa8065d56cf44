"""
Session Store — JSON-file persistence for builder sessions.

Each session lives in its own file under ``<home>/sessions``. A single
pointer record (``<home>/current.json``) names the session that commands
address when no id is given. Writes are serialised across processes with
an exclusive lock file, and ``save`` rejects records whose ``revision`` no
longer matches the one on disk.
"""

from __future__ import annotations

import json
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from pydantic import ValidationError

from shared.config import config
from shared.logger import get_logger
from workflow_builder.errors import (
    SessionNotFoundError,
    StaleSessionError,
    StoreUnavailableError,
)
from workflow_builder.schema.models import Session

logger = get_logger(__name__)

_LOCK_POLL_INTERVAL = 0.05


class SessionStore:
    """Persist and load Session objects as JSON files."""

    def __init__(self, storage_dir: Optional[Path] = None, *, lock_timeout: Optional[float] = None) -> None:
        self._dir = Path(storage_dir or config.builder_home)
        self._sessions_dir = self._dir / "sessions"
        self._pointer_path = self._dir / "current.json"
        self._lock_path = self._dir / ".lock"
        self._lock_timeout = config.builder_lock_timeout if lock_timeout is None else lock_timeout
        logger.debug(f"SessionStore initialized at {self._dir}")

    @property
    def root(self) -> Path:
        return self._dir

    # ── Sessions ──

    def load(self, session_id: str) -> Session:
        """Load a single session by ID."""
        path = self._path_for(session_id)
        if not path.exists():
            raise SessionNotFoundError(
                f"Session '{session_id}' not found",
                hint="List known sessions with `wfbuild sessions`",
                details={"sessionId": session_id},
            )
        return self._read_session(path)

    def save(self, session: Session) -> None:
        """
        Persist the full session record.

        Raises ``StaleSessionError`` when another writer saved the session
        after it was loaded; nothing is written in that case.
        """
        path = self._path_for(session.id)
        with self._locked():
            on_disk = self._read_revision(path)
            if on_disk is not None and on_disk != session.revision:
                logger.warning(
                    f"Rejected stale save of {session.id}: revision {session.revision}, on disk {on_disk}"
                )
                raise StaleSessionError(
                    f"Session '{session.id}' was modified by another command",
                    hint="Re-run the command to apply it to the latest session state",
                    details={"sessionId": session.id, "expected": session.revision, "actual": on_disk},
                )
            session.revision += 1
            try:
                self._atomic_write(path, session.model_dump_json(by_alias=True, indent=2))
            except StoreUnavailableError:
                session.revision -= 1
                raise
        logger.info(f"Session saved: {session.id} (revision {session.revision}, state {session.state.value})")

    def exists(self, session_id: str) -> bool:
        return self._path_for(session_id).exists()

    def list_all(self) -> List[Session]:
        """List all saved sessions, oldest first."""
        sessions: List[Session] = []
        if not self._sessions_dir.exists():
            return sessions
        for path in sorted(self._sessions_dir.glob("*.json")):
            try:
                sessions.append(self._read_session(path))
            except StoreUnavailableError as e:
                logger.warning(f"Skipping malformed session file {path.name}: {e}")
        sessions.sort(key=lambda s: s.created_at)
        return sessions

    # ── Current pointer ──

    def current_session_id(self) -> Optional[str]:
        return self._read_pointer()

    def get_current(self) -> Optional[Session]:
        session_id = self._read_pointer()
        if session_id is None:
            return None
        if not self.exists(session_id):
            logger.warning(f"Current pointer names missing session {session_id}")
            return None
        return self.load(session_id)

    def set_current(self, session_id: Optional[str]) -> None:
        with self._locked():
            self._write_pointer(session_id)
        logger.info(f"Current session set to {session_id}")

    def compare_and_set_current(self, expected: Optional[str], new: Optional[str]) -> bool:
        """Point ``current`` at ``new`` only if it still names ``expected``."""
        with self._locked():
            actual = self._read_pointer()
            if actual != expected:
                logger.debug(f"Current pointer moved ({actual!r} != {expected!r}); not updating")
                return False
            self._write_pointer(new)
        logger.info(f"Current session set to {new}")
        return True

    # ── Internals ──

    def _path_for(self, session_id: str) -> Path:
        # Sanitize ID for filesystem
        safe_id = "".join(c for c in session_id if c.isalnum() or c in "-_")
        return self._sessions_dir / f"{safe_id}.json"

    def _read_session(self, path: Path) -> Session:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Session.model_validate(data)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot read session file {path.name}: {e}") from e
        except (json.JSONDecodeError, ValidationError) as e:
            raise StoreUnavailableError(
                f"Session file {path.name} is corrupt",
                details={"path": str(path), "error": str(e)},
            ) from e

    def _read_json_object(self, path: Path, what: str) -> Dict[str, Any]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StoreUnavailableError(f"Cannot read {what}: {e}") from e
        if not isinstance(data, dict):
            raise StoreUnavailableError(
                f"{what.capitalize()} is corrupt: expected a JSON object",
                details={"path": str(path)},
            )
        return data

    def _read_revision(self, path: Path) -> Optional[int]:
        if not path.exists():
            return None
        data = self._read_json_object(path, f"session file {path.name}")
        return int(data.get("revision", 0))

    def _read_pointer(self) -> Optional[str]:
        if not self._pointer_path.exists():
            return None
        data = self._read_json_object(self._pointer_path, "current session pointer")
        return data.get("sessionId")

    def _write_pointer(self, session_id: Optional[str]) -> None:
        if session_id is None:
            try:
                self._pointer_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise StoreUnavailableError(f"Cannot clear current session pointer: {e}") from e
            return
        self._atomic_write(self._pointer_path, json.dumps({"sessionId": session_id}))

    def _atomic_write(self, path: Path, text: str) -> None:
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(text, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot write {path.name}: {e}") from e

    @contextmanager
    def _locked(self) -> Iterator[None]:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot create store directory {self._dir}: {e}") from e

        deadline = time.monotonic() + self._lock_timeout
        while True:
            try:
                fd = os.open(self._lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                break
            except FileExistsError:
                if self._break_abandoned_lock():
                    continue
                if time.monotonic() >= deadline:
                    raise StoreUnavailableError(
                        "Session store is locked by another command",
                        hint=f"If no other command is running, delete {self._lock_path}",
                    )
                time.sleep(_LOCK_POLL_INTERVAL)
            except OSError as e:
                raise StoreUnavailableError(f"Cannot lock session store: {e}") from e

        try:
            os.write(fd, str(os.getpid()).encode())
            os.close(fd)
            yield
        finally:
            try:
                os.unlink(self._lock_path)
            except FileNotFoundError:
                pass

    def _break_abandoned_lock(self) -> bool:
        """
        Delete the lock file when the process recorded in it no longer exists.

        An unreadable or still-empty lock file (its owner has not written the
        PID yet) is treated as held.
        """
        if os.name == "nt":
            # os.kill(pid, 0) terminates the process on Windows
            return False
        try:
            pid = int(self._lock_path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return False

        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            pass
        except OSError:
            return False
        else:
            return False

        logger.warning(f"Removing store lock left behind by exited process {pid}")
        try:
            os.unlink(self._lock_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StoreUnavailableError(f"Cannot remove abandoned lock {self._lock_path}: {e}") from e
        return True


# ── Singleton ──

_store_instance: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Return the global SessionStore singleton."""
    global _store_instance
    if _store_instance is None:
        _store_instance = SessionStore()
    return _store_instance
