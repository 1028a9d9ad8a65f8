# src/examprep/access/sync.py
from __future__ import annotations

import asyncio
import contextlib
import json
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError

from examprep.domain.errors import NotFoundError, ValidationError
from examprep.domain.models import AccessFileEntry, SyncReport, UserRecord
from examprep.logging import get_logger
from examprep.storage.users import AsyncDB, UserRepo

from .watch import Debouncer, PollingFileWatcher

_LOG = get_logger(__name__)

_ENTRIES = TypeAdapter(list[AccessFileEntry])

UserChangeListener = Callable[[int], None]


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp)
        raise


def render_access_file(users: list[UserRecord]) -> str:
    entries = [u.to_file_entry().model_dump() for u in users]
    return json.dumps(entries, indent=2, ensure_ascii=False) + "\n"


def parse_access_file(raw: str) -> Optional[list[AccessFileEntry]]:
    """
    Parses the access file. Returns None when it can't be trusted as a whole:
    invalid JSON, a non-array top level, a malformed entry or a repeated id.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        _LOG.error("Access file is not valid JSON: %s", e)
        return None

    if not isinstance(data, list):
        _LOG.error("Access file must contain a JSON array, got %s", type(data).__name__)
        return None

    try:
        entries = _ENTRIES.validate_python(data)
    except SchemaError as e:
        _LOG.error("Access file has invalid entries: %s", e)
        return None

    ids = [e.id for e in entries]
    if len(ids) != len(set(ids)):
        _LOG.error("Access file lists the same user id more than once.")
        return None

    return entries


class UserAccessSync:
    """
    Keeps the users table and the admin-editable access file in agreement.

    Rules for a file -> database cycle:
    - the file decides membership: database users missing from it are deleted
      (with their sessions and linked accounts)
    - the file decides access_level and name for users present in both;
      changed users lose their sessions and listeners are told
    - the database decides existence: file entries without a row are ignored
    - a file that can't be parsed is never partially applied; it is
      regenerated from the database instead

    Both directions share one lock. A sync triggered while another runs is
    skipped, not queued; the next file change or sync_new_user() catches up.
    """

    def __init__(
        self,
        db: AsyncDB,
        access_file: Path,
        *,
        debounce_s: float = 0.5,
        watch_poll_s: float = 0.25,
    ) -> None:
        self._repo = UserRepo(db)
        self._path = Path(access_file)
        self._watch_poll_s = watch_poll_s

        self._lock = asyncio.Lock()
        self._listeners: set[UserChangeListener] = set()
        self._last_written: Optional[str] = None
        self._last_written_ids: frozenset[int] = frozenset()

        self._debouncer = Debouncer(debounce_s, self._on_file_settled)
        self._watcher: Optional[PollingFileWatcher] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    @property
    def watching(self) -> bool:
        return self._watcher is not None and self._watcher.running

    # -------------------------
    # Database -> file
    # -------------------------

    async def sync_database_to_file(self) -> bool:
        """
        Rewrites the access file from the users table.

        Failures are logged, never raised: callers just see a stale file.
        Returns False when the write failed or another sync was running.
        """
        if self._lock.locked():
            _LOG.debug("Sync already running; skipping database -> file sync.")
            return False
        async with self._lock:
            try:
                await self._apply_unsynced_edits()
            except Exception:
                _LOG.exception("Could not apply pending access file edits.")
                return False
            return await self._write_file_from_db()

    async def sync_new_user(self) -> bool:
        """Call after a signup so the new row shows up in the access file."""
        return await self.sync_database_to_file()

    async def _write_file_from_db(self) -> bool:
        try:
            users = await self._repo.list_users()
            text = render_access_file(users)
            await asyncio.to_thread(_atomic_write, self._path, text)
        except Exception:
            _LOG.exception("Failed to sync users to %s", self._path)
            return False
        self._last_written = text
        self._last_written_ids = frozenset(u.id for u in users)
        _LOG.info("Synced %d user(s) to %s", len(users), self._path)
        return True

    # -------------------------
    # File -> database
    # -------------------------

    async def sync_file_to_database(self) -> SyncReport:
        """
        Applies the access file to the users table.

        Database errors propagate and abort the cycle.
        """
        if self._lock.locked():
            _LOG.debug("Sync already running; skipping file -> database sync.")
            return SyncReport(skipped=True)
        async with self._lock:
            return await self._reconcile()

    async def _apply_unsynced_edits(self) -> None:
        """
        Applies admin edits that are on disk but not yet synced, so that a
        write from the database does not overwrite them. Users created since
        the last write are not in the file yet and are kept.
        """
        if self._last_written is None:
            return
        try:
            raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return
        if raw == self._last_written:
            return
        _LOG.info("%s has unsynced edits; applying them first.", self._path.name)
        await self._reconcile(keep_new_users=True)

    async def _reconcile(self, *, keep_new_users: bool = False) -> SyncReport:
        entries = await self._read_entries()
        if entries is None:
            _LOG.warning("Regenerating %s from the database.", self._path)
            await self._write_file_from_db()
            return SyncReport(repaired=True)

        in_file = {e.id: e for e in entries}
        report = SyncReport()

        users = await self._repo.list_users()
        protected = {u.id for u in users} - self._last_written_ids if keep_new_users else set()
        for user in users:
            entry = in_file.get(user.id)
            if entry is None and user.id in protected:
                continue
            if entry is None:
                await self._repo.delete_user(user.id)
                report.deleted.append(user.id)
                continue
            if entry.access_level != user.access_level or entry.name != user.name:
                await self._repo.update_user(user.id, access_level=entry.access_level, name=entry.name)
                _LOG.info(
                    "User %d updated from access file: access_level %d -> %d",
                    user.id, user.access_level, entry.access_level,
                )
                report.updated.append(user.id)

        unknown = len(in_file.keys() - {u.id for u in users})
        if unknown:
            _LOG.warning("Ignoring %d access file entr(ies) with no matching user.", unknown)

        for user_id in report.updated:
            await self._repo.delete_sessions(user_id)
        for user_id in report.deleted + report.updated:
            self._notify(user_id)

        if report.changed:
            await self._write_file_from_db()
        _LOG.info(
            "Access file sync done: %d deleted, %d updated.", len(report.deleted), len(report.updated)
        )
        return report

    async def _read_entries(self) -> Optional[list[AccessFileEntry]]:
        try:
            raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        except FileNotFoundError:
            _LOG.warning("Access file %s does not exist.", self._path)
            return None
        except OSError:
            _LOG.exception("Could not read access file %s", self._path)
            return None
        return parse_access_file(raw)

    # -------------------------
    # Direct changes
    # -------------------------

    async def update_user_access_level(self, user_id: int, access_level: int) -> UserRecord:
        """
        Sets a user's access level without going through the file.

        Waits for a running sync instead of skipping. Signs the user out and
        rewrites the access file.
        """
        if access_level < 0:
            raise ValidationError("access_level must be >= 0", details={"access_level": access_level})

        async with self._lock:
            await self._apply_unsynced_edits()
            user = await self._repo.get_user(user_id)
            if user is None:
                raise NotFoundError(f"User not found: {user_id}", details={"id": user_id})
            if user.access_level == access_level:
                return user

            await self._repo.update_access_level(user_id, access_level)
            await self._repo.delete_sessions(user_id)
            _LOG.info("User %d access_level %d -> %d", user_id, user.access_level, access_level)
            self._notify(user_id)
            await self._write_file_from_db()
            return user.model_copy(update={"access_level": access_level})

    async def get_user_access_level(self, email: str) -> int:
        user = await self._repo.get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found", details={"email": email})
        return user.access_level

    # -------------------------
    # Change notification
    # -------------------------

    def on_user_change(self, listener: UserChangeListener) -> Callable[[], None]:
        """
        Registers a callback invoked with the id of every user a sync changed
        or deleted. Returns a function that unregisters it.
        """
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def _notify(self, user_id: int) -> None:
        for listener in list(self._listeners):
            try:
                listener(user_id)
            except Exception:
                _LOG.exception("User change listener raised (ignored).")

    # -------------------------
    # Watching
    # -------------------------

    async def initialize(self) -> None:
        """
        Creates the access file if needed, writes the current users to it and
        starts watching it. Call once per process.
        """
        if not self._path.exists():
            await asyncio.to_thread(_atomic_write, self._path, "[]\n")
            _LOG.info("Created empty access file %s", self._path)
        await self.sync_database_to_file()
        self.start_file_watcher()
        _LOG.info("User access sync initialized.")

    def start_file_watcher(self) -> bool:
        """
        Starts watching the access file. Returns False if already watching.
        """
        if self.watching:
            return False
        self._watcher = PollingFileWatcher(
            self._path, self.notify_file_changed, interval_s=self._watch_poll_s
        )
        self._watcher.start()
        _LOG.info("Watching %s for changes...", self._path)
        return True

    async def stop_file_watcher(self) -> None:
        watcher, self._watcher = self._watcher, None
        if watcher is not None:
            await watcher.stop()
        self._debouncer.cancel()
        await self._debouncer.drain()

    def notify_file_changed(self) -> None:
        """
        Reports a change of the access file; the sync runs once changes settle.
        """
        self._debouncer.trigger()

    async def _on_file_settled(self) -> None:
        try:
            raw: Optional[str] = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        except FileNotFoundError:
            raw = None
        if raw is not None and raw == self._last_written:
            _LOG.debug("Access file matches last write; nothing to sync.")
            return
        _LOG.info("%s changed, syncing access levels...", self._path.name)
        await self.sync_file_to_database()
