from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from engrain.fs import atomic_write, read_text_or_none
from engrain.logging import logger
from engrain.settings import DocsProfile  # noqa: TC001
from engrain.source import SourceType  # noqa: TC001

LOCK_FILE_NAME = ".engrain-lock.json"
CURRENT_VERSION = 1
LOCAL_COMMIT = "local"


def now_iso() -> str:
    """Current UTC time, ISO 8601 with milliseconds and a ``Z`` suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LockEntryData(_CamelModel):
    """What a command knows about an installed doc, before timestamps are added."""

    source: str = Field(..., description="Source as typed by the user")
    source_url: str | None = Field(default=None, description="Normalized cloneable URL")
    source_type: SourceType
    ref: str | None = Field(default=None, description="Branch or tag; None means default branch")
    subpath: str | None = Field(default=None, description="Directory given explicitly in the source")
    profile: DocsProfile | None = Field(default=None, description="Selection used when no subpath was given")
    commit_hash: str = Field(..., description="Cloned commit, or 'local'")
    index_hash: str
    index_size_bytes: int = Field(..., ge=0)
    index_size_tokens: int = Field(..., ge=0)

    @property
    def is_local(self) -> bool:
        return self.commit_hash == LOCAL_COMMIT


class LockEntry(LockEntryData):
    installed_at: str
    updated_at: str


class LockFile(_CamelModel):
    version: int = CURRENT_VERSION
    docs: dict[str, LockEntry] = Field(default_factory=dict)


class LockStore:
    """Per-project record of installed docs, kept in ``.engrain-lock.json``.

    Reading never fails: a missing, unparsable or older-version file yields an
    empty lock, which the next write replaces. Writes are atomic.

    Args:
        project_path (Path | None): project root; defaults to the current directory.
    """

    def __init__(self, project_path: Path | None = None) -> None:
        self.project_path = project_path or Path.cwd()

    @property
    def path(self) -> Path:
        return self.project_path / LOCK_FILE_NAME

    def read(self) -> LockFile:
        raw = read_text_or_none(self.path)
        if raw is None:
            return LockFile()
        try:
            lock = LockFile.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("lock_invalid", path=str(self.path), error=str(exc))
            return LockFile()
        if lock.version < CURRENT_VERSION:
            logger.warning("lock_outdated", path=str(self.path), version=lock.version)
            return LockFile()
        return lock

    def write(self, lock: LockFile) -> None:
        content = lock.model_dump_json(by_alias=True, exclude_none=True, indent=2)
        atomic_write(self.path, content)

    def get_all(self) -> dict[str, LockEntry]:
        return self.read().docs

    def get(self, name: str) -> LockEntry | None:
        return self.read().docs.get(name)

    def add(self, name: str, data: LockEntryData) -> LockEntry:
        """Add or update the entry ``name``, keeping its original install time.

        Args:
            name (str): doc name.
            data (LockEntryData): entry fields without timestamps.

        Returns:
            LockEntry: the stored entry.
        """
        lock = self.read()
        now = now_iso()
        previous = lock.docs.get(name)
        entry = LockEntry(
            **data.model_dump(exclude={"installed_at", "updated_at"}),
            installed_at=previous.installed_at if previous else now,
            updated_at=now,
        )
        lock.docs[name] = entry
        self.write(lock)
        return entry

    def remove(self, name: str) -> bool:
        lock = self.read()
        if name not in lock.docs:
            return False
        del lock.docs[name]
        self.write(lock)
        return True

    def clear(self) -> int:
        """Drop every entry; returns how many were removed (no write when already empty)."""
        lock = self.read()
        count = len(lock.docs)
        if count:
            lock.docs = {}
            self.write(lock)
        return count
