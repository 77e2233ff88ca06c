"""Append-only storage for the change log blob.

Every backend keeps one growing text blob per key and offers the same four
operations. ``overwrite`` is an administrative edit and races with concurrent
appends; it is meant for supervised use only.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, TypeVar

from loguru import logger
from sqlalchemy import Column, DateTime, String, Text, create_engine, make_url, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from taskpulse.exceptions import LogStoreError

T = TypeVar("T")

Base = declarative_base()

ENVIRONMENT_KEYS = {
    "production": "task-changes",
    "preview": "task-changes-preview",
}
DEFAULT_KEY = "task-changes-dev"


def log_key_for_environment(environment: Optional[str]) -> str:
    """Pick the log key for a deployment environment."""
    return ENVIRONMENT_KEYS.get((environment or "").strip().lower(), DEFAULT_KEY)


@dataclass
class LogMetadata:
    """Lightweight description of a stored blob"""
    key: str
    source: str
    exists: bool
    size_bytes: int = 0
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "source": self.source,
            "exists": self.exists,
            "size": self.size_bytes,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class LogStore(ABC):
    """Contract shared by all change log backends"""

    source = "unknown"

    def __init__(self, key: str):
        self.key = key

    @abstractmethod
    def append(self, text: str) -> None:
        """Concatenate text to the stored blob."""

    @abstractmethod
    def read_all(self) -> str:
        """Return the whole blob, or an empty string if nothing was written."""

    @abstractmethod
    def overwrite(self, text: str) -> None:
        """Replace the whole blob."""

    @abstractmethod
    def metadata(self) -> LogMetadata:
        """Describe the blob for operational visibility."""


class FileLogStore(LogStore):
    """Blob kept as ``<directory>/<key>.md`` on the local filesystem"""

    source = "local"

    def __init__(self, directory: Path | str, key: str = DEFAULT_KEY):
        super().__init__(key)
        self.directory = Path(directory)
        self.path = self.directory / f"{key}.md"

    def append(self, text: str) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            # Append mode issues one write per call, so concurrent appenders interleave whole entries
            with self.path.open("a", encoding="utf-8", newline="") as handle:
                handle.write(text)
        except OSError as exc:
            logger.error(f"Failed to append to log file {self.path}: {exc}")
            raise LogStoreError(f"Failed to append to {self.path}") from exc

    def read_all(self) -> str:
        if not self.path.exists():
            return ""
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error(f"Failed to read log file {self.path}: {exc}")
            raise LogStoreError(f"Failed to read {self.path}") from exc

    def overwrite(self, text: str) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self.path.write_text(text, encoding="utf-8", newline="")
        except OSError as exc:
            logger.error(f"Failed to overwrite log file {self.path}: {exc}")
            raise LogStoreError(f"Failed to overwrite {self.path}") from exc
        logger.warning(f"Log {self.key} overwritten ({len(text)} chars)")

    def metadata(self) -> LogMetadata:
        if not self.path.exists():
            return LogMetadata(key=self.key, source=self.source, exists=False)
        stats = self.path.stat()
        return LogMetadata(
            key=self.key,
            source=self.source,
            exists=True,
            size_bytes=stats.st_size,
            updated_at=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
        )


class LogBlob(Base):
    """One stored blob per key"""
    __tablename__ = "log_blobs"

    key = Column(String(255), primary_key=True)
    content = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<LogBlob(key={self.key}, chars={len(self.content or '')})>"


class DatabaseLogStore(LogStore):
    """Blob kept in a SQL table; appends use a single ``content || :text`` update"""

    source = "database"

    def __init__(self, url: str, key: str = DEFAULT_KEY):
        super().__init__(key)
        self.url = url
        parsed = make_url(url)
        database = parsed.database
        if parsed.get_backend_name() == "sqlite" and database and database != ":memory:":
            Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self._create_engine()
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            logger.error(f"Failed to initialize log database {self.url}: {exc}")
            raise LogStoreError(f"Failed to initialize log database for {key}") from exc

    def _create_engine(self):
        self.engine = create_engine(self.url, echo=False, future=True)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def _reset_engine(self):
        self.engine.dispose(close=True)
        self._create_engine()

    @staticmethod
    def _should_reset_on_error(exc: OperationalError) -> bool:
        message = str(exc).lower()
        return "readonly" in message or ("sqlite" in message and "locked" in message)

    def _execute_with_retry(self, operation: Callable[[Session], T]) -> T:
        for attempt in range(2):
            session = self.SessionLocal()
            try:
                result = operation(session)
                session.commit()
                return result
            except IntegrityError:
                # Another writer created the row between our update and insert
                session.rollback()
                if attempt == 0:
                    continue
                raise
            except OperationalError as exc:
                session.rollback()
                if self._should_reset_on_error(exc) and attempt == 0:
                    logger.warning("Log database reported a locked/read-only state; reinitializing connection.")
                    self._reset_engine()
                    continue
                raise
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()
        raise RuntimeError("Failed to execute log store operation after retries.")

    def _run(self, operation: Callable[[Session], T], verb: str) -> T:
        try:
            return self._execute_with_retry(operation)
        except SQLAlchemyError as exc:
            logger.error(f"Failed to {verb} log {self.key}: {exc}")
            raise LogStoreError(f"Failed to {verb} log {self.key}") from exc

    def append(self, text: str) -> None:
        def operation(session: Session) -> None:
            now = datetime.now(timezone.utc)
            result = session.execute(
                update(LogBlob)
                .where(LogBlob.key == self.key)
                .values(content=LogBlob.content + text, updated_at=now)
            )
            if result.rowcount == 0:
                session.add(LogBlob(key=self.key, content=text, updated_at=now))
                session.flush()

        self._run(operation, "append to")

    def read_all(self) -> str:
        def operation(session: Session) -> str:
            content = session.execute(
                select(LogBlob.content).where(LogBlob.key == self.key)
            ).scalar_one_or_none()
            return content or ""

        return self._run(operation, "read")

    def overwrite(self, text: str) -> None:
        def operation(session: Session) -> None:
            now = datetime.now(timezone.utc)
            blob = session.get(LogBlob, self.key)
            if blob is None:
                session.add(LogBlob(key=self.key, content=text, updated_at=now))
            else:
                blob.content = text
                blob.updated_at = now

        self._run(operation, "overwrite")
        logger.warning(f"Log {self.key} overwritten ({len(text)} chars)")

    def metadata(self) -> LogMetadata:
        def operation(session: Session) -> LogMetadata:
            blob = session.get(LogBlob, self.key)
            if blob is None:
                return LogMetadata(key=self.key, source=self.source, exists=False)
            return LogMetadata(
                key=self.key,
                source=self.source,
                exists=True,
                size_bytes=len((blob.content or "").encode("utf-8")),
                updated_at=blob.updated_at,
            )

        return self._run(operation, "describe")


def build_log_store(storage_config, key: Optional[str] = None) -> LogStore:
    """Create the configured backend for the environment's log key (or an explicit key)."""
    resolved_key = key or log_key_for_environment(storage_config.environment)
    backend = (storage_config.backend or "file").lower()
    if backend == "database":
        return DatabaseLogStore(storage_config.database_url, resolved_key)
    if backend != "file":
        logger.warning(f"Unknown storage backend '{storage_config.backend}', using local files")
    return FileLogStore(storage_config.log_dir, resolved_key)
