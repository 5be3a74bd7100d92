"""SQLite key/value storage through SQLAlchemy."""

import logging
from typing import List, Optional, Union

from sqlalchemy import create_engine, delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from shareable_notes.exceptions import ErrorCode, StorageReadError, StorageWriteError
from shareable_notes.models.db_models import DBBlob, get_session_factory, init_db
from shareable_notes.models.schema import utc_now
from shareable_notes.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class SqliteStorageBackend(StorageBackend):
    """Stores blobs as rows of the ``kv_store`` table.

    Each save runs in its own transaction, so a failed write leaves the
    previous row untouched.
    """

    def __init__(self, engine: Union[Engine, str]):
        """Initialize the backend.

        Args:
            engine: SQLAlchemy engine or database URL. The table is created
                if it does not exist yet.
        """
        if isinstance(engine, str):
            engine = create_engine(engine)
        self.engine = init_db(engine)
        self._session_factory = get_session_factory(self.engine)

    def load(self, key: str) -> Optional[str]:
        try:
            with self._session_factory() as session:
                return session.scalar(select(DBBlob.value).where(DBBlob.key == key))
        except SQLAlchemyError as e:
            raise StorageReadError(
                f"Failed to read key '{key}'", key=key, original_error=e
            ) from e

    def save(self, key: str, value: str) -> None:
        try:
            with self._session_factory.begin() as session:
                session.merge(DBBlob(key=key, value=value, updated_at=utc_now()))
        except SQLAlchemyError as e:
            logger.error(f"Failed to write key '{key}': {e}")
            raise StorageWriteError(
                f"Failed to write key '{key}'", key=key, original_error=e
            ) from e

    def remove(self, key: str) -> bool:
        try:
            with self._session_factory.begin() as session:
                result = session.execute(delete(DBBlob).where(DBBlob.key == key))
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise StorageWriteError(
                f"Failed to delete key '{key}'",
                key=key,
                operation="remove",
                code=ErrorCode.STORAGE_DELETE_FAILED,
                original_error=e,
            ) from e

    def keys(self) -> List[str]:
        try:
            with self._session_factory() as session:
                return list(session.scalars(select(DBBlob.key).order_by(DBBlob.key)))
        except SQLAlchemyError as e:
            raise StorageReadError("Failed to list keys", original_error=e) from e

    def close(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()
