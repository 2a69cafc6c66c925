import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class DatabaseRepository:
    """Holds one session for the lifetime of a single adapter call."""

    def __init__(self, db_session: Session):
        self.db = db_session

    @contextmanager
    def _write(self, action: str) -> Iterator[None]:
        """Commit on success; roll back, log and re-raise on failure."""
        try:
            yield
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to {action}: {e}")
            raise

    def close(self) -> None:
        self.db.close()
