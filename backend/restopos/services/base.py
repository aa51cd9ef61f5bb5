"""Shared service plumbing."""

import logging
from contextlib import contextmanager

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class BaseService:
    """Service bound to one request-scoped session."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self):
        """Commit everything written inside the block, or nothing.

        Any exception (domain error or database error) rolls the session back
        and propagates unchanged.
        """
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
