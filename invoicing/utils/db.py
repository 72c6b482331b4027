# invoicing/utils/db.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from invoicing.errors import DomainError
from invoicing.extensions import db

logger = logging.getLogger(__name__)


@contextmanager
def atomic(failure_message: str) -> Iterator[Session]:
    """
    One unit of work: commit on success, roll back on any error.

    Domain errors propagate unchanged. Anything else is logged and replaced by
    a generic ``DomainError(failure_message, 500)`` so callers never see a raw
    driver or ORM exception.
    """
    try:
        yield db.session
        db.session.commit()
    except DomainError:
        db.session.rollback()
        raise
    except Exception as exc:
        db.session.rollback()
        logger.exception("%s", failure_message)
        raise DomainError(failure_message, 500) from exc
