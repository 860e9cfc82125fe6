"""
Frontière transactionnelle des opérations mutantes.

    with atomic(db):
        ...  # mutations

- pas d'exception -> commit
- LedgerError -> rollback, l'erreur remonte telle quelle
- SQLAlchemyError -> rollback, log complet, remonte en StorageFailure
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from merenda.services.errors import LedgerError, StorageFailure

logger = logging.getLogger("merenda.storage")


@contextmanager
def atomic(db: Session, operation: str = "mutation") -> Iterator[Session]:
    try:
        yield db
        db.commit()
    except LedgerError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        logger.exception("%s failed, transaction rolled back", operation)
        db.rollback()
        raise StorageFailure() from exc
    except Exception:
        db.rollback()
        raise
