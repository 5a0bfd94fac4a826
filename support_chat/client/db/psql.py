from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from support_chat.db.session import SessionLocal
from support_chat.errors import StoreUnavailable

logger = logging.getLogger(__name__)


@contextmanager
def session_scope(factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    db = factory()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("chat store transaction failed")
        raise StoreUnavailable() from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
