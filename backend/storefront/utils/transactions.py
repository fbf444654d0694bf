from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """
    Run one unit of work on the given Session and commit it.
    Any exception rolls the whole unit back and is re-raised.
    Usage:
        with atomic(db):
            ... DB work ...
    """
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
