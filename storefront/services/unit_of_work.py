import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    Transaction handle handed out by `unit_of_work`.

    Callbacks registered with `on_commit` run only after a successful commit,
    so side effects never escape a rolled back transaction.
    """

    def __init__(self, session: Session):
        self.session = session
        self._on_commit: list[Callable[[], None]] = []

    def on_commit(self, callback: Callable[[], None]) -> None:
        self._on_commit.append(callback)

    def _run_commit_hooks(self) -> None:
        hooks, self._on_commit = self._on_commit, []
        for hook in hooks:
            try:
                hook()
            except Exception:
                logger.exception("on_commit hook %r failed", hook)


@contextmanager
def unit_of_work(db: Session) -> Iterator[UnitOfWork]:
    """
    Commit on success, roll back on any error.

    Usage:
        with unit_of_work(db) as uow:
            uow.session.add(...)
    """
    uow = UnitOfWork(db)
    try:
        yield uow
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.info("Transaction rolled back due to error: %r", exc)
        raise
    uow._run_commit_hooks()
