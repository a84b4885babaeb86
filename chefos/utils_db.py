import time
from contextlib import contextmanager

from flask import abort
from sqlalchemy.exc import OperationalError

from . import db, is_sqlite_lock, retry_logger


def get_or_404(model, ident, description: str | None = None):
    """Session.get that aborts with 404 (rendered as JSON by errors.py)."""
    obj = db.session.get(model, ident)
    if obj is None:
        abort(404, description=description or f"{model.__name__} {ident} not found")
    return obj


def get_scoped_or_404(model, ident, org_id: int | None):
    """Like get_or_404 but hides rows that belong to another tenant.

    `org_id=None` means the caller is a platform admin (no scoping).
    """
    obj = get_or_404(model, ident)
    if org_id is not None and getattr(obj, "org_id", None) != org_id:
        abort(404, description=f"{model.__name__} {ident} not found")
    return obj


def commit_with_retry(max_retries: int = 5, backoff_seconds: float = 0.1) -> None:
    """Commit with an explicit retry budget, independent of app config.

    RetrySession already retries using DB_COMMIT_RETRIES; batch jobs that
    write many rows call this to ask for a longer wait on a locked file.
    """
    for attempt in range(max_retries + 1):
        try:
            db.session.commit()
            return
        except OperationalError as exc:
            if attempt == max_retries or not is_sqlite_lock(exc):
                retry_logger.error("Commit failed after %s retries: %s", attempt, exc)
                raise
            time.sleep(backoff_seconds * (2**attempt))


@contextmanager
def transactional(max_retries: int = 3, backoff_seconds: float = 0.2):
    """Unit of work: commit with retry on exit, rollback on any error.

        with transactional():
            db.session.add(todo)
    """
    try:
        yield db.session
        commit_with_retry(max_retries=max_retries, backoff_seconds=backoff_seconds)
    except Exception:
        db.session.rollback()
        raise
