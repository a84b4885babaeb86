import sqlite3
import threading
import time

import pytest
from flask_sqlalchemy.session import Session as FsaSession
from sqlalchemy.exc import OperationalError

from chefos import db, is_sqlite_lock
from chefos.core.models import Organization
from chefos.utils_db import commit_with_retry, transactional


def _locked(message="database is locked"):
    return OperationalError("COMMIT", {}, sqlite3.OperationalError(message))


def _org(name: str) -> Organization:
    org = Organization()
    org.name = name
    org.slug = name.lower().replace(" ", "-")
    return org


def _writer_holding_lock(path: str, seconds: float):
    # simula o cron segurando o lock de escrita
    con = sqlite3.connect(path)
    try:
        con.execute("BEGIN IMMEDIATE")
        con.execute("CREATE TABLE IF NOT EXISTS _cron_lock(id INTEGER)")
        time.sleep(seconds)
        con.commit()
    finally:
        con.close()


class _FlakyCommit:
    """Stands in for the base Session.commit: fails `failures` times first."""

    def __init__(self, failures, error):
        self.failures = failures
        self.error = error
        self.calls = 0
        self.rollbacks = 0

    def commit(self, *_):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error

    def rollback(self, *_):
        self.rollbacks += 1


@pytest.fixture()
def flaky(monkeypatch):
    def install(failures, error):
        fake = _FlakyCommit(failures, error)
        monkeypatch.setattr(FsaSession, "commit", fake.commit, raising=False)
        monkeypatch.setattr(FsaSession, "rollback", fake.rollback, raising=False)
        return fake

    return install


def test_pragmas_applied(app):
    with app.app_context():
        with db.engine.connect() as conn:
            pragma = conn.exec_driver_sql
            assert str(pragma("PRAGMA journal_mode").scalar()).lower() == "wal"
            assert int(pragma("PRAGMA foreign_keys").scalar()) == 1
            assert int(pragma("PRAGMA busy_timeout").scalar()) >= 1000


def test_is_sqlite_lock():
    assert is_sqlite_lock(_locked())
    assert is_sqlite_lock(_locked("Database table is locked: todo_items"))
    assert not is_sqlite_lock(_locked("no such table: todo_items"))


def test_retry_session_retries_locked_commit(app, flaky):
    app.config["DB_COMMIT_BACKOFF"] = 0
    with app.app_context():
        fake = flaky(2, _locked())
        db.session.commit()
        assert fake.calls == 3 and fake.rollbacks == 2


def test_retry_session_gives_up(app, flaky):
    app.config["DB_COMMIT_BACKOFF"] = 0
    app.config["DB_COMMIT_RETRIES"] = 1
    with app.app_context():
        fake = flaky(5, _locked())
        with pytest.raises(OperationalError):
            db.session.commit()
        assert fake.calls == 2

        other = flaky(1, _locked("disk I/O error"))
        with pytest.raises(OperationalError):
            db.session.commit()
        assert other.calls == 1 and other.rollbacks == 0


def test_commit_survives_concurrent_writer(app):
    with app.app_context():
        path = app.config["SQLALCHEMY_DATABASE_URI"].replace("sqlite:///", "")
        writer = threading.Thread(target=_writer_holding_lock, args=(path, 0.6))
        writer.start()
        time.sleep(0.1)

        org = _org("Busy Kitchen")
        db.session.add(org)
        commit_with_retry(max_retries=5, backoff_seconds=0.1)
        writer.join()

        assert db.session.get(Organization, org.id).name == "Busy Kitchen"


def test_transactional_commits(app):
    with app.app_context():
        with transactional() as session:
            session.add(_org("Night Shift"))
        assert Organization.query.filter_by(name="Night Shift").count() == 1


def test_transactional_rolls_back_on_error(app):
    with app.app_context():
        with pytest.raises(RuntimeError):
            with transactional():
                db.session.add(_org("Doomed Kitchen"))
                raise RuntimeError("boom")
        assert Organization.query.filter_by(name="Doomed Kitchen").first() is None
