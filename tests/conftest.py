import os
import sys
import tempfile

import pytest

# Ensure project root (parent of tests) is on sys.path before importing chefos
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from chefos import create_app, db  # noqa: E402


@pytest.fixture()
def app():
    # Banco temporário isolado por teste
    tmpdir = tempfile.TemporaryDirectory()
    instance = tmpdir.name

    class TestConfig:
        TESTING = True
        SECRET_KEY = "test"
        WTF_CSRF_ENABLED = False
        REQUIRE_AUTH = False
        CRON_SECRET = ""
        MAIL_API_KEY = ""
        ADMIN_ALERT_EMAIL = "admin@chefos.test"
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + os.path.join(instance, "main.db")
        SQLALCHEMY_TRACK_MODIFICATIONS = False

    flask_app = create_app(TestConfig)
    yield flask_app
    # Libera conexões para evitar lock em Windows ao remover diretório
    with flask_app.app_context():
        db.session.remove()
        db.engine.dispose()
    tmpdir.cleanup()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def runner(app):
    return app.test_cli_runner()


@pytest.fixture()
def secured_app(app):
    """App with bearer auth and the cron secret switched on."""
    app.config["REQUIRE_AUTH"] = True
    app.config["CRON_SECRET"] = "cron-test-secret"
    return app


def make_org(name="Test Kitchen", **extra):
    from chefos.core import services as core_services

    return core_services.create_org({"name": name, **extra})


def make_member(org, username, role="staff", password="password123", email=None):
    from chefos.auth.models import Member

    m = Member()
    m.org_id = org.id
    m.username = username
    m.full_name = username.title()
    m.email = email
    m.role = role
    m.set_password(password)
    db.session.add(m)
    db.session.commit()
    return m


def bearer(member):
    """Issue a token for `member` and return the Authorization header."""
    token = member.issue_token(30)
    db.session.commit()
    return {"Authorization": f"Bearer {token}"}
