import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app import create_app  # noqa: E402
from config import Config  # noqa: E402
from models import db  # noqa: E402
from models.account import Account, Role  # noqa: E402
from models.staff import StaffProfile  # noqa: E402
from security.password import hash_password  # noqa: E402

DEFAULT_PASSWORD = "Corr3ct!Horse"


class ConfigForTests(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET = "test-secret-key-for-testing-only-do-not-use-in-production"
    BCRYPT_ROUNDS = 4
    REDIS_URL = None
    TRUST_PROXY_HEADERS = False
    LOG_LEVEL = "WARNING"


@pytest.fixture
def app():
    app = create_app(ConfigForTests)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


_employee_seq = iter(range(1000, 100000))


@pytest.fixture
def make_account(app):
    def _make(email="doc@h.com", role=Role.DOCTOR, password=DEFAULT_PASSWORD, **fields):
        account = Account(
            email=email,
            username=email.split("@")[0] + f"_{next(_employee_seq)}",
            password_hash=hash_password(password),
            role=role,
            **fields,
        )
        db.session.add(account)
        db.session.flush()
        db.session.add(StaffProfile(
            account_id=account.id,
            employee_id=f"EMP{next(_employee_seq)}",
            first_name="Test",
            last_name="User",
        ))
        db.session.commit()
        return account
    return _make


def reload(account):
    """Fresh copy of an account row after requests have changed it."""
    db.session.expire_all()
    return db.session.get(Account, account.id)


def post_login(client, email, password=DEFAULT_PASSWORD, ip="127.0.0.1", **extra):
    body = {"email": email, "password": password}
    body.update(extra)
    return client.post("/auth/login", json=body, environ_base={"REMOTE_ADDR": ip})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def login_token(client):
    def _login(email, password=DEFAULT_PASSWORD, ip="10.9.9.9"):
        resp = post_login(client, email, password, ip=ip)
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()["data"]["token"]
    return _login
