import os
import tempfile

# Settings are read at import time, so the test environment must be in place
# before anything from todoapi is imported.
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_INIT_MODE"] = "off"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_FILE"] = os.path.join(tempfile.gettempdir(), "todoapi-tests.log")

import pytest  # noqa: E402

from todoapi.core.database import Base, SessionLocal, engine  # noqa: E402
from todoapi.core.security import get_password_hash  # noqa: E402
from todoapi.models.user import User  # noqa: E402
from todoapi.services.rate_limiter import rate_limit_gate  # noqa: E402


class FakeClock:
    """Deterministic epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture(autouse=True)
def _fresh_state():
    Base.metadata.create_all(bind=engine)
    rate_limit_gate.reset()
    yield
    rate_limit_gate.reset()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_user(db_session):
    def _make(email="a@example.com", password="pw", name="Alice"):
        user = User(name=name, email=email, password_hash=get_password_hash(password))
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make
