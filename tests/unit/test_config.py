import pytest
from sqlalchemy.exc import OperationalError

from spotnere.infrastructure import config
from spotnere.infrastructure.config import DEFAULT_DATABASE_URL, load_settings
from spotnere.infrastructure.db import session as db_session_module
from spotnere.infrastructure.db.session import wait_for_db

ENV_VARS = (
    "DATABASE_URL",
    "RAZORPAY_KEY_ID",
    "RAZORPAY_KEY_SECRET",
    "RAZORPAY_WEBHOOK_SECRET",
    "CORS_ORIGIN",
    "PORT",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    monkeypatch.setattr(config, "load_dotenv", lambda: None)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults_without_environment(clean_env):
    settings = load_settings()

    assert settings.database_url == DEFAULT_DATABASE_URL
    assert settings.port == 5001
    assert settings.cors_origins == ["*"]
    assert settings.razorpay_webhook_secret is None
    assert settings.log_level == "INFO"


def test_environment_overrides(clean_env):
    clean_env.setenv("DATABASE_URL", "sqlite://")
    clean_env.setenv("RAZORPAY_KEY_ID", "rzp_live_1")
    clean_env.setenv("CORS_ORIGIN", "http://a.test, http://b.test,")
    clean_env.setenv("PORT", "8080")
    clean_env.setenv("LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.database_url == "sqlite://"
    assert settings.razorpay_key_id == "rzp_live_1"
    assert settings.cors_origins == ["http://a.test", "http://b.test"]
    assert settings.port == 8080
    assert settings.log_level == "DEBUG"


# ---------------------
# DB WAIT LOOP
# ---------------------

class _Connection:
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, statement):
        return None


class FlakyEngine:
    def __init__(self, failures):
        self.failures = failures
        self.attempts = 0

    def connect(self):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))
        return _Connection()


def test_wait_for_db_retries_until_reachable(monkeypatch):
    sleeps = []
    monkeypatch.setattr(db_session_module.time, "sleep", sleeps.append)
    engine = FlakyEngine(failures=2)

    wait_for_db(engine, max_retries=5, retry_delay_seconds=0.25)

    assert engine.attempts == 3
    assert sleeps == [0.25, 0.25]


def test_wait_for_db_gives_up(monkeypatch):
    monkeypatch.setattr(db_session_module.time, "sleep", lambda _: None)
    engine = FlakyEngine(failures=10)

    with pytest.raises(OperationalError):
        wait_for_db(engine, max_retries=3, retry_delay_seconds=0)

    assert engine.attempts == 3
