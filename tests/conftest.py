"""Shared fixtures: an in-memory database seeded with two owners.

The module-level engine in ``bank_import.database`` is pointed at an
in-memory SQLite URL before the package is imported so that importing the
app never touches ``~/BankImport``. Each test gets its own fresh in-memory
database through the ``engine`` fixture.
"""

import os
import sys
from pathlib import Path

os.environ.setdefault("BANK_IMPORT_DATABASE_URL", "sqlite:///:memory:")

# tests/ on sys.path so test modules can `import helpers`
sys.path.insert(0, str(Path(__file__).resolve().parent))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from bank_import.config import Settings, get_settings  # noqa: E402
from bank_import.database import get_db, init_db, make_engine  # noqa: E402
from bank_import.main import app  # noqa: E402
from bank_import.models import ApiToken, BankAccount, Category, CategoryRule  # noqa: E402

OWNER = "owner-1"
OTHER_OWNER = "owner-2"
TOKEN = "token-owner-1"
OTHER_TOKEN = "token-owner-2"
ACCOUNT_ID = "acct-owner-1"
OTHER_ACCOUNT_ID = "acct-owner-2"
PHARMACY = "cat-pharmacy"
GROCERIES = "cat-groceries"
HEALTH = "cat-health"


@pytest.fixture
def engine():
    test_engine = make_engine("sqlite:///:memory:", poolclass=StaticPool)
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    _seed(session)
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def client(db, settings):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    # No context manager: the lifespan would create tables on the default engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def _seed(session):
    session.add_all([
        ApiToken(token=TOKEN, owner_id=OWNER),
        ApiToken(token=OTHER_TOKEN, owner_id=OTHER_OWNER),
        ApiToken(token="token-revoked", owner_id=OWNER, revoked=True),
        BankAccount(
            id=ACCOUNT_ID, owner_id=OWNER, account_alias="Cuenta corriente",
            account_number_mask="04-72-98-XXXXX-1", currency="PAB",
        ),
        BankAccount(
            id=OTHER_ACCOUNT_ID, owner_id=OTHER_OWNER, account_alias="Ahorros",
            account_number_mask="04-11-22-XXXXX-9", currency="USD",
        ),
        Category(id=PHARMACY, owner_id=OWNER, name="Farmacia"),
        Category(id=GROCERIES, owner_id=OWNER, name="Supermercado"),
        Category(id=HEALTH, owner_id=OWNER, name="Salud"),
        Category(id="cat-other-owner", owner_id=OTHER_OWNER, name="Farmacia"),
    ])
    session.flush()
    session.add_all([
        CategoryRule(id="rule-farmacia", owner_id=OWNER, pattern="farmacia", category_id=PHARMACY, priority=10),
        CategoryRule(id="rule-super", owner_id=OWNER, pattern="Súper", category_id=GROCERIES, priority=5),
        CategoryRule(id="rule-blank", owner_id=OWNER, pattern="   ", category_id=HEALTH, priority=100),
        CategoryRule(
            id="rule-other", owner_id=OTHER_OWNER, pattern="cable", category_id="cat-other-owner", priority=50,
        ),
    ])
    session.commit()
