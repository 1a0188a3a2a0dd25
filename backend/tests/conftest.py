import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from crypto_checkout.config import Settings
from crypto_checkout.db.init_db import Database
from crypto_checkout.main import create_app
from crypto_checkout.mocks.charge_gateway import MockChargeGateway
from crypto_checkout.services.transaction_store import TransactionStore


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "test_checkout.db"


@pytest.fixture
def test_settings(db_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        gateway_latency_ms=0,
        environment="test",
    )


@pytest.fixture
def client(test_settings):
    app = create_app(test_settings)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def sync_session(db_path, client):
    """Plain sync session on the same SQLite file, for seeding and asserting DB state."""
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()
    yield db
    db.close()
    engine.dispose()


@pytest_asyncio.fixture
async def database(test_settings):
    database = Database.from_settings(test_settings)
    await database.create_tables()
    yield database
    await database.dispose()


@pytest_asyncio.fixture
async def store(database):
    return TransactionStore(database.session_factory)


@pytest.fixture
def gateway():
    return MockChargeGateway(latency_ms=0)
