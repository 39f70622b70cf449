"""
Pytest configuration and fixtures
"""

from typing import AsyncGenerator, Dict, List

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from models import Base, Franchisor, Agency, Location
from tests.factories import CAREGIVER_COLUMNS, CARELOG_COLUMNS, add_caregiver, write_csv


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """File-backed SQLite engine with working SAVEPOINTs"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def organization(db_session) -> Dict[str, int]:
    """One franchisor with one agency and one location"""
    franchisor = Franchisor(name="Sunrise Care", code="SUN")
    db_session.add(franchisor)
    await db_session.flush()

    agency = Agency(franchisor_id=franchisor.id, name="Sunrise North", code="N1")
    db_session.add(agency)
    await db_session.flush()

    location = Location(franchisor_id=franchisor.id, agency_id=agency.id, name="Main office", address="1 Main St")
    db_session.add(location)
    await db_session.commit()

    return {"franchisor_id": franchisor.id, "agency_id": agency.id, "location_id": location.id}


@pytest_asyncio.fixture
async def caregivers(db_session, organization) -> List[int]:
    """Two stored caregivers attached to the organization"""
    org = {"franchisor_id": organization["franchisor_id"], "agency_id": organization["agency_id"]}
    return [
        await add_caregiver(db_session, "Ada", "Lovelace", **org),
        await add_caregiver(db_session, "Grace", "Hopper", **org),
    ]


@pytest.fixture
def carelog_csv(tmp_path):
    """Factory writing carelog rows to a CSV file and returning its path"""
    def _write(rows, name="carelogs.csv", delimiter=","):
        return write_csv(tmp_path / name, CARELOG_COLUMNS, rows, delimiter)
    return _write


@pytest.fixture
def caregiver_csv(tmp_path):
    """Factory writing caregiver rows to a CSV file and returning its path"""
    def _write(rows, name="caregivers.csv", delimiter=","):
        return write_csv(tmp_path / name, CAREGIVER_COLUMNS, rows, delimiter)
    return _write
