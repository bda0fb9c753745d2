"""Pytest fixtures for integration tests."""
import logging

import pytest
from sqlalchemy.orm import sessionmaker

from storefront.database import init_db, make_engine


@pytest.fixture(scope="function")
def engine(tmp_path):
    """Create a file-backed SQLite database so sessions get their own connections."""
    engine = make_engine(f"sqlite:///{tmp_path / 'storefront.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def ledger_logs(caplog):
    """Capture ledger logging at INFO for every test."""
    caplog.set_level(logging.INFO, logger="storefront")
    return caplog
