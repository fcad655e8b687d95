from datetime import date
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from services.context import PlannerContext
from services.planner import Planner
from storage.db import init_schema, session_factory_for
from storage.repository import SqlPlannerRepository

# 2026-02-09 is a Monday.
MONDAY = date(2026, 2, 9)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return session_factory_for(engine)


@pytest.fixture
def repo(session_factory):
    return SqlPlannerRepository(session_factory)


@pytest.fixture
def ctx():
    return PlannerContext(user_id="user-1", today=MONDAY)


@pytest.fixture
def anonymous():
    return PlannerContext(user_id=None, today=MONDAY)


@pytest.fixture
def planner(repo):
    return Planner(repo)
