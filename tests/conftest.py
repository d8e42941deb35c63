import sys
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from codefest.database import build_session_factory, create_schema  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'codefest.db'}")
    await create_schema(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
async def session(session_factory):
    async with session_factory() as db:
        yield db
