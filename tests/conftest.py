import os
import sys
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("TELEGRAM_ENABLED", "false")
os.environ.setdefault("PROVIDER_CALL_DELAY_SECONDS", "0")
os.environ.setdefault("UNIVERSE", "AAPL,TSLA,NVDA")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from volmon.models.base import Base
from volmon.services.db import engine, init_db


@pytest.fixture
def db():
    init_db()
    yield engine
    Base.metadata.drop_all(bind=engine)
