from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch) -> None:
    monkeypatch.delenv("GEMINI_MOCK", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)


@pytest.fixture()
def isolated_db(tmp_path):
    from sqlmodel import SQLModel, create_engine

    from potd import db
    from potd.settings import settings

    original_engine = db.engine
    original_path = settings.sqlite_path
    settings.sqlite_path = str(tmp_path / "test.db")
    db.engine = create_engine(settings.sqlite_url, connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(db.engine)
    yield db.engine
    db.engine = original_engine
    settings.sqlite_path = original_path
