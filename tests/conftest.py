"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sqlite3
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from mailevents.server import create_app


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "events.db"


@pytest.fixture
def db_url(db_path: Path) -> str:
    return f"sqlite:///{db_path}"


@pytest.fixture
def client(db_url: str) -> Generator[TestClient, None, None]:
    with TestClient(create_app(db_url)) as c:
        yield c


@pytest.fixture
def rows(db_path: Path):
    """Read a table straight from the SQLite file, oldest row first."""

    def _rows(table: str) -> list[dict]:
        conn = sqlite3.connect(db_path)
        conn.row_factory = sqlite3.Row
        try:
            cur = conn.execute(f"SELECT * FROM {table} ORDER BY id")
            return [dict(r) for r in cur.fetchall()]
        finally:
            conn.close()

    return _rows
