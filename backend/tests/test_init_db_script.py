"""
Tests para scripts/init_db.py.
"""

import importlib.util
import os

import pytest

from db import database

SCRIPT = os.path.join(os.path.dirname(os.path.dirname(__file__)), "scripts", "init_db.py")


@pytest.fixture
def init_db(monkeypatch, tmp_path):
    # init_engine swaps the module globals; monkeypatch restores them afterwards
    monkeypatch.setattr(database, "engine", None)
    monkeypatch.setattr(database, "SessionLocal", None)
    monkeypatch.setattr(database, "USE_DATABASE", True)
    monkeypatch.setattr(database, "DATABASE_URL", f"sqlite:///{tmp_path / 'init.db'}")

    spec = importlib.util.spec_from_file_location("init_db", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    monkeypatch.setattr(module, "USE_DATABASE", True)
    yield module
    if database.engine is not None:
        database.engine.dispose()


def test_creates_all_tables(init_db, capsys):
    assert init_db.main([]) == 0
    out = capsys.readouterr().out
    for table in ("routes", "waypoints", "route_passengers", "checkins", "alerts", "audit_logs"):
        assert f"- {table}" in out


def test_reset_recreates_tables(init_db):
    assert init_db.main([]) == 0
    assert init_db.main(["--reset"]) == 0


def test_disabled_database(init_db, monkeypatch, capsys):
    monkeypatch.setattr(init_db, "USE_DATABASE", False)
    assert init_db.main([]) == 0
    assert "disabled" in capsys.readouterr().out
