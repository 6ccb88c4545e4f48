"""
Deployment configuration tests: gunicorn worker defaults.
"""
import multiprocessing
import runpy
from pathlib import Path

import pytest

GUNICORN_CONF = Path(__file__).resolve().parents[2] / "deploy" / "gunicorn.conf.py"


@pytest.fixture
def load_conf(monkeypatch):
    monkeypatch.delenv("WEB_CONCURRENCY", raising=False)

    def _load(database_url: str) -> dict:
        monkeypatch.setenv("DATABASE_URL", database_url)
        return runpy.run_path(str(GUNICORN_CONF))

    return _load


class TestGunicornWorkers:

    def test_sqlite_defaults_to_one_worker(self, load_conf):
        conf = load_conf("sqlite+aiosqlite:///./contest_engine.db")

        assert conf["workers"] == 1
        assert conf["wsgi_app"] == "contest_engine.main:app"

    def test_postgres_scales_with_cpus(self, load_conf):
        conf = load_conf("postgresql+asyncpg://contest:secret@db/contest")

        assert conf["workers"] == multiprocessing.cpu_count() * 2 + 1

    def test_web_concurrency_overrides(self, load_conf, monkeypatch):
        monkeypatch.setenv("WEB_CONCURRENCY", "3")

        assert load_conf("sqlite+aiosqlite:///./contest_engine.db")["workers"] == 3
