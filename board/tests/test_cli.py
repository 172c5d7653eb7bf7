from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from board.cli import app
from board.config import get_settings
from board.seed import DEMO_CHALLENGES

runner = CliRunner()


@pytest.fixture()
def db_args(tmp_path, monkeypatch):
    # The --db-path option writes to the environment; let monkeypatch restore it.
    monkeypatch.delenv("BOARD_DB_PATH", raising=False)
    yield ["--db-path", str(tmp_path / "board.db"), "--json"]
    get_settings.cache_clear()


def _json(result) -> dict:
    assert result.exit_code == 0, result.stdout
    return json.loads(result.stdout)


def test_init_db_creates_file(db_args, tmp_path):
    payload = _json(runner.invoke(app, [*db_args, "init-db"]))
    assert payload["status"] == "ok"
    assert (tmp_path / "board.db").exists()


def test_seed_then_kpis(db_args):
    counts = _json(runner.invoke(app, [*db_args, "seed"]))
    assert counts["challenges"] == len(DEMO_CHALLENGES)

    kpis = _json(runner.invoke(app, [*db_args, "kpis"]))
    assert kpis["challenges_count"] == len(DEMO_CHALLENGES)
    assert kpis["actions_startup"] > 0


def test_seed_keep_existing(db_args):
    runner.invoke(app, [*db_args, "seed"])
    runner.invoke(app, [*db_args, "seed", "--keep-existing"])
    kpis = _json(runner.invoke(app, [*db_args, "kpis"]))
    assert kpis["challenges_count"] == 2 * len(DEMO_CHALLENGES)


def test_challenges_filtered(db_args):
    runner.invoke(app, [*db_args, "seed"])
    result = _json(runner.invoke(app, [*db_args, "challenges", "--search", "cloud"]))
    assert result["shown"] == 1
    assert result["items"][0]["startup_name"] == "CloudShift"


def test_challenges_rejects_unknown_category(db_args):
    result = runner.invoke(app, [*db_args, "challenges", "--category", "late"])
    assert result.exit_code != 0


def test_kpis_rejects_bad_date(db_args):
    result = runner.invoke(app, [*db_args, "kpis", "--today", "10/03/2025"])
    assert result.exit_code != 0


def test_create_admin_then_reset(db_args):
    args = [*db_args, "create-admin", "--email", "Admin@Example.com", "--password", "secret123", "--name", "Admin"]
    first = _json(runner.invoke(app, args))
    assert first["created"] is True
    assert first["email"] == "admin@example.com"
    assert first["is_admin"] is True

    second = _json(runner.invoke(app, args))
    assert second["created"] is False
    assert second["id"] == first["id"]


def test_create_admin_short_password(db_args):
    result = runner.invoke(app, [*db_args, "create-admin", "--email", "a@example.com", "--password", "123"])
    assert result.exit_code != 0
