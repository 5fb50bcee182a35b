from __future__ import annotations

import contextlib
import json

import pytest

import app
from shared.testing.platform import FakePlatform


def _write_event(tmp_path) -> str:
    path = tmp_path / "event.json"
    payload = {
        "guild_id": 4242,
        "staff": {"password": "staff-secret"},
        "teams": [{"id": "01", "role_name": "team-01", "invitation_code": "code-01"}],
    }
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


@pytest.fixture
def fake_platform(monkeypatch):
    platform = FakePlatform()
    platform.add_role("@everyone", is_default=True)
    opened: list[tuple[str, int]] = []

    @contextlib.asynccontextmanager
    async def _open(token, guild_id):
        opened.append((token, guild_id))
        yield None, platform

    monkeypatch.setattr(app, "open_platform", _open)
    monkeypatch.setattr(app, "setup_logging", lambda **_: None)
    platform.opened = opened
    return platform


def test_parser_rejects_unknown_commands():
    with pytest.raises(SystemExit):
        app.build_parser().parse_args(["redeploy"])


def test_sync_roles_runs_against_the_platform(tmp_path, fake_platform):
    assert app.main(["-f", _write_event(tmp_path), "sync-roles"]) == 0

    assert [guild_id for _, guild_id in fake_platform.opened] == [4242]
    assert fake_platform.role_names() == ["@everyone", "Staff", "team-01"]


def test_sync_then_delete_channels(tmp_path, fake_platform):
    config = _write_event(tmp_path)

    assert app.main(["-f", config, "sync-roles"]) == 0
    assert app.main(["-f", config, "sync-channels"]) == 0
    assert fake_platform.category("team-01") is not None
    assert app.main(["-f", config, "delete-channels"]) == 0
    assert fake_platform.channels == {}


def test_remote_failures_exit_non_zero(tmp_path, fake_platform):
    fake_platform.fail_on("create_role", "Staff")

    assert app.main(["-f", _write_event(tmp_path), "sync-roles"]) == 1


def test_invalid_configuration_exits_non_zero(tmp_path, fake_platform):
    assert app.main(["-f", str(tmp_path / "missing.json"), "sync-roles"]) == 1
    assert fake_platform.opened == []


def test_missing_token_exits_non_zero(tmp_path, fake_platform, monkeypatch):
    monkeypatch.delenv("DISCORD_TOKEN")

    assert app.main(["-f", _write_event(tmp_path), "sync-roles"]) == 1
    assert fake_platform.opened == []


def test_delete_commands_clears_the_command_tree(tmp_path, fake_platform, monkeypatch):
    cleared: list[int] = []

    async def _delete(client, guild_id):
        cleared.append(guild_id)

    monkeypatch.setattr(app, "delete_application_commands", _delete)

    assert app.main(["-f", _write_event(tmp_path), "delete-commands"]) == 0
    assert cleared == [4242]
    assert fake_platform.mutations == []
