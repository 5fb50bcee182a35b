"""Fixtures shared by the workspace reconciliation tests."""

from __future__ import annotations

import pytest

from modules.workspace.role_cache import RoleCache
from shared.config import parse_event_config
from shared.testing.platform import FakePlatform

GUILD_ID = 4242


def event_payload(**overrides) -> dict:
    payload = {
        "guild_id": GUILD_ID,
        "staff": {"password": "staff-secret", "role_name": "Staff", "category_name": "Staff"},
        "public": {
            "category_name": "General",
            "help_channel": "help",
            "announce_channel": "announce",
            "random_channel": "random",
        },
        "teams": [
            {"id": "01", "role_name": "team-01", "invitation_code": "code-01", "user_group_id": "g1"},
            {"id": "02", "role_name": "team-02", "invitation_code": "code-02", "user_group_id": "g2"},
        ],
        "configure_channel_topics": True,
        "team_channel_topic": "team {team_id}: {role_name}",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def event():
    return parse_event_config(event_payload())


@pytest.fixture
def platform() -> FakePlatform:
    fake = FakePlatform()
    fake.add_role("@everyone", permissions=0x63584C0, is_default=True)
    return fake


@pytest.fixture
def role_cache() -> RoleCache:
    return RoleCache()


@pytest.fixture
def make_event():
    def _make(**overrides):
        return parse_event_config(event_payload(**overrides))

    return _make
