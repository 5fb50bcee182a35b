"""Event configuration for the contest bot.

Process-level settings come from the environment (see ``config.runtime``);
the event itself (staff, teams, public channel names) is described by a JSON
file whose path defaults to ``config/event.json``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from config import runtime as _runtime
from shared.redaction import mask_secret

__all__ = [
    "ConfigError",
    "StaffConfig",
    "PublicAreaConfig",
    "TeamConfig",
    "EventConfig",
    "DEFAULT_TEAM_CHANNEL_TOPIC",
    "load_event_config",
    "normalize_text_channel_name",
    "parse_event_config",
    "summarize_event_config",
]

log = logging.getLogger("contest.config")

DEFAULT_TEAM_CHANNEL_TOPIC = (
    "Team {team_id} ({role_name}) - invitation code: {invitation_code}"
)

_MISSING_VALUE = "—"
_EVERYONE_ROLE_NAME = "@everyone"
_WHITESPACE_RE = re.compile(r"\s+")


class ConfigError(RuntimeError):
    """Raised when the event configuration is unreadable or inconsistent."""


@dataclass(frozen=True, slots=True)
class StaffConfig:
    password: str
    role_name: str = "Staff"
    category_name: str = "Staff"


@dataclass(frozen=True, slots=True)
class PublicAreaConfig:
    category_name: str = "General"
    help_channel: str = "help"
    announce_channel: str = "announce"
    random_channel: str = "random"


@dataclass(frozen=True, slots=True)
class TeamConfig:
    id: str
    role_name: str
    invitation_code: str
    user_group_id: str = ""
    category_name: str = ""

    @property
    def category(self) -> str:
        return self.category_name or self.role_name


@dataclass(frozen=True, slots=True)
class EventConfig:
    guild_id: int
    staff: StaffConfig
    public: PublicAreaConfig = field(default_factory=PublicAreaConfig)
    teams: Tuple[TeamConfig, ...] = ()
    configure_channel_topics: bool = True
    team_channel_topic: str = DEFAULT_TEAM_CHANNEL_TOPIC
    disabled_commands: frozenset[str] = frozenset()

    def role_name_for_invitation(self, code: str) -> Optional[str]:
        """Map a ``/join`` invitation code to the role it grants."""

        code = code.strip()
        if not code:
            return None
        if code == self.staff.password:
            return self.staff.role_name
        for team in self.teams:
            if team.invitation_code == code:
                return team.role_name
        return None

    def is_command_enabled(self, name: str) -> bool:
        return name not in self.disabled_commands


def _section(payload: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = payload.get(key, {})
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{key}' must be an object")
    return value


def _text(mapping: Mapping[str, Any], key: str, default: Optional[str] = None) -> str:
    value = mapping.get(key, default)
    if value is None:
        raise ConfigError(f"missing required field '{key}'")
    text = str(value).strip()
    if not text:
        raise ConfigError(f"field '{key}' must not be empty")
    return text


def normalize_text_channel_name(name: str) -> str:
    """Return ``name`` the way Discord stores a text channel name.

    Discord lowercases text channel names and turns whitespace into hyphens,
    so a definition has to use that form to match the remote channel.
    """

    return _WHITESPACE_RE.sub("-", name.strip()).lower()


def _text_channel(mapping: Mapping[str, Any], key: str, default: str) -> str:
    return normalize_text_channel_name(_text(mapping, key, default))


def _parse_team(index: int, raw: Any) -> TeamConfig:
    if not isinstance(raw, Mapping):
        raise ConfigError(f"teams[{index}] must be an object")
    try:
        return TeamConfig(
            id=_text(raw, "id"),
            role_name=_text(raw, "role_name"),
            invitation_code=_text(raw, "invitation_code"),
            user_group_id=str(raw.get("user_group_id") or "").strip(),
            category_name=str(raw.get("category_name") or "").strip(),
        )
    except ConfigError as exc:
        raise ConfigError(f"teams[{index}]: {exc}") from exc


def _validate(config: EventConfig) -> None:
    if config.staff.role_name == _EVERYONE_ROLE_NAME:
        raise ConfigError(f"the staff role cannot be named {_EVERYONE_ROLE_NAME!r}")
    role_names: Dict[str, str] = {}
    codes: Dict[str, str] = {}
    for team in config.teams:
        if team.role_name == _EVERYONE_ROLE_NAME:
            raise ConfigError(f"team {team.id} cannot use the role name {_EVERYONE_ROLE_NAME!r}")
        if team.role_name == config.staff.role_name:
            raise ConfigError(f"team {team.id} reuses the staff role name {team.role_name!r}")
        if team.role_name in role_names:
            raise ConfigError(
                f"teams {role_names[team.role_name]} and {team.id} share role name {team.role_name!r}"
            )
        role_names[team.role_name] = team.id
        if team.invitation_code == config.staff.password:
            raise ConfigError(f"team {team.id} invitation code equals the staff password")
        if team.invitation_code in codes:
            raise ConfigError(f"teams {codes[team.invitation_code]} and {team.id} share an invitation code")
        codes[team.invitation_code] = team.id
    categories = [config.public.category_name, config.staff.category_name]
    categories.extend(team.category for team in config.teams)
    seen: set[str] = set()
    for name in categories:
        if name in seen:
            raise ConfigError(f"category name {name!r} is used more than once")
        seen.add(name)
    public = config.public
    channels = [public.help_channel, public.announce_channel, public.random_channel]
    if len(set(channels)) != len(channels):
        raise ConfigError(f"public channel names must differ: {channels}")


def parse_event_config(
    payload: Mapping[str, Any],
    *,
    guild_id: Optional[int] = None,
    staff_password: Optional[str] = None,
) -> EventConfig:
    """Build an :class:`EventConfig` from decoded JSON.

    ``guild_id`` and ``staff_password`` override the file values; the loader
    passes the environment overrides through them.
    """

    if not isinstance(payload, Mapping):
        raise ConfigError("event configuration must be a JSON object")

    resolved_guild = guild_id if guild_id is not None else payload.get("guild_id")
    try:
        resolved_guild = int(resolved_guild)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigError("'guild_id' must be an integer (or set DISCORD_GUILD_ID)") from exc

    staff_raw = dict(_section(payload, "staff"))
    if staff_password is not None:
        staff_raw["password"] = staff_password
    staff = StaffConfig(
        password=_text(staff_raw, "password"),
        role_name=_text(staff_raw, "role_name", "Staff"),
        category_name=_text(staff_raw, "category_name", "Staff"),
    )

    public_raw = _section(payload, "public")
    public = PublicAreaConfig(
        category_name=_text(public_raw, "category_name", "General"),
        help_channel=_text_channel(public_raw, "help_channel", "help"),
        announce_channel=_text_channel(public_raw, "announce_channel", "announce"),
        random_channel=_text_channel(public_raw, "random_channel", "random"),
    )

    teams_raw = payload.get("teams", [])
    if not isinstance(teams_raw, Sequence) or isinstance(teams_raw, (str, bytes)):
        raise ConfigError("'teams' must be a list")
    teams = tuple(_parse_team(index, raw) for index, raw in enumerate(teams_raw))

    disabled_raw = payload.get("disabled_commands", [])
    if not isinstance(disabled_raw, Sequence) or isinstance(disabled_raw, (str, bytes)):
        raise ConfigError("'disabled_commands' must be a list")

    config = EventConfig(
        guild_id=resolved_guild,
        staff=staff,
        public=public,
        teams=teams,
        configure_channel_topics=bool(payload.get("configure_channel_topics", True)),
        team_channel_topic=str(payload.get("team_channel_topic") or DEFAULT_TEAM_CHANNEL_TOPIC),
        disabled_commands=frozenset(str(name).strip() for name in disabled_raw if str(name).strip()),
    )
    _validate(config)
    return config


def load_event_config(path: Optional[str | Path] = None) -> EventConfig:
    """Read, validate and log the event configuration."""

    target = Path(path or _runtime.get_event_config_path())
    try:
        payload = json.loads(target.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"event configuration not found: {target}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"cannot read event configuration {target}: {exc}") from exc

    config = parse_event_config(
        payload,
        guild_id=_runtime.get_guild_id_override(),
        staff_password=_runtime.get_staff_password_override(),
    )
    log.info("config loaded", extra={"path": str(target), "config": json.dumps(summarize_event_config(config))})
    return config


def _redact(value: str) -> str:
    if not value:
        return _MISSING_VALUE
    return mask_secret(value)


def summarize_event_config(config: EventConfig) -> Dict[str, object]:
    """Return a log-safe view of ``config`` with passwords and codes masked."""

    return {
        "guild_id": config.guild_id,
        "staff": {
            "role_name": config.staff.role_name,
            "category_name": config.staff.category_name,
            "password": _redact(config.staff.password),
        },
        "public": {
            "category_name": config.public.category_name,
            "channels": [
                config.public.help_channel,
                config.public.announce_channel,
                config.public.random_channel,
            ],
        },
        "teams": [
            {
                "id": team.id,
                "role_name": team.role_name,
                "invitation_code": _redact(team.invitation_code),
            }
            for team in config.teams
        ],
        "configure_channel_topics": config.configure_channel_topics,
        "disabled_commands": sorted(config.disabled_commands),
    }
