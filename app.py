"""Contest workspace bot: run the gateway bot or a one-off reconciliation pass."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Awaitable, Callable, Dict

import discord

from config.runtime import (
    get_bot_name,
    get_discord_token,
    get_env_name,
    get_log_format,
    get_log_level,
)
from modules.common.runtime import (
    ContestBot,
    Runtime,
    delete_application_commands,
    open_platform,
)
from modules.workspace.role_cache import RoleCache
from modules.workspace.service import WorkspaceService
from shared.config import ConfigError, EventConfig, load_event_config
from shared.logging import setup_logging

log = logging.getLogger("contest.app")

RemoteAction = Callable[[WorkspaceService], Awaitable[object]]

REMOTE_ACTIONS: Dict[str, RemoteAction] = {
    "sync-roles": lambda service: service.sync_roles(),
    "delete-roles": lambda service: service.delete_roles(),
    "sync-channels": lambda service: service.sync_channels(),
    "delete-channels": lambda service: service.delete_channels(),
}

COMMANDS = ("start", *REMOTE_ACTIONS, "delete-commands")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "-f",
        "--config",
        default=None,
        help="Path to the event configuration JSON (default: $EVENT_CONFIG_PATH or config/event.json)",
    )
    parser.add_argument("command", choices=COMMANDS, help="What to run")
    return parser


async def run_remote(command: str, event: EventConfig, token: str) -> None:
    async with open_platform(token, event.guild_id) as (client, platform):
        if command == "delete-commands":
            await delete_application_commands(client, event.guild_id)
            return
        service = WorkspaceService(platform, event, role_cache=RoleCache())
        await REMOTE_ACTIONS[command](service)


async def run_bot(event: EventConfig, token: str) -> None:
    runtime = Runtime(ContestBot(event))
    try:
        await runtime.start(token)
    finally:
        await runtime.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(
        level=get_log_level(),
        fmt=get_log_format(),
        static_fields={"env": get_env_name(), "bot": get_bot_name()},
    )

    try:
        event = load_event_config(args.config)
        token = get_discord_token()
        if args.command == "start":
            asyncio.run(run_bot(event, token))
        else:
            asyncio.run(run_remote(args.command, event, token))
    except ConfigError as exc:
        log.error("invalid configuration: %s", exc)
        return 1
    except (RuntimeError, ValueError, discord.DiscordException):
        log.exception("%s failed", args.command)
        return 1

    log.info("%s finished", args.command)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
