"""Application runtime scaffolding for the contest bot process."""

from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator, Optional, Tuple

import discord
from discord.ext import commands

from config.runtime import get_bot_name, get_env_name
from modules.workspace.client import DiscordPlatformClient
from modules.workspace.errors import WorkspaceError
from modules.workspace.role_cache import RoleCache, shared_role_cache
from shared.config import EventConfig
from shared.logging import set_trace_id

__all__ = ["INTENTS", "ContestBot", "Runtime", "open_platform", "delete_application_commands"]

log = logging.getLogger("contest.runtime")

INTENTS = discord.Intents.default()
INTENTS.members = True


class ContestBot(commands.Bot):
    """Gateway bot carrying the event configuration and the shared role cache."""

    def __init__(self, event: EventConfig, *, role_cache: Optional[RoleCache] = None) -> None:
        super().__init__(command_prefix=commands.when_mentioned, intents=INTENTS)
        self.event = event
        self.role_cache = role_cache if role_cache is not None else shared_role_cache()

    async def setup_hook(self) -> None:
        from cogs import contest_commands

        await contest_commands.setup(self)

    async def on_ready(self) -> None:
        log.info(
            "Bot ready as %s | env=%s | bot=%s",
            self.user,
            get_env_name(),
            get_bot_name(),
        )
        await self.prepare_guild()

    async def on_guild_available(self, guild: discord.Guild) -> None:
        if guild.id == self.event.guild_id:
            await self.prepare_guild(guild)

    async def prepare_guild(self, guild: Optional[discord.Guild] = None) -> bool:
        """Refresh the role cache and publish slash commands for the event guild."""

        guild = guild or self.get_guild(self.event.guild_id)
        if guild is None:
            log.warning("event guild not visible", extra={"guild_id": self.event.guild_id})
            return False

        set_trace_id()
        client = DiscordPlatformClient(guild)
        try:
            snapshot = await self.role_cache.refresh(client)
            guild_commands = await self.tree.sync(guild=discord.Object(id=guild.id))
            global_commands = await self.tree.sync()
        except (WorkspaceError, discord.HTTPException):
            log.exception("guild preparation failed", extra={"guild_id": guild.id})
            return False

        log.info(
            "guild prepared",
            extra={
                "guild_id": guild.id,
                "roles": len(snapshot.roles),
                "guild_commands": len(guild_commands),
                "global_commands": len(global_commands),
            },
        )
        return True


class Runtime:
    """Container object that owns the bot's lifecycle."""

    def __init__(self, bot: ContestBot) -> None:
        self.bot = bot

    async def start(self, token: str) -> None:
        await self.bot.start(token)

    async def close(self) -> None:
        if not self.bot.is_closed():
            await self.bot.close()


@contextlib.asynccontextmanager
async def open_platform(
    token: str, guild_id: int
) -> AsyncIterator[Tuple[discord.Client, DiscordPlatformClient]]:
    """Log in over HTTP only (no gateway) and bind a platform client to the guild."""

    client = discord.Client(intents=discord.Intents.none())
    async with client:
        await client.login(token)
        try:
            guild = await client.fetch_guild(guild_id)
        except discord.HTTPException as exc:
            raise WorkspaceError(f"cannot fetch guild {guild_id}: {exc}") from exc
        yield client, DiscordPlatformClient(guild)


async def delete_application_commands(client: discord.Client, guild_id: int) -> None:
    """Remove every slash command this application registered, guild and global."""

    tree = discord.app_commands.CommandTree(client)
    guild = discord.Object(id=guild_id)
    tree.clear_commands(guild=guild)
    tree.clear_commands(guild=None)
    try:
        await tree.sync(guild=guild)
        await tree.sync()
    except discord.HTTPException as exc:
        raise WorkspaceError(f"cannot delete application commands: {exc}") from exc
    log.info("application commands deleted", extra={"guild_id": guild_id})
