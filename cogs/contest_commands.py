"""Slash commands contestants and staff use during the event.

``/ping``, ``/ask`` and ``/archive`` are registered on the event guild. ``/join`` is a
global command because it is only accepted from direct messages.
"""

from __future__ import annotations

import logging
from typing import Iterable, Set, Tuple

import discord
from discord import app_commands
from discord.ext import commands

from modules.workspace.errors import WorkspaceError
from modules.workspace.reconcile import is_protected_role
from modules.workspace.role_cache import RoleCache

__all__ = [
    "ASK_TITLE_MAX_LENGTH",
    "GUILD_COMMANDS",
    "GLOBAL_COMMANDS",
    "CommandRejected",
    "ContestGuildCommands",
    "ContestDirectCommands",
    "plan_role_changes",
    "validate_ask_title",
    "setup",
]

log = logging.getLogger("contest.commands")

ASK_TITLE_MAX_LENGTH = 50
GUILD_COMMANDS = ("ping", "ask", "archive")
GLOBAL_COMMANDS = ("join",)

_UNEXPECTED_ERROR = "An unexpected error occurred. Please contact the staff."


class CommandRejected(ValueError):
    """User-facing validation failure; the message is shown as-is."""


def validate_ask_title(title: str) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise CommandRejected("The question title must not be empty.")
    if len(cleaned) > ASK_TITLE_MAX_LENGTH:
        raise CommandRejected(
            f"The question title must be at most {ASK_TITLE_MAX_LENGTH} characters. "
            "Summarise it (for example: \"initial state of problem A\") and try again."
        )
    return cleaned


def plan_role_changes(
    member_role_ids: Iterable[int],
    target_role_ids: Iterable[int],
    *,
    keep_role_ids: Iterable[int] = (),
) -> Tuple[list[int], list[int]]:
    """Return ``(grant, revoke)`` so the member ends up with exactly the target roles.

    Roles in ``keep_role_ids`` (``@everyone``, integration roles) are never
    revoked.
    """

    current: Set[int] = set(member_role_ids)
    target: Set[int] = set(target_role_ids)
    keep: Set[int] = set(keep_role_ids)
    grant = sorted(target - current)
    revoke = sorted(current - target - keep)
    return grant, revoke


def _mention_roles(role_ids: Iterable[int]) -> str:
    return " ".join(f"<@&{role_id}>" for role_id in role_ids)


class ContestGuildCommands(commands.Cog):
    """Commands available inside the event guild."""

    def __init__(self, bot: commands.Bot, *, role_cache: RoleCache) -> None:
        self.bot = bot
        self.role_cache = role_cache

    @property
    def event(self):
        return self.bot.event

    @app_commands.command(name="ping", description="Check that the bot is responsive.")
    async def ping(self, interaction: discord.Interaction) -> None:
        await interaction.response.send_message("pong!", ephemeral=True)

    @app_commands.command(name="ask", description="Open a question thread for the staff.")
    @app_commands.describe(title=f"Question title (at most {ASK_TITLE_MAX_LENGTH} characters)")
    @app_commands.guild_only()
    async def ask(self, interaction: discord.Interaction, title: str) -> None:
        try:
            if not isinstance(interaction.channel, discord.TextChannel):
                raise CommandRejected("This command can only be used in a text channel.")
            cleaned = validate_ask_title(title)
        except CommandRejected as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return

        await interaction.response.defer(thinking=True)
        try:
            staff_roles = await self.role_cache.find_by_name(self.event.staff.role_name)
            await interaction.edit_original_response(
                content=f"{interaction.user.mention} is starting a question thread."
            )
            message = await interaction.original_response()
            thread = await message.create_thread(name=cleaned)
            await thread.send(
                f"{_mention_roles(role.id for role in staff_roles)} A question thread has been started.",
                allowed_mentions=discord.AllowedMentions(roles=True),
            )
        except (WorkspaceError, discord.HTTPException):
            log.exception("ask command failed", extra={"user_id": interaction.user.id})
            await interaction.edit_original_response(content=_UNEXPECTED_ERROR)
            return
        log.info("question thread opened", extra={"thread_id": thread.id, "user_id": interaction.user.id})

    @app_commands.command(name="archive", description="Close a question thread.")
    @app_commands.guild_only()
    async def archive(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(thinking=True)
        thread = interaction.channel
        if not isinstance(thread, discord.Thread) or thread.type is not discord.ChannelType.public_thread:
            await interaction.edit_original_response(
                content="This command can only be used inside a question thread."
            )
            return

        try:
            await thread.edit(archived=True)
            await interaction.edit_original_response(content="The question thread has been closed.")
        except discord.HTTPException:
            log.exception("archive command failed", extra={"thread_id": thread.id})
            await interaction.edit_original_response(content=_UNEXPECTED_ERROR)
            return
        log.info("question thread archived", extra={"thread_id": thread.id, "user_id": interaction.user.id})


class ContestDirectCommands(commands.Cog):
    """Commands accepted from direct messages."""

    def __init__(self, bot: commands.Bot, *, role_cache: RoleCache) -> None:
        self.bot = bot
        self.role_cache = role_cache

    @property
    def event(self):
        return self.bot.event

    async def _guild_member(self, user: discord.abc.User) -> discord.Member:
        guild = self.bot.get_guild(self.event.guild_id)
        if guild is None:
            raise WorkspaceError(f"event guild {self.event.guild_id} is not available")
        member = guild.get_member(user.id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user.id)
        except discord.NotFound as exc:
            raise CommandRejected(
                "You have not joined the event server yet. Join it first and try again."
            ) from exc

    @app_commands.command(name="join", description="Join your team.")
    @app_commands.describe(invitation_code="Invitation code")
    async def join(self, interaction: discord.Interaction, invitation_code: str) -> None:
        try:
            # Keep invitation codes out of public channels.
            if interaction.guild_id is not None:
                raise CommandRejected("This command can only be used in a direct message to the bot.")
            role_name = self.event.role_name_for_invitation(invitation_code)
            if role_name is None:
                raise CommandRejected(
                    f"No team matches invitation code `{invitation_code.strip()}`. Check it and try again."
                )
        except CommandRejected as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            member = await self._guild_member(interaction.user)
            snapshot = await self.role_cache.snapshot()
            target_ids = [role.id for role in snapshot.require_all(role_name)]
            keep_ids = [role.id for role in snapshot.roles if is_protected_role(role)]
            grant, revoke = plan_role_changes(
                (role.id for role in member.roles), target_ids, keep_role_ids=keep_ids
            )
            reason = f"/join {role_name}"
            if grant:
                await member.add_roles(*(discord.Object(id=role_id) for role_id in grant), reason=reason)
            if revoke:
                await member.remove_roles(*(discord.Object(id=role_id) for role_id in revoke), reason=reason)
        except CommandRejected as exc:
            await interaction.edit_original_response(content=str(exc))
            return
        except (WorkspaceError, discord.HTTPException):
            log.exception("join command failed", extra={"user_id": interaction.user.id})
            await interaction.edit_original_response(content=_UNEXPECTED_ERROR)
            return

        log.info(
            "member joined role",
            extra={"user_id": interaction.user.id, "role": role_name, "granted": len(grant), "revoked": len(revoke)},
        )
        await interaction.edit_original_response(content=f"You joined `{role_name}`.")


async def setup(bot: commands.Bot) -> None:
    """Register the cogs and drop commands the event disables.

    ``bot`` must expose ``event`` (the loaded event configuration) and
    ``role_cache``.
    """

    event = bot.event
    guild = discord.Object(id=event.guild_id)
    await bot.add_cog(ContestGuildCommands(bot, role_cache=bot.role_cache), guilds=[guild])
    await bot.add_cog(ContestDirectCommands(bot, role_cache=bot.role_cache))

    for name in GUILD_COMMANDS:
        if not event.is_command_enabled(name):
            bot.tree.remove_command(name, guild=guild)
            log.info("command disabled", extra={"command": name})
    for name in GLOBAL_COMMANDS:
        if not event.is_command_enabled(name):
            bot.tree.remove_command(name)
            log.info("command disabled", extra={"command": name})

    for name in sorted(event.disabled_commands - {*GUILD_COMMANDS, *GLOBAL_COMMANDS}):
        log.warning("unknown command in disabled_commands", extra={"command": name})
