"""
Game Day Module - slash commands for schedules, scores and subscriptions
Compatible with discord.Client (no commands.Bot required)
"""
import discord
from discord import app_commands
from typing import List, Optional

from config import SUPPORT_MESSAGE
from models.game import Game
from models.team import Team, find_team, search_teams
from utils.formatting import (
    format_details_message,
    format_goals_list,
    format_scoreboard,
    format_status_line,
)

SUBSCRIBE_FIRST_MESSAGE = "No team set here. Use `/subscribe` first, or pass a team."
NO_NEXT_GAME_MESSAGE = "There may be no next game."
NO_LAST_GAME_MESSAGE = "There may be no previous game."
NO_CURRENT_GAME_MESSAGE = "There is no game being played right now."
UNKNOWN_TEAM_MESSAGE = "❌ Unknown team: `{}`"


# ============================================================================
# MODULE-LEVEL HELPER FUNCTIONS
# ============================================================================

def resolve_team(client, interaction: discord.Interaction, team_query: Optional[str]) -> Optional[Team]:
    """Team from the command argument, else the server's first subscribed team

    In private messages the user's preferred team is used instead.
    """
    if team_query:
        return find_team(team_query)
    if interaction.guild is None:
        teams = client.preferences.teams_for(interaction.user)
    else:
        teams = client.scheduler.subscriptions.teams_for(interaction.guild)
    return teams[0] if teams else None


def resolve_game(client, interaction: discord.Interaction, team: Optional[Team]) -> Optional[Game]:
    """Game of the game day channel the command was used in, else the team's current game"""
    channel_name = getattr(interaction.channel, "name", None)
    game = client.scheduler.find_game_by_channel_name(channel_name)
    if game is None and team is not None:
        game = client.scheduler.get_current_game(team)
    return game


async def team_autocomplete(
    interaction: discord.Interaction,
    current: str
) -> List[app_commands.Choice[str]]:
    """Autocomplete for team names"""
    return [
        app_commands.Choice(name=team.full_name, value=team.code)
        for team in search_teams(current, limit=25)
    ]


async def _reply(interaction: discord.Interaction, text: str, ephemeral: bool = False):
    await interaction.response.send_message(text, ephemeral=ephemeral)


# ============================================================================
# COMMANDS
# ============================================================================

def setup_commands(client):
    """Register game day commands on client.tree

    Args:
        client: discord.Client with ``tree``, ``scheduler`` and ``preferences`` attributes
    """
    tree: app_commands.CommandTree = client.tree

    @tree.command(name="nextgame", description="Show the next game")
    @app_commands.describe(team="Team (defaults to this server's team)")
    @app_commands.autocomplete(team=team_autocomplete)
    async def next_game(interaction: discord.Interaction, team: Optional[str] = None):
        resolved = resolve_team(client, interaction, team)
        if resolved is None:
            await _reply(interaction, UNKNOWN_TEAM_MESSAGE.format(team) if team else SUBSCRIBE_FIRST_MESSAGE,
                         ephemeral=True)
            return
        game = client.scheduler.get_next_game(resolved)
        if game is None:
            await _reply(interaction, NO_NEXT_GAME_MESSAGE)
            return
        await _reply(interaction, "The next game is:\n" + format_details_message(game, resolved.timezone))

    @tree.command(name="lastgame", description="Show the result of the last game")
    @app_commands.describe(team="Team (defaults to this server's team)")
    @app_commands.autocomplete(team=team_autocomplete)
    async def last_game(interaction: discord.Interaction, team: Optional[str] = None):
        resolved = resolve_team(client, interaction, team)
        if resolved is None:
            await _reply(interaction, UNKNOWN_TEAM_MESSAGE.format(team) if team else SUBSCRIBE_FIRST_MESSAGE,
                         ephemeral=True)
            return
        game = client.scheduler.get_last_game(resolved)
        if game is None:
            await _reply(interaction, NO_LAST_GAME_MESSAGE)
            return
        await _reply(interaction, "The last game was:\n" + format_status_line(game, resolved.timezone)
                     + "\n" + format_scoreboard(game))

    @tree.command(name="score", description="Show the score of this channel's game or the current game")
    @app_commands.describe(team="Team (defaults to this server's team)")
    @app_commands.autocomplete(team=team_autocomplete)
    async def score(interaction: discord.Interaction, team: Optional[str] = None):
        game = resolve_game(client, interaction, resolve_team(client, interaction, team))
        if game is None:
            await _reply(interaction, NO_CURRENT_GAME_MESSAGE, ephemeral=True)
            return
        await _reply(interaction, format_scoreboard(game))

    @tree.command(name="goals", description="List the goals of this channel's game or the current game")
    @app_commands.describe(team="Team (defaults to this server's team)")
    @app_commands.autocomplete(team=team_autocomplete)
    async def goals(interaction: discord.Interaction, team: Optional[str] = None):
        game = resolve_game(client, interaction, resolve_team(client, interaction, team))
        if game is None:
            await _reply(interaction, NO_CURRENT_GAME_MESSAGE, ephemeral=True)
            return
        await _reply(interaction, format_goals_list(game))

    @tree.command(name="subscribe", description="Follow a team: game day channels here, or your default team in DMs")
    @app_commands.describe(team="Team to follow")
    @app_commands.autocomplete(team=team_autocomplete)
    @app_commands.default_permissions(manage_channels=True)
    async def subscribe(interaction: discord.Interaction, team: str):
        resolved = find_team(team)
        if resolved is None:
            await _reply(interaction, UNKNOWN_TEAM_MESSAGE.format(team), ephemeral=True)
            return
        if interaction.guild is None:
            client.preferences.set_team(interaction.user, resolved)
            await _reply(interaction, f"✅ Your team is now **{resolved.full_name}**.", ephemeral=True)
            return
        client.scheduler.subscribe(resolved, interaction.guild)
        await _reply(interaction, f"✅ This server is now subscribed to **{resolved.full_name}** games.")

    @tree.command(name="unsubscribe", description="Stop following a team")
    @app_commands.describe(team="Team to stop following")
    @app_commands.autocomplete(team=team_autocomplete)
    @app_commands.default_permissions(manage_channels=True)
    async def unsubscribe(interaction: discord.Interaction, team: str):
        resolved = find_team(team)
        if resolved is None:
            await _reply(interaction, UNKNOWN_TEAM_MESSAGE.format(team), ephemeral=True)
            return
        if interaction.guild is None:
            if client.preferences.unsubscribe(resolved, interaction.user):
                await _reply(interaction, f"✅ **{resolved.full_name}** is no longer your team.", ephemeral=True)
            else:
                await _reply(interaction, f"**{resolved.full_name}** is not your team.", ephemeral=True)
            return
        removed = client.scheduler.unsubscribe(resolved, interaction.guild)
        if removed:
            await _reply(interaction, f"✅ This server is no longer subscribed to **{resolved.full_name}**.")
        else:
            await _reply(interaction, f"This server was not subscribed to **{resolved.full_name}**.",
                         ephemeral=True)

    @tree.command(name="subscribers", description="Show how many servers follow a team")
    @app_commands.describe(team="Team")
    @app_commands.autocomplete(team=team_autocomplete)
    async def subscribers(interaction: discord.Interaction, team: str):
        resolved = find_team(team)
        if resolved is None:
            await _reply(interaction, UNKNOWN_TEAM_MESSAGE.format(team), ephemeral=True)
            return
        targets = client.scheduler.list_subscribers(resolved)
        servers = len({t.id for t in targets})
        here = interaction.guild is not None and any(t.id == interaction.guild.id for t in targets)
        text = f"**{resolved.full_name}** is followed by {servers} server(s)."
        if here:
            text += " This server is one of them."
        await _reply(interaction, text, ephemeral=True)

    @tree.command(name="about", description="About this bot")
    async def about(interaction: discord.Interaction):
        await _reply(
            interaction,
            "Creates a channel for every game of the teams this server follows, "
            "posts goals as they happen and cleans the channels up afterwards.\n"
            f"*{SUPPORT_MESSAGE}*",
            ephemeral=True
        )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    'setup_commands',
    'resolve_team',
    'resolve_game',
    'team_autocomplete',
]
