"""
Game Day bot entry point.

Creates a channel per game for every team a server subscribes to, posts
goals while the game is played and removes old game channels.
"""

import sys
import discord
from discord import app_commands

from config import config, PREFERENCES_FILE, SUBSCRIPTIONS_FILE
from cogs.game_day import setup_commands
from managers import ChannelManager, GameScheduler, ScheduleSource
from models import SubscriptionRegistry, Team
from utils import FetchError, log_error


def tracked_teams() -> list:
    """Teams from TRACKED_TEAM_IDS, or every team if unset"""
    teams = []
    for team_id in config.TRACKED_TEAM_IDS:
        try:
            teams.append(Team.parse(team_id))
        except ValueError as e:
            print(f"⚠️ Ignoring tracked team: {e}")
    return teams or list(Team)


class GameDayBot(discord.Client):
    """Discord client running the game scheduler"""

    def __init__(self, *, intents: discord.Intents):
        super().__init__(intents=intents)
        self.tree = app_commands.CommandTree(self)
        self.subscriptions = SubscriptionRegistry(SUBSCRIPTIONS_FILE)
        self.preferences = SubscriptionRegistry(PREFERENCES_FILE)
        self.scheduler = GameScheduler(
            ScheduleSource(),
            ChannelManager(),
            self.subscriptions,
            teams=tracked_teams()
        )
        self._scheduler_started = False

    async def setup_hook(self):
        """Setup hook called before connecting"""
        setup_commands(self)
        await self.tree.sync()
        print("✅ Commands synced to Discord")

    async def on_ready(self):
        """Called when bot is ready (and again after reconnects)"""
        print("=" * 50)
        print(f"✅ Bot ready! Logged in as {self.user}")
        print("=" * 50)

        if self._scheduler_started:
            return
        self._scheduler_started = True

        restored = self.subscriptions.restore(self.get_guild)
        print(f"✅ Restored {restored} subscription(s)")
        restored = self.preferences.restore(self.get_user)
        print(f"✅ Restored {restored} team preference(s)")

        try:
            await self.scheduler.start()
        except FetchError as e:
            log_error(e, "Loading season schedule")
            print("❌ Could not load the season schedule. Shutting down.")
            await self.close()

    async def on_guild_available(self, guild: discord.Guild):
        """Pick up subscriptions of a guild that was unavailable at startup"""
        adopted = self.subscriptions.adopt(guild)
        if adopted:
            print(f"✅ Restored {adopted} subscription(s) for {guild.name}")

    async def close(self):
        await self.scheduler.stop()
        await super().close()


intents = discord.Intents.default()
client = GameDayBot(intents=intents)


if __name__ == "__main__":
    if not config.DISCORD_BOT_TOKEN:
        print("ERROR: DISCORD_BOT_TOKEN environment variable is not set!")
        print("Please create a .env file with:")
        print("    DISCORD_BOT_TOKEN=your_bot_token_here")
        sys.exit(1)

    try:
        print("Starting bot...")
        client.run(config.DISCORD_BOT_TOKEN)
    except discord.LoginFailure:
        print("ERROR: Invalid Bot Token.")
        print("Please check your token at: https://discord.com/developers/applications")
