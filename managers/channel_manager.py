"""
Discord channel operations for game day channels.

Channels are looked up by name inside a guild (the subscription target).
Deleting a channel that is already gone is not an error.
"""

from typing import List, Optional

import discord

from config import config
from utils.error_handling import log_error


class ChannelManager:
    """Create, delete, list and post to game day channels in a guild"""

    def __init__(self, category_name: str = None):
        self.category_name = category_name or config.GAME_DAY_CATEGORY

    def find_channel(self, guild: discord.Guild, name: str) -> Optional[discord.TextChannel]:
        for channel in guild.text_channels:
            if channel.name.lower() == name.lower():
                return channel
        return None

    async def _get_category(self, guild: discord.Guild) -> Optional[discord.CategoryChannel]:
        category = discord.utils.get(guild.categories, name=self.category_name)
        if category:
            return category
        try:
            return await guild.create_category(self.category_name)
        except discord.HTTPException as e:
            log_error(e, "Creating game day category", {"guild": guild.id})
            return None

    async def create_channel(self, guild: discord.Guild, name: str, topic: str = None) -> Optional[discord.TextChannel]:
        """Create the channel unless it already exists

        Returns:
            The created channel, or None if it existed or creation failed
        """
        if self.find_channel(guild, name):
            return None
        category = await self._get_category(guild)
        try:
            channel = await guild.create_text_channel(name, category=category, topic=topic)
            print(f"✅ Created channel #{name} in {guild.name}")
            return channel
        except discord.HTTPException as e:
            log_error(e, "Creating game day channel", {"guild": guild.id, "channel": name})
            return None

    async def delete_channel(self, guild: discord.Guild, name: str) -> bool:
        """Delete every channel called name in the guild

        Returns:
            True if a channel was deleted; False if none existed
        """
        deleted = False
        for channel in list(guild.text_channels):
            if channel.name.lower() != name.lower():
                continue
            try:
                await channel.delete(reason="Game is no longer in the latest games")
                print(f"🗑️ Deleted channel #{channel.name} in {guild.name}")
                deleted = True
            except discord.NotFound:
                # Already gone
                pass
            except discord.HTTPException as e:
                log_error(e, "Deleting game day channel", {"guild": guild.id, "channel": name})
        return deleted

    async def list_channels(self, guild: discord.Guild) -> List[str]:
        return [channel.name for channel in guild.text_channels]

    async def send_message(self, guild: discord.Guild, name: str, text: str) -> bool:
        """Post text to the named channel of the guild

        Returns:
            True if sent
        """
        channel = self.find_channel(guild, name)
        if channel is None:
            return False
        try:
            await channel.send(text)
            return True
        except discord.HTTPException as e:
            log_error(e, "Sending game day message", {"guild": guild.id, "channel": name})
            return False
