"""Managers package - Schedule source, channels, trackers and the scheduler"""

from .schedule_source import ScheduleSource
from .channel_manager import ChannelManager
from .game_tracker import GameTracker
from .scheduler import GameScheduler

__all__ = [
    'ScheduleSource',
    'ChannelManager',
    'GameTracker',
    'GameScheduler',
]
