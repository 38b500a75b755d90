"""
Configuration module for the Game Day bot

This module centralizes all configuration constants, environment variables,
and file paths used throughout the bot.
"""

import os
from dataclasses import dataclass
from typing import List
from dotenv import load_dotenv

# ============================================================================
# ENVIRONMENT SETUP
# ============================================================================

# Load environment variables from .env file (use absolute path for hosting)
SCRIPT_DIR = os.path.dirname(os.path.realpath(__file__))
_ENV_FILE = os.path.join(SCRIPT_DIR, '.env')

load_dotenv(_ENV_FILE)

# ============================================================================
# FILE PATHS
# ============================================================================

SUBSCRIPTIONS_FILE = os.path.join(SCRIPT_DIR, "subscriptions.json")
# Team preferred by each user in private messages
PREFERENCES_FILE = os.path.join(SCRIPT_DIR, "preferences.json")

# Error logging
LOGS_DIR = os.path.join(SCRIPT_DIR, "logs")
os.makedirs(LOGS_DIR, exist_ok=True)

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def parse_int_list(env_var: str, default: list = None) -> list:
    """Parse comma-separated list of integers from environment variable"""
    value = os.getenv(env_var, "")
    if not value:
        return default or []
    try:
        return [int(x.strip()) for x in value.split(",") if x.strip()]
    except ValueError:
        return default or []


def parse_int(env_var: str, default: int) -> int:
    """Parse a single integer from environment variable"""
    try:
        return int(os.getenv(env_var, str(default)))
    except ValueError:
        return default


# ============================================================================
# BOT CONFIGURATION
# ============================================================================

@dataclass
class BotConfig:
    """Bot configuration constants"""
    DISCORD_BOT_TOKEN: str = None
    NHL_API_URL: str = 'https://statsapi.web.nhl.com/api/v1'
    SEASON_START_DATE: str = '2016-08-01'
    SEASON_END_DATE: str = '2017-06-15'
    TRACKED_TEAM_IDS: List[int] = None
    HTTP_REQUEST_RETRIES: int = 5
    HTTP_RETRY_DELAY: int = 2  # seconds
    HTTP_TIMEOUT: int = 15  # seconds
    SCHEDULER_UPDATE_RATE: int = 1800  # seconds, 30 minutes
    TRACKER_POLL_RATE: int = 5  # seconds
    TRACKER_IDLE_POLL_RATE: int = 600  # seconds, before the pre-game lead
    TRACKER_PREGAME_LEAD: int = 3600  # seconds before puck drop to poll at TRACKER_POLL_RATE
    GAME_DAY_CATEGORY: str = 'Game Day'

    def __post_init__(self):
        # Load from environment variables for security
        self.DISCORD_BOT_TOKEN = os.getenv('DISCORD_BOT_TOKEN', '')
        self.NHL_API_URL = os.getenv('NHL_API_URL', self.NHL_API_URL).rstrip('/')
        self.SEASON_START_DATE = os.getenv('SEASON_START_DATE', self.SEASON_START_DATE)
        self.SEASON_END_DATE = os.getenv('SEASON_END_DATE', self.SEASON_END_DATE)

        # Empty list means every team in the league
        self.TRACKED_TEAM_IDS = parse_int_list('TRACKED_TEAM_IDS')

        self.HTTP_REQUEST_RETRIES = parse_int('HTTP_REQUEST_RETRIES', self.HTTP_REQUEST_RETRIES)
        self.HTTP_RETRY_DELAY = parse_int('HTTP_RETRY_DELAY', self.HTTP_RETRY_DELAY)
        self.HTTP_TIMEOUT = parse_int('HTTP_TIMEOUT', self.HTTP_TIMEOUT)
        self.SCHEDULER_UPDATE_RATE = parse_int('SCHEDULER_UPDATE_RATE', self.SCHEDULER_UPDATE_RATE)
        self.TRACKER_POLL_RATE = parse_int('TRACKER_POLL_RATE', self.TRACKER_POLL_RATE)
        self.TRACKER_IDLE_POLL_RATE = parse_int('TRACKER_IDLE_POLL_RATE', self.TRACKER_IDLE_POLL_RATE)
        self.TRACKER_PREGAME_LEAD = parse_int('TRACKER_PREGAME_LEAD', self.TRACKER_PREGAME_LEAD)
        self.GAME_DAY_CATEGORY = os.getenv('GAME_DAY_CATEGORY', self.GAME_DAY_CATEGORY)


config = BotConfig()

# ============================================================================
# WINDOW SIZE
# ============================================================================

# Last finished game + current-or-next game
LATEST_GAMES_WINDOW = 2

# ============================================================================
# ABOUT
# ============================================================================

SUPPORT_MESSAGE = "Game data provided by the NHL Stats API"
