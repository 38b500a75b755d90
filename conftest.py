"""Shared pytest fixtures and fakes for the game day bot."""

from typing import Dict, List

import pytest

from models.team import Team
from utils.error_handling import FetchError

STATUS_CODES = {"PREVIEW": "1", "IN_PROGRESS": "3", "FINAL": "7", "POSTPONED": "9"}


def build_play(event_id: int, team: Team, period: int = 1, period_time: str = "05:00",
               description: str = "Goal") -> dict:
    """NHL API scoring play"""
    ordinals = {1: "1st", 2: "2nd", 3: "3rd"}
    return {
        "about": {
            "eventId": event_id,
            "period": period,
            "periodTime": period_time,
            "ordinalNum": ordinals.get(period, "OT"),
        },
        "team": {"id": team.id, "name": team.full_name},
        "result": {"description": description},
    }


def build_snapshot(game_pk: int, game_date: str, away: Team = Team.VANCOUVER_CANUCKS,
                   home: Team = Team.CALGARY_FLAMES, away_score: int = 0, home_score: int = 0,
                   status: str = "PREVIEW", plays: List[dict] = None) -> dict:
    """NHL API schedule game entry"""
    return {
        "gamePk": game_pk,
        "gameDate": game_date,
        "status": {"statusCode": STATUS_CODES[status]},
        "teams": {
            "away": {"score": away_score, "team": {"id": away.id, "name": away.full_name}},
            "home": {"score": home_score, "team": {"id": home.id, "name": home.full_name}},
        },
        "scoringPlays": plays or [],
    }


class FakeGuild:
    def __init__(self, guild_id: int, name: str = None):
        self.id = guild_id
        self.name = name or f"guild-{guild_id}"

    def __repr__(self):
        return f"FakeGuild({self.id})"


class FakeUser:
    def __init__(self, user_id: int, name: str = None):
        self.id = user_id
        self.name = name or f"user-{user_id}"


class FakeScheduleSource:
    """Serves snapshots from memory; values that are exceptions get raised"""

    def __init__(self, schedule: List[dict] = None):
        self.schedule = schedule or []
        self.game_snapshots: Dict[int, object] = {}
        self.schedule_error: Exception = None
        self.schedule_calls = []
        self.game_calls = []

    async def get_schedule(self, team, start_date, end_date):
        self.schedule_calls.append((team, start_date, end_date))
        if self.schedule_error is not None:
            raise self.schedule_error
        if team is None:
            return list(self.schedule)
        return [s for s in self.schedule
                if team.id in (s["teams"]["away"]["team"]["id"], s["teams"]["home"]["team"]["id"])]

    async def get_game(self, game_pk):
        self.game_calls.append(game_pk)
        snapshot = self.game_snapshots.get(game_pk)
        if snapshot is None:
            raise FetchError(f"No snapshot for {game_pk}")
        if isinstance(snapshot, Exception):
            raise snapshot
        return snapshot


class FakeChannelManager:
    """Keeps channel names per guild id and records every call"""

    def __init__(self):
        self.channels: Dict[int, List[str]] = {}
        self.created = []
        self.deleted = []
        self.messages = []

    async def create_channel(self, guild, name, topic=None):
        names = self.channels.setdefault(guild.id, [])
        if name.lower() in (n.lower() for n in names):
            return None
        names.append(name)
        self.created.append((guild.id, name))
        return name

    async def delete_channel(self, guild, name):
        names = self.channels.get(guild.id, [])
        remaining = [n for n in names if n.lower() != name.lower()]
        deleted = len(remaining) != len(names)
        self.channels[guild.id] = remaining
        if deleted:
            self.deleted.append((guild.id, name))
        return deleted

    async def list_channels(self, guild):
        return list(self.channels.get(guild.id, []))

    async def send_message(self, guild, name, text):
        if name.lower() not in (n.lower() for n in self.channels.get(guild.id, [])):
            return False
        self.messages.append((guild.id, name, text))
        return True


class FakeTracker:
    """Stand-in for GameTracker that never polls"""

    def __init__(self, game):
        self.game = game
        self.start_count = 0
        self.finished = False
        self.running = False
        self.waited = False

    def start(self):
        self.start_count += 1
        return self.start_count == 1

    def is_running(self):
        return self.running

    def is_finished(self):
        return self.finished

    async def wait(self):
        self.waited = True

    def __eq__(self, other):
        return isinstance(other, FakeTracker) and self.game.game_pk == other.game.game_pk

    def __hash__(self):
        return hash(self.game.game_pk)


@pytest.fixture
def guild():
    return FakeGuild(1001, "Canucks Fans")


@pytest.fixture
def channel_manager():
    return FakeChannelManager()


@pytest.fixture
def schedule_source():
    return FakeScheduleSource()
