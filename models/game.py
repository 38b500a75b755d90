"""
Game state model.

A Game has a fixed identity (game_pk, date, teams) and derived state
(scores, status, scoring events) that is replaced wholesale on every update.
"""

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from models.team import Team
from utils.error_handling import SnapshotError
from utils.timestamp import parse_nhl_date, to_local


class GameStatus(Enum):
    PREVIEW = "Preview"
    IN_PROGRESS = "In Progress"
    FINAL = "Final"
    POSTPONED = "Postponed"

    @classmethod
    def parse(cls, status_code) -> "GameStatus":
        """Map an NHL API statusCode to a GameStatus

        1 Scheduled, 2 Pre-Game, 8 Time TBD -> PREVIEW
        3 In Progress, 4 In Progress (Critical) -> IN_PROGRESS
        5 Game Over, 6 Final, 7 Final -> FINAL
        9 Postponed -> POSTPONED
        """
        code = int(status_code)
        if code in (1, 2, 8):
            return cls.PREVIEW
        if code in (3, 4):
            return cls.IN_PROGRESS
        if code in (5, 6, 7):
            return cls.FINAL
        if code == 9:
            return cls.POSTPONED
        raise ValueError(f"Unknown status code [{status_code}]")


@dataclass(frozen=True)
class GameEvent:
    """One scoring play"""
    id: int
    period: int
    period_label: str
    period_time: str
    team: Team
    description: str

    @classmethod
    def parse(cls, json_event: dict) -> "GameEvent":
        about = json_event["about"]
        return cls(
            id=int(about["eventId"]),
            period=int(about["period"]),
            period_label=about.get("ordinalNum", str(about["period"])),
            period_time=about["periodTime"],
            team=Team.parse(int(json_event["team"]["id"])),
            description=json_event["result"]["description"],
        )


class Game:
    """One scheduled or played NHL game"""

    def __init__(self, date: datetime.datetime, game_pk: int, away_team: Team, home_team: Team,
                 away_score: int = 0, home_score: int = 0,
                 status: GameStatus = GameStatus.PREVIEW, events: List[GameEvent] = None):
        self.date = date
        self.game_pk = game_pk
        self.away_team = away_team
        self.home_team = home_team
        self.away_score = away_score
        self.home_score = home_score
        self.status = status
        self._events: Tuple[GameEvent, ...] = tuple(events or ())

    @classmethod
    def parse(cls, snapshot: dict) -> "Game":
        """Create a Game from a schedule snapshot

        Raises:
            SnapshotError: if the snapshot is missing fields or has unknown teams
        """
        try:
            date = parse_nhl_date(snapshot["gameDate"])
            game_pk = int(snapshot["gamePk"])
            away_team = Team.parse(int(snapshot["teams"]["away"]["team"]["id"]))
            home_team = Team.parse(int(snapshot["teams"]["home"]["team"]["id"]))
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"Malformed game snapshot: {e}") from e

        game = cls(date, game_pk, away_team, home_team)
        game.update(snapshot)
        return game

    def update(self, snapshot: dict):
        """Replace scores, status and events with the snapshot's

        Everything is parsed before anything is assigned, so a malformed
        snapshot leaves the game untouched.

        Raises:
            SnapshotError: if the snapshot is malformed or for another game
        """
        try:
            if int(snapshot["gamePk"]) != self.game_pk:
                raise ValueError(f"snapshot is for game [{snapshot['gamePk']}]")
            away_score = int(snapshot["teams"]["away"]["score"])
            home_score = int(snapshot["teams"]["home"]["score"])
            status = GameStatus.parse(snapshot["status"]["statusCode"])
            events = tuple(GameEvent.parse(play) for play in snapshot.get("scoringPlays", []))
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"Malformed snapshot for game [{self.game_pk}]: {e}") from e

        self.away_score = away_score
        self.home_score = home_score
        self.status = status
        self._events = events

    @property
    def events(self) -> List[GameEvent]:
        return list(self._events)

    @property
    def teams(self) -> List[Team]:
        return [self.home_team, self.away_team]

    def contains_team(self, team: Team) -> bool:
        return self.away_team == team or self.home_team == team

    def is_terminal(self) -> bool:
        """Final or postponed: nothing more to poll for"""
        return self.status in (GameStatus.FINAL, GameStatus.POSTPONED)

    def winner(self) -> Optional[Team]:
        if self.status != GameStatus.FINAL or self.home_score == self.away_score:
            return None
        return self.home_team if self.home_score > self.away_score else self.away_team

    def channel_name(self) -> str:
        """Discord channel name for this game, e.g. "van-vs-cgy-16-10-15"

        The date is taken in the home team's timezone so the name is the
        local game day and never changes between runs.
        """
        local_date = to_local(self.date, self.home_team.timezone)
        return f"{self.away_team.code}-vs-{self.home_team.code}-{local_date:%y-%m-%d}".lower()

    def same_game(self, other: "Game") -> bool:
        """Identity comparison, used for tracker and window dedup"""
        return other is not None and self.game_pk == other.game_pk

    def __eq__(self, other):
        # Full structural equality; identity checks go through same_game()
        if not isinstance(other, Game):
            return NotImplemented
        return (self.date == other.date
                and self.game_pk == other.game_pk
                and self.away_team == other.away_team
                and self.home_team == other.home_team
                and self.away_score == other.away_score
                and self.home_score == other.home_score
                and self.status == other.status
                and self._events == other._events)

    def __hash__(self):
        return hash(self.game_pk)

    def __repr__(self):
        return (f"Game(game_pk={self.game_pk}, date={self.date.isoformat()}, "
                f"away={self.away_team.code} {self.away_score}, "
                f"home={self.home_team.code} {self.home_score}, status={self.status.name})")
