"""Models package - Teams, games and subscriptions"""

from .team import Team, search_teams, find_team
from .game import Game, GameEvent, GameStatus
from .subscriptions import SubscriptionRegistry

__all__ = [
    'Team',
    'search_teams',
    'find_team',
    'Game',
    'GameEvent',
    'GameStatus',
    'SubscriptionRegistry',
]
