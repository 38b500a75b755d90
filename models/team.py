"""
League team reference data.

Teams are a closed set with fixed metadata, so they are modelled as an Enum.
"""

from enum import Enum
from typing import List, Optional

import pytz
from rapidfuzz import fuzz, process, utils as fuzz_utils


class Team(Enum):
    """NHL teams: (id, code, location, name, timezone)"""
    NEW_JERSEY_DEVILS = (1, "NJD", "New Jersey", "Devils", "America/New_York")
    NEW_YORK_ISLANDERS = (2, "NYI", "New York", "Islanders", "America/New_York")
    NEW_YORK_RANGERS = (3, "NYR", "New York", "Rangers", "America/New_York")
    PHILADELPHIA_FLYERS = (4, "PHI", "Philadelphia", "Flyers", "America/New_York")
    PITTSBURGH_PENGUINS = (5, "PIT", "Pittsburgh", "Penguins", "America/New_York")
    BOSTON_BRUINS = (6, "BOS", "Boston", "Bruins", "America/New_York")
    BUFFALO_SABRES = (7, "BUF", "Buffalo", "Sabres", "America/New_York")
    MONTREAL_CANADIENS = (8, "MTL", "Montréal", "Canadiens", "America/Montreal")
    OTTAWA_SENATORS = (9, "OTT", "Ottawa", "Senators", "America/Toronto")
    TORONTO_MAPLE_LEAFS = (10, "TOR", "Toronto", "Maple Leafs", "America/Toronto")
    CAROLINA_HURRICANES = (12, "CAR", "Carolina", "Hurricanes", "America/New_York")
    FLORIDA_PANTHERS = (13, "FLA", "Florida", "Panthers", "America/New_York")
    TAMPA_BAY_LIGHTNING = (14, "TBL", "Tampa Bay", "Lightning", "America/New_York")
    WASHINGTON_CAPITALS = (15, "WSH", "Washington", "Capitals", "America/New_York")
    CHICAGO_BLACKHAWKS = (16, "CHI", "Chicago", "Blackhawks", "America/Chicago")
    DETROIT_RED_WINGS = (17, "DET", "Detroit", "Red Wings", "America/Detroit")
    NASHVILLE_PREDATORS = (18, "NSH", "Nashville", "Predators", "America/Chicago")
    ST_LOUIS_BLUES = (19, "STL", "St. Louis", "Blues", "America/Chicago")
    CALGARY_FLAMES = (20, "CGY", "Calgary", "Flames", "America/Edmonton")
    COLORADO_AVALANCHE = (21, "COL", "Colorado", "Avalanche", "America/Denver")
    EDMONTON_OILERS = (22, "EDM", "Edmonton", "Oilers", "America/Edmonton")
    VANCOUVER_CANUCKS = (23, "VAN", "Vancouver", "Canucks", "America/Vancouver")
    ANAHEIM_DUCKS = (24, "ANA", "Anaheim", "Ducks", "America/Los_Angeles")
    DALLAS_STARS = (25, "DAL", "Dallas", "Stars", "America/Chicago")
    LOS_ANGELES_KINGS = (26, "LAK", "Los Angeles", "Kings", "America/Los_Angeles")
    SAN_JOSE_SHARKS = (28, "SJS", "San Jose", "Sharks", "America/Los_Angeles")
    COLUMBUS_BLUE_JACKETS = (29, "CBJ", "Columbus", "Blue Jackets", "America/New_York")
    MINNESOTA_WILD = (30, "MIN", "Minnesota", "Wild", "America/Chicago")
    WINNIPEG_JETS = (52, "WPG", "Winnipeg", "Jets", "America/Winnipeg")
    ARIZONA_COYOTES = (53, "ARI", "Arizona", "Coyotes", "America/Phoenix")
    VEGAS_GOLDEN_KNIGHTS = (54, "VGK", "Vegas", "Golden Knights", "America/Los_Angeles")
    SEATTLE_KRAKEN = (55, "SEA", "Seattle", "Kraken", "America/Los_Angeles")

    def __init__(self, team_id: int, code: str, location: str, team_name: str, timezone_name: str):
        self.id = team_id
        self.code = code
        self.location = location
        self.team_name = team_name
        self.timezone_name = timezone_name

    @property
    def full_name(self) -> str:
        return f"{self.location} {self.team_name}"

    @property
    def timezone(self):
        return pytz.timezone(self.timezone_name)

    def __str__(self) -> str:
        return self.full_name

    @classmethod
    def parse(cls, team_id: int) -> "Team":
        """Get team by NHL API id

        Raises:
            ValueError: if no team has that id
        """
        for team in cls:
            if team.id == team_id:
                return team
        raise ValueError(f"No team with id [{team_id}]")

    @classmethod
    def from_code(cls, code: str) -> Optional["Team"]:
        """Get team by three-letter code (case insensitive), None if unknown"""
        if not code:
            return None
        code = code.strip().upper()
        for team in cls:
            if team.code == code:
                return team
        return None


def _search_labels() -> dict:
    labels = {}
    for team in Team:
        labels[team.full_name] = team
        labels[team.code] = team
    return labels


def search_teams(query: str, limit: int = 25) -> List[Team]:
    """
    Fuzzy search teams by name or code

    Args:
        query: Search query
        limit: Max results to return

    Returns:
        List of matching teams, best match first, without duplicates
    """
    if not query:
        return list(Team)[:limit]

    labels = _search_labels()
    results = process.extract(
        query,
        list(labels.keys()),
        scorer=fuzz.WRatio,
        processor=fuzz_utils.default_process,
        limit=limit * 2
    )

    teams = []
    for label, score, _ in results:
        team = labels[label]
        if score > 50 and team not in teams:
            teams.append(team)
    return teams[:limit]


def find_team(query: str) -> Optional[Team]:
    """Resolve user input to a single team: exact code first, then best fuzzy match"""
    team = Team.from_code(query)
    if team:
        return team
    matches = search_teams(query, limit=1)
    return matches[0] if matches else None
