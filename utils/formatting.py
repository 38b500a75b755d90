"""
Text formatting utilities for game day messages.

Provides the messages posted to game day channels and command replies,
and a fixed-width scoreboard block.
"""

from typing import List
from wcwidth import wcswidth

from models.game import Game, GameEvent, GameStatus
from utils.timestamp import format_local


def _display_width(text: str) -> int:
    width = wcswidth(text)
    return width if width != -1 else len(text)


def pad_right(text: str, width: int) -> str:
    """Left-align text to a display width, accounting for wide characters"""
    return text + ' ' * max(0, width - _display_width(text))


def format_details_message(game: Game, timezone) -> str:
    """Game preview: matchup and local start time

    Example:
        **Vancouver Canucks** vs **Calgary Flames** at Sunday 16/Oct/2016 07:00PM PDT
    """
    return (f"**{game.home_team.full_name}** vs **{game.away_team.full_name}** "
            f"at {format_local(game.date, timezone)}")


def format_score_message(game: Game) -> str:
    """Current score, e.g. "Vancouver **2** Calgary **1**" """
    return (f"{game.home_team.location} **{game.home_score}** "
            f"{game.away_team.location} **{game.away_score}**")


def format_goal_message(event: GameEvent) -> str:
    return (f"🚨 **{event.team.full_name}** goal! "
            f"({event.period_label} period, {event.period_time})\n{event.description}")


def format_start_message(game: Game) -> str:
    return f"🏒 Game has started! {game.away_team.full_name} at {game.home_team.full_name}"


def format_final_message(game: Game) -> str:
    winner = game.winner()
    lines = ["🏁 Game has ended.", f"Final score: {format_score_message(game)}"]
    if winner:
        lines.append(f"Winner: **{winner.full_name}**")
    return "\n".join(lines)


def format_postponed_message(game: Game) -> str:
    return f"⏸️ Game has been postponed: {game.away_team.full_name} at {game.home_team.full_name}"


def format_goals_list(game: Game) -> str:
    """All scoring plays, one per line, or a placeholder if none"""
    events = game.events
    if not events:
        return "No goals yet."
    return "\n".join(
        f"`{e.period_label} {e.period_time}` **{e.team.code}** {e.description}" for e in events
    )


def format_scoreboard(game: Game) -> str:
    """Fixed-width scoreboard code block

    Example:
        ```
        Team           Score
        VAN Canucks        2
        CGY Flames         1
        Final
        ```
    """
    name_width = 14
    rows: List[str] = [pad_right("Team", name_width) + " Score"]
    for team, score in ((game.away_team, game.away_score), (game.home_team, game.home_score)):
        label = f"{team.code} {team.team_name}"
        rows.append(pad_right(label, name_width) + f"{score:>6}")
    rows.append(game.status.value)
    return "```\n" + "\n".join(rows) + "\n```"


def format_status_line(game: Game, timezone) -> str:
    """One-line summary used by command replies"""
    if game.status == GameStatus.PREVIEW:
        return format_details_message(game, timezone)
    if game.status == GameStatus.POSTPONED:
        return f"Postponed: {game.away_team.full_name} at {game.home_team.full_name}"
    prefix = "Final" if game.status == GameStatus.FINAL else "Live"
    return f"{prefix}: {format_score_message(game)}"
