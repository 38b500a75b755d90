"""
Game tracker - polls one game until it is final.

Each tracker runs as its own asyncio task. While running it keeps the
game's channel present in every subscribed guild, refreshes the game from
the schedule source and posts new goals and status changes.
"""

import asyncio
import datetime
from typing import List, Optional, Tuple

from config import config
from models.game import Game, GameStatus
from models.subscriptions import SubscriptionRegistry
from models.team import Team
from managers.channel_manager import ChannelManager
from managers.schedule_source import ScheduleSource
from utils.error_handling import FetchError, log_error
from utils.timestamp import now_utc
from utils.formatting import (
    format_details_message,
    format_final_message,
    format_goal_message,
    format_postponed_message,
    format_start_message,
)


class GameTracker:
    """Poller bound to a single game

    Two trackers are equal when they track the same game_pk, so a tracker
    set keyed on trackers never holds two pollers for one game.
    """

    def __init__(self, game: Game, schedule_source: ScheduleSource, channel_manager: ChannelManager,
                 subscriptions: SubscriptionRegistry, stop_event: asyncio.Event = None,
                 poll_rate: float = None, idle_poll_rate: float = None):
        self.game = game
        self.schedule_source = schedule_source
        self.channel_manager = channel_manager
        self.subscriptions = subscriptions
        self.stop_event = stop_event or asyncio.Event()
        self.poll_rate = poll_rate if poll_rate is not None else config.TRACKER_POLL_RATE
        self.idle_poll_rate = idle_poll_rate if idle_poll_rate is not None else config.TRACKER_IDLE_POLL_RATE

        self._task: Optional[asyncio.Task] = None
        self._finished = False
        # Events already on the game when tracking starts are never announced
        self._seen_event_ids = {event.id for event in game.events}
        self._last_status = game.status
        self._channel_target_ids = set()

    # ------------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------------

    def start(self) -> bool:
        """Start polling in a background task

        Returns:
            False if this tracker was already started
        """
        if self._task is not None:
            return False
        self._task = asyncio.create_task(self._run(), name=f"game-tracker-{self.game.game_pk}")
        return True

    def is_started(self) -> bool:
        return self._task is not None

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_finished(self) -> bool:
        return self._finished

    async def wait(self):
        """Wait for the polling task to end"""
        if self._task is not None:
            await self._task

    async def _run(self):
        print(f"▶️ Tracking game {self.game.game_pk}: "
              f"{self.game.away_team.code} @ {self.game.home_team.code}")
        while not self._finished and not self.stop_event.is_set():
            try:
                await self.update()
            except Exception as e:
                log_error(e, "Game tracker poll", {"game_pk": self.game.game_pk})
            if self._finished:
                break
            if await self._sleep():
                break
        state = "finished" if self._finished else "stopped"
        print(f"⏹️ Tracker for game {self.game.game_pk} {state}")

    def poll_delay(self) -> float:
        """Seconds until the next poll: slow until shortly before puck drop"""
        if self.game.status == GameStatus.PREVIEW:
            lead = datetime.timedelta(seconds=config.TRACKER_PREGAME_LEAD)
            if now_utc() < self.game.date - lead:
                return max(self.poll_rate, self.idle_poll_rate)
        return self.poll_rate

    async def _sleep(self) -> bool:
        """Sleep until the next poll

        Returns:
            True if the stop event was set while sleeping
        """
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=self.poll_delay())
            return True
        except asyncio.TimeoutError:
            return False

    # ------------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------------

    async def update(self):
        """One poll: ensure channels, refresh the game, announce changes

        A failed fetch is logged and leaves the game as it was; the next
        poll tries again.
        """
        await self.setup_channels()

        try:
            snapshot = await self.schedule_source.get_game(self.game.game_pk)
            self.game.update(snapshot)
        except FetchError as e:
            log_error(e, "Refreshing game", {"game_pk": self.game.game_pk})
            return

        await self._announce_changes()

        if self.game.is_terminal():
            self._finished = True

    def targets(self) -> List[Tuple[object, Team]]:
        """Subscribed targets of either team, each once, with the team they follow"""
        seen = set()
        targets = []
        for team in self.game.teams:
            for target in self.subscriptions.list(team):
                if target.id in seen:
                    continue
                seen.add(target.id)
                targets.append((target, team))
        return targets

    async def setup_channels(self):
        """Create the game channel in subscribed guilds that don't have it yet"""
        name = self.game.channel_name()
        for target, team in self.targets():
            if target.id in self._channel_target_ids:
                continue
            channel = await self.channel_manager.create_channel(
                target, name, topic=f"{self.game.away_team.full_name} at {self.game.home_team.full_name}"
            )
            if channel is not None:
                await self.channel_manager.send_message(
                    target, name, format_details_message(self.game, team.timezone)
                )
            self._channel_target_ids.add(target.id)

    async def _announce_changes(self):
        messages = []

        status = self.game.status
        if status != self._last_status and status == GameStatus.IN_PROGRESS:
            messages.append(format_start_message(self.game))

        for event in self.game.events:
            if event.id not in self._seen_event_ids:
                self._seen_event_ids.add(event.id)
                messages.append(format_goal_message(event))

        if status != self._last_status and status == GameStatus.FINAL:
            messages.append(format_final_message(self.game))
        elif status != self._last_status and status == GameStatus.POSTPONED:
            messages.append(format_postponed_message(self.game))

        self._last_status = status

        if not messages:
            return
        name = self.game.channel_name()
        for target, _ in self.targets():
            for message in messages:
                await self.channel_manager.send_message(target, name, message)

    # ------------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------------

    def __eq__(self, other):
        if not isinstance(other, GameTracker):
            return NotImplemented
        return self.game.game_pk == other.game.game_pk

    def __hash__(self):
        return hash(self.game.game_pk)

    def __repr__(self):
        return f"GameTracker(game_pk={self.game.game_pk}, finished={self._finished})"
