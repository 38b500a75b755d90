"""
Game scheduler - owns the season's games and keeps game day channels in sync.

Startup:
    initialize()              load the season, build each team's latest games
    start_trackers()          one GameTracker per unfinished latest game
    cleanup_stale_channels()  delete channels of games no longer relevant

Then run_loop() repeats every update_rate seconds until stopped:
    reap_trackers()    drop finished trackers, queue each team's next game
    evict_old_games()  trim latest games back to 2, deleting their channels

All changes to the tracker set and the latest games happen under one lock.
"""

import asyncio
from typing import Callable, Dict, List, Optional

from config import config, LATEST_GAMES_WINDOW
from models.game import Game, GameStatus
from models.subscriptions import SubscriptionRegistry
from models.team import Team
from managers.channel_manager import ChannelManager
from managers.game_tracker import GameTracker
from managers.schedule_source import ScheduleSource
from utils.error_handling import SnapshotError, log_error


class GameScheduler:
    """Season catalogue, per-team latest games and the active trackers"""

    def __init__(self, schedule_source: ScheduleSource, channel_manager: ChannelManager,
                 subscriptions: SubscriptionRegistry, teams: List[Team] = None,
                 season_start: str = None, season_end: str = None,
                 update_rate: float = None, tracker_poll_rate: float = None,
                 tracker_factory: Callable[[Game], GameTracker] = None):
        self.schedule_source = schedule_source
        self.channel_manager = channel_manager
        self.subscriptions = subscriptions
        self.teams = list(teams) if teams else list(Team)
        self.season_start = season_start or config.SEASON_START_DATE
        self.season_end = season_end or config.SEASON_END_DATE
        self.update_rate = update_rate if update_rate is not None else config.SCHEDULER_UPDATE_RATE
        self.tracker_poll_rate = tracker_poll_rate if tracker_poll_rate is not None else config.TRACKER_POLL_RATE
        self.tracker_factory = tracker_factory or self._create_tracker

        self.stop_event = asyncio.Event()
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

        self._games: List[Game] = []
        self._game_trackers: Dict[int, GameTracker] = {}
        # Reaped trackers may still be posting their final messages
        self._reaped_trackers: List[GameTracker] = []
        self._team_latest_games: Dict[Team, List[Game]] = {team: [] for team in self.teams}

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def start(self):
        """Load the season, start trackers, clean up and launch the loop

        Raises:
            FetchError: if the season could not be loaded
        """
        if self._task is not None:
            return
        await self.initialize()
        await self.start_trackers()
        await self.cleanup_stale_channels()
        self._task = asyncio.create_task(self.run_loop(self.update_rate), name="game-scheduler")
        print("✅ Game scheduler started")

    async def stop(self):
        """Ask the loop and every tracker to stop at their next sleep, then wait for them"""
        self.stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        trackers = list(self._game_trackers.values()) + self._reaped_trackers
        await asyncio.gather(*(tracker.wait() for tracker in trackers), return_exceptions=True)
        print("⏹️ Game scheduler stopped")

    def is_stopped(self) -> bool:
        return self.stop_event.is_set()

    async def initialize(self):
        """Load every game of the season and build each team's latest games

        Raises:
            FetchError: if any schedule request fails after retries
        """
        print(f"🔄 Retrieving games between {self.season_start} and {self.season_end}...")
        if set(self.teams) == set(Team):
            snapshots = await self.schedule_source.get_schedule(None, self.season_start, self.season_end)
        else:
            snapshots = []
            for team in self.teams:
                print(f"   Retrieving games of [{team.code}]")
                snapshots.extend(
                    await self.schedule_source.get_schedule(team, self.season_start, self.season_end)
                )

        games: Dict[int, Game] = {}
        for snapshot in snapshots:
            try:
                game = Game.parse(snapshot)
            except SnapshotError as e:
                # e.g. exhibition games against non-league teams
                log_error(e, "Parsing schedule game", {"gamePk": snapshot.get("gamePk")})
                continue
            games.setdefault(game.game_pk, game)

        async with self._lock:
            self._games = sorted(games.values(), key=lambda g: (g.date, g.game_pk))
            self._init_latest_games()
        print(f"✅ Retrieved all games: [{len(self._games)}]")

    def _init_latest_games(self):
        for team, latest_games in self._team_latest_games.items():
            latest_games.clear()
            last_game = self.get_last_game(team)
            if last_game is not None:
                latest_games.append(last_game)
            current_game = self.get_current_game(team) or self.get_next_game(team)
            if current_game is not None:
                latest_games.append(current_game)

    async def run_loop(self, period: float):
        """Reap trackers and evict old games every period seconds until stopped"""
        print("🔄 Started game scheduler loop")
        while not self.stop_event.is_set():
            try:
                await self.reap_trackers()
                await self.evict_old_games()
            except Exception as e:
                log_error(e, "Game scheduler pass")

            print(f"💤 Checking for finished games after [{period}]s")
            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=period)
            except asyncio.TimeoutError:
                pass

    # ========================================================================
    # TRACKERS
    # ========================================================================

    def _create_tracker(self, game: Game) -> GameTracker:
        return GameTracker(game, self.schedule_source, self.channel_manager, self.subscriptions,
                           stop_event=self.stop_event, poll_rate=self.tracker_poll_rate)

    def get_game_tracker(self, game: Game) -> GameTracker:
        """Existing tracker for the game, or a new unstarted one"""
        tracker = self._game_trackers.get(game.game_pk)
        if tracker is not None:
            return tracker
        return self.tracker_factory(game)

    def _ensure_tracker(self, game: Game, trackers: Dict[int, GameTracker]):
        """Start a tracker for game unless one is already in trackers or active"""
        if game.game_pk in trackers or game.game_pk in self._game_trackers:
            print(f"ℹ️ Tracker already active for game {game.game_pk}")
            return
        tracker = self.get_game_tracker(game)
        if not tracker.start():
            print(f"⚠️ Tracker for game {game.game_pk} was already started")
        trackers[game.game_pk] = tracker

    async def start_trackers(self):
        """Start a tracker for every unfinished game in any team's latest games"""
        print("🔄 Starting trackers...")
        async with self._lock:
            for latest_games in self._team_latest_games.values():
                for game in latest_games:
                    if not game.is_terminal():
                        self._ensure_tracker(game, self._game_trackers)

    async def reap_trackers(self):
        """Remove trackers of ended games and start trackers for the teams' next games"""
        async with self._lock:
            finished = [tracker for tracker in self._game_trackers.values()
                        if tracker.is_finished() or tracker.game.is_terminal()]
            new_trackers: Dict[int, GameTracker] = {}

            for tracker in finished:
                finished_game = tracker.game
                del self._game_trackers[finished_game.game_pk]
                self._reaped_trackers.append(tracker)
                print(f"🏁 Game is finished: {finished_game}")

                for team in finished_game.teams:
                    latest_games = self._team_latest_games.get(team)
                    if latest_games is None:
                        continue
                    next_game = self.get_next_game(team)
                    if next_game is None:
                        continue
                    if not any(next_game.same_game(game) for game in latest_games):
                        latest_games.append(next_game)
                    self._ensure_tracker(next_game, new_trackers)

            self._game_trackers.update(new_trackers)
            self._reaped_trackers = [t for t in self._reaped_trackers if t.is_running()]

    # ========================================================================
    # CHANNELS
    # ========================================================================

    def _in_other_latest_games(self, game: Game, target, team: Team) -> bool:
        """Whether another team the target follows still keeps this game"""
        for other_team, latest_games in self._team_latest_games.items():
            if other_team == team or not any(game.same_game(g) for g in latest_games):
                continue
            if any(t.id == target.id for t in self.subscriptions.list(other_team)):
                return True
        return False

    async def evict_old_games(self):
        """Trim each team's latest games back to the window size, oldest first

        The channels of evicted games are deleted in every guild subscribed
        to the team.
        """
        async with self._lock:
            for team, latest_games in self._team_latest_games.items():
                while len(latest_games) > LATEST_GAMES_WINDOW:
                    oldest_game = latest_games.pop(0)
                    print(f"🗑️ Removing oldest game [{oldest_game.game_pk}] for team [{team.code}]")
                    for target in self.subscriptions.list(team):
                        if self._in_other_latest_games(oldest_game, target, team):
                            continue
                        await self.channel_manager.delete_channel(target, oldest_game.channel_name())

    async def cleanup_stale_channels(self):
        """Delete game channels of subscribed guilds that aren't for a latest game

        Same rule as eviction: a channel stays while another team the guild
        follows still has the game in its latest games.
        """
        print("🧹 Cleaning up old channels...")
        async with self._lock:
            for team, latest_games in self._team_latest_games.items():
                targets = self.subscriptions.list(team)
                if not targets:
                    continue
                stale_names = {
                    game.channel_name()
                    for game in self._games
                    if game.contains_team(team)
                    and not any(game.same_game(latest) for latest in latest_games)
                }
                for target in targets:
                    for name in await self.channel_manager.list_channels(target):
                        game = self.find_game_by_channel_name(name)
                        if name.lower() not in stale_names or self._in_other_latest_games(game, target, team):
                            continue
                        await self.channel_manager.delete_channel(target, name)

    # ========================================================================
    # QUERIES
    # ========================================================================

    def _team_games(self, team: Team, status: GameStatus) -> List[Game]:
        return [game for game in self._games if game.contains_team(team) and game.status == status]

    def get_future_game(self, team: Team, index: int = 0) -> Optional[Game]:
        """Upcoming game of the team; index 0 is the next one

        An index past the end gives the last scheduled game.
        """
        future_games = self._team_games(team, GameStatus.PREVIEW)
        if not future_games:
            return None
        index = min(max(index, 0), len(future_games) - 1)
        return future_games[index]

    def get_next_game(self, team: Team) -> Optional[Game]:
        return self.get_future_game(team, 0)

    def get_previous_game(self, team: Team, index: int = 0) -> Optional[Game]:
        """Finished game of the team; index 0 is the most recent

        An index past the end gives the team's first finished game.
        """
        previous_games = self._team_games(team, GameStatus.FINAL)
        if not previous_games:
            return None
        index = min(max(index, 0), len(previous_games) - 1)
        return previous_games[len(previous_games) - 1 - index]

    def get_last_game(self, team: Team) -> Optional[Game]:
        return self.get_previous_game(team, 0)

    def get_current_game(self, team: Team) -> Optional[Game]:
        return next(
            (game for game in self._games
             if game.contains_team(team) and game.status == GameStatus.IN_PROGRESS),
            None
        )

    def find_game_by_channel_name(self, channel_name: str) -> Optional[Game]:
        """Game whose channel would be called channel_name (case insensitive)"""
        if not channel_name:
            return None
        channel_name = channel_name.lower()
        for game in self._games:
            if game.channel_name() == channel_name:
                return game
        return None

    def get_games(self) -> List[Game]:
        return list(self._games)

    def get_game_trackers(self) -> List[GameTracker]:
        return list(self._game_trackers.values())

    def get_latest_games(self, team: Team) -> List[Game]:
        return list(self._team_latest_games.get(team, []))

    # ========================================================================
    # SUBSCRIPTIONS
    # ========================================================================

    def subscribe(self, team: Team, target):
        self.subscriptions.subscribe(team, target)

    def unsubscribe(self, team: Team, target) -> int:
        return self.subscriptions.unsubscribe(team, target)

    def list_subscribers(self, team: Team) -> list:
        return self.subscriptions.list(team)
