"""Tests for GameScheduler: latest games, trackers, channel cleanup and queries."""

import asyncio

import pytest

from conftest import FakeGuild, FakeTracker, build_snapshot
from managers.scheduler import GameScheduler
from models.game import GameStatus
from models.subscriptions import SubscriptionRegistry
from models.team import Team
from utils.error_handling import FetchError

VAN = Team.VANCOUVER_CANUCKS
CGY = Team.CALGARY_FLAMES
EDM = Team.EDMONTON_OILERS


def _season():
    return [
        build_snapshot(99, "2016-10-09T02:00:00Z", away=VAN, home=CGY, status="FINAL", away_score=1, home_score=3),
        build_snapshot(100, "2016-10-11T02:00:00Z", away=CGY, home=VAN, status="FINAL", away_score=2, home_score=4),
        build_snapshot(101, "2016-10-13T02:00:00Z", away=VAN, home=EDM, status="IN_PROGRESS", away_score=1),
        build_snapshot(102, "2016-10-15T02:00:00Z", away=EDM, home=VAN, status="PREVIEW"),
        build_snapshot(103, "2016-10-17T02:00:00Z", away=VAN, home=CGY, status="PREVIEW"),
    ]


def _make_scheduler(schedule_source, channel_manager, teams=(VAN,), registry=None):
    return GameScheduler(
        schedule_source,
        channel_manager,
        registry or SubscriptionRegistry(),
        teams=list(teams),
        season_start="2016-08-01",
        season_end="2017-06-15",
        update_rate=0.01,
        tracker_factory=FakeTracker,
    )


def _pks(games):
    return [game.game_pk for game in games]


def _finish(scheduler, game_pk):
    """Mark a tracked game final, as its tracker would"""
    tracker = next(t for t in scheduler.get_game_trackers() if t.game.game_pk == game_pk)
    game = tracker.game
    tracker.game.update(build_snapshot(game_pk, "2016-10-13T02:00:00Z", away=game.away_team,
                                       home=game.home_team, status="FINAL", away_score=3))
    tracker.finished = True
    return tracker


class TestInitialize:
    def test_loads_sorted_catalogue(self, schedule_source, channel_manager):
        schedule_source.schedule = list(reversed(_season()))
        scheduler = _make_scheduler(schedule_source, channel_manager)

        asyncio.run(scheduler.initialize())

        assert _pks(scheduler.get_games()) == [99, 100, 101, 102, 103]
        assert schedule_source.schedule_calls == [(VAN, "2016-08-01", "2017-06-15")]

    def test_all_teams_use_one_league_request(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        scheduler = _make_scheduler(schedule_source, channel_manager, teams=list(Team))

        asyncio.run(scheduler.initialize())

        assert schedule_source.schedule_calls == [(None, "2016-08-01", "2017-06-15")]

    def test_duplicate_games_across_teams_kept_once(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        scheduler = _make_scheduler(schedule_source, channel_manager, teams=(VAN, CGY))

        asyncio.run(scheduler.initialize())

        assert _pks(scheduler.get_games()) == [99, 100, 101, 102, 103]

    def test_window_prefers_current_game(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        scheduler = _make_scheduler(schedule_source, channel_manager)

        asyncio.run(scheduler.initialize())

        assert _pks(scheduler.get_latest_games(VAN)) == [100, 101]

    def test_window_falls_back_to_next_game(self, schedule_source, channel_manager):
        season = _season()
        season[2] = build_snapshot(101, "2016-10-13T02:00:00Z", away=VAN, home=EDM, status="PREVIEW")
        schedule_source.schedule = season
        scheduler = _make_scheduler(schedule_source, channel_manager)

        asyncio.run(scheduler.initialize())

        assert _pks(scheduler.get_latest_games(VAN)) == [100, 101]
        assert scheduler.get_latest_games(VAN)[1].status == GameStatus.PREVIEW

    def test_window_never_exceeds_two(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        scheduler = _make_scheduler(schedule_source, channel_manager, teams=list(Team))

        asyncio.run(scheduler.initialize())

        for team in Team:
            assert len(scheduler.get_latest_games(team)) <= 2
        assert scheduler.get_latest_games(Team.SEATTLE_KRAKEN) == []

    def test_unparseable_games_skipped(self, schedule_source, channel_manager):
        exhibition = build_snapshot(5, "2016-09-20T02:00:00Z", away=VAN, home=CGY, status="FINAL")
        exhibition["teams"]["home"]["team"]["id"] = 87
        schedule_source.schedule = [exhibition] + _season()
        scheduler = _make_scheduler(schedule_source, channel_manager)

        asyncio.run(scheduler.initialize())

        assert 5 not in _pks(scheduler.get_games())

    def test_fetch_failure_propagates(self, schedule_source, channel_manager):
        schedule_source.schedule_error = FetchError("down")
        scheduler = _make_scheduler(schedule_source, channel_manager)

        with pytest.raises(FetchError):
            asyncio.run(scheduler.initialize())


class TestTrackers:
    def test_start_trackers_only_for_unfinished_games(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        scheduler = _make_scheduler(schedule_source, channel_manager)

        async def run():
            await scheduler.initialize()
            await scheduler.start_trackers()

        asyncio.run(run())

        trackers = scheduler.get_game_trackers()
        assert [t.game.game_pk for t in trackers] == [101]
        assert trackers[0].start_count == 1

    def test_start_trackers_twice_keeps_one_tracker(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        scheduler = _make_scheduler(schedule_source, channel_manager)

        async def run():
            await scheduler.initialize()
            await scheduler.start_trackers()
            await scheduler.start_trackers()

        asyncio.run(run())

        trackers = scheduler.get_game_trackers()
        assert len(trackers) == 1
        assert trackers[0].start_count == 1

    def test_shared_game_gets_one_tracker(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        scheduler = _make_scheduler(schedule_source, channel_manager, teams=(VAN, EDM))

        async def run():
            await scheduler.initialize()
            await scheduler.start_trackers()

        asyncio.run(run())

        assert [t.game.game_pk for t in scheduler.get_game_trackers()] == [101]

    def test_get_game_tracker_returns_existing(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        scheduler = _make_scheduler(schedule_source, channel_manager)

        async def run():
            await scheduler.initialize()
            await scheduler.start_trackers()

        asyncio.run(run())

        existing = scheduler.get_game_trackers()[0]
        assert scheduler.get_game_tracker(existing.game) is existing
        next_game = scheduler.get_next_game(VAN)
        new = scheduler.get_game_tracker(next_game)
        assert new.start_count == 0
        assert new not in scheduler.get_game_trackers()

    def test_reap_keeps_running_trackers(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        scheduler = _make_scheduler(schedule_source, channel_manager)

        async def run():
            await scheduler.initialize()
            await scheduler.start_trackers()
            await scheduler.reap_trackers()

        asyncio.run(run())

        assert [t.game.game_pk for t in scheduler.get_game_trackers()] == [101]
        assert _pks(scheduler.get_latest_games(VAN)) == [100, 101]

    def test_reap_dedups_next_game_shared_by_both_teams(self, schedule_source, channel_manager):
        schedule_source.schedule = [
            build_snapshot(100, "2016-10-11T02:00:00Z", away=CGY, home=VAN, status="FINAL"),
            build_snapshot(101, "2016-10-13T02:00:00Z", away=VAN, home=CGY, status="IN_PROGRESS"),
            build_snapshot(102, "2016-10-15T02:00:00Z", away=CGY, home=VAN, status="PREVIEW"),
        ]
        scheduler = _make_scheduler(schedule_source, channel_manager, teams=(VAN, CGY))

        async def run():
            await scheduler.initialize()
            await scheduler.start_trackers()
            _finish(scheduler, 101)
            await scheduler.reap_trackers()

        asyncio.run(run())

        trackers = scheduler.get_game_trackers()
        assert [t.game.game_pk for t in trackers] == [102]
        assert trackers[0].start_count == 1
        assert _pks(scheduler.get_latest_games(VAN)) == [100, 101, 102]
        assert _pks(scheduler.get_latest_games(CGY)) == [100, 101, 102]


class TestReconciliationScenario:
    def test_finished_game_rolls_window_and_deletes_oldest_channel(self, schedule_source, channel_manager, guild):
        schedule_source.schedule = _season()
        registry = SubscriptionRegistry()
        registry.subscribe(VAN, guild)
        scheduler = _make_scheduler(schedule_source, channel_manager, registry=registry)

        async def setup():
            await scheduler.initialize()
            await scheduler.start_trackers()

        asyncio.run(setup())

        games = {g.game_pk: g for g in scheduler.get_games()}
        channel_manager.channels[guild.id] = [games[pk].channel_name() for pk in (100, 101)] + ["general"]
        assert _pks(scheduler.get_latest_games(VAN)) == [100, 101]

        _finish(scheduler, 101)
        asyncio.run(scheduler.reap_trackers())

        assert [t.game.game_pk for t in scheduler.get_game_trackers()] == [102]
        assert scheduler.get_game_trackers()[0].start_count == 1
        assert _pks(scheduler.get_latest_games(VAN)) == [100, 101, 102]

        asyncio.run(scheduler.evict_old_games())

        assert _pks(scheduler.get_latest_games(VAN)) == [101, 102]
        assert channel_manager.deleted == [(guild.id, games[100].channel_name())]
        assert channel_manager.channels[guild.id] == [games[101].channel_name(), "general"]

    def test_evict_without_subscribers_deletes_nothing(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        scheduler = _make_scheduler(schedule_source, channel_manager)

        async def run():
            await scheduler.initialize()
            await scheduler.start_trackers()
            _finish(scheduler, 101)
            await scheduler.reap_trackers()
            await scheduler.evict_old_games()

        asyncio.run(run())

        assert _pks(scheduler.get_latest_games(VAN)) == [101, 102]
        assert channel_manager.deleted == []

    def test_evict_keeps_channel_still_followed_through_other_team(self, schedule_source, channel_manager, guild):
        schedule_source.schedule = _season()
        registry = SubscriptionRegistry()
        registry.subscribe(VAN, guild)
        registry.subscribe(CGY, guild)
        scheduler = _make_scheduler(schedule_source, channel_manager, teams=(VAN, CGY), registry=registry)

        async def run():
            await scheduler.initialize()
            await scheduler.start_trackers()
            _finish(scheduler, 101)
            await scheduler.reap_trackers()
            await scheduler.evict_old_games()

        asyncio.run(run())

        # Game 100 left VAN's latest games but is still CGY's last game
        assert _pks(scheduler.get_latest_games(VAN)) == [101, 102]
        assert 100 in _pks(scheduler.get_latest_games(CGY))
        assert channel_manager.deleted == []

    def test_run_loop_reaps_and_evicts_until_stopped(self, schedule_source, channel_manager, guild):
        schedule_source.schedule = _season()
        registry = SubscriptionRegistry()
        registry.subscribe(VAN, guild)
        scheduler = _make_scheduler(schedule_source, channel_manager, registry=registry)

        async def run():
            await scheduler.initialize()
            await scheduler.start_trackers()
            _finish(scheduler, 101)
            task = asyncio.create_task(scheduler.run_loop(0.01))
            await asyncio.sleep(0.05)
            scheduler.stop_event.set()
            await asyncio.wait_for(task, timeout=1)

        asyncio.run(run())

        assert scheduler.is_stopped()
        assert _pks(scheduler.get_latest_games(VAN)) == [101, 102]

    def test_start_and_stop(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        scheduler = _make_scheduler(schedule_source, channel_manager)

        async def run():
            await scheduler.start()
            await scheduler.stop()

        asyncio.run(run())

        assert scheduler.is_stopped()
        assert [t.game.game_pk for t in scheduler.get_game_trackers()] == [101]

    def test_stop_waits_for_reaped_trackers_still_posting(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        scheduler = _make_scheduler(schedule_source, channel_manager)

        async def run():
            await scheduler.initialize()
            await scheduler.start_trackers()
            tracker = _finish(scheduler, 101)
            tracker.running = True
            await scheduler.reap_trackers()
            await scheduler.stop()
            return tracker

        tracker = asyncio.run(run())

        assert tracker not in scheduler.get_game_trackers()
        assert tracker.waited


class TestCleanupStaleChannels:
    def test_deletes_only_channels_of_games_outside_window(self, schedule_source, channel_manager, guild):
        schedule_source.schedule = _season()
        registry = SubscriptionRegistry()
        registry.subscribe(VAN, guild)
        scheduler = _make_scheduler(schedule_source, channel_manager, registry=registry)
        asyncio.run(scheduler.initialize())

        games = {g.game_pk: g for g in scheduler.get_games()}
        channel_manager.channels[guild.id] = [
            games[99].channel_name().upper(),
            games[100].channel_name(),
            games[101].channel_name(),
            "general",
        ]

        asyncio.run(scheduler.cleanup_stale_channels())

        assert channel_manager.deleted == [(guild.id, games[99].channel_name().upper())]
        assert channel_manager.channels[guild.id] == [
            games[100].channel_name(), games[101].channel_name(), "general"
        ]

    def test_unsubscribed_guilds_untouched(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        other = FakeGuild(2002)
        scheduler = _make_scheduler(schedule_source, channel_manager)
        asyncio.run(scheduler.initialize())
        stale = scheduler.get_games()[0].channel_name()
        channel_manager.channels[other.id] = [stale]

        asyncio.run(scheduler.cleanup_stale_channels())

        assert channel_manager.channels[other.id] == [stale]

    def test_keeps_channel_still_followed_through_other_team_after_restart(self, schedule_source, channel_manager, guild):
        season = _season()
        season[2] = build_snapshot(101, "2016-10-13T02:00:00Z", away=VAN, home=EDM, status="FINAL", away_score=3)
        schedule_source.schedule = season
        registry = SubscriptionRegistry()
        registry.subscribe(VAN, guild)
        registry.subscribe(CGY, guild)
        scheduler = _make_scheduler(schedule_source, channel_manager, teams=(VAN, CGY), registry=registry)
        asyncio.run(scheduler.initialize())

        games = {g.game_pk: g for g in scheduler.get_games()}
        channel_manager.channels[guild.id] = [games[99].channel_name(), games[100].channel_name()]
        assert _pks(scheduler.get_latest_games(VAN)) == [101, 102]
        assert _pks(scheduler.get_latest_games(CGY)) == [100, 103]

        asyncio.run(scheduler.cleanup_stale_channels())

        # Same outcome as eviction: game 100 is still CGY's last game
        assert channel_manager.channels[guild.id] == [games[100].channel_name()]
        assert channel_manager.deleted == [(guild.id, games[99].channel_name())]


class TestQueries:
    @pytest.fixture
    def scheduler(self, schedule_source, channel_manager):
        schedule_source.schedule = _season()
        scheduler = _make_scheduler(schedule_source, channel_manager)
        asyncio.run(scheduler.initialize())
        return scheduler

    def test_future_game(self, scheduler):
        assert scheduler.get_next_game(VAN).game_pk == 102
        assert scheduler.get_future_game(VAN, 1).game_pk == 103

    def test_future_game_index_clamped(self, scheduler):
        assert scheduler.get_future_game(VAN, 2).game_pk == 103
        assert scheduler.get_future_game(VAN, 50).game_pk == 103

    def test_postponed_game_is_not_next(self, schedule_source, channel_manager):
        season = _season()
        season[3] = build_snapshot(102, "2016-10-15T02:00:00Z", away=EDM, home=VAN, status="POSTPONED")
        schedule_source.schedule = season
        scheduler = _make_scheduler(schedule_source, channel_manager)
        asyncio.run(scheduler.initialize())

        assert scheduler.get_next_game(VAN).game_pk == 103
        assert scheduler.get_last_game(VAN).game_pk == 100

    def test_previous_game(self, scheduler):
        assert scheduler.get_last_game(VAN).game_pk == 100
        assert scheduler.get_previous_game(VAN, 1).game_pk == 99

    def test_previous_game_index_clamped_to_earliest(self, scheduler):
        assert scheduler.get_previous_game(VAN, 2).game_pk == 99
        assert scheduler.get_previous_game(VAN, 50).game_pk == 99

    def test_current_game(self, scheduler):
        assert scheduler.get_current_game(VAN).game_pk == 101
        assert scheduler.get_current_game(CGY) is None

    def test_unknown_team_returns_none(self, scheduler):
        assert scheduler.get_next_game(Team.SEATTLE_KRAKEN) is None
        assert scheduler.get_last_game(Team.SEATTLE_KRAKEN) is None
        assert scheduler.get_current_game(Team.SEATTLE_KRAKEN) is None
        assert scheduler.get_latest_games(Team.SEATTLE_KRAKEN) == []

    def test_find_game_by_channel_name(self, scheduler):
        game = scheduler.get_games()[2]
        assert scheduler.find_game_by_channel_name(game.channel_name().upper()) is game
        assert scheduler.find_game_by_channel_name("general") is None
        assert scheduler.find_game_by_channel_name("") is None

    def test_queries_do_not_mutate(self, scheduler):
        before = _pks(scheduler.get_games())
        scheduler.get_future_game(VAN, 10)
        scheduler.get_previous_game(VAN, 10)
        scheduler.get_games().clear()
        assert _pks(scheduler.get_games()) == before


class TestSubscriptions:
    def test_subscribe_allows_duplicates_and_lists_copy(self, schedule_source, channel_manager, guild):
        scheduler = _make_scheduler(schedule_source, channel_manager)

        scheduler.subscribe(VAN, guild)
        scheduler.subscribe(VAN, guild)
        subscribers = scheduler.list_subscribers(VAN)
        subscribers.clear()

        assert scheduler.list_subscribers(VAN) == [guild, guild]

    def test_unsubscribe(self, schedule_source, channel_manager, guild):
        scheduler = _make_scheduler(schedule_source, channel_manager)
        scheduler.subscribe(VAN, guild)

        assert scheduler.unsubscribe(VAN, guild) == 1
        assert scheduler.list_subscribers(VAN) == []
