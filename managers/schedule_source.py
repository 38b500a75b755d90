"""
NHL Stats API client.

Fetches season schedules and single-game refreshes with bounded retries.
Every failure that survives the retry budget surfaces as FetchError.
"""

import asyncio
from typing import List, Optional

import aiohttp

from config import config
from models.team import Team
from utils.error_handling import FetchError, SnapshotError, is_retryable_error


class ScheduleSource:
    """Read-only access to the NHL schedule endpoint"""

    def __init__(self, base_url: str = None, max_retries: int = None,
                 retry_delay: float = None, timeout: int = None):
        self.base_url = (base_url or config.NHL_API_URL).rstrip('/')
        self.max_retries = max_retries if max_retries is not None else config.HTTP_REQUEST_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else config.HTTP_RETRY_DELAY
        self.timeout = timeout or config.HTTP_TIMEOUT

    async def get_schedule(self, team: Optional[Team], start_date: str, end_date: str) -> List[dict]:
        """Get every game snapshot for a team (or the whole league) between two dates

        Args:
            team: Team to filter on, None for all teams
            start_date: First day, YYYY-MM-DD
            end_date: Last day, YYYY-MM-DD

        Returns:
            Game snapshots ordered by date, as returned by the API

        Raises:
            FetchError: transport failure after all retries, or unexpected schema
        """
        params = {
            "startDate": start_date,
            "endDate": end_date,
            "expand": "schedule.scoringplays",
        }
        if team is not None:
            params["teamId"] = str(team.id)

        data = await self._get_json("/schedule", params)
        try:
            return [game for date in data["dates"] for game in date["games"]]
        except (KeyError, TypeError) as e:
            raise SnapshotError(f"Unexpected schedule response: {e}") from e

    async def get_game(self, game_pk: int) -> dict:
        """Get the current snapshot of a single game

        Raises:
            FetchError: transport failure after all retries, or unexpected schema
        """
        params = {
            "gamePk": str(game_pk),
            "expand": "schedule.scoringplays",
        }
        data = await self._get_json("/schedule", params)
        try:
            return data["dates"][0]["games"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise SnapshotError(f"Unexpected response for game [{game_pk}]: {e}") from e

    async def _get_json(self, path: str, params: dict) -> dict:
        """GET with retry logic for transient errors"""
        url = f"{self.base_url}{path}"
        attempts = max(1, self.max_retries)
        last_error = None

        for attempt in range(attempts):
            try:
                return await self._request(url, params)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = e
            except FetchError as e:
                if not is_retryable_error(e):
                    raise
                last_error = e

            if attempt + 1 < attempts:
                print(f"⚠️ Request to {path} failed: {last_error}. Retrying in {self.retry_delay}s... "
                      f"({attempt + 1}/{attempts})")
                await asyncio.sleep(self.retry_delay)

        raise FetchError(f"Failed to get {url} after {attempts} attempts: {last_error}")

    async def _request(self, url: str, params: dict) -> dict:
        """Single GET attempt"""
        async with aiohttp.ClientSession() as session:
            async with session.get(
                url,
                params=params,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                if response.status == 200:
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise SnapshotError(f"Invalid JSON from {url}: {e}") from e
                raise FetchError(f"API returned status {response.status}")
