"""
Team subscription registry.

Maps each team to the ordered list of targets (guilds, or users for a
private-message team preference) that follow it. Optionally persisted as
{team_code: [target_id, ...]} so subscriptions survive a restart.
"""

import os
import json
from typing import Dict, List, Optional

from models.team import Team
from utils.error_handling import log_error


class SubscriptionRegistry:
    """Team -> list of subscribed targets

    Targets are any object with an ``id`` (discord.Guild or discord.User in
    production). Duplicate subscriptions of the same target are kept.

    Saved ids that could not be resolved on restore stay pending: they are
    written back on every save and count for teams_for() until the target
    shows up again through adopt().
    """

    def __init__(self, storage_file: Optional[str] = None):
        self.storage_file = storage_file
        self._subscriptions: Dict[Team, list] = {team: [] for team in Team}
        self._pending_ids: Dict[Team, List[int]] = {team: [] for team in Team}

    def subscribe(self, team: Team, target):
        self._subscriptions[team].append(target)
        self.save()

    def unsubscribe(self, team: Team, target) -> int:
        """Remove every subscription of target to team

        Returns:
            Number of entries removed
        """
        removed = self._remove(team, target.id)
        if removed:
            self.save()
        return removed

    def set_team(self, target, team: Team):
        """Make team the only team target follows"""
        for other in Team:
            self._remove(other, target.id)
        self.subscribe(team, target)

    def _remove(self, team: Team, target_id: int) -> int:
        current = self._subscriptions[team]
        remaining = [t for t in current if t.id != target_id]
        pending = self._pending_ids[team]
        remaining_pending = [i for i in pending if i != target_id]
        self._subscriptions[team] = remaining
        self._pending_ids[team] = remaining_pending
        return len(current) - len(remaining) + len(pending) - len(remaining_pending)

    def list(self, team: Team) -> list:
        """Copy of the targets subscribed to team (empty for unknown teams)"""
        return list(self._subscriptions.get(team, []))

    def teams_for(self, target) -> List[Team]:
        """Teams the target is subscribed to, in league order"""
        return [team for team, targets in self._subscriptions.items()
                if any(t.id == target.id for t in targets)
                or target.id in self._pending_ids[team]]

    def subscribed_teams(self) -> List[Team]:
        return [team for team, targets in self._subscriptions.items() if targets]

    # ------------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------------

    def save(self):
        """Write target ids per team code to the storage file, pending ids included"""
        if not self.storage_file:
            return
        data = {}
        for team in Team:
            ids = [t.id for t in self._subscriptions[team]] + self._pending_ids[team]
            if ids:
                data[team.code] = ids
        try:
            with open(self.storage_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            log_error(e, "Saving subscriptions", {"file": self.storage_file})

    def load_saved_ids(self) -> Dict[Team, List[int]]:
        """Read the storage file: team -> target ids

        Unknown team codes are skipped. A missing or unreadable file
        gives an empty mapping.
        """
        if not self.storage_file or not os.path.exists(self.storage_file):
            return {}
        try:
            with open(self.storage_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log_error(e, "Loading subscriptions", {"file": self.storage_file})
            return {}

        saved = {}
        for code, ids in data.items():
            team = Team.from_code(code)
            if team:
                saved[team] = [int(i) for i in ids]
        return saved

    def restore(self, resolve_target) -> int:
        """Re-subscribe saved targets without rewriting the file

        Args:
            resolve_target: callable id -> target or None (e.g. client.get_guild)

        Returns:
            Number of subscriptions restored
        """
        restored = 0
        for team, ids in self.load_saved_ids().items():
            for target_id in ids:
                target = resolve_target(target_id)
                if target is None:
                    print(f"⚠️ Subscribed target {target_id} for {team.code} not available, keeping it pending")
                    self._pending_ids[team].append(target_id)
                    continue
                self._subscriptions[team].append(target)
                restored += 1
        return restored

    def adopt(self, target) -> int:
        """Turn pending ids of a target that became available into subscriptions

        Returns:
            Number of subscriptions adopted
        """
        adopted = 0
        for team, pending in self._pending_ids.items():
            count = pending.count(target.id)
            if not count:
                continue
            self._pending_ids[team] = [i for i in pending if i != target.id]
            self._subscriptions[team].extend([target] * count)
            adopted += count
        return adopted
