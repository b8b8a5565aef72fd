"""Heuristic computer player and town handler."""

from __future__ import annotations

import random
from typing import Dict, Optional

from game import Handler, PlayerController
from role_data import Faction


class BotPlayerController(PlayerController):
    """A simple AI that acts as if it might hold any role.

    The bot never learns its role, so it answers every night prompt and relies
    on the engine to ignore actions its role cannot perform in a given world.
    """

    def __init__(self, name: str, rng: random.Random | None = None):
        super().__init__(name)
        self.rng = rng if rng is not None else random.Random()
        self.secret_id: Optional[int] = None
        self.investigated: Dict[str, Faction] = {}
        self.exile_reason: Optional[str] = None
        self._last_investigation: Optional[str] = None

    def receive_secret_id(self, secret_id):
        self.secret_id = secret_id

    def receive_exile(self, reason):
        self.exile_reason = reason

    # Night actions --------------------------------------------------------
    def choose_heal_target(self, candidates):
        if self in candidates:
            return self
        trusted = [p for p in candidates if self.investigated.get(p.name) is Faction.VILLAGE]
        pool = trusted or candidates
        return self.rng.choice(pool) if pool else None

    def choose_investigation_target(self, candidates):
        unknown = [p for p in candidates if p != self and p.name not in self.investigated]
        if not unknown:
            return None
        target = self.rng.choice(unknown)
        self._last_investigation = target.name
        return target

    def receive_investigation_result(self, faction):
        if self._last_investigation is not None:
            self.investigated[self._last_investigation] = faction
            self._last_investigation = None

    def choose_werewolf_kill_target(self, candidates):
        others = [p for p in candidates if p != self]
        # Known werewolves are pack mates if we are a werewolf ourselves
        preferred = [p for p in others if self.investigated.get(p.name) is not Faction.WEREWOLVES]
        return self.rng.choice(preferred or others or candidates)


class BotHandler(Handler):
    """Town moderator for games without humans: lynches a random candidate."""

    def __init__(self, rng: random.Random | None = None, no_lynch_chance: float = 0.0):
        self.rng = rng if rng is not None else random.Random()
        self.no_lynch_chance = no_lynch_chance
        self.deaths = []
        self.tables = []

    def announce_deaths(self, deaths):
        self.deaths.extend(deaths)

    def announce_probability_table(self, table):
        self.tables.append(table)

    def choose_lynch_target(self, candidates):
        if not candidates or self.rng.random() < self.no_lynch_chance:
            return None
        return self.rng.choice(candidates)
