import random

import pytest

from game import Handler, PlayerController


class ScriptedPlayer(PlayerController):
    """Player that picks targets by name and records what it was offered."""

    def __init__(self, name, heal=None, investigate=None, kill=None):
        super().__init__(name)
        self.heal = heal
        self.investigate = investigate
        self.kill = kill
        self.offered = {"heal": [], "investigate": [], "kill": []}
        self.secret_id = None
        self.results = []
        self.exile_reason = None

    @staticmethod
    def _pick(name, candidates):
        for p in candidates:
            if p.name == name:
                return p
        return None

    def receive_secret_id(self, secret_id):
        self.secret_id = secret_id

    def choose_heal_target(self, candidates):
        self.offered["heal"].append([p.name for p in candidates])
        return self._pick(self.heal, candidates)

    def choose_investigation_target(self, candidates):
        self.offered["investigate"].append([p.name for p in candidates])
        return self._pick(self.investigate, candidates)

    def receive_investigation_result(self, faction):
        self.results.append(faction)

    def choose_werewolf_kill_target(self, candidates):
        self.offered["kill"].append([p.name for p in candidates])
        target = self._pick(self.kill, candidates)
        if target is None:
            others = [p for p in candidates if p != self]
            target = (others or candidates)[0]
        return target

    def receive_exile(self, reason):
        self.exile_reason = reason


class ScriptedHandler(Handler):
    """Lynches by name from a script, then the first candidate once the script runs out."""

    def __init__(self, script=()):
        self.script = list(script)
        self.deaths = []
        self.tables = []
        self.rejected = []

    def announce_deaths(self, deaths):
        self.deaths.extend(deaths)

    def announce_probability_table(self, table):
        self.tables.append(table)

    def cannot_lynch(self, player):
        self.rejected.append(player.name)

    def choose_lynch_target(self, candidates):
        if self.script:
            name = self.script.pop(0)
            if name is None:
                return None
            for p in candidates:
                if p.name == name:
                    return p
            return PlayerController(name)
        return candidates[0]


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def make_players():
    def _make(*names, **scripts):
        return [ScriptedPlayer(name, **scripts.get(name, {})) for name in names]

    return _make
