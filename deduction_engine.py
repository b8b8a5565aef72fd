"""Possible-worlds engine.

A ``World`` is one fully concrete hypothesis about the game: every player's
role, faction and whether they are alive. The ``Multiverse`` is the list of
worlds still consistent with everything revealed so far. Every game action is
applied to each world separately, conditioned on that world's own roles, and
worlds that contradict revealed information are dropped.
"""

import random
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, NamedTuple, Optional, Set, Union

from constraint import AllDifferentConstraint, Problem

from role_data import DETECTIVE, HEALER, VILLAGER, Faction, Role
from util import debug, random_element


class Paradox(RuntimeError):
    """The multiverse ran out of worlds. This is an engine bug, not a game state."""


class Probabilities(NamedTuple):
    village: float
    werewolves: float
    dead: float


@dataclass
class World:
    """Representation of a possible game world."""

    alive: List[bool]
    roles: List[Role]
    factions: List[Faction]
    heals: Set[int] = field(default_factory=set)
    kills: Set[int] = field(default_factory=set)

    @classmethod
    def from_roles(cls, roles: List[Role]) -> "World":
        return cls(
            alive=[True] * len(roles),
            roles=list(roles),
            factions=[r.faction for r in roles],
        )

    @property
    def num_players(self) -> int:
        return len(self.roles)

    def game_over(self, night: bool = False) -> bool:
        if not any(self.alive):
            return True
        if night:
            return False
        if sum(self.alive) < 2:
            return True
        return any(faction.wincon(self) for faction in self.factions)

    def kill(self, player: int, night: bool) -> None:
        """At night the kill is queued for dawn unless healed; by day it is immediate."""
        if night:
            if player not in self.heals:
                self.kills.add(player)
        else:
            self.alive[player] = False

    def senior_werewolf(self) -> Optional[int]:
        """Return the living werewolf with the lowest rank, if any."""
        living = [
            (role.rank, idx)
            for idx, role in enumerate(self.roles)
            if role.is_werewolf and self.alive[idx]
        ]
        if not living:
            return None
        return min(living)[1]

    def to_dict(self) -> dict:
        return {
            "alive": list(self.alive),
            "roles": [r.encode() for r in self.roles],
            "heals": sorted(self.heals),
            "kills": sorted(self.kills),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "World":
        world = cls.from_roles([Role.decode(r) for r in data["roles"]])
        world.alive = list(data["alive"])
        world.heals = set(data["heals"])
        world.kills = set(data["kills"])
        return world


def generate_all_worlds(roles: List[Role], num_players: int) -> List[World]:
    """Place each distinguishable role on a different player, villagers elsewhere.

    ``roles`` must already be prepared (no villagers, werewolves ranked). This
    yields ``N!/(N-k)!`` worlds, one per placement, in a canonical order.
    """
    if not roles:
        return [World.from_roles([VILLAGER] * num_players)]

    problem = Problem()
    for pos in range(len(roles)):
        problem.addVariable(pos, list(range(num_players)))
    problem.addConstraint(AllDifferentConstraint())

    placements = [
        [sol[pos] for pos in range(len(roles))] for sol in problem.getSolutions()
    ]
    placements.sort()

    worlds = []
    for placement in placements:
        assignment = [VILLAGER] * num_players
        for role, player in zip(roles, placement):
            assignment[player] = role
        worlds.append(World.from_roles(assignment))
    return worlds


class Multiverse:
    """The set of worlds still considered possible."""

    def __init__(self, worlds: Iterable[World], num_players: int):
        self.worlds: List[World] = list(worlds)
        self.num_players = num_players

    @classmethod
    def new(cls, roles: List[Role], num_players: int) -> "Multiverse":
        worlds = generate_all_worlds(roles, num_players)
        debug(f"Generated {len(worlds)} worlds for {num_players} players and roles {[str(r) for r in roles]}.")
        return cls(worlds, num_players)

    def __len__(self) -> int:
        return len(self.worlds)

    def __iter__(self) -> Iterator[World]:
        return iter(self.worlds)

    # Queries ---------------------------------------------------------------
    def alive(self) -> List[int]:
        """Players alive in at least one world."""
        return [
            idx for idx in range(self.num_players)
            if any(w.alive[idx] for w in self.worlds)
        ]

    def role(self, player: int) -> Optional[Role]:
        """The player's role if every world agrees on it, else None."""
        roles = {w.roles[player] for w in self.worlds}
        if len(roles) == 1:
            return roles.pop()
        return None

    def faction(self, player: int) -> Optional[Faction]:
        factions = {w.factions[player] for w in self.worlds}
        if len(factions) == 1:
            return factions.pop()
        return None

    def role_maybe_alive(self, role: Role) -> bool:
        """Whether some player holding ``role`` might still be alive.

        A dead player whose role is still ambiguous counts, since the role may
        belong to someone else in the worlds where that player is dead.
        """
        ambiguous = {idx for idx in range(self.num_players) if self.role(idx) is None}
        for w in self.worlds:
            for idx, iter_role in enumerate(w.roles):
                if iter_role == role and (w.alive[idx] or idx in ambiguous):
                    return True
        return False

    def game_over(self, night: bool = False) -> bool:
        """The game ends only once it has ended in every world."""
        return all(w.game_over(night) for w in self.worlds)

    def probability_table(self) -> List[Union[Probabilities, Faction]]:
        """Anonymized per-player summary shown at the start of each day."""
        total = len(self.worlds)
        alive = set(self.alive())
        table: List[Union[Probabilities, Faction]] = []
        for idx in range(self.num_players):
            if idx in alive:
                village = sum(1 for w in self.worlds if w.factions[idx] is Faction.VILLAGE)
                werewolves = sum(1 for w in self.worlds if w.factions[idx] is Faction.WEREWOLVES)
                dead = sum(1 for w in self.worlds if not w.alive[idx])
                table.append(Probabilities(village / total, werewolves / total, dead / total))
            else:
                faction = self.faction(idx)
                if faction is None:
                    raise Paradox(f"player {idx} is dead everywhere but has no determined faction")
                table.append(faction)
        return table

    def sample(self, rng: random.Random) -> World:
        world = random_element(self.worlds, rng)
        if world is None:
            raise Paradox("no possible worlds left")
        return world

    def filter(self, keep: Callable[[World], bool], reason: str = "") -> None:
        before = len(self.worlds)
        self.worlds = [w for w in self.worlds if keep(w)]
        if len(self.worlds) != before:
            debug(f"{reason or 'filter'}: {before} -> {len(self.worlds)} worlds")

    # Night actions ---------------------------------------------------------
    def reset_night(self) -> None:
        for w in self.worlds:
            w.heals = set()
            w.kills = set()

    def heal(self, healer: int, target: int) -> None:
        for w in self.worlds:
            if w.roles[healer] == HEALER and w.alive[healer] and w.alive[target]:
                w.heals.add(target)

    def investigate(self, detective: int, target: int, rng: random.Random) -> Optional[Faction]:
        """Reveal ``target``'s faction to ``detective`` and drop contradicting worlds.

        The revealed value comes from one world sampled among those where
        ``detective`` is a living Detective. Returns None if there is no such
        world, in which case nothing is filtered.
        """

        def is_detective(w: World) -> bool:
            return w.roles[detective] == DETECTIVE and w.alive[detective]

        world = random_element((w for w in self.worlds if is_detective(w)), rng)
        if world is None:
            return None
        revealed = world.factions[target]
        self.filter(
            lambda w: not (is_detective(w) and w.factions[target] is not revealed),
            reason=f"investigation of {target} by {detective}",
        )
        return revealed

    def werewolf_kill(self, werewolf: int, target: int) -> None:
        for w in self.worlds:
            if w.alive[werewolf] and w.alive[target] and w.senior_werewolf() == werewolf:
                w.kill(target, night=True)

    def apply_kills(self) -> None:
        """Dawn: everyone on a world's kill list dies there, unless healed."""
        for w in self.worlds:
            for idx in w.kills:
                if idx not in w.heals:
                    w.alive[idx] = False

    # Day actions -----------------------------------------------------------
    def lynch(self, target: int) -> None:
        self.filter(lambda w: w.alive[target], reason=f"lynch of {target}")
        for w in self.worlds:
            w.kill(target, night=False)

    # Collapse --------------------------------------------------------------
    def collapse_roles(self, rng: random.Random) -> Dict[int, Role]:
        """Fix one role for every player who is dead in all worlds.

        Samples a world, takes its roles for the dead players and drops every
        world that disagrees, until the multiverse stops shrinking.
        """
        collapsed: Dict[int, Role] = {}
        size = len(self.worlds)
        while True:
            world = self.sample(rng)
            alive = set(self.alive())
            for idx in range(self.num_players):
                if idx not in alive:
                    collapsed[idx] = world.roles[idx]
            self.filter(
                lambda w: all(w.roles[idx] == role for idx, role in collapsed.items()),
                reason="role collapse",
            )
            if not self.worlds:
                raise Paradox("paradox created while collapsing roles")
            if len(self.worlds) == size:
                break
            size = len(self.worlds)
        return collapsed

    # Persistence -----------------------------------------------------------
    def to_dict(self) -> dict:
        return {
            "num_players": self.num_players,
            "worlds": [w.to_dict() for w in self.worlds],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Multiverse":
        return cls((World.from_dict(w) for w in data["worlds"]), data["num_players"])
