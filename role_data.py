# Common role definitions and utilities used across the project.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List


class UnknownRole(ValueError):
    """Raised when a role token from the configuration is not recognised."""

    def __init__(self, token: str):
        super().__init__(f"Unknown role: {token!r}")
        self.token = token


class Faction(Enum):
    VILLAGE = "village"
    WEREWOLVES = "werewolves"

    def wincon(self, world) -> bool:
        """Check whether this faction's win condition holds in ``world``.

        Only the ``alive`` and ``factions`` lists of the world are consulted.
        With nobody left alive the werewolves win, since no villager survives.
        """
        village_alive = any(
            alive and faction is Faction.VILLAGE
            for faction, alive in zip(world.factions, world.alive)
        )
        if self is Faction.WEREWOLVES:
            return not village_alive
        threat_alive = any(
            alive and faction is Faction.WEREWOLVES
            for faction, alive in zip(world.factions, world.alive)
        )
        return village_alive and not threat_alive

    def __str__(self) -> str:
        return self.value


ROLE_TOKENS = ("detective", "healer", "villager", "werewolf")

# Default mapping from role token to faction.
ROLE_FACTIONS = {
    "detective": Faction.VILLAGE,
    "healer": Faction.VILLAGE,
    "villager": Faction.VILLAGE,
    "werewolf": Faction.WEREWOLVES,
}


@dataclass(frozen=True)
class Role:
    """A player role. ``rank`` only matters for werewolves (0 is the pack leader)."""

    token: str
    rank: int = 0

    @property
    def faction(self) -> Faction:
        return ROLE_FACTIONS[self.token]

    @property
    def is_werewolf(self) -> bool:
        return self.token == "werewolf"

    def __str__(self) -> str:
        return self.token

    def encode(self) -> str:
        if self.is_werewolf:
            return f"werewolf {self.rank}"
        return self.token

    @classmethod
    def decode(cls, text: str) -> "Role":
        token, _, rank = text.partition(" ")
        role = parse_role(token)
        if not rank:
            return role
        if not role.is_werewolf or not rank.isdigit():
            raise UnknownRole(text)
        return werewolf(int(rank))


DETECTIVE = Role("detective")
HEALER = Role("healer")
VILLAGER = Role("villager")


def werewolf(rank: int = 0) -> Role:
    return Role("werewolf", rank)


def parse_role(token: str) -> Role:
    """Parse a role token such as ``"Detective"``. Werewolves get rank 0."""
    name = token.strip().lower()
    if name not in ROLE_TOKENS:
        raise UnknownRole(token)
    if name == "werewolf":
        return werewolf(0)
    return Role(name)


def parse_roles(text: str) -> List[Role]:
    """Parse a comma separated role list, e.g. ``werewolf,werewolf,healer``."""
    return [parse_role(t) for t in text.split(",") if t.strip()]


def prepare_roles(roles: Iterable[Role]) -> List[Role]:
    """Drop villagers (they fill the remaining seats) and rank werewolves in order."""
    prepared = []
    num_werewolves = 0
    for role in roles:
        if role == VILLAGER:
            continue
        if role.is_werewolf:
            prepared.append(werewolf(num_werewolves))
            num_werewolves += 1
        else:
            prepared.append(role)
    return prepared
