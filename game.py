from __future__ import annotations

import argparse
import json
import random
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from deduction_engine import Multiverse, Probabilities
from role_data import DETECTIVE, HEALER, Faction, Role, UnknownRole, parse_roles, prepare_roles, werewolf
from util import debug, join_names, prompt, random_element, set_debug, shuffled

# The minimum number of players required to start a game.
MIN_PLAYERS = 3


class Phase(Enum):
    SIGNUPS = "signups"
    NIGHT = "night"
    DAY = "day"
    COMPLETE = "complete"


class StartGameError(Exception):
    """Base class for configuration problems reported by ``Signups.start``."""

    reason = "invalid configuration"

    def __init__(self, required: int, found: int):
        self.required = required
        self.found = found
        super().__init__(f"failed to start game: {self.describe()}")

    def describe(self) -> str:
        return self.reason


class NotEnoughPlayers(StartGameError):
    def describe(self) -> str:
        return f"not enough players ({self.required} required, {self.found} signed up)"


class TooManyRoles(StartGameError):
    def describe(self) -> str:
        return f"too many roles ({self.required} players, {self.found} roles)"


# Collaborators ----------------------------------------------------------------

class PlayerController:
    """How the game talks to one player. Players are identified by name."""

    def __init__(self, name: str):
        self.name = name

    def __eq__(self, other) -> bool:
        return isinstance(other, PlayerController) and other.name == self.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"

    def receive_secret_id(self, secret_id: int) -> None:
        pass

    def choose_heal_target(self, candidates: list[PlayerController]) -> Optional[PlayerController]:
        raise NotImplementedError

    def choose_investigation_target(self, candidates: list[PlayerController]) -> Optional[PlayerController]:
        raise NotImplementedError

    def receive_investigation_result(self, faction: Faction) -> None:
        pass

    def choose_werewolf_kill_target(self, candidates: list[PlayerController]) -> PlayerController:
        raise NotImplementedError

    def receive_exile(self, reason: str) -> None:
        pass


class HumanPlayerController(PlayerController):
    def _choose(self, title: str, candidates, optional: bool):
        print(f"\n{self.name}: {title}")
        for i, p in enumerate(candidates):
            print(f"  {i}: {p.name}")
        while True:
            resp = input("Number or Enter: " if optional else "Number: ").strip()
            if resp == "" and optional:
                return None
            if resp.isdigit() and int(resp) < len(candidates):
                return candidates[int(resp)]
            print("Pick one of the listed numbers.")

    def receive_secret_id(self, secret_id):
        print(f"[ __ ] @{self.name}: your secret player ID is {secret_id}")

    def choose_heal_target(self, candidates):
        return self._choose("If you are the healer, pick a player to heal tonight.", candidates, optional=True)

    def choose_investigation_target(self, candidates):
        return self._choose("If you are the detective, pick a player to investigate.", candidates, optional=True)

    def receive_investigation_result(self, faction):
        print(f"[ __ ] @{self.name}: your investigation target is part of the {faction}")

    def choose_werewolf_kill_target(self, candidates):
        return self._choose("If you are a werewolf, pick a player to kill.", candidates, optional=False)

    def receive_exile(self, reason):
        print(f"[ __ ] @{self.name}: you are out of the game ({reason})")


class Handler:
    """Receives public game events and runs the day-time lynch decision."""

    def announce_deaths(self, deaths: list[tuple[PlayerController, Role]]) -> None:
        pass

    def announce_probability_table(self, table: list[Union[Probabilities, Faction]]) -> None:
        pass

    def cannot_lynch(self, player: PlayerController) -> None:
        pass

    def choose_lynch_target(self, candidates: list[PlayerController]) -> Optional[PlayerController]:
        """Return the player the town lynches, or None for no lynch."""
        raise NotImplementedError


class CliHandler(Handler):
    def announce_deaths(self, deaths):
        for player, role in deaths:
            print(f"[ ** ] {player} died and was {role}")

    def announce_probability_table(self, table):
        for idx, entry in enumerate(table):
            if isinstance(entry, Faction):
                print(f"[ ** ] {idx}: dead (was {entry})")
            else:
                print(
                    f"[ ** ] {idx}: {round(entry.village * 100)}% village, "
                    f"{round(entry.werewolves * 100)}% werewolf, {round(entry.dead * 100)}% dead"
                )

    def cannot_lynch(self, player):
        print(f"[ !! ] no such player to lynch: {player}")

    def choose_lynch_target(self, candidates):
        name = prompt("town lynch target")
        if name == "no lynch":
            return None
        for p in candidates:
            if p.name == name:
                return p
        return PlayerController(name)


# Game states ------------------------------------------------------------------

class Signups:
    """A game which has not been started. Players may sign up or leave."""

    phase = Phase.SIGNUPS

    def __init__(self, players: Iterable[PlayerController] = ()):
        self._players: list[PlayerController] = []
        for p in players:
            self.sign_up(p)

    @property
    def players(self) -> list[PlayerController]:
        return list(self._players)

    @property
    def num_players(self) -> int:
        return len(self._players)

    def sign_up(self, player: PlayerController) -> bool:
        """Returns False if a player with that name is already signed up."""
        if player in self._players:
            return False
        self._players.append(player)
        return True

    def remove(self, player: PlayerController) -> bool:
        if player not in self._players:
            return False
        self._players.remove(player)
        return True

    def start(self, roles: Sequence[Role], rng: random.Random | None = None) -> Union[Night, Complete]:
        """Start the game. Seats without a role are filled with villagers."""
        rng = rng if rng is not None else random.Random()
        num_players = self.num_players
        if num_players < MIN_PLAYERS:
            raise NotEnoughPlayers(MIN_PLAYERS, num_players)
        if num_players < len(roles):
            raise TooManyRoles(num_players, len(roles))
        secret_ids = shuffled(self._players, rng)
        multiverse = Multiverse.new(prepare_roles(roles), num_players)
        if multiverse.game_over():
            return Complete.from_multiverse(secret_ids, multiverse, rng)
        return Night(secret_ids, multiverse, [None] * num_players, rng)


class _GameInProgress:
    phase: Phase

    def __init__(self, secret_ids, multiverse: Multiverse, last_heals, rng: random.Random | None = None):
        self.secret_ids: list[PlayerController] = list(secret_ids)
        self.multiverse = multiverse
        self.last_heals: list[Optional[int]] = list(last_heals)
        self.rng = rng if rng is not None else random.Random()
        self._consumed = False

    def secret_id(self, player: PlayerController) -> int:
        try:
            return self.secret_ids.index(player)
        except ValueError:
            raise ValueError(f"{player} is not in this game") from None

    def alive_players(self) -> list[PlayerController]:
        """Players alive in at least one possible world, by secret ID."""
        return [self.secret_ids[i] for i in self.multiverse.alive()]

    def alive(self) -> set[PlayerController]:
        return set(self.alive_players())

    def role(self, player: PlayerController) -> Optional[Role]:
        return self.multiverse.role(self.secret_id(player))

    def _consume(self) -> None:
        if self._consumed:
            raise RuntimeError(f"this {self.phase.value} has already been resolved")
        self._consumed = True

    def _shuffled_players(self) -> list[tuple[int, PlayerController]]:
        return shuffled(enumerate(self.secret_ids), self.rng)


class ActionKind(Enum):
    HEAL = "heal"
    INVESTIGATE = "investigate"
    KILL = "kill"


@dataclass(frozen=True)
class NightAction:
    kind: ActionKind
    source: PlayerController
    target: PlayerController


class Night(_GameInProgress):
    """A running game waiting for the players' night actions."""

    phase = Phase.NIGHT

    def resolve(self) -> Union[Day, Complete]:
        """Temporal action resolution: ask every living player for each action in turn."""
        self._consume()
        mv = self.multiverse
        mv.reset_night()
        current_heals: list[Optional[int]] = [None] * len(self.secret_ids)
        results: list[Optional[Faction]] = [None] * len(self.secret_ids)

        if mv.role_maybe_alive(HEALER):
            for player_id, player in self._shuffled_players():
                alive = mv.alive()
                if player_id not in alive:
                    continue
                healable = shuffled(
                    (self.secret_ids[i] for i in alive if i != self.last_heals[player_id]),
                    self.rng,
                )
                target = player.choose_heal_target(healable)
                if target is not None:
                    self._heal(player_id, self._chosen(target, healable, "heal"), current_heals)

        if mv.role_maybe_alive(DETECTIVE):
            everyone = [p for _, p in self._shuffled_players()]
            for player_id, player in self._shuffled_players():
                if player_id not in mv.alive():
                    continue
                target = player.choose_investigation_target(list(everyone))
                if target is not None:
                    self._investigate(player_id, self._chosen(target, everyone, "investigation"), results)

        killable = shuffled(self.alive_players(), self.rng)
        for player_id, player in self._shuffled_players():
            if player_id not in mv.alive():
                continue
            target = player.choose_werewolf_kill_target(list(killable))
            if target is None:
                raise ValueError(f"{player} must choose a werewolf kill target")
            mv.werewolf_kill(player_id, self._chosen(target, killable, "werewolf kill"))

        return self._dawn(current_heals, results)

    def resolve_batch(self, actions: Sequence[NightAction]) -> Union[Day, Complete]:
        """Batch action resolution from a list of submitted night actions.

        Illegal actions are dropped, every living player without a kill gets a
        random one, and the rest is applied in submission order.
        """
        self._consume()
        mv = self.multiverse
        mv.reset_night()
        current_heals: list[Optional[int]] = [None] * len(self.secret_ids)
        results: list[Optional[Faction]] = [None] * len(self.secret_ids)

        alive = mv.alive()
        accepted: list[tuple[ActionKind, int, int]] = []
        seen = set()
        for action in actions:
            problem = self._check_action(action, alive, seen)
            if problem:
                debug(f"Discarding {action.kind.value} by {action.source} on {action.target}: {problem}")
                continue
            source_id = self.secret_id(action.source)
            seen.add((action.kind, source_id))
            accepted.append((action.kind, source_id, self.secret_id(action.target)))

        for player_id in alive:
            if (ActionKind.KILL, player_id) not in seen:
                target_id = random_element(alive, self.rng)
                debug(f"{self.secret_ids[player_id]} did not submit a kill, picked {self.secret_ids[target_id]}")
                accepted.append((ActionKind.KILL, player_id, target_id))

        for kind, source_id, target_id in accepted:
            if kind is ActionKind.HEAL:
                self._heal(source_id, target_id, current_heals)
            elif kind is ActionKind.INVESTIGATE:
                self._investigate(source_id, target_id, results)
            else:
                mv.werewolf_kill(source_id, target_id)

        return self._dawn(current_heals, results)

    def _check_action(self, action: NightAction, alive: list[int], seen: set) -> Optional[str]:
        if action.source not in self.secret_ids:
            return "unknown source"
        if action.target not in self.secret_ids:
            return "unknown target"
        source_id = self.secret_id(action.source)
        target_id = self.secret_id(action.target)
        if source_id not in alive:
            return "source is dead"
        if target_id not in alive:
            return "target is dead"
        if (action.kind, source_id) in seen:
            return "duplicate action"
        if action.kind is ActionKind.HEAL and self.last_heals[source_id] == target_id:
            return "same heal target as last night"
        return None

    def _chosen(self, target: PlayerController, candidates: list[PlayerController], action: str) -> int:
        if target not in candidates:
            raise ValueError(f"{target} is not a valid {action} target")
        return self.secret_id(target)

    def _heal(self, player_id: int, target_id: int, current_heals: list) -> None:
        current_heals[player_id] = target_id
        self.multiverse.heal(player_id, target_id)

    def _investigate(self, player_id: int, target_id: int, results: list) -> None:
        faction = self.multiverse.investigate(player_id, target_id, self.rng)
        if faction is not None:
            results[player_id] = faction

    def _dawn(self, current_heals, results) -> Union[Day, Complete]:
        mv = self.multiverse
        mv.apply_kills()
        mv.collapse_roles(self.rng)
        if mv.game_over():
            return Complete.from_multiverse(self.secret_ids, mv, self.rng)
        return Day(self.secret_ids, mv, current_heals, self.rng, results)


class Day(_GameInProgress):
    """A running game waiting for the result of the lynch vote."""

    phase = Phase.DAY

    def __init__(self, secret_ids, multiverse, last_heals, rng=None, night_action_results=None):
        super().__init__(secret_ids, multiverse, last_heals, rng)
        if night_action_results is None:
            night_action_results = [None] * len(self.secret_ids)
        self._night_action_results: list[Optional[Faction]] = list(night_action_results)

    def night_action_results(self) -> list[tuple[PlayerController, Faction]]:
        return [
            (self.secret_ids[idx], faction)
            for idx, faction in enumerate(self._night_action_results)
            if faction is not None
        ]

    def can_lynch(self, target: PlayerController) -> bool:
        if target not in self.secret_ids:
            return False
        return self.secret_id(target) in self.multiverse.alive()

    def lynch(self, target: PlayerController) -> Union[Night, Complete]:
        if not self.can_lynch(target):
            raise ValueError(f"cannot lynch {target}: not alive in any possible world")
        self._consume()
        self.multiverse.lynch(self.secret_id(target))
        self.multiverse.collapse_roles(self.rng)
        return self._next_night()

    def no_lynch(self) -> Union[Night, Complete]:
        self._consume()
        return self._next_night()

    def _next_night(self) -> Union[Night, Complete]:
        if self.multiverse.game_over():
            return Complete.from_multiverse(self.secret_ids, self.multiverse, self.rng)
        return Night(self.secret_ids, self.multiverse, self.last_heals, self.rng)


class Complete:
    """A finished game. ``world`` is the possible world the game resolved to."""

    phase = Phase.COMPLETE

    def __init__(self, winners: Iterable[PlayerController], secret_ids=None, world=None):
        self.winners: set[PlayerController] = set(winners)
        self.secret_ids: list[PlayerController] = list(secret_ids or [])
        self.world = world

    @classmethod
    def from_multiverse(cls, secret_ids, multiverse: Multiverse, rng: random.Random) -> Complete:
        world = multiverse.sample(rng)
        winners = [
            player for idx, player in enumerate(secret_ids)
            if world.factions[idx].wincon(world)
        ]
        debug(f"Game over, resolved to roles {[str(r) for r in world.roles]}, alive {world.alive}")
        return cls(winners, secret_ids, world)

    def alive(self) -> set[PlayerController]:
        """Survivors in the final world.

        A ``Complete`` restored from persisted state keeps only its winners,
        so it has no world and this returns an empty set. That does not mean
        everyone died.
        """
        if self.world is None:
            return set()
        return {p for idx, p in enumerate(self.secret_ids) if self.world.alive[idx]}

    def role(self, player: PlayerController) -> Optional[Role]:
        """Role in the final world; None when restored from persisted state."""
        if self.world is None or player not in self.secret_ids:
            return None
        return self.world.roles[self.secret_ids.index(player)]


GameState = Union[Signups, Night, Day, Complete]


# Running a game ---------------------------------------------------------------

def default_roles(num_players: int) -> list[Role]:
    """Two werewolves per five players, rounded down, and one detective."""
    return [werewolf(i) for i in range(num_players * 2 // 5)] + [DETECTIVE]


def run(handler: Handler, signups: Signups, rng: random.Random | None = None) -> Complete:
    return run_with_roles(handler, signups, default_roles(signups.num_players), rng)


def run_with_roles(handler: Handler, signups: Signups, roles: Sequence[Role], rng: random.Random | None = None) -> Complete:
    """Moderate a whole game and return the completed state."""
    state: GameState = signups.start(roles, rng)
    players = list(state.secret_ids)
    for secret_id, player in enumerate(players):
        player.receive_secret_id(secret_id)

    alive = set(players)
    lynched: Optional[PlayerController] = None
    while True:
        new_alive = state.alive()
        deaths = [p for p in players if p in alive and p not in new_alive]
        if deaths:
            handler.announce_deaths([(p, state.role(p)) for p in deaths])
            for p in deaths:
                p.receive_exile("lynched by the village" if p == lynched else "killed during the night")
        alive = new_alive

        if isinstance(state, Complete):
            return state
        if isinstance(state, Night):
            state = state.resolve()
            lynched = None
        else:
            state, lynched = _run_day(handler, state)


def _run_day(handler: Handler, day: Day):
    for player, faction in day.night_action_results():
        player.receive_investigation_result(faction)
    handler.announce_probability_table(day.multiverse.probability_table())
    while True:
        target = handler.choose_lynch_target(shuffled(day.alive_players(), day.rng))
        if target is None:
            return day.no_lynch(), None
        if day.can_lynch(target):
            return day.lynch(target), target
        handler.cannot_lynch(target)


# Persistence ------------------------------------------------------------------

def state_to_dict(state: GameState) -> dict:
    if isinstance(state, Signups):
        return {"phase": state.phase.value, "players": [p.name for p in state.players]}
    if isinstance(state, Complete):
        return {"phase": state.phase.value, "winners": sorted(p.name for p in state.winners)}
    data = {
        "phase": state.phase.value,
        "secret_ids": [p.name for p in state.secret_ids],
        "last_heals": list(state.last_heals),
        "multiverse": state.multiverse.to_dict(),
    }
    if isinstance(state, Day):
        data["night_action_results"] = [
            f.value if f is not None else None for f in state._night_action_results
        ]
    return data


def state_from_dict(data: dict, players: Iterable[PlayerController], rng: random.Random | None = None) -> GameState:
    """Rebuild a game state, re-attaching player objects by name."""
    by_name = {p.name: p for p in players}
    phase = Phase(data["phase"])
    if phase is Phase.SIGNUPS:
        return Signups(by_name[name] for name in data["players"])
    if phase is Phase.COMPLETE:
        return Complete(by_name[name] for name in data["winners"])
    secret_ids = [by_name[name] for name in data["secret_ids"]]
    multiverse = Multiverse.from_dict(data["multiverse"])
    if phase is Phase.NIGHT:
        return Night(secret_ids, multiverse, data["last_heals"], rng)
    results = [Faction(f) if f is not None else None for f in data["night_action_results"]]
    return Day(secret_ids, multiverse, data["last_heals"], rng, results)


def state_to_json(state: GameState) -> str:
    return json.dumps(state_to_dict(state), sort_keys=True)


def state_from_json(text: str, players: Iterable[PlayerController], rng: random.Random | None = None) -> GameState:
    return state_from_dict(json.loads(text), players, rng)


# Command line -----------------------------------------------------------------

def main(argv: Sequence[str] | None = None) -> None:
    from bot_player_controller import BotPlayerController

    parser = argparse.ArgumentParser(description="Moderate a game of Quantum Werewolf")
    parser.add_argument("--roles", help="comma separated roles, e.g. werewolf,werewolf,detective,healer")
    parser.add_argument("--bots", type=int, default=0, help="number of computer players to add")
    parser.add_argument("--llm", action="store_true", help="computer players ask an OpenAI model")
    parser.add_argument("--seed", type=int, help="seed for all random decisions")
    parser.add_argument("--debug", action="store_true", help="print engine debug output")
    args = parser.parse_args(argv)
    set_debug(args.debug)
    rng = random.Random(args.seed)

    roles = None
    if args.roles:
        try:
            roles = parse_roles(args.roles)
        except UnknownRole as e:
            parser.error(str(e))

    signups = Signups()
    while True:
        name = prompt("player name [leave blank to finish]")
        if not name:
            break
        if not signups.sign_up(HumanPlayerController(name)):
            print("[ !! ] duplicate player name")
    for i in range(args.bots):
        if args.llm:
            from llm_player_controller import LLMPlayerController

            bot: PlayerController = LLMPlayerController(f"Bot {i + 1}", rng=rng)
        else:
            bot = BotPlayerController(f"Bot {i + 1}", rng=rng)
        signups.sign_up(bot)

    try:
        if roles is None:
            complete = run(CliHandler(), signups, rng)
        else:
            complete = run_with_roles(CliHandler(), signups, roles, rng)
    except StartGameError as e:
        parser.error(str(e))
    print(f"[ ** ] The winners are: {join_names(sorted(p.name for p in complete.winners))}")


if __name__ == "__main__":
    # Alias this module as 'game' so the controller modules can import it
    sys.modules.setdefault("game", sys.modules[__name__])
    main()
