import argparse
import random
from collections import defaultdict
from math import sqrt
from typing import Dict, List, Optional, Tuple

from bot_player_controller import BotHandler, BotPlayerController
from game import Signups, StartGameError, default_roles, run_with_roles
from role_data import Faction, Role, UnknownRole, parse_roles
from util import set_debug


def proportion_confidence_interval(wins, total, z=1.645):
    """Returns (center, lower_bound, upper_bound) for a proportion ±0.90 CI.
    z=1.645 is the critical value for 90% confidence."""
    if total == 0:
        return 0, 0, 0
    p = wins / total
    se = sqrt(p * (1 - p) / total)
    lower = max(0, p - z * se)
    upper = min(1, p + z * se)
    return p, lower, upper


def simulate_games(
    num_games: int,
    player_count: int = 5,
    roles: Optional[List[Role]] = None,
    rng: Optional[random.Random] = None,
) -> Tuple[Dict[str, int], Dict[str, List[int]]]:
    """Play ``num_games`` bot-only games; returns (team_results, role_results)."""
    rng = rng if rng is not None else random.Random()
    team_results = {"Village": 0, "Werewolves": 0}
    role_results = defaultdict(lambda: [0, 0])  # role -> [wins, total]

    for _ in range(num_games):
        players = [BotPlayerController(f"Player {i+1}", rng=rng) for i in range(player_count)]
        game_roles = roles if roles is not None else default_roles(player_count)
        complete = run_with_roles(BotHandler(rng), Signups(players), game_roles, rng)

        world = complete.world
        winning_team = "Werewolves" if Faction.WEREWOLVES.wincon(world) else "Village"
        team_results[winning_team] += 1

        for p in players:
            role = str(complete.role(p))
            role_results[role][1] += 1
            if p in complete.winners:
                role_results[role][0] += 1

    return team_results, dict(role_results)


def print_results(team_results: Dict[str, int], role_results: Dict[str, List[int]], num_games: int) -> None:
    print("Team win rates:")
    for team, wins in team_results.items():
        print(f"{team}: {wins / num_games:.2%} ({wins}/{num_games})")

    print("\nRole win rates (sorted):")
    stats = []
    for role, (wins, total) in role_results.items():
        winrate, lower, upper = proportion_confidence_interval(wins, total)
        stats.append((winrate, role, wins, total, lower, upper))

    stats.sort(reverse=True)

    print(f"{'Role':<20}{'Winrate':>12}{'90% CI':>20} {'Record':>12}")
    for winrate, role, wins, total, lower, upper in stats:
        print(f"{role:<20}{winrate:>10.2%}   [{lower:.2%}, {upper:.2%}]   {wins}/{total}")


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Simulate multiple Quantum Werewolf games")
    parser.add_argument("num_games", type=int, help="Number of games to simulate")
    parser.add_argument(
        "--players", type=int, default=5, help="Number of players in each game"
    )
    parser.add_argument("--roles", help="comma separated roles, default: 2 werewolves per 5 players and a detective")
    parser.add_argument("--seed", type=int, help="seed for all random decisions")
    parser.add_argument("--debug", action="store_true", help="print engine debug output")
    args = parser.parse_args(argv)
    set_debug(args.debug)

    roles = None
    if args.roles:
        try:
            roles = parse_roles(args.roles)
        except UnknownRole as e:
            parser.error(str(e))
    if args.num_games < 1:
        parser.error("num_games must be at least 1")

    try:
        team_results, role_results = simulate_games(
            args.num_games, args.players, roles, random.Random(args.seed)
        )
    except StartGameError as e:
        parser.error(str(e))
    print_results(team_results, role_results, args.num_games)


if __name__ == "__main__":
    main()
