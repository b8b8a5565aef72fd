import random

import pytest

import simulate_games
from role_data import DETECTIVE, HEALER, werewolf


def test_confidence_interval():
    assert simulate_games.proportion_confidence_interval(0, 0) == (0, 0, 0)
    p, lower, upper = simulate_games.proportion_confidence_interval(50, 100)
    assert p == 0.5
    assert lower < 0.5 < upper
    assert simulate_games.proportion_confidence_interval(10, 10) == (1.0, 1.0, 1.0)


def test_simulate_games_counts_every_game():
    team_results, role_results = simulate_games.simulate_games(20, 5, rng=random.Random(3))
    assert sum(team_results.values()) == 20
    assert sum(total for _, total in role_results.values()) == 20 * 5
    assert set(role_results) <= {"werewolf", "detective", "villager"}
    for wins, total in role_results.values():
        assert 0 <= wins <= total


def test_simulate_games_with_custom_roles():
    roles = [werewolf(), HEALER, DETECTIVE]
    team_results, role_results = simulate_games.simulate_games(10, 6, roles, random.Random(5))
    assert sum(team_results.values()) == 10
    assert role_results["healer"][1] == 10
    assert role_results["werewolf"][1] == 10


def test_main_prints_tables(capsys):
    simulate_games.main(["5", "--players", "4", "--seed", "2"])
    out = capsys.readouterr().out
    assert "Team win rates:" in out
    assert "Role win rates (sorted):" in out


def test_main_rejects_bad_arguments():
    with pytest.raises(SystemExit):
        simulate_games.main(["0"])
    with pytest.raises(SystemExit):
        simulate_games.main(["3", "--players", "2"])
    with pytest.raises(SystemExit):
        simulate_games.main(["3", "--roles", "werewolf,seer"])
