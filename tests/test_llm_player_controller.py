import json
import random
from types import SimpleNamespace

from game import PlayerController
from llm_player_controller import (
    LLMPlayerController,
    build_system_prompt,
    build_user_message,
    parse_target,
)
from role_data import Faction


class FakeClient:
    """Stands in for the OpenAI client, answering with canned message contents."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.requests = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.requests.append(kwargs)
        content = self.answers.pop(0)
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def candidates(*names):
    return [PlayerController(n) for n in names]


def test_parse_target():
    pool = candidates("Alice", "Bob")
    assert parse_target('{"target": "bob"}', pool).name == "Bob"
    assert parse_target('{"target": null}', pool) is None
    assert parse_target('{"target": "Carol"}', pool) is None
    assert parse_target("not json", pool) is None
    assert parse_target("[1, 2]", pool) is None
    assert parse_target(None, pool) is None


def test_system_prompt_mentions_skipping_only_for_optional_actions():
    assert "null" in build_system_prompt("heal").splitlines()[-1]
    assert "must" in build_system_prompt("kill").splitlines()[-1]


def test_user_message_lists_what_the_player_knows():
    player = LLMPlayerController("Alice", client=FakeClient())
    player.receive_secret_id(2)
    player.investigated["Bob"] = Faction.WEREWOLVES
    message = build_user_message(player, candidates("Bob", "Carol"))
    assert "Your secret player ID is 2." in message
    assert "Bob is part of the werewolves." in message
    assert message.endswith("Candidates: Bob, Carol")


def test_heal_request_uses_json_mode():
    client = FakeClient(json.dumps({"target": "Bob"}))
    player = LLMPlayerController("Alice", client=client, model="test-model")
    assert player.choose_heal_target(candidates("Alice", "Bob")).name == "Bob"
    request = client.requests[0]
    assert request["model"] == "test-model"
    assert request["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in request["messages"]] == ["system", "user"]


def test_investigation_result_is_remembered():
    client = FakeClient('{"target": "Bob"}')
    player = LLMPlayerController("Alice", client=client)
    player.choose_investigation_target(candidates("Alice", "Bob"))
    player.receive_investigation_result(Faction.VILLAGE)
    assert player.investigated == {"Bob": Faction.VILLAGE}


def test_kill_falls_back_to_random_candidate():
    client = FakeClient('{"target": null}', "garbage")
    player = LLMPlayerController("Alice", client=client, rng=random.Random(0))
    pool = candidates("Bob", "Carol")
    assert player.choose_werewolf_kill_target(pool) in pool
    assert player.choose_werewolf_kill_target(pool) in pool
