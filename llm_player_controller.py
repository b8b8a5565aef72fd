import json
import os
import random

import openai

from game import PlayerController
from util import debug

DEFAULT_MODEL = "gpt-4o"

SYSTEM_PROMPT = """
You are a player in a game of Quantum Werewolf. Nobody, including you, knows
their own role: every possible role assignment is still in play until the
game rules out the rest. Every night you are asked for every action any role
could take; the moderator only applies it in the possible worlds where you
hold the matching role.
Output ONLY valid JSON matching the exact schema below, no extra explanation.

Schema:
{
  "target": string | null
}
"""

DECISIONS = {
    "heal": {
        "description": "If you are the healer, choose one player to protect from the werewolves tonight.",
        "optional": True,
    },
    "investigate": {
        "description": "If you are the detective, choose one player whose faction you want to learn.",
        "optional": True,
    },
    "kill": {
        "description": "If you are the leading werewolf, choose one player to kill tonight.",
        "optional": False,
    },
}


def build_system_prompt(decision):
    data = DECISIONS[decision]
    prompt = [SYSTEM_PROMPT.strip(), "", f"Decision: {decision}", f"Description: {data['description']}"]
    if data["optional"]:
        prompt.append('Use null for "target" to skip this action.')
    else:
        prompt.append('You must name one of the candidates as "target".')
    return "\n".join(prompt)


def build_user_message(player, candidates):
    lines = [f"You are {player.name}."]
    if player.secret_id is not None:
        lines.append(f"Your secret player ID is {player.secret_id}.")
    for name, faction in player.investigated.items():
        lines.append(f"Your investigation showed that {name} is part of the {faction}.")
    lines.append("Candidates: " + ", ".join(p.name for p in candidates))
    return "\n".join(lines)


def parse_target(content, candidates):
    """Map the model's JSON answer to one of ``candidates``; None if unusable."""
    try:
        answer = json.loads(content or "")
    except json.JSONDecodeError:
        debug(f"LLM answer is not JSON: {content!r}")
        return None
    if not isinstance(answer, dict):
        debug(f"LLM answer is not an object: {content!r}")
        return None
    name = answer.get("target")
    if name is None:
        return None
    for p in candidates:
        if p.name.lower() == str(name).strip().lower():
            return p
    debug(f"LLM chose {name!r}, which is not a candidate")
    return None


class LLMPlayerController(PlayerController):
    """A player whose night decisions come from an OpenAI chat model."""

    def __init__(self, name, client=None, model=DEFAULT_MODEL, rng=None):
        super().__init__(name)
        if client is None:
            openai.api_key = os.getenv("OPENAI_API_KEY")
            client = openai
        self.client = client
        self.model = model
        self.rng = rng if rng is not None else random.Random()
        self.secret_id = None
        self.investigated = {}
        self._last_investigation = None

    def _ask(self, decision, candidates):
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": build_system_prompt(decision)},
                {"role": "user", "content": build_user_message(self, candidates)},
            ],
            response_format={"type": "json_object"},
        )
        return parse_target(response.choices[0].message.content, candidates)

    def receive_secret_id(self, secret_id):
        self.secret_id = secret_id

    def choose_heal_target(self, candidates):
        return self._ask("heal", candidates)

    def choose_investigation_target(self, candidates):
        target = self._ask("investigate", candidates)
        self._last_investigation = target.name if target is not None else None
        return target

    def receive_investigation_result(self, faction):
        if self._last_investigation is not None:
            self.investigated[self._last_investigation] = faction
            self._last_investigation = None

    def choose_werewolf_kill_target(self, candidates):
        target = self._ask("kill", candidates)
        if target is None:
            target = self.rng.choice(candidates)
            debug(f"{self.name} gave no usable kill target, picked {target.name}")
        return target
