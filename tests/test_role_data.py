import pytest

from role_data import (
    DETECTIVE,
    HEALER,
    VILLAGER,
    Faction,
    Role,
    UnknownRole,
    parse_role,
    parse_roles,
    prepare_roles,
    werewolf,
)


@pytest.mark.parametrize(
    "token, expected",
    [
        ("detective", DETECTIVE),
        ("Healer", HEALER),
        ("  VILLAGER ", VILLAGER),
        ("werewolf", werewolf(0)),
    ],
)
def test_parse_role(token, expected):
    assert parse_role(token) == expected


def test_parse_unknown_role():
    with pytest.raises(UnknownRole) as exc:
        parse_role("seer")
    assert exc.value.token == "seer"
    assert isinstance(exc.value, ValueError)


def test_parse_roles_skips_empty_entries():
    assert parse_roles("werewolf, detective,,healer") == [werewolf(0), DETECTIVE, HEALER]


def test_text_encoding_has_no_rank():
    assert [str(r) for r in (DETECTIVE, HEALER, VILLAGER, werewolf(3))] == [
        "detective",
        "healer",
        "villager",
        "werewolf",
    ]


def test_encode_keeps_werewolf_rank():
    assert werewolf(2).encode() == "werewolf 2"
    assert Role.decode("werewolf 2") == werewolf(2)
    assert Role.decode("healer") == HEALER


@pytest.mark.parametrize("text", ["detective 3", "villager 0", "werewolf x"])
def test_decode_rejects_bad_rank(text):
    with pytest.raises(UnknownRole):
        Role.decode(text)


def test_default_factions():
    assert DETECTIVE.faction is Faction.VILLAGE
    assert HEALER.faction is Faction.VILLAGE
    assert VILLAGER.faction is Faction.VILLAGE
    assert werewolf(1).faction is Faction.WEREWOLVES


def test_prepare_roles_drops_villagers_and_ranks_werewolves():
    roles = [werewolf(0), VILLAGER, DETECTIVE, werewolf(0), HEALER, werewolf(0)]
    assert prepare_roles(roles) == [werewolf(0), DETECTIVE, werewolf(1), HEALER, werewolf(2)]
