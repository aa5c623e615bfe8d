"""
Identity resolution and the dual-party gate.

Critical invariant tested:
    ONLY THE EXACT ISSUED KEY RESOLVES TO ITS TAG
"""

import pytest

from moltr import db
from moltr.auth import is_party, require_party, resolve_identity
from moltr.errors import Forbidden
from moltr.keys import hash_api_key
from moltr.models import Identity
from moltr.tags import register_tag
from moltr.util import generate_id, now_micros


@pytest.fixture
def three_tags():
    return {name: register_tag(name, f"wallet-{name}")["apiKey"] for name in ("alice", "bob", "carol")}


@pytest.mark.parametrize("use_key_hint", [True, False])
def test_each_key_resolves_to_its_tag(three_tags, use_key_hint):
    for name, key in three_tags.items():
        identity = resolve_identity(key, use_key_hint=use_key_hint)
        assert identity is not None
        assert identity.username == name
        assert identity.id == db.get_tag_by_username(name)["id"]


@pytest.mark.parametrize("use_key_hint", [True, False])
@pytest.mark.parametrize("presented", [None, "", "short", "a" * 15, 1234567890123456789, b"x" * 40])
def test_rejects_absent_short_or_non_string(three_tags, presented, use_key_hint):
    assert resolve_identity(presented, use_key_hint=use_key_hint) is None


@pytest.mark.parametrize("use_key_hint", [True, False])
def test_unknown_and_mutated_keys_do_not_resolve(three_tags, use_key_hint):
    key = three_tags["alice"]
    assert resolve_identity("x" * 64, use_key_hint=use_key_hint) is None
    assert resolve_identity(key[:-1] + ("A" if key[-1] != "A" else "B"), use_key_hint=use_key_hint) is None
    assert resolve_identity(key + "0", use_key_hint=use_key_hint) is None


def test_key_id_of_one_tag_with_secret_of_another_does_not_resolve(three_tags):
    alice, bob = three_tags["alice"], three_tags["bob"]
    alice_prefix = alice[:len("mk_") + 8 + 1]
    bob_secret = bob[len(alice_prefix):]
    forged = alice_prefix + bob_secret
    assert resolve_identity(forged, use_key_hint=True) is None
    assert resolve_identity(forged, use_key_hint=False) is None


def test_hintless_credentials_are_still_found():
    # Stored without a key id, but presented in the issued format
    legacy_key = "mk_0badc0de_legacy-secret-without-stored-hint"
    tag_id = generate_id(16)
    assert db.insert_tag(tag_id, "legacy", "wallet", hash_api_key(legacy_key), None, now_micros())
    register_tag("dave", "wallet-dave")

    for use_key_hint in (True, False):
        identity = resolve_identity(legacy_key, use_key_hint=use_key_hint)
        assert identity == Identity(id=tag_id, username="legacy")


def test_resolution_does_not_mutate_store(three_tags):
    before = db.list_credentials()
    resolve_identity(three_tags["bob"])
    resolve_identity("y" * 50)
    assert db.list_credentials() == before


def test_require_party():
    a, b, c = Identity("id-a", "a"), Identity("id-b", "b"), Identity("id-c", "c")
    require_party(a, "id-a", "id-b")
    require_party(b, "id-a", "id-b")
    with pytest.raises(Forbidden):
        require_party(c, "id-a", "id-b")


def test_party_match_is_by_id_not_username():
    impostor = Identity("id-z", "alice")
    assert not is_party(impostor, "id-a", "id-b")
    assert is_party(Identity("id-a", "renamed"), "id-a", "id-b")


def test_self_party():
    a = Identity("id-a", "a")
    require_party(a, "id-a", "id-a")


def test_gate_message_is_neutral_by_default():
    with pytest.raises(Forbidden) as exc:
        require_party(Identity("id-c", "c"), "id-a", "id-b")
    assert exc.value.message == "Not a party to this record"

    with pytest.raises(Forbidden) as exc:
        require_party(Identity("id-c", "c"), "id-a", "id-b", message="custom")
    assert exc.value.message == "custom"
