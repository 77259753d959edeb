import uuid

import pytest

from database import Settings
from core.identity_store import (
    FileIdentityStore,
    IdentityStore,
    MemoryIdentityStore,
    default_identity_store,
    identity_key,
)


def test_identity_key_uses_normalized_code():
    assert identity_key(" abc123 ") == "player_ABC123"


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryIdentityStore()
    return FileIdentityStore(tmp_path / "identity.json")


def test_remembers_player_per_room(store):
    alice, bob = uuid.uuid4(), uuid.uuid4()

    store.set_local_player_id("ROOM01", alice)
    store.set_local_player_id("room02", str(bob))

    assert store.get_local_player_id("room01") == alice
    assert store.get_local_player_id("ROOM02") == bob
    assert store.get_local_player_id("ROOM03") is None


def test_clear_forgets_the_room(store):
    store.set_local_player_id("ROOM01", uuid.uuid4())

    store.clear_local_player_id("ROOM01")
    store.clear_local_player_id("ROOM01")

    assert store.get_local_player_id("ROOM01") is None


def test_rejects_values_that_are_not_player_ids(store):
    with pytest.raises(ValueError):
        store.set_local_player_id("ROOM01", "not-a-uuid")


def test_file_store_survives_a_restart(tmp_path):
    path = tmp_path / "nested" / "identity.json"
    player_id = uuid.uuid4()

    FileIdentityStore(path).set_local_player_id("ROOM01", player_id)

    assert FileIdentityStore(path).get_local_player_id("ROOM01") == player_id


def test_file_store_ignores_corrupted_content(tmp_path):
    path = tmp_path / "identity.json"
    path.write_text("{not json", encoding="utf-8")
    store = FileIdentityStore(path)

    assert store.get_local_player_id("ROOM01") is None

    player_id = uuid.uuid4()
    store.set_local_player_id("ROOM01", player_id)
    assert store.get_local_player_id("ROOM01") == player_id


def test_file_store_ignores_malformed_ids(tmp_path):
    path = tmp_path / "identity.json"
    path.write_text('{"player_ROOM01": "garbage"}', encoding="utf-8")

    assert FileIdentityStore(path).get_local_player_id("ROOM01") is None


def test_default_store_uses_the_configured_path(tmp_path):
    path = tmp_path / "me.json"
    player_id = uuid.uuid4()

    store = default_identity_store(Settings(identity_store_path=str(path)))
    store.set_local_player_id("ROOM01", player_id)

    assert store.path == path
    assert FileIdentityStore(path).get_local_player_id("ROOM01") == player_id


def test_backend_must_implement_storage():
    class HalfStore(IdentityStore):
        def _read(self, key):
            return None

    with pytest.raises(TypeError):
        HalfStore()
