"""Plan/apply/import/destroy orchestration with a file-backed state store."""
import pytest

from casdoor_provider.core.casdoor import CasdoorConnectionError
from casdoor_provider.core.engine import ChangeAction, Engine, load_configuration
from casdoor_provider.core.errors import (
    ConfigurationError,
    CreatedButUnconfirmedError,
    InvalidImportIdError,
    OperationRejectedError,
)
from casdoor_provider.core.state import MANAGED, UNCONFIRMED, StateStore

READERS = {"casdoor_role.readers": {"owner": "built-in", "name": "readers"}}


@pytest.fixture()
def store(tmp_path):
    return StateStore(tmp_path / "state" / "casdoor.tfstate.json")


@pytest.fixture()
def engine(fake_client, store):
    return Engine(fake_client, store)


def _plan(engine, config):
    return engine.plan(config, engine.refresh(engine.store.load()))


# ─────────────────────────────────────────────────────────────────────────────
# Apply
# ─────────────────────────────────────────────────────────────────────────────

def test_apply_creates_then_is_idempotent(engine, fake_client, store):
    result = engine.apply(READERS)

    assert result.ok
    assert [c.action for c in result.applied] == [ChangeAction.CREATE]
    record = store.load()["casdoor_role.readers"]
    assert record.status == MANAGED
    assert record.attributes["id"] == "built-in/readers"

    assert [c.action for c in _plan(engine, READERS)] == [ChangeAction.NOOP]
    second = engine.apply(READERS)
    assert second.applied == []
    assert fake_client.count("add") == 1


def test_apply_updates_changed_attribute(engine, fake_client, store):
    engine.apply(READERS)
    config = {"casdoor_role.readers": {"owner": "built-in", "name": "readers", "users": ["built-in/alice"]}}

    changes = _plan(engine, config)
    assert changes[0].action is ChangeAction.UPDATE
    assert changes[0].changed == ["users"]

    result = engine.apply(config)
    assert result.ok
    assert fake_client.objects[("role", "built-in", "readers")]["users"] == ["built-in/alice"]
    assert store.load()["casdoor_role.readers"].attributes["users"] == ["built-in/alice"]


def test_changing_name_replaces_object(engine, fake_client):
    engine.apply(READERS)
    config = {"casdoor_role.readers": {"owner": "built-in", "name": "viewers"}}

    assert _plan(engine, config)[0].action is ChangeAction.REPLACE
    result = engine.apply(config)

    assert result.ok
    assert ("role", "built-in", "readers") not in fake_client.objects
    assert ("role", "built-in", "viewers") in fake_client.objects


def test_removed_block_is_deleted(engine, fake_client, store):
    engine.apply(READERS)

    result = engine.apply({})

    assert [c.action for c in result.applied] == [ChangeAction.DELETE]
    assert fake_client.objects == {}
    assert store.load() == {}


def test_unconfirmed_create_is_confirmed_on_next_apply(engine, fake_client, store):
    fake_client.get_errors.append(CasdoorConnectionError("read timed out"))

    first = engine.apply(READERS)

    assert not first.ok
    change, exc = first.failures[0]
    assert change.action is ChangeAction.CREATE
    assert isinstance(exc, CreatedButUnconfirmedError)
    assert store.load()["casdoor_role.readers"].status == UNCONFIRMED

    second = engine.apply(READERS)

    assert second.ok
    assert second.applied == []
    assert fake_client.count("add") == 1
    assert store.load()["casdoor_role.readers"].status == MANAGED


def test_malformed_read_back_is_recorded_and_not_created_twice(engine, fake_client, store, monkeypatch):
    original_get = fake_client.get_object
    responses = iter([{"owner": "built-in", "name": "readers", "createdTime": {"unexpected": "object"}}])

    def _first_malformed(kind, owner, name):
        malformed = next(responses, None)
        return malformed if malformed is not None else original_get(kind, owner, name)

    monkeypatch.setattr(fake_client, "get_object", _first_malformed)

    first = engine.apply(READERS)

    assert isinstance(first.errors["casdoor_role.readers"], CreatedButUnconfirmedError)
    assert store.load()["casdoor_role.readers"].status == UNCONFIRMED

    second = engine.apply(READERS)

    assert second.ok
    assert fake_client.count("add") == 1
    assert store.load()["casdoor_role.readers"].status == MANAGED


def test_object_deleted_outside_is_planned_for_creation(engine, fake_client, store):
    engine.apply(READERS)
    fake_client.objects.clear()

    changes = _plan(engine, READERS)

    assert [c.action for c in changes] == [ChangeAction.CREATE]


def test_one_failure_does_not_block_other_changes(engine, fake_client):
    fake_client.rejected.add("add-role")
    config = {
        **READERS,
        "casdoor_group.staff": {"owner": "built-in", "name": "staff"},
    }

    result = engine.apply(config)

    assert list(result.errors) == ["casdoor_role.readers"]
    assert isinstance(result.errors["casdoor_role.readers"], OperationRejectedError)
    assert [c.address for c in result.applied] == ["casdoor_group.staff"]
    assert ("group", "built-in", "staff") in fake_client.objects


def test_deletes_run_newest_first(engine):
    config = {
        **READERS,
        "casdoor_role.writers": {"owner": "built-in", "name": "writers"},
    }
    engine.apply(config)

    changes = _plan(engine, {})

    assert [c.address for c in changes] == ["casdoor_role.writers", "casdoor_role.readers"]


def test_unknown_type_in_plan(engine):
    with pytest.raises(ConfigurationError, match="not supported"):
        engine.plan({"casdoor_widget.x": {}}, {})


# ─────────────────────────────────────────────────────────────────────────────
# Import
# ─────────────────────────────────────────────────────────────────────────────

def test_import_existing_object(engine, fake_client, store):
    fake_client.put("role", "built-in", "r1", {"owner": "built-in", "name": "r1", "displayName": "R1"})

    record = engine.import_resource("casdoor_role.r1", "built-in/r1")

    assert record.attributes["display_name"] == "R1"
    assert store.load()["casdoor_role.r1"].attributes["id"] == "built-in/r1"
    assert [c.action for c in _plan(engine, {"casdoor_role.r1": {"owner": "built-in", "name": "r1", "display_name": "R1"}})] == [
        ChangeAction.NOOP
    ]


def test_import_malformed_id_leaves_no_state(engine, fake_client, store):
    with pytest.raises(InvalidImportIdError):
        engine.import_resource("casdoor_role.r1", "r1")
    assert not store.path.exists()
    assert fake_client.calls == []


def test_import_missing_object(engine, store):
    with pytest.raises(OperationRejectedError) as exc_info:
        engine.import_resource("casdoor_role.r1", "built-in/nope")
    assert exc_info.value.summary == "Cannot Import Non-Existent Remote Object"
    assert not store.path.exists()


def test_import_rejects_managed_address(engine, fake_client):
    engine.apply(READERS)
    with pytest.raises(ConfigurationError, match="already in state"):
        engine.import_resource("casdoor_role.readers", "built-in/readers")


def test_import_rejects_bad_address(engine):
    with pytest.raises(ConfigurationError) as exc_info:
        engine.import_resource("role.r1", "built-in/r1")
    assert exc_info.value.summary == "Invalid Resource Address"


# ─────────────────────────────────────────────────────────────────────────────
# Destroy
# ─────────────────────────────────────────────────────────────────────────────

def test_destroy_all(engine, fake_client, store):
    engine.apply({**READERS, "casdoor_group.staff": {"owner": "built-in", "name": "staff"}})

    result = engine.destroy()

    assert result.ok
    assert [c.address for c in result.applied] == ["casdoor_group.staff", "casdoor_role.readers"]
    assert fake_client.objects == {}
    assert store.load() == {}


def test_destroy_target_only(engine, fake_client, store):
    engine.apply({**READERS, "casdoor_group.staff": {"owner": "built-in", "name": "staff"}})

    engine.destroy(["casdoor_role.readers"])

    assert list(store.load()) == ["casdoor_group.staff"]


def test_destroy_failure_keeps_record(engine, fake_client, store):
    engine.apply(READERS)
    fake_client.rejected.add("delete-role")

    result = engine.destroy()

    assert not result.ok
    assert "casdoor_role.readers" in store.load()


# ─────────────────────────────────────────────────────────────────────────────
# Configuration loading
# ─────────────────────────────────────────────────────────────────────────────

def test_load_configuration(tmp_path):
    path = tmp_path / "casdoor.yaml"
    path.write_text(
        "resources:\n"
        "  casdoor_role.readers:\n"
        "    owner: built-in\n"
        "    name: readers\n"
        "    users: [built-in/alice]\n",
        encoding="utf-8",
    )
    config = load_configuration(path)
    assert config == {"casdoor_role.readers": {"owner": "built-in", "name": "readers", "users": ["built-in/alice"]}}


def test_load_configuration_bad_yaml(tmp_path):
    path = tmp_path / "casdoor.yaml"
    path.write_text("resources: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError) as exc_info:
        load_configuration(path)
    assert exc_info.value.summary == "Invalid Configuration"


def test_load_configuration_missing_file(tmp_path):
    with pytest.raises(ConfigurationError) as exc_info:
        load_configuration(tmp_path / "absent.yaml")
    assert exc_info.value.summary == "Cannot Read Configuration"
