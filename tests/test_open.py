import json
import os

import pytest
from embedded_jsondoc_engine import (
    Collection,
    DuplicateIdError,
    FileStorage,
    IOCorruptionError,
    InvalidDocumentError,
    ReservedKeys,
    StorageError,
)
from rich.console import Console

_console = Console(force_terminal=True, color_system="standard")


def progress_printer(evt):
    phase = evt.get("phase", "")
    pct = int(evt.get("pct", 0))
    msg = evt.get("msg", "")
    parts = [phase, f"{pct}%"]
    if msg:
        parts.append(f"- {msg}")
    _console.print(f"[progress] {' '.join(parts)}", markup=False, highlight=False)


def test_creates_directory_and_file(tmp_path):
    base = tmp_path / "nested" / "store"
    coll = Collection(str(base), "users", on_progress=progress_printer)
    assert coll.path == str(base / "users.json")
    assert json.loads((base / "users.json").read_text()) == {}
    assert len(coll) == 0


def test_reload_after_autosync(tmp_path):
    coll = Collection(str(tmp_path), "users")
    ins = coll.insert({"name": "Alice", "address": {"city": "Wien"}})
    rid = ins[0]["_id"]
    assert isinstance(rid, str) and len(rid) == 26

    again = Collection(str(tmp_path), "users")
    assert again.get(rid)["address"] == {"city": "Wien"}
    assert again.find({"city": "Wien"})[0]["name"] == "Alice"


def test_manual_sync(tmp_path):
    coll = Collection(str(tmp_path), "users.json", autosync=False)
    coll.insert({"name": "Bob"})
    assert Collection(str(tmp_path), "users").find() == []
    coll.sync()
    assert [d["name"] for d in Collection(str(tmp_path), "users").find()] == ["Bob"]


def test_integer_ids_survive_reload_and_are_not_reused(tmp_path):
    coll = Collection(str(tmp_path), "seq", integer_ids=True)
    coll.insert([{"n": "a"}, {"n": "b"}, {"n": "c"}])
    assert [d["_id"] for d in coll.find()] == [1, 2, 3]
    coll.remove({"_id": 3})
    assert coll.insert({"n": "d"})[0]["_id"] == 4

    again = Collection(str(tmp_path), "seq", integer_ids=True)
    assert again.get(2)["n"] == "b"
    assert again.get("2") is None
    assert again.insert({"n": "e"})[0]["_id"] == 5


def test_supplied_ids(tmp_path):
    coll = Collection(str(tmp_path), "ids", integer_ids=True)
    coll.insert([{"_id": 10}, {}])
    assert [d["_id"] for d in coll.find()] == [10, 11]
    with pytest.raises(DuplicateIdError):
        coll.insert({"_id": 10})
    with pytest.raises(DuplicateIdError):
        coll.insert([{"_id": 50}, {"_id": 50}])
    assert len(coll) == 2


def test_insert_rejects_non_mapping(tmp_path):
    coll = Collection(str(tmp_path), "bad", autosync=False)
    with pytest.raises(InvalidDocumentError):
        coll.insert([{"ok": 1}, "nope"])
    assert len(coll) == 0


def test_custom_reserved_keys(tmp_path):
    keys = ReservedKeys(id_key="id", created_at_key="createdAt", updated_at_key="updatedAt")
    coll = Collection(str(tmp_path), "custom", keys=keys)
    doc = coll.insert({"name": "Alice"})[0]
    assert set(doc) == {"id", "createdAt", "updatedAt", "name"}
    assert doc["createdAt"] == doc["updatedAt"]
    assert coll.find({}, {"project": {"name": 1}}) == [{"id": doc["id"], "name": "Alice"}]

    again = Collection(str(tmp_path), "custom", keys=keys)
    assert again.get(doc["id"])["name"] == "Alice"


def test_reserved_keys_must_be_distinct():
    with pytest.raises(ValueError):
        ReservedKeys(id_key="x", created_at_key="x")


def test_corrupt_file_loads_empty_unless_strict(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    coll = Collection(str(tmp_path), "broken", autosync=False)
    assert coll.find() == []
    with pytest.raises(IOCorruptionError):
        Collection(str(tmp_path), "broken", strict=True)

    path.write_text("[1, 2]")
    assert FileStorage(str(tmp_path), "broken").load() == {}


def test_unreadable_file_is_a_storage_error(tmp_path):
    (tmp_path / "dir.json").mkdir()
    with pytest.raises(StorageError):
        FileStorage(str(tmp_path), "dir").load()


def test_persist_replaces_whole_file(tmp_path):
    fs = FileStorage(str(tmp_path), "whole", indent=None)
    fs.persist({"a": {"_id": "a"}})
    fs.persist({"b": {"_id": "b"}})
    assert json.loads((tmp_path / "whole.json").read_text()) == {"b": {"_id": "b"}}
    assert sorted(os.listdir(tmp_path)) == ["whole.json"]


def test_drop(tmp_path):
    coll = Collection(str(tmp_path), "dropme", autosync=False, integer_ids=True)
    coll.insert([{"a": 1}, {"a": 2}])
    coll.sync()
    coll.drop()
    assert coll.find() == []
    assert json.loads((tmp_path / "dropme.json").read_text()) == {}
    assert coll.insert({"a": 3})[0]["_id"] == 1


def test_ids_colliding_as_json_keys_are_duplicates(tmp_path):
    coll = Collection(str(tmp_path), "keys", integer_ids=True)
    coll.insert({})
    with pytest.raises(DuplicateIdError):
        coll.insert({"_id": "1"})
    assert len(Collection(str(tmp_path), "keys", integer_ids=True)) == 1

    coll.insert({"_id": "3"})
    assert [d["_id"] for d in coll.insert([{}, {}])] == [2, 4]
    assert len(Collection(str(tmp_path), "keys", integer_ids=True)) == 4


def test_id_must_be_int_or_string(tmp_path):
    coll = Collection(str(tmp_path), "idtypes", autosync=False)
    for bad in (1.5, [1], {"a": 1}, True):
        with pytest.raises(InvalidDocumentError):
            coll.insert({"_id": bad})
    assert len(coll) == 0


def test_failed_persist_is_a_storage_error(tmp_path):
    fs = FileStorage(str(tmp_path), "whole")
    os.remove(fs.path)
    os.mkdir(fs.path)
    with pytest.raises(StorageError):
        fs.persist({"a": {"_id": "a"}})
    assert not [n for n in os.listdir(tmp_path) if n.endswith(".tmp")]

    coll = Collection(str(tmp_path), "auto")
    os.remove(coll.path)
    os.mkdir(coll.path)
    with pytest.raises(StorageError):
        coll.insert({"a": 1})
    assert sorted(os.listdir(tmp_path)) == ["auto.json", "whole.json"]
