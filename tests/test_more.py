import time

import pytest
from embedded_jsondoc_engine import Collection, InvalidModifierError, UnknownOperatorError


def make_cities(tmp_path, **kwargs):
    coll = Collection(str(tmp_path), "cities", **kwargs)
    # Unrelated documents make sure unmatched queries stay unmatched
    coll.insert([{"xxx": "xxx"}, {"yyy": "yyy"}, {"zzz": "zzz"}])
    coll.insert([
        {"name": "Lyon", "population": 500, "meta": {"country": "FR"}},
        {"name": "Oslo", "population": 700, "meta": {"country": "NO"}},
    ])
    return coll


def strip_meta(docs):
    return [{k: v for k, v in d.items() if not k.startswith("_")} for d in docs]


def test_progress_events(tmp_path):
    events = []

    def collect(evt):
        events.append(evt.get("phase"))

    coll = Collection(str(tmp_path), "events", on_progress=collect)
    assert events == ["open.start", "open.done"]

    events.clear()
    coll.insert({"a": 1})
    assert events == ["insert.start", "sync.start", "sync.done", "insert.done"]

    events.clear()
    coll.update({"a": 1}, {"$inc": {"a": 1}})
    assert "update.start" in events and "update.done" in events and "sync.done" in events

    events.clear()
    coll.remove({"a": 2})
    assert "remove.start" in events and "remove.done" in events


def test_operations_always_return_lists(tmp_path):
    coll = make_cities(tmp_path)
    assert coll.find({"name": "Paris"}) == []
    assert coll.update({"name": "Paris"}, {"$inc": {"population": 1}}) == []
    assert coll.remove({"name": "Paris"}) == []
    assert len(coll) == 5


def test_update_returns_updated_documents_and_persists(tmp_path):
    coll = make_cities(tmp_path)
    got = coll.update({"name": "Lyon"}, {"$inc": {"population": 25}})
    assert strip_meta(got) == [{"name": "Lyon", "population": 525, "meta": {"country": "FR"}}]
    again = Collection(str(tmp_path), "cities")
    assert again.find({"name": "Lyon"})[0]["population"] == 525


def test_update_refreshes_updated_timestamp_only(tmp_path):
    coll = make_cities(tmp_path)
    before = coll.find({"name": "Oslo"})[0]
    time.sleep(0.01)
    after = coll.update({"name": "Oslo"}, {"$inc": {"population": 0}})[0]
    assert strip_meta([after]) == strip_meta([before])
    assert after["_id"] == before["_id"]
    assert after["_created_at"] == before["_created_at"]
    assert after["_updated_at"] > before["_updated_at"]


def test_modifiers_cannot_change_identity(tmp_path):
    coll = make_cities(tmp_path)
    rid = coll.find({"name": "Oslo"})[0]["_id"]
    got = coll.update({"_id": rid}, {"$set": {"_id": "other"}, "$unset": ["_created_at"]})
    assert got[0]["_id"] == rid
    assert "_created_at" in got[0]
    assert coll.get(rid) is not None


def test_update_merge_follows_query(tmp_path):
    coll = make_cities(tmp_path)
    coll.update({"meta": {"country": "FR"}}, {"$merge": {"eu": True}})
    coll.update({"name": "Oslo"}, {"$merge": [{"meta": {"eu": False}}, {"fjords": True}]})
    lyon = coll.find({"name": "Lyon"})[0]
    oslo = coll.find({"name": "Oslo"})[0]
    assert lyon["meta"] == {"country": "FR", "eu": True}
    assert "eu" not in lyon
    assert oslo["meta"] == {"country": "NO", "eu": False}
    assert oslo["fjords"] is True


def test_failed_update_changes_nothing(tmp_path):
    coll = make_cities(tmp_path, autosync=False)
    with pytest.raises(UnknownOperatorError):
        coll.update({"population": {"$gt": 0}}, {"$inc": {"population": 1}, "$bogus": {}})
    with pytest.raises(InvalidModifierError):
        # names are not numeric, so no document may keep its population bump
        coll.update({"population": {"$gt": 0}}, {"$inc": {"population": 1, "name": 1}})
    assert sorted(d["population"] for d in coll.find({"population": {"$gt": 0}})) == [500, 700]


def test_update_with_options(tmp_path):
    coll = make_cities(tmp_path)
    got = coll.update({"population": {"$gt": 0}}, {"$inc": {"population": 1}},
                      {"sort": {"population": -1}, "project": {"name": 1, "_id": 0}})
    assert got == [{"name": "Oslo"}, {"name": "Lyon"}]


def test_upsert(tmp_path):
    coll = make_cities(tmp_path)
    got = coll.upsert({"name": "Bergen", "population": {"$gt": 0}}, {"$set": {"population": 300}})
    assert strip_meta(got) == [{"name": "Bergen", "population": 300}]
    got = coll.upsert({"name": "Bergen"}, {"$inc": {"population": 1}})
    assert got[0]["population"] == 301
    assert coll.count({"name": "Bergen"}) == 1


def test_remove_returns_removed_documents(tmp_path):
    coll = make_cities(tmp_path)
    gone = coll.remove({"population": {"$gte": 500}}, {"sort": {"name": 1}, "project": {"name": 1}})
    assert [d["name"] for d in gone] == ["Lyon", "Oslo"]
    assert coll.find({"population": {"$exists": True}}) == []
    assert len(Collection(str(tmp_path), "cities")) == 3


def test_find_returns_copies(tmp_path):
    coll = make_cities(tmp_path)
    doc = coll.find({"name": "Lyon"})[0]
    doc["meta"]["country"] = "XX"
    assert coll.find({"name": "Lyon"})[0]["meta"]["country"] == "FR"
    assert [d["name"] for d in coll if "name" in d] == ["Lyon", "Oslo"]
