import json
from unittest.mock import MagicMock

import pytest
import requests

from bookmark_client import BookmarkClient, LocalSnapshot, STORAGE_KEY

CFG = {
    "BOOKMARKS_API_BASE": "http://bookmarks.test/api/",
    "BOOKMARKS_TIMEOUT_SEC": "2",
    "BOOKMARKS_RETRIES": "0",
    "BOOKMARKS_LOCAL_FILE": "unused.json",
}


def _response(payload=None, status_error=None):
    resp = MagicMock()
    resp.json.return_value = payload
    if status_error is not None:
        resp.raise_for_status.side_effect = status_error
    return resp


@pytest.fixture
def snapshot(tmp_path):
    return LocalSnapshot(tmp_path / "cache.json")


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session, snapshot):
    return BookmarkClient(cfg=CFG, session=session, snapshot=snapshot)


def _offline(session):
    session.request.side_effect = requests.ConnectionError("server down")


def _bm(bm_id, lat, lng, **extra):
    return {"id": bm_id, "name": bm_id, "position": {"lat": lat, "lng": lng, "zoom": 12}, **extra}


# ---------- init ----------

def test_init_adopts_server_collection(client, session):
    server = [_bm("a", 1, 1), _bm("b", 2, 2)]
    session.request.return_value = _response(server)
    assert client.init() == server
    assert client.get_all() == server
    session.request.assert_called_once_with(
        "GET", "http://bookmarks.test/api/bookmarks", timeout=2.0
    )


def test_init_falls_back_to_snapshot_and_migrates(client, session, snapshot):
    local = [_bm("local", 3, 3)]
    snapshot.save(local)
    session.request.side_effect = [
        requests.ConnectionError("down"),
        _response({"success": True}),
    ]
    assert client.init() == local
    method, url = session.request.call_args_list[1].args
    assert (method, url) == ("POST", "http://bookmarks.test/api/bookmarks/sync")
    assert session.request.call_args_list[1].kwargs["json"] == local


def test_init_non_success_response_uses_snapshot(client, session, snapshot):
    snapshot.save([_bm("local", 3, 3)])
    session.request.return_value = _response(
        {"detail": "boom"}, status_error=requests.HTTPError("500 Server Error")
    )
    assert [b["id"] for b in client.init()] == ["local"]


def test_init_without_server_or_snapshot_is_empty(client, session):
    _offline(session)
    assert client.init() == []
    assert session.request.call_count == 1


# ---------- add ----------

def test_add_uses_server_record(client, session, snapshot):
    stored = {"id": "bm_1", "name": "Cafe", "createdAt": "2024-01-01T00:00:00.000Z"}
    session.request.return_value = _response(stored)
    assert client.add({"name": "Cafe"}) == stored
    assert client.get_all() == [stored]
    assert snapshot.load() == [stored]

    sent = session.request.call_args.kwargs["json"]
    assert sent["id"].startswith("bm_")
    assert sent["createdAt"]


def test_add_when_server_fails_keeps_bookmark_locally(client, session, snapshot):
    _offline(session)
    added = client.add(BookmarkClient.create_from_map(37.5, 127.0, 15, "Office"))
    assert added["id"].startswith("bm_")
    assert added["name"] == "Office"
    assert client.get_all() == [added]
    assert client.find_by_id(added["id"]) == added
    assert snapshot.load() == [added]


def test_add_keeps_caller_id(client, session):
    _offline(session)
    assert client.add({"id": "custom", "name": "x"})["id"] == "custom"


# ---------- remove ----------

def test_remove_known_id(client, session, snapshot):
    client.bookmarks = [_bm("a", 0, 0), _bm("b", 1, 1)]
    session.request.return_value = _response({"success": True})
    assert client.remove("a") is True
    assert [b["id"] for b in client.get_all()] == ["b"]
    assert session.request.call_args.args == ("DELETE", "http://bookmarks.test/api/bookmarks/a")
    assert [b["id"] for b in snapshot.load()] == ["b"]


def test_remove_is_local_even_if_server_fails(client, session, snapshot):
    client.bookmarks = [_bm("a", 0, 0)]
    _offline(session)
    assert client.remove("a") is True
    assert client.get_all() == []
    assert snapshot.load() == []


def test_remove_unknown_id_skips_server(client, session):
    client.bookmarks = [_bm("a", 0, 0)]
    assert client.remove("zzz") is False
    assert session.request.call_count == 0
    assert len(client.get_all()) == 1


# ---------- update ----------

def test_update_unknown_id_skips_server(client, session):
    client.bookmarks = [_bm("a", 0, 0)]
    assert client.update("missing", {"name": "x"}) is None
    assert session.request.call_count == 0


def test_update_preserves_identity(client, session, snapshot):
    client.bookmarks = [_bm("a", 0, 0, createdAt="2024-01-01T00:00:00.000Z")]
    session.request.return_value = _response({})
    updated = client.update("a", {"name": "renamed", "id": "x", "createdAt": "never"})
    assert updated["id"] == "a"
    assert updated["createdAt"] == "2024-01-01T00:00:00.000Z"
    assert updated["name"] == "renamed"
    assert updated["updatedAt"]
    assert client.get_all() == [updated]
    assert snapshot.load() == [updated]
    assert session.request.call_args.args == ("PUT", "http://bookmarks.test/api/bookmarks/a")


def test_update_applies_locally_when_server_fails(client, session):
    client.bookmarks = [_bm("a", 0, 0)]
    _offline(session)
    assert client.update("a", {"notes": "offline edit"})["notes"] == "offline edit"
    assert client.get_all()[0]["notes"] == "offline edit"


# ---------- search ----------

def test_search_uses_server(client, session):
    session.request.return_value = _response([_bm("srv", 0, 0)])
    assert [b["id"] for b in client.search_by_coordinates(0, 0)] == ["srv"]
    assert session.request.call_args.kwargs["params"] == {"lat": 0, "lng": 0, "radius": 0.5}


def test_search_falls_back_to_mirror(client, session):
    client.bookmarks = [_bm("origin", 0, 0), _bm("far", 0, 10), {"id": "nopos", "name": "n"}]
    _offline(session)
    assert [b["id"] for b in client.search_by_coordinates(0, 0, 1.0)] == ["origin"]
    assert [b["id"] for b in client.search_by_coordinates(0, 0, 1200)] == ["origin", "far"]


# ---------- clear / sync ----------

def test_clear_empties_mirror_even_offline(client, session, snapshot):
    client.bookmarks = [_bm("a", 0, 0)]
    _offline(session)
    client.clear()
    assert client.get_all() == []
    assert snapshot.load() == []


def test_save_to_storage_always_writes_snapshot(client, session, snapshot):
    client.bookmarks = [_bm("a", 0, 0)]
    _offline(session)
    client.save_to_storage()
    assert snapshot.load() == [_bm("a", 0, 0)]


def test_retries_before_giving_up(session, snapshot, monkeypatch):
    monkeypatch.setattr("bookmark_client.time.sleep", lambda s: None)
    cfg = dict(CFG, BOOKMARKS_RETRIES="2")
    client = BookmarkClient(cfg=cfg, session=session, snapshot=snapshot)
    _offline(session)
    client.init()
    assert session.request.call_count == 3


# ---------- local snapshot ----------

def test_snapshot_stores_under_fixed_key(snapshot):
    snapshot.save([{"id": "a"}])
    assert json.loads(snapshot.path.read_text(encoding="utf-8")) == {STORAGE_KEY: [{"id": "a"}]}


def test_snapshot_malformed_file_loads_as_none(snapshot):
    snapshot.path.write_text("{broken", encoding="utf-8")
    assert snapshot.load() is None
    snapshot.save([])
    assert snapshot.load() == []


def test_create_from_map_defaults_name():
    bm = BookmarkClient.create_from_map(1.5, 2.5, 9)
    assert bm == {
        "name": "Unnamed Location",
        "notes": "",
        "position": {"lat": 1.5, "lng": 2.5, "zoom": 9},
    }


# ---------- find by name ----------

def test_find_by_name_is_case_insensitive(client):
    client.bookmarks = [_bm("a", 0, 0, name="Central Park"), _bm("b", 1, 1, name="Harbour")]
    assert client.find_by_name("central PARK")["id"] == "a"


def test_find_by_name_matches_note_substring(client):
    client.bookmarks = [
        _bm("a", 0, 0, name="Home"),
        _bm("b", 1, 1, name="Cafe", notes="Best Espresso in town"),
    ]
    assert client.find_by_name("espresso")["id"] == "b"


def test_find_by_name_requires_exact_name(client):
    client.bookmarks = [_bm("a", 0, 0, name="Central Park", notes=None)]
    assert client.find_by_name("Central") is None
    assert client.find_by_name("Lake") is None
    assert client.find_by_name("") is None


def test_find_by_name_makes_no_server_call(client, session):
    client.bookmarks = [_bm("a", 0, 0, name="Home")]
    client.find_by_name("home")
    assert session.request.call_count == 0


# ---------- retry policy ----------

def _http_error(status):
    response = MagicMock()
    response.status_code = status
    return requests.HTTPError(f"{status} Error", response=response)


def test_client_errors_are_not_retried(session, snapshot, monkeypatch):
    monkeypatch.setattr("bookmark_client.time.sleep", lambda s: None)
    client = BookmarkClient(cfg=dict(CFG, BOOKMARKS_RETRIES="3"), session=session, snapshot=snapshot)
    client.bookmarks = [_bm("a", 0, 0)]
    session.request.return_value = _response({"detail": "Bookmark not found"}, status_error=_http_error(404))
    assert client.remove("a") is True
    assert session.request.call_count == 1


def test_server_errors_are_retried(session, snapshot, monkeypatch):
    monkeypatch.setattr("bookmark_client.time.sleep", lambda s: None)
    client = BookmarkClient(cfg=dict(CFG, BOOKMARKS_RETRIES="2"), session=session, snapshot=snapshot)
    session.request.side_effect = [
        _response(status_error=_http_error(503)),
        requests.Timeout("slow"),
        _response([_bm("a", 0, 0)]),
    ]
    assert [b["id"] for b in client.init()] == ["a"]
    assert session.request.call_count == 3


def test_update_of_synced_bookmark_sends_position_without_zoom(client, session):
    client.bookmarks = [{"id": "a", "name": "A", "position": {"lat": 1, "lng": 2}}]
    session.request.return_value = _response({})
    updated = client.update("a", {"name": "B"})
    assert session.request.call_args.kwargs["json"]["position"] == {"lat": 1, "lng": 2}
    assert updated["position"] == {"lat": 1, "lng": 2}
