import pytest

from dashboard.backend import AuthSession
from dashboard.backend import BackendError
from dashboard.backend import eq
from dashboard.backend import gte
from dashboard.backend import is_in
from dashboard.backend import lte
from dashboard.backend import neq


def test_insert_assigns_ids_and_timestamps(backend):
    (row,) = backend.insert("services", {"service_name": "AI"})
    assert row["id"] and row["created_at"] and row["updated_at"]
    assert backend.rows("services") == [row]


def test_filters_order_and_columns(backend):
    backend.insert("t", [{"n": 3, "k": "a"}, {"n": 1, "k": "b"}, {"n": 2, "k": "a"}])
    assert [r["n"] for r in backend.select("t", order="n")] == [1, 2, 3]
    assert [r["n"] for r in backend.select("t", order="n", descending=True, limit=2)] == [3, 2]
    assert [r["n"] for r in backend.select("t", filters=[eq("k", "a")], order="n")] == [2, 3]
    assert [r["n"] for r in backend.select("t", filters=[neq("k", "a")])] == [1]
    assert [r["n"] for r in backend.select("t", filters=[is_in("n", [1, 3])], order="n")] == [1, 3]
    assert [r["n"] for r in backend.select("t", filters=[gte("n", 2), lte("n", 2)])] == [2]
    assert backend.select("t", columns="k", filters=[eq("n", 1)]) == [{"k": "b"}]


def test_update_delete_and_upsert(backend):
    backend.insert("t", {"key": "a", "value": "1"})
    assert backend.update("t", {"value": "2"}, filters=[eq("key", "missing")]) == []
    assert backend.update("t", {"value": "2"}, filters=[eq("key", "a")])[0]["value"] == "2"
    backend.upsert("t", [{"key": "a", "value": "3"}, {"key": "b", "value": "4"}], on_conflict="key")
    assert {r["key"]: r["value"] for r in backend.rows("t")} == {"a": "3", "b": "4"}
    assert len(backend.delete("t", filters=[eq("key", "a")])) == 1
    assert [r["key"] for r in backend.rows("t")] == ["b"]


def test_returned_rows_are_copies(backend):
    (row,) = backend.insert("t", {"meta": {"projects": []}})
    row["meta"]["projects"].append("x")
    assert backend.rows("t")[0]["meta"] == {"projects": []}


def test_injected_failures(backend):
    backend.fail("insert", "t", "database is down")
    with pytest.raises(BackendError) as exc:
        backend.insert("t", {"a": 1})
    assert exc.value.message == "database is down"
    backend.recover()
    assert backend.insert("t", {"a": 1})


def test_auth_round_trip(backend):
    backend.add_user("a@b.id", "pw")
    with pytest.raises(BackendError) as exc:
        backend.sign_in("a@b.id", "wrong")
    assert exc.value.code == "invalid_credentials"
    session = backend.sign_in("A@B.id", "pw")
    assert backend.get_user(session.access_token) == session.user
    assert AuthSession.from_dict(session.to_dict()) == session
    backend.sign_out(session)
    assert backend.get_user(session.access_token) is None


def test_change_notifications(backend):
    events = []
    sub = backend.subscribe("chat_messages", events.append)
    (row,) = backend.insert("chat_messages", {"message_content": "halo"})
    backend.update("chat_messages", {"message_content": "hai"}, filters=[eq("id", row["id"])])
    backend.delete("chat_messages", filters=[eq("id", row["id"])])
    assert [e["eventType"] for e in events] == ["INSERT", "UPDATE", "DELETE"]
    assert events[0]["table"] == "chat_messages"
    assert backend.subscriber_count("chat_messages") == 1
    sub.unsubscribe()
    assert backend.subscriber_count("chat_messages") == 0
    backend.insert("chat_messages", {"message_content": "lagi"})
    assert len(events) == 3


def test_storage(backend):
    url = backend.upload_file("client-logos", "logos/a.png", b"png", content_type="image/png")
    assert url == backend.public_url("client-logos", "logos/a.png")
    assert "/storage/v1/object/public/client-logos/logos/a.png" in url
    backend.remove_files("client-logos", ["logos/a.png"])
    assert backend.stored_object("client-logos", "logos/a.png") is None
