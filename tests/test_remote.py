"""Tests for the Supabase REST client and the in-memory table."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from taskflow.remote import (
    MemoryClient,
    NoRowsError,
    RemoteError,
    SupabaseClient,
)


def response(status=200, body=None, reason="OK"):
    r = MagicMock()
    r.status_code = status
    r.ok = status < 400
    r.reason = reason
    r.content = b"" if body is None else b"x"
    r.json.return_value = body
    return r


@pytest.fixture
def supabase():
    return SupabaseClient("https://demo.supabase.co/", "anon-key", timeout=5)


class TestSupabaseTable:

    def test_select_builds_filters_and_order(self, supabase):
        with patch("taskflow.remote.requests.request", return_value=response(body=[{"id": "a"}])) as req:
            rows = supabase.table("tasks").select({"user_id": "u1"}, "created_at")

        assert rows == [{"id": "a"}]
        method, url = req.call_args.args
        assert method == "GET"
        assert url == "https://demo.supabase.co/rest/v1/tasks"
        assert req.call_args.kwargs["params"] == {
            "select": "*",
            "user_id": "eq.u1",
            "order": "created_at.desc",
        }
        assert req.call_args.kwargs["timeout"] == 5

    def test_ascending_order(self, supabase):
        with patch("taskflow.remote.requests.request", return_value=response(body=[])) as req:
            supabase.table("projects").select({"user_id": "u1"}, "created_at", False)
        assert req.call_args.kwargs["params"]["order"] == "created_at.asc"

    def test_insert_asks_for_representation(self, supabase):
        with patch("taskflow.remote.requests.request",
                   return_value=response(201, [{"id": "new"}])) as req:
            row = supabase.table("tasks").insert({"title": "x"})

        assert row == {"id": "new"}
        assert req.call_args.kwargs["headers"]["Prefer"] == "return=representation"
        assert req.call_args.kwargs["json"] == {"title": "x"}

    def test_insert_with_empty_body_returns_none(self, supabase):
        with patch("taskflow.remote.requests.request", return_value=response(201, [])):
            assert supabase.table("tasks").insert({"title": "x"}) is None

    def test_update_and_delete_target_id(self, supabase):
        with patch("taskflow.remote.requests.request", return_value=response(204)) as req:
            supabase.table("tasks").update("t1", {"completed": True})
            assert req.call_args.args[0] == "PATCH"
            assert req.call_args.kwargs["params"] == {"id": "eq.t1"}
            assert req.call_args.kwargs["json"] == {"completed": True}

            supabase.table("tasks").delete("t1")
            assert req.call_args.args[0] == "DELETE"
            assert req.call_args.kwargs["params"] == {"id": "eq.t1"}

    def test_access_token_replaces_api_key_in_bearer(self, supabase):
        assert supabase.headers()["Authorization"] == "Bearer anon-key"
        supabase.access_token = "jwt"
        headers = supabase.headers()
        assert headers["Authorization"] == "Bearer jwt"
        assert headers["apikey"] == "anon-key"


class TestErrors:

    def test_no_rows_code(self, supabase):
        body = {"code": "PGRST116", "message": "JSON object requested, multiple (or no) rows returned"}
        with patch("taskflow.remote.requests.request", return_value=response(406, body)):
            with pytest.raises(NoRowsError) as exc:
                supabase.table("projects").select()
        assert exc.value.code == "PGRST116"

    def test_bare_404_is_no_rows(self, supabase):
        with patch("taskflow.remote.requests.request", return_value=response(404, None, "Not Found")):
            with pytest.raises(NoRowsError):
                supabase.table("projects").select()

    def test_other_error_carries_code_and_status(self, supabase):
        body = {"code": "23505", "message": "duplicate key value"}
        with patch("taskflow.remote.requests.request", return_value=response(409, body)):
            with pytest.raises(RemoteError) as exc:
                supabase.table("tasks").insert({})
        assert not isinstance(exc.value, NoRowsError)
        assert exc.value.status == 409
        assert str(exc.value) == "duplicate key value"

    def test_network_failure(self, supabase):
        with patch("taskflow.remote.requests.request",
                   side_effect=requests.ConnectionError("refused")):
            with pytest.raises(RemoteError, match="refused"):
                supabase.table("tasks").select()


class TestMemoryTable:

    def test_insert_assigns_id_and_created_at(self):
        table = MemoryClient().table("tasks")
        row = table.insert({"title": "x", "user_id": "u"})
        assert row["id"]
        assert row["created_at"]
        assert table.rows[row["id"]]["title"] == "x"

    def test_same_table_instance_per_name(self):
        client = MemoryClient()
        assert client.table("tasks") is client.table("tasks")

    def test_select_filters_and_orders(self):
        table = MemoryClient().table("tasks")
        a = table.insert({"title": "a", "user_id": "u"})
        table.insert({"title": "other", "user_id": "v"})
        b = table.insert({"title": "b", "user_id": "u"})

        newest_first = table.select({"user_id": "u"}, "created_at")
        assert [r["id"] for r in newest_first] == [b["id"], a["id"]]
        oldest_first = table.select({"user_id": "u"}, "created_at", False)
        assert [r["id"] for r in oldest_first] == [a["id"], b["id"]]

    def test_update_and_delete(self):
        table = MemoryClient().table("tasks")
        row = table.insert({"title": "a", "completed": False})
        table.update(row["id"], {"completed": True})
        assert table.select()[0]["completed"] is True
        table.delete(row["id"])
        table.delete(row["id"])
        assert table.select() == []

    def test_select_returns_copies(self):
        table = MemoryClient().table("tasks")
        row = table.insert({"title": "a"})
        table.select()[0]["title"] = "mutated"
        assert table.rows[row["id"]]["title"] == "a"
