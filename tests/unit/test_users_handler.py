"""
Unit tests for the users route handler.
"""

import json
import logging
from typing import Any, Optional

import pytest

from userservice.handlers import UsersHandler, parse_user_id
from userservice.http import HTTPRequest, HTTPStatus
from userservice.repository import UserRepository


ANA = {"name": "Ana", "email": "ana@example.com", "dateOfBirth": "1990-01-01"}
BOB = {"name": "Bob", "email": "bob@example.org", "dateOfBirth": "1985-06-15T10:30:00Z"}


def make_request(method: str, user_id: Optional[str] = None, body: Any = None) -> HTTPRequest:
    """Helper to build the request the router hands the handler."""
    if body is None:
        raw = b""
    elif isinstance(body, bytes):
        raw = body
    else:
        raw = json.dumps(body).encode("utf-8")

    path = "/users" if user_id is None else f"/users/{user_id}"
    params = {} if user_id is None else {"id": user_id}
    return HTTPRequest(method=method, path=path, body=raw, path_params=params)


class TestParseUserId:
    """Tests for parseInt-style id parsing."""

    @pytest.mark.parametrize("raw, expected", [
        ("1", 1),
        ("42", 42),
        ("007", 7),
        ("12abc", 12),
        ("1.5", 1),
        (" 3", 3),
        ("-4", -4),
        ("+5", 5),
    ])
    def test_leading_integer(self, raw, expected):
        """Test the leading integer is taken."""
        assert parse_user_id(raw) == expected

    @pytest.mark.parametrize("raw", ["", "abc", "x1", "-", "%31", None])
    def test_no_integer(self, raw):
        """Test strings without a leading integer give None."""
        assert parse_user_id(raw) is None

    def test_leading_zeros_do_not_count(self):
        """Test zero padding is not part of the length limit."""
        assert parse_user_id("0" * 5000 + "3") == 3

    @pytest.mark.parametrize("raw", ["1" * 19, "9" * 5000, "-" + "1" * 5000, "1" * 5000 + "abc"])
    def test_overlong_integer(self, raw):
        """Test digit runs no id can reach name no user instead of failing."""
        assert parse_user_id(raw) is None


class TestGet:
    """Tests for GET."""

    def test_list_empty(self, handler: UsersHandler):
        """Test listing an empty store."""
        response = handler.handle(make_request("GET"))

        assert response.status == HTTPStatus.OK
        assert response.json == []
        assert response.headers["Content-Type"] == "application/json"

    def test_list_in_order(self, handler: UsersHandler):
        """Test the list has every user in creation order."""
        handler.handle(make_request("POST", body=ANA))
        handler.handle(make_request("POST", body=BOB))

        response = handler.handle(make_request("GET"))

        assert [u["name"] for u in response.json] == ["Ana", "Bob"]
        assert [u["id"] for u in response.json] == [1, 2]

    def test_get_one(self, handler: UsersHandler):
        """Test GET by id returns the created record."""
        created = handler.handle(make_request("POST", body=ANA)).json

        response = handler.handle(make_request("GET", "1"))

        assert response.status == HTTPStatus.OK
        assert response.json == created

    def test_get_unknown(self, handler: UsersHandler):
        """Test GET on a missing id is 404."""
        response = handler.handle(make_request("GET", "9"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.json == {"error": "User not found"}

    def test_get_non_numeric_id(self, handler: UsersHandler):
        """Test a non-numeric id behaves like a missing record."""
        handler.handle(make_request("POST", body=ANA))

        response = handler.handle(make_request("GET", "abc"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.json == {"error": "User not found"}

    def test_get_huge_id(self, handler: UsersHandler):
        """Test an id with thousands of digits is a plain 404."""
        handler.handle(make_request("POST", body=ANA))

        for method in ("GET", "PUT", "DELETE"):
            response = handler.handle(make_request(method, "1" * 5000, body=ANA))

            assert response.status == HTTPStatus.NOT_FOUND
            assert response.json == {"error": "User not found"}

    def test_get_id_with_trailing_garbage(self, handler: UsersHandler):
        """Test "1abc" reads as id 1."""
        handler.handle(make_request("POST", body=ANA))

        response = handler.handle(make_request("GET", "1abc"))

        assert response.status == HTTPStatus.OK
        assert response.json["id"] == 1

    def test_empty_id_lists(self, handler: UsersHandler):
        """Test an empty id segment counts as no id."""
        response = handler.handle(make_request("GET", ""))

        assert response.status == HTTPStatus.OK
        assert response.json == []


class TestPost:
    """Tests for POST."""

    def test_create(self, handler: UsersHandler):
        """Test a valid create returns 201 and the full record."""
        response = handler.handle(make_request("POST", body=ANA))

        assert response.status == HTTPStatus.CREATED
        assert response.json == {
            "id": 1,
            "name": "Ana",
            "email": "ana@example.com",
            "dateOfBirth": "1990-01-01T00:00:00.000Z",
        }
        assert response.headers["Location"] == "/users/1"

    def test_ids_strictly_increase(self, handler: UsersHandler):
        """Test every create gets a bigger id than all before it."""
        ids = [handler.handle(make_request("POST", body=ANA)).json["id"] for _ in range(5)]

        assert ids == sorted(set(ids))

    def test_path_id_ignored(self, handler: UsersHandler, repository: UserRepository):
        """Test POST /users/:id still creates with the next id."""
        response = handler.handle(make_request("POST", "77", body=ANA))

        assert response.status == HTTPStatus.CREATED
        assert response.json["id"] == 1
        assert repository.get(77) is None

    def test_body_id_ignored(self, handler: UsersHandler):
        """Test a client-supplied id is not used."""
        response = handler.handle(make_request("POST", body={**ANA, "id": 500}))

        assert response.json["id"] == 1

    def test_invalid_email(self, handler: UsersHandler, repository: UserRepository):
        """Test an invalid email is rejected and nothing is stored."""
        response = handler.handle(make_request(
            "POST", body={"name": "X", "email": "not-an-email", "dateOfBirth": "1990-01-01"}
        ))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert response.json == {"error": "Invalid user data"}
        assert len(repository) == 0

    def test_invalid_date(self, handler: UsersHandler):
        """Test an unparsable date is invalid user data."""
        response = handler.handle(make_request("POST", body={**ANA, "dateOfBirth": "1990-13-01"}))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert response.json == {"error": "Invalid user data"}

    @pytest.mark.parametrize("given, stored", [
        ("1990", "1990-01-01T00:00:00.000Z"),
        ("1990-07", "1990-07-01T00:00:00.000Z"),
    ])
    def test_reduced_precision_date(self, handler: UsersHandler, given, stored):
        """Test a year or year-month birth date is the first of the period."""
        response = handler.handle(make_request("POST", body={**ANA, "dateOfBirth": given}))

        assert response.status == HTTPStatus.CREATED
        assert response.json["dateOfBirth"] == stored

    def test_missing_field(self, handler: UsersHandler):
        """Test a missing field is invalid user data."""
        response = handler.handle(make_request("POST", body={"name": "Ana"}))

        assert response.json == {"error": "Invalid user data"}

    def test_malformed_body(self, handler: UsersHandler, repository: UserRepository):
        """Test a non-JSON body is a format error."""
        response = handler.handle(make_request("POST", body=b"{"))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert response.json == {"error": "Invalid data format"}
        assert len(repository) == 0

    def test_empty_body(self, handler: UsersHandler):
        """Test an empty body is a format error."""
        response = handler.handle(make_request("POST"))

        assert response.json == {"error": "Invalid data format"}

    @pytest.mark.parametrize("body", [b"null", b"0", b"false", b'""', b" 0.0 ", b"-0"])
    def test_empty_json_value(self, handler: UsersHandler, repository: UserRepository, body):
        """Test a JSON value with nothing in it is a format error."""
        response = handler.handle(make_request("POST", body=body))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert response.json == {"error": "Invalid data format"}
        assert len(repository) == 0

    @pytest.mark.parametrize("body", [b"[]", b"{}", b"1", b"true", b'"x"'])
    def test_non_object_json_value(self, handler: UsersHandler, body):
        """Test any other non-object JSON value is invalid user data."""
        response = handler.handle(make_request("POST", body=body))

        assert response.json == {"error": "Invalid user data"}

    def test_rejected_create_does_not_consume_id(self, handler: UsersHandler):
        """Test failed creates leave the counter alone."""
        handler.handle(make_request("POST", body=b"{"))
        handler.handle(make_request("POST", body={**ANA, "email": "nope"}))

        assert handler.handle(make_request("POST", body=ANA)).json["id"] == 1

    def test_unpaired_surrogate_name_round_trips(self, handler: UsersHandler):
        """Test a name with a lone surrogate is stored and served back escaped."""
        created = handler.handle(make_request("POST", body={**ANA, "name": "\ud800"}))

        assert created.status == HTTPStatus.CREATED
        assert b'"name":"\\ud800"' in created.body

        listed = handler.handle(make_request("GET"))
        assert listed.status == HTTPStatus.OK
        assert listed.json == [created.json]

    def test_validation_failure_logged_at_debug(self, handler: UsersHandler, caplog):
        """Test the failing fields go to the debug log, not the response."""
        with caplog.at_level(logging.DEBUG, logger="userservice"):
            response = handler.handle(make_request("POST", body={**ANA, "email": "nope"}))

        assert "email" not in response.json
        assert any("email" in record.getMessage() for record in caplog.records
                   if record.levelno == logging.DEBUG)


class TestPut:
    """Tests for PUT."""

    def test_replace(self, handler: UsersHandler):
        """Test a valid replace returns the updated record with the same id."""
        handler.handle(make_request("POST", body=ANA))

        response = handler.handle(make_request("PUT", "1", body=BOB))

        assert response.status == HTTPStatus.OK
        assert response.json == {
            "id": 1,
            "name": "Bob",
            "email": "bob@example.org",
            "dateOfBirth": "1985-06-15T10:30:00.000Z",
        }
        assert handler.handle(make_request("GET", "1")).json == response.json

    def test_missing_id(self, handler: UsersHandler):
        """Test PUT without an id is 400."""
        response = handler.handle(make_request("PUT", body=ANA))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert response.json == {"error": "Missing user ID"}

    def test_unknown_id(self, handler: UsersHandler, repository: UserRepository):
        """Test PUT on a missing id is 404 and nothing changes."""
        handler.handle(make_request("POST", body=ANA))

        response = handler.handle(make_request("PUT", "2", body=BOB))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.json == {"error": "User not found"}
        assert [u.name for u in repository.list()] == ["Ana"]

    def test_unknown_id_checked_before_body(self, handler: UsersHandler):
        """Test 404 wins over a malformed body."""
        response = handler.handle(make_request("PUT", "1", body=b"{"))

        assert response.status == HTTPStatus.NOT_FOUND

    def test_missing_id_checked_before_body(self, handler: UsersHandler):
        """Test the missing-id error wins over a malformed body."""
        response = handler.handle(make_request("PUT", body=b"{"))

        assert response.json == {"error": "Missing user ID"}

    def test_malformed_body(self, handler: UsersHandler):
        """Test a malformed body on an existing user is 400."""
        handler.handle(make_request("POST", body=ANA))

        response = handler.handle(make_request("PUT", "1", body=b"not json"))

        assert response.json == {"error": "Invalid data format"}

    def test_invalid_fields_leave_record(self, handler: UsersHandler, repository: UserRepository):
        """Test invalid data does not partially update."""
        handler.handle(make_request("POST", body=ANA))

        response = handler.handle(make_request("PUT", "1", body={**BOB, "email": "bad"}))

        assert response.json == {"error": "Invalid user data"}
        assert repository.get(1).name == "Ana"


class TestDelete:
    """Tests for DELETE."""

    def test_delete(self, handler: UsersHandler):
        """Test delete returns the removed record."""
        created = handler.handle(make_request("POST", body=ANA)).json

        response = handler.handle(make_request("DELETE", "1"))

        assert response.status == HTTPStatus.OK
        assert response.json == created

    def test_get_after_delete(self, handler: UsersHandler):
        """Test a deleted user is gone."""
        handler.handle(make_request("POST", body=ANA))
        handler.handle(make_request("DELETE", "1"))

        assert handler.handle(make_request("GET", "1")).status == HTTPStatus.NOT_FOUND
        assert handler.handle(make_request("DELETE", "1")).status == HTTPStatus.NOT_FOUND

    def test_missing_id(self, handler: UsersHandler):
        """Test DELETE without an id is 400."""
        response = handler.handle(make_request("DELETE"))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert response.json == {"error": "Missing user ID"}

    def test_unknown_id(self, handler: UsersHandler):
        """Test DELETE on a missing id is 404."""
        response = handler.handle(make_request("DELETE", "abc"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.json == {"error": "User not found"}


class TestUnsupportedMethods:
    """Tests for methods the resource does not serve."""

    @pytest.mark.parametrize("method", ["PATCH", "HEAD", "OPTIONS", "TRACE", "FOO"])
    def test_method_not_allowed(self, handler: UsersHandler, method):
        """Test unsupported methods get 405 with an Allow header."""
        for user_id in (None, "1"):
            response = handler.handle(make_request(method, user_id))

            assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
            assert response.json == {"error": "Method Not Allowed"}
            assert response.headers["Allow"] == "GET, POST, PUT, DELETE"
