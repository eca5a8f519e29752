import io
import json
from http import HTTPStatus
from wsgiref.util import setup_testing_defaults

import pytest

from hatchmsg.conversations import handle_healthz
from hatchmsg.db import DatabaseConfig, connect
from hatchmsg.schemas import json_response
from hatchmsg.server import Endpoints, parse_listen_address
from hatchmsg.store import ConversationStore


@pytest.fixture
def endpoints():
    conn = connect(DatabaseConfig(dbname=":memory:"))
    yield Endpoints(":8080", ConversationStore(conn))
    conn.close()


def _email_body(text):
    return json.dumps(
        {
            "from": "alice@example.com",
            "to": "bob@example.com",
            "body": text,
            "timestamp": "2024-11-01T14:00:00Z",
        }
    ).encode()


def test_healthz_route(endpoints):
    response = endpoints.dispatch("GET", "/healthz")
    assert response.status == 200
    assert response.body == handle_healthz().body


def test_head_is_served_by_get_route(endpoints):
    response = endpoints.dispatch("HEAD", "/healthz")
    assert response.status == 200
    assert response.body == b""


def test_wrong_method_is_405(endpoints):
    response = endpoints.dispatch("POST", "/healthz")
    assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
    assert response.headers["Allow"] == "GET, HEAD"


def test_unknown_path_is_404(endpoints):
    response = endpoints.dispatch("GET", "/nowhere")
    assert response.status == HTTPStatus.NOT_FOUND
    assert response.body == b"404 page not found\n"


def test_trailing_slash_does_not_match(endpoints):
    assert endpoints.dispatch("GET", "/healthz/").status == HTTPStatus.NOT_FOUND


def test_bad_conversation_id(endpoints):
    response = endpoints.dispatch("GET", "/api/conversations/abc/messages")
    assert response.status == HTTPStatus.BAD_REQUEST


def test_email_round_trip(endpoints):
    sent = endpoints.dispatch("POST", "/api/messages/email", _email_body("Hi there"))
    assert sent.status == 200
    assert sent.body == json_response('{"success": true}').body

    listed = json.loads(endpoints.dispatch("GET", "/api/conversations").body)
    assert len(listed) == 1
    conversation_id = listed[0]["id"]

    messages = endpoints.dispatch(
        "GET", f"/api/conversations/{conversation_id}/messages?x=1"
    )
    assert [m["body"] for m in json.loads(messages.body)] == ["Hi there"]


def test_sms_webhook_route(endpoints):
    body = json.dumps(
        {"from": "alice", "to": "bob", "type": "sms", "body": "yo",
         "timestamp": "2024-11-01T14:00:00Z"}
    ).encode()
    response = endpoints.dispatch("POST", "/api/webhooks/sms", body)
    assert response.body == json_response('{"alive": true}').body


def test_bad_json_is_400(endpoints):
    response = endpoints.dispatch("POST", "/api/messages/sms", b"{")
    assert response.status == HTTPStatus.BAD_REQUEST


def test_wsgi_call(endpoints):
    body = _email_body("via wsgi")
    environ = {}
    setup_testing_defaults(environ)
    environ.update(
        REQUEST_METHOD="POST",
        PATH_INFO="/api/messages/email",
        CONTENT_LENGTH=str(len(body)),
    )
    environ["wsgi.input"] = io.BytesIO(body)
    captured = {}

    def start_response(status, headers):
        captured["status"] = status
        captured["headers"] = dict(headers)

    chunks = endpoints(environ, start_response)
    payload = b"".join(chunks)
    assert captured["status"] == "200 OK"
    assert captured["headers"]["Content-Length"] == str(len(payload))
    assert payload == json_response('{"success": true}').body


@pytest.mark.parametrize(
    "address, expected",
    [
        (":8080", ("", 8080)),
        ("localhost:8080", ("localhost", 8080)),
        ("[::1]:8080", ("::1", 8080)),
        ("localhost:", ("localhost", 0)),
    ],
)
def test_parse_listen_address(address, expected):
    assert parse_listen_address(address) == expected


@pytest.mark.parametrize("address", ["8080", "a:b:c", "host:99999", "[::1]8080", "host:nosuchservice"])
def test_parse_listen_address_errors(address):
    with pytest.raises(ValueError):
        parse_listen_address(address)