"""Routing of HTTP requests to the service handlers."""

from __future__ import annotations

import io
import logging
import socket
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any
from urllib.parse import quote, unquote
from wsgiref.simple_server import WSGIServer, make_server

from .conversations import handle_healthz, handle_list_conversations, handle_list_messages
from .messages import handle_email_message, handle_sms_message
from .schemas import Response
from .webhooks import handle_email_webhook, handle_sms_webhook

logger = logging.getLogger(__name__)

_PLAIN_TEXT = {
    "Content-Type": "text/plain; charset=utf-8",
    "X-Content-Type-Options": "nosniff",
}
_PATH_SAFE = "/:@!$&'()*+,;="

_Handler = Callable[[dict[str, str], bytes], Response]


@dataclass(frozen=True)
class _Route:
    method: str
    segments: tuple[str, ...]
    handler: _Handler

    def match(self, parts: tuple[str, ...]) -> dict[str, str] | None:
        if len(parts) != len(self.segments):
            return None
        params: dict[str, str] = {}
        for pattern, part in zip(self.segments, parts):
            if pattern.startswith("{") and pattern.endswith("}"):
                if not part:
                    return None
                params[pattern[1:-1]] = unquote(part)
            elif pattern != unquote(part):
                return None
        return params

    def serves(self, method: str) -> bool:
        return method == self.method or (method == "HEAD" and self.method == "GET")


def _route(method: str, path: str, handler: _Handler) -> _Route:
    return _Route(method, tuple(path.split("/")[1:]), handler)


def _plain(status: HTTPStatus, extra: dict[str, str] | None = None) -> Response:
    headers = dict(_PLAIN_TEXT)
    headers.update(extra or {})
    return Response(status=int(status), body=f"{status.phrase}\n".encode(), headers=headers)


def parse_listen_address(address: str) -> tuple[str, int]:
    """Split a ``host:port`` listen address; an empty host means every interface."""
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise ValueError(f"address {address}: missing ']' in address")
        host, rest = address[1:end], address[end + 1 :]
        if not rest.startswith(":"):
            raise ValueError(f"address {address}: missing port in address")
        port_text = rest[1:]
    else:
        colon = address.rfind(":")
        if colon < 0:
            raise ValueError(f"address {address}: missing port in address")
        host, port_text = address[:colon], address[colon + 1 :]
        if ":" in host:
            raise ValueError(f"address {address}: too many colons in address")

    if not port_text:
        return host, 0
    if port_text.isdecimal():
        port = int(port_text)
        if port > 65535:
            raise ValueError(f"address {address}: invalid port")
        return host, port
    try:
        return host, socket.getservbyname(port_text, "tcp")
    except OSError as exc:
        raise ValueError(f"address {address}: unknown port") from exc


class _IPv6Server(WSGIServer):
    address_family = socket.AF_INET6


class Endpoints:
    """The HTTP service: its routes and the store they work on."""

    def __init__(self, listen_address: str, store: Any) -> None:
        self.listen_address = listen_address
        self._store = store
        self._routes = (
            _route("GET", "/healthz", lambda params, body: handle_healthz()),
            _route("POST", "/api/messages/sms", lambda p, body: handle_sms_message(store, body)),
            _route(
                "POST", "/api/messages/email", lambda p, body: handle_email_message(store, body)
            ),
            _route("POST", "/api/webhooks/sms", lambda p, body: handle_sms_webhook(store, body)),
            _route(
                "POST", "/api/webhooks/email", lambda p, body: handle_email_webhook(store, body)
            ),
            _route(
                "GET", "/api/conversations", lambda p, body: handle_list_conversations(store)
            ),
            _route(
                "GET",
                "/api/conversations/{id}/messages",
                lambda params, body: handle_list_messages(store, params["id"]),
            ),
        )

    def dispatch(self, method: str, path: str, body: bytes = b"") -> Response:
        """Route one request and return the handler's response."""
        method = method.upper()
        path = path.split("?", 1)[0]
        if not path.startswith("/"):
            return _plain_not_found()
        parts = tuple(path.split("/")[1:])

        allowed: set[str] = set()
        for route in self._routes:
            params = route.match(parts)
            if params is None:
                continue
            if route.serves(method):
                response = route.handler(params, body)
                if method == "HEAD":
                    response.body = b""
                return response
            allowed.add(route.method)
            if route.method == "GET":
                allowed.add("HEAD")

        if allowed:
            return _plain(HTTPStatus.METHOD_NOT_ALLOWED, {"Allow": ", ".join(sorted(allowed))})
        return _plain_not_found()

    def __call__(
        self, environ: dict[str, Any], start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        method = str(environ.get("REQUEST_METHOD", "GET"))
        raw_path = str(environ.get("PATH_INFO", "") or "/").encode("latin-1")
        path = quote(raw_path, safe=_PATH_SAFE)
        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        stream = environ.get("wsgi.input") or io.BytesIO()
        body = stream.read(length) if length > 0 else b""

        response = self.dispatch(method, path, body)
        try:
            phrase = HTTPStatus(response.status).phrase
        except ValueError:
            phrase = ""
        headers = list(response.headers.items())
        headers.append(("Content-Length", str(len(response.body))))
        start_response(f"{response.status} {phrase}".rstrip(), headers)
        return [response.body]

    def listen_and_serve(self) -> None:
        """Serve requests on the listen address until interrupted."""
        host, port = parse_listen_address(self.listen_address)
        server_class = _IPv6Server if ":" in host else WSGIServer
        logger.info("Listening on %s", self.listen_address)
        with make_server(host, port, self, server_class=server_class) as httpd:
            httpd.serve_forever()


def _plain_not_found() -> Response:
    return Response(
        status=int(HTTPStatus.NOT_FOUND),
        body=b"404 page not found\n",
        headers=dict(_PLAIN_TEXT),
    )