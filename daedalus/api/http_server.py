"""
Minimal HTTP server for Daedalus.

This is a small, dependency-free JSON API built on Python's standard
library (http.server). It wires together:

- ParseHandler  (POST /parse/rrweb, /parse/analytics, /parse/batch)
- HealthHandler (GET /health)

It is intended for development, prototypes, and small deployments.
For production, you would typically reimplement the HTTP layer using
a more robust framework, keeping the same handlers.
"""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from ariadne.pipelines.simple_parse import SimpleParseConfig
from daedalus.api.endpoints.health import HealthHandler
from daedalus.api.endpoints.parse import ParseHandler, ParseRequestError


LOG = logging.getLogger(__name__)

MAX_BODY_BYTES = 64 * 1024 * 1024


# --------------------------------------------------------------------------- #
# Server wiring
# --------------------------------------------------------------------------- #


class DaedalusApp:
    """
    Container for the handlers used by the HTTP server.

    Keeps handler construction in one place, and allows tests to build an
    app (and call its handlers) without opening a socket.
    """

    def __init__(self, parse_config: Optional[SimpleParseConfig] = None) -> None:
        self.parse = ParseHandler(config=parse_config or SimpleParseConfig())
        self.health = HealthHandler(parser=self.parse)

    def route_post(self, path: str, payload: Any) -> Optional[Dict[str, Any]]:
        """
        Dispatch a POST body to its handler.

        Returns None for unknown paths.
        """
        if path == "/parse/rrweb":
            return self.parse.parse_rrweb(payload)
        if path == "/parse/analytics":
            return self.parse.parse_analytics(payload)
        if path == "/parse/batch":
            return self.parse.parse_batch(payload)
        return None


# --------------------------------------------------------------------------- #
# HTTP handler
# --------------------------------------------------------------------------- #


class DaedalusRequestHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler for Daedalus.

    Expected to be used with a DaedalusApp attached to the server:

        app = DaedalusApp()
        server = HTTPServer(("0.0.0.0", 8080), DaedalusRequestHandler)
        server.app = app
        server.serve_forever()
    """

    # Silence default noisy logging; we use logging module instead.
    def log_message(self, format: str, *args: Any) -> None:  # type: ignore[override]
        LOG.info("%s - %s", self.address_string(), format % args)

    # --- helpers ------------------------------------------------------------ #

    @property
    def app(self) -> DaedalusApp:
        srv = self.server  # type: ignore[attr-defined]
        return srv.app  # type: ignore[attr-defined]

    def _read_json_body(self) -> Any:
        """
        Read and parse the JSON request body (object or array).

        Raises:
            ParseRequestError if the body is not valid JSON or too large.
        """
        length_header = self.headers.get("Content-Length")
        if length_header is None:
            return {}
        try:
            length = int(length_header)
        except ValueError:
            raise ParseRequestError("Invalid Content-Length header")
        if length > MAX_BODY_BYTES:
            raise ParseRequestError(f"Request body too large ({length} bytes)")

        raw = self.rfile.read(length)
        if not raw:
            return {}

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ParseRequestError(f"Invalid JSON payload: {exc}") from exc

        return payload

    def _send_json(
        self, status: int, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Send a JSON response with the given HTTP status and payload.
        """
        body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        if headers:
            for k, v in headers.items():
                self.send_header(k, v)
        self.end_headers()
        self.wfile.write(body)

    # ------------------------------------------------------------------ #
    # HTTP verbs
    # ------------------------------------------------------------------ #

    def do_GET(self) -> None:  # type: ignore[override]
        try:
            path = urlparse(self.path).path
            if path == "/health":
                self._send_json(HTTPStatus.OK, self.app.health.health())
                return
            self._send_json(
                HTTPStatus.NOT_FOUND,
                {"error": "not_found", "detail": f"Unknown GET path: {path}"},
            )
        except Exception as exc:
            LOG.exception("Unhandled error in GET")
            self._send_json(
                HTTPStatus.INTERNAL_SERVER_ERROR,
                {"error": "internal_error", "detail": str(exc)},
            )

    def do_POST(self) -> None:  # type: ignore[override]
        try:
            path = urlparse(self.path).path
            payload = self._read_json_body()
            result = self.app.route_post(path, payload)
            if result is None:
                self._send_json(
                    HTTPStatus.NOT_FOUND,
                    {"error": "not_found", "detail": f"Unknown POST path: {path}"},
                )
                return
            self._send_json(HTTPStatus.OK, result)
        except ParseRequestError as exc:
            LOG.warning("Parse request error: %s", exc)
            self._send_json(
                HTTPStatus.BAD_REQUEST,
                {"error": "parse_error", "detail": str(exc)},
            )
        except Exception as exc:
            LOG.exception("Unhandled error in POST")
            self._send_json(
                HTTPStatus.INTERNAL_SERVER_ERROR,
                {"error": "internal_error", "detail": str(exc)},
            )


# --------------------------------------------------------------------------- #
# Convenience entrypoint
# --------------------------------------------------------------------------- #


def run_server(
    host: str = "127.0.0.1",
    port: int = 8080,
    parse_config: Optional[SimpleParseConfig] = None,
) -> None:
    """
    Run a simple Daedalus HTTP server.

    Example:

        from daedalus.api.http_server import run_server

        if __name__ == "__main__":
            run_server(host="0.0.0.0", port=8080)
    """
    logging.basicConfig(level=logging.INFO)

    app = DaedalusApp(parse_config=parse_config)

    server = HTTPServer((host, port), DaedalusRequestHandler)
    # Attach the app so handlers can access it
    server.app = app  # type: ignore[attr-defined]

    LOG.info("Daedalus HTTP server listening on http://%s:%d", host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        LOG.info("Shutting down server...")
    finally:
        server.server_close()


if __name__ == "__main__":
    run_server()
