"""Loopback receiver for the forum's redirect.

When the forum is allowed to redirect to ``http://127.0.0.1:<port>/...``
(its ``allowed_user_api_auth_redirects`` setting), ``forumkey auth login
--listen`` uses this receiver as the ``auth_redirect`` target and picks
the ``payload`` query parameter straight off the incoming request.
"""

from __future__ import annotations

import logging
import socket
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional

from forumkey.auth.flow import payload_from_url

logger = logging.getLogger(__name__)


def find_free_port() -> int:
    """Find a free TCP port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class CallbackReceiver:
    """A one-shot HTTP server that captures the callback payload.

    The socket is bound on construction so :attr:`redirect_uri` can be put
    into the authorization request before the browser is opened.

    Args:
        port: Port to bind on ``127.0.0.1``. ``None`` picks a free one.
        path: Path component of :attr:`redirect_uri`.

    Example::

        receiver = CallbackReceiver()
        controller.app_url = receiver.redirect_uri
        controller.initiate()
        payload = receiver.wait(timeout=120)
    """

    def __init__(self, port: Optional[int] = None, path: str = "/callback") -> None:
        self._result: dict[str, Optional[str]] = {"payload": None, "error": None}
        result = self._result

        class CallbackHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                payload = payload_from_url(f"http://127.0.0.1{self.path}")
                if payload:
                    result["payload"] = payload
                    body = (
                        "Authorization received! You can close this window "
                        "and return to the terminal."
                    )
                else:
                    result["error"] = "no_payload"
                    body = "No payload received. Did you deny the request?"

                self.send_response(200)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.end_headers()
                self.wfile.write(
                    f"<html><body><h2>{body}</h2></body></html>".encode("utf-8")
                )

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("callback: " + format, *args)

        self._server = HTTPServer(("127.0.0.1", port or find_free_port()), CallbackHandler)
        self._path = path

    @property
    def port(self) -> int:
        """The bound port."""
        return self._server.server_address[1]

    @property
    def redirect_uri(self) -> str:
        """The URL to pass as ``auth_redirect``."""
        return f"http://127.0.0.1:{self.port}{self._path}"

    def wait(self, timeout: float = 120) -> Optional[str]:
        """Block until one request arrives or *timeout* seconds pass.

        Returns:
            The raw payload, or ``None`` on timeout or a request without one.
        """
        self._server.timeout = timeout
        try:
            self._server.handle_request()
        finally:
            self._server.server_close()
        if self._result["error"]:
            logger.warning("Callback request carried no payload")
        return self._result["payload"]

    def close(self) -> None:
        """Release the socket without waiting."""
        self._server.server_close()
