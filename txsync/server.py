"""Minimal HTTP receiver for platform webhooks."""

import logging
from http.server import BaseHTTPRequestHandler, HTTPServer

from .core.service import SyncService
from .core.webhook import WebhookRequest

logger = logging.getLogger(__name__)


def make_handler(service: SyncService, path: str = "/webhook") -> type[BaseHTTPRequestHandler]:
    """Build a request handler class bound to a service."""

    class WebhookHandler(BaseHTTPRequestHandler):
        def do_POST(self) -> None:  # noqa: N802
            if self.path.split("?", 1)[0] != path:
                self._reply(404, "not found")
                return

            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length else b""
            request = WebhookRequest(
                body=body,
                headers={key: value for key, value in self.headers.items()},
                method="POST",
            )
            response = service.handle_webhook(request)
            self._reply(response.status, response.message)

        def _reply(self, status: int, message: str) -> None:
            payload = message.encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        def log_message(self, format: str, *args: object) -> None:
            logger.debug("%s - %s", self.address_string(), format % args)

    return WebhookHandler


def serve(service: SyncService, host: str = "0.0.0.0", port: int = 8080, path: str = "/webhook") -> None:
    """Serve webhook deliveries one at a time until interrupted."""
    server = HTTPServer((host, port), make_handler(service, path))
    logger.info("Listening for webhooks on http://%s:%d%s", host, port, path)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        service.stop()
        logger.info("Webhook server stopped")
    finally:
        server.server_close()
