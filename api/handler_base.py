"""
Base handler shared by the Vercel serverless functions under api/.
"""
import json
from http.server import BaseHTTPRequestHandler

from api.config import load_settings
from api.errors import ProxyError, invalid_request
from api.logger import LogSink
from api.security import SECURITY_HEADERS

_sink = None


def get_log_sink() -> LogSink:
    """One LogSink per function instance, created on first use."""
    global _sink
    if _sink is None:
        _sink = LogSink(load_settings().log_dir)
    return _sink


class JSONHandler(BaseHTTPRequestHandler):
    body = b""

    def do_OPTIONS(self):
        self.send_response(204)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "POST, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.end_headers()

    def do_POST(self):
        log = get_log_sink()
        try:
            content_len = int(self.headers.get("Content-Length", 0) or 0)
            self.body = self.rfile.read(content_len) if content_len else b""
            status, body = self.handle_post(load_settings(), log)
        except ProxyError as e:
            status, body = e.status, e.to_body()
        except Exception as e:
            log.error("Handler", "Unhandled error", exc=e, metadata={"path": self.path})
            status, body = 500, {"error": "Internal server error"}
        self._send(status, body)

    def handle_post(self, settings, log):
        """Return (status, body). Raise ProxyError for failures."""
        raise NotImplementedError

    def _json(self):
        try:
            return json.loads(self.body.decode("utf-8") or "{}")
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise invalid_request("Invalid JSON")

    def _send(self, status, body):
        self.send_response(status)
        self.send_header("Content-type", "application/json")
        for name, value in SECURITY_HEADERS.items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(json.dumps(body).encode("utf-8"))
