import json
import os
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from types import SimpleNamespace

import pytest


class _ResponseURLHandler(BaseHTTPRequestHandler):
    """Stands in for the pre-signed S3 URL CloudFormation hands out."""

    def do_PUT(self):
        self._record()

    def do_POST(self):
        self._record()

    def _record(self):
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length)
        self.server.requests.append(
            SimpleNamespace(
                method=self.command,
                path=self.path,
                content_type=self.headers.get("Content-Type"),
                authorization=self.headers.get("Authorization"),
                body=body,
            )
        )
        self.send_response(self.server.status_code)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def log_message(self, format, *args):
        pass


class ResponseServer:

    def __init__(self):
        self._server = ThreadingHTTPServer(("127.0.0.1", 0), _ResponseURLHandler)
        self._server.requests = []
        self._server.status_code = 200
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    @property
    def url(self) -> str:
        host, port = self._server.server_address[:2]
        return f"http://{host}:{port}/bucket/key?X-Amz-Signature=secret"

    @property
    def requests(self) -> list:
        return self._server.requests

    @property
    def status_code(self) -> int:
        return self._server.status_code

    @status_code.setter
    def status_code(self, value: int):
        self._server.status_code = value

    def last_body(self) -> dict:
        return json.loads(self.requests[-1].body)

    def start(self):
        self._thread.start()

    def stop(self):
        self._server.shutdown()
        self._server.server_close()
        self._thread.join()


@pytest.fixture
def response_server():
    server = ResponseServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def context():

    d = {"function_name": "custom-resource-provider", "log_stream_name": "2026/10/18/[$LATEST]abcdef"}
    context = SimpleNamespace(**d)

    return context


def load_event(name: str) -> dict:
    fn = os.path.join(os.path.dirname(__file__), name)

    with open(fn, "r") as stream:
        return json.load(stream)


@pytest.fixture
def create_event():
    return load_event("test-create-event.json")


@pytest.fixture
def delete_event():
    return load_event("test-delete-event.json")


@pytest.fixture
def update_event(delete_event):
    d = dict(delete_event)
    d["RequestType"] = "Update"
    d["RequestId"] = "unique id for this update request"
    d["OldResourceProperties"] = {"a": "previous", "b": []}
    return d


@pytest.fixture(autouse=True)
def no_proxy(monkeypatch):
    for name in ("http_proxy", "https_proxy", "HTTP_PROXY", "HTTPS_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(name, raising=False)
