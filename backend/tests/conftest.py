"""Shared fakes for the short-clip pipeline tests."""
import io
import threading

import pytest

from shortify.conversion import source
from shortify.conversion.errors import ConversionError, EngineError


class FakeEngine:
    """In-memory engine with the same lifecycle as FfmpegEngine."""

    def __init__(self, output=b"short-clip", samples=(0.25, 0.5, 1.0), fail_init=False, fail_invoke=False):
        self.output = output
        self.samples = samples
        self.fail_init = fail_init
        self.fail_invoke = fail_invoke
        self.ready = False
        self.init_calls = 0
        self.storage: dict[str, bytes] = {}
        self.invocations: list[list[str]] = []
        self.discarded: list[str] = []
        self.handler = None
        self.gate: threading.Event | None = None

    def is_ready(self):
        return self.ready

    def initialize(self):
        self.init_calls += 1
        if self.fail_init:
            raise EngineError("engine failed to load")
        self.ready = True

    def set_progress_handler(self, handler):
        self.handler = handler

    def stage_input(self, logical_name, data):
        self.storage[logical_name] = data

    def invoke(self, argv):
        self.invocations.append(list(argv))
        if self.gate is not None:
            self.gate.wait(5)
        for ratio in self.samples:
            if self.handler:
                self.handler(ratio)
        if self.fail_invoke:
            raise ConversionError("ffmpeg exited with code 1")
        self.storage[argv[-1]] = self.output

    def retrieve_output(self, logical_name):
        return self.storage[logical_name]

    def discard(self, logical_name):
        self.discarded.append(logical_name)
        self.storage.pop(logical_name, None)


class FakeResponse:
    def __init__(self, body=b"", status=200, headers=None):
        self.status = status
        self.headers = headers or {}
        self._buf = io.BytesIO(body)

    def read(self, size=-1):
        return self._buf.read(size)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def make_engine():
    return FakeEngine


@pytest.fixture
def fake_urlopen(monkeypatch):
    """Install a fake urlopen. Returns a list of the requests it received."""
    requests = []

    def install(body=b"", status=200, headers=None, error=None):
        def _urlopen(req, timeout=None):
            requests.append(req)
            if error is not None:
                raise error
            return FakeResponse(body, status=status, headers=headers)

        monkeypatch.setattr(source, "urlopen", _urlopen)
        return requests

    return install
