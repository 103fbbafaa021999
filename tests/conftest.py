import random

import pytest

from komodoctl.utils.execution import ExecutionContext


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)

    def of(self, kind):
        return [e for e in self.events if e.__class__.__name__ == kind]


class FakeApi:
    """
    In-memory stand-in for KomodoApi. Records (method, target) for every call;
    scripted exceptions are raised in order for a given (method, target).
    """

    def __init__(self):
        self.calls = []
        self._failures = {}
        self._always = {}
        self.reachable = True
        self.ready = True

    def fail(self, method, target, *excs):
        self._failures.setdefault((method, target), []).extend(excs)

    def fail_always(self, method, target, exc):
        self._always[(method, target)] = exc

    def called(self, method=None):
        return [t for m, t in self.calls if method is None or m == method]

    def _hit(self, method, target):
        self.calls.append((method, target))
        queue = self._failures.get((method, target))
        if queue:
            raise queue.pop(0)
        if (method, target) in self._always:
            raise self._always[(method, target)]

    def create_server(self, name, address, tags):
        self._hit("create_server", name)
        self.last_address, self.last_tags = address, tags
        return {"name": name}

    def enable_server(self, server):
        self._hit("enable_server", server)
        return {}

    def delete_server(self, server):
        self._hit("delete_server", server)

    def get_server(self, server):
        self._hit("get_server", server)
        return {"name": server, "config": {"address": "https://10.0.0.5:8120"}}

    def server_is_reachable(self, server):
        self._hit("server_is_reachable", server)
        return self.reachable

    def server_is_ready(self, server, ready_status="Ok"):
        self._hit("server_is_ready", server)
        return self.ready

    def create_resource_sync(self, name, file_contents):
        self._hit("create_resource_sync", name)
        self.last_sync_contents = file_contents
        return {}

    def delete_resource_sync(self, sync):
        self._hit("delete_resource_sync", sync)

    def run_sync(self, sync):
        self._hit("run_sync", sync)
        return {}

    def run_procedure(self, procedure):
        self._hit("run_procedure", procedure)
        return {}

    def delete_procedure(self, procedure):
        self._hit("delete_procedure", procedure)


@pytest.fixture
def capture():
    return Capture()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def ctx(sleeps):
    return ExecutionContext(sleep_fn=sleeps.append)


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def rng():
    return random.Random(7)
