import pytest

from komodoctl.api.errors import MalformedResponseError, NotFoundError, TransientRemoteError
from komodoctl.api.operations import KomodoApi, node_address


class RecordingClient:
    def __init__(self, responses=None, error=None):
        self.calls = []
        self.responses = responses or {}
        self.error = error

    def _do(self, kind, operation, params):
        self.calls.append((kind, operation, params))
        if self.error:
            raise self.error
        return self.responses.get(operation, {})

    def write(self, operation, **params): return self._do("write", operation, params)
    def read(self, operation, **params): return self._do("read", operation, params)
    def execute(self, operation, **params): return self._do("execute", operation, params)


def test_node_address_defaults():
    assert node_address("10.0.0.5") == "https://10.0.0.5:8120"
    assert node_address("host", scheme="http", port=9000) == "http://host:9000"


def test_create_server_and_enable():
    client = RecordingClient()
    api = KomodoApi(client)
    api.create_server("server-web", "https://10.0.0.5:8120", ["Web"])
    api.enable_server("server-web")
    assert client.calls == [
        ("write", "CreateServer", {"name": "server-web", "config": {"address": "https://10.0.0.5:8120"}, "tags": ["Web"]}),
        ("write", "UpdateServer", {"id": "server-web", "config": {"enabled": True}}),
    ]


def test_sync_and_procedure_calls():
    client = RecordingClient()
    api = KomodoApi(client)
    api.create_resource_sync("web_ContextWare", "[[resource_sync]]")
    api.run_sync("web_ContextWare")
    api.run_procedure("web_ProcedureApply")
    assert [c[:2] for c in client.calls] == [
        ("write", "CreateResourceSync"),
        ("execute", "RunSync"),
        ("execute", "RunProcedure"),
    ]
    assert client.calls[0][2]["config"] == {"file_contents": "[[resource_sync]]"}
    assert client.calls[1][2] == {"sync": "web_ContextWare"}
    assert client.calls[2][2] == {"procedure": "web_ProcedureApply"}


def test_deletes_tolerate_missing_objects():
    api = KomodoApi(RecordingClient(error=NotFoundError("did not find")))
    api.delete_procedure("p")
    api.delete_resource_sync("s")
    api.delete_server("server-x")


def test_deletes_propagate_busy():
    api = KomodoApi(RecordingClient(error=TransientRemoteError("busy")))
    with pytest.raises(TransientRemoteError):
        api.delete_procedure("p")


@pytest.mark.parametrize("doc,expected", [
    ({"config": {"address": "https://1.2.3.4:8120"}}, True),
    ({"config": {}}, False),
    ({}, False),
])
def test_server_is_reachable(doc, expected):
    api = KomodoApi(RecordingClient(responses={"GetServer": doc}))
    assert api.server_is_reachable("server-x") is expected


def test_server_is_ready_checks_status():
    api = KomodoApi(RecordingClient(responses={"GetServerState": {"status": "Ok"}}))
    assert api.server_is_ready("server-x")
    api = KomodoApi(RecordingClient(responses={"GetServerState": {"status": "NotOk"}}))
    assert not api.server_is_ready("server-x")


def test_non_document_response_is_malformed():
    api = KomodoApi(RecordingClient(responses={"GetServerState": ["Ok"]}))
    with pytest.raises(MalformedResponseError):
        api.server_is_ready("server-x")
