import json
import logging

from komodoctl.deploy.executor import WorkflowExecutor
from komodoctl.deploy.steps import WorkflowPlan, WorkflowStep
from komodoctl.observers.dispatcher import EventBus
from komodoctl.observers.events import StepFailed, new_ctx
from komodoctl.observers.interface import Observer
from komodoctl.observers.jsonfile import JsonFileObserver
from komodoctl.observers.logger import LoggerObserver


class Capture(Observer):
    def __init__(self): self.events = []
    def notify(self, event): self.events.append(event)


class Broken(Observer):
    def notify(self, event): raise RuntimeError("observer down")


def _plan():
    return WorkflowPlan(name="web", operation="create", steps=[
        WorkflowStep(name="a", action=lambda ctx: None),
    ])


def test_observer_receives_events(ctx):
    cap = Capture()
    WorkflowExecutor(ctx=ctx, bus=EventBus([cap])).run(_plan())

    kinds = {e.__class__.__name__ for e in cap.events}
    assert {"PlanComputed", "StepStarted", "StepSucceeded", "WorkflowSummary"} <= kinds
    assert len({e.run_id for e in cap.events}) == 1
    assert all(e.operation == "create" and e.target == "web" for e in cap.events)


def test_failing_observer_does_not_break_the_workflow(ctx):
    cap = Capture()
    report = WorkflowExecutor(ctx=ctx, bus=EventBus([Broken(), cap])).run(_plan())
    assert report.ok
    assert cap.events


def test_json_file_observer_writes_one_record_per_line(tmp_path):
    path = tmp_path / "logs" / "run.jsonl"
    ob = JsonFileObserver(path)
    ob.notify(StepFailed(name="create-node", attempts=1, error="HTTP 500", **new_ctx("create", "web", run_id="r1")))
    ob.notify(StepFailed(name="delete-node", attempts=3, error="busy", **new_ctx("delete", "web", run_id="r1")))
    lines = path.read_text().splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["event"] == "StepFailed"
    assert first["run_id"] == "r1"
    assert first["name"] == "create-node"


def test_logger_observer_warns_on_failures(caplog):
    logger = logging.getLogger("observer-test")
    ob = LoggerObserver(logger)
    with caplog.at_level(logging.INFO, logger="observer-test"):
        ob.notify(StepFailed(name="x", attempts=1, error="boom", **new_ctx("create", "web")))
    assert caplog.records[0].levelno == logging.WARNING
    assert "StepFailed" in caplog.records[0].getMessage()
