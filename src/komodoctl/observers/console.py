# src/komodoctl/observers/console.py
import typer

from .events import BaseEvent

_COLORS = {
    "StepFailed": "red",
    "RollbackResult": "yellow",
    "StepSucceeded": "green",
}


class ConsoleObserver:
    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        k = event.__class__.__name__
        data = ", ".join(f"{x}={y}" for x, y in d.items() if x not in ("ts", "run_id", "operation", "target"))
        typer.secho(
            f"[{d['ts']}] {k} {d['operation']}:{d['target']} {{{data}}}",
            fg=_COLORS.get(k),
        )
