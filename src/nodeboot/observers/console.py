# src/nodeboot/observers/console.py
import typer

from .events import BaseEvent

_HIDDEN = ("ts", "run_id", "role", "host")


class ConsoleObserver:
    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        k = event.__class__.__name__
        typer.echo(f"[{d['ts']}] {k} role={d['role']} host={d['host']} data={{"
                   + ", ".join(f"{x}={y}" for x, y in d.items() if x not in _HIDDEN) + "}")
