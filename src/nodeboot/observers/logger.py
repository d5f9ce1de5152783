from __future__ import annotations
import logging
from .events import BaseEvent, StepFailed, RunAborted


class LoggerObserver:
    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        etype = event.__class__.__name__
        msg = ", ".join(f"{k}={v}" for k, v in d.items() if k not in ("ts", "run_id", "host"))

        if isinstance(event, StepFailed) and event.fatal:
            self.logger.error(f"[EVENT] {etype}: {msg}")
        elif isinstance(event, (StepFailed, RunAborted)):
            self.logger.warning(f"[EVENT] {etype}: {msg}")
        else:
            self.logger.info(f"[EVENT] {etype}: {msg}")
