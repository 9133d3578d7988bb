from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class StateFsPaths:
    root: str = "."
    instrument_log_name: str = "frag-instrument.log"
    memento_file: str = "memento.json"

    @property
    def state_dir(self) -> str:
        return os.path.join(self.root, "state")

    @property
    def secure_dir(self) -> str:
        return os.path.join(self.root, "secure")

    @property
    def logs_dir(self) -> str:
        return os.path.join(self.root, "logs")

    # Files
    @property
    def instrument_log(self) -> str:
        return os.path.join(self.state_dir, self.instrument_log_name)

    @property
    def memento(self) -> str:
        return os.path.join(self.root, self.memento_file)

    @property
    def validation_events(self) -> str:
        return os.path.join(self.logs_dir, "telemetry", "validation_events.jsonl")

    def record(self, key: str) -> str:
        return os.path.join(self.state_dir, f"{key}.json")
