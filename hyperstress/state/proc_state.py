from enum import Enum
from typing import List, Protocol, Tuple

from hyperstress.logging import Entry, Logger, LogLevel


class ProcState(Enum):
    RUN = "run"
    DEINIT = "deinit"
    EXIT = "exit"


class ProcessStateSink(Protocol):
    def set_state(self, name: str, state: ProcState) -> None: ...


class RecordingStateSink:
    """Keeps every lifecycle transition in order and traces it."""

    def __init__(self, logger: Logger | None = None) -> None:
        self.transitions: List[Tuple[str, ProcState]] = []
        self._logger = logger or Logger()

    def set_state(self, name: str, state: ProcState) -> None:
        self.transitions.append((name, state))

        with self._logger.context(name="proc_state") as ctx:
            ctx.log(
                Entry(
                    message=f"{name} entered state {state.value}",
                    level=LogLevel.TRACE,
                )
            )

    def states(self, name: str) -> List[ProcState]:
        return [state for stressor, state in self.transitions if stressor == name]
