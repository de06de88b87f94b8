"""Utilities for tracing the state transitions of a publish.

Each publish runs inside `trace_context`, which records the states the
publish passes through along with the time spent reaching each of them.
Callers may wrap any number of publishes in `collect_traces` to inspect the
finished traces, e.g. to report which assets were skipped:

```python
with collect_traces() as traces:
    await publish_all(assembly_dir, assets, registry)
skipped = [t.asset_id for t in traces if t.state == PublishState.SKIPPED_EXISTING]
```
"""

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass, field
import enum
import logging
from time import perf_counter
from typing import Generator


_LOGGER = logging.getLogger(__name__)

__all__ = [
    "PublishState",
    "PublishTrace",
    "collect_traces",
]


class PublishState(str, enum.Enum):
    """States of a single publish."""

    START = "start"
    VALIDATED = "validated"
    REUSE_SHORT_CIRCUIT = "reuse_short_circuit"
    REPOSITORY_RESOLVED = "repository_resolved"
    SKIPPED_EXISTING = "skipped_existing"
    BUILT = "built"
    AUTHENTICATED = "authenticated"
    PUSHED = "pushed"
    RESULT_DERIVED = "result_derived"
    FAILED = "failed"


TERMINAL_STATES = {
    PublishState.REUSE_SHORT_CIRCUIT,
    PublishState.SKIPPED_EXISTING,
    PublishState.RESULT_DERIVED,
    PublishState.FAILED,
}


@dataclass
class PublishTrace:
    """The states visited by the publish of one asset."""

    asset_id: str
    states: list[PublishState] = field(default_factory=lambda: [PublishState.START])
    timings: dict[PublishState, float] = field(default_factory=dict)
    _last: float = field(default_factory=perf_counter, repr=False)

    @property
    def state(self) -> PublishState:
        """The current state."""
        return self.states[-1]

    @property
    def done(self) -> bool:
        """True once the publish reached a terminal state."""
        return self.state in TERMINAL_STATES

    def advance(self, state: PublishState) -> None:
        """Record a transition to the given state."""
        if self.done:
            raise ValueError(
                f"Asset '{self.asset_id}' already finished in state {self.state.value}"
            )
        now = perf_counter()
        self.timings[state] = now - self._last
        self._last = now
        _LOGGER.debug(
            "[Trace] %s: %s -> %s (%0.2fs)",
            self.asset_id,
            self.state.value,
            state.value,
            self.timings[state],
        )
        self.states.append(state)


_collector: contextvars.ContextVar[list[PublishTrace] | None] = contextvars.ContextVar(
    "collector", default=None
)


@contextmanager
def trace_context(asset_id: str) -> Generator[PublishTrace, None, None]:
    """Trace the publish of an asset, marking it failed on any exception."""
    publish_trace = PublishTrace(asset_id=asset_id)
    try:
        yield publish_trace
    except BaseException:
        if not publish_trace.done:
            publish_trace.advance(PublishState.FAILED)
        raise
    finally:
        if (traces := _collector.get()) is not None:
            traces.append(publish_trace)


@contextmanager
def collect_traces() -> Generator[list[PublishTrace], None, None]:
    """Collect the traces of all publishes finished within the block."""
    traces: list[PublishTrace] = []
    token = _collector.set(traces)
    try:
        yield traces
    finally:
        _collector.reset(token)
