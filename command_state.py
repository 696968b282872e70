"""Per-request state for the command endpoint.

The HTTP listener turns each request into a sequence of events: one
``RequestStarted`` followed by ``BodyChunk`` deliveries, the last of which is
empty. ``transition`` maps (state, event) to the next state and, at most, one
effect for the listener to carry out. Nothing here touches the network, so the
truncation and rejection rules can be exercised directly.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple, Union

from bounded_buffer import BoundedBuffer


class Phase(Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    COMPLETE = "complete"
    REJECTED = "rejected"


@dataclass(frozen=True)
class RequestStarted:
    method: str
    path: str


@dataclass(frozen=True)
class BodyChunk:
    data: bytes = b""

    @property
    def is_final(self) -> bool:
        return len(self.data) == 0


@dataclass(frozen=True)
class Publish:
    payload: bytes


@dataclass(frozen=True)
class Reject:
    method: str
    path: str


@dataclass(frozen=True)
class Overflow:
    dropped: int
    limit: int


Event = Union[RequestStarted, BodyChunk]
Effect = Union[Publish, Reject, Overflow]


class InvalidTransition(Exception):
    pass


@dataclass(frozen=True)
class RequestState:
    command_path: str
    capacity: int
    phase: Phase = Phase.IDLE
    method: str = ""
    path: str = ""
    # Only allocated for requests addressed to the command endpoint
    buffer: Optional[BoundedBuffer] = None


def new_request(command_path: str, capacity: int) -> RequestState:
    return RequestState(command_path=command_path, capacity=capacity)


def transition(state: RequestState, event: Event) -> Tuple[RequestState, Optional[Effect]]:
    if state.phase is Phase.IDLE:
        if not isinstance(event, RequestStarted):
            raise InvalidTransition(f"body chunk before request start: {event!r}")
        if event.method == "POST" and event.path == state.command_path:
            return replace(state, phase=Phase.ACCUMULATING, method=event.method, path=event.path,
                           buffer=BoundedBuffer(state.capacity)), None
        return replace(state, phase=Phase.REJECTED, method=event.method, path=event.path), None

    if isinstance(event, RequestStarted):
        raise InvalidTransition(f"request already started in phase {state.phase.value}")

    if state.phase is Phase.ACCUMULATING:
        if event.is_final:
            return replace(state, phase=Phase.COMPLETE), Publish(state.buffer.getvalue())
        buffer = state.buffer.copy()
        dropped = buffer.append(event.data)
        state = replace(state, buffer=buffer)
        if dropped:
            return state, Overflow(dropped, buffer.limit)
        return state, None

    if state.phase is Phase.REJECTED:
        if event.is_final:
            return state, Reject(state.method, state.path)
        return state, None

    raise InvalidTransition(f"request already complete: {event!r}")
