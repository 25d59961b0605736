"""Server lifecycle state machines using the transitions library.

Two small machines:
- TransportFSM: idle -> listening once a message handler is registered,
  listening -> closed on shutdown
- RequestFSM: received -> routed -> completed | failed for each request

Usage:
    from agile_planner.server.lifecycle import RequestFSM

    fsm = RequestFSM(method="tools/call", request_id=7)
    fsm.route()
    fsm.complete()
"""

import logging
from typing import Any

from transitions import Machine, MachineError

logger = logging.getLogger(__name__)

__all__ = [
    "MachineError",
    "TRANSPORT_STATES",
    "TRANSPORT_TRANSITIONS",
    "REQUEST_STATES",
    "REQUEST_TRANSITIONS",
    "TransportFSM",
    "RequestFSM",
]


TRANSPORT_STATES = ["idle", "listening", "closed"]

TRANSPORT_TRANSITIONS = [
    {"trigger": "listen", "source": "idle", "dest": "listening"},
    {"trigger": "close", "source": "idle", "dest": "closed"},
    {"trigger": "close", "source": "listening", "dest": "closed"},
]

REQUEST_STATES = ["received", "routed", "completed", "failed"]

REQUEST_TRANSITIONS = [
    {"trigger": "route", "source": "received", "dest": "routed"},
    {"trigger": "complete", "source": "routed", "dest": "completed"},
    # Routing itself can fail (unknown method) before a handler is chosen
    {"trigger": "fail", "source": "received", "dest": "failed"},
    {"trigger": "fail", "source": "routed", "dest": "failed"},
]


class TransportFSM:
    """Tracks whether the transport is delivering messages."""

    def __init__(self):
        self.machine = Machine(
            model=self,
            states=TRANSPORT_STATES,
            transitions=TRANSPORT_TRANSITIONS,
            initial="idle",
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    def on_state_change(self, event) -> None:
        logger.debug(f"[transport] {event.transition.source} -> {event.transition.dest}")


class RequestFSM:
    """Per-request state, created fresh for every incoming request."""

    def __init__(self, method: str, request_id: Any = None):
        self.method = method
        self.request_id = request_id
        self.machine = Machine(
            model=self,
            states=REQUEST_STATES,
            transitions=REQUEST_TRANSITIONS,
            initial="received",
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    def on_state_change(self, event) -> None:
        logger.debug(
            f"[request {self.request_id}] {self.method}: "
            f"{event.transition.source} -> {event.transition.dest}"
        )

    @property
    def finished(self) -> bool:
        return self.state in ("completed", "failed")
