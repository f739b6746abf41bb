"""Decision model of the in-browser tracking script."""

from attribution.client.engine import BrowserEnvironment, ClientDecisionEngine, StepOutcome
from attribution.client.transitions import (
    TERMINAL_STATES,
    TRANSITIONS,
    ClientState,
    ClientStep,
)

__all__ = [
    "BrowserEnvironment",
    "ClientDecisionEngine",
    "ClientState",
    "ClientStep",
    "StepOutcome",
    "TERMINAL_STATES",
    "TRANSITIONS",
]
