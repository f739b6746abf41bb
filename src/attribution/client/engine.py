"""Python model of the decision the rendered tracking script makes.

The script that runs in the visitor's browser is JavaScript, but its contract
is easier to exercise here: the same gates, in the same order, against a
:class:`BrowserEnvironment` that tests can fake.  Every step produces a
:class:`StepOutcome`; faults raised by the environment become failed outcomes
and the run ends in ``terminal``.  :meth:`ClientDecisionEngine.run` never
raises, mirroring the script, which must never surface an error to the host
page.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from attribution.client.transitions import TERMINAL_STATES, TRANSITIONS, ClientState, ClientStep
from attribution.domain.errors import InvalidTransitionError
from attribution.domain.models import Campaign, CookieSpec, TemplateConfig
from attribution.domain.types import EventType
from attribution.script.synthesizer import track_url


class BrowserEnvironment(Protocol):
    """The slice of the browser the tracking script touches."""

    @property
    def referrer(self) -> str: ...

    @property
    def user_agent(self) -> str: ...

    def get_cookie(self, name: str) -> str | None: ...

    def set_cookie(self, name: str, value: str, domain: str, expiry: datetime) -> bool: ...

    def send(self, url: str, payload: dict[str, Any]) -> None: ...

    def now_ms(self) -> int: ...


@dataclass(frozen=True)
class StepOutcome:
    """Result of one decision step."""

    ok: bool
    reason: str = ""


def _matches(pattern: str, text: str) -> bool:
    return re.search(pattern, text, re.IGNORECASE) is not None


class ClientDecisionEngine:
    """Single-pass state machine deciding whether to plant cookies and report.

    Usage::

        engine = ClientDecisionEngine(config, browser, endpoint, campaign_id="c1")
        engine.run()       # -> ClientState.REPORTED or ClientState.TERMINAL
        engine.payload     # tracking body that was sent, if any
    """

    def __init__(
        self,
        config: TemplateConfig,
        environment: BrowserEnvironment,
        endpoint: str,
        *,
        campaign_id: str,
        campaign_name: str | None = None,
        casino: str | None = None,
    ) -> None:
        self._config = config
        self._env = environment
        self._endpoint = endpoint
        self._campaign_id = campaign_id
        self._campaign_name = campaign_name
        self._casino = casino
        self._state = ClientState.IDLE
        self._history: list[tuple[ClientState, str, ClientState]] = []
        self._outcomes: list[tuple[str, StepOutcome]] = []
        self._payload: dict[str, Any] | None = None

    @classmethod
    def for_campaign(
        cls, campaign: Campaign, environment: BrowserEnvironment, api_base_url: str
    ) -> ClientDecisionEngine:
        """Build the engine a rendered script for *campaign* would embody."""
        return cls(
            campaign.template_config,
            environment,
            track_url(api_base_url),
            campaign_id=campaign.id,
            campaign_name=campaign.name,
            casino=campaign.casino,
        )

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Return True once the run has ended (REPORTED or TERMINAL)."""
        return self._state in TERMINAL_STATES

    @property
    def history(self) -> list[tuple[ClientState, str, ClientState]]:
        """Return a copy of the ``(from_state, step, to_state)`` history."""
        return list(self._history)

    @property
    def outcomes(self) -> list[tuple[str, StepOutcome]]:
        """Return a copy of every ``(step, outcome)`` evaluated so far."""
        return list(self._outcomes)

    @property
    def payload(self) -> dict[str, Any] | None:
        """Return the tracking body handed to ``send``, or None if never sent."""
        return self._payload

    def trigger(self, step: str) -> ClientState:
        """Apply *step* to the current state.

        Raises:
            InvalidTransitionError: If *step* is not allowed from the current
                state, or the run has already ended.
        """
        key = (self._state, step)
        if self.is_terminal or key not in TRANSITIONS:
            raise InvalidTransitionError(self._state, step)
        old_state = self._state
        self._state = TRANSITIONS[key]
        self._history.append((old_state, step, self._state))
        return self._state

    def run(self) -> ClientState:
        """Run every gate in order and return the final state."""
        steps: list[tuple[ClientStep, Callable[[], StepOutcome]]] = [
            (ClientStep.CHECK_REFERRER, self.check_referrer),
            (ClientStep.CHECK_COOKIE_A, self.check_cookie_a),
            (ClientStep.PLANT_COOKIES, self.plant_cookies),
            (ClientStep.REPORT, self.report),
        ]
        for step, action in steps:
            if self.is_terminal:
                break
            outcome = self._attempt(step, action)
            self.trigger(step if outcome.ok else ClientStep.ABORT)
        return self._state

    def _attempt(self, step: ClientStep, action: Callable[[], StepOutcome]) -> StepOutcome:
        try:
            outcome = action()
        except Exception as exc:
            outcome = StepOutcome(False, f"{type(exc).__name__}: {exc}")
        self._outcomes.append((step, outcome))
        return outcome

    # -- steps -------------------------------------------------------------

    def check_referrer(self) -> StepOutcome:
        """Pass iff the document referrer matches ``referrerRegex``."""
        referrer = self._env.referrer or ""
        if not referrer:
            return StepOutcome(False, "empty referrer")
        if not _matches(self._config.referrer_regex, referrer):
            return StepOutcome(False, "referrer does not match")
        return StepOutcome(True)

    def check_cookie_a(self) -> StepOutcome:
        """Pass iff cookie A's stored value, read before planting, matches ``cookieARegex``."""
        current = self._env.get_cookie(self._config.cookie_a.name)
        if current is None:
            return StepOutcome(False, "cookie A absent")
        if not _matches(self._config.cookie_a_regex, current):
            return StepOutcome(False, "cookie A does not match")
        return StepOutcome(True)

    def plant_cookies(self) -> StepOutcome:
        """Set both cookies; each attempt is independent, both must succeed."""
        cookies = {"cookieA": self._config.cookie_a, "cookieB": self._config.cookie_b}
        failed = [label for label, spec in cookies.items() if not self._set_cookie(spec)]
        if failed:
            return StepOutcome(False, "failed to set " + " and ".join(failed))
        return StepOutcome(True)

    def _set_cookie(self, spec: CookieSpec) -> bool:
        try:
            return bool(self._env.set_cookie(spec.name, spec.value, spec.domain, spec.expiry))
        except Exception:
            return False

    def report(self) -> StepOutcome:
        """Fire the tracking call; a failed send does not undo the report."""
        payload = {
            "campaignId": self._campaign_id,
            "eventType": EventType.COOKIE_SET.value,
            "userAgent": self._env.user_agent,
            "referrer": self._env.referrer,
            "cookieData": {
                "cookieA": self._config.cookie_a.value,
                "cookieB": self._config.cookie_b.value,
            },
            "metadata": {
                "sessionId": str(self._env.now_ms()),
                "campaignName": self._campaign_name,
                "casino": self._casino,
            },
        }
        self._payload = payload
        try:
            self._env.send(self._endpoint, payload)
        except Exception as exc:
            return StepOutcome(True, f"send failed: {type(exc).__name__}")
        return StepOutcome(True)
