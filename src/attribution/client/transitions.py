"""Transition map for the in-browser cookie planting decision."""

from enum import StrEnum


class ClientState(StrEnum):
    """Where a single run of the tracking script currently stands."""

    IDLE = "idle"
    REFERRER_CHECKED = "referrer_checked"
    COOKIE_A_CHECKED = "cookie_a_checked"
    COOKIES_PLANTED = "cookies_planted"
    REPORTED = "reported"
    TERMINAL = "terminal"


class ClientStep(StrEnum):
    """Steps that move the script from one state to the next."""

    CHECK_REFERRER = "check_referrer"
    CHECK_COOKIE_A = "check_cookie_a"
    PLANT_COOKIES = "plant_cookies"
    REPORT = "report"
    ABORT = "abort"


# All valid (current_state, step) -> next_state mappings.
# A failed gate takes the ABORT step from wherever the run stopped.
TRANSITIONS: dict[tuple[ClientState, str], ClientState] = {
    # From IDLE
    (ClientState.IDLE, ClientStep.CHECK_REFERRER): ClientState.REFERRER_CHECKED,
    (ClientState.IDLE, ClientStep.ABORT): ClientState.TERMINAL,
    # From REFERRER_CHECKED
    (ClientState.REFERRER_CHECKED, ClientStep.CHECK_COOKIE_A): ClientState.COOKIE_A_CHECKED,
    (ClientState.REFERRER_CHECKED, ClientStep.ABORT): ClientState.TERMINAL,
    # From COOKIE_A_CHECKED
    (ClientState.COOKIE_A_CHECKED, ClientStep.PLANT_COOKIES): ClientState.COOKIES_PLANTED,
    (ClientState.COOKIE_A_CHECKED, ClientStep.ABORT): ClientState.TERMINAL,
    # From COOKIES_PLANTED
    (ClientState.COOKIES_PLANTED, ClientStep.REPORT): ClientState.REPORTED,
    (ClientState.COOKIES_PLANTED, ClientStep.ABORT): ClientState.TERMINAL,
}

# States a run ends in -- no outgoing transitions allowed.
TERMINAL_STATES: frozenset[ClientState] = frozenset({ClientState.REPORTED, ClientState.TERMINAL})
