"""Test the match lifecycle transition table."""
import pytest

from patterns.workflow_states import (
    MatchAction,
    MatchStatus,
    allowed_actions,
    can_transition,
    is_terminal,
    transition_for,
)

LEGAL = {
    (MatchStatus.PENDING, MatchAction.ACCEPT),
    (MatchStatus.PENDING, MatchAction.DECLINE),
    (MatchStatus.ACCEPTED, MatchAction.COMPLETE),
}


@pytest.mark.parametrize("status", list(MatchStatus))
@pytest.mark.parametrize("action", list(MatchAction))
def test_can_transition_table(status, action):
    assert can_transition(status, action) == ((status, action) in LEGAL)


def test_transition_targets():
    assert transition_for(MatchAction.ACCEPT) == (MatchStatus.PENDING, MatchStatus.ACCEPTED)
    assert transition_for(MatchAction.DECLINE) == (MatchStatus.PENDING, MatchStatus.DECLINED)
    assert transition_for(MatchAction.COMPLETE) == (MatchStatus.ACCEPTED, MatchStatus.COMPLETED)


def test_allowed_actions():
    assert allowed_actions(MatchStatus.PENDING) == [MatchAction.ACCEPT, MatchAction.DECLINE]
    assert allowed_actions(MatchStatus.ACCEPTED) == [MatchAction.COMPLETE]
    assert allowed_actions(MatchStatus.DECLINED) == []
    assert allowed_actions(MatchStatus.COMPLETED) == []


def test_terminal_states():
    assert is_terminal(MatchStatus.DECLINED)
    assert is_terminal(MatchStatus.COMPLETED)
    assert not is_terminal(MatchStatus.PENDING)
    assert not is_terminal(MatchStatus.ACCEPTED)


def test_status_accepts_stored_string():
    assert MatchStatus("accepted") is MatchStatus.ACCEPTED
