import pytest

from app.core.exceptions import InvalidStateError
from app.models.production import LineStatus, RequestStatus
from app.services.transitions import (
    LineAction,
    RequestAction,
    line_sources,
    line_transition,
    request_sources,
    request_transition,
)


class TestLineTransitions:
    def test_forward_path(self):
        assert line_transition(LineStatus.PENDING, LineAction.START) == LineStatus.IN_PROGRESS
        assert line_transition(LineStatus.IN_PROGRESS, LineAction.COMPLETE) == LineStatus.COMPLETED

    def test_delete_only_while_pending(self):
        assert line_transition(LineStatus.PENDING, LineAction.DELETE) is None
        with pytest.raises(InvalidStateError):
            line_transition(LineStatus.IN_PROGRESS, LineAction.DELETE)

    @pytest.mark.parametrize("status", [LineStatus.PENDING, LineStatus.IN_PROGRESS])
    def test_edit_keeps_status(self, status):
        assert line_transition(status, LineAction.EDIT) == status

    @pytest.mark.parametrize("status, action", [
        (LineStatus.PENDING, LineAction.COMPLETE),
        (LineStatus.IN_PROGRESS, LineAction.START),
        (LineStatus.COMPLETED, LineAction.START),
        (LineStatus.COMPLETED, LineAction.COMPLETE),
        (LineStatus.COMPLETED, LineAction.EDIT),
        (LineStatus.COMPLETED, LineAction.DELETE),
        (LineStatus.CANCELLED, LineAction.START),
    ])
    def test_illegal_pairs_raise(self, status, action):
        with pytest.raises(InvalidStateError) as excinfo:
            line_transition(status, action)
        assert excinfo.value.details["current_status"] == status.value
        assert excinfo.value.details["action"] == action.value

    def test_accepts_raw_status_strings(self):
        # Rows loaded from the database may carry plain strings
        assert line_transition("PENDING", LineAction.START) == LineStatus.IN_PROGRESS

    def test_completed_edit_message(self):
        with pytest.raises(InvalidStateError, match="completed production line"):
            line_transition(LineStatus.COMPLETED, LineAction.EDIT)

    def test_sources(self):
        assert line_sources(LineAction.START) == {LineStatus.PENDING}
        assert line_sources(LineAction.COMPLETE) == {LineStatus.IN_PROGRESS}
        assert line_sources(LineAction.EDIT) == {LineStatus.PENDING, LineStatus.IN_PROGRESS}


class TestRequestTransitions:
    def test_pending_actions(self):
        assert request_transition(RequestStatus.PENDING, RequestAction.FULFILL) == RequestStatus.FULFILLED
        assert request_transition(RequestStatus.PENDING, RequestAction.CANCEL) == RequestStatus.CANCELLED
        assert request_transition(RequestStatus.PENDING, RequestAction.DELETE) is None

    @pytest.mark.parametrize("status", [RequestStatus.FULFILLED, RequestStatus.CANCELLED])
    @pytest.mark.parametrize("action", list(RequestAction))
    def test_terminal_states_are_final(self, status, action):
        with pytest.raises(InvalidStateError):
            request_transition(status, action)

    def test_sources(self):
        for action in RequestAction:
            assert request_sources(action) == {RequestStatus.PENDING}
