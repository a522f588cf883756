"""
Transition tables for production lines and production requests.

Every status change in the service layer goes through ``line_transition`` or
``request_transition``; a (status, action) pair missing from the table raises
InvalidStateError. ``REMOVED`` marks actions that delete the row.

The ``*_sources`` helpers give the set of states an action may start from, used
as the WHERE clause of the conditional UPDATE/DELETE statements so that the
check and the write happen in one statement.
"""
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from app.core.exceptions import InvalidStateError
from app.models.production import LineStatus, RequestStatus


class LineAction(str, Enum):
    START = "START"
    COMPLETE = "COMPLETE"
    DELETE = "DELETE"
    EDIT = "EDIT" # Descriptive updates, resource changes, new requests


class RequestAction(str, Enum):
    FULFILL = "FULFILL"
    CANCEL = "CANCEL"
    DELETE = "DELETE"


REMOVED = None

LINE_TRANSITIONS: Dict[Tuple[LineStatus, LineAction], Optional[LineStatus]] = {
    (LineStatus.PENDING, LineAction.START): LineStatus.IN_PROGRESS,
    (LineStatus.IN_PROGRESS, LineAction.COMPLETE): LineStatus.COMPLETED,
    (LineStatus.PENDING, LineAction.DELETE): REMOVED,
    (LineStatus.PENDING, LineAction.EDIT): LineStatus.PENDING,
    (LineStatus.IN_PROGRESS, LineAction.EDIT): LineStatus.IN_PROGRESS,
}

REQUEST_TRANSITIONS: Dict[Tuple[RequestStatus, RequestAction], Optional[RequestStatus]] = {
    (RequestStatus.PENDING, RequestAction.FULFILL): RequestStatus.FULFILLED,
    (RequestStatus.PENDING, RequestAction.CANCEL): RequestStatus.CANCELLED,
    (RequestStatus.PENDING, RequestAction.DELETE): REMOVED,
}

_LINE_MESSAGES = {
    LineAction.START: "Production line not found or already started",
    LineAction.COMPLETE: "Production line must be in progress to complete",
    LineAction.DELETE: "Only pending production lines can be deleted",
    LineAction.EDIT: "Cannot modify completed production line",
}

_REQUEST_MESSAGES = {
    RequestAction.FULFILL: "Request is not pending",
    RequestAction.CANCEL: "Only pending requests can be cancelled",
    RequestAction.DELETE: "Only pending requests can be deleted",
}


def line_transition(status: LineStatus, action: LineAction) -> Optional[LineStatus]:
    key = (LineStatus(status), action)
    if key not in LINE_TRANSITIONS:
        raise InvalidStateError(_LINE_MESSAGES[action], current_status=status, action=action)
    return LINE_TRANSITIONS[key]


def request_transition(status: RequestStatus, action: RequestAction) -> Optional[RequestStatus]:
    key = (RequestStatus(status), action)
    if key not in REQUEST_TRANSITIONS:
        raise InvalidStateError(_REQUEST_MESSAGES[action], current_status=status, action=action)
    return REQUEST_TRANSITIONS[key]


def line_sources(action: LineAction) -> FrozenSet[LineStatus]:
    return frozenset(src for (src, act) in LINE_TRANSITIONS if act == action)


def request_sources(action: RequestAction) -> FrozenSet[RequestStatus]:
    return frozenset(src for (src, act) in REQUEST_TRANSITIONS if act == action)
