from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from ..models.load_result import PageData
from ..models.workflow_item import WorkflowItem

"""Page state as a pure reducer.

A page is always in exactly one status; events move it along the
transition table below and ``reduce`` never mutates its input. Events that
are not valid in the current status raise InvalidTransitionError (e.g. a
second submit while one is in flight).

    idle       --LoadStarted-->     loading
    loading    --Loaded-->          ready
    loading    --LoadFailed-->      error
    ready      --OpenDialog-->      editing
    editing    --SubmitStarted-->   submitting
    submitting --SubmitRejected-->  editing
    submitting --SubmitSucceeded--> ready
"""

__all__ = [
    "ChangeField",
    "CloseDialog",
    "InvalidTransitionError",
    "LoadFailed",
    "LoadStarted",
    "Loaded",
    "OpenDialog",
    "PageState",
    "PageStatus",
    "SelectAllColumns",
    "SubmitRejected",
    "SubmitStarted",
    "SubmitSucceeded",
    "ToggleColumn",
    "reduce",
]


class PageStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    EDITING = "editing"
    SUBMITTING = "submitting"


@dataclass(frozen=True)
class PageState:
    status: PageStatus = PageStatus.IDLE
    pending: tuple[WorkflowItem, ...] = ()
    history: tuple[WorkflowItem, ...] = ()
    visible_columns: frozenset[str] = frozenset()
    selected: WorkflowItem | None = None
    form: Mapping[str, Any] = field(default_factory=dict)
    errors: Mapping[str, str] = field(default_factory=dict)
    message: str = ""


# --- events -------------------------------------------------------------

@dataclass(frozen=True)
class LoadStarted:
    pass


@dataclass(frozen=True)
class Loaded:
    data: PageData
    columns: tuple[str, ...] = ()  # all column keys; the initial visible set


@dataclass(frozen=True)
class LoadFailed:
    message: str


@dataclass(frozen=True)
class ToggleColumn:
    key: str


@dataclass(frozen=True)
class SelectAllColumns:
    columns: tuple[str, ...]


@dataclass(frozen=True)
class OpenDialog:
    item: WorkflowItem | None
    defaults: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CloseDialog:
    pass


@dataclass(frozen=True)
class ChangeField:
    key: str
    value: Any


@dataclass(frozen=True)
class SubmitStarted:
    pass


@dataclass(frozen=True)
class SubmitRejected:
    errors: Mapping[str, str] = field(default_factory=dict)  # field errors (empty for a write failure)
    message: str = ""


@dataclass(frozen=True)
class SubmitSucceeded:
    message: str
    data: PageData | None = None  # reloaded page


class InvalidTransitionError(Exception):
    def __init__(self, status: PageStatus, event: object) -> None:
        super().__init__(f"{type(event).__name__} is not valid while {status.value}")
        self.status = status
        self.event = event


# --- transitions ----------------------------------------------------------

def _load_started(state: PageState, event: LoadStarted) -> PageState:
    return replace(state, status=PageStatus.LOADING, message="")


def _loaded(state: PageState, event: Loaded) -> PageState:
    visible = state.visible_columns or frozenset(event.columns)
    return replace(
        state,
        status=PageStatus.READY,
        pending=tuple(event.data.pending),
        history=tuple(event.data.history),
        visible_columns=visible,
    )


def _load_failed(state: PageState, event: LoadFailed) -> PageState:
    # 部分表示はしない
    return replace(state, status=PageStatus.ERROR, pending=(), history=(), message=event.message)


def _toggle_column(state: PageState, event: ToggleColumn) -> PageState:
    return replace(state, visible_columns=state.visible_columns ^ {event.key})


def _select_all(state: PageState, event: SelectAllColumns) -> PageState:
    return replace(state, visible_columns=frozenset(event.columns))


def _open_dialog(state: PageState, event: OpenDialog) -> PageState:
    return replace(
        state,
        status=PageStatus.EDITING,
        selected=event.item,
        form=dict(event.defaults),
        errors={},
        message="",
    )


def _close_dialog(state: PageState, event: CloseDialog) -> PageState:
    return replace(state, status=PageStatus.READY, selected=None, form={}, errors={})


def _change_field(state: PageState, event: ChangeField) -> PageState:
    errors = {k: v for k, v in state.errors.items() if k != event.key}
    return replace(state, form={**state.form, event.key: event.value}, errors=errors)


def _submit_started(state: PageState, event: SubmitStarted) -> PageState:
    return replace(state, status=PageStatus.SUBMITTING, message="")


def _submit_rejected(state: PageState, event: SubmitRejected) -> PageState:
    return replace(state, status=PageStatus.EDITING, errors=dict(event.errors), message=event.message)


def _submit_succeeded(state: PageState, event: SubmitSucceeded) -> PageState:
    state = replace(state, status=PageStatus.READY, selected=None, form={}, errors={}, message=event.message)
    if event.data is not None:
        state = replace(state, pending=tuple(event.data.pending), history=tuple(event.data.history))
    return state


_Handler = Callable[[PageState, Any], PageState]

TRANSITIONS: dict[tuple[PageStatus, type], _Handler] = {
    (PageStatus.IDLE, LoadStarted): _load_started,
    (PageStatus.READY, LoadStarted): _load_started,
    (PageStatus.ERROR, LoadStarted): _load_started,
    (PageStatus.LOADING, Loaded): _loaded,
    (PageStatus.LOADING, LoadFailed): _load_failed,
    (PageStatus.READY, ToggleColumn): _toggle_column,
    (PageStatus.EDITING, ToggleColumn): _toggle_column,
    (PageStatus.READY, SelectAllColumns): _select_all,
    (PageStatus.EDITING, SelectAllColumns): _select_all,
    (PageStatus.READY, OpenDialog): _open_dialog,
    (PageStatus.EDITING, CloseDialog): _close_dialog,
    (PageStatus.EDITING, ChangeField): _change_field,
    (PageStatus.EDITING, SubmitStarted): _submit_started,
    (PageStatus.SUBMITTING, SubmitRejected): _submit_rejected,
    (PageStatus.SUBMITTING, SubmitSucceeded): _submit_succeeded,
}


def reduce(state: PageState, event: object) -> PageState:
    handler = TRANSITIONS.get((state.status, type(event)))
    if handler is None:
        raise InvalidTransitionError(state.status, event)
    return handler(state, event)
