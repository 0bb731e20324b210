"""Widget operations."""

from datetime import UTC, datetime
from typing import Any, Iterable

from shareit_shared import Widget, WidgetType

from .actions import Operation
from .backend import FirestoreBackend
from .errors import InputValidationError
from .operations import OperationResult, in_thread, run_operation
from .store import Store


def _widget_type(value: str) -> WidgetType:
    try:
        return WidgetType(value)
    except ValueError:
        raise InputValidationError(f"Unknown widget type: {value}") from None


async def create_widget(
    store: Store,
    backend: FirestoreBackend,
    user_id: str,
    widget_type: str,
    config: dict[str, Any] | None = None,
    shared_with: Iterable[str] = (),
) -> OperationResult[Widget]:
    kind = _widget_type(widget_type)
    now = datetime.now(UTC)
    widget = Widget(
        id="",
        user_id=user_id,
        type=kind,
        config=config or {},
        shared_with=list(dict.fromkeys(shared_with)),
        is_active=True,
        created_at=now,
        updated_at=now,
    )

    async def call() -> Widget:
        return await in_thread(backend.save_widget, widget)

    return await run_operation(store, Operation.CREATE_WIDGET, call, {"type": kind.value})


async def fetch_user_widgets(
    store: Store, backend: FirestoreBackend, user_id: str
) -> OperationResult[list[Widget]]:
    async def call() -> list[Widget]:
        return await in_thread(backend.list_widgets, user_id)

    return await run_operation(store, Operation.FETCH_USER_WIDGETS, call, {"user_id": user_id})


async def fetch_shared_widgets(
    store: Store, backend: FirestoreBackend, user_id: str
) -> OperationResult[list[Widget]]:
    async def call() -> list[Widget]:
        return await in_thread(backend.list_shared_widgets, user_id)

    return await run_operation(store, Operation.FETCH_SHARED_WIDGETS, call, {"user_id": user_id})


async def _update(
    store: Store,
    backend: FirestoreBackend,
    operation: Operation,
    widget_id: str,
    fields: dict[str, Any],
    arg: dict[str, Any] | None = None,
) -> OperationResult[dict[str, Any]]:
    async def call() -> dict[str, Any]:
        return await in_thread(backend.update_widget, widget_id, fields)

    return await run_operation(store, operation, call, {"widget_id": widget_id, **(arg or {})})


async def update_widget(
    store: Store, backend: FirestoreBackend, widget_id: str, config: dict[str, Any]
) -> OperationResult[dict[str, Any]]:
    return await _update(store, backend, Operation.UPDATE_WIDGET, widget_id, {"config": config})


async def update_widget_data(
    store: Store, backend: FirestoreBackend, widget_id: str, data: dict[str, Any]
) -> OperationResult[dict[str, Any]]:
    return await _update(store, backend, Operation.UPDATE_WIDGET_DATA, widget_id, {"data": data})


async def share_widget(
    store: Store, backend: FirestoreBackend, widget_id: str, friend_ids: Iterable[str]
) -> OperationResult[dict[str, Any]]:
    """Replace the widget's recipient list. The share trigger notifies new ids."""
    shared_with = list(dict.fromkeys(friend_ids))
    return await _update(
        store, backend, Operation.SHARE_WIDGET, widget_id, {"shared_with": shared_with}
    )


async def set_widget_active(
    store: Store, backend: FirestoreBackend, widget_id: str, is_active: bool
) -> OperationResult[dict[str, Any]]:
    """Toggle a widget. Applied immediately, reverted if the write fails."""
    widget = store.state.widgets.get(widget_id)
    previous = widget.is_active if widget is not None else not is_active
    return await _update(
        store,
        backend,
        Operation.SET_WIDGET_ACTIVE,
        widget_id,
        {"is_active": is_active},
        {"is_active": is_active, "previous": previous},
    )


async def delete_widget(
    store: Store, backend: FirestoreBackend, widget_id: str
) -> OperationResult[str]:
    async def call() -> str:
        await in_thread(backend.delete_widget, widget_id)
        return widget_id

    return await run_operation(store, Operation.DELETE_WIDGET, call, {"widget_id": widget_id})
