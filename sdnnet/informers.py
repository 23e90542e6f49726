"""Adapters turning add/update/delete callbacks into resource event handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

log = logging.getLogger(__name__)


class EventType(str, Enum):
    """The kind of change a watch event reports."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class DeletedFinalStateUnknown:
    """A deleted object whose final state was missed; obj is the last known state."""

    key: str
    obj: Any


@dataclass
class ResourceEventHandlers:
    """Callbacks for objects being added, updated and deleted."""

    add_func: Optional[Callable[[Any], None]] = None
    update_func: Optional[Callable[[Any, Any], None]] = None
    delete_func: Optional[Callable[[Any], None]] = None


def informer_funcs(
    obj_type: type,
    add_or_update_func: Optional[Callable[[Any, Any, EventType], None]],
    delete_func: Optional[Callable[[Any], None]],
) -> ResourceEventHandlers:
    """Build handlers for objects of obj_type, unwrapping tombstones on delete."""
    handlers = ResourceEventHandlers()

    if add_or_update_func is not None:
        handlers.add_func = lambda obj: add_or_update_func(obj, None, EventType.ADDED)
        handlers.update_func = lambda old, cur: add_or_update_func(cur, old, EventType.MODIFIED)

    if delete_func is not None:

        def on_delete(obj: Any) -> None:
            if type(obj) is not obj_type:
                if not isinstance(obj, DeletedFinalStateUnknown):
                    log.error("Couldn't get object from tombstone: %r", obj)
                    return
                obj = obj.obj
                if type(obj) is not obj_type:
                    log.error("Tombstone contained object, expected resource type: %s but got: %s",
                              obj_type.__name__, type(obj).__name__)
                    return
            delete_func(obj)

        handlers.delete_func = on_delete

    return handlers