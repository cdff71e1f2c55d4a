"""
Conversion of the low-level watch-events to the reconciliation calls.

These functions are invoked from the queueing module `cmbump.reactor.queueing`,
which is the actual event loop of the watcher process.

The engine keeps the prepared state of every known object, keyed by its name,
so that the reconciler always gets both the old and the new state of an object
and can compare them -- e.g. to find the files that are not needed anymore.
The reconciler itself knows nothing about the events or the caching.
"""
import logging
from typing import Dict, Generic, Optional, Set, TypeVar, Union

from typing_extensions import Protocol

from cmbump.clients import watching
from cmbump.engines import loggers
from cmbump.errors import OperatorError
from cmbump.structs import bodies

logger = logging.getLogger(__name__)

PreparedT = TypeVar('PreparedT')


class Reconciler(Protocol[PreparedT]):
    """
    The actual business logic applied to the watched objects.

    ``prepare()`` converts a raw body into the reconciler-specific state once
    per version of an object, the result is cached. ``reconcile()`` brings
    the world from the old state to the new one: ``old=None`` means a created
    object, ``new=None`` means a deleted one.
    """

    def prepare(self, body: bodies.RawBody) -> PreparedT: ...

    def reconcile(self, old: Optional[PreparedT], new: Optional[PreparedT]) -> None: ...


class ReconciliationEngine(Generic[PreparedT]):
    """
    A cache of the known objects and the dispatcher of their changes.

    The objects are cached as prepared by the reconciler, not as raw bodies.
    The engine is not thread-safe and not task-safe: the events must be fed
    into it strictly sequentially (as the watcher does).
    """

    def __init__(self, reconciler: Reconciler[PreparedT]) -> None:
        super().__init__()
        self.reconciler = reconciler
        self.objects: Dict[str, PreparedT] = {}
        self._relisted: Optional[Set[str]] = None

    def process_event(self, raw_event: Union[watching.Bookmark, bodies.RawEvent]) -> None:
        """
        Handle one event of the watch-stream; raise if it cannot be handled.

        The failure of one event does not affect the other events, so the caller
        should log the errors and continue with the next events.
        """
        if isinstance(raw_event, watching.Bookmark):
            if raw_event is watching.Bookmark.LISTING:
                self.on_listing()
            elif raw_event is watching.Bookmark.LISTED:
                self.on_listed()
            return

        raw_type, raw_body = raw_event['type'], raw_event['object']
        if raw_type == 'BOOKMARK':
            logger.debug("Received a bookmark. Nothing to do.")
        elif raw_type == 'ADDED':
            self.on_create(raw_body)
        elif raw_type == 'MODIFIED':
            self.on_update(raw_body)
        elif raw_type == 'DELETED':
            self.on_delete(raw_body)
        else:
            logger.warning(f"Ignoring an unsupported event type: {raw_type!r}")

    def on_create(self, body: bodies.RawBody) -> None:
        name = bodies.get_name(body)
        object_logger = loggers.ObjectLogger(body=body)
        if self._relisted is not None:
            self._relisted.add(name)

        new = self.reconciler.prepare(body)
        old = self.objects.get(name)
        known = name in self.objects
        self.objects[name] = new
        if known:
            object_logger.debug("Received a creation of an already known object. Possible recovery.")
            self.reconciler.reconcile(old, new)
        else:
            object_logger.debug("Creating the object.")
            self.reconciler.reconcile(None, new)
            object_logger.debug("Created the object.")

    def on_update(self, body: bodies.RawBody) -> None:
        name = bodies.get_name(body)
        object_logger = loggers.ObjectLogger(body=body)
        if name not in self.objects:
            raise OperatorError(f"Received an update of an object not in cache: {name}")

        new = self.reconciler.prepare(body)
        old = self.objects[name]
        self.objects[name] = new
        object_logger.debug("Updating the object.")
        self.reconciler.reconcile(old, new)
        object_logger.debug("Updated the object.")

    def on_delete(self, body: bodies.RawBody) -> None:
        name = bodies.get_name(body)
        object_logger = loggers.ObjectLogger(body=body)
        if name not in self.objects:
            raise OperatorError(f"Received a deletion of an object not in cache: {name}")

        old = self.objects.pop(name)
        object_logger.debug("Deleting the object.")
        self.reconciler.reconcile(old, None)
        object_logger.debug("Deleted the object.")

    def on_listing(self) -> None:
        self._relisted = set()

    def on_listed(self) -> None:
        """
        Forget the objects that were not re-listed: they were deleted while unwatched.

        The deletions can be missed while the watch-stream is desynced (e.g.
        after "410 Gone"), since only the existing objects are listed on resync.
        """
        relisted, self._relisted = self._relisted, None
        if relisted is None:
            return

        vanished = [name for name in self.objects if name not in relisted]
        for name in vanished:
            old = self.objects.pop(name)
            logger.info(f"The object {name!r} has vanished while unwatched. Deleting.")
            try:
                self.reconciler.reconcile(old, None)
            except Exception as e:
                logger.exception(f"Failed to delete the vanished object {name!r}: {e}")
