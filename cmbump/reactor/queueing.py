"""
Kubernetes watching/streaming and feeding the events to the engine.

There is only one resource kind, and the amount of the watched objects
is usually small (a few ConfigMaps of one application), while they all
are materialised into the same directory and bump the same process.
So, the events are processed strictly sequentially in the order of arrival,
with no per-object queues or workers.
"""
import logging
from typing import Any, Optional

from cmbump.clients import watching
from cmbump.reactor import processing
from cmbump.structs import configuration, references

logger = logging.getLogger(__name__)


async def watcher(
        *,
        settings: configuration.OperatorSettings,
        selector: references.Selector,
        engine: "processing.ReconciliationEngine[Any]",
        _iterations: Optional[int] = None,  # used in tests/mocks/fixtures
) -> None:
    """
    The watcher watches for the ConfigMaps' events and reconciles them one by one.

    The failures of the individual events are logged, and the event is skipped.
    The failures of the watch-stream itself are escalated to the operator.
    """
    stream = watching.infinite_watch(
        settings=settings,
        selector=selector,
        _iterations=_iterations,
    )
    async for raw_event in stream:
        try:
            engine.process_event(raw_event)
        except Exception as e:
            logger.exception(f"Failed to process an event: {e}")
