"""
Watching and streaming watch-events.

The watch-stream is made of two phases: the initial listing of all objects
(simulated as ADDED events), and the continuous watching of the changes since
the listing's resource version. Both phases are repeated from scratch when
the resource version is "too old" (HTTP 410 Gone), i.e. when the stream is
desynced from the server -- as it happens if nothing happens for a while.

The consumers see the boundaries of every (re-)listing as bookmarks,
so that they could detect the objects deleted while the stream was desynced.
"""
import asyncio
import enum
import logging
from typing import AsyncIterator, Dict, Optional, Union, cast

import aiohttp

from cmbump.clients import api, errors, fetching
from cmbump.structs import bodies, configuration, references

logger = logging.getLogger(__name__)

HTTP_GONE_CODE = 410
HTTP_TOO_MANY_REQUESTS_CODE = 429
DEFAULT_RETRY_DELAY_SECONDS = 1


class WatchingError(Exception):
    """
    Raised when an unexpected error happens in the watch-stream API.
    """


class Bookmark(enum.Enum):
    """ Special marks sent in the stream among raw events. """
    LISTING = enum.auto()  # the (re-)listing begins; all existing objects follow as ADDED.
    LISTED = enum.auto()  # the listing is over, now streaming.


async def infinite_watch(
        *,
        settings: configuration.OperatorSettings,
        selector: references.Selector,
        _iterations: Optional[int] = None,  # used in tests/mocks/fixtures
) -> AsyncIterator[Union[Bookmark, bodies.RawEvent]]:
    """
    Stream the watch-events infinitely.

    This routine never ends gracefully. If a watcher's stream fails,
    a new one is recreated, and the stream continues.
    It only exits with unrecoverable exceptions.
    """
    logger.debug(f"Starting the watch-stream for {selector}.")
    try:
        while _iterations is None or _iterations > 0:  # equivalent to `while True` in non-test mode
            _iterations = None if _iterations is None else _iterations - 1
            stream = continuous_watch(
                settings=settings,
                selector=selector,
            )
            try:
                async for raw_event in stream:
                    yield raw_event
            except errors.APIClientError as ex:
                if ex.status != HTTP_TOO_MANY_REQUESTS_CODE:
                    raise

                retry_after = ex.details.get("retryAfterSeconds") if ex.details else None
                retry_wait = retry_after or DEFAULT_RETRY_DELAY_SECONDS
                logger.warning(
                    f"Receiving `too many requests` error from server, will retry after "
                    f"{retry_wait} seconds. Error details: {ex}"
                )
                await asyncio.sleep(retry_wait)
            await asyncio.sleep(settings.watching.reconnect_backoff)
    finally:
        logger.debug(f"Stopping the watch-stream for {selector}.")


async def continuous_watch(
        *,
        settings: configuration.OperatorSettings,
        selector: references.Selector,
) -> AsyncIterator[Union[Bookmark, bodies.RawEvent]]:

    # First, list the objects regularly, and get the list's resource version.
    # Simulate the ADDED events for every listed object -- existing or new, it does not matter.
    yield Bookmark.LISTING
    try:
        objs, resource_version = await fetching.list_objs(
            logger=logger,
            settings=settings,
            selector=selector,
        )
    except (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError, asyncio.TimeoutError):
        return

    for obj in objs:
        yield {'type': 'ADDED', 'object': obj}

    # Notify the consumer that the initial listing is over, even if there was nothing yielded.
    yield Bookmark.LISTED

    # Repeat through disconnects of the watch as long as the resource version is valid (no errors).
    # The individual watching API calls are disconnected by timeout even if the stream is fine.
    while True:

        # Then, watch the resources starting from the list's resource version.
        stream = watch_objs(
            settings=settings,
            selector=selector,
            since=resource_version,
        )
        async for raw_input in stream:
            raw_type = raw_input['type']
            raw_object = raw_input['object']

            # "410 Gone" is for the "resource version too old" error, we must restart watching.
            # The resource versions are lost by k8s after a few minutes (5 as per the official doc).
            # The error occurs when there is nothing happening for a few minutes. This is normal.
            if raw_type == 'ERROR' and cast(bodies.RawError, raw_object).get('code') == HTTP_GONE_CODE:
                logger.debug(f"Restarting the watch-stream for {selector}.")
                return  # out of the regular stream, to the infinite stream.

            # Other watch errors should be fatal for the operator.
            if raw_type == 'ERROR':
                raise WatchingError(f"Error in the watch-stream: {raw_object}")

            # Ensure that the event is something we understand and can handle.
            if raw_type not in ['ADDED', 'MODIFIED', 'DELETED', 'BOOKMARK']:
                logger.warning(f"Ignoring an unsupported event type: {raw_input!r}")
                continue

            # Keep the latest seen resource version for continuation of the stream on disconnects.
            body = cast(bodies.RawBody, raw_object)
            resource_version = body.get('metadata', {}).get('resourceVersion', resource_version)

            # Yield normal events to the consumer. Errors are already filtered out.
            yield cast(bodies.RawEvent, raw_input)


async def watch_objs(
        *,
        settings: configuration.OperatorSettings,
        selector: references.Selector,
        since: Optional[str] = None,
) -> AsyncIterator[bodies.RawInput]:
    """
    Watch the objects of the selected kind, namespace, and labels.

    The stream ends when the server closes the connection (e.g. by timeout),
    or on the connection errors -- the caller reconnects in both cases.
    """
    params: Dict[str, str] = {}
    params['watch'] = 'true'
    if since is not None:
        params['resourceVersion'] = since
    if settings.watching.bookmarks:
        params['allowWatchBookmarks'] = 'true'
    if settings.watching.server_timeout is not None:
        params['timeoutSeconds'] = str(settings.watching.server_timeout)

    connect_timeout = (
        settings.watching.connect_timeout if settings.watching.connect_timeout is not None else
        settings.networking.connect_timeout if settings.networking.connect_timeout is not None else
        settings.networking.request_timeout
    )

    # Stream the parsed events from the response until it is closed server-side.
    try:
        async for raw_input in api.stream(
            url=selector.get_url(params=params),
            logger=logger,
            settings=settings,
            timeout=aiohttp.ClientTimeout(
                total=settings.watching.client_timeout,
                sock_connect=connect_timeout,
            ),
        ):
            yield raw_input

    except (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError, asyncio.TimeoutError):
        pass
