"""
All configuration flags, options, settings to fine-tune the watcher.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

Some of the settings are flags, some are scalars, some are optional,
some are not (but all of them have reasonable defaults). The CLI maps
its options into these settings; embedding code can set them directly.
"""
import dataclasses
from typing import Iterable, Optional


@dataclasses.dataclass
class ProcessSettings:
    """
    Settings for the watcher's own OS process: e.g. when started via CLI.
    """

    ultimate_exiting_timeout: Optional[float] = 10 * 60
    """
    How long to wait for the graceful exit before SIGKILL'ing the watcher.

    The countdown goes from when a graceful signal arrives (SIGTERM/SIGINT),
    regardless of what is happening in the graceful exiting routine.

    Measured in seconds. Set to `None` to disable.
    """


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: Optional[float] = 5 * 60  # == aiohttp.client.DEFAULT_TIMEOUT
    """
    A timeout for non-streaming API requests (i.e. listing).
    """

    connect_timeout: Optional[float] = None
    """
    A timeout for establishing a connection to the API, for all requests.
    """

    error_backoffs: Iterable[float] = (1, 1, 2, 3, 5, 8, 13)
    """
    Backoff intervals in case of connection errors or 5xx responses.

    The request is retried once per each value, with the given sleep before it.
    To disable the retries, set it to ``[]`` or ``()``.
    """


@dataclasses.dataclass
class WatchingSettings:

    server_timeout: Optional[float] = None
    """
    The maximum duration of one streaming request. Patched in some tests.
    If ``None``, then obey the server-side timeouts (they seem to be random).
    """

    client_timeout: Optional[float] = None
    """
    An HTTP/HTTPS session timeout to use in watch requests.
    """

    connect_timeout: Optional[float] = None
    """
    An HTTP/HTTPS connection timeout to use in watch requests.
    """

    reconnect_backoff: float = 0.1
    """
    How long should a pause be between watch requests (to prevent API flooding).
    """

    bookmarks: bool = True
    """
    Should the server send BOOKMARK events to keep the resource version fresh?

    Bookmarks reduce the chances of "410 Gone" errors on reconnects,
    and so the full re-listings of the watched objects.
    """


@dataclasses.dataclass
class BumpingSettings:

    on_deletion: bool = False
    """
    Should the process be signalled when a watched object is deleted?

    By default, only the written files (and the files removed in updates)
    cause the signal. When a whole object is deleted, its files are removed,
    but the process is left as is -- unless this flag is set.
    """


@dataclasses.dataclass
class OperatorSettings:
    process: ProcessSettings = dataclasses.field(default_factory=ProcessSettings)
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    watching: WatchingSettings = dataclasses.field(default_factory=WatchingSettings)
    bumping: BumpingSettings = dataclasses.field(default_factory=BumpingSettings)
