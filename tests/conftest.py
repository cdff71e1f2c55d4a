import json
import logging
import re
from unittest.mock import Mock

import aiohttp.web
import psutil
import pytest

from cmbump.clients import auth
from cmbump.clients.auth import APIContext
from cmbump.structs.configuration import OperatorSettings
from cmbump.structs.credentials import ConnectionInfo
from cmbump.structs.references import CONFIGMAPS, Selector


@pytest.fixture()
def settings():
    settings = OperatorSettings()
    settings.networking.error_backoffs = []  # no retries unless explicitly requested
    settings.watching.reconnect_backoff = 0
    return settings


@pytest.fixture()
def logger():
    return logging.getLogger('cmbump.tests')


@pytest.fixture()
def namespace():
    return 'ns'


@pytest.fixture()
def selector(namespace):
    return Selector(resource=CONFIGMAPS, namespace=namespace, labels='config-bump=reload')


@pytest.fixture()
def hostname():
    """ A fake hostname to be used in all aiohttp/aresponses tests. """
    return 'fake-host'


#
# Mocks for Kubernetes API clients (aiohttp + aresponses).
# We do not test the aiohttp client itself, only the layers on top of it.
# No external calls must be made under any circumstances.
#

@pytest.fixture()
async def enforced_context(hostname, mocker):
    """
    A context/session used by all API calls for the duration of the test.

    Normally, the context is set by the operator into a context variable.
    The tests do not run in the operator's task, so the variable is replaced.
    The session can be patched, e.g. to simulate the client-side exceptions,
    which `aresponses` cannot simulate (it only returns erroneous responses).
    """
    info = ConnectionInfo(server=f'https://{hostname}')
    context = APIContext(info)
    mocker.patch.object(auth, 'context_var', Mock(get=Mock(return_value=context)))
    async with context.session:
        yield context


@pytest.fixture()
async def enforced_session(enforced_context: APIContext):
    yield enforced_context.session


# Note: Unused `enforced_session` is to ensure that the session is closed for every test.
@pytest.fixture()
def resp_mocker(enforced_session, aresponses, mocker):
    """
    A factory of server-side callbacks for `aresponses` with mocking/spying.

    The value of the fixture is a function, which returns a coroutine mock.
    That coroutine mock should be passed to `aresponses.add` as a response
    callback function. When called, it calls the mock defined by the function's
    arguments (specifically, return_value or side_effects).

    Sample usage::

        def test_me(resp_mocker):
            response = aiohttp.web.json_response({'a': 'b'})
            callback = resp_mocker(return_value=response)
            aresponses.add(hostname, '/path/', 'get', callback)
            do_something()
            assert callback.called
            assert callback.call_count == 1
    """
    def resp_maker(*args, **kwargs):
        actual_response = mocker.Mock(*args, **kwargs)

        async def resp_mock_effect(request):
            return actual_response()

        return mocker.AsyncMock(side_effect=resp_mock_effect)
    return resp_maker


@pytest.fixture()
def stream(enforced_session, aresponses, hostname, selector, settings):
    """
    A mock for the list-and-watch API calls of the ConfigMaps.

    The listing is simulated explicitly with ``stream.listed(...)``, the watching
    with ``stream.feed(...)``: every fed list of events is one watch-response,
    each response is consumed once, as many as needed in the order of feeding.
    The events must have no resource versions, so that the reconnects
    are requested from the listed resource version.
    """
    def listed(items=(), *, resource_version='0'):
        list_data = {
            'kind': 'ConfigMapList', 'apiVersion': 'v1',
            'items': list(items), 'metadata': {'resourceVersion': resource_version},
        }
        list_resp = aiohttp.web.json_response(list_data)
        list_url = selector.get_url()
        aresponses.add(hostname, list_url, 'get', list_resp, match_querystring=True)

    def feed(*args, resource_version='0'):
        for arg in args:

            # Prepare the stream response pre-rendered (for simplicity, no actual streaming).
            if isinstance(arg, (list, tuple)):
                stream_text = '\n'.join(json.dumps(event) for event in arg)
                stream_resp = aresponses.Response(text=stream_text)
            else:
                stream_resp = arg

            params = {'watch': 'true', 'resourceVersion': resource_version}
            if settings.watching.bookmarks:
                params['allowWatchBookmarks'] = 'true'
            stream_url = selector.get_url(params=params)

            # Note: `aresponses` excludes a response once it is matched (side-effect-like).
            # So we just accumulate them there, as many as needed.
            aresponses.add(hostname, stream_url, 'get', stream_resp, match_querystring=True)

    def close(*, resource_version='0'):
        """
        A way to stop the stream from reconnecting: say it that the resource version is gone
        (we know a priori that it stops on this condition, and escalates to `infinite_watch`).
        """
        feed([{'type': 'ERROR', 'object': {'code': 410}}], resource_version=resource_version)

    return Mock(spec_set=['listed', 'feed', 'close'], listed=listed, feed=feed, close=close)


#
# Simulated process table: no real processes are inspected or signalled in tests.
#

class FakeProcessTable:
    """ A process table as seen via psutil: PIDs, their command lines and parents. """

    def __init__(self):
        super().__init__()
        self.processes = {}

    def add(self, pid, cmdline, *, ppid=0):
        self.processes[pid] = (list(cmdline.split()) if isinstance(cmdline, str) else cmdline, ppid)

    def remove(self, pid):
        del self.processes[pid]

    def pids(self):
        return list(self.processes)

    def pid_exists(self, pid):
        return pid in self.processes

    def process(self, pid):
        if pid not in self.processes:
            raise psutil.NoSuchProcess(pid)
        cmdline, ppid = self.processes[pid]
        return Mock(cmdline=Mock(return_value=cmdline), ppid=Mock(return_value=ppid))


@pytest.fixture()
def processes(mocker):
    table = FakeProcessTable()
    mocker.patch('psutil.pids', side_effect=table.pids)
    mocker.patch('psutil.pid_exists', side_effect=table.pid_exists)
    mocker.patch('psutil.Process', side_effect=table.process)
    return table


@pytest.fixture()
def kill(mocker):
    """ The signal delivery: as if the signals are delivered successfully. """
    return mocker.patch('os.kill')


#
# Helpers for the logging checks.
#

@pytest.fixture()
def assert_logs(caplog):
    """
    A function to assert the logs are present (by pattern).

    The listed message patterns MUST be present, in the order specified.
    Some other log messages can also be present, but they are ignored.
    """
    caplog.set_level(logging.DEBUG)

    def assert_logs_fn(patterns, prohibited=[], strict=False):
        __traceback_hide__ = True
        remaining_patterns = list(patterns)
        for message in caplog.messages:
            # The expected pattern is at position 0.
            # Looking-ahead: if one of the following patterns matches, while the
            # 0th does not, then the log message is missing, and we fail the test.
            for idx, pattern in enumerate(remaining_patterns):
                m = re.search(pattern, message)
                if m:
                    if idx == 0:
                        remaining_patterns[:1] = []
                        break  # out of `remaining_patterns` cycle
                    else:
                        skipped_patterns = remaining_patterns[:idx]
                        raise AssertionError(f"Few patterns were skipped: {skipped_patterns!r}")
                elif strict:
                    raise AssertionError(f"Unexpected log message: {message!r}")

            # Check that the prohibited patterns do not appear in any message.
            for pattern in prohibited:
                m = re.search(pattern, message)
                if m:
                    raise AssertionError(f"Prohibited log pattern found: {message!r} ~ {pattern!r}")

        # If all patterns have been matched in order, we are done.
        # if some are left, but the messages are over, then we fail.
        if remaining_patterns:
            raise AssertionError(f"Few patterns were missed: {remaining_patterns!r}")

    return assert_logs_fn
