import logging
from typing import Collection

import pytest

from cmbump.engines.loggers import LogFormat, ObjectFormatter, ObjectJsonFormatter, \
                                   ObjectPrefixingJsonFormatter, ObjectPrefixingTextFormatter, \
                                   ObjectTextFormatter, configure


@pytest.fixture(autouse=True)
def _clear_own_handlers():
    logger = logging.getLogger()
    logger.handlers[:] = [
        handler for handler in logger.handlers
        if not isinstance(handler, logging.StreamHandler) or
           not isinstance(handler.formatter, ObjectFormatter)
    ]
    original_handlers = logger.handlers[:]
    original_level = logger.level
    yield
    logger.handlers[:] = original_handlers
    logger.setLevel(original_level)


@pytest.fixture(autouse=True)
def _restore_asyncio_logger():
    logger = logging.getLogger('asyncio')
    original_handlers = logger.handlers[:]
    original_propagate = logger.propagate
    yield
    logger.handlers[:] = original_handlers
    logger.propagate = original_propagate


def _get_own_handlers(logger: logging.Logger) -> Collection[logging.Handler]:
    return [
        handler for handler in logger.handlers
        if isinstance(handler, logging.StreamHandler) and
           isinstance(handler.formatter, ObjectFormatter)
    ]


def test_own_formatter_is_used():
    configure()
    logger = logging.getLogger()
    own_handlers = _get_own_handlers(logger)
    assert len(own_handlers) == 1


@pytest.mark.parametrize('log_format', [LogFormat.FULL, LogFormat.PLAIN, '%(message)s'])
def test_formatter_nonprefixed_text(log_format):
    configure(log_format=log_format, log_prefix=False)
    own_handlers = _get_own_handlers(logging.getLogger())
    assert len(own_handlers) == 1
    assert type(own_handlers[0].formatter) is ObjectTextFormatter


@pytest.mark.parametrize('log_format', [LogFormat.FULL, LogFormat.PLAIN, '%(message)s'])
def test_formatter_prefixed_text(log_format):
    configure(log_format=log_format, log_prefix=True)
    own_handlers = _get_own_handlers(logging.getLogger())
    assert len(own_handlers) == 1
    assert type(own_handlers[0].formatter) is ObjectPrefixingTextFormatter


def test_text_has_prefix_by_default():
    configure(log_format=LogFormat.FULL, log_prefix=None)
    own_handlers = _get_own_handlers(logging.getLogger())
    assert type(own_handlers[0].formatter) is ObjectPrefixingTextFormatter


def test_formatter_nonprefixed_json():
    configure(log_format=LogFormat.JSON, log_prefix=False)
    own_handlers = _get_own_handlers(logging.getLogger())
    assert len(own_handlers) == 1
    assert type(own_handlers[0].formatter) is ObjectJsonFormatter


def test_formatter_prefixed_json():
    configure(log_format=LogFormat.JSON, log_prefix=True)
    own_handlers = _get_own_handlers(logging.getLogger())
    assert len(own_handlers) == 1
    assert type(own_handlers[0].formatter) is ObjectPrefixingJsonFormatter


def test_json_has_no_prefix_by_default():
    configure(log_format=LogFormat.JSON, log_prefix=None)
    own_handlers = _get_own_handlers(logging.getLogger())
    assert len(own_handlers) == 1
    assert type(own_handlers[0].formatter) is ObjectJsonFormatter


def test_error_on_unknown_formatter():
    with pytest.raises(ValueError):
        configure(log_format=object())


@pytest.mark.parametrize('verbose, debug, quiet, expected_level', [
    (None, None, None, logging.INFO),
    (True, None, None, logging.DEBUG),
    (None, True, None, logging.DEBUG),
    (True, True, True, logging.DEBUG),
    (None, None, True, logging.WARNING),
])
def test_levels(verbose, debug, quiet, expected_level):
    configure(verbose=verbose, debug=debug, quiet=quiet)
    logger = logging.getLogger()
    assert logger.level == expected_level


def test_asyncio_is_silenced_unless_debugging():
    configure(debug=False)
    logger = logging.getLogger('asyncio')
    assert not logger.propagate
    assert all(isinstance(handler, logging.NullHandler) for handler in logger.handlers)


def test_asyncio_is_propagated_when_debugging():
    configure(debug=True)
    logger = logging.getLogger('asyncio')
    assert logger.propagate


def test_log_formats_are_distinct():
    values = [log_format.value for log_format in LogFormat]
    assert len(set(values)) == len(LogFormat) == 3
    assert LogFormat['JSON'] is LogFormat.JSON


@pytest.mark.parametrize('name, log_format', [
    ('plain', LogFormat.PLAIN),
    ('full', LogFormat.FULL),
    ('json', LogFormat.JSON),
])
def test_log_formats_are_found_by_cli_names(name, log_format):
    assert LogFormat[name.upper()] is log_format
