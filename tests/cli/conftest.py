import functools
import logging

import click.testing
import pytest

from cmbump.cli import main


@pytest.fixture(autouse=True)
def _restore_root_logger():
    logger = logging.getLogger()
    original_handlers = logger.handlers[:]
    original_level = logger.level
    yield
    logger.handlers[:] = original_handlers
    logger.setLevel(original_level)


@pytest.fixture()
def runner():
    runner = click.testing.CliRunner()
    return runner


@pytest.fixture()
def invoke(runner):
    return functools.partial(runner.invoke, main)


@pytest.fixture()
def real_run(mocker):
    return mocker.patch('cmbump.reactor.running.run')


@pytest.fixture()
def required(tmp_path):
    return ['-d', str(tmp_path), '-n', 'ns', '-l', 'app=nginx']
