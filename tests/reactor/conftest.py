from unittest.mock import Mock

import pytest

from cmbump.reactor.processing import ReconciliationEngine


@pytest.fixture()
def reconciler():
    """ A reconciler which "prepares" the objects into their data, as is. """
    return Mock(prepare=Mock(side_effect=lambda body: dict(body.get('data') or {})))


@pytest.fixture()
def engine(reconciler):
    return ReconciliationEngine(reconciler)
