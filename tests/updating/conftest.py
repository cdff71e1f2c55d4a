from unittest.mock import Mock

import pytest

from cmbump.engines.bumping import Bumper
from cmbump.engines.updating import ConfigUpdater


@pytest.fixture()
def bumper():
    return Mock(spec=Bumper)


@pytest.fixture()
def updater(tmp_path, bumper, settings):
    return ConfigUpdater(str(tmp_path), bumper, settings=settings)
