"""
The main cmbump module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the package's top-level interface,
# as it is seen by the embedding code. So, we export the individual names.

from cmbump.errors import (
    CmBumpError,
    InitError,
    ProcError,
    SignalError,
    OperatorError,
)
from cmbump.engines.bumping import (
    Bumper,
    CmdlineDetection,
    PidDetection,
    ProcessDetection,
    ProcessDetector,
)
from cmbump.engines.updating import (
    ConfigFile,
    ConfigFiles,
    ConfigUpdater,
)
from cmbump.engines.loggers import (
    LogFormat,
    ObjectLogger,
    configure,
)
from cmbump.reactor.processing import (
    Reconciler,
    ReconciliationEngine,
)
from cmbump.reactor.running import (
    run,
    operator,
    spawn_tasks,
    run_tasks,
)
from cmbump.structs.configuration import (
    OperatorSettings,
)
from cmbump.structs.references import (
    CONFIGMAPS,
    Resource,
    Selector,
)

__all__ = [
    'CmBumpError', 'InitError', 'ProcError', 'SignalError', 'OperatorError',
    'Bumper', 'CmdlineDetection', 'PidDetection', 'ProcessDetection', 'ProcessDetector',
    'ConfigFile', 'ConfigFiles', 'ConfigUpdater',
    'LogFormat', 'ObjectLogger', 'configure',
    'Reconciler', 'ReconciliationEngine',
    'run', 'operator', 'spawn_tasks', 'run_tasks',
    'OperatorSettings',
    'CONFIGMAPS', 'Resource', 'Selector',
]
