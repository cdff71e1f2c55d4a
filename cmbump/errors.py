"""
The domain errors of the config materialising and process bumping.

K8s API errors are not here: they live in :mod:`cmbump.clients.errors`,
since they belong to the client layer and are escalated differently.

Only `InitError` is fatal, and only at startup. All others are recoverable:
they are logged by the reconciliation engine, and the event is dropped.
"""


class CmBumpError(Exception):
    """ A base class for all domain errors; never raised directly. """


class InitError(CmBumpError):
    """ Raised when the components cannot be constructed from the given options. """


class ProcError(CmBumpError):
    """ Raised when the process table cannot be read or interpreted. """


class SignalError(CmBumpError):
    """ Raised when the signal cannot be delivered to the resolved process. """


class OperatorError(CmBumpError):
    """ Raised on inconsistencies of the watched objects or failures of their reconciliation. """
