"""
Rudimentary type [re-]definitions for cross-versioned Python & mypy.

Some stdlib classes are generic in the type-sheds but not at runtime
(e.g. `logging.LoggerAdapter`), so they are defined here once for reuse.
"""
import logging
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    LoggerAdapter = logging.LoggerAdapter[Any]
else:
    LoggerAdapter = logging.LoggerAdapter

# Anything that can be logged to: a regular logger or an object-bound adapter.
Logger = Union[logging.Logger, LoggerAdapter]
