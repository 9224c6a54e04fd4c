"""Mock disability case backend.

Every call synthesizes its own data; nothing is persisted between calls.
"""

from casework.cases.errors import FatalError, OperationError, TransientError
from casework.cases.operations import CaseOperations

__all__ = ["CaseOperations", "OperationError", "TransientError", "FatalError"]
