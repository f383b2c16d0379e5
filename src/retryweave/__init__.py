"""retryweave package root."""

from retryweave.decorator import retry
from retryweave.exceptions import CompatibilityError, Diagnostic, RetryweaveError, ShapeError
from retryweave.markers import Mut, Owned, Ref

__all__ = [
    "__version__",
    "CompatibilityError",
    "Diagnostic",
    "Mut",
    "Owned",
    "Ref",
    "RetryweaveError",
    "ShapeError",
    "retry",
]

__version__ = "0.1.0"
