from retryweave.refactor.engine import RewriteEngine, rewrite_source
from retryweave.refactor.model import (
    ExpansionEntry,
    RewritePlan,
    RewriteRequest,
    RewriteResult,
    TextEdit,
)

__all__ = [
    "ExpansionEntry",
    "RewriteEngine",
    "RewritePlan",
    "RewriteRequest",
    "RewriteResult",
    "TextEdit",
    "rewrite_source",
]
