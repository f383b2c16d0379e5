from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from retryweave.exceptions import Diagnostic

Position = Tuple[int, int]


@dataclass(frozen=True)
class TextEdit:
    path: str
    start: Position
    end: Position
    replacement: str


@dataclass(frozen=True)
class RewriteRequest:
    target_path: str


@dataclass(frozen=True)
class ExpansionEntry:
    function: str
    line: int
    executor_variant: str
    capture_strategy: str
    receiver: str
    references: Dict[str, str] = field(default_factory=dict)
    context: bool = False


@dataclass
class RewriteResult:
    code: str | None
    expansions: List[ExpansionEntry] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)


@dataclass
class RewritePlan:
    edits: List[TextEdit] = field(default_factory=list)
    expansions: List[ExpansionEntry] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
