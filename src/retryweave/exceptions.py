"""Generation-time diagnostics for retryweave expansions."""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class Diagnostic:
    rule: str
    message: str
    function: str = ""
    line: int = 0
    column: int = 0

    def render(self, path: str = "") -> str:
        location = path or "<source>"
        if self.line:
            location = f"{location}:{self.line}:{self.column}"
        subject = f" in `{self.function}`" if self.function else ""
        return f"{location}: error: {self.message}{subject}"


class RetryweaveError(Exception):
    """Base class for errors that abort a single expansion.

    No partial output is produced once one of these is raised; the caller
    either gets a complete replacement function or the diagnostic.
    """

    kind = "error"

    def __init__(self, rule: str, message: str, *, function: str = "") -> None:
        super().__init__(message)
        self.diagnostic = Diagnostic(rule=rule, message=message, function=function)

    @property
    def rule(self) -> str:
        return self.diagnostic.rule

    def at(self, *, function: str = "", line: int = 0, column: int = 0) -> "RetryweaveError":
        self.diagnostic = replace(
            self.diagnostic,
            function=function or self.diagnostic.function,
            line=line or self.diagnostic.line,
            column=column or self.diagnostic.column,
        )
        return self


class ShapeError(RetryweaveError):
    """The function or decorator arguments have a form the engine cannot wire."""

    kind = "shape"


class CompatibilityError(RetryweaveError):
    """The signature and the configuration cannot be combined."""

    kind = "compatibility"
