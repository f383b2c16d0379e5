from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

import libcst as cst

RESERVED_PREFIX = "_retryweave_"


class ReceiverKind(StrEnum):
    NONE = "None"
    BY_VALUE = "ByValue"
    IMMUTABLE_BORROW = "ImmutableBorrow"
    MUTABLE_BORROW = "MutableBorrow"


class ParameterKind(StrEnum):
    POSITIONAL_ONLY = "positional_only"
    POSITIONAL = "positional"
    VAR_POSITIONAL = "var_positional"
    KEYWORD_ONLY = "keyword_only"
    VAR_KEYWORD = "var_keyword"


class ExecutorVariant(StrEnum):
    SUSPENDING = "Suspending"
    BLOCKING = "Blocking"
    SUSPENDING_WITH_CONTEXT = "SuspendingWithContext"
    BLOCKING_WITH_CONTEXT = "BlockingWithContext"

    @property
    def is_suspending(self) -> bool:
        return self in (ExecutorVariant.SUSPENDING, ExecutorVariant.SUSPENDING_WITH_CONTEXT)

    @property
    def carries_context(self) -> bool:
        return self in (
            ExecutorVariant.SUSPENDING_WITH_CONTEXT,
            ExecutorVariant.BLOCKING_WITH_CONTEXT,
        )

    @property
    def executor_name(self) -> str:
        return _EXECUTOR_NAMES[self]


_EXECUTOR_NAMES: dict[ExecutorVariant, str] = {
    ExecutorVariant.SUSPENDING: "Retryable",
    ExecutorVariant.BLOCKING: "BlockingRetryable",
    ExecutorVariant.SUSPENDING_WITH_CONTEXT: "RetryableWithContext",
    ExecutorVariant.BLOCKING_WITH_CONTEXT: "BlockingRetryableWithContext",
}


class CaptureStrategy(StrEnum):
    NONE = "None"
    BY_REFERENCE = "ByReference"
    BY_MOVE = "ByMove"


class OptionKind(StrEnum):
    REFERENCE = "reference"
    BOOL = "bool"
    OTHER = "other"


@dataclass(frozen=True)
class ParameterSpec:
    binding_name: str
    is_simple_identifier: bool = True
    kind: ParameterKind = ParameterKind.POSITIONAL
    rebound: bool = False


@dataclass(frozen=True)
class Signature:
    name: str
    is_suspending: bool
    receiver: ReceiverKind
    parameters: tuple[ParameterSpec, ...]
    return_type: str | None
    original_body: cst.BaseSuite
    receiver_param: ParameterSpec | None = None
    in_class: bool = False
    is_generator: bool = False
    uses_bare_super: bool = False

    @property
    def captured(self) -> tuple[ParameterSpec, ...]:
        """Bindings the operation needs, receiver first."""
        if self.receiver_param is None:
            return self.parameters
        return (self.receiver_param, *self.parameters)


@dataclass(frozen=True)
class RawOption:
    name: str
    kind: OptionKind
    text: str = ""
    value: bool | None = None


@dataclass(frozen=True)
class Reference:
    expression: str

    @property
    def root(self) -> str:
        return self.expression.split(".", 1)[0]


@dataclass(frozen=True)
class Configuration:
    backoff: Reference
    sleep: Reference | None = None
    when: Reference | None = None
    notify: Reference | None = None
    adjust: Reference | None = None
    context: bool = False

    def references(self) -> dict[str, Reference]:
        refs: dict[str, Reference] = {"backoff": self.backoff}
        for name in ("sleep", "when", "notify", "adjust"):
            ref = getattr(self, name)
            if ref is not None:
                refs[name] = ref
        return refs


@dataclass(frozen=True)
class ExecutorProfile:
    """What the executor library needs from generated code, per variant."""

    sleep_required: frozenset[ExecutorVariant] = field(default_factory=frozenset)

    def requires_sleep(self, variant: ExecutorVariant) -> bool:
        return variant in self.sleep_required


@dataclass(frozen=True)
class Plan:
    executor_variant: ExecutorVariant
    capture_strategy: CaptureStrategy
