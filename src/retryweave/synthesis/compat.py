"""Compatibility checks between a signature and its retry configuration.

Rules run in a fixed order and the first violation is raised. Each rule is
a distinct precondition, so the order only decides which message is
reported when several apply.
"""

from __future__ import annotations

from typing import Callable

from retryweave.exceptions import CompatibilityError, ShapeError
from retryweave.synthesis.model import (
    Configuration,
    ExecutorProfile,
    ReceiverKind,
    Signature,
)
from retryweave.synthesis.plan import resolve_variant

_BORROWING = (ReceiverKind.IMMUTABLE_BORROW, ReceiverKind.MUTABLE_BORROW)
_DEFAULT_PROFILE = ExecutorProfile()


def _check_context_receiver(signature: Signature, configuration: Configuration, profile: ExecutorProfile) -> None:
    if configuration.context and signature.receiver in _BORROWING:
        held = "mutably" if signature.receiver is ReceiverKind.MUTABLE_BORROW else "by shared reference"
        raise CompatibilityError(
            "context-receiver",
            f"`context = True` is not supported for methods holding their receiver {held}; "
            "mark the receiver `Owned[...]` to move it into the retry context",
        )


def _check_owning_receiver(signature: Signature, configuration: Configuration, profile: ExecutorProfile) -> None:
    if configuration.context:
        return
    if signature.receiver is ReceiverKind.MUTABLE_BORROW:
        raise CompatibilityError(
            "mutable-receiver",
            "`@retry` does not support methods that mutate their receiver without "
            "`context = True`; fall back to a manual retry loop",
        )
    if signature.receiver is ReceiverKind.BY_VALUE:
        raise CompatibilityError(
            "owned-receiver",
            "`@retry` does not support methods that take ownership of their receiver "
            "without `context = True`; fall back to a manual retry loop",
        )


def _check_adjust(signature: Signature, configuration: Configuration, profile: ExecutorProfile) -> None:
    if configuration.adjust is not None and not signature.is_suspending:
        raise CompatibilityError(
            "adjust-blocking", "`adjust` is only available for async functions"
        )


def _check_identifiers(signature: Signature, configuration: Configuration, profile: ExecutorProfile) -> None:
    for param in signature.captured:
        if not param.is_simple_identifier:
            raise ShapeError(
                "parameter-identifier",
                f"parameters must bind to plain identifiers; `{param.binding_name}` "
                "uses the reserved `_retryweave_` prefix",
            )


def _check_sleep(signature: Signature, configuration: Configuration, profile: ExecutorProfile) -> None:
    variant = resolve_variant(signature, configuration)
    if configuration.sleep is None and profile.requires_sleep(variant):
        raise CompatibilityError(
            "missing-sleep",
            f"the {variant.value} executor requires a `sleep` function",
        )


def _check_generator(signature: Signature, configuration: Configuration, profile: ExecutorProfile) -> None:
    if signature.is_generator:
        raise ShapeError(
            "generator", "generator functions cannot be retried; `yield` found in the body"
        )


def _check_bare_super(signature: Signature, configuration: Configuration, profile: ExecutorProfile) -> None:
    if signature.in_class and signature.uses_bare_super:
        raise ShapeError(
            "bare-super",
            "zero-argument `super()` cannot be moved into the retry operation; "
            "pass the class and receiver explicitly",
        )


def _check_shadowing(signature: Signature, configuration: Configuration, profile: ExecutorProfile) -> None:
    names = {param.binding_name for param in signature.captured}
    for option, reference in configuration.references().items():
        if reference.root in names:
            raise ShapeError(
                "shadowed-reference",
                f"parameter `{reference.root}` shadows the `{option}` reference "
                f"`{reference.expression}`",
            )


CHECKS: tuple[Callable[[Signature, Configuration, ExecutorProfile], None], ...] = (
    _check_context_receiver,
    _check_owning_receiver,
    _check_adjust,
    _check_identifiers,
    _check_sleep,
    _check_generator,
    _check_bare_super,
    _check_shadowing,
)


def check_compatibility(
    signature: Signature,
    configuration: Configuration,
    profile: ExecutorProfile = _DEFAULT_PROFILE,
) -> None:
    for check in CHECKS:
        check(signature, configuration, profile)
