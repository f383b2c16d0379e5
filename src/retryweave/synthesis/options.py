from __future__ import annotations

import logging
from typing import Iterable, Mapping

import libcst as cst

from retryweave.config import DEFAULT_BACKOFF
from retryweave.exceptions import ShapeError
from retryweave.synthesis.model import Configuration, OptionKind, RawOption, Reference
from retryweave.synthesis.signature import code_for, dotted_name

logger = logging.getLogger(__name__)

REFERENCE_OPTIONS = ("backoff", "sleep", "when", "notify", "adjust")
KNOWN_OPTIONS = (*REFERENCE_OPTIONS, "context")


def classify_expression(name: str, expr: cst.BaseExpression) -> RawOption:
    if isinstance(expr, cst.Name) and expr.value in ("True", "False"):
        return RawOption(name=name, kind=OptionKind.BOOL, text=expr.value, value=expr.value == "True")
    dotted = dotted_name(expr)
    if dotted is not None:
        return RawOption(name=name, kind=OptionKind.REFERENCE, text=dotted)
    return RawOption(name=name, kind=OptionKind.OTHER, text=code_for(expr))


def raw_options_from_decorator(decorator: cst.Decorator) -> list[RawOption]:
    """Read ``@retry`` / ``@retry(...)`` into raw options, in source order."""
    expr = decorator.decorator
    if not isinstance(expr, cst.Call):
        return []
    options: list[RawOption] = []
    for arg in expr.args:
        if arg.star:
            raise ShapeError("arguments", "`@retry` does not accept unpacked arguments")
        if arg.keyword is None:
            raise ShapeError(
                "arguments",
                f"`@retry` options must be named, got positional `{code_for(arg.value)}`",
            )
        options.append(classify_expression(arg.keyword.value, arg.value))
    return options


def raw_options_from_values(values: Mapping[str, object], binding_prefix: str) -> list[RawOption]:
    """Raw options for the import-time decorator.

    Callables become references to names the caller binds as
    ``binding_prefix + option``.
    """
    options: list[RawOption] = []
    for name, value in values.items():
        if isinstance(value, bool):
            options.append(RawOption(name=name, kind=OptionKind.BOOL, text=str(value), value=value))
        elif callable(value):
            options.append(RawOption(name=name, kind=OptionKind.REFERENCE, text=f"{binding_prefix}{name}"))
        else:
            options.append(RawOption(name=name, kind=OptionKind.OTHER, text=repr(value)))
    return options


def build_configuration(
    raw_options: Iterable[RawOption], *, default_backoff: str = DEFAULT_BACKOFF
) -> Configuration:
    references: dict[str, Reference] = {}
    context: bool | None = None
    for option in raw_options:
        if option.name not in KNOWN_OPTIONS:
            raise ShapeError("unknown-option", f"unknown parameter `{option.name}`")
        if option.name == "context":
            if context is not None:
                raise ShapeError("duplicate-option", "`context` cannot be specified more than once")
            if option.kind is not OptionKind.BOOL or option.value is None:
                raise ShapeError(
                    "option-kind",
                    f"`context` expects a boolean literal, got `{option.text}`",
                )
            context = option.value
            continue
        if option.name in references:
            raise ShapeError(
                "duplicate-option", f"parameter already specified: `{option.name}`"
            )
        if option.kind is not OptionKind.REFERENCE:
            raise ShapeError(
                "option-kind",
                f"`{option.name}` expects a reference to a callable, got `{option.text}`",
            )
        references[option.name] = Reference(option.text)

    configuration = Configuration(
        backoff=references.get("backoff", Reference(default_backoff)),
        sleep=references.get("sleep"),
        when=references.get("when"),
        notify=references.get("notify"),
        adjust=references.get("adjust"),
        context=bool(context),
    )
    logger.debug(
        "configuration: %s context=%s",
        {name: ref.expression for name, ref in configuration.references().items()},
        configuration.context,
    )
    return configuration
