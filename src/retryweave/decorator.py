"""Import-time ``@retry``: expand a function from its own source.

The decorated function's source is read back with ``inspect``, run through
the same expansion pipeline as the offline rewriter and compiled inside a
factory whose parameters bind the runtime module and the hook objects the
caller passed. Defaults and annotations are detached from the compiled code
and copied back from the original function afterwards, so nothing in the
signature is evaluated a second time.
"""

from __future__ import annotations

import functools
import importlib
import inspect
import logging
import textwrap
from typing import Any, Callable, TypeVar

import libcst as cst

from retryweave.config import EngineSettings
from retryweave.exceptions import RetryweaveError, ShapeError
from retryweave.synthesis.emission import RUNTIME_ALIAS
from retryweave.synthesis.expander import Expander
from retryweave.synthesis.model import RESERVED_PREFIX
from retryweave.synthesis.options import raw_options_from_values

logger = logging.getLogger(__name__)

FuncT = TypeVar("FuncT", bound=Callable[..., Any])

REF_PREFIX = f"{RESERVED_PREFIX}ref_"
FACTORY = f"{RESERVED_PREFIX}factory"

_SETTINGS = EngineSettings()


class _MangledNames(cst.CSTVisitor):
    def __init__(self) -> None:
        self.found: str | None = None

    def visit_Name(self, node: cst.Name) -> None:
        name = node.value
        if self.found is None and name.startswith("__") and not name.endswith("__"):
            self.found = name


def _in_class(func: Callable[..., Any]) -> bool:
    parts = func.__qualname__.split(".")
    return len(parts) > 1 and parts[-2] != "<locals>"


def _function_node(func: Callable[..., Any]) -> cst.FunctionDef:
    try:
        source = textwrap.dedent(inspect.getsource(func))
    except (OSError, TypeError) as exc:
        raise ShapeError(
            "source", f"source of `{func.__qualname__}` is unavailable: {exc}"
        ) from exc
    module = cst.parse_module(source)
    for stmt in module.body:
        if isinstance(stmt, cst.FunctionDef):
            return stmt
    raise ShapeError("target", f"`{func.__qualname__}` is not defined by a `def` statement")


def _detach_signature(node: cst.FunctionDef) -> cst.FunctionDef:
    def strip(param: cst.Param) -> cst.Param:
        return param.with_changes(annotation=None, default=None, equal=cst.MaybeSentinel.DEFAULT)

    params = node.params
    star_arg = params.star_arg
    if isinstance(star_arg, cst.Param):
        star_arg = strip(star_arg)
    return node.with_changes(
        decorators=[],
        returns=None,
        params=params.with_changes(
            posonly_params=[strip(param) for param in params.posonly_params],
            params=[strip(param) for param in params.params],
            star_arg=star_arg,
            kwonly_params=[strip(param) for param in params.kwonly_params],
            star_kwarg=strip(params.star_kwarg) if params.star_kwarg is not None else None,
        ),
    )


def _factory_source(node: cst.FunctionDef, references: list[str]) -> str:
    factory = cst.FunctionDef(
        name=cst.Name(FACTORY),
        params=cst.Parameters(
            params=[cst.Param(name=cst.Name(name)) for name in (RUNTIME_ALIAS, *references)]
        ),
        body=cst.IndentedBlock(
            body=[node, cst.parse_statement(f"return {node.name.value}\n")]
        ),
    )
    return cst.Module(body=[factory]).code


def expand_callable(
    func: FuncT, options: dict[str, Any], settings: EngineSettings = _SETTINGS
) -> FuncT:
    if not inspect.isfunction(func):
        raise ShapeError(
            "target", "`@retry` may only be applied to free functions or methods"
        )
    if func.__code__.co_freevars:
        raise ShapeError(
            "closure",
            f"`{func.__qualname__}` closes over {', '.join(func.__code__.co_freevars)}; "
            "closures cannot be expanded at import time, use the offline rewriter",
        )
    node = _function_node(func)
    in_class = _in_class(func)
    if in_class:
        mangled = _MangledNames()
        node.body.visit(mangled)
        if mangled.found is not None:
            raise ShapeError(
                "name-mangling",
                f"private name `{mangled.found}` would lose class name mangling "
                "when expanded at import time",
                function=func.__qualname__,
            )

    raw = raw_options_from_values(options, REF_PREFIX)
    try:
        expansion = Expander(settings=settings).expand(node, raw, in_class=in_class)
    except RetryweaveError as exc:
        raise exc.at(function=func.__qualname__)

    bindings = {
        f"{REF_PREFIX}{name}": value
        for name, value in options.items()
        if not isinstance(value, bool) and callable(value)
    }
    code = _factory_source(_detach_signature(expansion.function), sorted(bindings))
    filename = inspect.getsourcefile(func) or "<retryweave>"
    namespace: dict[str, Any] = {}
    exec(compile(code, filename, "exec", dont_inherit=True), func.__globals__, namespace)
    runtime = importlib.import_module(settings.runtime_module)
    generated = namespace[FACTORY](runtime, **bindings)
    generated.__defaults__ = func.__defaults__
    generated.__kwdefaults__ = func.__kwdefaults__
    functools.update_wrapper(generated, func)
    logger.debug(
        "retry %s -> %s/%s",
        func.__qualname__,
        expansion.plan.executor_variant.value,
        expansion.plan.capture_strategy.value,
    )
    return generated


def retry(func: FuncT | None = None, /, **options: Any) -> Any:
    """Retry ``func`` under the configured policy.

    Usable bare (``@retry``) or with options (``@retry(when=..., context=True)``).
    Invalid options or signatures raise at decoration time.
    """
    if func is None:
        return functools.partial(expand_callable, options=options)
    return expand_callable(func, options)
