"""Emit the rewritten function body for a resolved plan."""

from __future__ import annotations

import libcst as cst

from retryweave.exceptions import ShapeError
from retryweave.synthesis.model import (
    RESERVED_PREFIX,
    CaptureStrategy,
    Configuration,
    Plan,
    Signature,
)
from retryweave.synthesis.signature import is_docstring

RUNTIME_ALIAS = f"{RESERVED_PREFIX}runtime"
BUILDER = f"{RESERVED_PREFIX}builder"
CONTEXT = f"{RESERVED_PREFIX}context"
CONTEXT_PARAM = f"{RESERVED_PREFIX}ctx"
OPERATION = f"{RESERVED_PREFIX}operation"
RESULT = f"{RESERVED_PREFIX}result"


def _body_statements(body: cst.BaseSuite) -> list[cst.BaseStatement]:
    if isinstance(body, cst.IndentedBlock):
        return list(body.body)
    # `def f(): return x` style one-liners
    if isinstance(body, cst.SimpleStatementSuite):
        return [cst.SimpleStatementLine(body=body.body)]
    raise ShapeError("body", f"unsupported function body `{type(body).__name__}`")


def _split_docstring(
    statements: list[cst.BaseStatement],
) -> tuple[list[cst.BaseStatement], list[cst.BaseStatement]]:
    """Separate the docstring expression from the statements that follow it.

    Small statements sharing the docstring's line stay with the body.
    """
    first = statements[0] if statements else None
    if not isinstance(first, cst.SimpleStatementLine) or not is_docstring(first):
        return [], statements
    doc, *rest = first.body
    docstring = first.with_changes(body=[doc.with_changes(semicolon=cst.MaybeSentinel.DEFAULT)])
    remaining = list(statements[1:])
    if rest:
        remaining.insert(0, cst.SimpleStatementLine(body=rest))
    return [docstring], remaining


def _tuple_source(names: list[str]) -> str:
    if not names:
        return "()"
    return "(" + ", ".join(names) + ",)"


def _chain_source(configuration: Configuration, plan: Plan) -> str:
    executor = plan.executor_variant.executor_name
    chain = f"{RUNTIME_ALIAS}.{executor}({OPERATION}).retry({BUILDER})"
    for hook in ("when", "notify", "adjust", "sleep"):
        reference = getattr(configuration, hook)
        if reference is not None:
            chain += f".{hook}({reference.expression})"
    if plan.capture_strategy is CaptureStrategy.BY_MOVE:
        chain += f".context({CONTEXT})"
    return chain


def _operation(
    signature: Signature, plan: Plan, statements: list[cst.BaseStatement]
) -> cst.FunctionDef:
    prelude: list[cst.BaseStatement] = []
    params: list[cst.Param] = []
    if plan.capture_strategy is CaptureStrategy.BY_MOVE:
        params.append(cst.Param(name=cst.Name(CONTEXT_PARAM)))
        names = [param.binding_name for param in signature.captured]
        if names:
            prelude.append(cst.parse_statement(f"{_tuple_source(names)} = {CONTEXT_PARAM}\n"))
    else:
        rebound = [param.binding_name for param in signature.captured if param.rebound]
        if rebound:
            prelude.append(cst.parse_statement(f"nonlocal {', '.join(rebound)}\n"))

    original = signature.original_body
    if isinstance(original, cst.IndentedBlock):
        block = original.with_changes(
            body=[*prelude, *statements], header=cst.TrailingWhitespace()
        )
    else:
        block = cst.IndentedBlock(body=[*prelude, *statements])
    return cst.FunctionDef(
        name=cst.Name(OPERATION),
        params=cst.Parameters(params=params),
        body=block,
        asynchronous=cst.Asynchronous() if signature.is_suspending else None,
    )


def _invoke(chain: cst.BaseExpression, suspending: bool) -> cst.BaseExpression:
    if suspending:
        return cst.Await(expression=chain)
    return cst.Call(func=cst.Attribute(value=chain, attr=cst.Name("call")))


def synthesize(
    node: cst.FunctionDef,
    signature: Signature,
    configuration: Configuration,
    plan: Plan,
) -> cst.FunctionDef:
    """Return ``node`` with its body delegated to the planned executor.

    Name, parameters, return annotation, async-ness and decorators are left
    as they are; the original body moves unaltered into the operation.
    """
    statements = _body_statements(signature.original_body)
    docstring, statements = _split_docstring(statements)
    if not statements:
        statements = [cst.SimpleStatementLine(body=[cst.Pass()])]

    outer: list[cst.BaseStatement] = [
        *docstring,
        cst.parse_statement(f"{BUILDER} = ({configuration.backoff.expression})()\n"),
    ]
    if plan.capture_strategy is CaptureStrategy.BY_MOVE:
        names = [param.binding_name for param in signature.captured]
        outer.append(cst.parse_statement(f"{CONTEXT} = {_tuple_source(names)}\n"))
    outer.append(_operation(signature, plan, statements))

    invoked = _invoke(
        cst.parse_expression(_chain_source(configuration, plan)),
        plan.executor_variant.is_suspending,
    )
    if plan.capture_strategy is CaptureStrategy.BY_MOVE:
        outer.append(
            cst.SimpleStatementLine(
                body=[
                    cst.Assign(
                        targets=[cst.AssignTarget(cst.parse_expression(f"{CONTEXT}, {RESULT}"))],
                        value=invoked,
                    )
                ]
            )
        )
        outer.append(cst.parse_statement(f"return {RESULT}\n"))
    else:
        outer.append(cst.SimpleStatementLine(body=[cst.Return(value=invoked)]))

    original = signature.original_body
    if isinstance(original, cst.IndentedBlock):
        new_body = cst.IndentedBlock(body=outer, header=original.header, indent=original.indent)
    else:
        new_body = cst.IndentedBlock(body=outer)
    return node.with_changes(body=new_body)
