"""Signature model builder.

Reads a libcst ``FunctionDef`` and normalises the facts the rest of the
pipeline needs: async-ness, how the receiver is held, and which bindings the
generated operation has to capture.
"""

from __future__ import annotations

import logging

import libcst as cst

from retryweave.synthesis.model import (
    RESERVED_PREFIX,
    ParameterKind,
    ParameterSpec,
    ReceiverKind,
    Signature,
)

logger = logging.getLogger(__name__)

_RECEIVER_MARKERS: dict[str, ReceiverKind] = {
    "Ref": ReceiverKind.IMMUTABLE_BORROW,
    "Mut": ReceiverKind.MUTABLE_BORROW,
    "Owned": ReceiverKind.BY_VALUE,
}

_EMPTY_MODULE = cst.Module(body=[])


def code_for(node: cst.CSTNode) -> str:
    return _EMPTY_MODULE.code_for_node(node)


def dotted_name(expr: cst.BaseExpression) -> str | None:
    if isinstance(expr, cst.Name):
        return expr.value
    if isinstance(expr, cst.Attribute):
        base = dotted_name(expr.value)
        if base is None:
            return None
        return f"{base}.{expr.attr.value}"
    return None


def is_docstring(stmt: cst.CSTNode) -> bool:
    """True when the line opens with a string expression (possibly ``"doc"; more``)."""
    if not isinstance(stmt, cst.SimpleStatementLine) or not stmt.body:
        return False
    expr = stmt.body[0]
    return isinstance(expr, cst.Expr) and isinstance(
        expr.value, (cst.SimpleString, cst.ConcatenatedString)
    )


def _root_name(expr: cst.BaseExpression) -> str | None:
    current = expr
    while isinstance(current, (cst.Attribute, cst.Subscript)):
        current = current.value
    if isinstance(current, cst.Name):
        return current.value
    return None


def _is_staticmethod(node: cst.FunctionDef) -> bool:
    for decorator in node.decorators:
        name = dotted_name(decorator.decorator)
        if name is not None and name.rsplit(".", 1)[-1] == "staticmethod":
            return True
    return False


def _marker_kind(annotation: cst.Annotation | None) -> ReceiverKind | None:
    if annotation is None:
        return None
    expr = annotation.annotation
    if isinstance(expr, cst.Subscript):
        expr = expr.value
    name = dotted_name(expr)
    if name is None:
        return None
    return _RECEIVER_MARKERS.get(name.rsplit(".", 1)[-1])


class _BodyFacts(cst.CSTVisitor):
    """Collects binding and shape facts for one function scope.

    Nested function, class and lambda scopes are not entered; their names
    still bind in this scope.
    """

    def __init__(self, receiver: str | None) -> None:
        self.receiver = receiver
        self.bound: set[str] = set()
        self.mutates_receiver = False
        self.is_generator = False
        self.uses_bare_super = False

    def _bind_target(self, target: cst.BaseExpression) -> None:
        if isinstance(target, cst.Name):
            self.bound.add(target.value)
        elif isinstance(target, (cst.Tuple, cst.List)):
            for element in target.elements:
                self._bind_target(element.value)
        elif isinstance(target, cst.StarredElement):
            self._bind_target(target.value)
        elif isinstance(target, (cst.Attribute, cst.Subscript)):
            if self.receiver is not None and _root_name(target) == self.receiver:
                self.mutates_receiver = True

    def visit_FunctionDef(self, node: cst.FunctionDef) -> bool:
        self.bound.add(node.name.value)
        return False

    def visit_ClassDef(self, node: cst.ClassDef) -> bool:
        self.bound.add(node.name.value)
        return False

    def visit_Lambda(self, node: cst.Lambda) -> bool:
        return False

    def visit_Assign(self, node: cst.Assign) -> None:
        for target in node.targets:
            self._bind_target(target.target)

    def visit_AugAssign(self, node: cst.AugAssign) -> None:
        self._bind_target(node.target)

    def visit_AnnAssign(self, node: cst.AnnAssign) -> None:
        self._bind_target(node.target)

    def visit_For(self, node: cst.For) -> None:
        self._bind_target(node.target)

    def visit_With(self, node: cst.With) -> None:
        for item in node.items:
            if item.asname is not None:
                self._bind_target(item.asname.name)

    def visit_ExceptHandler(self, node: cst.ExceptHandler) -> None:
        if node.name is not None:
            self._bind_target(node.name.name)

    def visit_ExceptStarHandler(self, node: cst.ExceptStarHandler) -> None:
        if node.name is not None:
            self._bind_target(node.name.name)

    # match/case capture patterns
    def visit_MatchAs(self, node: cst.MatchAs) -> None:
        if node.name is not None:
            self.bound.add(node.name.value)

    def visit_MatchStar(self, node: cst.MatchStar) -> None:
        if node.name is not None:
            self.bound.add(node.name.value)

    def visit_MatchMapping(self, node: cst.MatchMapping) -> None:
        if node.rest is not None:
            self.bound.add(node.rest.value)

    def visit_NamedExpr(self, node: cst.NamedExpr) -> None:
        self._bind_target(node.target)

    def visit_Del(self, node: cst.Del) -> None:
        self._bind_target(node.target)

    def visit_Import(self, node: cst.Import) -> None:
        for alias in node.names:
            self._bind_alias(alias)

    def visit_ImportFrom(self, node: cst.ImportFrom) -> None:
        if isinstance(node.names, cst.ImportStar):
            return
        for alias in node.names:
            self._bind_alias(alias)

    def _bind_alias(self, alias: cst.ImportAlias) -> None:
        if alias.asname is not None:
            self._bind_target(alias.asname.name)
            return
        root = _root_name(alias.name)
        if root is not None:
            self.bound.add(root)

    def visit_Yield(self, node: cst.Yield) -> None:
        self.is_generator = True

    def visit_Call(self, node: cst.Call) -> None:
        if isinstance(node.func, cst.Name) and node.func.value == "super" and not node.args:
            self.uses_bare_super = True


def _ordered_params(params: cst.Parameters) -> list[tuple[cst.Param, ParameterKind]]:
    ordered: list[tuple[cst.Param, ParameterKind]] = []
    ordered.extend((param, ParameterKind.POSITIONAL_ONLY) for param in params.posonly_params)
    ordered.extend((param, ParameterKind.POSITIONAL) for param in params.params)
    if isinstance(params.star_arg, cst.Param):
        ordered.append((params.star_arg, ParameterKind.VAR_POSITIONAL))
    ordered.extend((param, ParameterKind.KEYWORD_ONLY) for param in params.kwonly_params)
    if params.star_kwarg is not None:
        ordered.append((params.star_kwarg, ParameterKind.VAR_KEYWORD))
    return ordered


def _param_spec(param: cst.Param, kind: ParameterKind, bound: set[str]) -> ParameterSpec:
    name = param.name.value
    return ParameterSpec(
        binding_name=name,
        is_simple_identifier=not name.startswith(RESERVED_PREFIX),
        kind=kind,
        rebound=name in bound,
    )


def build_signature(node: cst.FunctionDef, *, in_class: bool = False) -> Signature:
    ordered = _ordered_params(node.params)
    receiver_node: cst.Param | None = None
    if in_class and not _is_staticmethod(node) and ordered:
        first, kind = ordered[0]
        if kind in (ParameterKind.POSITIONAL_ONLY, ParameterKind.POSITIONAL):
            receiver_node = first
            ordered = ordered[1:]

    facts = _BodyFacts(receiver_node.name.value if receiver_node is not None else None)
    node.body.visit(facts)

    receiver = ReceiverKind.NONE
    receiver_param: ParameterSpec | None = None
    if receiver_node is not None:
        receiver_kind = ParameterKind.POSITIONAL_ONLY if node.params.posonly_params else ParameterKind.POSITIONAL
        receiver_param = _param_spec(receiver_node, receiver_kind, facts.bound)
        marker = _marker_kind(receiver_node.annotation)
        if marker is not None:
            receiver = marker
        elif facts.mutates_receiver:
            receiver = ReceiverKind.MUTABLE_BORROW
        else:
            receiver = ReceiverKind.IMMUTABLE_BORROW

    signature = Signature(
        name=node.name.value,
        is_suspending=node.asynchronous is not None,
        receiver=receiver,
        parameters=tuple(_param_spec(param, kind, facts.bound) for param, kind in ordered),
        return_type=code_for(node.returns.annotation) if node.returns is not None else None,
        original_body=node.body,
        receiver_param=receiver_param,
        in_class=in_class,
        is_generator=facts.is_generator,
        uses_bare_super=facts.uses_bare_super,
    )
    logger.debug(
        "signature %s: suspending=%s receiver=%s params=%s",
        signature.name,
        signature.is_suspending,
        signature.receiver.value,
        [param.binding_name for param in signature.parameters],
    )
    return signature
