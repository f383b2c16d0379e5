from __future__ import annotations

import logging
from pathlib import Path

import libcst as cst
from libcst.metadata import MetadataWrapper, PositionProvider

from retryweave.config import EngineSettings
from retryweave.exceptions import Diagnostic, RetryweaveError
from retryweave.refactor.model import (
    ExpansionEntry,
    RewritePlan,
    RewriteRequest,
    RewriteResult,
    TextEdit,
)
from retryweave.synthesis.emission import RUNTIME_ALIAS
from retryweave.synthesis.expander import Expander, Expansion
from retryweave.synthesis.options import raw_options_from_decorator
from retryweave.synthesis.signature import dotted_name, is_docstring

logger = logging.getLogger(__name__)


class RewriteEngine:
    def __init__(
        self,
        project_root: Path | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self.project_root = project_root
        self.settings = settings or EngineSettings()

    def plan_rewrite(self, request: RewriteRequest) -> RewritePlan:
        path = Path(request.target_path)
        if self.project_root and not path.is_absolute():
            path = self.project_root / path
        try:
            source = path.read_text()
        except Exception as exc:
            return RewritePlan(errors=[f"Failed to read {path}: {exc}"])
        try:
            result = rewrite_source(source, settings=self.settings)
        except cst.ParserSyntaxError as exc:
            return RewritePlan(errors=[f"LibCST parse failed for {path}: {exc}"])
        if result.diagnostics:
            return RewritePlan(
                expansions=result.expansions,
                diagnostics=result.diagnostics,
                errors=[diagnostic.render(str(path)) for diagnostic in result.diagnostics],
            )
        if result.code is None or result.code == source:
            logger.debug("no @retry functions in %s", path)
            return RewritePlan(warnings=[f"No retried functions found in {path}."])
        end_line = len(source.splitlines())
        return RewritePlan(
            edits=[
                TextEdit(
                    path=str(path),
                    start=(0, 0),
                    end=(end_line, 0),
                    replacement=result.code,
                )
            ],
            expansions=result.expansions,
        )


def rewrite_source(source: str, *, settings: EngineSettings | None = None) -> RewriteResult:
    """Expand every ``@retry`` function in a module.

    Returns ``code=None`` when any expansion fails; no partial rewrite is
    produced.
    """
    settings = settings or EngineSettings()
    module = cst.parse_module(source)
    transformer = _RetryTransformer(settings)
    new_module = MetadataWrapper(module).visit(transformer)
    if transformer.diagnostics:
        return RewriteResult(
            code=None,
            expansions=transformer.expansions,
            diagnostics=transformer.diagnostics,
        )
    if transformer.expansions:
        new_module = _ensure_runtime_import(new_module, settings.runtime_module)
    return RewriteResult(code=new_module.code, expansions=transformer.expansions)


def _is_import(stmt: cst.CSTNode) -> bool:
    if not isinstance(stmt, cst.SimpleStatementLine):
        return False
    return any(isinstance(item, (cst.Import, cst.ImportFrom)) for item in stmt.body)


def _find_import_insert_index(body: list[cst.CSTNode]) -> int:
    insert_idx = 0
    if body and is_docstring(body[0]):
        insert_idx = 1
    while insert_idx < len(body) and _is_import(body[insert_idx]):
        insert_idx += 1
    return insert_idx


def _has_runtime_import(body: list[cst.CSTNode], runtime_module: str) -> bool:
    for stmt in body:
        if not isinstance(stmt, cst.SimpleStatementLine):
            continue
        for item in stmt.body:
            if not isinstance(item, cst.Import):
                continue
            for alias in item.names:
                if dotted_name(alias.name) != runtime_module or alias.asname is None:
                    continue
                if isinstance(alias.asname.name, cst.Name) and alias.asname.name.value == RUNTIME_ALIAS:
                    return True
    return False


def _ensure_runtime_import(module: cst.Module, runtime_module: str) -> cst.Module:
    body = list(module.body)
    if _has_runtime_import(body, runtime_module):
        return module
    insert_idx = _find_import_insert_index(body)
    body.insert(
        insert_idx,
        cst.parse_statement(f"import {runtime_module} as {RUNTIME_ALIAS}\n"),
    )
    return module.with_changes(body=body)


def _decorator_names(module: cst.Module, configured: tuple[str, ...]) -> set[str]:
    """Decorator spellings that mean ``retryweave.retry`` in ``module``.

    ``from pkg import attr [as alias]`` of a configured ``pkg.attr`` adds the
    local name; a bare configured name imported from anywhere else (such as
    ``from tenacity import retry``) is dropped.
    """
    names = set(configured)
    sources = {
        tuple(name.rsplit(".", 1)) for name in configured if "." in name
    }
    for stmt in module.body:
        if not isinstance(stmt, cst.SimpleStatementLine):
            continue
        for item in stmt.body:
            if not isinstance(item, cst.ImportFrom) or isinstance(item.names, cst.ImportStar):
                continue
            source = None
            if not item.relative and item.module is not None:
                source = dotted_name(item.module)
            for alias in item.names:
                imported = dotted_name(alias.name)
                local = imported
                if alias.asname is not None and isinstance(alias.asname.name, cst.Name):
                    local = alias.asname.name.value
                if local is None:
                    continue
                if (source, imported) in sources:
                    names.add(local)
                else:
                    names.discard(local)
    return names


def _entry(qualname: str, line: int, expansion: Expansion) -> ExpansionEntry:
    return ExpansionEntry(
        function=qualname,
        line=line,
        executor_variant=expansion.plan.executor_variant.value,
        capture_strategy=expansion.plan.capture_strategy.value,
        receiver=expansion.signature.receiver.value,
        references={
            name: reference.expression
            for name, reference in expansion.configuration.references().items()
        },
        context=expansion.configuration.context,
    )


class _RetryTransformer(cst.CSTTransformer):
    METADATA_DEPENDENCIES = (PositionProvider,)

    def __init__(self, settings: EngineSettings) -> None:
        super().__init__()
        self.configured = tuple(settings.decorators)
        self.decorators = set(self.configured)
        self.expander = Expander(settings=settings)
        self.expansions: list[ExpansionEntry] = []
        self.diagnostics: list[Diagnostic] = []
        # (kind, name) for each enclosing class or function
        self._stack: list[tuple[str, str]] = []

    def visit_Module(self, node: cst.Module) -> bool:
        self.decorators = _decorator_names(node, self.configured)
        return True

    def visit_ClassDef(self, node: cst.ClassDef) -> bool:
        self._stack.append(("class", node.name.value))
        return True

    def leave_ClassDef(
        self, original_node: cst.ClassDef, updated_node: cst.ClassDef
    ) -> cst.CSTNode:
        self._stack.pop()
        return updated_node

    def visit_FunctionDef(self, node: cst.FunctionDef) -> bool:
        self._stack.append(("function", node.name.value))
        return True

    def leave_FunctionDef(
        self, original_node: cst.FunctionDef, updated_node: cst.FunctionDef
    ) -> cst.CSTNode:
        qualname = ".".join(name for _, name in self._stack)
        self._stack.pop()
        in_class = bool(self._stack) and self._stack[-1][0] == "class"
        decorator = self._retry_decorator(updated_node)
        if decorator is None:
            return updated_node
        start = self.get_metadata(PositionProvider, original_node).start
        remaining = [item for item in updated_node.decorators if item is not decorator]
        target = updated_node.with_changes(decorators=remaining)
        try:
            expansion = self.expander.expand(
                target, raw_options_from_decorator(decorator), in_class=in_class
            )
        except RetryweaveError as exc:
            exc.at(function=qualname, line=start.line, column=start.column)
            logger.debug("expansion of %s failed: %s", qualname, exc)
            self.diagnostics.append(exc.diagnostic)
            return updated_node
        self.expansions.append(_entry(qualname, start.line, expansion))
        return expansion.function

    def _retry_decorator(self, node: cst.FunctionDef) -> cst.Decorator | None:
        for decorator in node.decorators:
            expr = decorator.decorator
            if isinstance(expr, cst.Call):
                expr = expr.func
            if dotted_name(expr) in self.decorators:
                return decorator
        return None
