from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from retryweave.config import EngineSettings, load_settings
from retryweave.refactor.engine import RewriteEngine
from retryweave.refactor.model import RewritePlan, RewriteRequest
from retryweave.schema import DiagnosticDTO, ExpansionDTO, FileReportDTO, PlanResponse

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Rewrite `@retry` functions into explicit retry executor calls."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _settings(root: Path, config: Path | None) -> EngineSettings:
    return load_settings(root=root, config_path=config)


def _plan_files(paths: List[Path], settings: EngineSettings) -> list[tuple[Path, RewritePlan]]:
    engine = RewriteEngine(settings=settings)
    return [
        (path, engine.plan_rewrite(RewriteRequest(target_path=str(path))))
        for path in paths
    ]


@app.command()
def expand(
    paths: List[Path] = typer.Argument(..., help="Python files to rewrite."),
    write: bool = typer.Option(False, "--write", help="Rewrite files in place."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to retryweave.toml."),
) -> None:
    """Print (or write) modules with every `@retry` function expanded."""
    failed = False
    for path, plan in _plan_files(paths, _settings(root, config)):
        for error in plan.errors:
            typer.echo(error, err=True)
            failed = True
        for warning in plan.warnings:
            logger.warning(warning)
        for edit in plan.edits:
            if write:
                Path(edit.path).write_text(edit.replacement)
                typer.echo(f"Rewrote {edit.path} ({len(plan.expansions)} functions)")
            else:
                typer.echo(edit.replacement, nl=False)
    raise typer.Exit(code=1 if failed else 0)


@app.command()
def plan(
    paths: List[Path] = typer.Argument(..., help="Python files to analyse."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to retryweave.toml."),
) -> None:
    """Report the executor plan chosen for every `@retry` function as JSON."""
    files: list[FileReportDTO] = []
    for path, rewrite_plan in _plan_files(paths, _settings(root, config)):
        files.append(
            FileReportDTO(
                path=str(path),
                expansions=[
                    ExpansionDTO(
                        function=entry.function,
                        line=entry.line,
                        executor_variant=entry.executor_variant,
                        capture_strategy=entry.capture_strategy,
                        receiver=entry.receiver,
                        references=dict(entry.references),
                        context=entry.context,
                    )
                    for entry in rewrite_plan.expansions
                ],
                diagnostics=[
                    DiagnosticDTO(
                        rule=diagnostic.rule,
                        message=diagnostic.message,
                        function=diagnostic.function,
                        line=diagnostic.line,
                        column=diagnostic.column,
                    )
                    for diagnostic in rewrite_plan.diagnostics
                ],
                warnings=list(rewrite_plan.warnings),
                errors=list(rewrite_plan.errors),
            )
        )
    response = PlanResponse(files=files, ok=not any(report.errors for report in files))
    typer.echo(response.model_dump_json(indent=2))
    raise typer.Exit(code=0 if response.ok else 1)
