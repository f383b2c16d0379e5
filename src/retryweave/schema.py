from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel


class DiagnosticDTO(BaseModel):
    rule: str
    message: str
    function: str = ""
    line: int = 0
    column: int = 0


class ExpansionDTO(BaseModel):
    function: str
    line: int
    executor_variant: str
    capture_strategy: str
    receiver: str
    references: Dict[str, str] = {}
    context: bool = False


class FileReportDTO(BaseModel):
    path: str
    expansions: List[ExpansionDTO] = []
    diagnostics: List[DiagnosticDTO] = []
    warnings: List[str] = []
    errors: List[str] = []


class PlanResponse(BaseModel):
    files: List[FileReportDTO]
    ok: bool
