from __future__ import annotations

import sys
import textwrap
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))


import libcst as cst
import pytest


@pytest.fixture
def parse_function():
    """Parse a snippet and return its function, plus whether it sits in a class."""

    def _parse(source: str) -> tuple[cst.FunctionDef, bool]:
        module = cst.parse_module(textwrap.dedent(source).strip() + "\n")
        stmt = module.body[0]
        if isinstance(stmt, cst.ClassDef):
            for item in stmt.body.body:
                if isinstance(item, cst.FunctionDef):
                    return item, True
        assert isinstance(stmt, cst.FunctionDef)
        return stmt, False

    return _parse


@pytest.fixture
def render():
    def _render(node: cst.CSTNode) -> str:
        return cst.Module(body=[node]).code

    return _render
