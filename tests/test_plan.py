from __future__ import annotations

from pathlib import Path
import sys

import libcst as cst


def _load():
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root / "src"))
    from retryweave.synthesis import model
    from retryweave.synthesis.plan import resolve_plan, resolve_variant

    return model, resolve_plan, resolve_variant


def _signature(model, suspending: bool):
    return model.Signature(
        name="f",
        is_suspending=suspending,
        receiver=model.ReceiverKind.NONE,
        parameters=(model.ParameterSpec("x"),),
        return_type=None,
        original_body=cst.IndentedBlock(body=[cst.SimpleStatementLine([cst.Pass()])]),
    )


def test_plan_table() -> None:
    model, resolve_plan, resolve_variant = _load()
    V, C = model.ExecutorVariant, model.CaptureStrategy
    expected = {
        (True, False): (V.SUSPENDING, C.BY_REFERENCE),
        (True, True): (V.SUSPENDING_WITH_CONTEXT, C.BY_MOVE),
        (False, False): (V.BLOCKING, C.BY_REFERENCE),
        (False, True): (V.BLOCKING_WITH_CONTEXT, C.BY_MOVE),
    }
    for (suspending, context), (variant, capture) in expected.items():
        signature = _signature(model, suspending)
        configuration = model.Configuration(backoff=model.Reference("b"), context=context)
        plan = resolve_plan(signature, configuration)
        assert plan == model.Plan(variant, capture)
        assert resolve_variant(signature, configuration) is variant
        assert plan.executor_variant.is_suspending is suspending
        assert plan.executor_variant.carries_context is context


def test_plan_is_deterministic_and_ignores_hooks() -> None:
    model, resolve_plan, resolve_variant = _load()
    signature = _signature(model, True)
    bare = model.Configuration(backoff=model.Reference("b"))
    hooked = model.Configuration(
        backoff=model.Reference("other"),
        sleep=model.Reference("s"),
        when=model.Reference("w"),
        notify=model.Reference("n"),
        adjust=model.Reference("a"),
    )
    plans = {resolve_plan(signature, bare) for _ in range(5)}
    assert plans == {resolve_plan(signature, hooked)}


def test_executor_names() -> None:
    model, resolve_plan, resolve_variant = _load()
    assert {variant.executor_name for variant in model.ExecutorVariant} == {
        "Retryable",
        "BlockingRetryable",
        "RetryableWithContext",
        "BlockingRetryableWithContext",
    }
