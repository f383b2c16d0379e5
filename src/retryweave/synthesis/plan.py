from __future__ import annotations

import logging

from retryweave.synthesis.model import (
    CaptureStrategy,
    Configuration,
    ExecutorVariant,
    Plan,
    Signature,
)

logger = logging.getLogger(__name__)

_PLANS: dict[tuple[bool, bool], Plan] = {
    (True, False): Plan(ExecutorVariant.SUSPENDING, CaptureStrategy.BY_REFERENCE),
    (True, True): Plan(ExecutorVariant.SUSPENDING_WITH_CONTEXT, CaptureStrategy.BY_MOVE),
    (False, False): Plan(ExecutorVariant.BLOCKING, CaptureStrategy.BY_REFERENCE),
    (False, True): Plan(ExecutorVariant.BLOCKING_WITH_CONTEXT, CaptureStrategy.BY_MOVE),
}


def resolve_plan(signature: Signature, configuration: Configuration) -> Plan:
    """Map (async-ness, context) to an executor variant and capture strategy.

    Only called once the compatibility checks have passed.
    """
    plan = _PLANS[(signature.is_suspending, configuration.context)]
    logger.debug(
        "plan %s: %s/%s",
        signature.name,
        plan.executor_variant.value,
        plan.capture_strategy.value,
    )
    return plan


def resolve_variant(signature: Signature, configuration: Configuration) -> ExecutorVariant:
    return _PLANS[(signature.is_suspending, configuration.context)].executor_variant
