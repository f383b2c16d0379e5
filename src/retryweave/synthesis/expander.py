from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

import libcst as cst

from retryweave.config import EngineSettings
from retryweave.synthesis.compat import check_compatibility
from retryweave.synthesis.emission import synthesize
from retryweave.synthesis.model import (
    Configuration,
    ExecutorProfile,
    ExecutorVariant,
    Plan,
    RawOption,
    Signature,
)
from retryweave.synthesis.options import build_configuration
from retryweave.synthesis.plan import resolve_plan
from retryweave.synthesis.signature import build_signature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Expansion:
    signature: Signature
    configuration: Configuration
    plan: Plan
    function: cst.FunctionDef


def executor_profile(settings: EngineSettings) -> ExecutorProfile:
    return ExecutorProfile(
        sleep_required=frozenset(ExecutorVariant(name) for name in settings.require_sleep)
    )


@dataclass
class Expander:
    settings: EngineSettings = field(default_factory=EngineSettings)

    def expand(
        self,
        node: cst.FunctionDef,
        raw_options: Iterable[RawOption],
        *,
        in_class: bool = False,
    ) -> Expansion:
        """Run one expansion; raises ``RetryweaveError`` on the first violation."""
        signature = build_signature(node, in_class=in_class)
        configuration = build_configuration(
            raw_options, default_backoff=self.settings.default_backoff
        )
        check_compatibility(signature, configuration, executor_profile(self.settings))
        plan = resolve_plan(signature, configuration)
        function = synthesize(node, signature, configuration, plan)
        logger.debug(
            "expanded %s with %s", signature.name, plan.executor_variant.executor_name
        )
        return Expansion(
            signature=signature,
            configuration=configuration,
            plan=plan,
            function=function,
        )
