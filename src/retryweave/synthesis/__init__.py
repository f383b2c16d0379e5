"""Expansion pipeline: signature, options, checks, plan and emission."""

from retryweave.synthesis.compat import check_compatibility
from retryweave.synthesis.emission import synthesize
from retryweave.synthesis.expander import Expander, Expansion, executor_profile
from retryweave.synthesis.model import (
    CaptureStrategy,
    Configuration,
    ExecutorProfile,
    ExecutorVariant,
    ParameterKind,
    ParameterSpec,
    Plan,
    RawOption,
    ReceiverKind,
    Reference,
    Signature,
)
from retryweave.synthesis.options import build_configuration, raw_options_from_decorator
from retryweave.synthesis.plan import resolve_plan
from retryweave.synthesis.signature import build_signature

__all__ = [
    "CaptureStrategy",
    "Configuration",
    "ExecutorProfile",
    "ExecutorVariant",
    "Expander",
    "Expansion",
    "ParameterKind",
    "ParameterSpec",
    "Plan",
    "RawOption",
    "ReceiverKind",
    "Reference",
    "Signature",
    "build_configuration",
    "build_signature",
    "check_compatibility",
    "executor_profile",
    "raw_options_from_decorator",
    "resolve_plan",
    "synthesize",
]
