"""Deployment pipeline: run record, secret resolution, stages, orchestrators."""

from authdeploy.pipeline.models import (
    BUNDLE_KEYS,
    PipelineRun,
    PipelineState,
    SecretBundle,
    StageOutcome,
    StageResult,
    TeardownState,
)

__all__ = [
    "BUNDLE_KEYS",
    "PipelineRun",
    "PipelineState",
    "SecretBundle",
    "StageOutcome",
    "StageResult",
    "TeardownState",
]
