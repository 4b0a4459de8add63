"""Deploy and teardown state machines."""

from typing import Callable

from authdeploy.core.context import AuthDeployContext
from authdeploy.core.exceptions import AuthDeployError, ConfigMissingError, MissingToolError
from authdeploy.core.logging import get_logger
from authdeploy.core.output import format_duration
from authdeploy.pipeline import stages
from authdeploy.pipeline.models import (
    PipelineRun,
    PipelineState,
    StageOutcome,
    StageResult,
    TeardownState,
)

logger = get_logger(__name__)

Stage = Callable[[AuthDeployContext, PipelineRun], StageResult]


class Orchestrator:
    """Runs an ordered list of stages over one PipelineRun.

    A stage's SUCCESS or WARNING moves the run to the stage's target
    state; ABORT moves it to ``aborted`` and FATAL (or any exception
    raised by the stage) to ``failed``. Nothing runs after a terminal
    state.
    """

    kind = "run"
    aborted_state: PipelineState | TeardownState = PipelineState.ABORTED
    failed_state: PipelineState | TeardownState = PipelineState.FAILED

    def __init__(self, ctx: AuthDeployContext):
        self.ctx = ctx
        self.config = ctx.config

    def new_run(self) -> PipelineRun:
        return PipelineRun(
            kind=self.kind,
            cluster_name=self.config.cluster.get_name(),
            region=self.config.cluster.get_region(),
            install_mode=self.config.install_mode.value,
        )

    def stages(self) -> list[tuple[Stage, PipelineState | TeardownState]]:
        raise NotImplementedError

    def run(self, run: PipelineRun | None = None) -> PipelineRun:
        run = run or self.new_run()
        log = logger.bind(id=run.id)
        log.info(
            "Pipeline started",
            kind=run.kind,
            cluster=run.cluster_name,
            region=run.region,
        )

        for stage, target in self.stages():
            result = self.execute(stage, run)
            self.record(run, result, target)
            if run.is_terminal:
                break
            if self.stop_after(run):
                break

        log.info(
            "Pipeline finished",
            state=run.state,
            warnings=len(run.warnings),
            duration=format_duration(run.duration_seconds),
        )
        return run

    def stop_after(self, run: PipelineRun) -> bool:
        """Hook for ending a run early in a non-terminal state."""
        return False

    def execute(self, stage: Stage, run: PipelineRun) -> StageResult:
        logger.debug("Running stage", id=run.id, stage=stage.__name__, state=run.state)
        try:
            return stage(self.ctx, run)
        except AuthDeployError as e:
            return StageResult.fatal(e)
        except Exception as e:
            logger.exception("Unexpected stage error", id=run.id, stage=stage.__name__)
            return StageResult.fatal(e, f"{stage.__name__} failed unexpectedly: {e}")

    def record(self, run: PipelineRun, result: StageResult, target: PipelineState | TeardownState) -> None:
        """Apply a stage result to the run and print its outcome line."""
        output = self.ctx.output

        if result.outcome == StageOutcome.SUCCESS:
            run.transition(target, result.outcome.value, result.message)
            if result.message:
                output.print_success(result.message)

        elif result.outcome == StageOutcome.WARNING:
            run.add_warning(result.message)
            run.transition(target, result.outcome.value, result.message)
            output.print_warning(result.message)

        elif result.outcome == StageOutcome.ABORT:
            run.transition(self.aborted_state, result.outcome.value, result.message)
            output.print_warning(result.message)

        else:
            run.error = str(result.error or result.message)
            run.transition(self.failed_state, result.outcome.value, result.message)
            logger.error("Stage failed", id=run.id, stage=target.value, error=run.error)
            self.report_failure(result)

    def report_failure(self, result: StageResult) -> None:
        output = self.ctx.output
        error = result.error
        if error is not None and result.message != str(error):
            output.print_error(result.message)
            output.print(str(error))
        else:
            output.print_error(result.message)

        if isinstance(error, ConfigMissingError) and error.remediation:
            output.print(f"Run: {error.remediation}")
        elif isinstance(error, MissingToolError) and error.hint:
            output.print(error.hint)
        elif isinstance(error, AuthDeployError) and error.details.get("hint"):
            output.print(f"Hint: {error.details['hint']}")


class DeployOrchestrator(Orchestrator):
    """Plan, apply and install Authentik on a fresh EKS cluster.

    In dry-run mode the run stops once the plan is written.
    """

    kind = "deploy"

    def stages(self) -> list[tuple[Stage, PipelineState]]:
        return [
            (stages.check_prereqs, PipelineState.PREREQS_CHECKED),
            (stages.plan_infra, PipelineState.INFRA_PLANNED),
            (stages.confirm_apply, PipelineState.INFRA_CONFIRMED),
            (stages.apply_infra, PipelineState.INFRA_APPLIED),
            (stages.wait_cluster, PipelineState.CLUSTER_READY),
            (stages.install_platform, PipelineState.PLATFORM_SERVICES_READY),
            (stages.store_secrets, PipelineState.SECRETS_READY),
            (stages.install_application, PipelineState.APPLICATION_INSTALLED),
            (stages.apply_routing, PipelineState.ROUTING_APPLIED),
            (stages.report, PipelineState.DONE),
        ]

    def stop_after(self, run: PipelineRun) -> bool:
        if self.ctx.dry_run and run.state == PipelineState.INFRA_PLANNED.value:
            self.ctx.log_dry_run("Stopping after plan; no infrastructure was changed")
            run.transition(PipelineState.ABORTED, "dry_run", "Dry run stopped after plan")
            return True
        return False


class TeardownOrchestrator(Orchestrator):
    """Best-effort removal of workloads, load balancers and infrastructure."""

    kind = "cleanup"
    aborted_state = TeardownState.ABORTED
    failed_state = TeardownState.FAILED

    def stages(self) -> list[tuple[Stage, TeardownState]]:
        return [
            (stages.confirm_teardown, TeardownState.CONFIRMED),
            (stages.configure_access, TeardownState.CLUSTER_ACCESS),
            (stages.remove_workloads, TeardownState.WORKLOADS_REMOVED),
            (stages.release_load_balancers, TeardownState.LOAD_BALANCERS_RELEASED),
            (stages.destroy_infra, TeardownState.DONE),
        ]
