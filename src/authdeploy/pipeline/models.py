"""Pipeline data models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class PipelineState(str, Enum):
    """Deploy pipeline states, in order."""

    START = "start"
    PREREQS_CHECKED = "prereqs_checked"
    INFRA_PLANNED = "infra_planned"
    INFRA_CONFIRMED = "infra_confirmed"
    INFRA_APPLIED = "infra_applied"
    CLUSTER_READY = "cluster_ready"
    PLATFORM_SERVICES_READY = "platform_services_ready"
    SECRETS_READY = "secrets_ready"
    APPLICATION_INSTALLED = "application_installed"
    ROUTING_APPLIED = "routing_applied"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


class TeardownState(str, Enum):
    """Teardown pipeline states, in order."""

    START = "start"
    CONFIRMED = "confirmed"
    CLUSTER_ACCESS = "cluster_access"
    WORKLOADS_REMOVED = "workloads_removed"
    LOAD_BALANCERS_RELEASED = "load_balancers_released"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


TERMINAL_STATES = {"done", "aborted", "failed"}


class StageOutcome(str, Enum):
    """Tag on a stage result."""

    SUCCESS = "success"
    WARNING = "warning"
    ABORT = "abort"
    FATAL = "fatal"


@dataclass
class StageResult:
    """What a stage function returns."""

    outcome: StageOutcome
    message: str = ""
    error: Exception | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str = "", **details: Any) -> "StageResult":
        return cls(StageOutcome.SUCCESS, message, details=details)

    @classmethod
    def warn(cls, message: str, **details: Any) -> "StageResult":
        return cls(StageOutcome.WARNING, message, details=details)

    @classmethod
    def abort(cls, message: str, error: Exception | None = None) -> "StageResult":
        return cls(StageOutcome.ABORT, message, error=error)

    @classmethod
    def fatal(cls, error: Exception, message: str | None = None) -> "StageResult":
        return cls(StageOutcome.FATAL, message or str(error), error=error)


@dataclass
class RunEvent:
    """Pipeline event for the run's audit trail."""

    timestamp: datetime
    state: str
    outcome: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "state": self.state,
            "outcome": self.outcome,
            "message": self.message,
        }


@dataclass
class ResolvedValue:
    """A secret value and the source that produced it."""

    value: str
    source: str


# Fixed field names of the credential bundle
SIGNING_KEY = "AUTHENTIK_SECRET_KEY"
DB_PASSWORD = "AUTHENTIK_POSTGRESQL__PASSWORD"
DB_HOST = "AUTHENTIK_POSTGRESQL__HOST"
DB_NAME = "AUTHENTIK_POSTGRESQL__NAME"
DB_USER = "AUTHENTIK_POSTGRESQL__USER"
REDIS_HOST = "AUTHENTIK_REDIS__HOST"

BUNDLE_KEYS = [SIGNING_KEY, DB_HOST, DB_NAME, DB_USER, DB_PASSWORD, REDIS_HOST]


@dataclass
class SecretBundle:
    """Credential bundle stored in the cluster's secret store."""

    values: dict[str, ResolvedValue] = field(default_factory=dict)

    def set(self, key: str, resolved: ResolvedValue) -> None:
        self.values[key] = resolved

    def get(self, key: str) -> str | None:
        resolved = self.values.get(key)
        return resolved.value if resolved else None

    def as_data(self) -> dict[str, str]:
        """Plain key -> value mapping for the secret store."""
        return {key: resolved.value for key, resolved in self.values.items()}

    def provenance(self) -> dict[str, str]:
        """Key -> source mapping; safe to log."""
        return {key: resolved.source for key, resolved in self.values.items()}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PipelineRun:
    """State threaded through every stage of one run."""

    kind: str = "deploy"
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    cluster_name: str = ""
    region: str = ""
    install_mode: str = "helm"
    state: str = PipelineState.START.value

    bundle: SecretBundle | None = None
    argocd_password: str | None = None
    ingress_hostname: str | None = None
    report: dict[str, str] = field(default_factory=dict)

    warnings: list[str] = field(default_factory=list)
    events: list[RunEvent] = field(default_factory=list)
    error: str | None = None

    started_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None

    def transition(self, state: Enum | str, outcome: str = "success", message: str = "") -> None:
        """Move to a new state and record it."""
        value = state.value if isinstance(state, Enum) else state
        self.state = value
        self.events.append(RunEvent(_utcnow(), value, outcome, message))
        if value in TERMINAL_STATES:
            self.completed_at = _utcnow()

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)
        self.events.append(RunEvent(_utcnow(), self.state, StageOutcome.WARNING.value, message))

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def succeeded(self) -> bool:
        return self.state == "done"

    @property
    def exit_code(self) -> int:
        """0 on success or operator cancellation, 1 on failure."""
        return 1 if self.state == "failed" else 0

    @property
    def duration_seconds(self) -> float:
        end = self.completed_at or _utcnow()
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "cluster_name": self.cluster_name,
            "region": self.region,
            "install_mode": self.install_mode,
            "state": self.state,
            "warnings": list(self.warnings),
            "error": self.error,
            "secret_sources": self.bundle.provenance() if self.bundle else {},
            "report": dict(self.report),
            "duration_seconds": self.duration_seconds,
            "events": [e.to_dict() for e in self.events],
        }
