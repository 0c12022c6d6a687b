"""Reconciliation and run report data models."""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class IncompleteUpdate:
    """A locally owned title whose installed version is behind the catalog."""
    title_id: str
    name: str
    local_version: int
    latest_version: int
    latest_release_date: str


@dataclass(frozen=True)
class MissingDLC:
    """A DLC listed in the catalog but absent locally."""
    id: str
    name: str | None = None

    def __str__(self) -> str:
        return f"{self.id} - {self.name}" if self.name else self.id


@dataclass(frozen=True)
class IncompleteDLC:
    """A locally owned title missing one or more catalog DLC."""
    title_id: str
    name: str
    missing: tuple[MissingDLC, ...]


@dataclass(frozen=True)
class CompletionMetric:
    """Share of catalog titles present in the local library."""
    owned: int  # Local titles that exist in the catalog
    total: int  # Titles in the catalog
    local_titles: int  # All local titles, matched or not

    @property
    def percent(self) -> float:
        # An empty catalog has nothing left to complete
        if self.total == 0:
            return 100.0
        return self.owned / self.total * 100


class StageStatus(Enum):
    """Outcome of a single pipeline stage."""
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StageResult:
    """Outcome record for a pipeline stage."""
    name: str
    status: StageStatus
    detail: str | None = None


@dataclass
class MaintenanceResult:
    """Result of a maintenance operator run."""
    processed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    details: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class RunReport:
    """Everything a completed pipeline run produced."""
    completion: CompletionMetric
    stages: list[StageResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    missing_updates: list[IncompleteUpdate] | None = None  # None when the check did not run
    missing_dlc: list[IncompleteDLC] | None = None
    maintenance: dict[str, MaintenanceResult] = field(default_factory=dict)

    def stage(self, name: str) -> StageResult | None:
        for result in self.stages:
            if result.name == name:
                return result
        return None
