"""Per-entity migration results and the run summary."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MigrationStatus(str, Enum):
    """Migration status enumeration."""

    COMPLETED = 'completed'
    FAILED = 'failed'
    SKIPPED = 'skipped'


class MigrationResult(BaseModel):
    """Result of migrating one group or project."""

    entity_type: str = Field(..., description='Type of entity migrated')
    entity_id: str = Field(..., description='Source ID of the entity')
    entity_path: Optional[str] = Field(
        default=None, description='Source full path of the entity'
    )
    status: MigrationStatus = Field(..., description='Migration status')

    completed_at: datetime = Field(
        default_factory=datetime.now, description='When the result was recorded'
    )

    destination_path: Optional[str] = Field(
        default=None, description='Destination full path'
    )
    error_message: Optional[str] = Field(
        default=None, description='Error message if failed'
    )

    metadata: Dict[str, Any] = Field(
        default_factory=dict, description='Additional metadata'
    )

    @property
    def success(self) -> bool:
        return self.status != MigrationStatus.FAILED

    class Config:
        """Pydantic configuration."""

        json_encoders = {datetime: lambda v: v.isoformat() if v else None}


def create_result(
    entity_type: str,
    entity_id: Any,
    status: MigrationStatus,
    **kwargs,
) -> MigrationResult:
    """Create a migration result.

    Args:
        entity_type: Type of entity ('group' or 'project')
        entity_id: Source entity ID
        status: Migration status
        **kwargs: Additional fields for the result

    Returns:
        Migration result
    """
    return MigrationResult(
        entity_type=entity_type, entity_id=str(entity_id), status=status, **kwargs
    )


class MigrationSummary(BaseModel):
    """Summary of migration results."""

    started_at: datetime = Field(..., description='Migration start time')
    completed_at: Optional[datetime] = Field(
        default=None, description='Migration completion time'
    )
    all_results: List[MigrationResult] = Field(
        default_factory=list, description='All migration results'
    )

    @property
    def total_entities(self) -> int:
        return len(self.all_results)

    @property
    def successful_migrations(self) -> int:
        return self._count(MigrationStatus.COMPLETED)

    @property
    def failed_migrations(self) -> int:
        return self._count(MigrationStatus.FAILED)

    @property
    def skipped_migrations(self) -> int:
        return self._count(MigrationStatus.SKIPPED)

    @property
    def results_by_type(self) -> Dict[str, Dict[str, int]]:
        """Counts per entity type and status."""
        summary: Dict[str, Dict[str, int]] = {}
        for result in self.all_results:
            counts = summary.setdefault(
                result.entity_type,
                {'total': 0, 'successful': 0, 'failed': 0, 'skipped': 0},
            )
            counts['total'] += 1
            if result.status == MigrationStatus.COMPLETED:
                counts['successful'] += 1
            elif result.status == MigrationStatus.FAILED:
                counts['failed'] += 1
            else:
                counts['skipped'] += 1
        return summary

    def failures(self) -> List[MigrationResult]:
        return [r for r in self.all_results if r.status == MigrationStatus.FAILED]

    def _count(self, status: MigrationStatus) -> int:
        return sum(1 for r in self.all_results if r.status == status)

    class Config:
        """Pydantic configuration."""

        json_encoders = {datetime: lambda v: v.isoformat() if v else None}
