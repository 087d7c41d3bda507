"""Group tree replication and project export/import."""

from .engine import MigrationEngine
from .exceptions import (
    ExportFailedError,
    ExportTimeoutError,
    ImportFailedError,
    MigrationError,
    MigrationStartupError,
    ProjectMigrationError,
)
from .orchestrator import MigrationOrchestrator
from .project import PipelineStage, ProjectMigrator
from .replicator import GroupTreeReplicator, never_personal
from .results import MigrationResult, MigrationStatus, MigrationSummary

__all__ = [
    'MigrationEngine',
    'MigrationOrchestrator',
    'GroupTreeReplicator',
    'ProjectMigrator',
    'PipelineStage',
    'never_personal',
    'MigrationResult',
    'MigrationStatus',
    'MigrationSummary',
    'MigrationError',
    'MigrationStartupError',
    'ProjectMigrationError',
    'ExportFailedError',
    'ExportTimeoutError',
    'ImportFailedError',
]
