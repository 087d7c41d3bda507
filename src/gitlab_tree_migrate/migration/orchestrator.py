"""Migration orchestrator: group tree first, then projects group by group."""

from datetime import datetime
from typing import List, Optional

from loguru import logger

from ..api.exceptions import GitLabAPIError
from ..api.source import SourceGitLab
from ..api.target import TargetGitLab
from ..config.config import MigrationConfig
from ..models.group import GroupMapping, SourceGroup
from .exceptions import MigrationStartupError
from .project import ProjectMigrator
from .replicator import GroupTreeReplicator, PersonalNamespaceCheck, never_personal
from .results import MigrationResult, MigrationStatus, MigrationSummary, create_result


class MigrationOrchestrator:
    """Runs a migration between two already connected GitLab instances."""

    def __init__(
        self,
        source: SourceGitLab,
        target: TargetGitLab,
        config: MigrationConfig,
        replicator: Optional[GroupTreeReplicator] = None,
        migrator: Optional[ProjectMigrator] = None,
        is_personal_namespace: PersonalNamespaceCheck = never_personal,
    ):
        """Initialize migration orchestrator.

        Args:
            source: Source facade
            target: Destination facade
            config: Migration settings
            replicator: Group tree replicator, built from ``config`` if omitted
            migrator: Project migrator, built from ``config`` if omitted
            is_personal_namespace: Predicate for groups to leave out
        """
        self.source = source
        self.target = target
        self.config = config
        self.is_personal_namespace = is_personal_namespace
        self.replicator = replicator or GroupTreeReplicator(
            target,
            target_namespace=config.target_namespace,
            source_root_namespace=config.source_root,
            is_personal_namespace=is_personal_namespace,
        )
        self.migrator = migrator or ProjectMigrator(
            source,
            target,
            poll_interval=config.export_poll_interval,
            export_timeout=config.export_timeout,
            temp_dir=config.temp_dir,
        )
        self.logger = logger.bind(component='MigrationOrchestrator')

    def execute_migration(self) -> MigrationSummary:
        """Replicate the group tree, then migrate every mapped project.

        Returns:
            Migration summary with results

        Raises:
            MigrationStartupError: If the destination root group or the
                source group list cannot be obtained
        """
        self.logger.info('Starting migration execution')
        started_at = datetime.now()

        mapping = self.prepare_mapping()
        groups = self.load_source_groups()

        all_results = self.replicator.replicate(groups, mapping)
        all_results.extend(self.migrate_projects(groups, mapping))

        summary = MigrationSummary(
            started_at=started_at,
            completed_at=datetime.now(),
            all_results=all_results,
        )
        self.logger.info(
            f'Migration completed: {summary.successful_migrations} successful, '
            f'{summary.failed_migrations} failed, {summary.skipped_migrations} skipped'
        )
        return summary

    def prepare_mapping(self) -> GroupMapping:
        """Get or create the destination root group and seed the mapping with it."""
        namespace = self.config.target_namespace
        try:
            root = self.target.create_or_get_group(namespace)
        except GitLabAPIError as e:
            raise MigrationStartupError(
                f'Failed to create/get target group {namespace}: {e}'
            ) from e

        self.logger.info(
            f'Target group created/retrieved: {root.full_path} (ID: {root.id})'
        )
        return GroupMapping.seeded(root)

    def load_source_groups(self) -> List[SourceGroup]:
        try:
            return self.source.list_groups()
        except GitLabAPIError as e:
            raise MigrationStartupError(f'Failed to get source groups: {e}') from e

    def migrate_projects(
        self, groups: List[SourceGroup], mapping: GroupMapping
    ) -> List[MigrationResult]:
        """Migrate the projects of every mapped source group, one at a time.

        A project is only imported into the destination group its own source
        group is mapped to. Per-project failures are recorded and the loop
        moves on.
        """
        results: List[MigrationResult] = []
        seen = set()

        for group in groups:
            if group.id in seen or self.is_personal_namespace(group):
                continue
            seen.add(group.id)

            destination = mapping.resolve(group.id)
            if destination is None:
                self.logger.debug(f'Group {group.full_path} is not mapped, skipping')
                continue

            try:
                projects = self.source.list_group_projects(group.id)
            except GitLabAPIError as e:
                self.logger.error(
                    f'Failed to get projects for group {group.full_path}: {e}'
                )
                results.append(
                    create_result(
                        'group_projects',
                        group.id,
                        MigrationStatus.FAILED,
                        entity_path=group.full_path,
                        error_message=str(e),
                    )
                )
                continue

            for project in projects:
                if project.group_id is not None and project.group_id != group.id:
                    self.logger.warning(
                        f'Project {project.path_with_namespace} belongs to group '
                        f'{project.group_id}, not {group.full_path}; skipping'
                    )
                    results.append(
                        create_result(
                            'project',
                            project.id,
                            MigrationStatus.SKIPPED,
                            entity_path=project.path_with_namespace,
                            metadata={'reason': 'namespace_mismatch'},
                        )
                    )
                    continue

                results.append(self._migrate_project(project, destination))

        return results

    def _migrate_project(self, project, destination) -> MigrationResult:
        try:
            return self.migrator.migrate(project, destination)
        except Exception as e:
            self.logger.exception(
                f'Unexpected error migrating project {project.path_with_namespace}'
            )
            return create_result(
                'project',
                project.id,
                MigrationStatus.FAILED,
                entity_path=project.path_with_namespace,
                error_message=f'Unexpected error: {e}',
            )
