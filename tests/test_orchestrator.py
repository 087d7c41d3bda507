"""End-to-end tests for the migration orchestrator."""

from unittest.mock import Mock

import pytest

from src.gitlab_tree_migrate.api.exceptions import GitLabAPIError
from src.gitlab_tree_migrate.api.retry import RetryPolicy
from src.gitlab_tree_migrate.config.config import MigrationConfig
from src.gitlab_tree_migrate.migration.exceptions import MigrationStartupError
from src.gitlab_tree_migrate.migration.orchestrator import MigrationOrchestrator
from src.gitlab_tree_migrate.migration.project import ProjectMigrator

from tests.fakes import (
    FakeSource,
    FakeTarget,
    make_response,
    source_group,
    source_project,
)


class TestMigrationOrchestrator:
    """Test the group-then-project migration flow."""

    def setup_method(self):
        """Set up test fixtures."""
        self.group_a = source_group(1, 'a')
        self.group_b = source_group(2, 'a/b', parent_id=1)
        self.source = FakeSource([self.group_a, self.group_b])
        self.target = FakeTarget(existing=['ramooz'])
        self.sleeps = []
        self.config = MigrationConfig(target_namespace='ramooz')

    def _orchestrator(self, **kwargs):
        migrator = ProjectMigrator(self.source, self.target, sleep=self.sleeps.append)
        return MigrationOrchestrator(
            self.source, self.target, self.config, migrator=migrator, **kwargs
        )

    def test_end_to_end_with_rate_limited_import(self):
        """Test root -> A -> B with a project in B and a 429 then 200 import."""
        self.source.projects[2] = [source_project(10, self.group_b, 'service')]
        self.source.export_statuses[10] = ['started', 'finished']
        self.target.retry_policy = RetryPolicy(sleep=self.sleeps.append)
        self.target.import_responses = [make_response(429), make_response(201)]

        summary = self._orchestrator().execute_migration()

        root_id = self.target.groups['ramooz'].id
        assert self.target.groups['ramooz/a'].parent_id == root_id
        assert self.target.groups['ramooz/a/b'].parent_id == (
            self.target.groups['ramooz/a'].id
        )

        assert len(self.target.imports) == 1
        assert self.target.imports[0]['namespace'] == 'ramooz/a/b'
        # one export poll wait, then a single 10s backoff
        assert self.sleeps == [1.0, 10.0]
        assert self.target.import_responses == []

        assert summary.failed_migrations == 0
        assert summary.results_by_type['group'] == {
            'total': 2,
            'successful': 2,
            'failed': 0,
            'skipped': 0,
        }
        assert summary.results_by_type['project']['successful'] == 1

    def test_root_alias_projects_go_to_root(self):
        """Test a source group named like the root merges and keeps its projects."""
        root_alias = source_group(5, 'ramooz')
        child = source_group(6, 'ramooz/team', parent_id=5)
        self.source.groups = [root_alias, child]
        self.source.projects[5] = [source_project(20, root_alias, 'top')]
        self.source.projects[6] = [source_project(21, child, 'svc')]

        summary = self._orchestrator().execute_migration()

        assert [g.path for g in self.target.created] == ['team']
        namespaces = {i['path']: i['namespace'] for i in self.target.imports}
        assert namespaces == {'top': 'ramooz', 'svc': 'ramooz/team'}
        assert summary.failed_migrations == 0

    def test_unmapped_group_projects_are_never_imported(self):
        """Test projects of a group without mapping entry are not submitted."""
        self.target.fail_create.add('ramooz/a')
        self.source.projects[1] = [source_project(10, self.group_a, 'one')]
        self.source.projects[2] = [source_project(11, self.group_b, 'two')]

        summary = self._orchestrator().execute_migration()

        assert self.target.imports == []
        assert self.source.scheduled == []
        assert self.source.listed_groups == []
        assert summary.results_by_type['group']['failed'] == 1
        assert summary.results_by_type['group']['skipped'] == 1

    def test_project_failure_does_not_stop_others(self):
        """Test the loop continues after a failed project."""
        self.source.projects[1] = [
            source_project(10, self.group_a, 'broken'),
            source_project(11, self.group_a, 'fine'),
        ]
        self.source.export_statuses[10] = ['failed']

        summary = self._orchestrator().execute_migration()

        assert [i['path'] for i in self.target.imports] == ['fine']
        assert summary.results_by_type['project'] == {
            'total': 2,
            'successful': 1,
            'failed': 1,
            'skipped': 0,
        }
        assert summary.failures()[0].entity_path == 'a/broken'

    def test_unexpected_project_error_is_contained(self):
        """Test an unexpected exception in one project is recorded, not raised."""
        self.source.projects[1] = [source_project(10, self.group_a, 'one')]
        migrator = Mock()
        migrator.migrate.side_effect = RuntimeError('disk full')
        orchestrator = MigrationOrchestrator(
            self.source, self.target, self.config, migrator=migrator
        )

        summary = orchestrator.execute_migration()

        assert summary.failed_migrations == 1
        assert 'disk full' in summary.failures()[0].error_message

    def test_listing_projects_failure_is_per_group(self):
        """Test a failed project listing only affects its own group."""
        self.source.fail_list_projects.add(1)
        self.source.projects[2] = [source_project(11, self.group_b, 'two')]

        summary = self._orchestrator().execute_migration()

        assert [i['path'] for i in self.target.imports] == ['two']
        assert summary.results_by_type['group_projects']['failed'] == 1

    def test_personal_namespace_projects_are_skipped(self):
        """Test projects in personal namespaces are not migrated."""
        self.source.projects[1] = [source_project(10, self.group_a, 'one')]

        self._orchestrator(
            is_personal_namespace=lambda group: group.path == 'a'
        ).execute_migration()

        assert self.target.imports == []
        assert 1 not in self.source.listed_groups

    def test_projects_migrate_after_all_groups(self):
        """Test every group exists before the first project is exported."""
        self.source.projects[1] = [source_project(10, self.group_a, 'one')]
        groups_at_export = []
        original = self.source.schedule_export

        def schedule(project_id):
            groups_at_export.append(set(self.target.groups))
            original(project_id)

        self.source.schedule_export = schedule

        self._orchestrator().execute_migration()

        assert groups_at_export == [{'ramooz', 'ramooz/a', 'ramooz/a/b'}]

    def test_root_group_failure_is_fatal(self):
        """Test failing to get or create the root group aborts the run."""
        self.target.create_or_get_group = Mock(
            side_effect=GitLabAPIError('API request failed: forbidden')
        )

        with pytest.raises(MigrationStartupError):
            self._orchestrator().execute_migration()

        assert self.target.created == []

    def test_source_group_listing_failure_is_fatal(self):
        """Test failing to enumerate source groups aborts the run."""
        self.source.list_groups = Mock(side_effect=GitLabAPIError('Network error'))

        with pytest.raises(MigrationStartupError):
            self._orchestrator().execute_migration()

        assert self.target.created == []
