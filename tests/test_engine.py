"""Tests for the migration engine wiring."""

from unittest.mock import Mock, patch

import pytest

from src.gitlab_tree_migrate.config.config import Config
from src.gitlab_tree_migrate.migration.engine import MigrationEngine
from src.gitlab_tree_migrate.migration.exceptions import MigrationStartupError


class TestMigrationEngine:
    """Test client construction, connectivity checks and cleanup."""

    def setup_method(self):
        """Set up test fixtures."""
        self.config = Config(
            source={'url': 'https://source.gitlab.com', 'token': 'source-token'},
            destination={'url': 'https://dest.gitlab.com', 'token': 'dest-token'},
            migration={
                'target_namespace': 'ramooz',
                'import_max_retries': 3,
                'import_initial_delay': 2.0,
            },
        )
        self.source_client = Mock()
        self.destination_client = Mock()

    def _engine(self):
        with patch(
            'src.gitlab_tree_migrate.migration.engine.GitLabClientFactory.create_client',
            side_effect=[self.source_client, self.destination_client],
        ):
            return MigrationEngine(self.config)

    def test_retry_policy_from_config(self):
        """Test the import backoff follows the migration settings."""
        engine = self._engine()

        policy = engine.target.retry_policy
        assert policy.max_retries == 3
        assert policy.initial_delay == 2.0
        assert policy.multiplier == 2.0
        assert engine.orchestrator.replicator.target_namespace == 'ramooz'

    def test_unreachable_destination(self):
        """Test a failed connectivity check is a startup error."""
        self.source_client.test_connection.return_value = True
        self.destination_client.test_connection.return_value = False
        engine = self._engine()

        with pytest.raises(MigrationStartupError):
            engine.test_connectivity()

    def test_migrate_closes_clients(self):
        """Test the clients are closed after a failed run."""
        self.source_client.test_connection.return_value = False
        engine = self._engine()
        engine.orchestrator = Mock()

        with pytest.raises(MigrationStartupError):
            engine.migrate()

        engine.orchestrator.execute_migration.assert_not_called()
        self.source_client.close.assert_called_once()
        self.destination_client.close.assert_called_once()

    def test_migrate_returns_summary(self):
        """Test a successful run returns the orchestrator summary."""
        self.source_client.test_connection.return_value = True
        self.destination_client.test_connection.return_value = True
        engine = self._engine()
        engine.orchestrator = Mock()

        summary = engine.migrate()

        assert summary is engine.orchestrator.execute_migration.return_value
        self.destination_client.close.assert_called_once()
