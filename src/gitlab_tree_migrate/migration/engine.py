"""Migration engine - main entry point for migration operations."""

from loguru import logger

from ..api.client import GitLabClientFactory
from ..api.exceptions import GitLabAPIError
from ..api.retry import RetryPolicy
from ..api.source import SourceGitLab
from ..api.target import TargetGitLab
from ..config.config import Config
from .exceptions import MigrationStartupError
from .orchestrator import MigrationOrchestrator
from .results import MigrationSummary


class MigrationEngine:
    """Builds the API clients and runs the orchestrator."""

    def __init__(self, config: Config):
        """Initialize migration engine.

        Args:
            config: Migration configuration

        Raises:
            MigrationStartupError: If either API client cannot be created
        """
        self.config = config
        self.logger = logger.bind(component='MigrationEngine')

        try:
            self.source_client = GitLabClientFactory.create_client(config.source)
        except GitLabAPIError as e:
            raise MigrationStartupError(f'Failed to create source client: {e}') from e
        try:
            self.destination_client = GitLabClientFactory.create_client(
                config.destination
            )
        except GitLabAPIError as e:
            self.source_client.close()
            raise MigrationStartupError(f'Failed to create target client: {e}') from e

        settings = config.migration
        self.source = SourceGitLab(self.source_client, per_page=settings.per_page)
        self.target = TargetGitLab(
            self.destination_client,
            retry_policy=RetryPolicy(
                max_retries=settings.import_max_retries,
                initial_delay=settings.import_initial_delay,
                multiplier=settings.import_backoff_multiplier,
            ),
        )
        self.orchestrator = MigrationOrchestrator(self.source, self.target, settings)

    def migrate(self) -> MigrationSummary:
        """Run the whole migration.

        Returns:
            Migration summary
        """
        self.logger.info(
            f'Starting GitLab migration: {self.config.source.url} -> '
            f'{self.config.destination.url}/{self.config.migration.target_namespace}'
        )

        try:
            self.test_connectivity()
            return self.orchestrator.execute_migration()
        except Exception as e:
            self.logger.error(f'Migration failed: {e}')
            raise
        finally:
            self.close()

    def test_connectivity(self) -> None:
        """Test connectivity to both GitLab instances.

        Raises:
            MigrationStartupError: If either instance is unreachable
        """
        self.logger.info('Testing connectivity to GitLab instances')

        if not self.source_client.test_connection():
            raise MigrationStartupError('Cannot connect to source GitLab instance')

        if not self.destination_client.test_connection():
            raise MigrationStartupError('Cannot connect to destination GitLab instance')

        self.logger.info('Connectivity tests passed')

    def close(self) -> None:
        self.source_client.close()
        self.destination_client.close()
