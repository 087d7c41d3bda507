"""Export/import pipeline that moves one project to its destination group."""

import os
import tempfile
import time
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Optional

from loguru import logger

from ..api.exceptions import GitLabAPIError
from ..api.source import SourceGitLab
from ..api.target import TargetGitLab
from ..models.group import MappedGroup, TargetGroup
from ..models.project import ExportJob, SourceProject
from .exceptions import (
    ExportFailedError,
    ExportTimeoutError,
    ImportFailedError,
    ProjectMigrationError,
)
from .results import MigrationResult, MigrationStatus, create_result


class PipelineStage(str, Enum):
    """Stages a project goes through on its way to the destination."""

    REQUESTED = 'requested'
    EXPORT_SCHEDULED = 'export_scheduled'
    EXPORT_FINISHED = 'export_finished'
    DOWNLOADED = 'downloaded'
    UPLOADING = 'uploading'
    IMPORTED = 'imported'
    FAILED = 'failed'


class ProjectMigrator:
    """Moves a project with export, download, upload and import."""

    def __init__(
        self,
        source: SourceGitLab,
        target: TargetGitLab,
        poll_interval: float = 1.0,
        export_timeout: float = 3600.0,
        temp_dir: Optional[str] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """Initialize project migrator.

        Args:
            source: Source facade
            target: Destination facade
            poll_interval: Seconds between export status checks
            export_timeout: Seconds of polling after which an export is abandoned
            temp_dir: Directory for the downloaded archive
            sleep: Blocking sleep function, ``time.sleep`` by default
        """
        self.source = source
        self.target = target
        self.poll_interval = poll_interval
        self.export_timeout = export_timeout
        self.temp_dir = temp_dir
        self.sleep = sleep or time.sleep
        self.logger = logger.bind(component='ProjectMigrator')

    def migrate(
        self, project: SourceProject, destination: MappedGroup
    ) -> MigrationResult:
        """Migrate one project, reporting failures as a result.

        Args:
            project: Source project
            destination: Mapping entry of the project's source group

        Returns:
            Completed or failed migration result
        """
        try:
            namespace = self.import_project(project, destination.target_group_id)
        except ProjectMigrationError as e:
            self.logger.error(
                f'Failed to import project {project.path_with_namespace}: {e}'
            )
            return create_result(
                'project',
                project.id,
                MigrationStatus.FAILED,
                entity_path=project.path_with_namespace,
                error_message=str(e),
                metadata={'stage': PipelineStage(e.stage).value if e.stage else None},
            )

        self.logger.info(
            f'Successfully imported project: {project.name} to group {namespace}'
        )
        return create_result(
            'project',
            project.id,
            MigrationStatus.COMPLETED,
            entity_path=project.path_with_namespace,
            destination_path=f'{namespace}/{project.path}',
            metadata={'stage': PipelineStage.IMPORTED.value},
        )

    def import_project(self, project: SourceProject, target_group_id: int) -> str:
        """Run the whole pipeline for one project.

        Args:
            project: Source project
            target_group_id: Destination group ID

        Returns:
            Full path of the destination namespace

        Raises:
            ProjectMigrationError: If any stage fails
        """
        stage = PipelineStage.REQUESTED
        self.logger.info(f'Migrating project {project.path_with_namespace}')

        try:
            target_group = self.target.get_group(target_group_id)
        except GitLabAPIError as e:
            raise ProjectMigrationError(
                f'target namespace {target_group_id} is not a valid group: {e}',
                stage=stage,
            )

        try:
            self.source.schedule_export(project.id)
        except GitLabAPIError as e:
            raise ExportFailedError(f'failed to schedule export: {e}', stage=stage)
        stage = self._advance(project, PipelineStage.EXPORT_SCHEDULED)

        self.wait_for_export(project)
        stage = self._advance(project, PipelineStage.EXPORT_FINISHED)

        try:
            with self.archive_file() as archive:
                self._download(project, archive, stage)
                stage = self._advance(project, PipelineStage.DOWNLOADED)

                stage = self._advance(project, PipelineStage.UPLOADING)
                self._upload(project, target_group, archive)
        except OSError as e:
            raise ProjectMigrationError(
                f'failed to stage export archive: {e}', stage=stage
            )

        self._advance(project, PipelineStage.IMPORTED)
        return target_group.full_path

    def wait_for_export(self, project: SourceProject) -> ExportJob:
        """Poll the export status until it is finished.

        Raises:
            ExportFailedError: On a status check error or a failed export
            ExportTimeoutError: If the export is not finished in time
        """
        job = ExportJob(project_id=project.id)
        waited = 0.0

        while True:
            try:
                job.status = self.source.get_export_status(project.id)
            except GitLabAPIError as e:
                raise ExportFailedError(
                    f'failed to check export status: {e}',
                    stage=PipelineStage.EXPORT_SCHEDULED,
                )

            if job.finished:
                return job
            if job.failed:
                raise ExportFailedError(
                    f'export of {project.path_with_namespace} failed on the source',
                    stage=PipelineStage.EXPORT_SCHEDULED,
                )
            if waited >= self.export_timeout:
                raise ExportTimeoutError(
                    f'export of {project.path_with_namespace} not finished after '
                    f'{self.export_timeout:g}s (status: {job.status})',
                    stage=PipelineStage.EXPORT_SCHEDULED,
                )

            self.logger.debug(
                f'Export of {project.path_with_namespace} is {job.status}, '
                f'checking again in {self.poll_interval:g}s'
            )
            self.sleep(self.poll_interval)
            waited += self.poll_interval

    @contextmanager
    def archive_file(self) -> Iterator[Path]:
        """Reserve an empty temporary archive file that is removed on exit."""
        fd, name = tempfile.mkstemp(
            prefix='gitlab-export-', suffix='.tar.gz', dir=self.temp_dir
        )
        os.close(fd)
        path = Path(name)
        try:
            yield path
        finally:
            path.unlink(missing_ok=True)
            self.logger.debug(f'Removed temporary archive {path}')

    def _download(
        self, project: SourceProject, archive: Path, stage: PipelineStage
    ) -> None:
        """Stream the export archive of ``project`` into ``archive``."""
        try:
            with open(archive, 'wb') as fh:
                size = self.source.download_export(project.id, fh)
        except GitLabAPIError as e:
            raise ExportFailedError(
                f'failed to download export archive: {e}', stage=stage
            )
        self.logger.debug(
            f'Downloaded export of {project.path_with_namespace} ({size} bytes)'
        )

    def _upload(
        self, project: SourceProject, target_group: TargetGroup, archive: Path
    ) -> None:
        """Submit the import request and check its response."""
        try:
            response = self.target.import_project(
                name=project.name,
                path=project.path,
                namespace=target_group.full_path,
                archive=archive,
            )
        except GitLabAPIError as e:
            raise ImportFailedError(
                f'failed to perform import request: {e}',
                stage=PipelineStage.UPLOADING,
                status_code=e.status_code,
            )

        if response.status_code >= 300:
            raise ImportFailedError(
                f'import failed: {response.text}',
                stage=PipelineStage.UPLOADING,
                status_code=response.status_code,
                response_text=response.text,
            )

    def _advance(self, project: SourceProject, stage: PipelineStage) -> PipelineStage:
        self.logger.debug(f'{project.path_with_namespace}: {stage.value}')
        return stage
