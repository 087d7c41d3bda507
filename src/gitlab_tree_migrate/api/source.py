"""Read side of the migration: groups, projects and exports on the source."""

from typing import BinaryIO, List, Union

from loguru import logger

from ..models.group import SourceGroup
from ..models.project import ExportStatus, SourceProject
from .client import GitLabClient, encode_path


class SourceGitLab:
    """Operations the migration needs from the source instance."""

    def __init__(self, client: GitLabClient, per_page: int = 100):
        self.client = client
        self.per_page = per_page
        self.logger = logger.bind(component='SourceGitLab')

    def list_groups(self) -> List[SourceGroup]:
        """List every group visible to the source token, all pages."""
        items = self.client.get_paginated(
            '/groups', params={'all_available': 'false'}, per_page=self.per_page
        )
        groups = [SourceGroup(**item) for item in items]
        self.logger.info(f'Found {len(groups)} source groups')
        return groups

    def get_group(self, path_or_id: Union[int, str]) -> SourceGroup:
        response = self.client.get(f'/groups/{encode_path(path_or_id)}')
        return SourceGroup(**response.data)

    def list_group_projects(self, group_id: int) -> List[SourceProject]:
        """List projects directly owned by a group, subgroups excluded."""
        items = self.client.get_paginated(
            f'/groups/{group_id}/projects',
            params={'include_subgroups': 'false'},
            per_page=self.per_page,
        )
        return [SourceProject(**item) for item in items]

    def schedule_export(self, project_id: int) -> None:
        """Ask the source to start building an export archive."""
        self.client.post(f'/projects/{project_id}/export')

    def get_export_status(self, project_id: int) -> str:
        response = self.client.get(f'/projects/{project_id}/export')
        data = response.data or {}
        return data.get('export_status', ExportStatus.NONE)

    def download_export(self, project_id: int, fh: BinaryIO) -> int:
        """Stream the finished export archive into ``fh``.

        Returns:
            Size of the archive in bytes
        """
        return self.client.download(f'/projects/{project_id}/export/download', fh)
