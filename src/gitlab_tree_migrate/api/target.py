"""Write side of the migration: groups and project imports on the destination."""

from pathlib import Path
from typing import Optional, Union

import requests
from loguru import logger

from ..models.group import GroupCreate, TargetGroup
from .client import GitLabClient, encode_path
from .exceptions import GitLabAPIError, GitLabNotFoundError
from .retry import RetryPolicy


class TargetGitLab:
    """Operations the migration needs from the destination instance."""

    def __init__(
        self, client: GitLabClient, retry_policy: Optional[RetryPolicy] = None
    ):
        """Initialize the destination facade.

        Args:
            client: Destination API client
            retry_policy: Backoff applied to the import request
        """
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = logger.bind(component='TargetGitLab')

    def get_group(self, path_or_id: Union[int, str]) -> TargetGroup:
        """Fetch a group by numeric ID or full path.

        Raises:
            GitLabNotFoundError: If the group does not exist
        """
        response = self.client.get(f'/groups/{encode_path(path_or_id)}')
        return TargetGroup(**response.data)

    def get_group_by_path(self, full_path: str) -> TargetGroup:
        return self.get_group(full_path.strip('/'))

    def create_group(self, group: GroupCreate) -> TargetGroup:
        """Create a group.

        Raises:
            GitLabConflictError: If the path is already taken under the parent
            GitLabAPIError: For any other failure
        """
        response = self.client.post('/groups', data=group.dict(exclude_none=True))
        return TargetGroup(**response.data)

    def create_or_get_group(self, full_path: str) -> TargetGroup:
        """Return the group at ``full_path``, creating it if missing.

        A missing group is created private, under the group of its parent
        path when the path is nested. The parent must already exist.
        """
        full_path = full_path.strip('/')
        try:
            return self.get_group_by_path(full_path)
        except GitLabNotFoundError:
            self.logger.info(f'Group {full_path} not found on destination, creating it')

        parent_path, _, name = full_path.rpartition('/')
        create = GroupCreate(name=name, path=name, visibility='private')

        if parent_path:
            try:
                parent = self.get_group_by_path(parent_path)
            except GitLabAPIError as e:
                raise GitLabAPIError(
                    f'Failed to get parent group {parent_path}: {e}',
                    status_code=e.status_code,
                )
            create.parent_id = parent.id

        return self.create_group(create)

    def import_project(
        self, name: str, path: str, namespace: str, archive: Path
    ) -> requests.Response:
        """Upload an export archive to ``/projects/import``.

        The request goes through the retry policy, so HTTP 429 answers are
        retried with backoff. The returned response may still be an error;
        checking its status is up to the caller.

        Args:
            name: Name of the new project
            path: Path of the new project
            namespace: Full path of the destination group
            archive: Export archive on local disk

        Raises:
            GitLabAPIError: On a transport error
            GitLabRateLimitExhaustedError: If every attempt was rate limited
        """
        self.logger.debug(
            f'Uploading {archive.name} ({archive.stat().st_size} bytes) '
            f'as {namespace}/{path}'
        )
        with open(archive, 'rb') as fh:
            request = requests.Request(
                'POST',
                self.client.build_url('/projects/import'),
                data={'name': name, 'path': path, 'namespace': namespace},
                files={'file': (archive.name, fh, 'application/gzip')},
            )
            prepared = self.client.prepare(request)

        return self.retry_policy.execute(self.client.send, prepared)
