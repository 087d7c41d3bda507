"""Replication of the source group tree under the destination root group."""

from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from ..api.exceptions import GitLabAPIError, GitLabConflictError
from ..api.target import TargetGitLab
from ..models.group import (
    ROOT_GROUP_ID,
    GroupCreate,
    GroupMapping,
    MappedGroup,
    SourceGroup,
    TargetGroup,
)
from .results import MigrationResult, MigrationStatus, create_result

PersonalNamespaceCheck = Callable[[SourceGroup], bool]


def never_personal(group: SourceGroup) -> bool:
    """Default personal-namespace check: ``/groups`` only lists real groups."""
    return False


class GroupTreeReplicator:
    """Reproduces the source group hierarchy on the destination.

    Groups are visited parent first, depth first, from an explicit stack,
    so a group is only handled once its parent has a mapping entry. A group
    whose path relative to the source root equals the destination root is
    merged into the root instead of being nested under it.
    """

    def __init__(
        self,
        target: TargetGitLab,
        target_namespace: str,
        source_root_namespace: Optional[str] = None,
        is_personal_namespace: PersonalNamespaceCheck = never_personal,
    ):
        """Initialize group tree replicator.

        Args:
            target: Destination facade
            target_namespace: Full path of the destination root group
            source_root_namespace: Source prefix stripped from group paths,
                defaults to ``target_namespace``
            is_personal_namespace: Predicate for groups to leave out
        """
        self.target = target
        self.target_namespace = target_namespace.strip('/')
        self.source_root_namespace = (
            source_root_namespace or self.target_namespace
        ).strip('/')
        self.is_personal_namespace = is_personal_namespace
        self.logger = logger.bind(component='GroupTreeReplicator')

    def relative_path(self, full_path: str) -> str:
        """Strip the source root namespace prefix from a group path."""
        prefix = self.source_root_namespace + '/'
        if full_path.startswith(prefix):
            return full_path[len(prefix) :]
        return full_path

    def replicate(
        self, groups: Iterable[SourceGroup], mapping: GroupMapping
    ) -> List[MigrationResult]:
        """Create or reuse a destination group for every reachable source group.

        Args:
            groups: Flat list of source groups
            mapping: Mapping seeded with the destination root, filled in place

        Returns:
            One result per source group
        """
        groups = list(groups)
        children = self._index_by_parent(groups)
        visited = set()
        results: List[MigrationResult] = []

        stack = list(reversed(children.get(ROOT_GROUP_ID, [])))
        while stack:
            group = stack.pop()
            if group.id in visited:
                continue
            visited.add(group.id)

            result, descend = self._replicate_group(group, mapping)
            results.append(result)
            if descend:
                stack.extend(reversed(children.get(group.id, [])))

        for group in groups:
            if group.id in visited:
                continue
            visited.add(group.id)
            self.logger.warning(
                f'Group {group.full_path} is not reachable from a replicated '
                f'parent (parent ID: {group.parent_id}), skipping'
            )
            results.append(
                self._result(group, MigrationStatus.SKIPPED, reason='parent_not_mapped')
            )

        self.logger.info(
            f'Group replication finished: {len(mapping)} mapped groups, '
            f'{sum(1 for r in results if r.status == MigrationStatus.FAILED)} failed'
        )
        return results

    def _replicate_group(
        self, group: SourceGroup, mapping: GroupMapping
    ) -> Tuple[MigrationResult, bool]:
        """Handle one group whose parent has already been visited.

        Returns:
            The group's result and whether its children should be visited
        """
        if self.is_personal_namespace(group):
            self.logger.info(f'Skipping personal namespace: {group.full_path}')
            return (
                self._result(
                    group, MigrationStatus.SKIPPED, reason='personal_namespace'
                ),
                False,
            )

        parent = mapping.resolve(group.parent_id)
        if parent is None:
            self.logger.warning(
                f'Parent group not found for {group.full_path} '
                f'(parent ID: {group.parent_id}), skipping'
            )
            return (
                self._result(
                    group, MigrationStatus.SKIPPED, reason='parent_not_mapped'
                ),
                False,
            )

        if self.relative_path(group.full_path) == self.target_namespace:
            root = mapping.alias(group.id, ROOT_GROUP_ID)
            self.logger.info(
                f'Merging {group.full_path} into destination root '
                f'{root.target_full_path}'
            )
            return (
                self._result(
                    group,
                    MigrationStatus.COMPLETED,
                    destination_path=root.target_full_path,
                    action='merged_into_root',
                ),
                True,
            )

        resolved = self._create_or_reuse(group, parent)
        if resolved is None:
            return (
                self._result(
                    group,
                    MigrationStatus.FAILED,
                    error_message=f'Could not create or find group {group.full_path} '
                    f'under {parent.target_full_path}',
                ),
                False,
            )

        target_group, action = resolved
        mapped = mapping.add(group.id, MappedGroup.from_target(target_group))
        self.logger.info(
            f'{action.capitalize()} group: {mapped.target_full_path} '
            f'(ID: {mapped.target_group_id}) under parent ID {parent.target_group_id}'
        )
        return (
            self._result(
                group,
                MigrationStatus.COMPLETED,
                destination_path=mapped.target_full_path,
                action=action,
            ),
            True,
        )

    def _create_or_reuse(
        self, group: SourceGroup, parent: MappedGroup
    ) -> Optional[Tuple[TargetGroup, str]]:
        """Create the group under ``parent`` or fall back to the existing one.

        Returns:
            The destination group and ``'created'`` or ``'reused'``, or None
            if the group could neither be created nor found
        """
        try:
            created = self.target.create_group(
                GroupCreate.from_source(group, parent.target_group_id)
            )
            return created, 'created'
        except GitLabConflictError:
            self.logger.info(f'Group {group.full_path} already exists on destination')
        except GitLabAPIError as e:
            self.logger.warning(f'Failed to create group {group.full_path}: {e}')

        expected_path = f'{parent.target_full_path}/{group.path}'
        try:
            existing = self.target.get_group_by_path(expected_path)
        except GitLabAPIError as e:
            self.logger.error(
                f'Failed to get group {expected_path}: {e}. '
                f'Skipping {group.full_path} and its subgroups'
            )
            return None
        return existing, 'reused'

    @staticmethod
    def _index_by_parent(groups: List[SourceGroup]) -> Dict[int, List[SourceGroup]]:
        children: Dict[int, List[SourceGroup]] = defaultdict(list)
        for group in groups:
            children[group.parent_id].append(group)
        return children

    @staticmethod
    def _result(
        group: SourceGroup,
        status: MigrationStatus,
        destination_path: Optional[str] = None,
        error_message: Optional[str] = None,
        **metadata,
    ) -> MigrationResult:
        return create_result(
            'group',
            group.id,
            status,
            entity_path=group.full_path,
            destination_path=destination_path,
            error_message=error_message,
            metadata=metadata,
        )
