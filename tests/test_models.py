"""Tests for group and project models."""

import pytest

from src.gitlab_tree_migrate.models.group import (
    ROOT_GROUP_ID,
    GroupCreate,
    GroupMapping,
    MappedGroup,
    SourceGroup,
    TargetGroup,
)
from src.gitlab_tree_migrate.models.project import SourceProject


class TestSourceGroup:
    """Test source group parsing."""

    def test_null_parent_is_root(self):
        """Test top-level groups get parent 0."""
        group = SourceGroup(
            id=1, parent_id=None, full_path='a', name='A', path='a', description=None
        )

        assert group.parent_id == ROOT_GROUP_ID
        assert group.description == ''
        assert group.visibility == 'private'

    def test_invalid_visibility(self):
        """Test unknown visibility levels are rejected."""
        with pytest.raises(ValueError):
            SourceGroup(id=1, full_path='a', name='A', path='a', visibility='secret')

    def test_create_payload_from_source(self):
        """Test the create payload copies the group attributes."""
        group = SourceGroup(
            id=3,
            parent_id=1,
            full_path='a/b',
            name='B',
            path='b',
            description='team b',
            visibility='internal',
        )

        create = GroupCreate.from_source(group, parent_id=42)

        assert create.dict() == {
            'name': 'B',
            'path': 'b',
            'description': 'team b',
            'visibility': 'internal',
            'parent_id': 42,
        }


class TestSourceProject:
    """Test source project parsing."""

    def test_group_taken_from_namespace(self):
        """Test the owning group ID comes from the namespace object."""
        project = SourceProject(
            id=10,
            name='Service',
            path='service',
            path_with_namespace='a/service',
            namespace={'id': 1, 'kind': 'group', 'full_path': 'a'},
        )

        assert project.group_id == 1


class TestGroupMapping:
    """Test the source to destination group mapping."""

    def setup_method(self):
        """Set up test fixtures."""
        self.mapping = GroupMapping.seeded(
            TargetGroup(id=100, full_path='ramooz', name='ramooz', path='ramooz')
        )

    def test_seeded_with_root(self):
        """Test the root entry is present from the start."""
        assert self.mapping.root == MappedGroup(
            target_group_id=100, target_full_path='ramooz'
        )
        assert ROOT_GROUP_ID in self.mapping
        assert len(self.mapping) == 1

    def test_add_is_write_once(self):
        """Test a second add keeps the first entry."""
        first = MappedGroup(target_group_id=101, target_full_path='ramooz/a')
        second = MappedGroup(target_group_id=999, target_full_path='ramooz/other')

        assert self.mapping.add(1, first) == first
        assert self.mapping.add(1, second) == first
        assert self.mapping.resolve(1) == first
        assert len(self.mapping) == 2

    def test_alias_resolves_to_root_without_entry(self):
        """Test an alias resolves to the root but adds no entry."""
        resolved = self.mapping.alias(5)

        assert resolved == self.mapping.root
        assert self.mapping.is_alias(5)
        assert 5 in self.mapping
        assert set(self.mapping.entries()) == {ROOT_GROUP_ID}
        assert dict(self.mapping.items()) == {
            ROOT_GROUP_ID: self.mapping.root,
            5: self.mapping.root,
        }

    def test_alias_cannot_replace_entry(self):
        """Test an existing entry is not turned into an alias."""
        entry = MappedGroup(target_group_id=101, target_full_path='ramooz/a')
        self.mapping.add(1, entry)

        assert self.mapping.alias(1) == entry
        assert not self.mapping.is_alias(1)

    def test_alias_to_unmapped_group(self):
        """Test aliasing to a missing entry is an error."""
        with pytest.raises(KeyError):
            self.mapping.alias(5, to=77)

    def test_unknown_group_resolves_to_none(self):
        """Test unknown IDs are not resolvable."""
        assert self.mapping.resolve(42) is None
        assert 42 not in self.mapping
