"""Group entity models and the source-to-target group mapping."""

from typing import Dict, Iterator, Optional, Tuple
from pydantic import BaseModel, Field, validator

from loguru import logger

ROOT_GROUP_ID = 0

VALID_VISIBILITY = ['private', 'internal', 'public']


class SourceGroup(BaseModel):
    """Group as read from the source instance."""

    id: int = Field(..., description='Group ID')
    parent_id: int = Field(
        default=ROOT_GROUP_ID, description='Parent group ID (0 for top-level)'
    )
    full_path: str = Field(..., description='Full group path with parents')
    name: str = Field(..., description='Group name')
    path: str = Field(..., description='Group path')
    description: Optional[str] = Field(default='', description='Group description')
    visibility: str = Field(default='private', description='Group visibility')

    @validator('parent_id', pre=True, always=True)
    def normalize_parent_id(cls, v):
        """GitLab reports top-level groups with a null parent."""
        return ROOT_GROUP_ID if v is None else v

    @validator('description', pre=True, always=True)
    def normalize_description(cls, v):
        return v or ''

    @validator('visibility')
    def validate_visibility(cls, v):
        """Validate group visibility."""
        if v not in VALID_VISIBILITY:
            raise ValueError(f'Visibility must be one of: {VALID_VISIBILITY}')
        return v

    class Config:
        """Pydantic configuration."""

        frozen = True
        extra = 'ignore'


class TargetGroup(BaseModel):
    """Group as returned by the destination instance."""

    id: int = Field(..., description='Group ID')
    full_path: str = Field(..., description='Full group path with parents')
    name: Optional[str] = Field(default=None, description='Group name')
    path: Optional[str] = Field(default=None, description='Group path')
    parent_id: Optional[int] = Field(default=None, description='Parent group ID')

    class Config:
        """Pydantic configuration."""

        extra = 'ignore'


class GroupCreate(BaseModel):
    """Model for creating a new group."""

    name: str = Field(..., description='Group name')
    path: str = Field(..., description='Group path')
    description: Optional[str] = Field(default=None, description='Group description')
    visibility: str = Field(default='private', description='Group visibility')
    parent_id: Optional[int] = Field(default=None, description='Parent group ID')

    @validator('visibility')
    def validate_visibility(cls, v):
        """Validate group visibility."""
        if v not in VALID_VISIBILITY:
            raise ValueError(f'Visibility must be one of: {VALID_VISIBILITY}')
        return v

    @classmethod
    def from_source(cls, group: SourceGroup, parent_id: int) -> 'GroupCreate':
        """Build the create payload that mirrors a source group."""
        return cls(
            name=group.name,
            path=group.path,
            description=group.description,
            visibility=group.visibility,
            parent_id=parent_id,
        )


class MappedGroup(BaseModel):
    """Destination side of a group mapping entry."""

    target_group_id: int = Field(..., description='Destination group ID')
    target_full_path: str = Field(..., description='Destination group full path')

    class Config:
        """Pydantic configuration."""

        frozen = True

    @classmethod
    def from_target(cls, group: TargetGroup) -> 'MappedGroup':
        return cls(target_group_id=group.id, target_full_path=group.full_path)


class GroupMapping:
    """Source group ID to destination group mapping.

    Entry ``0`` is the destination root group. Entries are write-once: a
    second ``add`` for the same source ID keeps the first value. Source
    groups merged into the root are kept as aliases, so they resolve to the
    root entry without adding an entry of their own.
    """

    def __init__(self, root: MappedGroup):
        self._entries: Dict[int, MappedGroup] = {ROOT_GROUP_ID: root}
        self._aliases: Dict[int, int] = {}
        self.logger = logger.bind(component='GroupMapping')

    @classmethod
    def seeded(cls, root: TargetGroup) -> 'GroupMapping':
        """Create a mapping anchored at the given destination root group."""
        return cls(MappedGroup.from_target(root))

    @property
    def root(self) -> MappedGroup:
        return self._entries[ROOT_GROUP_ID]

    def add(self, source_id: int, mapped: MappedGroup) -> MappedGroup:
        """Record a mapping entry unless one already exists.

        Returns:
            The entry stored for ``source_id``
        """
        existing = self.resolve(source_id)
        if existing is not None:
            if existing != mapped:
                self.logger.debug(
                    f'Keeping existing mapping for group {source_id}: '
                    f'{existing.target_full_path}'
                )
            return existing

        self._entries[source_id] = mapped
        return mapped

    def alias(self, source_id: int, to: int = ROOT_GROUP_ID) -> MappedGroup:
        """Make ``source_id`` resolve to the entry of ``to``."""
        if to not in self._entries:
            raise KeyError(f'Cannot alias group {source_id} to unmapped group {to}')
        if source_id not in self._entries:
            self._aliases.setdefault(source_id, to)
        return self.resolve(source_id)

    def resolve(self, source_id: int) -> Optional[MappedGroup]:
        """Look up the destination group for a source group ID."""
        if source_id in self._entries:
            return self._entries[source_id]
        if source_id in self._aliases:
            return self._entries[self._aliases[source_id]]
        return None

    def is_alias(self, source_id: int) -> bool:
        return source_id in self._aliases

    def entries(self) -> Dict[int, MappedGroup]:
        """Own entries, root included and aliases excluded."""
        return dict(self._entries)

    def items(self) -> Iterator[Tuple[int, MappedGroup]]:
        """Iterate all resolvable source IDs, aliases included."""
        yield from self._entries.items()
        for source_id, to in self._aliases.items():
            yield source_id, self._entries[to]

    def __contains__(self, source_id: int) -> bool:
        return self.resolve(source_id) is not None

    def __len__(self) -> int:
        return len(self._entries)
