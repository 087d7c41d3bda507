"""Data models for GitLab entities."""

from .group import (
    ROOT_GROUP_ID,
    GroupCreate,
    GroupMapping,
    MappedGroup,
    SourceGroup,
    TargetGroup,
)
from .project import ExportJob, ExportStatus, SourceProject

__all__ = [
    'ROOT_GROUP_ID',
    'GroupCreate',
    'GroupMapping',
    'MappedGroup',
    'SourceGroup',
    'TargetGroup',
    'ExportJob',
    'ExportStatus',
    'SourceProject',
]
