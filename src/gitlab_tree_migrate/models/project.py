"""Project entity models."""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, root_validator


class SourceProject(BaseModel):
    """Project as read from the source instance."""

    id: int = Field(..., description='Project ID')
    name: str = Field(..., description='Project name')
    path: str = Field(..., description='Project path')
    path_with_namespace: str = Field(..., description='Full project path')
    group_id: Optional[int] = Field(default=None, description='Owning group ID')

    @root_validator(pre=True)
    def extract_group_id(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        """Take the owning group from the nested ``namespace`` object."""
        values = dict(values)
        namespace = values.get('namespace')
        if values.get('group_id') is None and isinstance(namespace, dict):
            values['group_id'] = namespace.get('id')
        return values

    class Config:
        """Pydantic configuration."""

        frozen = True
        extra = 'ignore'


class ExportStatus:
    """Export job states reported by ``/projects/:id/export``."""

    NONE = 'none'
    QUEUED = 'queued'
    STARTED = 'started'
    REGENERATION_IN_PROGRESS = 'regeneration_in_progress'
    FINISHED = 'finished'
    FAILED = 'failed'


class ExportJob(BaseModel):
    """State of one project export on the source instance."""

    project_id: int = Field(..., description='Source project ID')
    status: str = Field(default=ExportStatus.NONE, description='Export status')

    @property
    def finished(self) -> bool:
        return self.status == ExportStatus.FINISHED

    @property
    def failed(self) -> bool:
        return self.status == ExportStatus.FAILED
