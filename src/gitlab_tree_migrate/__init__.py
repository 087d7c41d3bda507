"""GitLab Tree Migration Tool

Copies a group hierarchy and its projects from one GitLab instance to
another, using get-or-create for groups and project export/import for
projects.
"""

__version__ = '0.1.0'

__all__ = ['__version__']
