"""Configuration management for the GitLab tree migration tool."""

from typing import Optional, Dict, Any
from pathlib import Path
import os

from pydantic import BaseModel, Field, validator
import yaml
from dotenv import load_dotenv


class GitLabInstanceConfig(BaseModel):
    """Configuration for a GitLab instance."""

    url: str = Field(..., description='GitLab instance URL')
    token: str = Field(..., description='Personal access token')
    timeout: int = Field(default=30, description='Request timeout in seconds')

    @validator('url')
    def validate_url(cls, v):
        """Validate GitLab URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')

    @validator('token')
    def validate_token(cls, v):
        """Reject empty tokens."""
        if not v or not v.strip():
            raise ValueError('token must not be empty')
        return v

    @validator('timeout')
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError('Timeout must be positive')
        return v


class MigrationConfig(BaseModel):
    """Migration-specific configuration."""

    target_namespace: str = Field(
        ..., description='Root group on the destination that receives the tree'
    )
    source_root_namespace: Optional[str] = Field(
        default=None,
        description='Top-level source namespace stripped from group paths '
        '(defaults to target_namespace)',
    )
    per_page: int = Field(default=100, description='Page size for list endpoints')

    # Export polling
    export_poll_interval: float = Field(
        default=1.0, description='Seconds between export status checks'
    )
    export_timeout: float = Field(
        default=3600.0, description='Maximum seconds to wait for an export'
    )

    # Import retries (HTTP 429 only)
    import_max_retries: int = Field(
        default=5, description='Maximum attempts for the import request'
    )
    import_initial_delay: float = Field(
        default=10.0, description='First backoff delay in seconds'
    )
    import_backoff_multiplier: float = Field(
        default=2.0, description='Backoff delay multiplier'
    )

    temp_dir: Optional[str] = Field(
        default=None,
        description='Directory for downloaded export archives. '
        'If not specified, uses system temp directory.',
    )

    @validator('target_namespace', 'source_root_namespace')
    def validate_namespace(cls, v):
        """Normalize namespace paths."""
        if v is None:
            return v
        v = v.strip('/')
        if not v:
            raise ValueError('Namespace must not be empty')
        return v

    @validator('per_page', 'import_max_retries')
    def validate_positive_int(cls, v):
        if v <= 0:
            raise ValueError('Value must be positive')
        return v

    @validator('export_poll_interval', 'export_timeout', 'import_initial_delay')
    def validate_positive_float(cls, v):
        if v <= 0:
            raise ValueError('Value must be positive')
        return v

    @validator('import_backoff_multiplier')
    def validate_multiplier(cls, v):
        if v < 1:
            raise ValueError('Backoff multiplier must be at least 1')
        return v

    @validator('temp_dir')
    def validate_temp_dir(cls, v):
        """Validate temp directory path."""
        if v is not None:
            temp_path = Path(v)
            if not temp_path.is_absolute():
                raise ValueError('temp_dir must be an absolute path')
            temp_path.mkdir(parents=True, exist_ok=True)
            if not temp_path.is_dir():
                raise ValueError(f'temp_dir path is not a directory: {v}')
        return v

    @property
    def source_root(self) -> str:
        """Source namespace whose prefix is stripped from group paths."""
        return self.source_root_namespace or self.target_namespace


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default=None, description='Log file path')
    format: Optional[str] = Field(default=None, description='Log format')

    @validator('level')
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


TEMPLATE = {
    'source': {
        'url': 'https://gitlab-source.example.com',
        'token': 'your-source-personal-access-token',
        'timeout': 30,
    },
    'destination': {
        'url': 'https://gitlab-dest.example.com',
        'token': 'your-destination-personal-access-token',
        'timeout': 30,
    },
    'migration': {
        'target_namespace': 'migrated',
        'per_page': 100,
        'export_poll_interval': 1.0,
        'export_timeout': 3600.0,
        'import_max_retries': 5,
        'import_initial_delay': 10.0,
        'import_backoff_multiplier': 2.0,
    },
    'logging': {
        'level': 'INFO',
        'file': 'migration.log',
    },
}


class Config(BaseModel):
    """Main configuration class for the migration tool."""

    source: GitLabInstanceConfig = Field(..., description='Source GitLab instance')
    destination: GitLabInstanceConfig = Field(
        ..., description='Destination GitLab instance'
    )
    migration: MigrationConfig = Field(..., description='Migration settings')
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    class Config:
        """Pydantic configuration."""

        extra = 'forbid'

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config_data = {
            'source': {
                'url': os.getenv('SOURCE_GITLAB_URL'),
                'token': os.getenv('SOURCE_GITLAB_TOKEN'),
            },
            'destination': {
                'url': os.getenv('DEST_GITLAB_URL'),
                'token': os.getenv('DEST_GITLAB_TOKEN'),
            },
            'migration': {
                'target_namespace': os.getenv('TARGET_NAMESPACE'),
                'source_root_namespace': os.getenv('SOURCE_ROOT_NAMESPACE'),
                'export_poll_interval': float(os.getenv('EXPORT_POLL_INTERVAL', 1.0)),
                'export_timeout': float(os.getenv('EXPORT_TIMEOUT', 3600.0)),
                'import_max_retries': int(os.getenv('IMPORT_MAX_RETRIES', 5)),
                'import_initial_delay': float(os.getenv('IMPORT_INITIAL_DELAY', 10.0)),
                'temp_dir': os.getenv('MIGRATION_TEMP_DIR'),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO'),
                'file': os.getenv('LOG_FILE'),
            },
        }

        config_data = cls._remove_none_values(config_data)

        return cls(**config_data)

    @staticmethod
    def _remove_none_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively remove None values from dictionary."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        return data

    def to_file(self, config_path: str) -> None:
        """Save configuration to YAML file."""
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                self.dict(exclude_none=True),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )

    @staticmethod
    def create_template(output_path: str) -> None:
        """Create a configuration template file."""
        config_file = Path(output_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(TEMPLATE, f, default_flow_style=False, indent=2, sort_keys=False)
