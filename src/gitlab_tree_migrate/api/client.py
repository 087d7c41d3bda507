"""GitLab API client implementation."""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, BinaryIO, Dict, List, Mapping, Optional
from urllib.parse import quote, urljoin

import requests
from loguru import logger
from pydantic import BaseModel

from ..config.config import GitLabInstanceConfig
from .exceptions import (
    GitLabAPIError,
    GitLabAuthenticationError,
    GitLabConflictError,
    GitLabNotFoundError,
    GitLabRateLimitError,
)

USER_AGENT = 'gitlab-tree-migrate/0.1.0'

# GitLab answers 400 with this message when a group or project path is taken
ALREADY_TAKEN = 'has already been taken'

DEFAULT_RETRY_AFTER = 60

DOWNLOAD_CHUNK_SIZE = 1024 * 1024


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


def encode_path(path_or_id: Any) -> str:
    """Encode a namespace path (or pass an ID through) for use in a URL."""
    if isinstance(path_or_id, int):
        return str(path_or_id)
    return quote(str(path_or_id), safe='')


def parse_retry_after(headers: Mapping[str, str]) -> int:
    """Seconds to wait according to a ``Retry-After`` header.

    The header is either a number of seconds or an HTTP date. Anything
    unparseable falls back to ``DEFAULT_RETRY_AFTER``.
    """
    value = headers.get('Retry-After')
    if value is None:
        return DEFAULT_RETRY_AFTER

    value = str(value).strip()
    if value.isdigit():
        return int(value)

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)

    delay = (retry_at - datetime.now(timezone.utc)).total_seconds()
    return max(0, int(delay))


class GitLabClient:
    """GitLab API client with token authentication."""

    def __init__(self, config: GitLabInstanceConfig):
        """Initialize GitLab client.

        Args:
            config: GitLab instance configuration
        """
        if not config.token:
            raise GitLabAuthenticationError('No authentication token provided')

        self.config = config
        self.base_url = config.url.rstrip('/') + '/api/v4'
        self.timeout = config.timeout
        self.session = requests.Session()
        self.session.headers.update(
            {'Private-Token': config.token, 'User-Agent': USER_AGENT}
        )

        logger.info(f'Initialized GitLab client for {config.url}')

    def build_url(self, endpoint: str) -> str:
        """Build full API URL from endpoint.

        Args:
            endpoint: API endpoint path

        Returns:
            Full API URL
        """
        return urljoin(self.base_url + '/', endpoint.lstrip('/'))

    def _raise_for_status(self, response: requests.Response) -> None:
        """Translate an error response into the matching exception.

        Raises:
            GitLabAPIError: For various API errors
        """
        status = response.status_code
        if status < 400:
            return

        if status == 429:
            retry_after = parse_retry_after(response.headers)
            raise GitLabRateLimitError(
                f'Rate limit exceeded. Retry after {retry_after} seconds',
                retry_after=retry_after,
                status_code=status,
            )

        if status == 401:
            raise GitLabAuthenticationError('Authentication failed', status_code=status)

        if status == 404:
            raise GitLabNotFoundError('Resource not found', status_code=status)

        error_data = None
        try:
            error_data = response.json()
            message = (
                error_data.get('message', f'HTTP {status}')
                if isinstance(error_data, dict)
                else str(error_data)
            )
        except ValueError:
            message = f'HTTP {status}: {response.text}'

        if status == 409 or (status == 400 and ALREADY_TAKEN in str(message)):
            raise GitLabConflictError(
                f'Resource already exists: {message}',
                status_code=status,
                response_data=error_data,
            )

        raise GitLabAPIError(
            f'API request failed: {message}',
            status_code=status,
            response_data=error_data,
        )

    def _handle_response(self, response: requests.Response) -> APIResponse:
        """Handle API response and convert to standard format.

        Args:
            response: Raw HTTP response

        Returns:
            Standardized API response
        """
        self._raise_for_status(response)

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = response.text

        return APIResponse(
            status_code=response.status_code,
            data=data,
            headers=dict(response.headers),
            success=200 <= response.status_code < 300,
        )

    def get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make GET request.

        Args:
            endpoint: API endpoint
            params: Query parameters
            **kwargs: Additional request arguments

        Returns:
            API response
        """
        url = self.build_url(endpoint)
        kwargs.setdefault('timeout', self.timeout)

        try:
            response = self.session.get(url, params=params, **kwargs)
        except requests.RequestException as e:
            logger.error(f'Network error during GET request: {e}')
            raise GitLabAPIError(f'Network error: {e}')
        return self._handle_response(response)

    def post(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make POST request with a JSON body.

        Args:
            endpoint: API endpoint
            data: Request body data
            **kwargs: Additional request arguments

        Returns:
            API response
        """
        url = self.build_url(endpoint)
        kwargs.setdefault('timeout', self.timeout)

        try:
            response = self.session.post(url, json=data, **kwargs)
        except requests.RequestException as e:
            logger.error(f'Network error during POST request: {e}')
            raise GitLabAPIError(f'Network error: {e}')
        return self._handle_response(response)

    def download(self, endpoint: str, fh: BinaryIO) -> int:
        """Stream a binary payload into an open file.

        Args:
            endpoint: API endpoint
            fh: File opened for binary writing

        Returns:
            Number of bytes written
        """
        url = self.build_url(endpoint)
        written = 0

        try:
            response = self.session.get(url, timeout=self.timeout, stream=True)
            try:
                self._raise_for_status(response)
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    fh.write(chunk)
                    written += len(chunk)
            finally:
                response.close()
        except requests.RequestException as e:
            logger.error(f'Network error during download: {e}')
            raise GitLabAPIError(f'Network error: {e}')

        return written

    def prepare(self, request: requests.Request) -> requests.PreparedRequest:
        """Prepare a request with this client's session headers applied."""
        return self.session.prepare_request(request)

    def send(self, prepared: requests.PreparedRequest) -> requests.Response:
        """Send a prepared request as is.

        Transport errors propagate as ``requests.RequestException``; the
        response status is not inspected.
        """
        return self.session.send(prepared, timeout=self.timeout)

    def get_paginated(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        per_page: int = 100,
    ) -> List[Dict[str, Any]]:
        """Get all pages of a paginated endpoint.

        Follows the ``X-Next-Page`` header until it is empty.

        Args:
            endpoint: API endpoint
            params: Query parameters
            per_page: Items per page

        Returns:
            List of all items from all pages
        """
        all_items = []
        params = dict(params or {})
        params['per_page'] = per_page
        page = 1

        while True:
            params['page'] = page
            response = self.get(endpoint, params=params)

            items = response.data or []
            all_items.extend(items)

            next_page = response.headers.get('X-Next-Page') or response.headers.get(
                'x-next-page'
            )
            if not next_page:
                break
            page = int(next_page)

        logger.debug(f'Retrieved {len(all_items)} items from {endpoint}')
        return all_items

    def test_connection(self) -> bool:
        """Test connection to GitLab instance.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            response = self.get('/user')
            return response.success
        except GitLabAPIError as e:
            logger.error(f'Connection test failed for {self.config.url}: {e}')
            return False

    def get_version(self) -> Optional[str]:
        """Get GitLab version.

        Returns:
            GitLab version string or None if unavailable
        """
        try:
            response = self.get('/version')
            if response.success and response.data:
                return response.data.get('version')
        except GitLabAPIError as e:
            logger.warning(f'Could not retrieve GitLab version: {e}')

        return None

    def close(self):
        """Close the client session."""
        self.session.close()
        logger.debug(f'GitLab client session closed for {self.config.url}')

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class GitLabClientFactory:
    """Factory for creating GitLab API clients."""

    @staticmethod
    def create_client(config: GitLabInstanceConfig) -> GitLabClient:
        """Create GitLab client from configuration.

        Args:
            config: GitLab instance configuration

        Returns:
            Configured GitLab client

        Raises:
            GitLabAuthenticationError: If authentication configuration is invalid
        """
        if not config.token:
            raise GitLabAuthenticationError('A personal access token must be provided')

        return GitLabClient(config)
