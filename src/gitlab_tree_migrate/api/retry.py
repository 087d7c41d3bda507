"""Backoff policy for rate-limited GitLab requests."""

import time
from typing import Callable, Optional

import requests
from loguru import logger

from .exceptions import GitLabAPIError, GitLabRateLimitExhaustedError

TOO_MANY_REQUESTS = 429


class RetryPolicy:
    """Exponential backoff that retries a request only on HTTP 429.

    Any other response, successful or not, is returned to the caller on the
    first attempt. Transport errors are never retried.
    """

    def __init__(
        self,
        max_retries: int = 5,
        initial_delay: float = 10.0,
        multiplier: float = 2.0,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """Initialize retry policy.

        Args:
            max_retries: Maximum number of attempts
            initial_delay: Seconds to wait after the first 429
            multiplier: Factor applied to the delay after every 429
            sleep: Blocking sleep function, ``time.sleep`` by default
        """
        if max_retries < 1:
            raise ValueError('max_retries must be at least 1')

        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.multiplier = multiplier
        self.sleep = sleep or time.sleep
        self.logger = logger.bind(component='RetryPolicy')

    def execute(
        self,
        send: Callable[[requests.PreparedRequest], requests.Response],
        request: requests.PreparedRequest,
    ) -> requests.Response:
        """Send ``request`` until it is answered with something other than 429.

        Args:
            send: Function that performs the HTTP round trip
            request: Prepared request; its body must be replayable

        Returns:
            The first non-429 response

        Raises:
            GitLabAPIError: On a transport error
            GitLabRateLimitExhaustedError: If every attempt got a 429
        """
        delay = self.initial_delay

        for attempt in range(1, self.max_retries + 1):
            try:
                response = send(request)
            except requests.RequestException as e:
                raise GitLabAPIError(f'Request failed (attempt {attempt}): {e}')

            if response.status_code != TOO_MANY_REQUESTS:
                return response

            response.close()
            if attempt == self.max_retries:
                break

            self.logger.warning(
                f'Rate limited (429) on {request.method} {request.url}. '
                f'Waiting {delay:g}s before attempt {attempt + 1}/{self.max_retries}'
            )
            self.sleep(delay)
            delay *= self.multiplier

        raise GitLabRateLimitExhaustedError(
            f'Too many 429 responses from {request.url} '
            f'after {self.max_retries} attempts',
            attempts=self.max_retries,
        )
