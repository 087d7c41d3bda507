"""Tests for the 429 retry policy."""

from unittest.mock import Mock

import pytest
import requests

from src.gitlab_tree_migrate.api.exceptions import (
    GitLabAPIError,
    GitLabRateLimitError,
    GitLabRateLimitExhaustedError,
)
from src.gitlab_tree_migrate.api.retry import RetryPolicy

from tests.fakes import make_response


class TestRetryPolicy:
    """Test retry and backoff behaviour."""

    def setup_method(self):
        """Set up test fixtures."""
        self.sleeps = []
        self.policy = RetryPolicy(sleep=self.sleeps.append)
        self.request = Mock(method='POST', url='https://gitlab.example.com/import')

    def _sender(self, *responses):
        return Mock(side_effect=list(responses))

    def test_defaults(self):
        """Test the default parameters."""
        policy = RetryPolicy()

        assert policy.max_retries == 5
        assert policy.initial_delay == 10.0
        assert policy.multiplier == 2.0

    def test_success_returns_immediately(self):
        """Test a successful response is returned without waiting."""
        send = self._sender(make_response(201))

        response = self.policy.execute(send, self.request)

        assert response.status_code == 201
        assert send.call_count == 1
        assert self.sleeps == []

    def test_five_429_responses_exhaust_retries(self):
        """Test five 429s give four growing delays and the exhaustion error."""
        send = self._sender(*[make_response(429) for _ in range(5)])

        with pytest.raises(GitLabRateLimitExhaustedError) as exc_info:
            self.policy.execute(send, self.request)

        assert send.call_count == 5
        assert self.sleeps == [10.0, 20.0, 40.0, 80.0]
        assert exc_info.value.attempts == 5
        assert 'Too many 429 responses' in str(exc_info.value)

    def test_exhaustion_is_distinguishable(self):
        """Test the exhaustion error is a rate limit error, not a plain one."""
        send = self._sender(*[make_response(429) for _ in range(5)])

        with pytest.raises(GitLabRateLimitError):
            self.policy.execute(send, self.request)

    @pytest.mark.parametrize('failing_attempts', [1, 2, 4])
    def test_non_429_stops_retrying(self, failing_attempts):
        """Test the first non-429 response ends the retry loop."""
        responses = [make_response(429) for _ in range(failing_attempts)]
        responses.append(make_response(500, 'server error'))
        send = self._sender(*responses)

        response = self.policy.execute(send, self.request)

        assert response.status_code == 500
        assert send.call_count == failing_attempts + 1
        assert len(self.sleeps) == failing_attempts

    def test_429_then_200_retries_once(self):
        """Test a single rate limited answer leads to exactly one retry."""
        send = self._sender(make_response(429), make_response(200))

        response = self.policy.execute(send, self.request)

        assert response.status_code == 200
        assert send.call_count == 2
        assert self.sleeps == [10.0]

    def test_transport_error_is_not_retried(self):
        """Test a connection error is raised on the first attempt."""
        send = Mock(side_effect=requests.ConnectionError('connection refused'))

        with pytest.raises(GitLabAPIError) as exc_info:
            self.policy.execute(send, self.request)

        assert not isinstance(exc_info.value, GitLabRateLimitError)
        assert send.call_count == 1
        assert self.sleeps == []

    def test_custom_parameters(self):
        """Test the attempt count, delay and multiplier are configurable."""
        policy = RetryPolicy(
            max_retries=3, initial_delay=0.5, multiplier=3, sleep=self.sleeps.append
        )
        send = self._sender(*[make_response(429) for _ in range(3)])

        with pytest.raises(GitLabRateLimitExhaustedError):
            policy.execute(send, self.request)

        assert self.sleeps == [0.5, 1.5]

    def test_invalid_max_retries(self):
        """Test at least one attempt is required."""
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=0)
