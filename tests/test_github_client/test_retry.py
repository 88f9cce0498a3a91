"""Tests for the retry helper."""

from unittest.mock import Mock, patch

import httpx
import pytest

from gh_board.github_client.errors import GitHubAPIError, RateLimitError
from gh_board.github_client.retry import with_retry


@patch("time.sleep")
def test_returns_first_success(mock_sleep: Mock) -> None:
    fn = Mock(return_value="ok")

    assert with_retry(fn) == "ok"
    fn.assert_called_once()
    mock_sleep.assert_not_called()


@patch("time.sleep")
def test_retries_with_backoff_schedule(mock_sleep: Mock) -> None:
    fn = Mock(
        side_effect=[
            RateLimitError("API rate limit exceeded"),
            httpx.ConnectError("reset"),
            RateLimitError("API rate limit exceeded"),
            "ok",
        ]
    )

    assert with_retry(fn) == "ok"
    assert fn.call_count == 4
    assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0, 4.0]


@patch("time.sleep")
def test_gives_up_after_max_retries(mock_sleep: Mock) -> None:
    fn = Mock(side_effect=RateLimitError("API rate limit exceeded"))

    with pytest.raises(RateLimitError):
        with_retry(fn, max_retries=2)

    assert fn.call_count == 3
    assert mock_sleep.call_count == 2


@patch("time.sleep")
def test_non_retryable_propagates_immediately(mock_sleep: Mock) -> None:
    fn = Mock(side_effect=GitHubAPIError("permission denied"))

    with pytest.raises(GitHubAPIError, match="permission denied"):
        with_retry(fn)

    fn.assert_called_once()
    mock_sleep.assert_not_called()


@patch("time.sleep")
def test_retry_after_overrides_schedule(mock_sleep: Mock) -> None:
    fn = Mock(side_effect=[RateLimitError("limited", retry_after=30.0), "ok"])

    with_retry(fn)

    mock_sleep.assert_called_once_with(30.0)


@patch("time.sleep")
def test_last_delay_repeats(mock_sleep: Mock) -> None:
    fn = Mock(side_effect=[RateLimitError("limited")] * 3 + ["ok"])

    with_retry(fn, delays=(0.5, 1.5))

    assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.5, 1.5]
