"""Tests for the shared HTTP helper."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from npmgoproxy.common.http_client import safe_get
from npmgoproxy.constants import Constants
from npmgoproxy.exceptions import UpstreamError


class TestSafeGet:
    """Tests for safe_get."""

    def test_success_passes_through(self):
        response = MagicMock(status_code=200)
        with patch("npmgoproxy.common.http_client.requests.get", return_value=response) as mock_get:
            assert safe_get("https://example.test/x", context="npm", headers={"A": "b"}) is response
        mock_get.assert_called_once_with("https://example.test/x", timeout=Constants.REQUEST_TIMEOUT, headers={"A": "b"})

    def test_non_2xx_is_returned_not_raised(self):
        """Status handling belongs to the caller."""
        response = MagicMock(status_code=500)
        with patch("npmgoproxy.common.http_client.requests.get", return_value=response):
            assert safe_get("https://example.test/x", context="npm").status_code == 500

    def test_timeout_raises_upstream_error(self):
        with patch("npmgoproxy.common.http_client.requests.get", side_effect=requests.Timeout()):
            with pytest.raises(UpstreamError) as info:
                safe_get("https://example.test/x", context="npm", timeout=2)
        assert "timed out" in str(info.value)

    def test_connection_error_raises_upstream_error(self):
        with patch("npmgoproxy.common.http_client.requests.get",
                   side_effect=requests.ConnectionError("refused")):
            with pytest.raises(UpstreamError):
                safe_get("https://example.test/x", context="npm")

    def test_retries_then_succeeds(self):
        """Transport failures are retried with backoff up to the limit."""
        response = MagicMock(status_code=200)
        with patch("npmgoproxy.common.http_client.requests.get",
                   side_effect=[requests.Timeout(), requests.ConnectionError("x"), response]) as mock_get, \
                patch("npmgoproxy.common.http_client.time.sleep") as mock_sleep:
            assert safe_get("https://example.test/x", context="npm", retries=2) is response
        assert mock_get.call_count == 3
        assert mock_sleep.call_count == 2

    def test_retries_exhausted(self):
        with patch("npmgoproxy.common.http_client.requests.get", side_effect=requests.Timeout()) as mock_get, \
                patch("npmgoproxy.common.http_client.time.sleep"):
            with pytest.raises(UpstreamError):
                safe_get("https://example.test/x", context="npm", retries=1)
        assert mock_get.call_count == 2

    def test_session_is_used(self):
        session = MagicMock()
        session.get.return_value = MagicMock(status_code=204)
        assert safe_get("https://example.test/x", context="npm", session=session).status_code == 204
        session.get.assert_called_once()
