"""
Tests for fetch_with_policy: retries, backoff, timeouts and JSON handling
"""
from unittest.mock import MagicMock, call

import pytest
import requests

from deckworthy.constants import USER_AGENT
from deckworthy.services.http import RequestFailed, fetch_with_policy

URL = "https://api.example.test/v1/items"


@pytest.fixture
def http_session():
    return MagicMock()


class TestFetchWithPolicy:
    def test_returns_parsed_json(self, http_session, fake_response, no_upstream_waits):
        http_session.request.return_value = fake_response(payload={"ok": True})

        assert fetch_with_policy(URL, session=http_session) == {"ok": True}
        no_upstream_waits.assert_not_called()

    def test_succeeds_on_third_attempt(self, http_session, fake_response, no_upstream_waits):
        """Two failures then a success: three calls, backoff 1s then 2s"""
        http_session.request.side_effect = [
            fake_response(503, reason="Service Unavailable"),
            requests.ConnectionError("connection reset"),
            fake_response(payload=[1, 2, 3]),
        ]

        result = fetch_with_policy(URL, retries=3, retry_delay=1.0, session=http_session)

        assert result == [1, 2, 3]
        assert http_session.request.call_count == 3
        assert no_upstream_waits.call_args_list == [call(1.0), call(2.0)]

    def test_raises_after_budget_is_spent(self, http_session, fake_response, no_upstream_waits):
        http_session.request.return_value = fake_response(500, reason="Internal Server Error")

        with pytest.raises(RequestFailed) as excinfo:
            fetch_with_policy(URL, retries=3, retry_delay=0.5, session=http_session)

        assert excinfo.value.attempts == 3
        assert excinfo.value.status_code == 500
        assert "HTTP 500" in str(excinfo.value)
        assert http_session.request.call_count == 3
        # No wait after the last attempt
        assert no_upstream_waits.call_args_list == [call(0.5), call(1.0)]

    def test_timeout_counts_as_failure(self, http_session, no_upstream_waits):
        http_session.request.side_effect = requests.Timeout("read timed out")

        with pytest.raises(RequestFailed) as excinfo:
            fetch_with_policy(URL, retries=2, timeout=5.0, session=http_session)

        assert excinfo.value.status_code is None
        assert "timed out" in str(excinfo.value)
        assert http_session.request.call_args.kwargs["timeout"] == 5.0

    def test_invalid_json_is_a_failure(self, http_session, fake_response):
        bad = fake_response()
        bad.json.side_effect = ValueError("Expecting value: line 1 column 1")
        http_session.request.return_value = bad

        with pytest.raises(RequestFailed) as excinfo:
            fetch_with_policy(URL, retries=2, session=http_session)

        assert excinfo.value.attempts == 2
        assert "Expecting value" in str(excinfo.value)

    def test_single_attempt_never_sleeps(self, http_session, fake_response, no_upstream_waits):
        http_session.request.return_value = fake_response(404, reason="Not Found")

        with pytest.raises(RequestFailed) as excinfo:
            fetch_with_policy(URL, retries=1, session=http_session)

        assert excinfo.value.status_code == 404
        no_upstream_waits.assert_not_called()

    def test_sends_user_agent_and_request_options(self, http_session, fake_response):
        http_session.request.return_value = fake_response(payload={})

        fetch_with_policy(
            URL,
            method="POST",
            headers={"X-Test": "1"},
            params={"key": "abc"},
            json=["app/570"],
            session=http_session,
        )

        method, url = http_session.request.call_args.args
        kwargs = http_session.request.call_args.kwargs
        assert (method, url) == ("POST", URL)
        assert kwargs["headers"] == {"User-Agent": USER_AGENT, "X-Test": "1"}
        assert kwargs["params"] == {"key": "abc"}
        assert kwargs["json"] == ["app/570"]
