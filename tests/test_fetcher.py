"""Unit tests for ResilientFetcher."""
from unittest.mock import call, patch

import pytest
import responses
from requests.exceptions import ConnectionError, Timeout

from scraper.fetcher import FetchError, ListingUnavailableError, ResilientFetcher

EVENTS_URL = "https://archeryosa.com/events"
MIRROR_URL = "https://www.archeryosa.com/events"


@pytest.fixture(autouse=True)
def mock_sleep():
    """Skip real backoff delays."""
    with patch('scraper.fetcher.time.sleep') as sleep:
        yield sleep


class TestResilientFetcher:
    """Test cases for ResilientFetcher class."""

    @responses.activate
    def test_fetch_success(self, mock_sleep):
        """Test a 200 response is returned without retrying."""
        responses.add(responses.GET, EVENTS_URL, body="<html></html>", status=200)

        fetcher = ResilientFetcher()
        response = fetcher.fetch(EVENTS_URL)

        assert response.text == "<html></html>"
        assert len(responses.calls) == 1
        mock_sleep.assert_not_called()

    @responses.activate
    def test_fetch_sends_user_agent(self):
        """Test the bot User-Agent header is sent."""
        responses.add(responses.GET, EVENTS_URL, body="ok", status=200)

        ResilientFetcher(user_agent="TestBot/2.0").fetch(EVENTS_URL)

        assert responses.calls[0].request.headers['User-Agent'] == "TestBot/2.0"

    @responses.activate
    def test_fetch_retry_success(self, mock_sleep):
        """Test retry logic succeeds after initial failures."""
        responses.add(responses.GET, EVENTS_URL, body="Server Error", status=500)
        responses.add(responses.GET, EVENTS_URL, body="Server Error", status=503)
        responses.add(responses.GET, EVENTS_URL, body="listing", status=200)

        fetcher = ResilientFetcher(initial_delay=1.0)
        response = fetcher.fetch(EVENTS_URL)

        assert response.text == "listing"
        assert len(responses.calls) == 3
        assert mock_sleep.call_args_list == [call(1.0), call(2.0)]

    @responses.activate
    def test_fetch_all_retries_fail(self, mock_sleep):
        """Test FetchError carries the last error after all attempts fail."""
        for _ in range(3):
            responses.add(responses.GET, EVENTS_URL, body="Server Error", status=500)

        fetcher = ResilientFetcher()

        with pytest.raises(FetchError) as exc_info:
            fetcher.fetch(EVENTS_URL)

        assert str(exc_info.value) == (
            f"Failed to fetch {EVENTS_URL}. HTTP 500: Server Error"
        )
        assert exc_info.value.last_error == "HTTP 500: Server Error"
        assert len(responses.calls) == 3
        # No sleep after the final attempt
        assert mock_sleep.call_count == 2

    @responses.activate
    def test_fetch_client_error_is_retried(self):
        """Test non-2xx responses other than server errors are also retried."""
        for _ in range(3):
            responses.add(responses.GET, EVENTS_URL, body="Not Found", status=404)

        with pytest.raises(FetchError):
            ResilientFetcher().fetch(EVENTS_URL)

        assert len(responses.calls) == 3

    @responses.activate
    def test_fetch_truncates_error_body(self):
        """Test only the start of an error body is kept."""
        for _ in range(3):
            responses.add(responses.GET, EVENTS_URL, body="x" * 500, status=502)

        with pytest.raises(FetchError) as exc_info:
            ResilientFetcher().fetch(EVENTS_URL)

        assert exc_info.value.last_error == "HTTP 502: " + "x" * 200

    @responses.activate
    def test_fetch_transport_errors(self):
        """Test timeouts and connection errors are retried then reported."""
        responses.add(responses.GET, EVENTS_URL, body=Timeout("Request timed out"))
        responses.add(responses.GET, EVENTS_URL, body=Timeout("Request timed out"))
        responses.add(responses.GET, EVENTS_URL, body=ConnectionError("Connection refused"))

        with pytest.raises(FetchError) as exc_info:
            ResilientFetcher().fetch(EVENTS_URL)

        assert "Connection refused" in str(exc_info.value)
        assert len(responses.calls) == 3

    @responses.activate
    def test_fetch_max_attempts_configurable(self, mock_sleep):
        """Test the attempt cap and backoff follow the configuration."""
        for _ in range(4):
            responses.add(responses.GET, EVENTS_URL, status=500)

        with pytest.raises(FetchError):
            ResilientFetcher(max_attempts=4, initial_delay=0.5).fetch(EVENTS_URL)

        assert len(responses.calls) == 4
        assert mock_sleep.call_args_list == [call(0.5), call(1.0), call(2.0)]

    @responses.activate
    def test_fetch_first_falls_back_to_next_candidate(self):
        """Test the next candidate URL is used when the first one fails."""
        for _ in range(3):
            responses.add(responses.GET, EVENTS_URL, status=500)
        responses.add(responses.GET, MIRROR_URL, body="mirror listing", status=200)

        url, response = ResilientFetcher().fetch_first([EVENTS_URL, MIRROR_URL])

        assert url == MIRROR_URL
        assert response.text == "mirror listing"
        assert len(responses.calls) == 4

    @responses.activate
    def test_fetch_first_all_candidates_fail(self):
        """Test the error lists every attempted URL and its failure."""
        for _ in range(3):
            responses.add(responses.GET, EVENTS_URL, body="down", status=500)
            responses.add(responses.GET, MIRROR_URL, body=ConnectionError("DNS failure"))

        with pytest.raises(ListingUnavailableError) as exc_info:
            ResilientFetcher().fetch_first([EVENTS_URL, MIRROR_URL])

        message = str(exc_info.value)
        assert message.startswith("Unable to fetch event listing page. Attempts: ")
        assert f"{EVENTS_URL}: Failed to fetch {EVENTS_URL}. HTTP 500: down" in message
        assert f"{MIRROR_URL}: Failed to fetch {MIRROR_URL}. DNS failure" in message
        assert len(exc_info.value.attempts) == 2
        assert len(responses.calls) == 6
