from unittest.mock import MagicMock

import pytest
import requests

from nrc_claim.config import Config
from nrc_claim.errors import NikeAuthError
from nrc_claim.fetcher import ActivityFetcher, is_claimable_run


def _fetcher(responses, cfg=None):
	session = MagicMock()
	session.get.side_effect = responses
	sleeps = []
	fetcher = ActivityFetcher("secret-token", cfg or Config(backoff_s=0), session=session, sleep=sleeps.append)
	return fetcher, session, sleeps


@pytest.mark.parametrize(
	"activity,expected",
	[
		({"id": 1, "type": "run"}, True),
		({"id": 2, "type": "run", "tags": {"com.nike.running.runtype": "manual"}}, False),
		({"id": 3, "type": "walk"}, False),
		({"id": 4, "type": "run", "tags": {"com.nike.name": "Tempo"}}, True),
		({"id": 5, "type": "run", "tags": {"com.nike.running.runtype": "gps"}}, True),
		({"id": 6, "type": "run", "tags": None}, True),
	],
)
def test_is_claimable_run(activity, expected):
	assert is_claimable_run(activity) is expected


def test_listing_filters_runs(make_response):
	page = {
		"activities": [
			{"id": 1, "type": "run"},
			{"id": 2, "type": "run", "tags": {"com.nike.running.runtype": "manual"}},
			{"id": 3, "type": "walk"},
		],
	}
	fetcher, session, _ = _fetcher([make_response(body=page)])

	listing = fetcher.list_activity_ids()

	assert listing.ids == [1]
	assert listing.pages == 1
	assert listing.failed is False
	assert session.get.call_args.kwargs["headers"] == {"Authorization": "Bearer secret-token"}


def test_listing_follows_cursor_until_exhausted(make_response):
	pages = [
		{"activities": [{"id": "a", "type": "run"}], "paging": {"before_id": "cursor-1"}},
		{"activities": [{"id": "b", "type": "walk"}], "paging": {"before_id": "cursor-2"}},
		{"activities": [{"id": "c", "type": "run"}], "paging": {}},
	]
	fetcher, session, _ = _fetcher([make_response(body=p) for p in pages])

	listing = fetcher.list_activity_ids()

	assert session.get.call_count == 3
	assert listing.ids == ["a", "c"]
	assert listing.pages == 3
	urls = [c.args[0] for c in session.get.call_args_list]
	assert "/before_id/v3/*?" in urls[0]
	assert "/before_id/v3/cursor-1?" in urls[1]
	assert "/before_id/v3/cursor-2?" in urls[2]


def test_unauthorized_on_second_page_aborts(make_response):
	responses = [
		make_response(body={"activities": [{"id": 1, "type": "run"}], "paging": {"before_id": "x"}}),
		make_response(status=401, body={"message": "unauthorized"}),
	]
	fetcher, session, _ = _fetcher(responses)

	with pytest.raises(NikeAuthError):
		fetcher.list_activity_ids()
	assert session.get.call_count == 2


def test_error_id_is_treated_as_unauthorized(make_response):
	fetcher, _, _ = _fetcher([make_response(body={"error_id": "abc-123"})])

	with pytest.raises(NikeAuthError, match="abc-123"):
		fetcher.list_activity_ids()


def test_transient_failure_ends_walk_and_marks_failed(make_response):
	responses = [
		make_response(body={"activities": [{"id": 1, "type": "run"}], "paging": {"before_id": "x"}}),
		requests.ConnectionError("boom"),
		requests.ConnectionError("boom"),
		requests.ConnectionError("boom"),
	]
	fetcher, session, sleeps = _fetcher(responses)

	listing = fetcher.list_activity_ids()

	assert listing.ids == [1]
	assert listing.failed is True
	assert session.get.call_count == 4
	assert len(sleeps) == 2


def test_server_error_is_retried(make_response):
	responses = [
		make_response(status=503),
		make_response(body={"activities": [{"id": 9, "type": "run"}]}),
	]
	fetcher, session, _ = _fetcher(responses)

	listing = fetcher.list_activity_ids()

	assert listing.ids == [9]
	assert listing.failed is False
	assert session.get.call_count == 2


def test_rate_limit_honours_retry_after(make_response):
	responses = [
		make_response(status=429, headers={"Retry-After": "7"}),
		make_response(body={"activities": []}),
	]
	fetcher, _, sleeps = _fetcher(responses)

	listing = fetcher.list_activity_ids()

	assert listing.ids == []
	assert sleeps == [7.0]


def test_client_error_is_not_retried(make_response):
	fetcher, session, _ = _fetcher([make_response(status=403)])

	listing = fetcher.list_activity_ids()

	assert listing.failed is True
	assert session.get.call_count == 1


def test_fetch_activity_details(make_response):
	detail = {"id": "abc", "metrics": []}
	fetcher, session, _ = _fetcher([make_response(body=detail)])

	assert fetcher.fetch_activity_details("abc") == detail
	assert session.get.call_args.args[0] == "https://api.nike.com/sport/v3/me/activity/abc?metrics=ALL"


def test_fetch_activity_details_failure_returns_none(make_response, caplog):
	fetcher, session, _ = _fetcher([make_response(status=404)])

	assert fetcher.fetch_activity_details("gone") is None
	assert session.get.call_count == 1
	assert "gone" in caplog.text


def test_fetch_activity_details_unauthorized_is_not_fatal(make_response):
	fetcher, _, _ = _fetcher([make_response(status=401)])

	assert fetcher.fetch_activity_details("abc") is None


def test_fetch_activity_details_invalid_json(make_response):
	fetcher, session, _ = _fetcher([make_response(status=200)] * 3)

	assert fetcher.fetch_activity_details("abc") is None
	assert session.get.call_count == 3


@pytest.mark.parametrize(
	"page",
	[
		{"activities": 5},
		{"activities": {"id": 1, "type": "run"}},
		{"activities": [{"id": 1, "type": "run"}], "paging": ["x"]},
		["not", "a", "page"],
	],
)
def test_malformed_listing_page_ends_walk(make_response, page):
	responses = [
		make_response(body={"activities": [{"id": "first", "type": "run"}], "paging": {"before_id": "x"}}),
		make_response(body=page),
	]
	fetcher, session, _ = _fetcher(responses)

	listing = fetcher.list_activity_ids()

	assert listing.ids == ["first"]
	assert listing.failed is True
	assert session.get.call_count == 2
