"""Nike Run Club API access: paginated activity listing and per-activity detail fetch."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from .config import ACTIVITY_TYPE_RUN, RUN_TYPE_MANUAL, TAG_RUN_TYPE, Config
from .errors import NikeAuthError

logger = logging.getLogger(__name__)


@dataclass
class ActivityListing:
	ids: List[Any] = field(default_factory=list)
	pages: int = 0
	# True when the walk stopped on a request failure instead of cursor exhaustion
	failed: bool = False


def is_claimable_run(activity: Dict) -> bool:
	"""True for run activities that were recorded rather than logged by hand."""
	if activity.get("type") != ACTIVITY_TYPE_RUN:
		return False
	tags = activity.get("tags")
	if not isinstance(tags, dict):
		return True
	return tags.get(TAG_RUN_TYPE) != RUN_TYPE_MANUAL


def _status_of(err: Exception) -> Optional[int]:
	response = getattr(err, "response", None)
	return getattr(response, "status_code", None)


def _is_retryable(err: Exception) -> bool:
	status = _status_of(err)
	if status is None:
		return True
	return status == 429 or status >= 500


def _retry_after(resp, default: float) -> float:
	value = resp.headers.get("Retry-After") if resp.headers else None
	try:
		return max(0.0, float(value)) if value is not None else default
	except ValueError:
		return default


class ActivityFetcher:
	"""Fetch NRC activities with a bearer token.

	Requests run one at a time. Transient failures (network errors, 5xx, 429) are retried
	``config.retries`` times in total with ``config.backoff_s`` between attempts.
	"""

	def __init__(
		self,
		access_token: str,
		config: Optional[Config] = None,
		*,
		session: Optional[requests.Session] = None,
		sleep: Callable[[float], None] = time.sleep,
	):
		self.config = config or Config()
		self.headers = {"Authorization": f"Bearer {access_token}"}
		self.session = session or requests.Session()
		self._sleep = sleep

	def __enter__(self):
		return self

	def __exit__(self, exc_type, exc_val, exc_tb):
		self.close()

	def close(self) -> None:
		self.session.close()

	def _get_json(self, url: str, label: str) -> Any:
		retries = max(1, int(self.config.retries))
		attempt = 0
		while True:
			attempt += 1
			try:
				resp = self.session.get(url, headers=self.headers, timeout=self.config.timeout_s)
				if resp.status_code == 429 and attempt < retries:
					delay = _retry_after(resp, self.config.backoff_s)
					logger.warning("%s: rate limited, waiting %ss...", label, delay)
					self._sleep(delay)
					continue
				resp.raise_for_status()
				return resp.json()
			except (requests.RequestException, ValueError) as e:
				if attempt >= retries or not _is_retryable(e):
					raise
				logger.warning("%s: error '%s', retrying in %ss...", label, e, self.config.backoff_s)
				self._sleep(self.config.backoff_s)

	def list_activity_ids(self) -> ActivityListing:
		"""Walk the activity listing until a page comes back without ``paging.before_id``.

		Termination relies on the Nike API eventually omitting the cursor. Raises NikeAuthError
		on HTTP 401 or when the listing answers with an ``error_id``; other failures end the walk
		with ``failed`` set and the IDs gathered so far.
		"""
		logger.info("Getting activities list...")
		listing = ActivityListing()
		before_id = None
		while True:
			listing.pages += 1
			logger.info("Opening page %d of activities.", listing.pages)
			try:
				page = self._get_json(self.config.list_page_url(before_id), f"Activities page {listing.pages}")
			except (requests.RequestException, ValueError) as e:
				if _status_of(e) == 401:
					logger.error("Unauthorized access. Please check your access token!")
					raise NikeAuthError("access token rejected with HTTP 401") from e
				logger.error(
					"Error fetching activities: %s. Please check your access token or network connection!", e
				)
				listing.failed = True
				break

			if isinstance(page, dict) and page.get("error_id"):
				logger.error("Are you sure you provided the correct access token?")
				raise NikeAuthError(f"activities list returned error_id {page['error_id']}")
			activities = (page.get("activities") or []) if isinstance(page, dict) else None
			paging = (page.get("paging") or {}) if isinstance(page, dict) else None
			if not isinstance(activities, list) or not isinstance(paging, dict):
				logger.error("Error fetching activities: unexpected response on page %d.", listing.pages)
				listing.failed = True
				break

			for activity in activities:
				if isinstance(activity, dict) and is_claimable_run(activity):
					listing.ids.append(activity.get("id"))

			before_id = paging.get("before_id")
			if not before_id:
				break

		logger.info(
			"Successfully extracted %d running activities from %d pages.", len(listing.ids), listing.pages
		)
		return listing

	def fetch_activity_details(self, activity_id: Any) -> Optional[Dict]:
		"""Fetch the full metrics payload of one activity, or None when it cannot be fetched."""
		logger.info("Getting activity details for %s...", activity_id)
		try:
			data = self._get_json(self.config.detail_url(activity_id), f"Activity {activity_id}")
		except (requests.RequestException, ValueError) as e:
			logger.error("Error fetching activity details for %s: %s", activity_id, e)
			return None
		if not isinstance(data, dict):
			logger.error("Error fetching activity details for %s: unexpected response", activity_id)
			return None
		return data
