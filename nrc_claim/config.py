from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

NIKE_ACTIVITIES_LIST_URL = (
	"https://api.nike.com/plus/v3/activities/before_id/v3/*"
	"?limit=30&types=run%2Cjogging&include_deleted=false"
)
NIKE_ACTIVITIES_LIST_PAGE_URL_TMPL = (
	"https://api.nike.com/plus/v3/activities/before_id/v3/{before_id}"
	"?limit=30&types=run%2Cjogging&include_deleted=false"
)
NIKE_ACTIVITY_DETAIL_URL_TMPL = "https://api.nike.com/sport/v3/me/activity/{activity_id}?metrics=ALL"

ACTIVITIES_ROOT = "activities"
ACTIVITIES_JSON_FOLDER = "json"
ACTIVITIES_GPX_FOLDER = "gpx"

# Metric "type" values in the activity detail payload
METRIC_LATITUDE = "latitude"
METRIC_LONGITUDE = "longitude"
METRIC_ELEVATION = "elevation"
METRIC_ASCENT = "ascent"
METRIC_HEART_RATE = "heart_rate"

TAG_NAME = "com.nike.name"
TAG_RUN_TYPE = "com.nike.running.runtype"
RUN_TYPE_MANUAL = "manual"
ACTIVITY_TYPE_RUN = "run"

ACCESS_TOKEN_ENV = "NRC_ACCESS_TOKEN"



def positive_int(value, name: str) -> int:
	try:
		number = int(str(value).strip())
	except ValueError:
		number = 0
	if number < 1:
		raise ValueError(f"{name} must be a positive integer, got {value!r}")
	return number


@dataclass(frozen=True)
class Config:
	"""Endpoints, folders and request tuning shared by the fetcher and the driver."""

	list_url: str = NIKE_ACTIVITIES_LIST_URL
	list_page_url_tmpl: str = NIKE_ACTIVITIES_LIST_PAGE_URL_TMPL
	detail_url_tmpl: str = NIKE_ACTIVITY_DETAIL_URL_TMPL
	raw_dir: str = os.path.join(ACTIVITIES_ROOT, ACTIVITIES_JSON_FOLDER)
	output_dir: str = os.path.join(ACTIVITIES_ROOT, ACTIVITIES_GPX_FOLDER)
	timeout_s: int = 60
	retries: int = 3
	backoff_s: float = 5

	def list_page_url(self, before_id: Optional[str]) -> str:
		if before_id is None:
			return self.list_url
		return self.list_page_url_tmpl.replace("{before_id}", str(before_id))

	def detail_url(self, activity_id: str) -> str:
		return self.detail_url_tmpl.replace("{activity_id}", str(activity_id))

	@classmethod
	def from_env(cls, **overrides) -> "Config":
		"""Build a config from NRC_* environment variables, then apply explicit overrides.

		Overrides whose value is None are ignored so argparse defaults can be passed straight through.
		Raises ValueError naming the variable when NRC_TIMEOUT or NRC_RETRIES is not a positive integer.
		"""
		cfg = cls()
		env = {
			"raw_dir": os.environ.get("NRC_RAW_DIR"),
			"output_dir": os.environ.get("NRC_OUTPUT_DIR"),
			"timeout_s": os.environ.get("NRC_TIMEOUT"),
			"retries": os.environ.get("NRC_RETRIES"),
		}
		values = {k: v for k, v in env.items() if v}
		if "timeout_s" in values:
			values["timeout_s"] = positive_int(values["timeout_s"], "NRC_TIMEOUT")
		if "retries" in values:
			values["retries"] = positive_int(values["retries"], "NRC_RETRIES")
		values.update({k: v for k, v in overrides.items() if v is not None})
		return replace(cfg, **values)


def load_access_token(explicit: Optional[str] = None) -> Optional[str]:
	"""Return the access token from the command line or NRC_ACCESS_TOKEN, if any."""
	if explicit:
		return explicit.strip()
	token = os.environ.get(ACCESS_TOKEN_ENV)
	if token and token.strip():
		return token.strip()
	return None
