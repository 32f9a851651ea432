import json

import pytest
import requests

from nrc_claim.config import Config


def _sample(start, end, value):
	return {"start_epoch_ms": start, "end_epoch_ms": end, "value": value}


@pytest.fixture
def sample():
	return _sample


@pytest.fixture
def make_activity():
	def _make(activity_id="a1", title=None, lat=None, lon=None, elevation=None, heart_rate=None, elevation_type="elevation"):
		metrics = []
		if lat is not None:
			metrics.append({"type": "latitude", "values": lat})
		if lon is not None:
			metrics.append({"type": "longitude", "values": lon})
		if elevation is not None:
			metrics.append({"type": elevation_type, "values": elevation})
		if heart_rate is not None:
			metrics.append({"type": "heart_rate", "values": heart_rate})
		activity = {"id": activity_id, "metrics": metrics}
		if title is not None:
			activity["tags"] = {"com.nike.name": title}
		return activity

	return _make


@pytest.fixture
def three_point_activity(make_activity):
	return make_activity(
		activity_id="run-1",
		title="Morning Run",
		lat=[_sample(0, 1000, 52.1), _sample(1000, 2000, 52.2), _sample(2000, 3000, 52.3)],
		lon=[_sample(0, 1000, 4.1), _sample(1000, 2000, 4.2), _sample(2000, 3000, 4.3)],
		elevation=[_sample(0, 1500, 10), _sample(1500, 3000, 20)],
	)


@pytest.fixture
def make_response():
	def _make(status=200, body=None, headers=None, url="https://api.nike.com/test"):
		resp = requests.Response()
		resp.status_code = status
		resp._content = json.dumps(body).encode("utf-8") if body is not None else b""
		resp.headers.update(headers or {})
		resp.url = url
		resp.encoding = "utf-8"
		return resp

	return _make


@pytest.fixture
def cfg(tmp_path):
	return Config(
		raw_dir=str(tmp_path / "json"),
		output_dir=str(tmp_path / "gpx"),
		timeout_s=5,
		retries=3,
		backoff_s=0,
	)
