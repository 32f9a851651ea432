"""Metric streams from an NRC activity and their alignment into track points.

An NRC activity detail document carries one entry per sensor in ``metrics``;
each entry has a ``type`` and a list of ``values`` shaped like
``{"start_epoch_ms": ..., "end_epoch_ms": ..., "value": ...}``. Latitude and
longitude are sampled together, while elevation and heart rate arrive on their
own clocks. ``align`` walks the position samples once and carries the latest
applicable auxiliary value forward onto every point.
"""

from __future__ import annotations

import datetime as dt
import enum
import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from . import config
from .errors import ActivityParseError, MissingGeodataError

logger = logging.getLogger(__name__)


class MetricKind(enum.Enum):
	LATITUDE = "latitude"
	LONGITUDE = "longitude"
	ELEVATION = "elevation"
	HEART_RATE = "heart_rate"


# Metric types accepted for each kind, in order of preference
METRIC_TYPES: Dict[MetricKind, Tuple[str, ...]] = {
	MetricKind.LATITUDE: (config.METRIC_LATITUDE,),
	MetricKind.LONGITUDE: (config.METRIC_LONGITUDE,),
	MetricKind.ELEVATION: (config.METRIC_ELEVATION, config.METRIC_ASCENT),
	MetricKind.HEART_RATE: (config.METRIC_HEART_RATE,),
}


@dataclass(frozen=True)
class Sample:
	start_ms: int
	end_ms: int
	value: float

	@classmethod
	def from_json(cls, raw: Dict) -> "Sample":
		try:
			value = float(raw["value"])
			if not math.isfinite(value):
				raise ValueError("value is not a finite number")
			return cls(
				start_ms=int(raw["start_epoch_ms"]),
				end_ms=int(raw["end_epoch_ms"]),
				value=value,
			)
		except (KeyError, TypeError, ValueError) as e:
			raise ActivityParseError(f"Malformed metric sample {raw!r}: {e}") from e


@dataclass(frozen=True)
class MetricStream:
	"""Time-ordered samples of one quantity. Samples must be non-decreasing in start_ms."""

	kind: MetricKind
	samples: Tuple[Sample, ...]

	@classmethod
	def from_values(cls, kind: MetricKind, values: Iterable[Dict]) -> "MetricStream":
		return cls(kind, tuple(Sample.from_json(v) for v in values))

	def __len__(self) -> int:
		return len(self.samples)

	def is_ordered(self) -> bool:
		return all(a.start_ms <= b.start_ms for a, b in zip(self.samples, self.samples[1:]))


@dataclass(frozen=True)
class TrackPoint:
	timestamp_ms: int
	latitude: float
	longitude: float
	elevation: Optional[float] = None
	heart_rate: Optional[float] = None

	@property
	def time(self) -> dt.datetime:
		return dt.datetime.fromtimestamp(self.timestamp_ms / 1000.0, tz=dt.timezone.utc)


def streams_from_activity(activity: Dict) -> Dict[MetricKind, MetricStream]:
	"""Pick the latitude/longitude/elevation/heart-rate streams out of an activity's metric list.

	Raises ActivityParseError when the activity has no metrics at all.
	"""
	metrics = activity.get("metrics")
	if not isinstance(metrics, list):
		raise ActivityParseError(f"The activity {activity.get('id')} doesn't contain metrics information!")
	by_type: Dict[str, Dict] = {}
	for metric in metrics:
		if isinstance(metric, dict) and metric.get("type"):
			# Last entry of a given type wins
			by_type[metric["type"]] = metric
	streams: Dict[MetricKind, MetricStream] = {}
	for kind, types in METRIC_TYPES.items():
		for metric_type in types:
			metric = by_type.get(metric_type)
			if metric is not None:
				streams[kind] = MetricStream.from_values(kind, metric.get("values") or [])
				break
	return streams


def forward_fill(timestamps: Sequence[int], stream: MetricStream) -> List[Optional[float]]:
	"""Assign each timestamp the value of the latest auxiliary sample that applies to it.

	Single monotone sweep: the cursor advances while the timestamp has reached the current
	sample's end, never past the last sample, and never moves backwards. Both inputs must be
	time-ordered; out-of-order regions produce undefined values.
	"""
	if not stream.samples:
		return [None] * len(timestamps)
	samples = stream.samples
	last = len(samples) - 1
	cursor = 0
	values: List[Optional[float]] = []
	for ts in timestamps:
		while cursor < last and ts >= samples[cursor].end_ms:
			cursor += 1
		values.append(samples[cursor].value)
	return values


def align(
	latitude: Optional[MetricStream],
	longitude: Optional[MetricStream],
	elevation: Optional[MetricStream] = None,
	heart_rate: Optional[MetricStream] = None,
) -> List[TrackPoint]:
	"""Merge position and auxiliary streams into one track point per latitude/longitude pair.

	Raises MissingGeodataError when either position stream is absent.
	"""
	if latitude is None or longitude is None:
		raise MissingGeodataError("latitude/longitude streams are missing")

	if len(latitude) != len(longitude):
		logger.warning(
			"\tLatitude has %d samples but longitude has %d; pairing the first %d.",
			len(latitude), len(longitude), min(len(latitude), len(longitude)),
		)

	timestamps: List[int] = []
	coords: List[Tuple[float, float]] = []
	mismatched = 0
	for lat, lon in zip(latitude.samples, longitude.samples):
		if lat.start_ms != lon.start_ms:
			mismatched += 1
		timestamps.append(lat.start_ms)
		coords.append((lat.value, lon.value))
	if mismatched:
		logger.warning("\tThe latitude and longitude data is out of order! (%d mismatched samples)", mismatched)

	aux: Dict[str, List[Optional[float]]] = {}
	for name, stream in (("elevation", elevation), ("heart_rate", heart_rate)):
		if stream is None:
			continue
		if not stream.is_ordered():
			logger.warning("\tThe %s samples are not in time order; values may be misaligned.", name)
		aux[name] = forward_fill(timestamps, stream)

	points: List[TrackPoint] = []
	for idx, (ts, (lat_value, lon_value)) in enumerate(zip(timestamps, coords)):
		points.append(
			TrackPoint(
				timestamp_ms=ts,
				latitude=lat_value,
				longitude=lon_value,
				elevation=aux["elevation"][idx] if "elevation" in aux else None,
				heart_rate=aux["heart_rate"][idx] if "heart_rate" in aux else None,
			)
		)
	return points


def align_activity(activity: Dict) -> List[TrackPoint]:
	"""Align the streams of one activity detail document."""
	streams = streams_from_activity(activity)
	if MetricKind.LATITUDE not in streams or MetricKind.LONGITUDE not in streams:
		raise MissingGeodataError(f"The activity {activity.get('id')} doesn't contain latitude/longitude information!")
	latitude = streams[MetricKind.LATITUDE]
	if not latitude.is_ordered():
		logger.warning("\tThe latitude samples of activity %s are not in time order.", activity.get("id"))
	return align(
		latitude,
		streams[MetricKind.LONGITUDE],
		streams.get(MetricKind.ELEVATION),
		streams.get(MetricKind.HEART_RATE),
	)
