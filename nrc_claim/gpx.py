from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, Iterable, Tuple, Union

from . import config
from .errors import ActivityParseError
from .streams import TrackPoint, align_activity

logger = logging.getLogger(__name__)

GPX_NS = "http://www.topografix.com/GPX/1/1"
GPXTPX_NS = "http://www.garmin.com/xmlschemas/TrackPointExtension/v1"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
SCHEMA_LOCATION = (
	"http://www.topografix.com/GPX/1/1 http://www.topografix.com/GPX/1/1/gpx.xsd "
	"http://www.garmin.com/xmlschemas/TrackPointExtension/v1 "
	"http://www.garmin.com/xmlschemas/TrackPointExtensionv1.xsd"
)
CREATOR = "nrc-claim"


@dataclass(frozen=True)
class TrackDocument:
	"""One track named ``title`` holding a single segment of points."""

	title: str
	points: Tuple[TrackPoint, ...]


def build(title: str, points: Iterable[TrackPoint]) -> TrackDocument:
	return TrackDocument(title=title or "", points=tuple(points))


def _fmt_number(value: Union[int, float]) -> str:
	if isinstance(value, float) and value.is_integer():
		return str(int(value))
	return str(value)


def _fmt_time(point: TrackPoint) -> str:
	return point.time.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def encode(doc: TrackDocument) -> bytes:
	"""Render a track document as GPX 1.1 with Garmin heart-rate extensions."""
	root = ET.Element(
		"gpx",
		{
			"version": "1.1",
			"creator": CREATOR,
			"xmlns": GPX_NS,
			"xmlns:gpxtpx": GPXTPX_NS,
			"xmlns:xsi": XSI_NS,
			"xsi:schemaLocation": SCHEMA_LOCATION,
		},
	)
	trk = ET.SubElement(root, "trk")
	name = ET.SubElement(trk, "name")
	name.text = doc.title
	trkseg = ET.SubElement(trk, "trkseg")
	for point in doc.points:
		trkpt = ET.SubElement(trkseg, "trkpt", lat=_fmt_number(point.latitude), lon=_fmt_number(point.longitude))
		if point.elevation is not None:
			ele = ET.SubElement(trkpt, "ele")
			ele.text = _fmt_number(point.elevation)
		time_el = ET.SubElement(trkpt, "time")
		time_el.text = _fmt_time(point)
		if point.heart_rate is not None:
			extensions = ET.SubElement(trkpt, "extensions")
			tpx = ET.SubElement(extensions, "gpxtpx:TrackPointExtension")
			hr = ET.SubElement(tpx, "gpxtpx:hr")
			hr.text = _fmt_number(point.heart_rate)
	return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def activity_title(activity: Dict) -> str:
	tags = activity.get("tags")
	if not isinstance(tags, dict):
		return ""
	return str(tags.get(config.TAG_NAME) or "")


def activity_to_gpx(activity: Dict) -> bytes:
	"""Convert one NRC activity detail document into GPX bytes.

	Raises ActivityParseError (or MissingGeodataError) when no track can be produced.
	"""
	points = align_activity(activity)
	if not points:
		raise ActivityParseError(f"The activity {activity.get('id')} has no track points!")
	gpx = encode(build(activity_title(activity), points))
	logger.info("Activity %s successfully parsed.", activity.get("id"))
	return gpx
