from __future__ import annotations

import glob
import itertools
import json
import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .config import Config
from .errors import ActivityParseError, MissingGeodataError
from .fetcher import ActivityFetcher
from .gpx import activity_to_gpx

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
	"""Counts gathered over one run of the claim/convert pipeline."""

	listed: int = 0
	fetched: int = 0
	fetch_failed: int = 0
	discovered: int = 0
	converted: int = 0
	skipped: int = 0
	listing_failed: bool = False
	elapsed_s: float = 0.0

	@property
	def elapsed(self) -> str:
		return fmt_elapsed(self.elapsed_s)


def fmt_elapsed(seconds: float) -> str:
	seconds = int(seconds)
	h, rem = divmod(seconds, 3600)
	m, s = divmod(rem, 60)
	return f"{h:02d}:{m:02d}:{s:02d}"


class SimpleProgress:
	def __init__(self, enabled: bool, stream=None):
		self.enabled = enabled
		self.stream = stream or sys.stdout
		self.spinner = itertools.cycle('|/-\\')
		self.last = 0.0

	def update(self, summary: RunSummary):
		if not self.enabled:
			return
		now = time.time()
		if now - self.last < 0.1:
			return
		line = (
			f"\rDetails: {summary.fetched + summary.fetch_failed}/{summary.listed}"
			f" | ok {summary.fetched} | failed {summary.fetch_failed} {next(self.spinner)}"
		)
		self.stream.write(line)
		self.stream.flush()
		self.last = now

	def done(self):
		if not self.enabled:
			return
		self.stream.write("\n")
		self.stream.flush()


def ensure_folders(cfg: Config) -> None:
	os.makedirs(cfg.raw_dir, exist_ok=True)
	os.makedirs(cfg.output_dir, exist_ok=True)


def save_activity_json(activity: Dict, activity_id, cfg: Config) -> str:
	path = os.path.join(cfg.raw_dir, f"{activity_id}.json")
	with open(path, "w", encoding="utf-8") as f:
		json.dump(activity, f)
	return path


def save_gpx(content: bytes, activity_id, cfg: Config) -> str:
	path = os.path.join(cfg.output_dir, f"{activity_id}.gpx")
	with open(path, "wb") as f:
		f.write(content)
	return path


def claim_activities(
	fetcher: ActivityFetcher,
	cfg: Config,
	summary: RunSummary,
	progress: Optional[SimpleProgress] = None,
) -> bool:
	"""Fetch every claimable run and store its raw JSON. Returns False when the listing is empty.

	NikeAuthError from the listing propagates to the caller.
	"""
	listing = fetcher.list_activity_ids()
	summary.listed = len(listing.ids)
	summary.listing_failed = listing.failed
	if not listing.ids:
		logger.error("No activities found!")
		return False

	progress = progress or SimpleProgress(False)
	for activity_id in listing.ids:
		details = fetcher.fetch_activity_details(activity_id)
		if details is None:
			summary.fetch_failed += 1
		else:
			try:
				save_activity_json(details, details.get("id") or activity_id, cfg)
				summary.fetched += 1
			except (OSError, TypeError, ValueError) as e:
				logger.error("Failed to save activity %s: %s", activity_id, e)
				summary.fetch_failed += 1
		progress.update(summary)
	progress.done()
	return True


def discover_activity_files(inputs: Optional[Sequence[str]], cfg: Config) -> List[str]:
	"""Expand input directories into their JSON files; other paths are taken as files."""
	paths = list(inputs) if inputs else [cfg.raw_dir]
	files: List[str] = []
	folders: List[str] = []
	for path in paths:
		if os.path.isdir(path):
			folders.append(path)
			files.extend(sorted(glob.glob(os.path.join(path, "*.json"))))
		else:
			files.append(path)
	if folders:
		logger.info("Parsing activity JSON files from the %s folder(s).", ",".join(folders))
	return files


def convert_file(path: str, cfg: Config) -> bool:
	"""Convert one activity JSON file into a GPX file. Failures are logged and reported as False."""
	try:
		with open(path, "r", encoding="utf-8") as f:
			activity = json.load(f)
		if not isinstance(activity, dict):
			raise ActivityParseError("expected a JSON object")
		content = activity_to_gpx(activity)
		activity_id = activity.get("id") or os.path.splitext(os.path.basename(path))[0]
		save_gpx(content, activity_id, cfg)
		return True
	except MissingGeodataError as e:
		logger.warning("\t%s", e)
	except ActivityParseError as e:
		logger.warning("\tSkipping %s: %s", path, e)
	except (OSError, ValueError, TypeError, OverflowError) as e:
		logger.error("Error occurred while parsing file %s: %s", path, e)
	return False


def run(
	cfg: Config,
	access_token: Optional[str] = None,
	inputs: Optional[Sequence[str]] = None,
	*,
	fetcher: Optional[ActivityFetcher] = None,
	progress: Optional[SimpleProgress] = None,
) -> RunSummary:
	"""Claim activities (when a token is given), then convert the JSON inputs to GPX.

	Raises NikeAuthError before any file is converted when the token is rejected.
	"""
	start = time.monotonic()
	summary = RunSummary()
	ensure_folders(cfg)

	if access_token:
		logger.info("Claiming NRC activities...")
		fetcher = fetcher or ActivityFetcher(access_token, cfg)
		with fetcher:
			found = claim_activities(fetcher, cfg, summary, progress)
		if not found:
			summary.elapsed_s = time.monotonic() - start
			return summary
	elif not inputs:
		logger.info("No access token given; converting activities already saved in %s.", cfg.raw_dir)

	files = discover_activity_files(inputs, cfg)
	summary.discovered = len(files)
	for path in files:
		if convert_file(path, cfg):
			summary.converted += 1
		else:
			summary.skipped += 1

	summary.elapsed_s = time.monotonic() - start
	return summary
