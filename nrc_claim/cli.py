from __future__ import annotations

import argparse
import logging
import sys
from typing import Iterable, Optional

from .config import ACCESS_TOKEN_ENV, Config, load_access_token, positive_int
from .errors import NikeAuthError
from .pipeline import SimpleProgress, run

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_LISTING_FAILED = 1
EXIT_UNAUTHORIZED = 2


def _positive_int_arg(value: str) -> int:
	try:
		return positive_int(value, "value")
	except ValueError as e:
		raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="nrc-claim",
		description="Claim your NRC activities and convert them to GPX format.",
	)
	parser.add_argument(
		"-t", "--token",
		default=None,
		help=f"Access token retrieved from the browser (falls back to ${ACCESS_TOKEN_ENV}).",
	)
	parser.add_argument(
		"-i", "--input",
		nargs="+",
		default=None,
		metavar="PATH",
		help="Directories containing NRC activities in JSON format, or individual NRC JSON files.",
	)
	parser.add_argument("--raw-dir", default=None, help="Folder for fetched activity JSON (default activities/json).")
	parser.add_argument("--output-dir", default=None, help="Folder for generated GPX files (default activities/gpx).")
	parser.add_argument("--timeout", type=_positive_int_arg, default=None, help="Timeout in seconds per API request.")
	parser.add_argument("--retries", type=_positive_int_arg, default=None, help="Attempts per API request on transient errors.")
	parser.add_argument("--progress-bar", action="store_true", help="Show a single-line progress bar while fetching details.")
	verbosity = parser.add_mutually_exclusive_group()
	verbosity.add_argument("-v", "--verbose", action="store_true", help="Log debug output.")
	verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors.")
	return parser


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
	level = logging.INFO
	if verbose:
		level = logging.DEBUG
	elif quiet:
		level = logging.WARNING
	logging.basicConfig(level=level, format="%(message)s")


def main(argv: Optional[Iterable[str]] = None) -> int:
	parser = build_parser()
	args = parser.parse_args(list(argv) if argv is not None else None)
	configure_logging(args.verbose, args.quiet)

	try:
		cfg = Config.from_env(
			raw_dir=args.raw_dir,
			output_dir=args.output_dir,
			timeout_s=args.timeout,
			retries=args.retries,
		)
	except ValueError as e:
		parser.error(str(e))

	access_token = None
	if args.input:
		if args.token:
			logger.warning("Both --input and --token given; only converting the input files.")
	else:
		access_token = load_access_token(args.token)

	try:
		summary = run(cfg, access_token, args.input, progress=SimpleProgress(args.progress_bar))
	except NikeAuthError as e:
		logger.error("Authentication failed: %s", e)
		return EXIT_UNAUTHORIZED

	if access_token:
		print(f"Claimed {summary.fetched} of {summary.listed} run activities into {cfg.raw_dir}.")
		if summary.fetch_failed:
			print(f"Failed to fetch {summary.fetch_failed} activities.")
	if summary.discovered:
		print(f"Parsed {summary.converted} out of {summary.discovered} total run activities.")
	print(f"Total time taken: {summary.elapsed}.")

	if summary.listing_failed:
		logger.error("The activities list could not be read completely.")
		return EXIT_LISTING_FAILED
	return EXIT_OK


if __name__ == "__main__":
	sys.exit(main())
