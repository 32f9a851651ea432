class NikeAuthError(Exception):
	"""The access token was rejected by the Nike API."""


class ActivityParseError(ValueError):
	"""An activity JSON document cannot be turned into a track."""


class MissingGeodataError(ActivityParseError):
	"""The activity has no latitude/longitude streams."""
