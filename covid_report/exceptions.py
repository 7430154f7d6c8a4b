"""Error types raised by the report pipeline."""


class CovidReportError(Exception):
    """Base class for report pipeline failures."""


class NetworkError(CovidReportError):
    """A source could not be retrieved or did not contain a readable table."""


class ParseError(CovidReportError, ValueError):
    """A date header or measure cell could not be parsed."""


class DegenerateFit(CovidReportError, ValueError):
    """The regression predictor has fewer than two distinct values."""


class JoinMismatch(UserWarning):
    """Regions without a population match; per-capita measures degrade to NaN."""
