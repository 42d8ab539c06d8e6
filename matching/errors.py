class MatchingError(Exception):
    """Base class for case matching failures."""


class InvalidIncidentError(MatchingError):
    """Incident argument is missing or is not a structured record."""


class InvalidOutcomeError(MatchingError):
    """A case cannot be recorded without an analysis outcome."""
