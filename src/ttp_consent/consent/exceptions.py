"""Consent resolution errors"""


class ConsentError(Exception):
    """Base class for consent resolution errors."""


class ConsentRequestFailed(ConsentError):
    """
    A full consent query could not be answered.

    Raised for transport failures, error outcomes and unexpected documents.
    Processing of the subject must stop; an empty result would be read as
    "never asked".
    """

    def __init__(self, message: str, payload: str | None = None):
        super().__init__(message)
        self.payload = payload


class UnknownConsentDomain(ConsentError):
    """A consent domain outside the supported set was requested."""

    def __init__(self, domain: object):
        super().__init__(f"Unknown consent domain: {domain!r}")
        self.domain = domain


class ConsentConfigurationError(ConsentError):
    """The consent service is not configured for the requested backend."""
