"""
Consent Resolution Service

Resolves consent status, consent documents and provision decisions for a
subject. Backends share one capability surface and are picked from
configuration:

- GicsConsentService: gICS FHIR operations ($isConsented, $currentPolicyStatesForPerson)
- GicsGetConsentService: gICS REST consent search
- FileConsentService: consent declared in the submitted data
- DisabledConsentService: consent checks switched off
"""
from datetime import date, datetime
from typing import Protocol

import httpx
import structlog

from ttp_consent.config import GicsSettings, Settings
from ttp_consent.consent.anonymizer import anonymize_broad_consent
from ttp_consent.consent.client import TtpClient
from ttp_consent.consent.evaluator import ConsentStatusEvaluator
from ttp_consent.consent.exceptions import ConsentConfigurationError, ConsentRequestFailed
from ttp_consent.consent.gics import (
    CONSENT_SEARCH_PATH,
    CURRENT_POLICY_STATES_ENDPOINT,
    IS_CONSENTED_ENDPOINT,
    consent_search_params,
    current_policy_states_request,
    is_consented_request,
    policy_coding,
    require_domain,
)
from ttp_consent.consent.matcher import match_provision
from ttp_consent.consent.models import (
    ConsentDomain,
    ConsentRecord,
    ProvisionDecision,
    TtpConsentStatus,
)
from ttp_consent.consent.normalizer import normalize_broad_consent
from ttp_consent.fhir import (
    Bundle,
    OperationOutcome,
    ResourceParseError,
    parse_resource,
    resource_type_of,
)

logger = structlog.get_logger(__name__)


class ConsentService(Protocol):
    """Capability surface shared by all consent backends."""

    def resolve_status(self, subject_id: str) -> TtpConsentStatus:
        """Broad consent status; cannot tell "not asked" from "rejected"."""
        ...

    def resolve_consent(
        self, subject_id: str, as_of: date | datetime, domain: ConsentDomain
    ) -> ConsentRecord:
        """Consent policies of a domain as of a date; empty if never asked."""
        ...

    def resolve_provision(
        self, bundle: Bundle, as_of: date | datetime, domain: ConsentDomain
    ) -> ProvisionDecision | None:
        """Decision for the domain's policy; None if not found."""
        ...


def resolve_broad_consent(service: ConsentService, subject_id: str, as_of: date | datetime) -> ConsentRecord:
    return service.resolve_consent(subject_id, as_of, ConsentDomain.BROAD_CONSENT)


def resolve_model_project_consent(
    service: ConsentService, subject_id: str, as_of: date | datetime
) -> ConsentRecord:
    return service.resolve_consent(subject_id, as_of, ConsentDomain.MODEL_PROJECT_GENOME)


def read_consent_bundle(body: str | None, log=None) -> Bundle:
    """
    Read a full consent query response.

    Raises:
        ConsentRequestFailed: no response, error outcome or not a Bundle
    """
    log = log or logger
    if body is None:
        raise ConsentRequestFailed(
            "Consent data request failed - stopping processing. Try again or fix other problems first."
        )

    try:
        resource = parse_resource(body)
    except ResourceParseError as e:
        log.error("Consent request failed, response is not a FHIR resource", error=str(e))
        raise ConsentRequestFailed(f"Consent request failed: {e}", payload=body) from e

    if isinstance(resource, OperationOutcome):
        # very likely a configuration error
        log.error("Consent request failed, check outcome", outcome=body)
        raise ConsentRequestFailed("Consent request failed with an error outcome", payload=body)
    if not isinstance(resource, Bundle):
        resource_type = resource_type_of(resource)
        log.error("Consent request failed, unexpected response", resource_type=resource_type)
        raise ConsentRequestFailed(
            f"Consent request failed, unexpected {resource_type} received", payload=body
        )
    return resource


def to_consent_record(bundle: Bundle, domain: ConsentDomain, log=None) -> ConsentRecord:
    """Broad consent is converted to MII form and anonymized; other domains pass through."""
    if domain == ConsentDomain.BROAD_CONSENT:
        bundle = anonymize_broad_consent(normalize_broad_consent(bundle, log), log)
    return ConsentRecord.from_bundle(bundle)


def match_policy(
    settings: GicsSettings, bundle: Bundle, as_of: date | datetime, domain: ConsentDomain
) -> ProvisionDecision | None:
    """Match the configured policy of a domain."""
    code, system = policy_coding(settings, domain)
    return match_provision(bundle, code, system, as_of)


def _require_uri(settings: GicsSettings) -> str:
    if not settings.uri:
        raise ConsentConfigurationError("Missing gICS URI configuration")
    return settings.uri


class GicsConsentService:
    """Consent from a remote gICS installation via FHIR operations."""

    def __init__(
        self,
        settings: GicsSettings,
        client: TtpClient,
        evaluator: ConsentStatusEvaluator | None = None,
        logger=None,
    ):
        _require_uri(settings)
        self.settings = settings
        self.client = client
        self.logger = logger or structlog.get_logger(__name__)
        self.evaluator = evaluator or ConsentStatusEvaluator(self.logger)
        self.logger.info("GicsConsentService initialized", uri=settings.uri)

    def __enter__(self) -> "GicsConsentService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP connection pool of the client."""
        self.client.close()

    def resolve_status(self, subject_id: str) -> TtpConsentStatus:
        body = self.client.post(IS_CONSENTED_ENDPOINT, is_consented_request(self.settings, subject_id))
        return self.evaluator.evaluate(body)

    def resolve_consent(
        self, subject_id: str, as_of: date | datetime, domain: ConsentDomain
    ) -> ConsentRecord:
        domain = require_domain(domain)
        request = current_policy_states_request(self.settings, subject_id, as_of, domain)
        body = self.client.post(CURRENT_POLICY_STATES_ENDPOINT, request)
        bundle = read_consent_bundle(body, self.logger)
        return to_consent_record(bundle, domain, self.logger)

    def resolve_provision(
        self, bundle: Bundle, as_of: date | datetime, domain: ConsentDomain
    ) -> ProvisionDecision | None:
        return match_policy(self.settings, bundle, as_of, domain)


class GicsGetConsentService:
    """Consent from a remote gICS installation via REST consent search."""

    def __init__(
        self,
        settings: GicsSettings,
        client: TtpClient,
        evaluator: ConsentStatusEvaluator | None = None,
        logger=None,
    ):
        _require_uri(settings)
        self.settings = settings
        self.client = client
        self.logger = logger or structlog.get_logger(__name__)
        self.evaluator = evaluator or ConsentStatusEvaluator(self.logger)
        self.logger.info("GicsGetConsentService initialized", uri=settings.uri)

    def __enter__(self) -> "GicsGetConsentService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP connection pool of the client."""
        self.client.close()

    def resolve_status(self, subject_id: str) -> TtpConsentStatus:
        params = consent_search_params(self.settings, subject_id, ConsentDomain.BROAD_CONSENT)
        return self.evaluator.evaluate(self.client.get(CONSENT_SEARCH_PATH, params))

    def resolve_consent(
        self, subject_id: str, as_of: date | datetime, domain: ConsentDomain
    ) -> ConsentRecord:
        domain = require_domain(domain)
        params = consent_search_params(self.settings, subject_id, domain)
        bundle = read_consent_bundle(self.client.get(CONSENT_SEARCH_PATH, params), self.logger)
        return to_consent_record(bundle, domain, self.logger)

    def resolve_provision(
        self, bundle: Bundle, as_of: date | datetime, domain: ConsentDomain
    ) -> ProvisionDecision | None:
        return match_policy(self.settings, bundle, as_of, domain)


class FileConsentService:
    """Consent is declared in the submitted data; nothing is asked remotely."""

    def __init__(self, logger=None):
        self.logger = logger or structlog.get_logger(__name__)
        self.logger.info("FileConsentService initialized")

    def resolve_status(self, subject_id: str) -> TtpConsentStatus:
        return TtpConsentStatus.UNKNOWN_CHECK_FILE

    def resolve_consent(
        self, subject_id: str, as_of: date | datetime, domain: ConsentDomain
    ) -> ConsentRecord:
        require_domain(domain)
        return ConsentRecord.from_bundle(Bundle(type="searchset"))

    def resolve_provision(
        self, bundle: Bundle, as_of: date | datetime, domain: ConsentDomain
    ) -> ProvisionDecision | None:
        require_domain(domain)
        return None


class DisabledConsentService:
    """Consent checks switched off; every subject passes the gate unasked."""

    def __init__(self, logger=None):
        self.logger = logger or structlog.get_logger(__name__)
        self.logger.info("Consent checks disabled")

    def resolve_status(self, subject_id: str) -> TtpConsentStatus:
        return TtpConsentStatus.UNKNOWN_CHECK_FILE

    def resolve_consent(
        self, subject_id: str, as_of: date | datetime, domain: ConsentDomain
    ) -> ConsentRecord:
        require_domain(domain)
        return ConsentRecord.from_bundle(Bundle(type="searchset"))

    def resolve_provision(
        self, bundle: Bundle, as_of: date | datetime, domain: ConsentDomain
    ) -> ProvisionDecision | None:
        require_domain(domain)
        return None


def create_consent_service(
    settings: Settings,
    http_client: httpx.Client | None = None,
    logger=None,
) -> ConsentService:
    """
    Build the consent backend selected by `consent.service`.

    Raises:
        ConsentConfigurationError: gICS selected without a URI, or unknown backend
    """
    backend = settings.consent.service
    log = logger or structlog.get_logger(__name__).bind(consent_service=backend)

    if backend in ("gics", "gics-get"):
        client = TtpClient(
            _require_uri(settings.gics),
            credentials=settings.gics.credentials,
            retry=settings.retry,
            http_client=http_client,
            logger=log,
        )
        if backend == "gics":
            return GicsConsentService(settings.gics, client, logger=log)
        return GicsGetConsentService(settings.gics, client, logger=log)
    if backend == "file":
        return FileConsentService(log)
    if backend == "none":
        return DisabledConsentService(log)
    raise ConsentConfigurationError(f"Unknown consent service: {backend!r}")
