"""Consent resolution against the trusted party (gICS)"""
from ttp_consent.consent.anonymizer import anonymize_broad_consent
from ttp_consent.consent.evaluator import ConsentStatusEvaluator
from ttp_consent.consent.exceptions import (
    ConsentConfigurationError,
    ConsentError,
    ConsentRequestFailed,
    UnknownConsentDomain,
)
from ttp_consent.consent.gate import ConsentGate
from ttp_consent.consent.matcher import is_date_in_range, match_provision
from ttp_consent.consent.models import (
    ConsentDomain,
    ConsentEvaluation,
    ConsentRecord,
    ProvisionDecision,
    ProvisionType,
    TtpConsentStatus,
)
from ttp_consent.consent.normalizer import normalize_broad_consent
from ttp_consent.consent.service import (
    ConsentService,
    create_consent_service,
    resolve_broad_consent,
    resolve_model_project_consent,
)

__all__ = [
    "ConsentGate",
    "ConsentService",
    "ConsentStatusEvaluator",
    "create_consent_service",
    "resolve_broad_consent",
    "resolve_model_project_consent",
    "match_provision",
    "is_date_in_range",
    "normalize_broad_consent",
    "anonymize_broad_consent",
    "ConsentDomain",
    "ConsentEvaluation",
    "ConsentRecord",
    "ProvisionDecision",
    "ProvisionType",
    "TtpConsentStatus",
    "ConsentError",
    "ConsentRequestFailed",
    "ConsentConfigurationError",
    "UnknownConsentDomain",
]
