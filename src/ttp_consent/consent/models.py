"""Consent Data Models - FHIR Consent aligned"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ttp_consent.fhir import (
    Bundle,
    Consent,
    ConsentProvision,
    bundle_consents,
    nested_provisions,
    parse_fhir_datetime,
    provision_codings,
    to_fhir_dict,
)


class ConsentDomain(str, Enum):
    """Consent template/purpose evaluated at the authority."""
    BROAD_CONSENT = "broad_consent"  # MII broad consent
    MODEL_PROJECT_GENOME = "model_project_genome"  # GenomDE model project


class TtpConsentStatus(str, Enum):
    """Outcome of a consent status query."""
    BROAD_CONSENT_GIVEN = "broad_consent_given"
    BROAD_CONSENT_MISSING_OR_REJECTED = "broad_consent_missing_or_rejected"
    BROAD_CONSENT_MISSING = "broad_consent_missing"
    BROAD_CONSENT_REJECTED = "broad_consent_rejected"
    GENOME_CONSENT_SEQUENCING_PERMIT = "genome_consent_sequencing_permit"
    GENOME_CONSENT_MISSING = "genome_consent_missing"
    GENOME_SEQUENCING_REJECTED = "genome_sequencing_rejected"
    UNKNOWN_CHECK_FILE = "unknown_check_file"  # declared in submitted data
    FAILED_TO_ASK = "failed_to_ask"  # technical failure, never a rejection


class ProvisionType(str, Enum):
    PERMIT = "permit"
    DENY = "deny"
    NULL = "null"  # neutral / not specified


class ModelProjectConsentPurpose(str, Enum):
    SEQUENCING = "sequencing"
    CASE_IDENTIFICATION = "case-identification"
    REIDENTIFICATION = "reidentification"


# MII broad consent markers
BROAD_CONSENT_POLICY_URI = "urn:oid:2.16.840.1.113883.3.1937.777.24.2.1791"
BROAD_CONSENT_PROFILE_URI = (
    "https://www.medizininformatik-initiative.de/fhir/modul-consent/"
    "StructureDefinition/mii-pr-consent-einwilligung"
)
BROAD_CONSENT_CATEGORY_SYSTEM = (
    "https://www.medizininformatik-initiative.de/fhir/modul-consent/"
    "CodeSystem/mii-cs-consent-consent_category"
)
BROAD_CONSENT_CATEGORY_CODE = "2.16.840.1.113883.3.1937.777.24.2.184"

# gICS result type markers
RESULT_TYPE_SYSTEM = "http://fhir.de/ConsentManagement/CodeSystem/ResultType"
POLICY_RESULT_CODE = "policy"
CONSENT_STATUS_CODE = "consent-status"

# MII broad consent indicator provisions
MDAT_STORE_AND_PROCESS_CODE = "2.16.840.1.113883.3.1937.777.24.5.3.7"
MDAT_RESEARCH_USE_CODE = "2.16.840.1.113883.3.1937.777.24.5.3.8"
PATDAT_STORE_AND_USE_CODE = "2.16.840.1.113883.3.1937.777.24.5.3.1"


@dataclass(frozen=True)
class ProvisionDecision:
    """One permit/deny line item of a consent document."""
    type: ProvisionType
    code: str | None = None
    system: str | None = None
    period_start: datetime | None = None
    period_end: datetime | None = None
    provisions: tuple["ProvisionDecision", ...] = ()

    @classmethod
    def from_fhir(cls, provision: ConsentProvision) -> "ProvisionDecision":
        codings = provision_codings(provision)
        first = codings[0] if codings else None
        period = provision.period
        return cls(
            type=ProvisionType(provision.type) if provision.type else ProvisionType.NULL,
            code=first.code if first else None,
            system=first.system if first else None,
            period_start=parse_fhir_datetime(period.start) if period else None,
            period_end=parse_fhir_datetime(period.end) if period else None,
            provisions=tuple(cls.from_fhir(p) for p in nested_provisions(provision)),
        )


@dataclass(frozen=True)
class ModelProjectProvision:
    """A model project consent provision reduced to purpose, type and date."""
    purpose: ModelProjectConsentPurpose
    type: ProvisionType
    date: datetime | None = None


@dataclass(frozen=True)
class ConsentRecord:
    """
    Consent as resolved for one request.

    `document` is the bundle the record was built from and is what gets
    persisted; the other fields are read from its first Consent.
    """
    document: Bundle
    subject_reference: str | None = None
    categories: tuple[tuple[str | None, str | None], ...] = ()
    policy_uris: tuple[str, ...] = ()
    profile_uris: tuple[str, ...] = ()
    provision: ProvisionDecision | None = None
    status: str | None = None
    date_time: datetime | None = None

    @property
    def has_been_asked(self) -> bool:
        """False if the authority holds no consent for the subject."""
        return bool(self.document.entry)

    @classmethod
    def from_bundle(cls, bundle: Bundle) -> "ConsentRecord":
        consents = bundle_consents(bundle)
        if not consents:
            return cls(document=bundle)

        consent: Consent = consents[0]
        return cls(
            document=bundle,
            subject_reference=consent.patient.reference if consent.patient else None,
            categories=tuple(
                (coding.system, coding.code)
                for concept in consent.category or []
                for coding in concept.coding or []
            ),
            policy_uris=tuple(p.uri for p in consent.policy or [] if p.uri),
            profile_uris=tuple(consent.meta.profile or []) if consent.meta else (),
            provision=ProvisionDecision.from_fhir(consent.provision) if consent.provision else None,
            status=consent.status,
            date_time=parse_fhir_datetime(consent.dateTime),
        )

    def consent_documents(self) -> list[dict[str, Any]]:
        """Consent resources of the document as plain JSON dicts."""
        return [to_fhir_dict(c) for c in bundle_consents(self.document)]


@dataclass
class ConsentEvaluation:
    """Result of a consent gate check."""
    ttp_status: TtpConsentStatus
    consent_given: bool
    reason: str = ""
    provisions: list[ModelProjectProvision] = field(default_factory=list)
    genome_status: TtpConsentStatus | None = None

    @property
    def status(self) -> TtpConsentStatus:
        # File based checks report as missing/rejected
        if self.ttp_status == TtpConsentStatus.UNKNOWN_CHECK_FILE:
            return TtpConsentStatus.BROAD_CONSENT_MISSING_OR_REJECTED
        return self.ttp_status

    def has_consent(self) -> bool:
        return self.consent_given
