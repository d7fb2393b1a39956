"""
Consent Gate

Decides whether data of a subject may be used for research, from the
configured consent backend and, where consent is declared in the
submitted data, from the declared provisions.
"""
from datetime import date, datetime, timezone
from typing import Iterable

import structlog

from ttp_consent.consent.matcher import provision_type_of
from ttp_consent.consent.models import (
    ConsentDomain,
    ConsentEvaluation,
    ModelProjectConsentPurpose,
    ModelProjectProvision,
    ProvisionType,
    TtpConsentStatus,
)
from ttp_consent.consent.service import (
    ConsentService,
    DisabledConsentService,
    resolve_broad_consent,
    resolve_model_project_consent,
)
from ttp_consent.fhir import (
    Bundle,
    bundle_consents,
    nested_provisions,
    parse_fhir_datetime,
    provision_codings,
)

logger = structlog.get_logger(__name__)

CONSENT_GIVEN_STATUSES = (
    TtpConsentStatus.BROAD_CONSENT_GIVEN,
    TtpConsentStatus.GENOME_CONSENT_SEQUENCING_PERMIT,
)


def model_project_provisions(bundle: Bundle, log=None) -> list[ModelProjectProvision]:
    """
    Extract model project provisions, one per consent.

    Only the first nested provision of each consent is read. Provisions
    with an unknown purpose code are logged and skipped.
    """
    log = log or logger
    provisions = []
    for consent in bundle_consents(bundle):
        children = nested_provisions(consent.provision) if consent.provision else []
        if not children:
            continue
        provision = children[0]
        codings = provision_codings(provision)
        if not codings or codings[0].code is None:
            continue

        code = codings[0].code
        try:
            purpose = ModelProjectConsentPurpose(code)
        except ValueError:
            log.error("Provision code is unknown and cannot be mapped", provision_code=code)
            continue

        provisions.append(
            ModelProjectProvision(
                purpose=purpose,
                type=ProvisionType(provision.type) if provision.type else ProvisionType.NULL,
                date=parse_fhir_datetime(provision.period.start) if provision.period else None,
            )
        )
    return provisions


def genome_status_of(sequencing: ProvisionType) -> TtpConsentStatus:
    if sequencing == ProvisionType.PERMIT:
        return TtpConsentStatus.GENOME_CONSENT_SEQUENCING_PERMIT
    if sequencing == ProvisionType.DENY:
        return TtpConsentStatus.GENOME_SEQUENCING_REJECTED
    return TtpConsentStatus.GENOME_CONSENT_MISSING


def has_sequencing_permit(provisions: Iterable[ModelProjectProvision]) -> bool:
    return any(
        p.purpose == ModelProjectConsentPurpose.SEQUENCING and p.type == ProvisionType.PERMIT
        for p in provisions
    )


def _checks_disabled() -> ConsentEvaluation:
    return ConsentEvaluation(TtpConsentStatus.UNKNOWN_CHECK_FILE, True, "consent check disabled")


class ConsentGate:
    """
    Consent gate for research data submission.

    Usage:
        gate = ConsentGate(create_consent_service(settings))
        evaluation = gate.check_with_policies("patient-1")
        if evaluation.has_consent():
            ...
    """

    def __init__(self, service: ConsentService, logger=None):
        self.service = service
        self.logger = logger or structlog.get_logger(__name__)

    def check(
        self,
        subject_id: str,
        declared_provisions: Iterable[ModelProjectProvision] = (),
    ) -> ConsentEvaluation:
        """
        Check the broad consent status.

        With file based consent the declared provisions decide: a permitted
        sequencing provision counts as consent. Disabled consent checks allow
        every subject.
        """
        if isinstance(self.service, DisabledConsentService):
            return _checks_disabled()

        status = self.service.resolve_status(subject_id)
        declared = list(declared_provisions)

        if status in CONSENT_GIVEN_STATUSES:
            return ConsentEvaluation(status, True, "consent given")
        if status == TtpConsentStatus.UNKNOWN_CHECK_FILE and has_sequencing_permit(declared):
            return ConsentEvaluation(status, True, "sequencing permitted in submitted data", declared)
        if status == TtpConsentStatus.FAILED_TO_ASK:
            self.logger.warning("Consent status could not be requested")
            return ConsentEvaluation(status, False, "consent status could not be requested")
        return ConsentEvaluation(status, False, "no consent given", declared)

    def check_with_policies(
        self,
        subject_id: str,
        as_of: date | datetime | None = None,
    ) -> ConsentEvaluation:
        """
        Check consent from the policy documents.

        - disabled consent checks: allowed
        - broad consent never asked: not allowed
        - broad consent permitted: allowed
        - otherwise allowed only if model project sequencing is permitted

        Raises:
            ConsentRequestFailed: a consent document could not be requested
        """
        if isinstance(self.service, DisabledConsentService):
            return _checks_disabled()

        as_of = as_of or datetime.now(timezone.utc)

        broad = resolve_broad_consent(self.service, subject_id, as_of)
        if not broad.has_been_asked:
            return ConsentEvaluation(
                TtpConsentStatus.BROAD_CONSENT_MISSING, False, "broad consent has not been asked"
            )

        genome = resolve_model_project_consent(self.service, subject_id, as_of)
        provisions = model_project_provisions(genome.document, self.logger)

        broad_type = provision_type_of(
            self.service.resolve_provision(broad.document, as_of, ConsentDomain.BROAD_CONSENT)
        )
        genome_type = provision_type_of(
            self.service.resolve_provision(genome.document, as_of, ConsentDomain.MODEL_PROJECT_GENOME)
        )
        genome_status = genome_status_of(genome_type)

        self.logger.info(
            "Consent policies evaluated",
            broad_consent=broad_type.value,
            genome_sequencing=genome_type.value,
        )

        if broad_type == ProvisionType.NULL:
            return ConsentEvaluation(
                TtpConsentStatus.BROAD_CONSENT_MISSING, False, "no broad consent policy found",
                provisions, genome_status,
            )
        if broad_type == ProvisionType.PERMIT:
            return ConsentEvaluation(
                TtpConsentStatus.BROAD_CONSENT_GIVEN, True, "broad consent given", provisions, genome_status
            )
        if genome_type == ProvisionType.PERMIT:
            return ConsentEvaluation(
                TtpConsentStatus.GENOME_CONSENT_SEQUENCING_PERMIT,
                True,
                "broad consent rejected, model project sequencing permitted",
                provisions,
                genome_status,
            )
        if genome_status == TtpConsentStatus.GENOME_CONSENT_MISSING:
            reason = "broad consent rejected, no model project consent found"
        else:
            reason = "broad consent rejected, model project sequencing rejected"
        return ConsentEvaluation(
            TtpConsentStatus.BROAD_CONSENT_REJECTED, False, reason, provisions, genome_status
        )
