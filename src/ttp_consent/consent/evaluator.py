"""Consent Status Evaluator - turns an authority response into a status"""
import structlog

from ttp_consent.consent.models import (
    MDAT_RESEARCH_USE_CODE,
    MDAT_STORE_AND_PROCESS_CODE,
    PATDAT_STORE_AND_USE_CODE,
    TtpConsentStatus,
)
from ttp_consent.fhir import (
    Bundle,
    OperationOutcome,
    Parameters,
    ResourceParseError,
    bundle_consents,
    get_parameter,
    nested_provisions,
    parse_resource,
    provision_codings,
    resource_type_of,
    to_fhir_json,
)


class ConsentStatusEvaluator:
    """
    Evaluates consent status responses of the trusted party.

    Two response shapes are answered:
    - `Parameters` with a boolean `consented` parameter ($isConsented)
    - `Bundle` of consents carrying the MII broad consent provisions

    Anything else, including an absent body, is FAILED_TO_ASK. A technical
    failure is never reported as a rejection.
    """

    def __init__(self, logger=None):
        self.logger = logger or structlog.get_logger(__name__)

    def evaluate(self, response: str | bytes | None) -> TtpConsentStatus:
        if not response:
            return TtpConsentStatus.FAILED_TO_ASK

        try:
            resource = parse_resource(response)
        except ResourceParseError as e:
            self.logger.error("Failed to parse consent response as FHIR R4 resource", error=str(e))
            return TtpConsentStatus.FAILED_TO_ASK

        if isinstance(resource, Parameters):
            return self.evaluate_parameters(resource)
        if isinstance(resource, Bundle):
            return self.evaluate_bundle(resource)
        if isinstance(resource, OperationOutcome):
            self.logger.error(
                "Failed to get consent status from trusted party, probably a configuration error",
                outcome=to_fhir_json(resource),
            )
            return TtpConsentStatus.FAILED_TO_ASK

        self.logger.error(
            "Unexpected consent response resource",
            resource_type=resource_type_of(resource),
        )
        return TtpConsentStatus.FAILED_TO_ASK

    def evaluate_parameters(self, parameters: Parameters) -> TtpConsentStatus:
        consented = get_parameter(parameters, "consented")
        if consented is None or consented.valueBoolean is None:
            self.logger.warning("Consent response carries no 'consented' value")
            return TtpConsentStatus.FAILED_TO_ASK
        if consented.valueBoolean:
            return TtpConsentStatus.BROAD_CONSENT_GIVEN
        return TtpConsentStatus.BROAD_CONSENT_MISSING_OR_REJECTED

    def evaluate_bundle(self, bundle: Bundle) -> TtpConsentStatus:
        """
        Evaluate MII broad consent provisions.

        Given if both "store and process MDAT" and "MDAT research use" are
        permitted, or if "store and use PATDAT" is permitted (older template).
        Only the direct children of each consent provision are read.
        """
        permits: dict[str, bool] = {}
        for consent in bundle_consents(bundle):
            if consent.provision is None:
                continue
            for provision in nested_provisions(consent.provision):
                for coding in provision_codings(provision):
                    if coding.code in (
                        MDAT_STORE_AND_PROCESS_CODE,
                        MDAT_RESEARCH_USE_CODE,
                        PATDAT_STORE_AND_USE_CODE,
                    ):
                        permits[coding.code] = provision.type == "permit"

        if permits.get(MDAT_STORE_AND_PROCESS_CODE) and permits.get(MDAT_RESEARCH_USE_CODE):
            return TtpConsentStatus.BROAD_CONSENT_GIVEN
        if permits.get(PATDAT_STORE_AND_USE_CODE):
            return TtpConsentStatus.BROAD_CONSENT_GIVEN
        return TtpConsentStatus.BROAD_CONSENT_MISSING_OR_REJECTED
