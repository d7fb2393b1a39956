"""gICS request documents and per-domain parameters"""
from datetime import date, datetime

from ttp_consent.config import GicsSettings
from ttp_consent.consent.exceptions import UnknownConsentDomain
from ttp_consent.consent.models import CONSENT_STATUS_CODE, RESULT_TYPE_SYSTEM, ConsentDomain
from ttp_consent.fhir import Coding, Identifier, Parameters, ParametersParameter

IS_CONSENTED_ENDPOINT = "$isConsented"
CURRENT_POLICY_STATES_ENDPOINT = "$currentPolicyStatesForPerson"
CONSENT_SEARCH_PATH = "Consent"

ID_MATCHING_TYPE_SYSTEM = "https://ths-greifswald.de/fhir/CodeSystem/gics/IdMatchingType"
POLICY_VERSION = "1.1"


def require_domain(domain) -> ConsentDomain:
    """Reject anything outside ConsentDomain."""
    try:
        return ConsentDomain(domain)
    except ValueError:
        raise UnknownConsentDomain(domain) from None


def domain_name(settings: GicsSettings, domain: ConsentDomain) -> str:
    domain = require_domain(domain)
    if domain == ConsentDomain.BROAD_CONSENT:
        return settings.broad_consent_domain_name
    if domain == ConsentDomain.MODEL_PROJECT_GENOME:
        return settings.genome_consent_domain_name
    raise UnknownConsentDomain(domain)


def policy_coding(settings: GicsSettings, domain: ConsentDomain) -> tuple[str, str]:
    """(code, system) of the policy deciding a domain."""
    domain = require_domain(domain)
    if domain == ConsentDomain.BROAD_CONSENT:
        return settings.broad_consent_policy_code, settings.broad_consent_policy_system
    if domain == ConsentDomain.MODEL_PROJECT_GENOME:
        return settings.genome_policy_code, settings.genome_policy_system
    raise UnknownConsentDomain(domain)


def _person_identifier(settings: GicsSettings, subject_id: str) -> ParametersParameter:
    return ParametersParameter(
        name="personIdentifier",
        valueIdentifier=Identifier(system=settings.person_identifier_system, value=subject_id),
    )


def is_consented_request(settings: GicsSettings, subject_id: str) -> Parameters:
    """
    Parameters for `$isConsented` on the broad consent policy.

    The policy version is mandatory but ignored via `ignoreVersionNumber`,
    since the signed version per patient is not known.
    """
    return Parameters(
        parameter=[
            _person_identifier(settings, subject_id),
            ParametersParameter(name="domain", valueString=settings.broad_consent_domain_name),
            ParametersParameter(
                name="policy",
                valueCoding=Coding(
                    code=settings.broad_consent_policy_code,
                    system=settings.broad_consent_policy_system,
                ),
            ),
            ParametersParameter(name="version", valueString=POLICY_VERSION),
            ParametersParameter(
                name="config",
                part=[
                    ParametersParameter(name="ignoreVersionNumber", valueBoolean=True),
                    ParametersParameter(name="unknownStateIsConsideredAsDecline", valueBoolean=False),
                ],
            ),
        ]
    )


def current_policy_states_request(
    settings: GicsSettings,
    subject_id: str,
    as_of: date | datetime,
    domain: ConsentDomain,
) -> Parameters:
    """Parameters for `$currentPolicyStatesForPerson` in a domain as of a date."""
    request_date = as_of.date() if isinstance(as_of, datetime) else as_of
    config = Parameters(
        parameter=[
            ParametersParameter(
                name="idMatchingType",
                valueCoding=Coding(system=ID_MATCHING_TYPE_SYSTEM, code="AT_LEAST_ONE"),
            ),
            ParametersParameter(name="ignoreVersionNumber", valueBoolean=True),
            ParametersParameter(name="unknownStateIsConsideredAsDecline", valueBoolean=False),
            ParametersParameter(name="requestDate", valueDate=request_date),
        ]
    )
    return Parameters(
        parameter=[
            _person_identifier(settings, subject_id),
            ParametersParameter(name="domain", valueString=domain_name(settings, domain)),
            ParametersParameter(name="config", resource=config),
        ]
    )


def consent_search_params(settings: GicsSettings, subject_id: str, domain: ConsentDomain) -> dict[str, str]:
    """Query parameters for the REST consent status search."""
    return {
        "domain:identifier": domain_name(settings, domain),
        "category": f"{RESULT_TYPE_SYSTEM}|{CONSENT_STATUS_CODE}",
        "patient.identifier": f"{settings.person_identifier_system}|{subject_id}",
    }
