"""
Consent Normalizer

Reshapes a gICS policy state bundle into a single MII broad consent
resource: canonical policy, profile and category, with the provisions of
all entries merged into the first one.
"""
import structlog

from ttp_consent.consent.models import (
    BROAD_CONSENT_CATEGORY_CODE,
    BROAD_CONSENT_CATEGORY_SYSTEM,
    BROAD_CONSENT_POLICY_URI,
    BROAD_CONSENT_PROFILE_URI,
    POLICY_RESULT_CODE,
    RESULT_TYPE_SYSTEM,
)
from ttp_consent.fhir import (
    Bundle,
    CodeableConcept,
    Coding,
    Consent,
    ConsentPolicy,
    ConsentProvision,
    Meta,
    bundle_consents,
    concept_has_coding,
)

logger = structlog.get_logger(__name__)


def is_mii_consent(consent: Consent) -> bool:
    """Check for the MII broad consent category."""
    return any(
        concept_has_coding(concept, BROAD_CONSENT_CATEGORY_SYSTEM, BROAD_CONSENT_CATEGORY_CODE)
        for concept in consent.category or []
    )


def normalize_broad_consent(bundle: Bundle, log=None) -> Bundle:
    """
    Convert a gICS result bundle to an MII broad consent bundle in place.

    No-op for empty bundles, bundles not starting with a Consent and
    bundles already normalized.

    Returns:
        The same bundle, reduced to its first entry
    """
    log = log or logger
    if not bundle.entry or not isinstance(bundle.entry[0].resource, Consent):
        return bundle

    first_entry = bundle.entry[0]
    consent: Consent = first_entry.resource
    if is_mii_consent(consent):
        return bundle

    policies = list(consent.policy or [])
    if not any(p.uri == BROAD_CONSENT_POLICY_URI for p in policies):
        consent.policy = policies + [ConsentPolicy(uri=BROAD_CONSENT_POLICY_URI)]

    if consent.meta is None:
        consent.meta = Meta()
    profiles = list(consent.meta.profile or [])
    if BROAD_CONSENT_PROFILE_URI not in profiles:
        consent.meta.profile = profiles + [BROAD_CONSENT_PROFILE_URI]

    consent.policyRule = None

    categories = [
        concept for concept in consent.category or []
        if not concept_has_coding(concept, RESULT_TYPE_SYSTEM, POLICY_RESULT_CODE)
    ]
    categories.append(
        CodeableConcept(
            coding=[
                Coding(system=BROAD_CONSENT_CATEGORY_SYSTEM, code=BROAD_CONSENT_CATEGORY_CODE)
            ]
        )
    )
    consent.category = categories

    if consent.provision is None:
        consent.provision = ConsentProvision()
    merged = [
        other.provision for other in bundle_consents(bundle)[1:]
        if other.provision is not None
    ]
    if merged:
        consent.provision.provision = list(consent.provision.provision or []) + merged

    merged_entries = len(bundle.entry) - 1
    bundle.entry = [first_entry]
    if bundle.total is not None:
        bundle.total = 1

    log.debug("Normalized broad consent", merged_entries=merged_entries)
    return bundle
