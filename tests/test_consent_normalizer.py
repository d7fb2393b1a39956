"""
Tests for broad consent normalization and anonymization

Tests conversion of gICS policy states to a single MII broad consent and
replacement of its identifiers.
"""

import re

import pytest

from ttp_consent.consent.anonymizer import anonymize_broad_consent, one_way_token
from ttp_consent.consent.models import (
    BROAD_CONSENT_CATEGORY_CODE,
    BROAD_CONSENT_CATEGORY_SYSTEM,
    BROAD_CONSENT_POLICY_URI,
    BROAD_CONSENT_PROFILE_URI,
    POLICY_RESULT_CODE,
    RESULT_TYPE_SYSTEM,
)
from ttp_consent.consent.normalizer import is_mii_consent, normalize_broad_consent
from ttp_consent.fhir import (
    Bundle,
    Consent,
    concept_has_coding,
    provision_codings,
    to_fhir_dict,
    walk_provisions,
)

SHA256_HEX = re.compile(r"^[0-9a-f]{64}$")


@pytest.fixture
def bundle(policy_states_bundle):
    return Bundle.model_validate(policy_states_bundle)


class TestNormalizeBroadConsent:
    """Test MII broad consent normalization."""

    def test_reduced_to_first_entry(self, bundle):
        normalized = normalize_broad_consent(bundle)

        assert len(normalized.entry) == 1
        assert normalized.total == 1
        assert normalized.entry[0].resource.id == "c-3-7"

    def test_provisions_merged(self, bundle):
        consent = normalize_broad_consent(bundle).entry[0].resource

        nested = consent.provision.provision
        assert len(nested) == 3
        codes = [c.code for p in walk_provisions(consent.provision) for c in provision_codings(p)]
        assert codes == [
            "2.16.840.1.113883.3.1937.777.24.5.3.7",
            "2.16.840.1.113883.3.1937.777.24.5.3.8",
            "2.16.840.1.113883.3.1937.777.24.5.3.27",
        ]

    def test_mii_markers(self, bundle):
        consent = normalize_broad_consent(bundle).entry[0].resource

        assert [p.uri for p in consent.policy] == [BROAD_CONSENT_POLICY_URI]
        assert consent.meta.profile == [BROAD_CONSENT_PROFILE_URI]
        assert consent.policyRule is None
        assert is_mii_consent(consent)
        assert not any(concept_has_coding(c, RESULT_TYPE_SYSTEM, POLICY_RESULT_CODE) for c in consent.category)
        assert concept_has_coding(consent.category[-1], BROAD_CONSENT_CATEGORY_SYSTEM, BROAD_CONSENT_CATEGORY_CODE)

    def test_idempotent(self, bundle):
        once = to_fhir_dict(normalize_broad_consent(bundle))
        twice = to_fhir_dict(normalize_broad_consent(Bundle.model_validate(once)))

        assert twice == once

    def test_existing_markers_not_duplicated(self, consent_builder, bundle_builder):
        consent = consent_builder("c1", "2.16.840.1.113883.3.1937.777.24.5.3.8")
        consent["policy"] = [{"uri": BROAD_CONSENT_POLICY_URI}]
        consent["meta"] = {"profile": [BROAD_CONSENT_PROFILE_URI]}

        normalized = normalize_broad_consent(Bundle.model_validate(bundle_builder(consent)))
        result = normalized.entry[0].resource

        assert len(result.policy) == 1
        assert result.meta.profile == [BROAD_CONSENT_PROFILE_URI]

    def test_empty_bundle_unchanged(self):
        bundle = Bundle(type="collection")
        assert to_fhir_dict(normalize_broad_consent(bundle)) == {"resourceType": "Bundle", "type": "collection"}

    def test_non_consent_first_entry_unchanged(self, policy_states_bundle):
        policy_states_bundle["entry"].insert(0, {"resource": {"resourceType": "Patient", "id": "p1"}})
        bundle = Bundle.model_validate(policy_states_bundle)

        assert len(normalize_broad_consent(bundle).entry) == 4


class TestAnonymizeBroadConsent:
    """Test one-way replacement of consent identifiers."""

    def test_identifiers_replaced(self, bundle):
        anonymized = anonymize_broad_consent(bundle)
        entry = anonymized.entry[0]
        token = entry.resource.id

        assert token != "c-3-7"
        assert SHA256_HEX.match(token)
        assert entry.fullUrl == f"https://gics.test/fhir/Consent/{token}"
        assert isinstance(entry.resource, Consent)
        assert entry.resource.sourceReference.reference == f"QuestionnaireResponse/{token}"

    def test_tokens_differ_per_call(self, policy_states_bundle):
        first = anonymize_broad_consent(Bundle.model_validate(policy_states_bundle))
        second = anonymize_broad_consent(Bundle.model_validate(policy_states_bundle))

        assert first.entry[0].resource.id != second.entry[0].resource.id

    def test_one_way_token_is_salted(self):
        assert one_way_token("c-3-7") != one_way_token("c-3-7")

    def test_empty_bundle_unchanged(self):
        bundle = Bundle(type="searchset")
        assert not anonymize_broad_consent(bundle).entry

    def test_normalize_then_anonymize(self, bundle):
        result = anonymize_broad_consent(normalize_broad_consent(bundle))
        consent = result.entry[0].resource

        assert len(result.entry) == 1
        assert is_mii_consent(consent)
        assert consent.sourceReference.reference.endswith(consent.id)
