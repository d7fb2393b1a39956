"""
Shared fixtures for consent resolution tests.

Builders return plain FHIR JSON dicts shaped like gICS policy state
responses; tests validate them into models where needed.
"""

import pytest
import structlog

BROAD_CONSENT_CODE = "2.16.840.1.113883.3.1937.777.24.5.3.8"
BROAD_CONSENT_SYSTEM = "urn:oid:2.16.840.1.113883.3.1937.777.24.5.3"
GENOME_SYSTEM = "https://ths-greifswald.de/fhir/CodeSystem/gics/Policy/GenomDE_MV"

PERIOD_START = "2025-06-23T00:00:00+02:00"
PERIOD_END = "2055-06-23T00:00:00+02:00"


def _concept(code, system):
    return {"coding": [{"system": system, "code": code}]}


def build_provision(code, system=BROAD_CONSENT_SYSTEM, type="permit", start=PERIOD_START, end=PERIOD_END, nested=()):
    provision = {
        "type": type,
        "period": {"start": start, "end": end},
        "code": [_concept(code, system)],
    }
    if nested:
        provision["provision"] = list(nested)
    return provision


def build_consent(
    consent_id,
    code,
    system=BROAD_CONSENT_SYSTEM,
    type="permit",
    status="active",
    start=PERIOD_START,
    end=PERIOD_END,
    nested=None,
):
    """A gICS policy state: policy rule plus one nested decision for the policy."""
    if nested is None:
        nested = [build_provision(code, system, type, start, end)]
    consent = {
        "resourceType": "Consent",
        "id": consent_id,
        "status": status,
        "scope": _concept("research", "http://terminology.hl7.org/CodeSystem/consentscope"),
        "category": [
            _concept("policy", "http://fhir.de/ConsentManagement/CodeSystem/ResultType")
        ],
        "patient": {"reference": "Patient/subject-1"},
        "dateTime": "2025-06-23T10:15:00+02:00",
        "policyRule": _concept(code, system),
        "provision": {
            "type": type,
            "period": {"start": start, "end": end},
        },
    }
    if nested:
        consent["provision"]["provision"] = list(nested)
    return consent


def build_bundle(*consents, type="collection", base="https://gics.test/fhir/Consent"):
    bundle = {"resourceType": "Bundle", "type": type, "total": len(consents)}
    if consents:
        bundle["entry"] = [{"fullUrl": f"{base}/{c['id']}", "resource": c} for c in consents]
    return bundle


@pytest.fixture
def consent_builder():
    return build_consent


@pytest.fixture
def provision_builder():
    return build_provision


@pytest.fixture
def bundle_builder():
    return build_bundle


@pytest.fixture
def policy_states_bundle():
    """Broad consent policy states as returned for one subject."""
    return build_bundle(
        build_consent("c-3-7", "2.16.840.1.113883.3.1937.777.24.5.3.7"),
        build_consent("c-3-8", BROAD_CONSENT_CODE),
        build_consent("c-3-27", "2.16.840.1.113883.3.1937.777.24.5.3.27", type="deny"),
    )


@pytest.fixture
def genome_bundle():
    return build_bundle(
        build_consent("g-seq", "sequencing", GENOME_SYSTEM),
        build_consent("g-reid", "reidentification", GENOME_SYSTEM, type="deny"),
    )


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()
