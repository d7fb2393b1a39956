"""Consent Anonymizer - replaces consent identifiers with a one-way token"""
import hashlib
import secrets

import structlog

from ttp_consent.fhir import Bundle, Consent, Reference, resource_type_of

logger = structlog.get_logger(__name__)

SOURCE_REFERENCE_TYPE = "QuestionnaireResponse"


def one_way_token(identifier: str) -> str:
    """SHA-256 of a fresh random salt and the identifier."""
    salt = secrets.token_hex(16)
    return hashlib.sha256(f"{salt}_{identifier}".encode("utf-8")).hexdigest()


def anonymize_broad_consent(bundle: Bundle, log=None) -> Bundle:
    """
    Replace the identifiers of the first bundle entry in place.

    The resource id, the id inside the entry's fullUrl and the consent's
    source reference are rewritten to the same token. Tokens differ on
    every call.
    """
    log = log or logger
    if not bundle.entry or bundle.entry[0].resource is None:
        return bundle

    entry = bundle.entry[0]
    resource = entry.resource
    original_id = resource.id or ""
    token = one_way_token(original_id)

    resource.id = token
    if entry.fullUrl and original_id:
        entry.fullUrl = entry.fullUrl.replace(original_id, token)
    if isinstance(resource, Consent):
        resource.sourceReference = Reference(reference=f"{SOURCE_REFERENCE_TYPE}/{token}")

    log.debug("Anonymized consent entry", resource_type=resource_type_of(resource))
    return bundle
