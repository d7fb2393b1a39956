"""FHIR R4B documents exchanged with the consent authority"""
from ttp_consent.fhir.parser import (
    ResourceParseError,
    parse_resource,
    parse_resource_as,
    to_fhir_dict,
    to_fhir_json,
)
from ttp_consent.fhir.resources import (
    Bundle,
    BundleEntry,
    CodeableConcept,
    Coding,
    Consent,
    ConsentPolicy,
    ConsentProvision,
    Identifier,
    Meta,
    OperationOutcome,
    OperationOutcomeIssue,
    Parameters,
    ParametersParameter,
    Period,
    Reference,
    Resource,
    bundle_consents,
    concept_codings,
    concept_has_coding,
    get_parameter,
    nested_provisions,
    parse_fhir_datetime,
    provision_codings,
    resource_type_of,
    walk_provisions,
)

__all__ = [
    "Bundle",
    "BundleEntry",
    "CodeableConcept",
    "Coding",
    "Consent",
    "ConsentPolicy",
    "ConsentProvision",
    "Identifier",
    "Meta",
    "OperationOutcome",
    "OperationOutcomeIssue",
    "Parameters",
    "ParametersParameter",
    "Period",
    "Reference",
    "Resource",
    "ResourceParseError",
    "bundle_consents",
    "concept_codings",
    "concept_has_coding",
    "get_parameter",
    "nested_provisions",
    "parse_fhir_datetime",
    "parse_resource",
    "parse_resource_as",
    "provision_codings",
    "resource_type_of",
    "to_fhir_dict",
    "to_fhir_json",
    "walk_provisions",
]
