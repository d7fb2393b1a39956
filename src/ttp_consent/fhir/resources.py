"""
FHIR R4B Resources

The part of FHIR exchanged with the consent authority, taken from the
fhir.resources R4B models, plus small accessors for the elements the
consent code reads. FHIR list elements default to None; the accessors
return empty lists instead.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Iterator

from fhir.resources.R4B.bundle import Bundle, BundleEntry
from fhir.resources.R4B.codeableconcept import CodeableConcept
from fhir.resources.R4B.coding import Coding
from fhir.resources.R4B.consent import Consent, ConsentPolicy, ConsentProvision
from fhir.resources.R4B.identifier import Identifier
from fhir.resources.R4B.meta import Meta
from fhir.resources.R4B.operationoutcome import OperationOutcome, OperationOutcomeIssue
from fhir.resources.R4B.parameters import Parameters, ParametersParameter
from fhir.resources.R4B.period import Period
from fhir.resources.R4B.reference import Reference
from fhir.resources.R4B.resource import Resource

# Map FHIR resource types to their classes
RESOURCE_CLASSES: dict[str, type[Resource]] = {
    "Bundle": Bundle,
    "Consent": Consent,
    "Parameters": Parameters,
    "OperationOutcome": OperationOutcome,
}


def parse_fhir_datetime(value: Any) -> datetime | None:
    """
    Normalize a FHIR dateTime to a timezone-aware datetime.

    Accepts full timestamps, plain dates and the year / year-month
    partials FHIR allows. Naive values are read as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if len(text) == 4:
            text += "-01-01"
        elif len(text) == 7:
            text += "-01"
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported dateTime value: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def concept_codings(concepts: list[CodeableConcept] | CodeableConcept | None) -> list[Coding]:
    if concepts is None:
        return []
    if isinstance(concepts, CodeableConcept):
        concepts = [concepts]
    return [coding for concept in concepts for coding in concept.coding or []]


def concept_has_coding(concept: CodeableConcept, system: str | None, code: str | None) -> bool:
    return any(c.system == system and c.code == code for c in concept.coding or [])


def provision_codings(provision: ConsentProvision) -> list[Coding]:
    return concept_codings(provision.code)


def nested_provisions(provision: ConsentProvision) -> list[ConsentProvision]:
    """Direct children of a provision."""
    return list(provision.provision or [])


def walk_provisions(provision: ConsentProvision) -> Iterator[ConsentProvision]:
    """Yield all nested provisions depth-first, in document order."""
    for nested in provision.provision or []:
        yield nested
        yield from walk_provisions(nested)


def bundle_consents(bundle: Bundle) -> list[Consent]:
    """All Consent resources in document order."""
    return [e.resource for e in bundle.entry or [] if isinstance(e.resource, Consent)]


def get_parameter(parameters: Parameters, name: str) -> ParametersParameter | None:
    """Get the first parameter with the given name."""
    return next((p for p in parameters.parameter or [] if p.name == name), None)


def resource_type_of(resource: Resource) -> str:
    return resource.get_resource_type()

