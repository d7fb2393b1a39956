"""
Provision Matcher

Locates the decision for a policy (code, system) inside a consent bundle
as of a given date. Pure functions, no I/O.
"""
from datetime import date, datetime, time, timezone
from typing import Iterable, Iterator

from ttp_consent.consent.models import ProvisionDecision, ProvisionType
from ttp_consent.fhir import (
    Bundle,
    Coding,
    Consent,
    ConsentProvision,
    Period,
    bundle_consents,
    concept_codings,
    nested_provisions,
    parse_fhir_datetime,
    provision_codings,
    walk_provisions,
)


def as_datetime(value: date | datetime) -> datetime:
    """Dates are taken as midnight UTC, naive datetimes as UTC."""
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def is_date_in_range(as_of: date | datetime, period: Period | None) -> bool:
    """Check `start <= as_of <= end`; a missing bound is open."""
    if period is None:
        return True
    moment = as_datetime(as_of)
    start = parse_fhir_datetime(period.start)
    end = parse_fhir_datetime(period.end)
    if start is not None and moment < start:
        return False
    if end is not None and moment > end:
        return False
    return True


def has_coding(codings: Iterable[Coding], code: str | None, system: str | None) -> bool:
    """Exact match on both code and system."""
    return any(coding.code == code and coding.system == system for coding in codings)


def _policy_entries(consent: Consent) -> Iterator[tuple[list[Coding], ConsentProvision]]:
    """
    (policy codings, provision) pairs of a consent.

    A consent with a policy rule is one entry. Normalized broad consents
    have no policy rule and carry one former entry per direct child.
    """
    if consent.provision is None:
        return
    if consent.policyRule is not None:
        yield concept_codings(consent.policyRule), consent.provision
        return
    for child in nested_provisions(consent.provision):
        codings = provision_codings(child)
        codings += [c for nested in walk_provisions(child) for c in provision_codings(nested)]
        yield codings, child


def _find_nested(
    provision: ConsentProvision,
    code: str | None,
    system: str | None,
    as_of: date | datetime,
) -> ConsentProvision | None:
    for nested in walk_provisions(provision):
        if has_coding(provision_codings(nested), code, system) and is_date_in_range(as_of, nested.period):
            return nested
    return None


def match_provision(
    bundle: Bundle,
    code: str | None,
    system: str | None,
    as_of: date | datetime,
) -> ProvisionDecision | None:
    """
    Find the decision for a policy as of a date.

    Only active consents are read. An entry qualifies if its policy coding
    equals (code, system) and its provision period contains `as_of`; the
    first one in document order wins. Within it the first nested provision
    with the same coding and a period containing `as_of` is returned.
    Without such a nested provision the entry's own provision is the answer.

    Returns:
        The matching decision, or None if no entry qualifies
    """
    for consent in bundle_consents(bundle):
        if consent.status != "active":
            continue
        for codings, provision in _policy_entries(consent):
            if not has_coding(codings, code, system) or not is_date_in_range(as_of, provision.period):
                continue
            nested = _find_nested(provision, code, system, as_of)
            return ProvisionDecision.from_fhir(nested or provision)
    return None


def provision_type_of(decision: ProvisionDecision | None) -> ProvisionType:
    """Render a match result; not found is neutral, never a denial."""
    if decision is None:
        return ProvisionType.NULL
    return decision.type
