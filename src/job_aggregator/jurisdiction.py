"""
Pay-transparency rules for job listings.

The strict region sets are non-exhaustive and pragmatic. They flag risk and
are not legal advice. They are data (JurisdictionRules) so they can be updated
from a JSON file without a code change.
"""

import json
import logging
import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from job_aggregator.models import Job
from job_aggregator.salary import has_pay_range

logger = logging.getLogger(__name__)

Country = Literal["US", "CA"]

US_STATE_CODES = (
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "DC", "FL", "GA", "HI", "ID",
    "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD", "MA", "MI", "MN", "MS", "MO",
    "MT", "NE", "NV", "NH", "NJ", "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA",
    "RI", "SC", "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
)
CA_PROVINCE_CODES = ("AB", "BC", "MB", "NB", "NL", "NS", "NT", "NU", "ON", "PE", "QC", "SK", "YT")

# Region codes are matched case-sensitively so "ca" inside "Chicago" or "on"
# in prose never registers as a region.
US_STATE_PATTERN = re.compile(r"\b(" + "|".join(US_STATE_CODES) + r")\b")
CA_PROVINCE_PATTERN = re.compile(r"\b(" + "|".join(CA_PROVINCE_CODES) + r")\b")

CANADA_PATTERN = re.compile(r"\bcanada\b", re.IGNORECASE)
US_PATTERN = re.compile(r"\b(?:united states|usa)\b|\bu\.s\.", re.IGNORECASE)
US_CODE_PATTERN = re.compile(r"\bUS\b")

# Two-letter state codes double as ISO country codes (IN, DE, CO, MA, ...).
# A country name, or a large city in such a country, marks the location as
# foreign before any state code is considered. Unlisted places with a
# colliding code ("Pereira, CO") are still read as US states.
FOREIGN_COUNTRIES = (
    "united kingdom", "uk", "england", "ireland", "germany", "deutschland", "france",
    "spain", "portugal", "italy", "netherlands", "poland", "india", "colombia",
    "morocco", "mexico", "brazil", "argentina", "australia", "singapore", "japan",
    "israel", "albania", "armenia", "moldova", "pakistan", "philippines",
)
FOREIGN_CITIES = (
    "bangalore", "bengaluru", "mumbai", "delhi", "new delhi", "hyderabad", "pune",
    "chennai", "gurgaon", "gurugram", "noida", "berlin", "munich", "hamburg",
    "frankfurt", "cologne", "bogota", "bogotá", "medellin", "medellín", "cali",
    "rabat", "casablanca", "marrakech", "tirana", "yerevan", "chisinau", "manila",
    "lahore", "karachi",
)
FOREIGN_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(name) for name in FOREIGN_COUNTRIES + FOREIGN_CITIES) + r")\b",
    re.IGNORECASE,
)


class JurisdictionRules(BaseModel):
    """Regions with the most aggressive pay-transparency enforcement, and the penalties applied."""

    us_strict_states: frozenset[str] = Field(default=frozenset({"CA", "CO", "NY", "WA"}))
    ca_strict_provinces: frozenset[str] = Field(default=frozenset({"BC"}))
    strict_penalty: float = Field(default=0.92, gt=0, le=1)
    default_penalty: float = Field(default=0.95, gt=0, le=1)


DEFAULT_RULES = JurisdictionRules()


def load_rules(path: str | Path | None) -> JurisdictionRules:
    """Load rules from a JSON file. Falls back to the defaults when no path is given."""
    if not path:
        return DEFAULT_RULES
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    rules = JurisdictionRules.model_validate(data)
    logger.info(
        f"Loaded jurisdiction rules from {path}: "
        f"{len(rules.us_strict_states)} strict US states, "
        f"{len(rules.ca_strict_provinces)} strict CA provinces"
    )
    return rules


def parse_location(location: str | None) -> tuple[Country | None, str | None]:
    """
    Extract (country, region) from a free-text location.

    Country keywords win. A known foreign country or city means no US/CA
    match; otherwise the country is inferred from a recognised province or
    state code. Unknown locations return (None, None).
    """
    if not location:
        return None, None

    province = CA_PROVINCE_PATTERN.search(location)
    state = US_STATE_PATTERN.search(location)

    country: Country | None
    if CANADA_PATTERN.search(location):
        country = "CA"
    elif US_PATTERN.search(location) or US_CODE_PATTERN.search(location):
        country = "US"
    elif FOREIGN_PATTERN.search(location):
        country = None
    elif province:
        country = "CA"
    elif state:
        country = "US"
    else:
        country = None

    if country == "CA":
        region = province.group(1) if province else None
    elif country == "US":
        region = state.group(1) if state else None
    else:
        region = None
    return country, region


def needs_pay_disclosure(job: Job) -> bool:
    country, _ = parse_location(job.location)
    if country is None:
        return False
    return not has_pay_range(job.salary_min, job.salary_max)


def penalty_for(job: Job, rules: JurisdictionRules = DEFAULT_RULES) -> float:
    """Multiplicative ranking factor in (0, 1]. 1.0 means no penalty."""
    if not needs_pay_disclosure(job):
        return 1.0
    country, region = parse_location(job.location)
    strict = rules.us_strict_states if country == "US" else rules.ca_strict_provinces
    if region and region in strict:
        return rules.strict_penalty
    return rules.default_penalty


def apply_jurisdiction_flags(job: Job, rules: JurisdictionRules = DEFAULT_RULES) -> Job:
    """
    Return a copy of the job annotated with requiresPayDisclosure/rankPenalty
    when disclosure is expected. Existing flags are kept; visible fields are
    never touched.
    """
    if not needs_pay_disclosure(job):
        return job
    flags = dict(job.flags)
    flags["requiresPayDisclosure"] = True
    flags["rankPenalty"] = penalty_for(job, rules)
    return job.model_copy(update={"flags": flags})


def adjust_score_for_jurisdiction(
    base_score: float, job: Job, rules: JurisdictionRules = DEFAULT_RULES
) -> int:
    return round(base_score * penalty_for(job, rules))
