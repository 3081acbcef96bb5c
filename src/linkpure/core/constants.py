"""Constants used throughout LinkPure.

This module contains enums, default values, and static patterns
shared by the resolver, the merger, and the provider normalizers.
"""

import re
from enum import Enum


class ChainStatus(str, Enum):
    """Outcome of resolving a URL against a rule list."""
    MATCHED = "matched"
    NOT_MATCHED = "not-matched"
    CIRCULAR_REDIRECT = "circular-redirect"
    INFINITE_REDIRECT = "infinite-redirect"


class RuleKind(str, Enum):
    """Kinds of records produced from provider data."""
    REDIRECT = "redirect"
    RAW = "raw"
    PARAMS = "params"
    REFERRAL = "referral"


class ProviderKind(str, Enum):
    """Supported external rule providers."""
    CLEARURLS = "clearurls"
    LINKUMORI = "linkumori"


# Characters allowed in generated rule ids
ID_DISALLOWED_CHARS = re.compile(r"[^a-z0-9\-.]")

# Pattern used for rules that apply to every URL
MATCH_ALL_PATTERN = ".*"

# $1 / ${1} group references inside substitution templates
GROUP_REFERENCE = re.compile(r"\$(?:(\d+)|\{(\d+)\})")

# re.compile raises more than re.error for some patterns (huge repeat counts, deep nesting)
PATTERN_ERRORS = (re.error, OverflowError, RecursionError)

SCHEMA_REF = "./schema.json"


# Application-wide defaults
DEFAULTS = {
    "max_redirects": 5,
    "fetch_timeout": 30.0,
    "bundle_name": "Shared Rules",
    "bundle_description": "Combined tracking parameter cleaning and redirect unwrapping rules",
    "db_path": "~/.local/share/linkpure/rules.db",
}
