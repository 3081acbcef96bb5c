from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

from linkpure.core.constants import ID_DISALLOWED_CHARS, MATCH_ALL_PATTERN
from linkpure.core.exceptions import RuleError, RuleSourceError
from linkpure.core.models import RuleRecord


logger = logging.getLogger(__name__)

# Parameter entries containing any of these are regex fragments, not keys
REGEX_META = re.compile(r"[\\^$.*+?()\[\]{}|]")


def sanitize_id(value: str) -> str:
    """Lower-case a value and strip characters that are unsafe in rule ids."""
    return ID_DISALLOWED_CHARS.sub("", value.lower())


def domain_pattern(domain: Optional[str]) -> str:
    """Build a URL pattern for a bare domain.

    The pattern accepts http and https, any subdomain prefix, and the
    literal domain followed by a port, path, query, fragment or the end
    of the URL. An empty or blank domain matches every URL.
    """
    domain = (domain or "").strip().lower()
    if not domain:
        return MATCH_ALL_PATTERN
    escaped = re.escape(domain)
    return rf"^https?:\/\/(?:[a-z0-9-]+\.)*?{escaped}(?=[:/?#]|$)"


def literal_params(entries: Any) -> list[str]:
    """Keep only literal query parameter names.

    Non-strings, path-like entries (leading ``/``) and regex fragments
    are dropped; duplicates are removed keeping first occurrence.
    """
    if not isinstance(entries, list):
        return []

    params: list[str] = []
    for entry in entries:
        if not isinstance(entry, str) or not entry:
            continue
        if entry.startswith("/") or REGEX_META.search(entry):
            continue
        if entry not in params:
            params.append(entry)
    return params


class RuleSourceNormalizer(ABC):
    """Convert one provider's rule dialect into RuleRecords.

    Implementations are stateless: each call reads only its arguments and
    returns fresh records, so providers can be normalized concurrently.
    """
    name: str = "base"

    def parse(self, text: str) -> Any:
        """Reduce fetched provider text to plain data.

        Raises:
            RuleSourceError: If the text cannot be decoded
        """
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise RuleSourceError(f"{self.name}: invalid JSON ({e})") from e

    @abstractmethod
    def normalize_document(self, data: Any) -> list[RuleRecord]:
        """Normalize a whole provider document.

        Raises:
            RuleSourceError: If the document is structurally invalid
        """

    @abstractmethod
    def normalize_provider(self, provider_name: str, provider: Any) -> list[RuleRecord]:
        """Normalize one provider entry. Malformed entries yield []."""

    def normalize_text(self, text: str) -> list[RuleRecord]:
        return self.normalize_document(self.parse(text))

    def make_rule(self, rule_id: str, pattern: Any, **fields: Any) -> Optional[RuleRecord]:
        """Create a record, or log and return None if it is invalid."""
        if not isinstance(pattern, str):
            logger.warning(f"{self.name}: skipping {rule_id}: pattern is not a string")
            return None
        try:
            return RuleRecord(id=rule_id, match_pattern=pattern, source=self.name, **fields)
        except RuleError as e:
            logger.warning(f"{self.name}: skipping {rule_id}: {e}")
            return None
