"""Core data models for LinkPure.

This module defines the canonical rule record shared by the run-time chain
resolver and the build-time rule merger, plus the result types they return.
"""

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

from linkpure.core.constants import ChainStatus, DEFAULTS, PATTERN_ERRORS
from linkpure.core.exceptions import InvalidPatternError, InvalidRecordError


# ============================================================================
# Rule Models
# ============================================================================

@dataclass
class RuleTestCase:
    """Expected rewrite of a single URL by the rule that carries it."""
    from_url: str
    to_url: str

    def to_dict(self) -> dict[str, str]:
        return {"from": self.from_url, "to": self.to_url}


@dataclass
class RuleRecord:
    """Canonical URL rewrite rule.

    A record either rewrites the URL through ``substitution`` (a template
    that may reference capture groups of ``match_pattern``) or strips the
    query parameters named in ``remove_params``. Exactly one of the two
    behaviors must be set; records are validated on construction so an
    invalid pattern never reaches evaluation.
    """
    id: str
    match_pattern: str
    substitution: Optional[str] = None
    remove_params: list[str] = field(default_factory=list)
    enabled: bool = True
    source: Optional[str] = field(default=None, compare=False)   # merge-time provenance
    tests: list[RuleTestCase] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate fields after initialization."""
        if not isinstance(self.id, str) or not self.id:
            raise InvalidRecordError("Rule id must be a non-empty string", field="id")

        if not isinstance(self.match_pattern, str) or not self.match_pattern:
            raise InvalidRecordError(
                f"Rule '{self.id}' has no match pattern",
                field="regexFilter",
                rule_id=self.id,
            )

        try:
            re.compile(self.match_pattern)
        except PATTERN_ERRORS as e:
            raise InvalidPatternError(self.match_pattern, str(e), rule_id=self.id) from e

        has_substitution = self.substitution is not None
        has_remove_params = bool(self.remove_params)

        if has_substitution and has_remove_params:
            raise InvalidRecordError(
                f"Rule '{self.id}' sets both regexSubstitution and removeParams",
                field="removeParams",
                rule_id=self.id,
            )
        if not has_substitution and not has_remove_params:
            raise InvalidRecordError(
                f"Rule '{self.id}' needs either regexSubstitution or removeParams",
                field="regexSubstitution",
                rule_id=self.id,
            )

        if has_substitution and not isinstance(self.substitution, str):
            raise InvalidRecordError(
                f"Rule '{self.id}': regexSubstitution must be a string",
                field="regexSubstitution",
                rule_id=self.id,
            )

        for name in self.remove_params:
            if not isinstance(name, str) or not name:
                raise InvalidRecordError(
                    f"Rule '{self.id}': removeParams entries must be non-empty strings",
                    field="removeParams",
                    rule_id=self.id,
                )

        if not isinstance(self.enabled, bool):
            raise InvalidRecordError(
                f"Rule '{self.id}': enabled must be a boolean",
                field="enabled",
                rule_id=self.id,
            )

    @property
    def strips_params(self) -> bool:
        """True for parameter-stripping records."""
        return bool(self.remove_params)

    def with_id(self, new_id: str) -> "RuleRecord":
        """Return a copy of this record under a different id."""
        return replace(self, id=new_id)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the rule-file wire format.

        The merge-time ``source`` tag is not part of the wire format.
        """
        data: dict[str, Any] = {"id": self.id, "regexFilter": self.match_pattern}
        if self.substitution is not None:
            data["regexSubstitution"] = self.substitution
        if self.remove_params:
            data["removeParams"] = list(self.remove_params)
        data["enabled"] = self.enabled
        if self.tests:
            data["test"] = [case.to_dict() for case in self.tests]
        return data

    @classmethod
    def from_dict(cls, data: Any, source: Optional[str] = None) -> "RuleRecord":
        """Build a record from its wire format.

        Accepts both the bundle field names (``regexFilter`` /
        ``regexSubstitution``) and the legacy local export names
        (``from`` / ``to``).

        Raises:
            InvalidRecordError: If required fields are missing or mistyped
            InvalidPatternError: If the pattern does not compile
        """
        if not isinstance(data, dict):
            raise InvalidRecordError("Rule must be a JSON object")

        rule_id = data.get("id")
        if not isinstance(rule_id, str) or not rule_id:
            raise InvalidRecordError("Missing rule id", field="id")

        pattern = data.get("regexFilter", data.get("from"))
        if not isinstance(pattern, str) or not pattern:
            raise InvalidRecordError(
                f"Rule '{rule_id}' is missing regexFilter/from",
                field="regexFilter",
                rule_id=rule_id,
            )

        substitution = data.get("regexSubstitution", data.get("to"))
        if substitution is not None and not isinstance(substitution, str):
            raise InvalidRecordError(
                f"Rule '{rule_id}': regexSubstitution must be a string",
                field="regexSubstitution",
                rule_id=rule_id,
            )

        remove_params = data.get("removeParams") or []
        if not isinstance(remove_params, list):
            raise InvalidRecordError(
                f"Rule '{rule_id}': removeParams must be a list",
                field="removeParams",
                rule_id=rule_id,
            )

        tests = []
        for case in data.get("test") or []:
            if (
                not isinstance(case, dict)
                or not isinstance(case.get("from"), str)
                or not isinstance(case.get("to"), str)
            ):
                raise InvalidRecordError(
                    f"Rule '{rule_id}': test cases need string 'from' and 'to'",
                    field="test",
                    rule_id=rule_id,
                )
            tests.append(RuleTestCase(from_url=case["from"], to_url=case["to"]))

        return cls(
            id=rule_id,
            match_pattern=pattern,
            substitution=substitution,
            remove_params=list(remove_params),
            enabled=data.get("enabled", True),
            source=source,
            tests=tests,
        )


# ============================================================================
# Resolution Models
# ============================================================================

@dataclass
class ChainResult:
    """Outcome of resolving one URL against a rule list.

    ``urls`` holds every URL produced, in order, excluding the input URL.
    ``rule_ids`` holds the id of the rule that produced each of them.
    """
    status: ChainStatus
    urls: list[str] = field(default_factory=list)
    rule_ids: list[str] = field(default_factory=list)

    @property
    def final_url(self) -> Optional[str]:
        return self.urls[-1] if self.urls else None

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, "urls": list(self.urls)}


@dataclass
class RuleTestFailure:
    """Rule self-test case whose output did not match the expectation."""
    rule_id: str
    from_url: str
    expected: str
    actual: str


# ============================================================================
# Merge Models
# ============================================================================

@dataclass
class RuleSource:
    """Named collection of normalized rules."""
    name: str
    rules: list[RuleRecord] = field(default_factory=list)


@dataclass
class MergeResult:
    """Merged rule collection plus duplicate bookkeeping."""
    rules: list[RuleRecord]
    duplicates: dict[str, int] = field(default_factory=dict)        # source -> dropped
    skipped: list[tuple[str, str]] = field(default_factory=list)    # (source, rule id)
    source_counts: dict[str, int] = field(default_factory=dict)     # source -> input size

    @property
    def total_duplicates(self) -> int:
        return sum(self.duplicates.values())


@dataclass
class ImportIssue:
    """Validation failure for a single rule in an import document."""
    index: int
    rule_id: str
    field: str
    message: str

    def __str__(self) -> str:
        label = self.rule_id or "<no id>"
        where = f" [{self.field}]" if self.field else ""
        return f"  rule #{self.index} ({label}){where}: {self.message}"


# ============================================================================
# Configuration Models
# ============================================================================

@dataclass
class SourceConfig:
    """One rule source of the bundle pipeline.

    Sources without ``provider`` are maintained by hand in canonical form.
    """
    name: str
    file: str
    provider: Optional[str] = None
    url: Optional[str] = None
    description: str = ""

    @property
    def is_remote(self) -> bool:
        return self.provider is not None and self.url is not None


@dataclass
class Settings:
    """Application settings loaded from YAML."""
    max_redirects: int = DEFAULTS["max_redirects"]
    db_path: Path = field(default_factory=lambda: Path(DEFAULTS["db_path"]).expanduser())
    bundle_output: Path = Path("rules/shared-rules.json")
    sources_dir: Path = Path("rules/sources")
    bundle_name: str = DEFAULTS["bundle_name"]
    bundle_description: str = DEFAULTS["bundle_description"]
    fetch_timeout: float = DEFAULTS["fetch_timeout"]
    sources: list[SourceConfig] = field(default_factory=list)   # highest priority first
