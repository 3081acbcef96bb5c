"""Rule file documents.

This module reads and writes the JSON rule documents exchanged with the
outside world:
- Export/import files: ``{"rules": [...]}`` (a bare array is also accepted)
- Bundles: ``{"$schema", "name", "description", "source", "rules"}``

Imports are all-or-nothing: every rule is validated and the whole import
is rejected if any rule is invalid.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Sequence
from uuid import uuid4

from linkpure.core.constants import SCHEMA_REF
from linkpure.core.exceptions import (
    InvalidPatternError,
    InvalidRecordError,
    RuleImportError,
    RuleSourceError,
)
from linkpure.core.models import ImportIssue, RuleRecord


logger = logging.getLogger(__name__)


def new_rule_id() -> str:
    """Generate a fresh rule id."""
    return str(uuid4())


@dataclass
class RuleBundle:
    """Rule collection with descriptive metadata."""
    name: str
    description: str = ""
    rules: list[RuleRecord] = field(default_factory=list)
    source: Optional[str] = None
    schema: str = SCHEMA_REF

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "$schema": self.schema,
            "name": self.name,
            "description": self.description,
        }
        if self.source:
            data["source"] = self.source
        data["rules"] = [rule.to_dict() for rule in self.rules]
        return data


# ============================================================================
# Validation
# ============================================================================

def parse_rules(
    data: Any,
    source: Optional[str] = None,
    *,
    unique_ids: bool = True,
) -> list[RuleRecord]:
    """Validate and convert a rule document.

    Args:
        data: Decoded JSON, either a list of rules or an object with ``rules``
        source: Provenance tag to set on each record
        unique_ids: Reject documents that repeat a rule id

    Returns:
        Rules in document order

    Raises:
        InvalidRecordError: If the document is not a rule list
        RuleImportError: If any rule is invalid (lists every failure)
    """
    if isinstance(data, dict):
        if "rules" not in data:
            raise InvalidRecordError("Invalid file format: missing 'rules'", field="rules")
        entries = data["rules"]
    else:
        entries = data

    if not isinstance(entries, list):
        raise InvalidRecordError("Invalid file format: expected a list of rules", field="rules")

    parsed: list[tuple[int, RuleRecord]] = []
    issues: list[ImportIssue] = []

    for index, entry in enumerate(entries):
        try:
            parsed.append((index, RuleRecord.from_dict(entry, source=source)))
        except InvalidPatternError as e:
            issues.append(ImportIssue(index, e.rule_id, "regexFilter", str(e)))
        except InvalidRecordError as e:
            rule_id = e.rule_id or (entry.get("id", "") if isinstance(entry, dict) else "")
            issues.append(ImportIssue(index, str(rule_id), e.field, str(e)))

    seen: set[str] = set()
    for index, rule in parsed:
        if unique_ids and rule.id in seen:
            issues.append(ImportIssue(index, rule.id, "id", f"Duplicate rule id '{rule.id}'"))
        seen.add(rule.id)

    if issues:
        issues.sort(key=lambda issue: issue.index)
        raise RuleImportError(issues)

    return [rule for _, rule in parsed]


# ============================================================================
# Export / Import
# ============================================================================

def export_rules(rules: Sequence[RuleRecord]) -> dict[str, Any]:
    """Build an export document for a rule list."""
    return {"rules": [rule.to_dict() for rule in rules]}


def import_rules(
    data: Any,
    *,
    remap_ids: bool = True,
    id_factory: Callable[[], str] = new_rule_id,
) -> list[RuleRecord]:
    """Validate an import document and return its rules.

    Args:
        data: Decoded JSON document
        remap_ids: Assign fresh ids so imported rules cannot collide
            with existing ones
        id_factory: Id generator used when remapping

    Raises:
        InvalidRecordError: If the document is not a rule list
        RuleImportError: If any rule is invalid
    """
    rules = parse_rules(data)
    if remap_ids:
        rules = [rule.with_id(id_factory()) for rule in rules]
    return rules


def dumps(document: dict[str, Any]) -> str:
    """Serialize a document the way rule files are written."""
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def read_json(path: Path) -> Any:
    """Read a JSON document.

    Raises:
        RuleSourceError: If the file cannot be read or decoded
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise RuleSourceError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise RuleSourceError(f"Failed to read {path}: {e}") from e


# ============================================================================
# Bundles
# ============================================================================

def load_bundle(
    path: Path,
    source: Optional[str] = None,
    *,
    unique_ids: bool = True,
) -> RuleBundle:
    """Load a rule bundle file.

    Merge inputs are loaded with ``unique_ids=False`` so repeated ids reach
    the merger and are counted there.

    Raises:
        RuleSourceError: If the file cannot be read or decoded
        InvalidRecordError: If the document is not a rule list
        RuleImportError: If any rule is invalid
    """
    data = read_json(path)
    rules = parse_rules(data, source=source, unique_ids=unique_ids)

    meta = data if isinstance(data, dict) else {}
    return RuleBundle(
        name=str(meta.get("name", path.stem)),
        description=str(meta.get("description", "")),
        rules=rules,
        source=meta.get("source"),
        schema=str(meta.get("$schema", SCHEMA_REF)),
    )


def write_document(document: dict[str, Any], path: Path) -> None:
    """Write a rule document, creating parent directories.

    Raises:
        RuleSourceError: If the file cannot be written
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dumps(document), encoding="utf-8")
    except OSError as e:
        raise RuleSourceError(f"Failed to write {path}: {e}") from e


def save_bundle(bundle: RuleBundle, path: Path) -> None:
    """Write a rule bundle.

    Raises:
        RuleSourceError: If the file cannot be written
    """
    write_document(bundle.to_dict(), path)
    logger.info(f"Wrote {len(bundle.rules)} rules to {path}")
