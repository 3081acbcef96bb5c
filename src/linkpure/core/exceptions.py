class LinkPureError(Exception):
    pass

class ConfigError(LinkPureError):
    pass

class RuleError(LinkPureError):
    pass

class InvalidPatternError(RuleError):
    """Rule pattern is not a valid regular expression."""

    def __init__(self, pattern: str, reason: str, rule_id: str = ""):
        self.pattern = pattern
        self.reason = reason
        self.rule_id = rule_id
        where = f" in rule '{rule_id}'" if rule_id else ""
        super().__init__(f"Invalid pattern{where}: {pattern!r} ({reason})")

class InvalidRecordError(RuleError):
    """Rule record is missing required fields or mixes rewrite behaviors."""

    def __init__(self, message: str, field: str = "", rule_id: str = ""):
        self.field = field
        self.rule_id = rule_id
        super().__init__(message)

class DuplicateIdError(RuleError):
    pass

class RuleImportError(RuleError):
    """Import rejected. ``issues`` lists every invalid rule."""

    def __init__(self, issues: list):
        self.issues = issues
        lines = [str(issue) for issue in issues]
        super().__init__(
            f"Import rejected: {len(issues)} invalid rule(s)\n" + "\n".join(lines)
        )

class RuleSourceError(LinkPureError):
    pass

class SourceFetchError(RuleSourceError):
    pass

class StorageError(LinkPureError):
    pass

class RuleNotFoundError(StorageError):
    pass
