from __future__ import annotations

import logging
from typing import Any

from linkpure.core.constants import ProviderKind, RuleKind
from linkpure.core.exceptions import RuleSourceError
from linkpure.core.models import RuleRecord
from linkpure.providers.base import (
    RuleSourceNormalizer,
    domain_pattern,
    literal_params,
    sanitize_id,
)
from linkpure.providers.literal import extract_declared_literal


logger = logging.getLogger(__name__)

DECLARATION = "parameterRules"


class LinkumoriNormalizer(RuleSourceNormalizer):
    """Normalizer for the Linkumori extension's ``parameterRules``.

    The upstream file is a JavaScript module; only the declared
    ``parameterRules`` literal is extracted from it. Each entry
    ``{domain?, removeParams}`` becomes one parameter record with id
    ``linkumori-params-<domain>`` (``linkumori-params-global`` when the
    entry has no domain).
    """
    name = ProviderKind.LINKUMORI.value

    def parse(self, text: str) -> Any:
        return extract_declared_literal(text, DECLARATION)

    def normalize_document(self, data: Any) -> list[RuleRecord]:
        if isinstance(data, dict):
            data = data.get(DECLARATION)
        if not isinstance(data, list):
            raise RuleSourceError(f"linkumori: '{DECLARATION}' is not a list")

        rules: list[RuleRecord] = []
        for entry in data:
            rules.extend(self.normalize_provider(self.name, entry))

        logger.info(f"linkumori: converted {len(rules)} rules from {len(data)} entries")
        return rules

    def normalize_provider(self, provider_name: str, provider: Any) -> list[RuleRecord]:
        if not isinstance(provider, dict) or not isinstance(provider.get("removeParams"), list):
            logger.warning(f"linkumori: entry without removeParams skipped: {provider!r:.80}")
            return []

        domain = provider.get("domain")
        if domain is not None and not isinstance(domain, str):
            logger.warning(f"linkumori: entry with non-string domain skipped: {domain!r}")
            return []

        params = literal_params(provider["removeParams"])
        if not params:
            return []

        domain = (domain or "").strip()
        suffix = sanitize_id(domain) if domain else "global"
        rule_id = f"{sanitize_id(provider_name)}-{RuleKind.PARAMS.value}-{suffix}"
        rule = self.make_rule(rule_id, domain_pattern(domain), remove_params=params)
        return [rule] if rule else []
