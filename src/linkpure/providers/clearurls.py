from __future__ import annotations

import logging
from typing import Any

from linkpure.core.constants import ProviderKind, RuleKind
from linkpure.core.exceptions import RuleSourceError
from linkpure.core.models import RuleRecord
from linkpure.providers.base import RuleSourceNormalizer, literal_params, sanitize_id


logger = logging.getLogger(__name__)


class ClearURLsNormalizer(RuleSourceNormalizer):
    """Normalizer for the ClearURLs ``data.min.json`` format.

    Each provider becomes, in order:
    - one substitution record per redirection (unwraps to group 1)
    - one path-cleaning record per raw rule
    - one parameter record for ``rules``
    - one parameter record for ``referralMarketing``

    Ids are ``clearurls-<provider>-<kind>-<n>`` with one running counter
    per provider.
    """
    name = ProviderKind.CLEARURLS.value

    def normalize_document(self, data: Any) -> list[RuleRecord]:
        if not isinstance(data, dict) or not isinstance(data.get("providers"), dict):
            raise RuleSourceError("clearurls: document has no 'providers' mapping")

        rules: list[RuleRecord] = []
        for provider_name, provider in data["providers"].items():
            rules.extend(self.normalize_provider(provider_name, provider))

        logger.info(f"clearurls: converted {len(rules)} rules from {len(data['providers'])} providers")
        return rules

    def normalize_provider(self, provider_name: str, provider: Any) -> list[RuleRecord]:
        if not isinstance(provider, dict) or not isinstance(provider.get("urlPattern"), str):
            logger.warning(f"clearurls: provider {provider_name!r} has no urlPattern, skipped")
            return []

        prefix = sanitize_id(f"{self.name}-{provider_name}")
        url_pattern = provider["urlPattern"]
        rules: list[RuleRecord] = []
        sequence = 0

        def next_id(kind: RuleKind) -> str:
            nonlocal sequence
            rule_id = f"{prefix}-{kind.value}-{sequence}"
            sequence += 1
            return rule_id

        for redirection in _as_list(provider.get("redirections")):
            rule = self.make_rule(next_id(RuleKind.REDIRECT), redirection, substitution="$1")
            if rule:
                rules.append(rule)

        for raw_rule in _as_list(provider.get("rawRules")):
            rule = self.make_rule(next_id(RuleKind.RAW), raw_rule, substitution="")
            if rule:
                rules.append(rule)

        for kind, key in ((RuleKind.PARAMS, "rules"), (RuleKind.REFERRAL, "referralMarketing")):
            params = literal_params(provider.get(key))
            if not params:
                continue
            rule = self.make_rule(next_id(kind), url_pattern, remove_params=params)
            if rule:
                rules.append(rule)

        return rules


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []
