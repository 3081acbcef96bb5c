from linkpure.core.exceptions import ConfigError
from linkpure.providers.base import RuleSourceNormalizer, domain_pattern, sanitize_id
from linkpure.providers.clearurls import ClearURLsNormalizer
from linkpure.providers.linkumori import LinkumoriNormalizer

NORMALIZERS: dict[str, type[RuleSourceNormalizer]] = {
    ClearURLsNormalizer.name: ClearURLsNormalizer,
    LinkumoriNormalizer.name: LinkumoriNormalizer,
}


def get_normalizer(kind: str) -> RuleSourceNormalizer:
    """Create the normalizer for a provider kind.

    Raises:
        ConfigError: If the provider kind is unknown
    """
    try:
        return NORMALIZERS[kind]()
    except KeyError:
        available = ", ".join(sorted(NORMALIZERS))
        raise ConfigError(f"Unknown provider '{kind}'. Available providers: {available}") from None


__all__ = [
    "RuleSourceNormalizer",
    "ClearURLsNormalizer",
    "LinkumoriNormalizer",
    "NORMALIZERS",
    "get_normalizer",
    "domain_pattern",
    "sanitize_id",
]
