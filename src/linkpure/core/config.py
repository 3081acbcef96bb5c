"""Configuration loader for LinkPure.

This module loads the YAML settings file that holds the resolver bound,
the rule store location, and the priority-ordered list of rule sources
used by the bundle pipeline.
"""

from pathlib import Path
from typing import Any

import yaml

from linkpure.core.constants import DEFAULTS, ProviderKind
from linkpure.core.exceptions import ConfigError
from linkpure.core.models import Settings, SourceConfig


# ============================================================================
# Configuration Paths
# ============================================================================

def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to configs directory (./configs relative to project root)
    """
    # core/ -> linkpure/ -> src/ -> root
    project_root = Path(__file__).parent.parent.parent.parent
    return project_root / "configs"


def get_default_config_path() -> Path:
    return get_config_dir() / "linkpure.yaml"


# ============================================================================
# Settings Loader
# ============================================================================

def load_settings(config_file: Path | str | None = None) -> Settings:
    """Load application settings from a YAML file.

    Relative paths inside the file are resolved against the file's directory.

    Args:
        config_file: Path to settings YAML. If None, loads configs/linkpure.yaml

    Returns:
        Settings object with validated values

    Raises:
        ConfigError: If the file is missing, unparsable, or invalid
    """
    config_path = Path(config_file) if config_file is not None else get_default_config_path()

    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config YAML: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a mapping")

    base_dir = config_path.parent

    resolver = _section(data, "resolver")
    storage = _section(data, "storage")
    bundle = _section(data, "bundle")
    fetch = _section(data, "fetch")

    max_redirects = resolver.get("max_redirects", DEFAULTS["max_redirects"])
    if not isinstance(max_redirects, int) or isinstance(max_redirects, bool) or max_redirects <= 0:
        raise ConfigError("'resolver.max_redirects' must be a positive integer")

    timeout = fetch.get("timeout", DEFAULTS["fetch_timeout"])
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError("'fetch.timeout' must be a positive number")

    return Settings(
        max_redirects=max_redirects,
        db_path=_resolve_path(base_dir, storage.get("db_path", DEFAULTS["db_path"])),
        bundle_output=_resolve_path(base_dir, bundle.get("output", "rules/shared-rules.json")),
        sources_dir=_resolve_path(base_dir, bundle.get("sources_dir", "rules/sources")),
        bundle_name=str(bundle.get("name", DEFAULTS["bundle_name"])),
        bundle_description=str(bundle.get("description", DEFAULTS["bundle_description"])),
        fetch_timeout=float(timeout),
        sources=load_sources(data.get("sources", [])),
    )


def load_sources(sources_data: Any) -> list[SourceConfig]:
    """Parse the ``sources`` list, keeping its priority order.

    Raises:
        ConfigError: If an entry is malformed or a name repeats
    """
    if not isinstance(sources_data, list):
        raise ConfigError("'sources' must be a list")

    valid_providers = {kind.value for kind in ProviderKind}
    sources: list[SourceConfig] = []
    seen: set[str] = set()

    for index, entry in enumerate(sources_data):
        if not isinstance(entry, dict):
            raise ConfigError(f"Invalid source entry #{index}: expected a mapping")

        for required in ("name", "file"):
            if not entry.get(required):
                raise ConfigError(f"Missing required field '{required}' in source #{index}")

        name = str(entry["name"])
        if name in seen:
            raise ConfigError(f"Duplicate source name: {name}")
        seen.add(name)

        provider = entry.get("provider")
        if provider is not None and provider not in valid_providers:
            available = ", ".join(sorted(valid_providers))
            raise ConfigError(
                f"Unknown provider '{provider}' for source '{name}'. Available providers: {available}"
            )
        if provider is not None and not entry.get("url"):
            raise ConfigError(f"Source '{name}' has a provider but no 'url'")

        sources.append(SourceConfig(
            name=name,
            file=str(entry["file"]),
            provider=provider,
            url=entry.get("url"),
            description=str(entry.get("description", "")),
        ))

    return sources


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{key}' section must be a mapping")
    return section


def _resolve_path(base_dir: Path, value: Any) -> Path:
    path = Path(str(value)).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path
