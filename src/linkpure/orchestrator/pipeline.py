"""Shared rule bundle pipeline.

This module provides the BundlePipeline class that builds the shared rule
bundle offline:

1. download: fetch each remote provider, normalize it, and write a
   per-source rule file
2. merge: load every source file in priority order, merge them, and write
   the shared bundle
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import httpx

from linkpure.core.exceptions import RuleSourceError
from linkpure.core.models import MergeResult, RuleSource, Settings, SourceConfig
from linkpure.providers import get_normalizer
from linkpure.providers.fetch import fetch_sources
from linkpure.rules.bundle import RuleBundle, load_bundle, save_bundle
from linkpure.rules.merger import RuleMerger


logger = logging.getLogger(__name__)


@dataclass
class DownloadReport:
    """Rules written per source by a download stage."""
    written: dict[str, int] = field(default_factory=dict)
    created_templates: list[str] = field(default_factory=list)


class BundlePipeline:
    """Build the shared rule bundle from the configured sources."""

    def __init__(
        self,
        settings: Settings,
        *,
        merger: Optional[RuleMerger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize BundlePipeline.

        Args:
            settings: Loaded settings (sources in priority order)
            merger: RuleMerger instance (creates default if None)
            transport: Optional httpx transport for provider downloads
        """
        self.settings = settings
        self.merger = merger or RuleMerger()
        self.transport = transport

    def source_path(self, source: SourceConfig) -> Path:
        return self.settings.sources_dir / source.file

    async def download(self) -> DownloadReport:
        """Fetch, normalize, and store every remote source.

        Hand-maintained sources get an empty template file when missing.

        Raises:
            SourceFetchError: If any download fails
            RuleSourceError: If provider data is structurally invalid
        """
        report = DownloadReport()
        texts = await fetch_sources(
            self.settings.sources,
            timeout=self.settings.fetch_timeout,
            transport=self.transport,
        )

        for source in self.settings.sources:
            path = self.source_path(source)

            if not source.is_remote:
                if not path.exists():
                    save_bundle(RuleBundle(name=f"{source.name} rules", description=source.description), path)
                    report.created_templates.append(source.name)
                    logger.info(f"Created empty rule file for {source.name}: {path}")
                continue

            normalizer = get_normalizer(source.provider)
            rules = normalizer.normalize_text(texts[source.name])
            bundle = RuleBundle(
                name=f"{source.name} rules",
                description=source.description,
                rules=rules,
                source=source.url,
            )
            save_bundle(bundle, path)
            report.written[source.name] = len(rules)
            logger.info(f"Saved {len(rules)} {source.name} rules to {path}")

        return report

    def load_sources(self) -> list[RuleSource]:
        """Load every source file in priority order.

        Raises:
            RuleSourceError: If a provider file is missing or unreadable
        """
        loaded = []
        for source in self.settings.sources:
            path = self.source_path(source)
            if not path.exists():
                if source.is_remote:
                    raise RuleSourceError(
                        f"Rule file for {source.name} not found: {path} (run fetch first)"
                    )
                logger.warning(f"No rule file for {source.name} at {path}, treating as empty")
                loaded.append(RuleSource(name=source.name))
                continue

            bundle = load_bundle(path, source=source.name, unique_ids=False)
            loaded.append(RuleSource(name=source.name, rules=bundle.rules))
            logger.info(f"Loaded {len(bundle.rules)} rules from {source.name}")
        return loaded

    def merge(self) -> MergeResult:
        """Merge all source files and write the shared bundle."""
        result = self.merger.merge(self.load_sources())

        bundle = RuleBundle(
            name=self.settings.bundle_name,
            description=self.settings.bundle_description,
            rules=result.rules,
        )
        save_bundle(bundle, self.settings.bundle_output)
        return result

    async def run(self) -> MergeResult:
        await self.download()
        return self.merge()

    def run_sync(self) -> MergeResult:
        return asyncio.run(self.run())

