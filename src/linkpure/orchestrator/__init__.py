"""Offline rule bundle pipeline."""

from linkpure.orchestrator.pipeline import BundlePipeline, DownloadReport

__all__ = ["BundlePipeline", "DownloadReport"]
