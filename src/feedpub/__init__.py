"""Publish the artifacts of a build manifest to their target feeds."""

from .publisher import PublishSummary, load_publish_settings, publish_build, write_summary

__all__ = ["PublishSummary", "load_publish_settings", "publish_build", "write_summary"]
