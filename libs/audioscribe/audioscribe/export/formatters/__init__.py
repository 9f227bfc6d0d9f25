"""Transcript export formatters."""

from audioscribe.export.formatters.base import TranscriptFormatter
from audioscribe.export.formatters.dual_track import DualTrackMarkdownFormatter
from audioscribe.export.formatters.json_format import JSONFormatter
from audioscribe.export.formatters.markdown import PolishedMarkdownFormatter, RawTextFormatter

__all__ = [
    "DualTrackMarkdownFormatter",
    "JSONFormatter",
    "PolishedMarkdownFormatter",
    "RawTextFormatter",
    "TranscriptFormatter",
]
