"""Transcript export."""

from audioscribe.export.transcript_exporter import export_transcripts

__all__ = ["export_transcripts"]
