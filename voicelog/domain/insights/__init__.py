"""Insight generation (tags, analysis, daily highlights)."""

from .enrichment import enrich_entry
from .generator import InsightGenerator, InsightResponder, SummaryWriter

__all__ = ["InsightGenerator", "InsightResponder", "SummaryWriter", "enrich_entry"]
