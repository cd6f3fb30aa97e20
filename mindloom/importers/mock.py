"""
Mock importer for testing Mindloom.

This module provides a fixed set of sample notes for exercising the pipeline
without a real vault.
"""

from typing import List

from ..models import ProcessedContent
from .base import BaseImporter


_SAMPLE_NOTES = [
    (
        "research/ai-research.md",
        ["technological/ai", "research"],
        "Notes on AI Research: transformer models, State Management in agent loops, "
        "and the cost of training runs.",
    ),
    (
        "research/quantum.md",
        ["deeptech/quantum-ai", "technological/quantum"],
        "Quantum Computing roadmaps and quantum-ai hybrids.",
    ),
    (
        "markets/market-shift.md",
        ["economic/markets", "research"],
        "Market Shift towards AI services; pricing pressure on cloud providers.",
    ),
    (
        "policy/regulation.md",
        ["political/regulation", "legal/compliance"],
        "Regulation drafts for AI systems and compliance obligations.",
    ),
]


class MockImporter(BaseImporter):
    """
    Mock importer that returns hardcoded sample notes.
    """

    def __init__(self):
        """Initialize the mock importer with sample notes."""
        self._sources = [
            ProcessedContent(source_id=source_id, tags=list(tags), content=text, length=len(text))
            for source_id, tags, text in _SAMPLE_NOTES
        ]

    def get_all_sources(self) -> List[ProcessedContent]:
        return list(self._sources)
