"""
Base importer interface for Mindloom.

This module defines the abstract interface that all content sources must implement.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List

from ..models import ProcessedContent


class BaseImporter(ABC):
    """
    Abstract base class for all content importers.

    Each importer turns notes from a specific source (a Markdown vault, fixed
    sample data, ...) into ProcessedContent records.
    """

    @abstractmethod
    def get_all_sources(self) -> List[ProcessedContent]:
        """
        Retrieve all selected sources.

        Returns:
            List of ProcessedContent objects, one per source
        """
        pass


def collect_tags(contents: Iterable[ProcessedContent]) -> List[str]:
    """
    Collect the union of all tags across sources, in first-seen order.

    Args:
        contents: Aggregated sources

    Returns:
        List of distinct tags
    """
    seen: List[str] = []
    for content in contents:
        for tag in content.tags:
            if tag and tag not in seen:
                seen.append(tag)
    return seen
