"""
Hierarchical tag resolution.

Tags such as `technological/ai/llm` are split into their segments; when the
first segment names a category of the schema the tag suggests that category.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from ..models import ProcessedContent, WarningCollector


@dataclass
class ResolvedTag:
    """
    A tag split into its hierarchy.
    """
    tag: str
    path: List[str] = field(default_factory=list)
    suggested_category: Optional[str] = None

    @property
    def is_hierarchical(self) -> bool:
        return len(self.path) > 1

    @property
    def leaf(self) -> str:
        return self.path[-1] if self.path else self.tag


def normalize_tag(raw: str) -> str:
    """
    Clean a raw tag string: strip whitespace, a leading '#', and empty
    path segments. Returns an empty string for unusable tags.
    """
    if not isinstance(raw, str):
        return ""
    text = raw.strip().lstrip('#').strip()
    segments = [segment.strip() for segment in text.split('/')]
    return '/'.join(segment for segment in segments if segment)


class TagHierarchyResolver(WarningCollector):
    """
    Resolves raw tag strings into segment paths and category suggestions.

    Never fails on malformed input: empty tags are dropped with a warning,
    tags whose first segment names no category are kept without a suggestion.
    """

    stage_name = "tags"

    def __init__(self, category_schema: Sequence[str]):
        """
        Initialize the resolver.

        Args:
            category_schema: Ordered allowed top-level category names
        """
        super().__init__()
        self._categories: Dict[str, str] = {}
        for name in category_schema:
            self._categories.setdefault(name.casefold(), name)

    def register_category(self, name: str) -> None:
        """Make a category appended to the schema after construction known."""
        self._categories.setdefault(name.casefold(), name)

    def match_category(self, name: Optional[str]) -> Optional[str]:
        """Return the schema spelling of a category name, matched case-insensitively."""
        if not name:
            return None
        return self._categories.get(name.strip().casefold())

    def resolve_tag(self, raw: str) -> Optional[ResolvedTag]:
        """
        Resolve a single tag.

        Args:
            raw: Raw tag string

        Returns:
            The resolved tag, or None when the tag is empty
        """
        tag = normalize_tag(raw)
        if not tag:
            return None
        path = tag.split('/')
        return ResolvedTag(
            tag=tag,
            path=path,
            suggested_category=self.match_category(path[0])
        )

    def resolve(self, tags: Iterable[str]) -> List[ResolvedTag]:
        """
        Resolve a collection of tags, dropping empty ones.

        Args:
            tags: Raw tag strings

        Returns:
            Resolved tags in input order, without duplicates
        """
        self._reset_warnings()
        resolved: List[ResolvedTag] = []
        seen = set()

        for raw in tags:
            item = self.resolve_tag(raw)
            if item is None:
                self._warn("empty_tag", f"Dropped empty or malformed tag {raw!r}")
                continue
            if item.tag in seen:
                continue
            seen.add(item.tag)
            resolved.append(item)

        return resolved

    def suggest_category(self, tags: Iterable[str]) -> Optional[str]:
        """
        Suggest a category for a set of tags by majority vote, ties broken by
        schema order.
        """
        votes: Counter = Counter()
        for item in self.resolve(tags):
            if item.suggested_category:
                votes[item.suggested_category] += 1
        if not votes:
            return None
        order = list(self._categories.values())
        return max(votes, key=lambda name: (votes[name], -order.index(name)))

    def summarize(self, contents: Iterable[ProcessedContent]) -> Dict[str, int]:
        """
        Count in how many sources each tag occurs.

        Args:
            contents: Aggregated sources

        Returns:
            Mapping of tag to source count, most used first
        """
        counts: Counter = Counter()
        for content in contents:
            counts.update({item.tag for item in self.resolve(content.tags)})
        return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))
