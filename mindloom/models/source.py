"""
Input models: processed note content, source selections and the raw outline
suggested by the language model.
"""

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field


TagWeighting = Literal["high", "medium", "low"]

TAG_WEIGHTINGS = ("high", "medium", "low")


class ProcessedContent(BaseModel):
    """
    One aggregated source (typically a note file).
    """

    source_id: str = Field(
        ...,
        description="Identifier of the source (e.g. vault-relative file path)"
    )

    tags: List[str] = Field(
        default_factory=list,
        description="Tags extracted from the source, possibly hierarchical (a/b/c)"
    )

    content: str = Field(
        default="",
        description="Raw text of the source; opaque to the core apart from title matching"
    )

    length: int = Field(
        default=0,
        ge=0,
        description="Length of the raw text in characters"
    )


class SourceSelection(BaseModel):
    """
    What the user picked as input for a mindmap.
    """

    files: List[str] = Field(default_factory=list)
    folders: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    include_subfolders: bool = False

    def is_empty(self) -> bool:
        return not (self.files or self.folders or self.tags)


class OutlineSuggestion(BaseModel):
    """
    One entry of the nested outline produced by the language model.
    """

    title: str
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    children: List['OutlineSuggestion'] = Field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: Any, dropped: Optional[List[Any]] = None) -> Optional['OutlineSuggestion']:
        """
        Leniently convert a raw JSON value into an OutlineSuggestion.

        Entries without a usable string title are treated as absent. Malformed
        optional fields are ignored rather than rejected.

        Args:
            raw: Value decoded from the model response (dict or plain string)
            dropped: Optional list that receives every entry treated as absent

        Returns:
            The suggestion, or None when the entry has no usable title
        """
        if isinstance(raw, OutlineSuggestion):
            return raw
        if isinstance(raw, str):
            raw = {"title": raw}
        if not isinstance(raw, dict):
            if dropped is not None:
                dropped.append(raw)
            return None

        title = raw.get("title", raw.get("name"))
        if not isinstance(title, str) or not title.strip():
            if dropped is not None:
                dropped.append(raw)
            return None

        category = raw.get("category")
        if not isinstance(category, str) or not category.strip():
            category = None

        raw_tags = raw.get("tags") or []
        if isinstance(raw_tags, str):
            raw_tags = [raw_tags]
        tags = [tag for tag in raw_tags if isinstance(tag, str)] if isinstance(raw_tags, list) else []

        raw_children = raw.get("children") or []
        children: List[OutlineSuggestion] = []
        if isinstance(raw_children, list):
            for raw_child in raw_children:
                child = cls.from_raw(raw_child, dropped)
                if child is not None:
                    children.append(child)

        return cls(
            title=" ".join(title.split()),
            category=category.strip() if category else None,
            tags=tags,
            children=children
        )


OutlineSuggestion.model_rebuild()
