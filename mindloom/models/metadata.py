"""
Metadata record kept alongside a saved mindmap outline.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class MindmapMetadata(BaseModel):
    """
    Advisory metadata about a persisted mindmap.

    The outline text remains the source of truth; this record only backs up
    the provenance fields and speeds up listing.
    """

    mindmap_id: str = Field(
        ...,
        description="Identifier of the saved mindmap (outline file stem)"
    )

    title: str = Field(
        default="",
        description="Display title"
    )

    created_at: Optional[datetime] = Field(
        default=None,
        description="Creation time of the mindmap"
    )

    source_files: List[str] = Field(
        default_factory=list,
        description="Identifiers of contributing sources"
    )

    category_schema: List[str] = Field(
        default_factory=list,
        description="Category schema at save time"
    )

    node_count: int = Field(
        default=0,
        description="Number of non-root nodes"
    )

    content_hash: Optional[str] = Field(
        default=None,
        description="SHA-256 of the saved outline text"
    )

    saved_at: datetime = Field(
        default_factory=datetime.now,
        description="When the record was written"
    )
