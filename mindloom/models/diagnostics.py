"""
Non-fatal diagnostics collected while building, linking, combining or parsing.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, Field


class StageWarning(BaseModel):
    """
    A recoverable problem reported by one of the pipeline stages.
    """

    stage: str = Field(
        ...,
        description="Component that raised the warning (e.g. 'builder', 'serializer')"
    )

    code: str = Field(
        ...,
        description="Short machine-readable warning kind (e.g. 'unattributed')"
    )

    message: str = Field(
        ...,
        description="Human-readable description"
    )

    node_id: Optional[str] = Field(
        default=None,
        description="Id of the node the warning refers to, when there is one"
    )


class WarningCollector:
    """
    Mixin giving a component a per-call list of warnings.

    Components call `_reset_warnings()` at the start of each public operation
    and `_warn()` for every recoverable problem.
    """

    stage_name = "core"

    def __init__(self):
        self.warnings: List[StageWarning] = []

    def _reset_warnings(self) -> None:
        self.warnings = []

    def _warn(self, code: str, message: str, node_id: Optional[str] = None) -> None:
        logging.warning(f"[{self.stage_name}] {message}")
        self.warnings.append(StageWarning(
            stage=self.stage_name,
            code=code,
            message=message,
            node_id=node_id
        ))
