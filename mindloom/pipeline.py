"""
Mindmap pipeline for Mindloom.

This module coordinates the whole flow: aggregate the selected notes, ask the
model for an outline, build and link the mindmap, and optionally save it.
Combining saved mindmaps goes through the same object.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .agents import AgentRunner
from .config import config
from .exceptions import AgentError, CombineError
from .importers import BaseImporter, collect_tags
from .models import Mindmap, StageWarning
from .persistence import MindmapPersistence
from .synthesis import MindmapCombiner, MultiParentLinker, StructureBuilder
from .versioning import VersionManager


@dataclass
class PipelineResult:
    """Outcome of a generate or combine run."""
    mindmap: Mindmap
    warnings: List[StageWarning] = field(default_factory=list)
    mindmap_id: Optional[str] = None


def create_persistence(folder: Optional[str] = None) -> MindmapPersistence:
    """
    Build persistence from the configuration, with Git versioning when enabled.

    Args:
        folder: Mindmaps folder (defaults to config value)
    """
    folder = folder or config.mindmaps_folder
    version_manager = None
    if config.auto_commit:
        version_manager = VersionManager(folder)
        version_manager.initialize_repository()

    return MindmapPersistence(
        folder=folder,
        save_format=config.save_format,
        database_path=str(Path(folder) / config.database_filename),
        version_manager=version_manager
    )


class MindmapPipeline:
    """
    Runs generation and combination end to end.
    """

    def __init__(self, runner: Optional[AgentRunner] = None,
                 persistence: Optional[MindmapPersistence] = None,
                 builder: Optional[StructureBuilder] = None,
                 linker: Optional[MultiParentLinker] = None,
                 combiner: Optional[MindmapCombiner] = None,
                 auto_save: Optional[bool] = None,
                 enable_multi_parent: Optional[bool] = None,
                 timeout: Optional[float] = None):
        """
        Initialize the pipeline.

        Args:
            runner: Model client (created from config on first use)
            persistence: Storage for saved mindmaps (created from config on first use)
            builder: Structure builder
            linker: Multi-parent linker
            combiner: Mindmap combiner
            auto_save: Save generated mindmaps (defaults to config value)
            enable_multi_parent: Run the linker (defaults to config value)
            timeout: Seconds to wait for the model (defaults to config value)
        """
        self._runner = runner
        self._persistence = persistence
        self.builder = builder or StructureBuilder()
        self.linker = linker or MultiParentLinker(**config.linker_options())
        self.enable_multi_parent = config.enable_multi_parent if enable_multi_parent is None else enable_multi_parent
        self.combiner = combiner or MindmapCombiner(linker=self.linker, enable_multi_parent=self.enable_multi_parent)
        self.auto_save = config.auto_save if auto_save is None else auto_save
        self.timeout = timeout or config.llm_timeout

    @property
    def persistence(self) -> MindmapPersistence:
        if self._persistence is None:
            self._persistence = create_persistence()
        return self._persistence

    @property
    def runner(self) -> AgentRunner:
        if self._runner is None:
            db = self.persistence.db if self.auto_save else None
            self._runner = AgentRunner(database_manager=db)
        return self._runner

    def close(self):
        if self._runner is not None:
            self._runner.close()
        if self._persistence is not None:
            self._persistence.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    async def generate(self, importer: BaseImporter, title: Optional[str] = None,
                       tag_weighting: Optional[str] = None,
                       category_schema: Optional[Sequence[str]] = None) -> Optional[PipelineResult]:
        """
        Generate a mindmap from the sources an importer yields.

        Args:
            importer: Source of the selected notes
            title: Optional display title
            tag_weighting: Overrides the configured weighting mode
            category_schema: Overrides the configured category schema

        Returns:
            The result, or None when the selection yields no content

        Raises:
            AgentError: If the model fails or times out
            StructureError: If the model's outline contains no usable entry
        """
        logging.info("Aggregating selected notes...")
        contents = importer.get_all_sources()
        if not contents:
            logging.warning("Selection yielded no content; nothing to generate")
            return None

        schema = list(category_schema) if category_schema is not None else self.builder.category_schema
        weighting = tag_weighting or self.builder.tag_weighting
        tags = collect_tags(contents)
        logging.info(f"Requesting outline for {len(contents)} notes and {len(tags)} tags")

        try:
            outline = await asyncio.wait_for(
                asyncio.to_thread(self.runner.generate_outline, contents, tags, schema, weighting),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            raise AgentError(f"Model did not answer within {self.timeout} seconds")

        mindmap = self.builder.build(outline, contents, tag_weighting=weighting,
                                     category_schema=schema, title=title)
        warnings = list(self.builder.warnings)

        mindmap = self.linker.link(mindmap, enabled=self.enable_multi_parent)
        warnings.extend(self.linker.warnings)

        mindmap_id = None
        if self.auto_save:
            mindmap_id = self.persistence.save(mindmap)

        logging.info(f"Generated mindmap '{mindmap.title}' with {len(warnings)} warnings")
        return PipelineResult(mindmap=mindmap, warnings=warnings, mindmap_id=mindmap_id)

    def combine(self, mindmap_ids: Sequence[str], title: Optional[str] = None,
                category_schema: Optional[Sequence[str]] = None) -> PipelineResult:
        """
        Combine saved mindmaps and save the result.

        Args:
            mindmap_ids: Ids of at least two saved mindmaps
            title: Optional display title
            category_schema: Optional schema placed ahead of the input schemas

        Returns:
            The result, including the id of the saved combination

        Raises:
            CombineError: If fewer than two ids are given
            PersistenceError: If a mindmap cannot be found
        """
        if len(mindmap_ids) < 2:
            raise CombineError("Select at least two mindmaps to combine")

        warnings: List[StageWarning] = []
        mindmaps = []
        for mindmap_id in mindmap_ids:
            mindmaps.append(self.persistence.load(mindmap_id))
            warnings.extend(self.persistence.warnings)

        combined = self.combiner.combine(mindmaps, category_schema=category_schema, title=title)
        warnings.extend(self.combiner.warnings)

        mindmap_id = self.persistence.save(combined)
        logging.info(f"Combined {len(mindmaps)} mindmaps into '{combined.title}'")
        return PipelineResult(mindmap=combined, warnings=warnings, mindmap_id=mindmap_id)
