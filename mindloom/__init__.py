"""
Mindloom: AI-assisted mindmaps from tagged notes.

Turns a selection of notes into a categorized, cross-linked mindmap outline
and combines saved mindmaps without re-categorizing their branches.
"""

__version__ = "0.1.0"
__author__ = "Mindloom Project"

# Import main components
from .models import Mindmap, MindmapNode, ProcessedContent, SourceSelection, StageWarning
from .synthesis import StructureBuilder, MultiParentLinker, MindmapCombiner
from .serialization import OutlineSerializer
from .importers import BaseImporter, MockImporter, VaultImporter
from .agents import AgentRunner
from .database import DatabaseManager
from .persistence import MindmapPersistence
from .versioning import VersionManager
from .pipeline import MindmapPipeline, PipelineResult

__all__ = [
    "Mindmap",
    "MindmapNode",
    "ProcessedContent",
    "SourceSelection",
    "StageWarning",
    "StructureBuilder",
    "MultiParentLinker",
    "MindmapCombiner",
    "OutlineSerializer",
    "BaseImporter",
    "MockImporter",
    "VaultImporter",
    "AgentRunner",
    "DatabaseManager",
    "MindmapPersistence",
    "VersionManager",
    "MindmapPipeline",
    "PipelineResult",
]
