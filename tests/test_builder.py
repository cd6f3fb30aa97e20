"""
Tests for building mindmaps from raw model outlines.
"""

import unittest

from mindloom.config import DEFAULT_CATEGORY_SCHEMA
from mindloom.exceptions import StructureError
from mindloom.models import ProcessedContent, UNATTRIBUTED, UNCATEGORIZED
from mindloom.synthesis import StructureBuilder


CONTENTS = [
    ProcessedContent(
        source_id="research/ai.md",
        tags=["technological/ai", "research"],
        content="AI research notes: transformers and agents.",
        length=43
    ),
    ProcessedContent(
        source_id="markets/shift.md",
        tags=["economic/markets"],
        content="The market shift towards AI services.",
        length=37
    ),
]

OUTLINE = [
    {
        "title": "AI Research",
        "category": "Technological",
        "tags": ["technological/ai"],
        "children": [
            {"title": "Transformers"},
            {"title": "Agents", "children": [{"title": "Tool Use"}]},
        ]
    },
    {"title": "Market Shift", "category": "Economic"},
]


class TestStructureBuilder(unittest.TestCase):
    """Test tree construction, attribution and category arbitration."""

    def setUp(self):
        self.builder = StructureBuilder(category_schema=DEFAULT_CATEGORY_SCHEMA, tag_weighting="high")

    def test_builds_tree_in_outline_order(self):
        mindmap = self.builder.build(OUTLINE, CONTENTS)

        tops = mindmap.root.children
        self.assertEqual([node.title for node in tops], ["AI Research", "Market Shift"])
        self.assertEqual([child.title for child in tops[0].children], ["Transformers", "Agents"])
        self.assertEqual(tops[0].children[1].children[0].title, "Tool Use")
        self.assertEqual(tops[0].children[1].children[0].depth, 3)
        self.assertEqual(mindmap.find_violations(), [])

    def test_positional_ids(self):
        mindmap = self.builder.build(OUTLINE, CONTENTS)

        self.assertEqual([node.id for node in mindmap.iter_nodes()], ["1", "1.1", "1.2", "1.2.1", "2"])

    def test_categories_only_on_depth_one(self):
        mindmap = self.builder.build(OUTLINE, CONTENTS)

        self.assertEqual(mindmap.get_node("1").category, "Technological")
        self.assertEqual(mindmap.get_node("2").category, "Economic")
        self.assertIsNone(mindmap.get_node("1.1").category)

    def test_source_attribution(self):
        mindmap = self.builder.build(OUTLINE, CONTENTS)

        self.assertEqual(mindmap.get_node("1").source_refs, ["research/ai.md"])
        self.assertEqual(mindmap.get_node("1").tags, {"technological/ai"})
        self.assertEqual(mindmap.get_node("1.1").source_refs, ["research/ai.md"])
        self.assertEqual(mindmap.get_node("2").source_refs, ["markets/shift.md"])

    def test_unattributed_node_is_kept(self):
        mindmap = self.builder.build(OUTLINE, CONTENTS)

        tool_use = mindmap.get_node("1.2.1")
        self.assertEqual(tool_use.source_refs, [UNATTRIBUTED])
        codes = [(w.code, w.node_id) for w in self.builder.warnings]
        self.assertIn(("unattributed", "1.2.1"), codes)

    def test_title_must_appear_as_whole_words(self):
        contents = [ProcessedContent(source_id="ops.md", content="We maintain the servers nightly.")]
        outline = [{"title": "Operations", "category": "Technological", "children": [{"title": "AI"}]}]

        mindmap = self.builder.build(outline, contents)

        self.assertEqual(mindmap.get_node("1.1").source_refs, [UNATTRIBUTED])

        contents = [ProcessedContent(source_id="ops.md", content="AI agents maintain the servers.")]
        mindmap = self.builder.build(outline, contents)

        self.assertEqual(mindmap.get_node("1.1").source_refs, ["ops.md"])

    def test_provenance(self):
        mindmap = self.builder.build(OUTLINE, CONTENTS, title="Research Map")

        self.assertEqual(mindmap.title, "Research Map")
        self.assertEqual(mindmap.source_files, ["research/ai.md", "markets/shift.md"])
        self.assertEqual(mindmap.category_schema, DEFAULT_CATEGORY_SCHEMA)

    def test_default_title(self):
        mindmap = self.builder.build(OUTLINE, CONTENTS)

        self.assertTrue(mindmap.title.startswith("AI Mindmap - "))

    def test_plain_string_entries(self):
        mindmap = self.builder.build(["Social"], [])

        self.assertEqual(mindmap.get_node("1").title, "Social")
        self.assertEqual(mindmap.get_node("1").category, "Social")

    def test_malformed_entries_are_dropped_with_warning(self):
        mindmap = self.builder.build([{"title": 7}, {"title": "Social"}, None], CONTENTS)

        self.assertEqual(len(mindmap.root.children), 1)
        self.assertEqual([w.code for w in self.builder.warnings].count("malformed_entry"), 2)

    def test_empty_outline_raises(self):
        with self.assertRaises(StructureError):
            self.builder.build([], CONTENTS)
        with self.assertRaises(StructureError):
            self.builder.build(None, CONTENTS)
        with self.assertRaises(StructureError):
            self.builder.build([{"children": [{"title": "Orphan"}]}], CONTENTS)

    def test_unknown_weighting_raises(self):
        with self.assertRaises(ValueError):
            self.builder.build(OUTLINE, CONTENTS, tag_weighting="extreme")

    def test_input_schema_not_mutated(self):
        schema = ["Technological"]
        builder = StructureBuilder(category_schema=schema)

        mindmap = builder.build([{"title": "Markets", "category": "Economic"}], CONTENTS)

        self.assertEqual(schema, ["Technological"])
        self.assertEqual(mindmap.category_schema, ["Technological", "Economic"])


class TestCategoryArbitration(unittest.TestCase):
    """Test how tag suggestions and model hints are weighed."""

    def setUp(self):
        self.schema = DEFAULT_CATEGORY_SCHEMA + ["Deeptech"]
        self.outline = [{"title": "Quantum AI", "category": "General", "tags": ["deeptech/quantum-ai"]}]
        self.contents = [
            ProcessedContent(source_id="quantum.md", tags=["deeptech/quantum-ai"], content="Quantum hardware.")
        ]

    def build(self, weighting, contents=None):
        builder = StructureBuilder(category_schema=self.schema)
        mindmap = builder.build(self.outline, contents or self.contents, tag_weighting=weighting)
        return builder, mindmap

    def test_high_weighting_prefers_tag_path(self):
        builder, mindmap = self.build("high")

        self.assertEqual(mindmap.get_node("1").category, "Deeptech")
        self.assertNotIn("General", mindmap.category_schema)

    def test_low_weighting_prefers_model(self):
        builder, mindmap = self.build("low")

        self.assertEqual(mindmap.get_node("1").category, "General")
        self.assertEqual(mindmap.category_schema[-1], "General")
        self.assertIn("category_added", [w.code for w in builder.warnings])

    def test_medium_weighting_uses_corroborating_sources(self):
        builder, mindmap = self.build("medium")

        self.assertEqual(mindmap.get_node("1").category, "Deeptech")

    def test_medium_weighting_tie_keeps_model(self):
        contents = [
            ProcessedContent(source_id="quantum.md", tags=["deeptech/quantum-ai"],
                             content="General notes on quantum hardware.")
        ]

        builder, mindmap = self.build("medium", contents)

        self.assertEqual(mindmap.get_node("1").category, "General")

    def test_tag_used_when_model_gives_no_category(self):
        self.outline = [{"title": "Quantum AI", "tags": ["deeptech/quantum-ai"]}]

        builder, mindmap = self.build("low")

        self.assertEqual(mindmap.get_node("1").category, "Deeptech")

    def test_model_category_matched_case_insensitively(self):
        self.outline = [{"title": "Quantum AI", "category": "deeptech"}]

        builder, mindmap = self.build("low")

        self.assertEqual(mindmap.get_node("1").category, "Deeptech")

    def test_uncategorized_fallback(self):
        self.outline = [{"title": "Loose Thoughts"}]

        builder, mindmap = self.build("high", [ProcessedContent(source_id="x.md", tags=["misc"])])

        self.assertEqual(mindmap.get_node("1").category, UNCATEGORIZED)
        self.assertIn(UNCATEGORIZED, mindmap.category_schema)
        self.assertIn("uncategorized", [w.code for w in builder.warnings])
        self.assertEqual(mindmap.find_violations(), [])


if __name__ == '__main__':
    unittest.main()
