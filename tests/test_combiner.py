"""
Tests for combining mindmaps on a unified category schema.
"""

import unittest

from mindloom.exceptions import CombineError
from mindloom.models import Mindmap, MindmapNode, UNATTRIBUTED, UNCATEGORIZED, assign_positional_ids
from mindloom.synthesis import MindmapCombiner, MultiParentLinker, unify_schemas


def node(title, refs=("a.md",), tags=(), children=(), category=None):
    return MindmapNode(id=title, title=title, category=category, tags=set(tags),
                       source_refs=list(refs), children=list(children))


def mindmap(schema, *tops, title="Input"):
    root = MindmapNode(id="root", title="", children=list(tops))
    assign_positional_ids(root)
    source_files = []
    for item in root.iter_subtree():
        for ref in item.source_refs:
            if ref != UNATTRIBUTED and ref not in source_files:
                source_files.append(ref)
    return Mindmap(root=root, title=title, category_schema=list(schema), source_files=source_files)


def titles_under(combined, category):
    anchor = next(top for top in combined.root.children if top.category == category)
    return [item.title for item in anchor.iter_subtree() if item is not anchor]


class TestMindmapCombiner(unittest.TestCase):
    """Test category anchoring, deduplication and link handling."""

    def setUp(self):
        self.combiner = MindmapCombiner(
            tag_threshold=0.8,
            min_shared_tags=2,
            linker=MultiParentLinker(title_threshold=90, max_links_per_node=5),
            enable_multi_parent=True
        )
        self.first = mindmap(
            ["Technological", "Economic"],
            node("Technological", category="Technological", children=[node("AI Research", tags={"ai", "research"})]),
            node("Economic", category="Economic", children=[node("Market Shift", tags={"markets"})]),
            title="First"
        )
        self.second = mindmap(
            ["Technological", "Social"],
            node("Quantum Computing", refs=("b.md",), category="Technological", tags={"quantum"},
                 children=[node("Qubits", refs=("b.md",))]),
            node("Social", refs=("b.md",), category="Social", children=[node("Communities", refs=("b.md",))]),
            title="Second"
        )

    def test_disjoint_categories_are_not_cross_assigned(self):
        tree_a = mindmap(["Technological", "Economic"],
                         node("Technological", category="Technological", children=[node("AI Research")]))
        tree_b = mindmap(["Technological", "Economic"],
                         node("Economic", refs=("b.md",), category="Economic",
                              children=[node("Market Shift", refs=("b.md",))]))

        combined = self.combiner.combine([tree_a, tree_b])

        self.assertEqual(combined.category_schema, ["Technological", "Economic"])
        self.assertEqual(titles_under(combined, "Technological"), ["AI Research"])
        self.assertEqual(titles_under(combined, "Economic"), ["Market Shift"])
        self.assertEqual(combined.get_node("2.1").source_refs, ["b.md"])

    def test_categories_are_unified(self):
        combined = self.combiner.combine([self.first, self.second])

        self.assertEqual(combined.category_schema, ["Technological", "Economic", "Social"])
        self.assertEqual([top.title for top in combined.root.children], ["Technological", "Economic", "Social"])
        self.assertEqual(combined.source_files, ["a.md", "b.md"])
        self.assertEqual(combined.find_violations(), [])

    def test_subtrees_stay_in_their_category(self):
        combined = self.combiner.combine([self.first, self.second])

        self.assertEqual(titles_under(combined, "Technological"), ["AI Research", "Quantum Computing", "Qubits"])
        self.assertEqual(titles_under(combined, "Economic"), ["Market Shift"])
        self.assertEqual(titles_under(combined, "Social"), ["Communities"])

    def test_non_category_top_is_grafted_under_anchor(self):
        combined = self.combiner.combine([self.first, self.second])

        quantum = combined.get_node("1.2")
        self.assertEqual(quantum.title, "Quantum Computing")
        self.assertEqual(quantum.depth, 2)
        self.assertIsNone(quantum.category)
        self.assertEqual(combined.get_node("1.2.1").title, "Qubits")

    def test_duplicate_titles_merge_recursively(self):
        first = mindmap(
            ["Technological"],
            node("Technological", category="Technological", children=[
                node("AI", children=[node("Agents")]),
            ])
        )
        second = mindmap(
            ["Technological"],
            node("Technological", refs=("b.md",), category="Technological", children=[
                node("ai", refs=("b.md",), children=[node("Agents", refs=("b.md",)), node("Vision", refs=("b.md",))]),
            ])
        )

        combined = self.combiner.combine([first, second])

        self.assertEqual(titles_under(combined, "Technological"), ["AI", "Agents", "Vision"])
        self.assertEqual(combined.get_node("1.1").source_refs, ["a.md", "b.md"])
        self.assertEqual(combined.get_node("1.1.1").source_refs, ["a.md", "b.md"])
        self.assertEqual(combined.get_node("1").source_refs, ["a.md", "b.md"])

    def test_duplicate_by_tags(self):
        first = mindmap(["Technological"], node("Technological", category="Technological",
                                                children=[node("LLMs", tags={"ai", "nlp"})]))
        second = mindmap(["Technological"], node("Technological", category="Technological",
                                                 children=[node("Language Models", refs=("b.md",), tags={"AI", "NLP"})]))

        combined = self.combiner.combine([first, second])

        self.assertEqual(titles_under(combined, "Technological"), ["LLMs"])
        self.assertEqual(combined.get_node("1.1").source_refs, ["a.md", "b.md"])

    def test_single_shared_tag_is_not_a_duplicate(self):
        first = mindmap(["Technological"], node("Technological", category="Technological",
                                                children=[node("LLMs", tags={"ai"})]))
        second = mindmap(["Technological"], node("Technological", category="Technological",
                                                 children=[node("Robotics", tags={"ai"})]))

        combined = self.combiner.combine([first, second])

        self.assertEqual(titles_under(combined, "Technological"), ["LLMs", "Robotics"])

    def test_combining_is_idempotent(self):
        raw = mindmap(
            ["Frontend", "Backend"],
            node("Frontend", category="Frontend", children=[node("State Management", tags={"state"})]),
            node("Backend", category="Backend", children=[
                node("State Management", tags={"state"}),
                node("Caching"),
            ])
        )
        linked = MultiParentLinker(title_threshold=90, max_links_per_node=5).link(raw)

        self.assertEqual(self.combiner.combine([linked]).root, linked.root)
        self.assertEqual(self.combiner.combine([linked, linked]).root, linked.root)

    def test_cross_tree_links_are_discovered(self):
        first = mindmap(["Frontend"], node("Frontend", category="Frontend",
                                           children=[node("State Management")]))
        second = mindmap(["Backend"], node("Backend", refs=("b.md",), category="Backend",
                                           children=[node("State Management", refs=("b.md",))]))

        combined = self.combiner.combine([first, second])

        self.assertEqual(combined.get_node("1.1").secondary_parents, {"2.1"})
        self.assertEqual(combined.find_violations(), [])

    def test_existing_links_are_carried_over(self):
        source = mindmap(
            ["Frontend", "Backend"],
            node("Frontend", category="Frontend", children=[node("Forms")]),
            node("Backend", category="Backend", children=[node("Validation")]),
        )
        source.get_node("1.1").secondary_parents.add("2.1")
        combiner = MindmapCombiner(enable_multi_parent=False)

        combined = combiner.combine([self.first, source])

        forms = next(item for item in combined.iter_nodes() if item.title == "Forms")
        validation = next(item for item in combined.iter_nodes() if item.title == "Validation")
        self.assertEqual(forms.secondary_parents, {validation.id})

    def test_inputs_are_not_modified(self):
        before = [self.first.model_copy(deep=True), self.second.model_copy(deep=True)]

        self.combiner.combine([self.first, self.second])

        self.assertEqual([self.first, self.second], before)

    def test_explicit_schema_keeps_empty_anchor(self):
        combined = self.combiner.combine([self.first], category_schema=["Political"])

        political = combined.get_node("1")
        self.assertEqual(political.title, "Political")
        self.assertEqual(political.children, [])
        self.assertEqual(political.source_refs, [UNATTRIBUTED])
        self.assertEqual(combined.category_schema, ["Political", "Technological", "Economic"])

    def test_unknown_category_goes_to_uncategorized(self):
        stray = mindmap(["Social"], node("Mystery", category="Mystery"))

        combined = self.combiner.combine([stray])

        self.assertEqual(combined.category_schema, ["Social", UNCATEGORIZED])
        self.assertEqual(titles_under(combined, UNCATEGORIZED), ["Mystery"])
        self.assertIn("uncategorized", [w.code for w in self.combiner.warnings])

    def test_category_matching_ignores_case(self):
        lower = mindmap(["Technological"], node("Robots", category="technological"))

        combined = self.combiner.combine([lower])

        self.assertEqual(titles_under(combined, "Technological"), ["Robots"])

    def test_category_spellings_share_one_anchor(self):
        upper = mindmap(["Technological"], node("Technological", category="Technological",
                                                children=[node("AI Research")]))
        lower = mindmap(["technological"], node("technological", refs=("b.md",), category="technological",
                                                children=[node("Robotics", refs=("b.md",))]))

        combined = self.combiner.combine([upper, lower])

        self.assertEqual(combined.category_schema, ["Technological"])
        self.assertEqual([top.title for top in combined.root.children], ["Technological"])
        self.assertEqual(titles_under(combined, "Technological"), ["AI Research", "Robotics"])

    def test_title_and_default_title(self):
        self.assertEqual(self.combiner.combine([self.first], title="Merged").title, "Merged")
        self.assertTrue(self.combiner.combine([self.first]).title.startswith("Combined Mindmap - "))

    def test_empty_input_raises(self):
        with self.assertRaises(CombineError):
            self.combiner.combine([])

    def test_missing_schema_raises(self):
        broken = mindmap([], node("Technological", category="Technological"))

        with self.assertRaises(CombineError):
            self.combiner.combine([self.first, broken])


class TestUnifySchemas(unittest.TestCase):
    """Test schema union ordering."""

    def test_first_seen_order(self):
        self.assertEqual(unify_schemas([["A", "B"], ["B", "C"]]), ["A", "B", "C"])

    def test_base_schema_comes_first(self):
        self.assertEqual(unify_schemas([["A", "B"], ["B", "C"]], base=["C", "D"]), ["C", "D", "A", "B"])

    def test_names_differing_only_in_case_are_merged(self):
        self.assertEqual(unify_schemas([["Technological"], ["technological", "Social"]]), ["Technological", "Social"])
        self.assertEqual(unify_schemas([["economic"]], base=["Economic"]), ["Economic"])


if __name__ == '__main__':
    unittest.main()
