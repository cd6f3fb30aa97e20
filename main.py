#!/usr/bin/env python3
"""
Mindloom - AI-assisted mindmaps from tagged notes

Main entry point for the Mindloom system. This orchestrator coordinates
note aggregation, outline generation, linking, combining and storage.
"""

import asyncio
import json
import logging
import sys
import argparse
from typing import List

from mindloom.agents import AgentRunner
from mindloom.config import config
from mindloom.exceptions import MindloomError
from mindloom.importers import BaseImporter, MockImporter, VaultImporter
from mindloom.models import Mindmap, SourceSelection, StageWarning, TAG_WEIGHTINGS
from mindloom.pipeline import MindmapPipeline, create_persistence
from mindloom.serialization import OutlineSerializer
from mindloom.synthesis import TagHierarchyResolver


def setup_logging():
    """Configure logging for the application."""
    level = getattr(logging, config.get("logging.level", "INFO").upper())
    format_str = config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file = config.log_filename

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_file)
        ]
    )


def build_importer(args) -> BaseImporter:
    """Create the importer described by the selection arguments."""
    if args.mock:
        return MockImporter()

    if not args.vault:
        raise MindloomError("--vault is required unless --mock is given")

    selection = SourceSelection(
        files=args.file or [],
        folders=args.folder or [],
        tags=args.tag or [],
        include_subfolders=args.subfolders
    )
    if selection.is_empty():
        selection = SourceSelection(folders=["."], include_subfolders=True)

    return VaultImporter(args.vault, selection=selection)


def print_warnings(warnings: List[StageWarning]):
    if not warnings:
        return
    print(f"\n{len(warnings)} warnings:")
    for warning in warnings:
        location = f" ({warning.node_id})" if warning.node_id else ""
        print(f"  [{warning.stage}/{warning.code}]{location} {warning.message}")


def print_mindmap(mindmap: Mindmap, output_format: str):
    """Print a mindmap as outline text, view JSON or both."""
    if output_format in ("note", "both"):
        print(OutlineSerializer().render(mindmap))
    if output_format in ("view", "both"):
        print(json.dumps(mindmap.to_view_tree(), indent=2, ensure_ascii=False))


def run_generate(args):
    """Generate a mindmap from the selected notes."""
    importer = build_importer(args)

    with MindmapPipeline(auto_save=False if args.no_save else None) as pipeline:
        result = asyncio.run(pipeline.generate(
            importer,
            title=args.title,
            tag_weighting=args.weighting
        ))

    if result is None:
        print("Selection contains no notes; nothing generated.")
        return

    print_mindmap(result.mindmap, config.output_format)
    print_warnings(result.warnings)
    if result.mindmap_id:
        print(f"\nSaved as: {result.mindmap_id}")


def run_combine(args):
    """Combine saved mindmaps."""
    with MindmapPipeline() as pipeline:
        result = pipeline.combine(args.ids, title=args.title)

    print_mindmap(result.mindmap, config.output_format)
    print_warnings(result.warnings)
    print(f"\nSaved as: {result.mindmap_id}")


def run_list(args):
    """List saved mindmaps."""
    with create_persistence() as persistence:
        mindmaps = persistence.list_mindmaps()

    if not mindmaps:
        print(f"No mindmaps saved in '{config.mindmaps_folder}'.")
        return

    for item in mindmaps:
        created = item.created_at.strftime("%Y-%m-%d %H:%M") if item.created_at else "unknown"
        print(f"{item.mindmap_id}  {created}  {item.node_count:4d} nodes  {item.title}")


def run_show(args):
    """Show one saved mindmap."""
    with create_persistence() as persistence:
        mindmap = persistence.load(args.id)
        warnings = list(persistence.warnings)

    if args.json:
        print(json.dumps(mindmap.to_view_tree(), indent=2, ensure_ascii=False))
    else:
        print(OutlineSerializer().render(mindmap))
        print("\nCategories:")
        for name, count in mindmap.category_summary().items():
            print(f"  {name}: {count}")
    print_warnings(warnings)


def run_tags(args):
    """Print the tag usage of a selection, with the category each tag suggests."""
    contents = build_importer(args).get_all_sources()
    resolver = TagHierarchyResolver(config.category_schema)

    summary = resolver.summarize(contents)
    if not summary:
        print("No tags found in the selection.")
        return

    for tag, count in summary.items():
        resolved = resolver.resolve_tag(tag)
        suggestion = f" -> {resolved.suggested_category}" if resolved and resolved.suggested_category else ""
        print(f"{count:4d}  #{tag}{suggestion}")


def run_test_connection(args):
    """Check that the configured model answers."""
    with AgentRunner() as runner:
        ok, error = runner.test_connection()

    if ok:
        print(f"Connection OK: {runner.provider} ({runner.model})")
    else:
        print(f"Connection failed: {error}")
        sys.exit(1)


def add_selection_arguments(parser):
    parser.add_argument("--vault", type=str, help="Path to the Markdown vault")
    parser.add_argument("--file", action="append", help="Note file relative to the vault (repeatable)")
    parser.add_argument("--folder", action="append", help="Folder relative to the vault (repeatable)")
    parser.add_argument("--tag", action="append", help="Include notes carrying this tag or a child tag (repeatable)")
    parser.add_argument("--subfolders", action="store_true", help="Include subfolders of selected folders")
    parser.add_argument("--mock", action="store_true", help="Use built-in sample notes instead of a vault")


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Mindloom - AI-assisted mindmaps from tagged notes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py generate --mock                              # Generate from sample notes
  python main.py generate --vault ~/notes --folder research   # Generate from a vault folder
  python main.py generate --vault ~/notes --tag technological/ai
  python main.py combine ai-mindmap-a ai-mindmap-b            # Combine two saved mindmaps
  python main.py list                                         # List saved mindmaps
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version="Mindloom 0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate a mindmap from notes")
    add_selection_arguments(generate)
    generate.add_argument("--title", type=str, help="Title of the new mindmap")
    generate.add_argument("--weighting", choices=TAG_WEIGHTINGS, help="Tag weighting mode")
    generate.add_argument("--no-save", action="store_true", help="Print the mindmap without saving it")
    generate.set_defaults(handler=run_generate)

    combine = subparsers.add_parser("combine", help="Combine saved mindmaps")
    combine.add_argument("ids", nargs="+", help="Ids of the mindmaps to combine")
    combine.add_argument("--title", type=str, help="Title of the combined mindmap")
    combine.set_defaults(handler=run_combine)

    list_parser = subparsers.add_parser("list", help="List saved mindmaps")
    list_parser.set_defaults(handler=run_list)

    show = subparsers.add_parser("show", help="Show a saved mindmap")
    show.add_argument("id", help="Id of the mindmap")
    show.add_argument("--json", action="store_true", help="Print the view tree as JSON")
    show.set_defaults(handler=run_show)

    tags = subparsers.add_parser("tags", help="Summarize the tags of a selection")
    add_selection_arguments(tags)
    tags.set_defaults(handler=run_tags)

    test_connection = subparsers.add_parser("test-connection", help="Check the model connection")
    test_connection.set_defaults(handler=run_test_connection)

    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging()

    logging.info(f"Mindloom: running '{args.command}'")

    try:
        args.handler(args)

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        print("\nInterrupted.")

    except MindloomError as e:
        logging.error(f"{args.command} failed: {e}")
        print(f"\n{args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
