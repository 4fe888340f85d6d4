import argparse
import json
import sys
from pathlib import Path
from typing import List

import structlog

from texpatch.buffer import TextBuffer
from texpatch.config import ReviewSettings
from texpatch.diff import generate_edits_from_text
from texpatch.exceptions import EditApplicationError
from texpatch.extraction import edits_from_tool_call, extract_edits, find_diff_blocks
from texpatch.intent import classify_intent
from texpatch.log_setup import configure_logging
from texpatch.models import DeleteEdit, Edit, EditListAdapter, InsertEdit
from texpatch.review.engine import ReviewSession
from texpatch.review.queue import Notification
from texpatch.utils.text import build_numbered_content
from texpatch.validator import validate_edits

logger = structlog.get_logger(__name__)

# --- Helper Utilities ---

def _read_text(path: Path) -> str:
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    with open(path, "r", encoding="utf-8") as f:
        return f.read()

def _load_edits_from_json(path: Path) -> List[Edit]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error parsing JSON edits: {e}", file=sys.stderr)
        sys.exit(1)
    return edits_from_tool_call(data)

def _load_edits(changes: Path, original_text: str, settings: ReviewSettings) -> List[Edit]:
    """JSON tool payload, assistant output with fenced blocks, or a rewritten document."""
    if changes.suffix.lower() == ".json":
        print(f"Loading structured edits from {changes}...", file=sys.stderr)
        return _load_edits_from_json(changes)

    text = _read_text(changes)
    if find_diff_blocks(text, settings.fence_language):
        print(f"Extracting edit blocks from {changes}...", file=sys.stderr)
        return extract_edits(text, settings.fence_language)

    print(f"Calculating diff from text file {changes}...", file=sys.stderr)
    return generate_edits_from_text(original_text, text)

def _print_summary(edits: List[Edit]) -> None:
    print(f"Found {len(edits)} changes:", file=sys.stderr)
    for e in edits:
        if isinstance(e, DeleteEdit):
            print(f"[-] L{e.start_line}+{e.original_line_count}")
        elif isinstance(e, InsertEdit):
            print(f"[+] L{e.start_line}: {e.content!r}")
        else:
            print(f"[~] L{e.start_line}+{e.original_line_count} -> {e.content!r}")

def _dump(edits: List[Edit]) -> str:
    return EditListAdapter.dump_json(edits, indent=2).decode("utf-8")

# --- Command Handlers ---

def handle_extract(args, settings: ReviewSettings):
    if args.input.suffix.lower() == ".json":
        edits = _load_edits_from_json(args.input)
    else:
        edits = extract_edits(_read_text(args.input), settings.fence_language)

    if args.json:
        print(_dump(edits))
    else:
        _print_summary(edits)

def handle_intent(args, settings: ReviewSettings):
    intent = classify_intent(args.text)
    print(intent.model_dump_json(indent=2))

def handle_number(args, settings: ReviewSettings):
    print(build_numbered_content(
        _read_text(args.input),
        max_lines=settings.numbered_max_lines,
        edge_lines=settings.numbered_edge_lines,
    ))

def handle_diff(args, settings: ReviewSettings):
    edits = generate_edits_from_text(_read_text(args.original), _read_text(args.modified))
    if args.json:
        print(_dump(edits))
    else:
        _print_summary(edits)

def handle_apply(args, settings: ReviewSettings):
    original_text = _read_text(args.original)

    # 1. Get Edits
    edits = _load_edits(args.changes, original_text, settings)

    # 2. Gate by intent
    validation = validate_edits(edits, classify_intent(args.prompt or ""))
    for violation in validation.violations:
        print(f"Blocked: {violation}", file=sys.stderr)

    print(f"Applying {len(validation.accepted)} edits...", file=sys.stderr)

    # 3. Apply
    def notify(notification: Notification):
        logger.info(notification.message, notice=notification.notice.value)

    buffer = TextBuffer(original_text)
    session = ReviewSession(settings, notify=notify)
    session.ingest(validation.accepted, buffer)
    try:
        result = session.accept_all(buffer)
    except EditApplicationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    # 4. Save
    output_path = args.output
    if not output_path:
        output_path = args.original.with_name(f"{args.original.stem}_edited{args.original.suffix}")

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(buffer.text)

    skipped = len(result.dropped) + len(result.failed)
    print(f"Saved to {output_path}", file=sys.stderr)
    print(
        f"Stats: {len(result.accepted)} applied, {skipped} skipped, "
        f"{len(validation.violations)} blocked.",
        file=sys.stderr,
    )
    if skipped > 0:
        sys.exit(1)

# --- Main Entrypoint ---

def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="texpatch",
        description="texpatch: review and apply AI-suggested LaTeX edits"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Subcommands")

    # Command: extract
    p_extract = subparsers.add_parser("extract", help="Extract edits from assistant output or a tool payload")
    p_extract.add_argument("input", type=Path, help="Assistant output (text) or tool payload (.json)")
    p_extract.add_argument("--json", action="store_true", help="Output raw JSON edits")
    p_extract.set_defaults(func=handle_extract)

    # Command: intent
    p_intent = subparsers.add_parser("intent", help="Show the permissions inferred from a request")
    p_intent.add_argument("text", type=str, help="User request")
    p_intent.set_defaults(func=handle_intent)

    # Command: number
    p_number = subparsers.add_parser("number", help="Print a document with line numbers for prompting")
    p_number.add_argument("input", type=Path, help="LaTeX source")
    p_number.set_defaults(func=handle_number)

    # Command: diff
    p_diff = subparsers.add_parser("diff", help="Compare an original and a rewritten document")
    p_diff.add_argument("original", type=Path, help="Original document")
    p_diff.add_argument("modified", type=Path, help="Rewritten document")
    p_diff.add_argument("--json", action="store_true", help="Output raw JSON edits")
    p_diff.set_defaults(func=handle_diff)

    # Command: apply
    p_apply = subparsers.add_parser("apply", help="Apply every permitted edit to a document")
    p_apply.add_argument("original", type=Path, help="Original document")
    p_apply.add_argument("changes", type=Path, help="JSON edits, assistant output, or rewritten document")
    p_apply.add_argument("-o", "--output", type=Path, help="Output path")
    p_apply.add_argument("--prompt", type=str, default="", help="User request used to gate edit kinds")
    p_apply.set_defaults(func=handle_apply)

    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    args.func(args, ReviewSettings())

if __name__ == "__main__":
    main()
