"""CLI for orgedit - structural editing of org-style outline files."""

import argparse
import dataclasses
import difflib
import json
import logging
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .adapters.fs_host import FsHost, write_atomic
from .adapters.yaml_codec import dump_yaml
from .core.document import TextBuffer
from .core.model import EditPlan, Position
from .engine import ACTIONS
from .grammar import properties
from .grammar.headings import find_current_heading
from .grammar.links import collect_links
from .locate import cmd_locate
from .runtime import build_runtime


def parse_position(text: str) -> Position:
    """
    Parse ``LINE[:COL]``: a 1-based line and an optional 0-based column.
    """
    line_str, _, col_str = text.partition(":")
    try:
        line = int(line_str)
        col = int(col_str) if col_str else 0
    except ValueError:
        raise ValueError(f"Invalid position: {text!r}. Expected LINE[:COL]") from None
    if line < 1 or col < 0:
        raise ValueError(f"Invalid position: {text!r}. Lines start at 1, columns at 0")
    return Position(line - 1, col)


def _load(path: Path) -> TextBuffer:
    if not path.exists():
        raise ValueError(f"File {path} not found")
    return TextBuffer(path.read_text(encoding="utf-8"))


def _heading_line(doc: TextBuffer, pos: Position, rt: Any) -> int:
    found = find_current_heading(doc, min(pos.line, doc.line_count - 1), rt.config.keywords)
    if found is None:
        raise ValueError(f"No heading at or above line {pos.line + 1}")
    return found[0]


def _plan_dict(plan: EditPlan) -> dict[str, Any]:
    out: dict[str, Any] = {"edits": len(plan.edits)}
    if plan.cursor:
        out["cursor"] = {"line": plan.cursor.line + 1, "column": plan.cursor.character}
    if plan.fold:
        out["fold"] = {
            "start": plan.fold.start_line + 1,
            "end": plan.fold.end_line + 1,
            "kind": plan.fold.kind,
        }
    for key in ("fallback", "message", "value"):
        value = getattr(plan, key)
        if value is not None:
            out[key] = value
    return out


def cmd_id(args: argparse.Namespace, rt: Any) -> int:
    """Print a new random ID."""
    print(rt.idgen.new_id())
    return 0


def cmd_context(args: argparse.Namespace, rt: Any) -> int:
    """Classify the element under a position."""
    doc = _load(Path(args.file))
    pos = parse_position(args.pos)
    ctx = rt.engine.analyze(doc, pos)

    data = {k: v for k, v in dataclasses.asdict(ctx).items() if v not in (None, [])}
    data["line"] = ctx.line + 1

    fmt = "json" if args.json else args.format
    if fmt == "json":
        print(json.dumps(data, indent=2))
    elif fmt == "yaml":
        print(dump_yaml(data), end="")
    else:
        detail = ctx.title or ctx.content or ctx.property_key or ctx.block_name or ""
        print(f"{ctx.kind}\t{ctx.line + 1}\t{detail}")
    return 0


def cmd_edit(args: argparse.Namespace, rt: Any) -> int:
    """Run a structural edit command and write the result back."""
    path = Path(args.file)
    if not path.exists():
        print(f"File {path} not found", file=sys.stderr)
        return 1
    if args.action not in ACTIONS:
        raise ValueError(f"Unknown action: {args.action}. Choose from: {', '.join(ACTIONS)}")

    host = FsHost(path)
    pos = parse_position(args.pos)
    tags = args.tags.split(",") if args.tags is not None else None
    plan = rt.engine.run(
        args.action,
        host.doc,
        pos,
        state=args.state,
        note=args.note,
        tags=tags,
        key=args.key,
        value=args.value,
        date=args.date,
    )

    if args.dry_run:
        new_text = host.doc.edited_text(plan.edits)
        if new_text is None:
            print("Error: edits could not be applied", file=sys.stderr)
            return 1
        diff = difflib.unified_diff(
            host.doc.get_text().splitlines(keepends=True),
            new_text.splitlines(keepends=True),
            fromfile=str(path),
            tofile=str(path),
        )
        sys.stdout.writelines(diff)
        return 0

    if not rt.engine.apply(plan, host):
        print("Error: edits could not be applied", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(_plan_dict(plan)))
    elif not args.quiet:
        if plan.value:
            print(plan.value)
        if plan.message:
            print(plan.message)
        if plan.cursor:
            print(f"Cursor: {plan.cursor.line + 1}:{plan.cursor.character}")
        if plan.fold:
            print(f"Fold: {plan.fold.start_line + 1}-{plan.fold.end_line + 1} ({plan.fold.kind})")
        if plan.fallback:
            print(f"Fallback: {plan.fallback}")
    return 0


def cmd_prop_show(args: argparse.Namespace, rt: Any) -> int:
    """Pretty-print the property drawer of a heading."""
    doc = _load(Path(args.file))
    line = _heading_line(doc, parse_position(args.pos), rt)
    drawer = properties.find_property_drawer(doc, line, rt.config.properties.scan_limit)
    entries = [e for _n, e in properties.read_properties(doc, drawer)] if drawer else []

    if args.json:
        print(json.dumps({e.key.upper(): e.value for e in entries}))
    elif entries:
        print(rt.codec.encode(entries), end="")
    else:
        print("# No properties")
    return 0


def cmd_prop_get(args: argparse.Namespace, rt: Any) -> int:
    """Get property values of a heading."""
    doc = _load(Path(args.file))
    line = _heading_line(doc, parse_position(args.pos), rt)
    scan_limit = rt.config.properties.scan_limit

    found = False
    for key in args.keys:
        value = properties.get_property(doc, line, key, scan_limit)
        if value is None:
            if not args.quiet:
                print(f"Key '{key}' not found", file=sys.stderr)
            continue
        found = True
        if args.json:
            print(json.dumps({key.upper(): value}))
        else:
            print(f"{key.upper()}={value}")
    return 0 if found else 1


def _set_properties(
    path: Path, pos: Position, pairs: list[tuple[str, str]], rt: Any
) -> list[str]:
    """Write each pair against the updated buffer, then save once."""
    doc = _load(path)
    messages = []
    for key, value in pairs:
        plan = rt.engine.run("set-property", doc, pos, key=key, value=value)
        if not rt.engine.apply(plan, doc):
            raise ValueError(f"Could not write property {key}")
        if plan.message:
            messages.append(plan.message)
    write_atomic(path, doc.get_text())
    return messages


def cmd_prop_set(args: argparse.Namespace, rt: Any) -> int:
    """Set property values on a heading."""
    pairs = []
    for kv in args.pairs:
        if "=" not in kv:
            print(f"Invalid format: {kv}. Expected key=value", file=sys.stderr)
            return 1
        key, _, value = kv.partition("=")
        pairs.append((key.strip(), value.strip()))

    messages = _set_properties(Path(args.file), parse_position(args.pos), pairs, rt)
    if not args.quiet:
        for message in messages:
            print(message)
    return 0


def cmd_prop_load(args: argparse.Namespace, rt: Any) -> int:
    """Set properties on a heading from a YAML mapping."""
    if args.yaml == "-":
        text = sys.stdin.read()
    else:
        text = Path(args.yaml).read_text(encoding="utf-8")
    pairs = rt.codec.decode(text)

    messages = _set_properties(Path(args.file), parse_position(args.pos), pairs, rt)
    if not args.quiet:
        for message in messages:
            print(message)
    return 0


def cmd_links(args: argparse.Namespace, rt: Any) -> int:
    """List links with their classified targets."""
    doc = _load(Path(args.file))
    if args.line is not None:
        if not 1 <= args.line <= doc.line_count:
            raise ValueError(f"Line {args.line} is outside the document")
        lines = [args.line - 1]
    else:
        lines = list(range(doc.line_count))

    results = [
        {
            "line": n + 1,
            "start": link.start_col,
            "end": link.end_col,
            "kind": link.kind,
            "target": link.target,
            "description": link.description,
            "target_kind": target.kind,
            "resolved_line": resolved + 1 if resolved is not None else None,
        }
        for n, link, target, resolved in collect_links(doc, rt.config.keywords, lines)
    ]

    if args.json:
        print(json.dumps(results, indent=2))
    else:
        for r in results:
            where = f"-> {r['resolved_line']}" if r["resolved_line"] else ""
            print(f"{r['line']}:{r['start']}\t{r['target_kind']}\t{r['target']}\t{where}".rstrip())
    return 0


def cmd_serve(args: argparse.Namespace, rt: Any) -> int:
    """Start local JSON API server."""
    try:
        import uvicorn

        from .api.app import create_app, generate_token
    except ImportError as e:
        print(
            "Error: API dependencies not installed. "
            "Install with: pip install orgedit[api]",
            file=sys.stderr,
        )
        print(f"Details: {e}", file=sys.stderr)
        return 1

    # Determine token
    token_arg = getattr(args, "token", "auto")
    token = None

    if token_arg == "auto":
        token = generate_token()
        print(f"Generated bearer token: {token}")
        print(f"Use in requests: Authorization: Bearer {token}")
    elif token_arg == "none":
        print("Warning: Running without authentication. Only use in trusted environments.")
        token = None
    else:
        token = token_arg

    app = create_app(rt, token=token, enable_cors=getattr(args, "cors", False))

    host = getattr(args, "host", "127.0.0.1")
    port = getattr(args, "port", 8766)

    print(f"Starting server on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")
    return 0


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="orgedit", description="Structural editing for org-style outline files"
    )
    parser.add_argument("--version", action="version", version=f"orgedit {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: search cwd/orgedit.toml, then next to FILE)",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Minimize output"
    )
    parser.add_argument(
        "--json", action="store_true", help="Machine-readable output"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Debug logging on stderr"
    )

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    # id command
    subparsers.add_parser("id", help="Print a new random ID")

    # context command
    parser_context = subparsers.add_parser("context", help="Classify the element at a position")
    parser_context.add_argument("file", help="Document path")
    parser_context.add_argument("pos", help="Position as LINE[:COL] (line 1-based, column 0-based)")
    parser_context.add_argument(
        "--format", choices=["json", "yaml", "tsv"], default="json",
        help="Output format (default: json)"
    )

    # locate command
    parser_locate = subparsers.add_parser("locate", help="Get the extent of the element on a line")
    parser_locate.add_argument("file", help="Document path")
    parser_locate.add_argument("line", type=int, help="Line number (1-based)")
    parser_locate.add_argument(
        "--format", choices=["json", "tsv"], default="json",
        help="Output format (default: json)"
    )

    # edit command
    parser_edit = subparsers.add_parser("edit", help="Run a structural edit command")
    parser_edit.add_argument("file", help="Document path")
    parser_edit.add_argument("pos", help="Cursor as LINE[:COL]")
    parser_edit.add_argument("action", help=f"One of: {', '.join(ACTIONS)}")
    parser_edit.add_argument(
        "--dry-run", action="store_true",
        help="Print unified diff without writing"
    )
    parser_edit.add_argument("--key", help="Property key (set-property)")
    parser_edit.add_argument("--value", help="Property value (set-property)")
    parser_edit.add_argument("--state", help="Keyword (set-todo); empty clears it")
    parser_edit.add_argument("--tags", help="Comma separated tags (set-tags)")
    parser_edit.add_argument("--note", help="Note for keywords that ask for one (set-todo)")
    parser_edit.add_argument(
        "--date", help="YYYY-MM-DD, default today (set-scheduled, set-deadline)"
    )

    # prop command
    parser_prop = subparsers.add_parser("prop", help="Manage heading properties")
    prop_sub = parser_prop.add_subparsers(dest="prop_cmd", required=True)

    parser_prop_show = prop_sub.add_parser("show", help="Pretty-print the drawer as YAML")
    parser_prop_show.add_argument("file", help="Document path")
    parser_prop_show.add_argument("pos", help="Any position inside the heading's subtree")

    parser_prop_get = prop_sub.add_parser("get", help="Get property values")
    parser_prop_get.add_argument("file", help="Document path")
    parser_prop_get.add_argument("pos", help="Any position inside the heading's subtree")
    parser_prop_get.add_argument("keys", nargs="+", help="Keys to retrieve")

    parser_prop_set = prop_sub.add_parser("set", help="Set property values")
    parser_prop_set.add_argument("file", help="Document path")
    parser_prop_set.add_argument("pos", help="Any position inside the heading's subtree")
    parser_prop_set.add_argument("pairs", nargs="+", help="key=value pairs")

    parser_prop_load = prop_sub.add_parser("load", help="Set properties from a YAML mapping")
    parser_prop_load.add_argument("file", help="Document path")
    parser_prop_load.add_argument("pos", help="Any position inside the heading's subtree")
    parser_prop_load.add_argument("yaml", help="YAML file, or - for stdin")

    # links command
    parser_links = subparsers.add_parser("links", help="List links and their targets")
    parser_links.add_argument("file", help="Document path")
    parser_links.add_argument("--line", type=int, default=None, help="Only this line (1-based)")

    # serve command
    parser_serve = subparsers.add_parser("serve", help="Start local JSON API server")
    parser_serve.add_argument(
        "--host", default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser_serve.add_argument(
        "--port", type=int, default=8766,
        help="Port to bind to (default: 8766)"
    )
    parser_serve.add_argument(
        "--token", default="auto",
        help="Bearer token (auto|<string>|none, default: auto)"
    )
    parser_serve.add_argument(
        "--cors", action="store_true",
        help="Enable CORS (default: false)"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    handlers = {
        "id": cmd_id,
        "context": cmd_context,
        "locate": cmd_locate,
        "edit": cmd_edit,
        "links": cmd_links,
        "serve": cmd_serve,
    }

    if args.cmd == "prop":
        prop_handlers = {
            "show": cmd_prop_show,
            "get": cmd_prop_get,
            "set": cmd_prop_set,
            "load": cmd_prop_load,
        }
        handler = prop_handlers.get(args.prop_cmd)
    else:
        handler = handlers.get(args.cmd)

    if handler:
        try:
            file_arg = getattr(args, "file", None)
            rt = build_runtime(
                config_path=args.config,
                document_path=Path(file_arg) if file_arg else None,
            )
            exit_code = handler(args, rt)
            sys.exit(exit_code)
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        print(f"Unknown command: {args.cmd}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
