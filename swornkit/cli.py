from __future__ import annotations

import argparse
import importlib.metadata as importlib_metadata
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .builder import build_content_tree
from .config import Config, load_config
from .discover import discover_content_files
from .ids import compute_hash
from .labels import CollectionLabel, NodeLabel, PackageLabel, label_collections
from .loader import DataLoader
from .messages import AddRoot, SetMetaRoot
from .model import Content, EntryContent, IndexContent
from .nodes import DataGroup, DataNode
from .parse import parse_content
from .paths import WHOLE_VAULT
from .result import Err, Ok


def _swornkit_version() -> str:
    try:
        return importlib_metadata.version("swornkit")
    except importlib_metadata.PackageNotFoundError:
        return "0+unknown"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="swornkit",
        description="Index and assemble Datasworn content folders.",
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"swornkit {_swornkit_version()}",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log output (-v for info, -vv for debug).",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    labels = sub.add_parser(
        "labels", help="Show the collection type inferred for every folder."
    )
    labels.add_argument("root", type=Path, help="Content directory to scan")

    build = sub.add_parser("build", help="Assemble packages from a content directory.")
    build.add_argument("root", type=Path, help="Content directory to scan")
    build.add_argument(
        "--meta-root",
        action="store_true",
        help="Treat every top-level folder of ROOT as its own package.",
    )
    build.add_argument(
        "--package-id",
        default=None,
        help="Package id for non meta-root packages (default from config: campaign).",
    )
    build.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Write the assembled package JSON here (default: stdout).",
    )
    build.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 if any file failed to build.",
    )
    return p


def _print_top_level_help(parser: argparse.ArgumentParser) -> None:
    parser.print_help()
    print()
    print("Quick start examples:")
    print("  swornkit labels content/")
    print("  swornkit build content/ -o package.json --strict")
    print("  swornkit build homebrew/ --meta-root -o packages.json")


def _configure_logging(verbosity: int, cfg: Config) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = getattr(logging, cfg.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _read_content(root: Path, cfg: Config) -> list[Content]:
    out: list[Content] = []
    for file in discover_content_files(
        root, cfg.include, cfg.exclude, cfg.respect_gitignore
    ):
        rel = file.relative_to(root).as_posix()
        text = file.read_text(encoding="utf-8", errors="replace")
        value = parse_content(rel, text)
        if value is None:
            continue
        out.append(Content(rel, file.stat().st_mtime, compute_hash(text), value))
    return out


def _describe_label(label: NodeLabel | None) -> str:
    if isinstance(label, PackageLabel):
        return "package"
    if isinstance(label, CollectionLabel):
        if isinstance(label.allowable_types, Ok):
            return ", ".join(label.allowable_types.value)
        return f"error: {label.allowable_types.error}"
    return ""


def _describe_leaf(node: DataNode[Any, Any]) -> str:
    value = node.data
    if isinstance(value, EntryContent):
        if isinstance(value.data, Err):
            return f"error: {value.data.error}"
        return value.entry_type or "content"
    if isinstance(value, IndexContent):
        return f"index: {value.declared_type or '-'}"
    return "package"


def format_label_tree(root: DataGroup[Any, Any], labels: Any) -> str:
    lines: list[str] = [f". [{_describe_label(labels.get(root))}]"]

    def rec(node: DataNode[Any, Any], prefix: str, is_last: bool) -> None:
        connector = "└── " if is_last else "├── "
        if isinstance(node, DataGroup):
            lines.append(f"{prefix}{connector}{node.name}/ [{_describe_label(labels.get(node))}]")
            child_prefix = prefix + ("    " if is_last else "│   ")
            children = sorted(
                node.children,
                key=lambda n: (0 if isinstance(n, DataGroup) else 1, n.name),
            )
            for i, child in enumerate(children):
                rec(child, child_prefix, i == len(children) - 1)
        else:
            lines.append(f"{prefix}{connector}{node.name} ({_describe_leaf(node)})")

    children = sorted(
        root.children, key=lambda n: (0 if isinstance(n, DataGroup) else 1, n.name)
    )
    for i, child in enumerate(children):
        rec(child, "", i == len(children) - 1)
    return "\n".join(lines)


def _run_labels(root: Path, cfg: Config) -> None:
    tree = build_content_tree(_read_content(root, cfg))
    labels = label_collections(tree.root)
    print(format_label_tree(tree.root, labels))


def _run_build(args: argparse.Namespace, cfg: Config) -> None:
    loader = DataLoader(
        package_id=args.package_id or cfg.package_id,
        build_debounce_ms=0,
        file_debounce_ms=0,
    )
    try:
        loader.index_folder(
            args.root,
            include=cfg.include,
            exclude=cfg.exclude,
            respect_gitignore=cfg.respect_gitignore,
        )
        # Roots are registered after indexing so every package is built once.
        if args.meta_root:
            loader.handle(SetMetaRoot(WHOLE_VAULT))
        else:
            if cfg.meta_root:
                loader.handle(SetMetaRoot(cfg.meta_root))
            roots = cfg.roots or ([] if cfg.meta_root else [WHOLE_VAULT])
            for root in roots:
                loader.handle(AddRoot(root))
    finally:
        loader.close()

    problems = 0
    for path, outcome in sorted(loader.files.items()):
        if isinstance(outcome, Err):
            problems += 1
            print(f"{path}: [{outcome.error.tag}] {outcome.error}", file=sys.stderr)

    packages = loader.packages
    if not packages:
        print("No package produced.", file=sys.stderr)
    payload: Any
    if len(packages) == 1:
        payload = next(iter(packages.values()))
    else:
        payload = {pkg["_id"]: pkg for _, pkg in sorted(packages.items())}
    text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"

    if args.output is None:
        sys.stdout.write(text)
    else:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text, encoding="utf-8")
        print(
            f"Wrote {len(packages)} package(s) to {args.output.as_posix()}",
            file=sys.stderr,
        )

    if args.strict and problems:
        raise SystemExit(1)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    raw_argv = list(sys.argv[1:] if argv is None else argv)
    if not raw_argv:
        _print_top_level_help(parser)
        return

    args = parser.parse_args(raw_argv)
    root: Path = args.root
    if not root.exists() or not root.is_dir():
        parser.error(f"{args.cmd}: root is not a directory: {root}")
    root = root.resolve()
    args.root = root
    cfg = load_config(root)
    _configure_logging(args.verbose, cfg)

    if args.cmd == "labels":
        _run_labels(root, cfg)
    elif args.cmd == "build":
        _run_build(args, cfg)


if __name__ == "__main__":  # pragma: no cover
    main()
