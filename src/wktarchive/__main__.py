"""wktarchive - package entry point.

This module enables running the project with:

    python -m wktarchive [-q|-v|-d] [--backend NAME] [--project-dir DIR] list <archive>...
    python -m wktarchive [-q|-v|-d] [--backend NAME] [--project-dir DIR] update <archive> <ops.json>
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, cast

from rich.console import Console
from rich.tree import Tree

from plugins.model_archive.plugin import ModelArchivePlugin
from wktarchive import __version__
from wktarchive.core.config import ConfigResolver
from wktarchive.core.errors import WktArchiveError
from wktarchive.core.logging import apply_logging_policy, get_logger, set_colors

log = get_logger("wktarchive.cli")

# option -> (config section, key); each takes one value
_VALUE_OPTIONS: dict[str, tuple[str, ...]] = {
    "--backend": ("archive", "backend"),
    "--tmp-dir": ("archive", "tmp_dir"),
    "--helper-script": ("archive", "helper", "script"),
    "--java-home": ("archive", "helper", "java_home"),
    "--host": ("server", "host"),
}


def _ensure_dict(root: dict[str, Any], key: str) -> dict[str, Any]:
    val = root.get(key)
    if isinstance(val, dict):
        return cast(dict[str, Any], val)
    new: dict[str, Any] = {}
    root[key] = new
    return new


def parse_cli_args(argv: list[str]) -> tuple[dict[str, Any], list[str]]:
    """Split argv into ConfigResolver cli_args and positional arguments.

    Flags may appear in any position:
    - wktarchive -d list app.zip
    - wktarchive list app.zip --backend streaming
    """
    cli_args: dict[str, Any] = {}
    positional: list[str] = []
    i = 0

    while i < len(argv):
        arg = argv[i]

        if arg in ("-q", "--quiet"):
            _ensure_dict(cli_args, "logging")["level"] = "quiet"
        elif arg in ("-v", "--verbose"):
            _ensure_dict(cli_args, "logging")["level"] = "verbose"
        elif arg in ("-d", "--debug"):
            _ensure_dict(cli_args, "logging")["level"] = "debug"
        elif arg == "--no-color":
            _ensure_dict(cli_args, "logging")["color"] = False
        elif arg == "--port" and i + 1 < len(argv):
            _ensure_dict(cli_args, "server")["port"] = int(argv[i + 1])
            i += 1
        elif arg == "--project-dir" and i + 1 < len(argv):
            cli_args["project_dir"] = argv[i + 1]
            i += 1
        elif arg in _VALUE_OPTIONS and i + 1 < len(argv):
            *sections, key = _VALUE_OPTIONS[arg]
            target = cli_args
            for section in sections:
                target = _ensure_dict(target, section)
            target[key] = argv[i + 1]
            i += 1
        else:
            positional.append(arg)

        i += 1

    return cli_args, positional


def build_rich_tree(label: str, contents: dict[str, Any] | None) -> Tree:
    """Render a result tree: directories are dicts, files are ''."""
    tree = Tree(f"[bold]{label}[/bold]")

    def _add(node: Tree, children: dict[str, Any]) -> None:
        for name in sorted(children):
            child = children[name]
            if isinstance(child, dict):
                _add(node.add(f"[blue]{name}/[/blue]"), child)
            else:
                node.add(name)

    _add(tree, contents or {})
    return tree


def _print_usage(console: Console) -> None:
    console.print(f"wktarchive v{__version__}")
    console.print()
    console.print("Usage:")
    console.print("  wktarchive list <archive>...             Show archive entry trees")
    console.print("  wktarchive update <archive> <ops.json>   Apply an operations file")
    console.print("  wktarchive serve [--host H] [--port P]   Serve the HTTP API")
    console.print("  wktarchive version                       Show version")
    console.print("  wktarchive help                          Show this help")
    console.print()
    console.print("Options:")
    console.print("  --backend [in_memory|streaming|helper]   Archive backend")
    console.print("  --project-dir DIR                        Base for relative archive paths")
    console.print("  --tmp-dir DIR                            Temp root (streaming backend)")
    console.print("  --helper-script PATH                     Archive helper script")
    console.print("  --java-home DIR                          JAVA_HOME for the helper")
    console.print()
    console.print("Verbosity:")
    console.print("  -q, --quiet                              Quiet mode (errors only)")
    console.print("  -v, --verbose                            Verbose mode (detailed info)")
    console.print("  -d, --debug                              Debug mode (everything)")


def _load_operations(ops_file: Path) -> list[Any]:
    try:
        data = json.loads(ops_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise WktArchiveError(
            f"Failed to read operations file {ops_file}: {e}",
            suggestion='Expected {"operations": [{"op": "add", "path": ..., "filePath": ...}]}',
        ) from e
    if isinstance(data, dict):
        data = data.get("operations", [])
    if not isinstance(data, list):
        raise WktArchiveError(f"Operations file {ops_file} must contain a list of operations")
    return data


async def _serve(resolver: ConfigResolver, *, verbose: bool) -> None:
    """Serve the archive HTTP API inside the running event loop."""
    import uvicorn

    from plugins.model_archive.api import create_app

    host = str(resolver.resolve_optional("server.host", "127.0.0.1"))
    port = int(resolver.resolve_optional("server.port", 8080))
    app = create_app(config_resolver=resolver)
    log.info(f"Serving archive API on http://{host}:{port}")
    config = uvicorn.Config(
        app, host=host, port=port, log_level="debug" if verbose else "info", access_log=False
    )
    await uvicorn.Server(config).serve()


async def run(argv: list[str], console: Console | None = None) -> int:
    """Run a CLI command and return the process exit code."""
    console = console or Console()
    cli_args, positional = parse_cli_args(argv)

    if not positional or positional[0] in ("help", "--help", "-h"):
        _print_usage(console)
        return 0 if positional else 1

    command, args = positional[0], positional[1:]
    if command == "version":
        console.print(f"wktarchive v{__version__}")
        return 0

    try:
        resolver = ConfigResolver(cli_args=cli_args)
        apply_logging_policy(resolver.resolve_logging_policy())
        set_colors(bool(resolver.resolve_optional("logging.color", True)))
        log.debug(f"Parsed CLI args: {cli_args}")

        project_dir = cli_args.get("project_dir") or str(Path.cwd())
        plugin = ModelArchivePlugin(resolver=resolver)

        if command == "list":
            if not args:
                log.error("list requires at least one archive file")
                return 1
            contents = await plugin.get_contents_of_archive_files(project_dir, args)
        elif command == "serve":
            await _serve(resolver, verbose=resolver.resolve_logging_level() in ("verbose", "debug"))
            return 0
        elif command == "update":
            if len(args) != 2:
                log.error("update requires <archive> <ops.json>")
                return 1
            operations = _load_operations(Path(args[1]))
            contents = await plugin.save_contents_of_archive_files(
                project_dir, {args[0]: operations}
            )
        else:
            log.error(f"Unknown command: {command}")
            _print_usage(console)
            return 1
    except WktArchiveError as e:
        log.error(str(e))
        return 1

    for name, tree in (contents or {}).items():
        console.print(build_rich_tree(name, tree))
    return 0


def main() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(run(sys.argv[1:])))


if __name__ == "__main__":
    main()
