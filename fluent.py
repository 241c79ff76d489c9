import asyncio
import importlib
import json
import logging
import os
import sys
from pathlib import Path

from fluent import ChainRunner, ExecutionOptions
from fluent.fluent_runtime import dumps_result

USAGE = "usage: python fluent.py module:attr chain-file [initial-json] [--blocking] [--verbose]"


def load_table(spec: str):
    """Imports `module:attr` and returns the capability table it names (attr defaults to 'table')."""
    module_name, _, attr = spec.partition(":")
    module = importlib.import_module(module_name)
    table = getattr(module, attr or "table")
    # A factory is called once to build the table
    if callable(table) and not hasattr(table, "items"):
        table = table()
    return table


async def run_chain_file(table_spec: str, file_path: str, initial_json: str | None, blocking: bool) -> int:
    """Run a serialized chain file and return the process exit status."""
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        return 1
    try:
        table = load_table(table_spec)
    except (ImportError, AttributeError) as e:
        print(f"Error: cannot load capability table {table_spec!r}: {e}", file=sys.stderr)
        return 1
    try:
        initial = json.loads(initial_json) if initial_json is not None else None
    except json.JSONDecodeError as e:
        print(f"Error: initial value is not JSON: {e}", file=sys.stderr)
        return 1

    runner = ChainRunner(table, options=ExecutionOptions(blocking=blocking))
    result = await runner.run_source(source, initial)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        return 1
    print(dumps_result(result))
    return 0


async def main(argv: list[str]) -> int:
    flags = {a for a in argv if a.startswith("--")}
    args = [a for a in argv if not a.startswith("--")]
    if "--help" in flags or len(args) < 2:
        print(USAGE, file=sys.stderr)
        return 0 if "--help" in flags else 2

    level = logging.DEBUG if ("--verbose" in flags or os.environ.get("FLUENT_DEBUG")) else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    initial_json = args[2] if len(args) > 2 else None
    return await run_chain_file(args[0], args[1], initial_json, "--blocking" in flags)


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main(sys.argv[1:])))
    except KeyboardInterrupt:
        print("\nExiting.")
