"""Generate a Graphviz DOT graph of cache dependencies.

Usage:
    python -m scripts.generate_cache_dependency_graph [src_dir] [output]
src_dir defaults to the billing_cache package, output to
cache-dependency-graph.dot. Render with: dot -Tsvg cache-dependency-graph.dot -o graph.svg
"""

import sys
from pathlib import Path

from billing_cache.application.services.dependency_graph import generate_cache_dependency_graph
from billing_cache.shared.telemetry import setup_logging

DEFAULT_OUTPUT = "cache-dependency-graph.dot"


def main() -> None:
    """Scan the source tree and write the DOT file."""
    setup_logging()
    src_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(__file__).resolve().parent.parent / "billing_cache"
    output = Path(sys.argv[2]) if len(sys.argv) > 2 else Path(DEFAULT_OUTPUT)
    if not src_dir.is_dir():
        print(f"Source directory not found: {src_dir}", file=sys.stderr)
        sys.exit(1)
    output.write_text(generate_cache_dependency_graph(src_dir), encoding="utf-8")
    print(f"Wrote {output}")


if __name__ == "__main__":
    main()
