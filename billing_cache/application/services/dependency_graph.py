"""Static cache dependency graph.

Scans Python sources (without importing them) for cached functions and
invalidation call sites and renders a Graphviz DOT graph: cached
functions point at the dependency kinds they register, invalidating
functions point at the kinds they invalidate. Reading the graph answers
"which caches does this mutation clear?" and, more usefully, "which
cache is never cleared by anything?".

Recognised forms:
    @cached(CacheConfig(...)) / @cached_recomputable(RecomputableCacheConfig(...))
    name = cached(CONFIG)(fetch)
    cached_bulk_lookup(BulkLookupConfig(...) | CONFIG, ...)
    invalidate_dependencies([...CacheDependency.<kind>(...)...])
where CONFIG is a module-level config assignment.
"""

import ast
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from billing_cache.domain.enums import CacheNamespace

logger = logging.getLogger(__name__)

_DECORATOR_FACTORIES = {"cached": "cached", "cached_recomputable": "recomputable"}
_BULK_FACTORY = "cached_bulk_lookup"
_INVALIDATE = "invalidate_dependencies"
_CONFIG_CLASSES = frozenset({"CacheConfig", "RecomputableCacheConfig", "BulkLookupConfig"})
_DEPENDENCY_FIELDS = ("dependencies_fn", "result_dependencies_fn")
_SKIP_DIRS = frozenset({"tests", "__pycache__", ".venv", "venv", ".git", "build", "dist"})

_CACHED_STYLE = 'shape=box, style="rounded,filled", fillcolor="#cfe2ff"'
_DEPENDENCY_STYLE = 'shape=diamond, style=filled, fillcolor="#fff3cd"'
_INVALIDATOR_STYLE = 'shape=box, style=filled, fillcolor="#f8d7da"'


@dataclass(frozen=True)
class CachedFunction:
    name: str
    namespace: str
    kind: str
    dependencies: tuple[str, ...]
    path: str


@dataclass(frozen=True)
class InvalidationSite:
    name: str
    dependencies: tuple[str, ...]
    path: str


@dataclass
class DependencyGraph:
    cached_functions: list[CachedFunction] = field(default_factory=list)
    invalidations: list[InvalidationSite] = field(default_factory=list)

    def dependency_kinds(self) -> list[str]:
        kinds = {kind for fn in self.cached_functions for kind in fn.dependencies}
        kinds.update(kind for site in self.invalidations for kind in site.dependencies)
        return sorted(kinds)

    def extend(self, other: "DependencyGraph") -> None:
        self.cached_functions.extend(other.cached_functions)
        self.invalidations.extend(other.invalidations)


def _call_name(node: ast.expr) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def _namespace_label(node: ast.expr | None) -> str:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    if isinstance(node, ast.Attribute):
        try:
            return CacheNamespace[node.attr].value
        except KeyError:
            return node.attr
    return "?"


def _dependency_refs(node: ast.AST) -> set[str]:
    """CacheDependency.<kind> references anywhere under node."""
    return {
        sub.attr
        for sub in ast.walk(node)
        if isinstance(sub, ast.Attribute)
        and isinstance(sub.value, ast.Name)
        and sub.value.id == "CacheDependency"
    }


class _ModuleScanner(ast.NodeVisitor):
    def __init__(self, tree: ast.Module, path: str) -> None:
        self.path = path
        self.graph = DependencyGraph()
        self._scope: list[ast.FunctionDef | ast.AsyncFunctionDef] = []
        self._functions: dict[str, ast.AST] = {
            node.name: node
            for node in tree.body
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
        }
        self._configs: dict[str, ast.Call] = {}
        for node in tree.body:
            if (
                isinstance(node, ast.Assign)
                and isinstance(node.value, ast.Call)
                and _call_name(node.value.func) in _CONFIG_CLASSES
            ):
                for target in node.targets:
                    if isinstance(target, ast.Name):
                        self._configs[target.id] = node.value

    def visit_FunctionDef(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        for decorator in node.decorator_list:
            if isinstance(decorator, ast.Call):
                kind = _DECORATOR_FACTORIES.get(_call_name(decorator.func) or "")
                if kind is not None:
                    self._record_cached(node.name, kind, decorator)
        self._scope.append(node)
        self.generic_visit(node)
        self._scope.pop()

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_Call(self, node: ast.Call) -> None:
        if isinstance(node.func, ast.Call):
            # cached(CONFIG)(fetch)
            kind = _DECORATOR_FACTORIES.get(_call_name(node.func.func) or "")
            if kind is not None:
                wrapped = node.args[0] if node.args else None
                name = wrapped.id if isinstance(wrapped, ast.Name) else self._current_name()
                self._record_cached(name, kind, node.func)
        else:
            name = _call_name(node.func)
            if name == _BULK_FACTORY:
                self._record_cached(self._current_name(), "bulk", node)
            elif name == _INVALIDATE:
                self._record_invalidation(node)
        self.generic_visit(node)

    def _current_name(self) -> str:
        return self._scope[-1].name if self._scope else "<module>"

    def _resolve_config(self, call: ast.Call) -> ast.Call | None:
        node: ast.expr | None = call.args[0] if call.args else None
        if node is None:
            node = next((kw.value for kw in call.keywords if kw.arg == "config"), None)
        if isinstance(node, ast.Name):
            return self._configs.get(node.id)
        if isinstance(node, ast.Call) and _call_name(node.func) in _CONFIG_CLASSES:
            return node
        return None

    def _record_cached(self, name: str, kind: str, call: ast.Call) -> None:
        config = self._resolve_config(call)
        if config is None:
            logger.debug("%s: could not resolve cache config for %s", self.path, name)
            return
        keywords = {kw.arg: kw.value for kw in config.keywords if kw.arg}
        dependencies: set[str] = set()
        for field_name in _DEPENDENCY_FIELDS:
            value = keywords.get(field_name)
            if value is None:
                continue
            if isinstance(value, ast.Name) and value.id in self._functions:
                dependencies |= _dependency_refs(self._functions[value.id])
            else:
                dependencies |= _dependency_refs(value)
        self.graph.cached_functions.append(
            CachedFunction(
                name=name,
                namespace=_namespace_label(keywords.get("namespace")),
                kind=kind,
                dependencies=tuple(sorted(dependencies)),
                path=self.path,
            )
        )

    def _record_invalidation(self, call: ast.Call) -> None:
        dependencies: set[str] = set()
        for arg in [*call.args, *(kw.value for kw in call.keywords)]:
            dependencies |= _dependency_refs(arg)
        if not dependencies and self._scope:
            # Keys built earlier in the same function and passed as a variable.
            dependencies = _dependency_refs(self._scope[-1])
        self.graph.invalidations.append(
            InvalidationSite(
                name=self._current_name(),
                dependencies=tuple(sorted(dependencies)),
                path=self.path,
            )
        )


def scan_source(source: str, path: str = "<string>") -> DependencyGraph:
    """Scan one module's source text."""
    tree = ast.parse(source, filename=path)
    scanner = _ModuleScanner(tree, path)
    scanner.visit(tree)
    return scanner.graph


def _source_files(src_dir: Path) -> Iterable[Path]:
    for path in sorted(src_dir.rglob("*.py")):
        relative = path.relative_to(src_dir)
        if _SKIP_DIRS.intersection(relative.parts[:-1]):
            continue
        if path.name.startswith("test_") or path.name.endswith("_test.py"):
            continue
        yield path


def scan_directory(src_dir: str | Path) -> DependencyGraph:
    """Scan every non-test Python file under src_dir. Unparsable files are skipped."""
    root = Path(src_dir)
    graph = DependencyGraph()
    for path in _source_files(root):
        relative = path.relative_to(root).as_posix()
        try:
            graph.extend(scan_source(path.read_text(encoding="utf-8"), relative))
        except (SyntaxError, UnicodeDecodeError) as e:
            logger.warning("Skipping %s: %s", relative, e)
    return graph


def _quote(value: str) -> str:
    return '"' + value.replace('"', '\\"') + '"'


def _merge_invalidations(sites: Iterable[InvalidationSite]) -> Mapping[tuple[str, str], set[str]]:
    merged: dict[tuple[str, str], set[str]] = {}
    for site in sites:
        merged.setdefault((site.path, site.name), set()).update(site.dependencies)
    return merged


def render_dot(graph: DependencyGraph) -> str:
    """Render graph as Graphviz DOT source."""
    lines = [
        "digraph CacheDependencies {",
        "  rankdir=LR;",
        '  node [fontname="Helvetica", fontsize=10];',
        "",
        "  // Cached functions",
    ]
    seen: set[str] = set()
    edges: list[str] = []
    for fn in graph.cached_functions:
        node_id = _quote(f"cache:{fn.namespace}:{fn.name}")
        if node_id in seen:
            continue
        seen.add(node_id)
        label = _quote(f"{fn.name}\\n[{fn.namespace}]" + ("\\n(recomputable)" if fn.kind == "recomputable" else ""))
        lines.append(f"  {node_id} [label={label}, {_CACHED_STYLE}];")
        edges.extend(f"  {node_id} -> {_quote('dep:' + kind)};" for kind in fn.dependencies)

    lines += ["", "  // Dependency kinds"]
    for kind in graph.dependency_kinds():
        lines.append(f"  {_quote('dep:' + kind)} [label={_quote(kind)}, {_DEPENDENCY_STYLE}];")

    lines += ["", "  // Invalidating functions"]
    for (path, name), kinds in _merge_invalidations(graph.invalidations).items():
        node_id = _quote(f"invalidate:{path}:{name}")
        label = _quote(f"{name}\\n{path}")
        lines.append(f"  {node_id} [label={label}, {_INVALIDATOR_STYLE}];")
        edges.extend(
            f'  {node_id} -> {_quote("dep:" + kind)} [color="#dc3545", style=dashed];'
            for kind in sorted(kinds)
        )

    lines += ["", "  // Edges", *edges, "}"]
    return "\n".join(lines) + "\n"


def generate_cache_dependency_graph(src_dir: str | Path) -> str:
    """Scan src_dir and return the DOT graph."""
    graph = scan_directory(src_dir)
    logger.info(
        "Found %d cached functions, %d invalidation sites, %d dependency kinds",
        len(graph.cached_functions),
        len(graph.invalidations),
        len(graph.dependency_kinds()),
    )
    return render_dot(graph)
