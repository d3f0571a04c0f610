"""Dependency graphs of resolved packages in Graphviz DOT form."""

from __future__ import annotations

import logging
import subprocess
import threading
import webbrowser
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, urlsplit

from apkforge.apkindex import Package

log = logging.getLogger(__name__)

ERROR_NODE = "❌ error"


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def _attr_list(attrs: dict[str, str]) -> str:
    if not attrs:
        return ""
    inner = " ".join(f"{key}={_quote(value)}" for key, value in attrs.items())
    return f" [{inner}]"


@dataclass
class DotGraph:
    """A directed graph that renders to DOT text.

    Nodes are unique by name; adding a node again merges its attributes.
    Edges are kept in the order they were added.
    """

    name: str = "images"
    attributes: dict[str, str] = field(default_factory=dict)
    nodes: dict[str, dict[str, str]] = field(default_factory=dict)
    edges: list[tuple[str, str, dict[str, str]]] = field(default_factory=list)

    def add_node(self, name: str, **kwargs: str) -> None:
        """Add a node, or update the attributes of an existing one."""
        self.nodes.setdefault(name, {}).update(kwargs)

    def add_edge(self, source: str, target: str, **kwargs: str) -> None:
        """Add an edge from ``source`` to ``target``."""
        self.edges.append((source, target, dict(kwargs)))

    def to_string(self) -> str:
        """Return the graph as DOT text."""
        lines = [f"digraph {_quote(self.name)} {{"]
        lines.extend(f"\t{key}={_quote(value)};" for key, value in self.attributes.items())
        lines.extend(
            f"\t{_quote(name)}{_attr_list(attrs)};" for name, attrs in self.nodes.items()
        )
        lines.extend(
            f"\t{_quote(source)} -> {_quote(target)}{_attr_list(attrs)};"
            for source, target, attrs in self.edges
        )
        lines.append("}")
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.to_string()


def pkgver(pkg: Package) -> str:
    """Return ``name-version`` for a package."""
    return f"{pkg.name}-{pkg.version}"


def link(args: Sequence[str], pkg: str) -> str:
    """Return the explorer link that focuses on ``pkg`` and keeps ``args``."""
    filtered = [arg for arg in args if arg != pkg]
    url = "/?node=" + pkg
    if filtered:
        url += "&node=" + "&node=".join(filtered)
    return url


def _error_node(err: BaseException) -> tuple[str, str]:
    """Name and edge label for errors that describe a solver step.

    Errors with a ``constraint`` attribute name the constraint; errors with a
    ``package`` attribute name that package, labelled by ``graph_label``.
    """
    constraint = getattr(err, "constraint", None)
    if isinstance(constraint, str) and constraint:
        return constraint, "solving constraint"
    package = getattr(err, "package", None)
    if package is not None:
        return pkgver(package), str(getattr(err, "graph_label", "") or "")
    return "", ""


def _can_unwrap(err: BaseException) -> bool:
    return err.__cause__ is not None or isinstance(err, BaseExceptionGroup)


def _make_node(graph: DotGraph, err: BaseException, parent: str) -> str:
    name, label = _error_node(err)
    if not name:
        if _can_unwrap(err):
            return parent
        name = "❌ " + str(err)
    graph.add_node(name)
    if label:
        graph.add_edge(parent, name, label=label)
    else:
        graph.add_edge(parent, name)
    return name


def walk_errors(graph: DotGraph, err: BaseException, parent: str) -> None:
    """Add ``err`` and the errors it wraps to ``graph`` below ``parent``."""
    node = _make_node(graph, err, parent)
    if err.__cause__ is not None:
        walk_errors(graph, err.__cause__, node)
    elif isinstance(err, BaseExceptionGroup):
        for wrapped in err.exceptions:
            walk_errors(graph, wrapped, node)


def render_graph(
    config_file: str,
    config_packages: Iterable[str],
    packages: Iterable[Package],
    args: Sequence[str],
    web: bool,
    span: bool,
    resolve_error: BaseException | None,
) -> DotGraph:
    """Build the dependency graph of resolved ``packages``.

    Packages named in ``args`` are drawn first. With ``span`` set, each
    dependency and each provider gets at most one edge. With ``web`` set,
    nodes carry explorer links.
    """
    packages = list(packages)
    by_name = {pkg.name: pkg for pkg in packages}
    edges: set[str] = set()
    deps: set[str] = set()

    graph = DotGraph("images")
    graph.attributes["rankdir"] = "LR"
    graph.add_node(config_file)

    for spec in config_packages:
        graph.add_node(spec)
        graph.add_edge(config_file, spec)
        before, sep, _ = spec.partition("~")
        if sep:
            graph.add_node(before)
            graph.add_edge(spec, before)
            deps.add(before)
        else:
            deps.add(spec)

    def ordered() -> Iterator[Package]:
        done: set[str] = set()
        for arg in args:
            pkg = by_name.get(arg)
            if pkg is None:
                raise ValueError(f"package not found: {arg!r}")
            yield pkg
            done.add(arg)
        for pkg in packages:
            if pkg.name not in done:
                yield pkg

    def render_deps(pkg: Package) -> None:
        attrs = {"label": pkgver(pkg)}
        if web:
            attrs["URL"] = link(args, pkg.name)
        graph.add_node(pkg.name, **attrs)

        for dep in by_name[pkg.name].dependencies:
            dep = dep.partition("~")[0]
            if web and ":" not in dep:
                graph.add_node(dep, URL=link(args, dep))
            else:
                graph.add_node(dep)
            if (dep not in edges or not span) and pkg.name != dep:
                graph.add_edge(pkg.name, dep)
                edges.add(dep)
            deps.add(dep)

    def render_provides(pkg: Package) -> None:
        graph.add_node(pkg.name, label=pkgver(pkg))

        for prov in by_name[pkg.name].provides:
            if prov not in deps:
                for separator in ("=", "~"):
                    before, sep, _ = prov.partition(separator)
                    if sep:
                        if before in deps:
                            graph.add_node(before, shape="rect")
                            graph.add_edge(before, pkg.name)
                        break
                continue
            graph.add_node(prov)
            if pkg.name not in edges or not span:
                graph.add_edge(prov, pkg.name)
                edges.add(pkg.name)

    for pkg in ordered():
        render_deps(pkg)
    for pkg in ordered():
        render_provides(pkg)

    if resolve_error is not None:
        graph.add_node(ERROR_NODE)
        walk_errors(graph, resolve_error, ERROR_NODE)

    return graph


def _render_svg(render: Callable[[list[str]], DotGraph], nodes: list[str]) -> bytes:
    shown = "[" + " ".join(nodes) + "]"
    try:
        graph = render(nodes)
    except ValueError as exc:
        return f"error rendering {shown}: {exc}".encode()
    log.info("rendering %s", shown)
    try:
        result = subprocess.run(
            ["dot", "-Tsvg"],
            input=graph.to_string().encode(),
            capture_output=True,
            check=True,
        )
    except subprocess.CalledProcessError as exc:
        return (exc.stdout or b"") + f"error rendering {shown}: {exc}".encode()
    except OSError as exc:
        return f"error rendering {shown}: {exc}".encode()
    return result.stdout


def _make_server(
    render: Callable[[list[str]], DotGraph], default_nodes: Sequence[str] = ()
) -> ThreadingHTTPServer:
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802
            parsed = urlsplit(self.path)
            body = b""
            if parsed.path == "/":
                query = parse_qs(parsed.query, keep_blank_values=True)
                nodes = query.get("node") or list(default_nodes)
                body = _render_svg(render, nodes)
            self.send_response(200)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
            log.debug(format, *args)

    return ThreadingHTTPServer(("127.0.0.1", 0), Handler)


def serve_web(
    render: Callable[[list[str]], DotGraph],
    open_browser: Callable[[str], Any] | None = None,
) -> None:
    """Serve rendered SVG graphs on a local port until interrupted.

    ``open_browser`` is called with the server's URL; it defaults to opening
    the system web browser.
    """
    opener = open_browser if open_browser is not None else webbrowser.open
    server = _make_server(render)
    host, port = server.server_address[:2]
    log.info("%s:%s", host, port)
    threading.Thread(
        target=opener, args=(f"http://localhost:{port}",), daemon=True
    ).start()
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()