# apkforge

A small, dependency-free library for working with APK package indexes
and the helpers that image tooling builds on them.

## Modules

- `apkforge.apkindex` — `parse_package_index` reads plain `APKINDEX`
  text (a string, bytes, or a stream of lines) into a list of `Package`
  records; `index_from_archive` reads an `APKINDEX.tar.gz` into an
  `APKIndex` (packages, description and signature);
  `archive_from_index` writes an `APKIndex` back out as a gzipped tar
  holding `APKINDEX` and `DESCRIPTION`. Malformed input raises
  `IndexParseError`. `Package.checksum_string()` gives the checksum in
  the `Q1`-prefixed base64 form used in the index.
- `apkforge.arch` — `arch_to_apk` maps platform names such as `amd64`
  or `arm64` to their APK spelling (`x86_64`, `aarch64`); other names
  pass through unchanged.
- `apkforge.lock` — `remove_label`, `strip_url_scheme`,
  `default_output_path` and `lock_package_ranges` produce the
  repository names, output paths and byte ranges with checksums that
  go into a lock file.
- `apkforge.showpackages` — `resolve_format`, `render_package` and
  `render_packages` print package lists using one of the predefined
  formats in `FORMATS` (for example `name-version` or `packagelock`)
  or a custom template with `{{ .Name }}`, `{{ .Version }}` and
  `{{ .Source }}`. Bad templates raise `TemplateError`.
- `apkforge.dot` — `render_graph` builds a `DotGraph` of resolved
  packages, their dependencies and provides, and any resolution error
  (walked through `walk_errors`); `DotGraph.to_string()` returns DOT
  text. `serve_web` serves the graph as SVG on a local port and opens a
  browser; it runs the Graphviz `dot` program, which must be installed.
- `apkforge.build` — `select_archs` chooses the architectures to build
  (explicit ones, else the configuration's, else all of `ALL_ARCHS`);
  `rename` moves a file, copying and deleting when the move crosses
  devices.
- `apkforge.publish` — `parse_annotations` checks `key:value`
  annotations and collects them into a dict, raising `AnnotationError`
  on malformed input; `format_image_refs` joins references one per
  line.
- `apkforge.options` — `PublishOptions`, with the options `with_local`
  and `with_tags`, applied in order by `apply_publish_options`.

## Installation

The package has no runtime dependencies. The `test` extra adds
`pytest` and `responses`.

## Example

```python
import io

from apkforge.apkindex import parse_package_index
from apkforge.arch import arch_to_apk

index = io.StringIO(
    "C:Q1Deb0jNytkrjPW4N/eKLZ43BwOlw=\n"
    "P:a-pkg\n"
    "V:1.2.3-r1\n"
    "A:x86_64\n"
    "D:so:libc.musl-x86_64.so.1\n"
    "p:thing1 thing2\n"
    "\n"
)

for pkg in parse_package_index(index):
    print(pkg.name, pkg.version, pkg.provides)

print(arch_to_apk("arm64"))  # aarch64
```

Lock file helpers:

```python
from apkforge.lock import default_output_path, remove_label, strip_url_scheme

remove_label("@local https://packages.example.com/os")
# 'https://packages.example.com/os'
strip_url_scheme("https://packages.example.com/os")
# 'packages.example.com/os'
default_output_path("apko.yaml", "lock.json")
# 'apko.lock.json'
```

Package listings:

```python
from apkforge.showpackages import render_packages, resolve_format

print(render_packages(resolve_format("packagelock"), [("busybox", "1.36.1-r0", "")]), end="")
# - busybox=1.36.1-r0
```

Annotations:

```python
from apkforge.publish import parse_annotations

parse_annotations(["org.opencontainers.image.vendor:Example"])
# {'org.opencontainers.image.vendor': 'Example'}
```

## What it does not do

apkforge is a library of building blocks. It has no command-line tool,
does not download indexes or packages and keeps no download cache,
does not resolve dependencies, and does not build, sign or push
container images. Callers supply resolved package lists and file
contents themselves.