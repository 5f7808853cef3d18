"""JavaScript bundling for Folio.

ScriptBundler follows the import graph of one entry module and emits a
single self-contained script. Each module is wrapped in a CommonJS-style
function and registered under a numeric id; a small loader runs the entry
module. ES ``import`` and ``export`` statements are rewritten to
``require`` calls and ``exports`` assignments so both styles can be mixed.
Comments and string literals are never scanned for dependencies.

Key classes:
- ScriptBundler: Resolves and bundles an entry module.
- Bundle: Result of a bundling run.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .errors import AssetError

IMPORT_RE = re.compile(
    r"""^[ \t]*import\s+(?:(?P<clause>[\w$*{}\s,]+?)\s+from\s+)?"""
    r"""(?P<quote>["'])(?P<specifier>[^"'\n]+)(?P=quote)[ \t]*;?""",
    re.MULTILINE,
)
REQUIRE_RE = re.compile(
    r"""\brequire\(\s*(?P<quote>["'])(?P<specifier>[^"'\n]+)(?P=quote)\s*\)"""
)
EXPORT_FROM_RE = re.compile(
    r"""^[ \t]*export\s*(?:\*(?:\s*as\s+(?P<alias>[\w$]+))?|\{(?P<names>[^}]*)\})\s*from\s*"""
    r"""(?P<quote>["'])(?P<specifier>[^"'\n]+)(?P=quote)[ \t]*;?""",
    re.MULTILINE,
)
EXPORT_LIST_RE = re.compile(r"^(?P<indent>[ \t]*)export\s*\{(?P<names>[^}]*)\}[ \t]*;?", re.MULTILINE)
EXPORT_DEFAULT_DECLARATION_RE = re.compile(
    r"^(?P<indent>[ \t]*)export\s+default\s+(?P<declaration>"
    r"(?:async\s+)?function\b\s*\*?\s*(?P<name>[\w$]+)"
    r"|class\s+(?!extends\b)(?P<class_name>[\w$]+))",
    re.MULTILINE,
)
EXPORT_DEFAULT_RE = re.compile(r"^(?P<indent>[ \t]*)export\s+default\b\s*", re.MULTILINE)
EXPORT_DECLARATION_RE = re.compile(
    r"^(?P<indent>[ \t]*)export\s+"
    r"(?P<kind>(?:async\s+)?function\b\s*\*?\s*|(?:class|const|let|var)\s+)(?P<name>[\w$]+)",
    re.MULTILINE,
)
EXPORT_RE = re.compile(r"^[ \t]*export\b(?!\s*:)", re.MULTILINE)

_ES_MODULE_FLAG = 'Object.defineProperty(exports, "__esModule", { value: true });'
_REGEX_PRECEDERS = frozenset(["", *"(,=:[!&|?{};+-*%<>~^"])
_REGEX_KEYWORDS = frozenset(
    ["return", "typeof", "case", "do", "else", "in", "of", "new", "delete", "void", "throw", "yield", "await"]
)

_PRELUDE = """(function (modules) {
  var cache = {};
  function load(id) {
    if (cache[id]) return cache[id].exports;
    var module = cache[id] = { exports: {} };
    var entry = modules[id];
    entry[0].call(module.exports, function (name) {
      return load(entry[1][name]);
    }, module, module.exports);
    return module.exports;
  }
  load(0);
})({
"""


@dataclass
class Bundle:
    """Result of a bundling run.

    Attributes:
        code: The bundled script.
        modules: Module paths in id order; the entry is first.
    """

    code: str
    modules: list[Path]


@dataclass
class _Module:
    id: int
    path: Path
    source: str
    dependencies: dict[str, int]


class ScriptBundler:
    """Bundles a JavaScript entry module and everything it imports.

    Relative specifiers resolve against the importing file, trying the
    exact path, then ``.js``, then ``index.js``. Bare specifiers resolve
    through ``node_modules/<package>/package.json``.

    Attributes:
        project_root: Root for display paths and ``node_modules`` lookup.
    """

    def __init__(self, project_root: Path):
        self.project_root = project_root
        self.node_modules = project_root / "node_modules"

    def bundle(self, entry: Path) -> Bundle:
        """Bundle an entry module.

        Args:
            entry: Path to the entry module.

        Returns:
            Bundle with the generated code and the modules it contains.

        Raises:
            AssetError: If the entry or any imported module is missing.
        """
        if not entry.is_file():
            raise AssetError(entry, "Bundle entry not found")

        modules: dict[Path, _Module] = {}
        links: dict[Path, dict[str, Path]] = {}
        queue = [entry.resolve()]
        while queue:
            path = queue.pop(0)
            if path in modules:
                continue
            source = _to_commonjs(path.read_text(encoding="utf-8"), path)
            modules[path] = _Module(id=len(modules), path=path, source=source, dependencies={})
            links[path] = {name: self.resolve(name, path) for name in _specifiers(source)}
            queue.extend(links[path].values())

        for path, module in modules.items():
            module.dependencies = {
                specifier: modules[target].id for specifier, target in links[path].items()
            }
        ordered = list(modules.values())
        return Bundle(code=self._render(ordered), modules=[m.path for m in ordered])

    def resolve(self, specifier: str, importer: Path) -> Path:
        """Resolve an import specifier to a file.

        Raises:
            AssetError: If no candidate file exists.
        """
        if specifier.startswith("."):
            base = importer.parent / specifier
        elif specifier.startswith("/"):
            base = self.project_root / specifier.lstrip("/")
        else:
            base = self._package_base(specifier)

        for candidate in (base, base.with_name(base.name + ".js"), base / "index.js"):
            if candidate.is_file():
                return candidate.resolve()
        raise AssetError(
            base, f"Cannot resolve '{specifier}' imported from {self._display(importer)}"
        )

    def _package_base(self, specifier: str) -> Path:
        parts = specifier.split("/")
        size = 2 if specifier.startswith("@") else 1
        package_dir = self.node_modules.joinpath(*parts[:size])
        subpath = parts[size:]
        if subpath:
            return package_dir.joinpath(*subpath)

        manifest = package_dir / "package.json"
        if manifest.is_file():
            try:
                data = json.loads(manifest.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise AssetError(manifest, f"Invalid package.json: {exc}") from exc
            main = data.get("main")
            if isinstance(main, str) and main:
                return package_dir / main
        return package_dir / "index.js"

    def _display(self, path: Path) -> str:
        try:
            return path.relative_to(self.project_root.resolve()).as_posix()
        except ValueError:
            return str(path)

    def _render(self, modules: list[_Module]) -> str:
        chunks = [_PRELUDE]
        entries = []
        for module in modules:
            dependencies = json.dumps(module.dependencies, sort_keys=True)
            entries.append(
                f"/* {self._display(module.path)} */\n"
                f"{module.id}: [function (require, module, exports) {{\n"
                f"{module.source.rstrip()}\n"
                f"}}, {dependencies}]"
            )
        chunks.append(",\n".join(entries))
        chunks.append("\n});\n")
        return "".join(chunks)


def _specifiers(source: str) -> list[str]:
    """Return required specifiers in order of first appearance."""
    seen: list[str] = []
    for match in REQUIRE_RE.finditer(_mask(source)):
        specifier = _text(match, source, "specifier")
        if specifier not in seen:
            seen.append(specifier)
    return seen


def _to_commonjs(source: str, path: Path) -> str:
    """Rewrite the ES module syntax of one module into CommonJS."""
    return _rewrite_exports(_rewrite_imports(source), path)


def _rewrite_imports(source: str) -> str:
    """Rewrite ES import statements as require calls."""
    counter = 0

    def repl(match: re.Match[str], source: str) -> str:
        nonlocal counter
        counter += 1
        return _import_to_require(
            _text(match, source, "clause"), _text(match, source, "specifier"), counter
        )

    return _substitute(IMPORT_RE, source, repl)


def _import_to_require(clause: str | None, specifier: str, index: int) -> str:
    """Translate one import clause into ``var`` bindings.

    A default import reads ``default`` from modules compiled from ES syntax
    and the whole ``module.exports`` otherwise.

    Examples:
        >>> _import_to_require(None, "./polyfill", 1)
        'require("./polyfill");'

        >>> _import_to_require("* as utils", "./utils", 1)
        'var utils = require("./utils");'
    """
    call = f"require({json.dumps(specifier)})"
    default, namespace, named = _parse_clause(clause or "")
    if not (default or namespace or named):
        return f"{call};"

    target = namespace or f"__import{index}"
    statements = [f"var {target} = {call};"]
    if default:
        statements.append(
            f"var {default} = {target} && {target}.__esModule ? {target}.default : {target};"
        )
    for imported, local in named:
        statements.append(f"var {local} = {target}.{imported};")
    return " ".join(statements)


def _parse_clause(clause: str) -> tuple[str | None, str | None, list[tuple[str, str]]]:
    """Split an import clause into default, namespace and named bindings."""
    named: list[tuple[str, str]] = []
    if "{" in clause:
        before, _, rest = clause.partition("{")
        named = _binding_pairs(rest.partition("}")[0])
        clause = before

    namespace = None
    if "*" in clause:
        before, _, rest = clause.partition("*")
        namespace = re.sub(r"^\s*as\s+", "", rest).strip().rstrip(",").strip() or None
        clause = before

    default = clause.strip().rstrip(",").strip() or None
    return default, namespace, named


def _binding_pairs(names: str) -> list[tuple[str, str]]:
    """Parse ``a, b as c`` into ``[("a", "a"), ("b", "c")]``."""
    pairs = []
    for part in names.split(","):
        part = part.strip()
        if not part:
            continue
        pieces = re.split(r"\s+as\s+", part)
        pairs.append((pieces[0], pieces[-1]))
    return pairs


def _rewrite_exports(source: str, path: Path) -> str:
    """Rewrite ES export statements as assignments on ``exports``.

    Declarations keep their place and are assigned to ``exports`` at the
    end of the module. A module with any export is flagged ``__esModule``
    so default imports of it read ``exports.default``.

    Raises:
        AssetError: If an export form cannot be rewritten.
    """
    trailer: list[tuple[str, str]] = []
    counter = 0

    def reexport(match: re.Match[str], source: str) -> str:
        nonlocal counter
        counter += 1
        target = f"__reexport{counter}"
        statements = [f"var {target} = require({json.dumps(_text(match, source, 'specifier'))});"]
        names = _text(match, source, "names")
        alias = _text(match, source, "alias")
        if names is not None:
            for local, exported in _binding_pairs(names):
                statements.append(f"exports.{exported} = {target}.{local};")
        elif alias:
            statements.append(f"exports.{alias} = {target};")
        else:
            statements.append(
                f"Object.keys({target}).forEach(function (key) {{ "
                f'if (key !== "default") exports[key] = {target}[key]; }});'
            )
        return " ".join(statements)

    def export_list(match: re.Match[str], source: str) -> str:
        trailer.extend((exported, local) for local, exported in _binding_pairs(match.group("names")))
        return match.group("indent")

    def default_declaration(match: re.Match[str], source: str) -> str:
        name = match.group("name") or match.group("class_name")
        trailer.append(("default", name))
        return match.group("indent") + match.group("declaration")

    def default_expression(match: re.Match[str], source: str) -> str:
        return f"{match.group('indent')}exports.default = "

    def declaration(match: re.Match[str], source: str) -> str:
        trailer.append((match.group("name"), match.group("name")))
        return match.group("indent") + match.group("kind") + match.group("name")

    rewritten = _substitute(EXPORT_FROM_RE, source, reexport)
    rewritten = _substitute(EXPORT_LIST_RE, rewritten, export_list)
    rewritten = _substitute(EXPORT_DEFAULT_DECLARATION_RE, rewritten, default_declaration)
    rewritten = _substitute(EXPORT_DEFAULT_RE, rewritten, default_expression)
    rewritten = _substitute(EXPORT_DECLARATION_RE, rewritten, declaration)

    leftover = EXPORT_RE.search(_mask(rewritten))
    if leftover:
        line = rewritten.count("\n", 0, leftover.start()) + 1
        raise AssetError(path, f"Unsupported export statement on line {line}")

    if rewritten == source:
        return source
    lines = [_ES_MODULE_FLAG, rewritten.rstrip("\n")]
    lines.extend(f"exports.{exported} = {local};" for exported, local in trailer)
    return "\n".join(lines) + "\n"


def _substitute(
    pattern: re.Pattern[str],
    source: str,
    repl: Callable[[re.Match[str], str], str],
) -> str:
    """Replace matches of ``pattern`` that lie outside comments and strings.

    The pattern runs over the masked source, so groups that span a string
    literal must be read back from ``source`` with ``_text``.
    """
    parts = []
    position = 0
    for match in pattern.finditer(_mask(source)):
        parts.append(source[position:match.start()])
        parts.append(repl(match, source))
        position = match.end()
    parts.append(source[position:])
    return "".join(parts)


def _text(match: re.Match[str], source: str, group: str) -> str | None:
    start, end = match.span(group)
    if start == -1:
        return None
    return source[start:end]


def _mask(source: str) -> str:
    """Blank out comments and the contents of string and regex literals.

    The result has the same length and line breaks as ``source``, so match
    offsets found in it apply to the original text. Quote characters are
    kept, which lets ``require("x")`` still be found by position.
    """
    masked = list(source)
    length = len(source)
    previous = ""
    index = 0
    while index < length:
        char = source[index]
        following = source[index + 1 : index + 2]
        if char == "/" and following == "/":
            end = source.find("\n", index)
            end = length if end == -1 else end
            _blank(masked, index, end)
            index = end
        elif char == "/" and following == "*":
            end = source.find("*/", index + 2)
            end = length if end == -1 else end + 2
            _blank(masked, index, end)
            index = end
        elif char in "\"'`":
            end = _literal_end(source, index + 1, char, multiline=char == "`")
            _blank(masked, index + 1, end)
            index = end + 1
            previous = char
        elif char == "/" and (previous in _REGEX_PRECEDERS or previous in _REGEX_KEYWORDS):
            end = _regex_end(source, index + 1)
            _blank(masked, index + 1, end)
            index = end + 1
            previous = "/"
        elif char.isalnum() or char in "_$":
            end = index
            while end < length and (source[end].isalnum() or source[end] in "_$"):
                end += 1
            previous = source[index:end]
            index = end
        else:
            if not char.isspace():
                previous = char
            index += 1
    return "".join(masked)


def _blank(masked: list[str], start: int, end: int) -> None:
    for position in range(start, end):
        if masked[position] != "\n":
            masked[position] = " "


def _literal_end(source: str, index: int, quote: str, multiline: bool) -> int:
    """Return the index of the closing quote, or where the literal gives out."""
    while index < len(source):
        char = source[index]
        if char == "\\":
            index += 2
            continue
        if char == quote or (char == "\n" and not multiline):
            return index
        index += 1
    return len(source)


def _regex_end(source: str, index: int) -> int:
    in_class = False
    while index < len(source) and source[index] != "\n":
        char = source[index]
        if char == "\\":
            index += 2
            continue
        if char == "[":
            in_class = True
        elif char == "]":
            in_class = False
        elif char == "/" and not in_class:
            return index
        index += 1
    return min(index, len(source))
