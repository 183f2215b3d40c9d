"""Static script engine: evaluates the common Gradle DSL subset in-process.

Handles both Groovy DSL and Kotlin DSL syntax for the parts of a build script
that define the dependency model:

  - repositories { mavenCentral(); maven { url "..." }; ivy {...}; flatDir {...} }
  - apply plugin: 'java' / plugins { id 'java-library' }
  - configurations { provided; runtime.extendsFrom provided }
  - dependencies { runtime "group:artifact:version"
                   compile group: 'g', name: 'a', version: 'v'
                   compile(project(":sub")) }

Anything else in the script (tasks, custom logic) is ignored. No code runs
and nothing is downloaded.
"""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from gradle_runtime.engine.base import (
    FLAT_DIR,
    IVY,
    MAVEN,
    ConfigurationModel,
    DeclaredDependency,
    DeclaredRepository,
    EvaluationEngine,
    ProjectModel,
)
from gradle_runtime.exceptions import EvaluationError

log = structlog.get_logger("gradle_runtime.engine.script")

DESCRIPTOR_NAMES = ("build.gradle", "build.gradle.kts")

# Blocks whose contents do not describe the root project's own model.
_EXCLUDED_BLOCKS = ("buildscript", "subprojects", "pluginManagement", "publishing", "uploadArchives")

# Configurations created by the java plugin: name -> configurations it extends.
_JAVA_CONFIGURATIONS: dict[str, list[str]] = {
    "compileOnly": [],
    "compile": [],
    "implementation": ["compile"],
    "runtime": ["compile"],
    "runtimeOnly": [],
    "compileClasspath": ["compileOnly", "implementation"],
    "runtimeClasspath": ["runtimeOnly", "runtime", "implementation"],
    "annotationProcessor": [],
    "testCompileOnly": [],
    "testCompile": ["compile"],
    "testImplementation": ["testCompile", "implementation"],
    "testRuntime": ["runtime", "testCompile"],
    "testRuntimeOnly": ["runtimeOnly"],
    "testCompileClasspath": ["testCompileOnly", "testImplementation"],
    "testRuntimeClasspath": ["testRuntimeOnly", "testRuntime", "testImplementation"],
    "testAnnotationProcessor": [],
    "archives": [],
    "default": ["runtime"],
}

# Plugins that apply the java plugin, and what they add on top of it.
_JAVA_PLUGINS: dict[str, dict[str, list[str]]] = {
    "java": {},
    "application": {},
    "war": {"providedCompile": [], "providedRuntime": ["providedCompile"]},
    "groovy": {},
    "java-library": {"api": [], "compileOnlyApi": []},
}
_JAVA_LIBRARY_EXTENDS = {"implementation": ["api"], "compileOnly": ["compileOnlyApi"]}

# Shortcut repositories: method -> (repository name, url)
_WELL_KNOWN_REPOSITORIES: dict[str, tuple[str, str]] = {
    "mavenCentral": ("MavenRepo", "https://repo.maven.apache.org/maven2/"),
    "jcenter": ("BintrayJCenter", "https://jcenter.bintray.com/"),
    "google": ("Google", "https://dl.google.com/dl/android/maven2/"),
    "gradlePluginPortal": ("Gradle Central Plugin Repository", "https://plugins.gradle.org/m2"),
}

_APPLY_PLUGIN_RE = re.compile(r"""\bapply\s*\(?\s*plugin\s*[:=]\s*["']([\w.\-]+)["']""")
_PLUGIN_ID_RE = re.compile(r"""\bid\s*\(?\s*["']([\w.\-]+)["']""")
_PLUGIN_BARE_RE = re.compile(r"^\s*`?([A-Za-z][\w\-]*)`?\s*$", re.M)

_REPOSITORY_RE = re.compile(
    r"\b(mavenCentral|jcenter|google|gradlePluginPortal|mavenLocal|maven|ivy|flatDir)\s*([({])"
)
_STRING_RE = re.compile(r"""(["'])((?:\\.|(?!\1).)*)\1""")
_URL_RE = re.compile(
    r"""\b(?:url|setUrl)\s*[:=]?\s*\(?\s*(?:(?:uri|file)\s*\(\s*)?(["'])((?:\\.|(?!\1).)*)\1"""
)
_NAME_RE = re.compile(r"""\bname\s*[:=]?\s*\(?\s*(["'])((?:\\.|(?!\1).)*)\1""")

_CONF_CLOSURE_RE = re.compile(r"(?:\bval\s+)?\b(\w+)(\s+by\s+creating)?\s*\{")
_EXTENDS_CALL_RE = re.compile(r"\b(\w+)\s*\.\s*extendsFrom\s*\(?([^)\n]*)\)?")
_EXTENDS_INNER_RE = re.compile(r"\bextendsFrom\s*\(?([^)\n]*)\)?")
_KTS_CREATE_RE = re.compile(r"""\b(?:create|register|maybeCreate)\s*\(\s*["'](\w+)["']""")
_KTS_BY_CREATING_RE = re.compile(r"\bval\s+(\w+)\s+by\s+(?:creating|registering)")
_BARE_NAME_RE = re.compile(r"^\s*(\w+)\s*$", re.M)
_CONF_REF_IGNORED = {"configurations", "getByName", "get", "named", "project"}
_CONF_CLOSURE_IGNORED = {"all", "configureEach", "each", "resolutionStrategy", "matching", "withType"}

_STATEMENT_RE = re.compile(r"""^\s*(?:(\w+)|["'](\w+)["'])\s*\(?\s*(.*)$""")
_ADD_CALL_RE = re.compile(r"""^\s*add\s*\(\s*["'](\w+)["']\s*,\s*(.*)$""")
_MAP_ENTRY_RE = re.compile(r"""\b(group|name|version)\s*[:=]\s*(["'])((?:\\.|(?!\2).)*)\2""")
_PROJECT_DEP_RE = re.compile(r"""\bproject\s*\(\s*(?:path\s*[:=]\s*)?["']([^"']+)["']""")
_FILES_DEP_RE = re.compile(r"\b(?:files|fileTree)\s*\(")
_NON_DEPENDENCY_WORDS = {"def", "val", "var", "if", "else", "for", "while", "println", "return"}

_PROPERTY_RE = re.compile(
    r"""(?:\bext\.|\bextra\.|\bdef\s+|\bval\s+|\bvar\s+|^\s*)(\w+)\s*=\s*["']([^"'$]*)["']""",
    re.M,
)
_PROPERTY_INDEX_RE = re.compile(r"""\b(?:ext|extra)\s*\[\s*["'](\w+)["']\s*\]\s*=\s*["']([^"'$]*)["']""")
_INTERPOLATION_RE = re.compile(r"\$\{\s*([\w.]+)\s*\}|\$(\w+)")


class ScriptSyntaxError(ValueError):
    """Raised for scripts too malformed to tokenize (unbalanced braces, open strings)."""


# ── lexical helpers ──────────────────────────────────────────────────────


def _string_end(text: str, start: int) -> int:
    """Return the index just past the string literal opening at *start*."""
    quote = text[start]
    if text.startswith(quote * 3, start):
        close = text.find(quote * 3, start + 3)
        if close == -1:
            raise ScriptSyntaxError("unterminated string literal")
        return close + 3
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n":
            raise ScriptSyntaxError("unterminated string literal")
        i += 1
    raise ScriptSyntaxError("unterminated string literal")


def strip_comments(text: str) -> str:
    """Remove // and /* */ comments, leaving string literals intact.

    Newlines inside block comments are kept so line-based parsing still works.
    """
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in ("'", '"'):
            end = _string_end(text, i)
            out.append(text[i:end])
            i = end
            continue
        if text.startswith("//", i):
            newline = text.find("\n", i)
            if newline == -1:
                break
            i = newline
            continue
        if text.startswith("/*", i):
            close = text.find("*/", i + 2)
            if close == -1:
                raise ScriptSyntaxError("unterminated block comment")
            out.append("\n" * text.count("\n", i, close))
            i = close + 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _matching(text: str, open_idx: int) -> int:
    """Return the index of the bracket closing the one at *open_idx*."""
    opener = text[open_idx]
    closer = "}" if opener == "{" else ")"
    depth = 0
    i = open_idx
    while i < len(text):
        ch = text[i]
        if ch in ("'", '"'):
            i = _string_end(text, i)
            continue
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise ScriptSyntaxError(f"unbalanced '{opener}' at offset {open_idx}")


def _blocks(text: str, name: str) -> list[tuple[int, int, int]]:
    """Find ``name { ... }`` blocks as (start, body_start, body_end) spans."""
    pattern = re.compile(rf"(?<![\w.]){re.escape(name)}\s*\{{")
    spans: list[tuple[int, int, int]] = []
    pos = 0
    while (m := pattern.search(text, pos)) is not None:
        open_idx = m.end() - 1
        close = _matching(text, open_idx)
        spans.append((m.start(), open_idx + 1, close))
        pos = close + 1
    return spans


def _block_bodies(text: str, name: str) -> list[str]:
    return [text[body_start:body_end] for _, body_start, body_end in _blocks(text, name)]


def _blank_spans(text: str, spans: list[tuple[int, int]]) -> str:
    """Replace each [start, end) span with its newlines only."""
    for start, end in sorted(spans, reverse=True):
        text = text[:start] + "\n" * text.count("\n", start, end) + text[end:]
    return text


def _remove_blocks(text: str, names: tuple[str, ...]) -> str:
    for name in names:
        text = _blank_spans(text, [(start, end + 1) for start, _, end in _blocks(text, name)])
    return text


def _remove_closures(text: str) -> str:
    """Blank every top-level ``{ ... }`` in *text*."""
    spans: list[tuple[int, int]] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in ("'", '"'):
            i = _string_end(text, i)
            continue
        if ch == "{":
            close = _matching(text, i)
            spans.append((i, close + 1))
            i = close + 1
            continue
        i += 1
    return _blank_spans(text, spans)


# ── script evaluation ────────────────────────────────────────────────────


class _ScriptEvaluator:
    """Builds a ProjectModel from one script's text."""

    def __init__(self, content: str, project_dir: Path) -> None:
        self._project_dir = project_dir
        self._text = _remove_blocks(strip_comments(content), _EXCLUDED_BLOCKS)
        self._props: dict[str, str] = {
            "rootDir": str(project_dir),
            "projectDir": str(project_dir),
        }
        self._configurations: dict[str, ConfigurationModel] = {}
        self._repositories: list[DeclaredRepository] = []
        self._name_counts: dict[str, int] = {}

    def evaluate(self) -> ProjectModel:
        self._collect_properties()
        for plugin in self._plugins():
            self._apply_plugin(plugin)
        for body in _block_bodies(self._text, "configurations"):
            self._configurations_block(body)
        for body in _block_bodies(self._text, "repositories"):
            self._repositories_block(body)
        for body in _block_bodies(self._text, "dependencies"):
            self._dependencies_block(body)
        return ProjectModel(
            project_dir=self._project_dir,
            repositories=self._repositories,
            configurations=self._configurations,
        )

    # properties

    def _collect_properties(self) -> None:
        for m in _PROPERTY_RE.finditer(self._text):
            self._props.setdefault(m.group(1), m.group(2))
        for m in _PROPERTY_INDEX_RE.finditer(self._text):
            self._props.setdefault(m.group(1), m.group(2))

    def _interpolate(self, value: str) -> str:
        """Replace ``${name}`` / ``$name`` with known property values."""

        def _replace(m: re.Match) -> str:
            key = (m.group(1) or m.group(2)).split(".")[-1]
            return self._props.get(key, m.group(0))

        return _INTERPOLATION_RE.sub(_replace, value)

    def _literal(self, quote: str, value: str) -> str:
        # Groovy only interpolates double-quoted strings.
        return self._interpolate(value) if quote == '"' else value

    # plugins and configurations

    def _plugins(self) -> list[str]:
        plugins = [m.group(1) for m in _APPLY_PLUGIN_RE.finditer(self._text)]
        for body in _block_bodies(self._text, "plugins"):
            plugins.extend(m.group(1) for m in _PLUGIN_ID_RE.finditer(body))
            plugins.extend(m.group(1) for m in _PLUGIN_BARE_RE.finditer(body))
        return plugins

    def _apply_plugin(self, plugin: str) -> None:
        extra = _JAVA_PLUGINS.get(plugin)
        if extra is None:
            log.debug("script.plugin_ignored", plugin=plugin)
            return
        for name, parents in {**_JAVA_CONFIGURATIONS, **extra}.items():
            conf = self._declare(name)
            for parent in parents:
                if parent not in conf.extends_from:
                    conf.extends_from.append(parent)
        if plugin == "java-library":
            for name, parents in _JAVA_LIBRARY_EXTENDS.items():
                conf = self._declare(name)
                for parent in parents:
                    if parent not in conf.extends_from:
                        conf.extends_from.append(parent)

    def _declare(self, name: str) -> ConfigurationModel:
        conf = self._configurations.get(name)
        if conf is None:
            conf = ConfigurationModel(name=name)
            self._configurations[name] = conf
        return conf

    def _extend(self, name: str, parents_expr: str) -> None:
        conf = self._configurations.get(name)
        if conf is None:
            raise EvaluationError(f"Could not find configuration '{name}'")
        for token in parents_expr.split(","):
            parent = self._conf_ref(token)
            if parent is None:
                continue
            if parent not in self._configurations:
                raise EvaluationError(f"Could not find configuration '{parent}'")
            if parent not in conf.extends_from:
                conf.extends_from.append(parent)

    @staticmethod
    def _conf_ref(token: str) -> str | None:
        words = [w for w in re.findall(r"\w+", token) if w not in _CONF_REF_IGNORED]
        return words[-1] if words else None

    def _configurations_block(self, body: str) -> None:
        closures: list[tuple[int, int]] = []
        pos = 0
        while (m := _CONF_CLOSURE_RE.search(body, pos)) is not None:
            open_idx = m.end() - 1
            close = _matching(body, open_idx)
            closures.append((m.start(), close + 1))
            pos = close + 1
            if m.group(1) in _CONF_CLOSURE_IGNORED:
                continue
            self._declare(m.group(1))
            for ext in _EXTENDS_INNER_RE.finditer(body[open_idx + 1 : close]):
                self._extend(m.group(1), ext.group(1))
        rest = _blank_spans(body, closures)

        for m in _KTS_CREATE_RE.finditer(rest):
            self._declare(m.group(1))
        for m in _KTS_BY_CREATING_RE.finditer(rest):
            self._declare(m.group(1))
        for m in _BARE_NAME_RE.finditer(rest):
            self._declare(m.group(1))
        for m in _EXTENDS_CALL_RE.finditer(rest):
            self._declare(m.group(1))
            self._extend(m.group(1), m.group(2))

    # repositories

    def _default_name(self, base: str) -> str:
        count = self._name_counts.get(base, 0) + 1
        self._name_counts[base] = count
        return base if count == 1 else f"{base}{count}"

    def _repositories_block(self, body: str) -> None:
        pos = 0
        while (m := _REPOSITORY_RE.search(body, pos)) is not None:
            method, opener = m.group(1), m.group(2)
            open_idx = m.end() - 1
            close = _matching(body, open_idx)
            args = body[open_idx + 1 : close]
            pos = close + 1
            # maven("url") { ... } carries a trailing configuration closure
            trailing = re.match(r"\s*\{", body[pos:])
            if opener == "(" and trailing is not None:
                trailing_open = pos + trailing.end() - 1
                trailing_close = _matching(body, trailing_open)
                args = args + "\n" + body[trailing_open + 1 : trailing_close]
                pos = trailing_close + 1
            self._repository(method, opener, args)

    def _repository(self, method: str, opener: str, args: str) -> None:
        if method in _WELL_KNOWN_REPOSITORIES:
            name, url = _WELL_KNOWN_REPOSITORIES[method]
            self._repositories.append(DeclaredRepository(name=name, kind=MAVEN, url=url))
            return
        if method == "mavenLocal":
            url = (Path.home() / ".m2" / "repository").as_uri() + "/"
            self._repositories.append(DeclaredRepository(name="MavenLocal", kind=MAVEN, url=url))
            return
        if method == "flatDir":
            name_m = _NAME_RE.search(args)
            name = self._literal(name_m.group(1), name_m.group(2)) if name_m else self._default_name("flatDir")
            self._repositories.append(DeclaredRepository(name=name, kind=FLAT_DIR))
            return

        kind = MAVEN if method == "maven" else IVY
        url: str | None = None
        url_m = _URL_RE.search(args)
        if url_m is not None:
            url = self._literal(url_m.group(1), url_m.group(2))
        elif opener == "(":
            first = _STRING_RE.search(args)
            if first is not None:
                url = self._literal(first.group(1), first.group(2))
        name_m = _NAME_RE.search(args)
        if name_m is not None:
            name = self._literal(name_m.group(1), name_m.group(2))
        else:
            name = self._default_name(method)
        self._repositories.append(DeclaredRepository(name=name, kind=kind, url=url))

    # dependencies

    def _dependencies_block(self, body: str) -> None:
        body = _remove_closures(body)
        body = re.sub(r",\s*\n", ", ", body)
        for line in body.splitlines():
            line = line.strip()
            if not line:
                continue
            add = _ADD_CALL_RE.match(line)
            if add is not None:
                conf_name, args = add.group(1), add.group(2)
            else:
                stmt = _STATEMENT_RE.match(line)
                if stmt is None:
                    continue
                conf_name = stmt.group(1) or stmt.group(2)
                args = stmt.group(3)
                if conf_name in _NON_DEPENDENCY_WORDS or args.startswith(("=", ".")):
                    continue
            deps = self._notations(args)
            if not deps:
                continue
            conf = self._configurations.get(conf_name)
            if conf is None:
                raise EvaluationError(
                    f"Could not find method {conf_name}() for arguments {args.strip()!r}: "
                    f"no configuration named '{conf_name}'"
                )
            for dep in deps:
                if dep not in conf.dependencies:
                    conf.dependencies.append(dep)

    def _notations(self, args: str) -> list[DeclaredDependency]:
        project_m = _PROJECT_DEP_RE.search(args)
        if project_m is not None:
            path = project_m.group(1)
            return [DeclaredDependency(group=None, name=path.rsplit(":", 1)[-1], version=None)]
        if _FILES_DEP_RE.search(args):
            return [DeclaredDependency(group=None, name="unspecified", version=None)]

        entries = {m.group(1): self._literal(m.group(2), m.group(3)) for m in _MAP_ENTRY_RE.finditer(args)}
        if "name" in entries:
            return [
                DeclaredDependency(
                    group=entries.get("group") or None,
                    name=entries["name"],
                    version=entries.get("version") or None,
                )
            ]

        deps: list[DeclaredDependency] = []
        for m in _STRING_RE.finditer(args):
            dep = _parse_notation(self._literal(m.group(1), m.group(2)))
            if dep is not None:
                deps.append(dep)
        return deps


def _parse_notation(notation: str) -> DeclaredDependency | None:
    """Parse ``group:name[:version[:classifier]][@ext]``."""
    notation = notation.split("@", 1)[0].strip()
    parts = notation.split(":")
    if len(parts) < 2 or not all(re.fullmatch(r"[\w.+\-\[\](),${}]*", p) for p in parts):
        return None
    group, name = parts[0], parts[1]
    if not name:
        return None
    version = parts[2] if len(parts) > 2 and parts[2] else None
    return DeclaredDependency(group=group or None, name=name, version=version)


def evaluate_script(content: str, project_dir: Path) -> ProjectModel:
    """Evaluate *content* as the build script of a project in *project_dir*."""
    try:
        return _ScriptEvaluator(content, project_dir).evaluate()
    except ScriptSyntaxError as exc:
        raise EvaluationError(f"Could not compile build script: {exc}") from exc


class ScriptEngine(EvaluationEngine):
    """In-process engine for scripts that stay within the supported DSL subset."""

    @property
    def name(self) -> str:
        return "script"

    def evaluate(self) -> None:
        project_dir = self.project_dir
        for name in DESCRIPTOR_NAMES:
            descriptor = project_dir / name
            if descriptor.is_file():
                break
        else:
            raise EvaluationError(f"No build script found in {project_dir}")

        content = descriptor.read_text(encoding="utf-8", errors="replace")
        model = evaluate_script(content, project_dir)
        log.debug(
            "script.evaluated",
            descriptor=str(descriptor),
            configurations=len(model.configurations),
            repositories=len(model.repositories),
        )
        self._fire(model)
