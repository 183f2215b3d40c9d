"""Tests for the static script engine."""

from __future__ import annotations

from pathlib import Path

import pytest

from gradle_runtime.engine.base import FLAT_DIR, IVY, MAVEN, DeclaredDependency
from gradle_runtime.engine.script import ScriptEngine, evaluate_script, strip_comments
from gradle_runtime.exceptions import EvaluationError

PROJECT = Path("/work/project")


def _runtime_deps(script: str) -> list[tuple]:
    model = evaluate_script(script, PROJECT)
    return [(d.group, d.name, d.version) for d in model.all_dependencies("runtime")]


class TestPlugins:
    def test_java_plugin_creates_conventional_configurations(self):
        model = evaluate_script("apply plugin: 'java'", PROJECT)
        assert {"compile", "runtime", "implementation", "runtimeOnly", "testRuntime"} <= set(
            model.configurations
        )
        assert model.configuration("runtime").extends_from == ["compile"]

    def test_plugins_block(self):
        model = evaluate_script("plugins {\n    id 'java-library'\n}\n", PROJECT)
        assert "api" in model.configurations
        assert "api" in model.configuration("implementation").extends_from

    def test_kotlin_bare_plugin(self):
        model = evaluate_script("plugins {\n    java\n}\n", PROJECT)
        assert "runtime" in model.configurations

    def test_no_plugin_no_configurations(self):
        assert evaluate_script("repositories { mavenCentral() }", PROJECT).configurations == {}


class TestRepositories:
    def test_shortcuts_and_custom(self):
        script = """
repositories {
    mavenCentral()
    maven { url 'https://repo.example/m2' }
    maven {
        name = "internal"
        url = uri("https://nexus.example/repository/releases")
    }
    ivy { url "https://ivy.example/" }
    flatDir { dirs 'libs' }
}
"""
        model = evaluate_script(script, PROJECT)
        assert [(r.name, r.kind, r.url) for r in model.repositories] == [
            ("MavenRepo", MAVEN, "https://repo.maven.apache.org/maven2/"),
            ("maven", MAVEN, "https://repo.example/m2"),
            ("internal", MAVEN, "https://nexus.example/repository/releases"),
            ("ivy", IVY, "https://ivy.example/"),
            ("flatDir", FLAT_DIR, None),
        ]

    def test_default_names_numbered(self):
        script = "repositories {\n maven { url 'a' }\n maven { url 'b' }\n}"
        model = evaluate_script(script, PROJECT)
        assert [r.name for r in model.repositories] == ["maven", "maven2"]

    def test_maven_local(self):
        [repo] = evaluate_script("repositories { mavenLocal() }", PROJECT).repositories
        assert repo.url == (Path.home() / ".m2" / "repository").as_uri() + "/"

    def test_buildscript_repositories_ignored(self):
        script = """
buildscript {
    repositories { maven { url 'https://plugins.example/' } }
}
repositories { maven { url 'https://repo.example/m2' } }
"""
        model = evaluate_script(script, PROJECT)
        assert [r.url for r in model.repositories] == ["https://repo.example/m2"]

    def test_publishing_repositories_ignored(self):
        script = """
repositories { mavenCentral() }
publishing {
    repositories {
        maven { url 'https://publish.example/releases' }
    }
}
uploadArchives {
    repositories { mavenDeployer { repository(url: 'https://upload.example/') } }
}
"""
        model = evaluate_script(script, PROJECT)
        assert [r.url for r in model.repositories] == ["https://repo.maven.apache.org/maven2/"]

    def test_interpolated_url(self):
        script = 'def repoHost = "repo.example"\nrepositories { maven { url "https://${repoHost}/m2" } }'
        [repo] = evaluate_script(script, PROJECT).repositories
        assert repo.url == "https://repo.example/m2"


class TestDependencies:
    def test_string_and_map_notation(self):
        script = """
apply plugin: 'java'
dependencies {
    runtime 'com.acme:widget:1.2.0'
    compile group: 'org.slf4j', name: 'slf4j-api', version: '2.0.9'
    testCompile 'junit:junit:4.13.2'
}
"""
        assert _runtime_deps(script) == [
            ("com.acme", "widget", "1.2.0"),
            ("org.slf4j", "slf4j-api", "2.0.9"),
        ]

    def test_kotlin_dsl(self):
        script = """
plugins { java }
dependencies {
    "runtime"("com.acme:widget:1.2.0")
    compile("org.slf4j:slf4j-api:2.0.9")
    add("runtime", "com.acme:gear:3.1")
}
"""
        assert _runtime_deps(script) == [
            ("com.acme", "widget", "1.2.0"),
            ("com.acme", "gear", "3.1"),
            ("org.slf4j", "slf4j-api", "2.0.9"),
        ]

    def test_version_property_interpolation(self):
        script = """
apply plugin: 'java'
ext.widgetVersion = '1.2.0'
dependencies {
    runtime "com.acme:widget:${widgetVersion}"
    runtime 'com.acme:literal:$widgetVersion'
}
"""
        assert _runtime_deps(script) == [
            ("com.acme", "widget", "1.2.0"),
            ("com.acme", "literal", "$widgetVersion"),
        ]

    def test_closure_and_multiline_declarations(self):
        script = """
apply plugin: 'java'
dependencies {
    runtime('com.acme:widget:1.2.0') {
        exclude group: 'commons-logging'
    }
    runtime group: 'com.acme',
            name: 'gear',
            version: '3.1'
}
"""
        assert _runtime_deps(script) == [("com.acme", "widget", "1.2.0"), ("com.acme", "gear", "3.1")]

    def test_project_and_file_dependencies_are_not_coordinates(self):
        script = """
apply plugin: 'java'
dependencies {
    runtime project(':core')
    runtime files('libs/a.jar')
}
"""
        deps = evaluate_script(script, PROJECT).configuration("runtime").dependencies
        assert deps == [
            DeclaredDependency(None, "core", None),
            DeclaredDependency(None, "unspecified", None),
        ]

    def test_comments_ignored(self):
        script = """
apply plugin: 'java'
dependencies {
    // runtime 'com.acme:commented:1.0'
    /* runtime 'com.acme:blocked:1.0' */
    runtime 'com.acme:widget:1.2.0' // trailing
}
"""
        assert _runtime_deps(script) == [("com.acme", "widget", "1.2.0")]

    def test_unknown_configuration_is_error(self):
        script = "apply plugin: 'java'\ndependencies {\n    bogus 'com.acme:widget:1.2.0'\n}\n"
        with pytest.raises(EvaluationError, match=r"Could not find method bogus\(\)"):
            evaluate_script(script, PROJECT)

    def test_dependencies_without_plugin_is_error(self):
        with pytest.raises(EvaluationError, match="no configuration named 'runtime'"):
            evaluate_script("dependencies { runtime 'g:a:1' }", PROJECT)


class TestConfigurations:
    def test_custom_configuration_extends(self):
        script = """
apply plugin: 'java'
configurations {
    provided
    runtime.extendsFrom provided
}
dependencies {
    provided 'javax.servlet:servlet-api:2.5'
}
"""
        assert _runtime_deps(script) == [("javax.servlet", "servlet-api", "2.5")]

    def test_closure_declaration(self):
        script = """
apply plugin: 'java'
configurations {
    bundled {
        extendsFrom compile
    }
    all { exclude group: 'x' }
}
"""
        model = evaluate_script(script, PROJECT)
        assert model.configuration("bundled").extends_from == ["compile"]
        assert "all" not in model.configurations

    def test_kotlin_create(self):
        script = 'configurations {\n    create("extra")\n    val shaded by creating\n}\n'
        model = evaluate_script(script, PROJECT)
        assert {"extra", "shaded"} <= set(model.configurations)

    def test_extends_unknown_is_error(self):
        script = "apply plugin: 'java'\nconfigurations {\n    runtime.extendsFrom ghost\n}\n"
        with pytest.raises(EvaluationError, match="Could not find configuration 'ghost'"):
            evaluate_script(script, PROJECT)


class TestSyntax:
    def test_unbalanced_braces(self):
        with pytest.raises(EvaluationError, match="Could not compile build script"):
            evaluate_script("apply plugin: 'java'\ndependencies {\n", PROJECT)

    def test_unterminated_string(self):
        with pytest.raises(EvaluationError, match="unterminated string"):
            evaluate_script("dependencies { runtime 'g:a:1 }", PROJECT)

    def test_strip_comments_keeps_urls_in_strings(self):
        text = "url 'https://repo.example/m2' // comment"
        assert strip_comments(text).strip() == "url 'https://repo.example/m2'"


class TestScriptEngine:
    def test_fires_model(self, tmp_path):
        (tmp_path / "build.gradle").write_text("apply plugin: 'java'\n")
        seen = []
        engine = ScriptEngine()
        engine.after_evaluate(seen.append)
        engine.configure(tmp_path)
        engine.evaluate()
        assert seen[0].project_dir == tmp_path
        assert "runtime" in seen[0].configurations

    def test_kotlin_script(self, tmp_path):
        (tmp_path / "build.gradle.kts").write_text("plugins { java }\n")
        seen = []
        engine = ScriptEngine()
        engine.after_evaluate(seen.append)
        engine.configure(tmp_path)
        engine.evaluate()
        assert len(seen) == 1

    def test_missing_script(self, tmp_path):
        engine = ScriptEngine()
        engine.configure(tmp_path)
        with pytest.raises(EvaluationError, match="No build script found"):
            engine.evaluate()

    def test_evaluate_before_configure(self):
        with pytest.raises(RuntimeError, match="before configure"):
            ScriptEngine().evaluate()

    def test_close_drops_callbacks(self, tmp_path):
        (tmp_path / "build.gradle").write_text("")
        seen = []
        engine = ScriptEngine()
        engine.after_evaluate(seen.append)
        engine.close()
        engine.configure(tmp_path)
        engine.evaluate()
        assert seen == []
