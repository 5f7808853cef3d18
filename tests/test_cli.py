import json
import shlex
import sys
from pathlib import Path

import questionary
from click.testing import CliRunner

from folio import __version__
from folio.cli import cli


def create_project(tmp_path: Path, config: str = "") -> Path:
    project = tmp_path
    source = project / "source"
    (source / "layouts").mkdir(parents=True)
    (source / "posts").mkdir()
    (project / "folio.yaml").write_text(config, encoding="utf-8")
    (source / "layouts" / "layout.html.jinja").write_text("{{ page_content }}", encoding="utf-8")
    (source / "layouts" / "landing.html.jinja").write_text("{{ page_content }}", encoding="utf-8")
    (source / "layouts" / "post.html.jinja").write_text("{{ page_content }}", encoding="utf-8")
    (source / "index.html.jinja").write_text(
        "---\npageable: true\n---\n{{ page_articles|length }}", encoding="utf-8"
    )
    (source / "posts" / "2016-03-01-first.html.md").write_text(
        "---\ntitle: First\n---\nHello\n", encoding="utf-8"
    )
    return project


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_build_command(monkeypatch, tmp_path):
    project = create_project(tmp_path)
    monkeypatch.chdir(project)
    result = CliRunner().invoke(cli, ["build", "--no-external"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "Built 2 files (1 posts)" in result.output
    assert (project / "build" / "index.html").read_text(encoding="utf-8") == "1"
    assert (project / "build" / "post" / "first" / "index.html").exists()


def test_build_command_reports_errors(monkeypatch, tmp_path):
    project = create_project(tmp_path, config="external_pipelines: []\n")
    (project / "source" / "posts" / "bad.md").write_text("oops", encoding="utf-8")
    monkeypatch.chdir(project)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "File: source/posts/bad.md" in result.output
    assert "does not match" in result.output


def test_build_command_reports_config_errors(monkeypatch, tmp_path):
    project = create_project(tmp_path, config="nonsense: 1\n")
    monkeypatch.chdir(project)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Unknown keys in 'folio.yaml': nonsense" in result.output


def test_build_command_verbose_shows_pipeline_output(monkeypatch, tmp_path):
    project = create_project(tmp_path)
    (project / "tool.py").write_text(
        "import os\nos.makedirs('dist', exist_ok=True)\nprint('pipeline says hi')\n",
        encoding="utf-8",
    )
    command = json.dumps(f"{shlex.quote(sys.executable)} tool.py")
    (project / "folio.yaml").write_text(
        f"external_pipelines:\n  - name: tool\n    command: {command}\n    source: dist\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(project)
    result = CliRunner().invoke(cli, ["build", "--verbose"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "[tool]" in result.output
    assert "pipeline says hi" in result.output


def test_assets_command(monkeypatch, tmp_path):
    project = create_project(tmp_path, config="assets:\n  vendor:\n    - source: vendor/lib.js\n      dest: js/lib.js\n")
    (project / "vendor").mkdir()
    (project / "vendor" / "lib.js").write_text("var lib;\n", encoding="utf-8")
    scripts = project / "source" / "javascripts"
    scripts.mkdir()
    (scripts / "_app.js").write_text("require('./util');\n", encoding="utf-8")
    (scripts / "util.js").write_text("module.exports = 1;\n", encoding="utf-8")
    monkeypatch.chdir(project)

    result = CliRunner().invoke(cli, ["assets"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "Bundled 2 modules into .tmp/dist/javascripts/app.js" in result.output
    assert "Copied .tmp/dist/js/lib.js" in result.output
    assert (project / ".tmp" / "dist" / "js" / "lib.js").read_text(encoding="utf-8") == "var lib;\n"


def test_assets_command_reports_missing_vendor(monkeypatch, tmp_path):
    project = create_project(tmp_path)
    scripts = project / "source" / "javascripts"
    scripts.mkdir()
    (scripts / "_app.js").write_text("", encoding="utf-8")
    monkeypatch.chdir(project)

    result = CliRunner().invoke(cli, ["assets"])
    assert result.exit_code == 1
    assert "Asset build failed:" in result.output
    assert "Vendor source not found" in result.output
    assert not (project / ".tmp").exists()


def test_article_command(monkeypatch, tmp_path):
    project = create_project(tmp_path)
    monkeypatch.chdir(project)
    result = CliRunner().invoke(
        cli, ["article", "Hello World", "--date", "2016-04-02"], catch_exceptions=False
    )
    assert result.exit_code == 0
    post = project / "source" / "posts" / "2016-04-02-hello-world.html.md"
    assert post.read_text(encoding="utf-8") == "---\ntitle: Hello World\ndate: 2016-04-02\n---\n\n"
    assert "Created source/posts/2016-04-02-hello-world.html.md" in result.output


def test_article_command_refuses_duplicate_slug(monkeypatch, tmp_path):
    project = create_project(tmp_path)
    monkeypatch.chdir(project)
    result = CliRunner().invoke(cli, ["article", "First", "--date", "2020-01-01"])
    assert result.exit_code == 1
    assert "already exists" in result.output
    assert not (project / "source" / "posts" / "2020-01-01-first.html.md").exists()


def test_article_command_rejects_bad_date(monkeypatch, tmp_path):
    project = create_project(tmp_path)
    monkeypatch.chdir(project)
    result = CliRunner().invoke(cli, ["article", "New", "--date", "April 2nd"])
    assert result.exit_code == 2
    assert "YYYY-MM-DD" in result.output


def test_article_command_prompts_for_title(monkeypatch, tmp_path):
    project = create_project(tmp_path)
    monkeypatch.chdir(project)

    class FakePrompt:
        def __init__(self, answer):
            self.answer = answer

        def ask(self):
            return self.answer

    monkeypatch.setattr(questionary, "text", lambda *args, **kwargs: FakePrompt("Prompted Post"))
    result = CliRunner().invoke(cli, ["article", "--date", "2016-05-01"], catch_exceptions=False)
    assert result.exit_code == 0
    assert (project / "source" / "posts" / "2016-05-01-prompted-post.html.md").exists()

    monkeypatch.setattr(questionary, "text", lambda *args, **kwargs: FakePrompt(None))
    result = CliRunner().invoke(cli, ["article"])
    assert result.exit_code == 1
