from pathlib import Path

import pytest

from folio.build import (
    BuildError,
    Builder,
    _format_error_message,
    build_site,
    default_extensions,
)
from folio.config import load_config
from folio.extensions import BaseExtension, BlogExtension, DirectoryIndexes, SyntaxHighlighting
from folio.external import ExternalPipeline

POST_DATES = [
    "2016-01-05",
    "2016-01-20",
    "2016-02-03",
    "2016-02-14",
    "2016-02-21",
    "2016-03-01",
    "2016-03-30",
]


def create_project(tmp_path: Path, posts: int = 7, config: str = "") -> Path:
    project = tmp_path
    source = project / "source"
    (source / "layouts").mkdir(parents=True)
    (source / "posts").mkdir()
    (source / "images").mkdir()

    (project / "folio.yaml").write_text(
        "site:\n  title: Test Blog\nexternal_pipelines: []\n" + config,
        encoding="utf-8",
    )
    (source / "layouts" / "layout.html.jinja").write_text(
        "<html><title>{{ current_page.title }}</title>{{ page_content }}</html>\n",
        encoding="utf-8",
    )
    (source / "layouts" / "landing.html.jinja").write_text(
        "<landing>{{ page_content }}</landing>\n", encoding="utf-8"
    )
    (source / "layouts" / "post.html.jinja").write_text(
        "<article><h1>{{ article.title }}</h1><time>{{ article.date }}</time>{{ page_content }}</article>\n",
        encoding="utf-8",
    )
    (source / "index.html.jinja").write_text(
        "---\npageable: true\ntitle: Home\n---\n"
        "{% for a in page_articles %}[{{ a.title }}]({{ url_for(a) }});{% endfor %}"
        "{% if paginator.next_url %}next={{ paginator.next_url }}{% endif %}"
        "{% if paginator.prev_url %}prev={{ paginator.prev_url }}{% endif %}",
        encoding="utf-8",
    )
    (source / "about.md").write_text("---\ntitle: About\n---\nAll about \"us\".\n", encoding="utf-8")
    (source / "feed.xml.jinja").write_text(
        "<feed>{% for a in articles %}<entry>{{ a.title }}</entry>{% endfor %}</feed>\n",
        encoding="utf-8",
    )
    (source / "images" / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\nlogo")

    for index, day in enumerate(POST_DATES[:posts], start=1):
        (source / "posts" / f"{day}-post-{index}.html.md").write_text(
            f"---\ntitle: Post {index}\n---\nBody of post {index}.\n",
            encoding="utf-8",
        )
    return project


def snapshot(root: Path) -> dict[str, bytes]:
    return {
        p.relative_to(root).as_posix(): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()
    }


def test_build_site_creates_output(tmp_path):
    project = create_project(tmp_path)
    result = build_site(project)
    output = project / "build"

    assert result.output_dir == output
    assert len(result.posts) == 7
    assert sorted(snapshot(output)) == sorted(
        ["index.html", "page/2/index.html", "about/index.html", "feed.xml", "images/logo.png"]
        + [f"post/post-{i}/index.html" for i in range(1, 8)]
    )
    assert not (project / ".build.staging").exists()


def test_listing_pages(tmp_path):
    project = create_project(tmp_path)
    build_site(project)
    output = project / "build"

    first = (output / "index.html").read_text(encoding="utf-8")
    assert first.startswith("<landing>")
    assert first.count("[Post") == 5
    assert "[Post 7](/post/post-7/);[Post 6](/post/post-6/);" in first
    assert "next=/page/2/" in first
    assert "prev=" not in first

    second = (output / "page/2/index.html").read_text(encoding="utf-8")
    assert second.startswith("<html><title>Home</title>")
    assert "[Post 2](/post/post-2/);[Post 1](/post/post-1/);" in second
    assert second.count("[Post") == 2
    assert "prev=/" in second


def test_zero_posts_still_publishes_listing(tmp_path):
    project = create_project(tmp_path, posts=0)
    build_site(project)
    output = project / "build"
    assert (output / "index.html").read_text(encoding="utf-8") == "<landing></landing>\n"
    assert not (output / "page").exists()


def test_pagination_disabled_puts_all_posts_on_one_page(tmp_path):
    project = create_project(tmp_path, config="blog:\n  paginate: false\n")
    build_site(project)
    output = project / "build"
    assert (output / "index.html").read_text(encoding="utf-8").count("[Post") == 7
    assert not (output / "page").exists()


def test_posts_render_with_post_layout(tmp_path):
    project = create_project(tmp_path)
    build_site(project)
    html = (project / "build/post/post-3/index.html").read_text(encoding="utf-8")
    assert html == "<article><h1>Post 3</h1><time>2016-02-03</time><p>Body of post 3.</p>\n</article>\n"


def test_xml_renders_without_layout(tmp_path):
    project = create_project(tmp_path)
    build_site(project)
    feed = (project / "build/feed.xml").read_text(encoding="utf-8")
    assert feed.startswith("<feed><entry>Post 7</entry>")
    assert "<html>" not in feed
    assert "<landing>" not in feed


def test_markdown_page_gets_default_layout_and_smart_quotes(tmp_path):
    project = create_project(tmp_path)
    build_site(project)
    about = (project / "build/about/index.html").read_text(encoding="utf-8")
    assert about.startswith("<html><title>About</title>")
    assert "&#8220;us&#8221;" in about


def test_static_files_are_copied_verbatim(tmp_path):
    project = create_project(tmp_path)
    build_site(project)
    assert (project / "build/images/logo.png").read_bytes() == b"\x89PNG\r\n\x1a\nlogo"


def test_rebuild_is_byte_identical(tmp_path):
    project = create_project(tmp_path)
    build_site(project)
    first = snapshot(project / "build")
    build_site(project)
    assert snapshot(project / "build") == first


def test_permalink_pattern(tmp_path):
    project = create_project(tmp_path, config="blog:\n  permalink: '{year}/{month}/{title}'\n")
    build_site(project)
    assert (project / "build/2016/03/post-7/index.html").exists()


def test_directory_indexes_can_be_disabled(tmp_path):
    project = create_project(tmp_path, config="directory_indexes: false\n")
    build_site(project)
    assert (project / "build/about.html").exists()
    assert (project / "build/post/post-1.html").exists()


def test_directory_index_opt_out_per_page(tmp_path):
    project = create_project(tmp_path)
    (project / "source/404.md").write_text("---\ndirectory_index: false\n---\nNot found\n", encoding="utf-8")
    build_site(project)
    assert (project / "build/404.html").exists()


def test_highlighted_code_in_posts(tmp_path):
    project = create_project(tmp_path, posts=0)
    (project / "source/posts/2016-04-01-code.html.md").write_text(
        "---\ntitle: Code\n---\n```php\n$greeting = 'hi';\n```\n", encoding="utf-8"
    )
    build_site(project)
    html = (project / "build/post/code/index.html").read_text(encoding="utf-8")
    assert '<pre class="highlight php"><code class="language-php">' in html
    assert '<span class="nv">$greeting</span>' in html


def test_unknown_layout_fails_build(tmp_path):
    project = create_project(tmp_path)
    page = project / "source/contact.md"
    page.write_text("---\nlayout: nowhere\n---\nHi\n", encoding="utf-8")
    with pytest.raises(BuildError) as exc_info:
        build_site(project)
    assert exc_info.value.source_path == page
    assert exc_info.value.message == "Undefined layout 'nowhere'"


def test_failed_build_keeps_previous_output(tmp_path):
    project = create_project(tmp_path)
    build_site(project)
    before = snapshot(project / "build")

    (project / "source/contact.md").write_text("---\nlayout: nowhere\n---\nHi\n", encoding="utf-8")
    with pytest.raises(BuildError):
        build_site(project)

    assert snapshot(project / "build") == before
    assert not (project / ".build.staging").exists()


def test_malformed_post_fails_build(tmp_path):
    project = create_project(tmp_path)
    bad = project / "source/posts/not-a-dated-post.md"
    bad.write_text("---\ntitle: Oops\n---\n", encoding="utf-8")
    with pytest.raises(BuildError) as exc_info:
        build_site(project)
    assert exc_info.value.source_path == bad
    assert not (project / "build").exists()


def test_duplicate_destinations_fail_build(tmp_path):
    project = create_project(tmp_path)
    (project / "source/about.html.jinja").write_text("About again", encoding="utf-8")
    with pytest.raises(BuildError, match="also produced by"):
        build_site(project)


def test_build_site_template_error(tmp_path):
    project = create_project(tmp_path)
    bad_page = project / "source" / "broken.html.jinja"
    bad_page.write_text("{{ undefined_var.nonexistent }}", encoding="utf-8")

    with pytest.raises(BuildError) as exc_info:
        build_site(project)

    assert exc_info.value.source_path == bad_page
    assert exc_info.value.original_error is not None
    assert exc_info.value.message.startswith("Undefined variable")


def test_build_site_template_syntax_error(tmp_path):
    project = create_project(tmp_path)
    bad_page = project / "source" / "broken.html.jinja"
    bad_page.write_text("{% for x in items %}\nNo end!", encoding="utf-8")

    with pytest.raises(BuildError) as exc_info:
        build_site(project)

    assert exc_info.value.source_path == bad_page
    assert "syntax error" in exc_info.value.message.lower()


def test_missing_source_dir(tmp_path):
    (tmp_path / "folio.yaml").write_text("external_pipelines: []\n", encoding="utf-8")
    with pytest.raises(BuildError, match="Source directory not found"):
        build_site(tmp_path)


def test_format_error_message():
    err = RuntimeError("something else")
    assert _format_error_message(err) == "RuntimeError: something else"


def test_default_extensions_follow_config(tmp_path):
    project = create_project(tmp_path, config="syntax: false\n")
    config = load_config(project)
    kinds = [type(ext) for ext in default_extensions(config)]
    assert kinds == [BlogExtension, DirectoryIndexes]

    (project / "folio.yaml").write_text("blog: false\ndirectory_indexes: false\n", encoding="utf-8")
    config = load_config(project)
    kinds = [type(ext) for ext in default_extensions(config)]
    assert kinds == [SyntaxHighlighting, ExternalPipeline]
    assert [type(ext) for ext in default_extensions(config, include_external=False)] == [
        SyntaxHighlighting
    ]


class RecordingExtension(BaseExtension):
    name = "recording"

    def __init__(self, fail_in=None):
        self.calls = []
        self.fail_in = fail_in

    def configure_markdown(self, options):
        self.calls.append("configure_markdown")

    def before_build(self, context):
        self.calls.append("before_build")

    def manipulate_resources(self, resources, context):
        self.calls.append("manipulate_resources")
        if self.fail_in == "manipulate_resources":
            raise BuildError(context.config.source_path, "boom")
        return resources

    def after_build(self, context):
        self.calls.append("after_build")

    def abort(self, context):
        self.calls.append("abort")


def test_extension_hooks_run_in_order(tmp_path):
    project = create_project(tmp_path, posts=1)
    config = load_config(project)
    recorder = RecordingExtension()
    Builder(config, default_extensions(config) + [recorder]).build()
    assert recorder.calls == [
        "configure_markdown",
        "before_build",
        "manipulate_resources",
        "after_build",
    ]


def test_extension_abort_on_failure(tmp_path):
    project = create_project(tmp_path, posts=1)
    config = load_config(project)
    recorder = RecordingExtension(fail_in="manipulate_resources")
    with pytest.raises(BuildError, match="boom"):
        Builder(config, [recorder]).build()
    assert recorder.calls[-1] == "abort"
    assert not (project / "build").exists()


def test_register_rejects_non_extensions(tmp_path):
    builder = Builder(load_config(tmp_path))
    with pytest.raises(TypeError):
        builder.register(object())
