from pathlib import Path

import pytest

from folio.config import (
    DEFAULT_PAGE_RULES,
    BlogSettings,
    ConfigError,
    PageRule,
    VendorCopyRule,
    config_from_dict,
    load_config,
)


def test_defaults_without_config_file(tmp_path):
    config = load_config(tmp_path)
    assert config.project_root == tmp_path
    assert config.source_path == tmp_path / "source"
    assert config.output_path == tmp_path / "build"
    assert config.layouts_path == tmp_path / "source" / "layouts"
    assert config.default_layout == "layout"
    assert config.pages == DEFAULT_PAGE_RULES
    assert config.blog.permalink == "post/{title}"
    assert config.blog.per_page == 5
    assert config.blog.sources == "posts/{year}-{month}-{day}-{title}.html"
    assert config.directory_indexes is True
    assert [p.command for p in config.external_pipelines] == ["gulp"]
    assert config.syntax.lexer_options == {"startinline": True}
    assert config.markdown.fenced_code_blocks and config.markdown.smartypants


def test_load_config_reads_yaml(tmp_path):
    (tmp_path / "folio.yaml").write_text(
        "\n".join(
            [
                "output_dir: public",
                "site:",
                "  title: My Blog",
                "pages:",
                "  - path: /*.xml",
                "    layout: false",
                "  - path: /about.html",
                "    layout: plain",
                "blog:",
                "  per_page: 3",
                "  permalink: '{year}/{title}'",
                "external_pipelines: []",
                "syntax: false",
                "assets:",
                "  minify: true",
                "  vendor:",
                "    - source: vendor/lib.js",
                "      dest: js/lib.js",
            ]
        ),
        encoding="utf-8",
    )
    config = load_config(tmp_path)
    assert config.output_path == tmp_path / "public"
    assert config.site == {"title": "My Blog"}
    assert config.pages == (PageRule("/*.xml", None), PageRule("/about.html", "plain"))
    assert config.pages[0].is_pattern and not config.pages[1].is_pattern
    assert config.blog.per_page == 3
    assert config.blog.permalink == "{year}/{title}"
    assert config.external_pipelines == ()
    assert config.syntax is None
    assert config.assets.minify is True
    assert config.assets.vendor == (VendorCopyRule("vendor/lib.js", "js/lib.js"),)


def test_blog_can_be_disabled(tmp_path):
    config = config_from_dict(tmp_path, {"blog": False})
    assert config.blog is None
    config = config_from_dict(tmp_path, {"blog": True})
    assert config.blog == BlogSettings()


@pytest.mark.parametrize(
    "raw",
    [
        {"unknown": 1},
        {"blog": {"per_page": 0}},
        {"blog": {"per_page": True}},
        {"blog": {"per_page": "5"}},
        {"blog": {"sources": "posts/{year}.md"}},
        {"blog": {"page_link": "page"}},
        {"blog": {"nope": True}},
        {"pages": {"path": "/"}},
        {"pages": [{"path": "/"}]},
        {"site": ["not", "a", "mapping"]},
        {"assets": {"vendor": [{"source": "x"}]}},
    ],
)
def test_invalid_config_raises(raw):
    with pytest.raises(ConfigError):
        config_from_dict(Path("."), raw)


def test_invalid_yaml_raises(tmp_path):
    (tmp_path / "folio.yaml").write_text("blog: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)
    (tmp_path / "folio.yaml").write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({"output_dir": "."}, "'output_dir' must not be or contain the project root"),
        ({"output_dir": ""}, "'output_dir' must not be or contain the project root"),
        ({"output_dir": ".."}, "'output_dir' must not be or contain the project root"),
        ({"output_dir": "source"}, "'output_dir' must not overlap the source directory"),
        ({"output_dir": "source/build"}, "'output_dir' must not overlap the source directory"),
        ({"source_dir": "site/src", "output_dir": "site"}, "'output_dir' must not overlap"),
        ({"assets": {"output_dir": "."}}, "'assets.output_dir' must not be or contain"),
        ({"assets": {"output_dir": "source"}}, "'assets.output_dir' must not overlap"),
        ({"assets": {"output_dir": "source/javascripts"}}, "'assets.output_dir' must not overlap"),
        ({"output_dir": 3}, "'output_dir' must be a string"),
    ],
)
def test_destructive_output_dirs_are_rejected(tmp_path, raw, message):
    with pytest.raises(ConfigError, match=message):
        config_from_dict(tmp_path, raw)


def test_output_dirs_outside_source_are_accepted(tmp_path):
    config = config_from_dict(
        tmp_path, {"output_dir": "public", "assets": {"output_dir": "build/assets"}}
    )
    assert config.output_path == tmp_path / "public"
    assert config.assets.output_dir == "build/assets"
    config = config_from_dict(tmp_path, {"output_dir": "../public"})
    assert config.output_path == tmp_path / "../public"


def test_load_config_refuses_project_root_as_output(tmp_path):
    (tmp_path / "folio.yaml").write_text("output_dir: .\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="project root"):
        load_config(tmp_path)
    assert (tmp_path / "folio.yaml").exists()
