from datetime import datetime
from pathlib import Path

import pytest

from scribe.build import (
    BuildResult,
    build_site,
    check_unique_outputs,
    load_config,
    load_data,
    staging_dir_for,
)
from scribe.cli import _scaffold
from scribe.errors import (
    ConfigError,
    DuplicatePathError,
    MissingRequiredFieldError,
    TemplateNotFoundError,
)
from scribe.site import OutputPage, read_page_metadata

EXPECTED_FILES = {
    "index.html",
    "about/index.html",
    "2024/01/01/hello-world/index.html",
    "categories/meta/index.html",
    "rss.xml",
    "sitemap.xml",
    "assets/css/main.css",
}


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "blog"
    _scaffold(root)
    return root


def snapshot(directory: Path) -> dict[str, bytes]:
    return {
        p.relative_to(directory).as_posix(): p.read_bytes()
        for p in directory.rglob("*")
        if p.is_file()
    }


def test_build_scaffold(project):
    result = build_site(project)

    assert isinstance(result, BuildResult)
    assert result.output_dir == project / "output"
    assert set(snapshot(result.output_dir)) == EXPECTED_FILES
    assert len(result.pages) == 6
    assert len(result.documents) == 2
    assert result.data["title"] == "My Blog"
    assert not staging_dir_for(result.output_dir).exists()

    index = (result.output_dir / "index.html").read_text(encoding="utf-8")
    assert 'href="/2024/01/01/hello-world/"' in index
    category = (result.output_dir / "categories/meta/index.html").read_text(encoding="utf-8")
    assert "Category: meta" in category
    assert "Hello World" in category


def test_build_output_round_trips_metadata(project):
    out = build_site(project).output_dir
    post_html = (out / "2024/01/01/hello-world/index.html").read_text(encoding="utf-8")
    assert read_page_metadata(post_html) == {
        "title": "Hello World",
        "date": datetime(2024, 1, 1, 9, 0),
    }
    about_html = (out / "about/index.html").read_text(encoding="utf-8")
    assert read_page_metadata(about_html) == {"title": "About Me"}
    assert '<div class="highlight">' in post_html


def test_build_is_byte_identical(project):
    first = snapshot(build_site(project).output_dir)
    second = snapshot(build_site(project).output_dir)
    assert first == second

    (project / "scribe.yaml").write_text("workers: 4\n", encoding="utf-8")
    assert snapshot(build_site(project).output_dir) == first


def test_build_drafts_only_on_request(project):
    (project / "site" / "_drafts").mkdir()
    (project / "site" / "_drafts" / "idea.md").write_text(
        "---\ntitle: Idea\ndate: 2024-02-01 10:00\n---\nMaybe.\n", encoding="utf-8"
    )
    published = build_site(project)
    assert not (published.output_dir / "2024/02/01/idea/index.html").exists()

    with_drafts = build_site(project, include_drafts=True)
    assert (with_drafts.output_dir / "2024/02/01/idea/index.html").exists()
    rss = (with_drafts.output_dir / "rss.xml").read_text(encoding="utf-8")
    assert "Idea" not in rss


def test_root_url_override(project):
    out = build_site(project, root_url="http://localhost:4000").output_dir
    index = (out / "index.html").read_text(encoding="utf-8")
    assert 'href="http://localhost:4000/about/"' in index


def test_failed_build_keeps_previous_output(project):
    out = build_site(project).output_dir
    before = snapshot(out)

    broken = project / "site" / "_posts" / "2024-03-01-broken.md"
    broken.write_text("---\nlayout: post\ntitle: Broken\n---\nNo date.\n", encoding="utf-8")
    with pytest.raises(MissingRequiredFieldError) as excinfo:
        build_site(project)

    assert excinfo.value.source_path == broken
    assert excinfo.value.field == "date"
    assert snapshot(out) == before
    assert not staging_dir_for(out).exists()


def test_duplicate_permalink_is_rejected(project):
    out = build_site(project).output_dir
    before = snapshot(out)
    clash = project / "site" / "contact.md"
    clash.write_text("---\ntitle: Contact\npermalink: /about/\n---\nMail me.\n", encoding="utf-8")

    with pytest.raises(DuplicatePathError) as excinfo:
        build_site(project)
    err = excinfo.value
    assert err.url == "/about/"
    assert err.message.startswith("URL /about/ is produced by both")
    assert err.paths == (str(project / "site" / "about.md"), str(clash))
    assert err.source_path == clash
    assert snapshot(out) == before


def test_page_clashing_with_asset_is_rejected(project):
    (project / "site" / "style.md").write_text(
        "---\npermalink: /assets/css/main.css\n---\nbody{}\n", encoding="utf-8"
    )
    with pytest.raises(DuplicatePathError) as excinfo:
        build_site(project)
    assert str(project / "assets" / "css" / "main.css") in excinfo.value.paths


def test_similar_categories_get_separate_listings(project):
    posts = project / "site" / "_posts"
    (posts / "2024-02-01-templates.md").write_text(
        "---\ntitle: Templates\ndate: 2024-02-01\ncategories: c++\n---\nBody\n", encoding="utf-8"
    )
    (posts / "2024-02-02-pointers.md").write_text(
        "---\ntitle: Pointers\ndate: 2024-02-02\ncategories: c\n---\nBody\n", encoding="utf-8"
    )
    out = build_site(project).output_dir

    cpp = (out / "categories/c_2b_2b/index.html").read_text(encoding="utf-8")
    c = (out / "categories/c/index.html").read_text(encoding="utf-8")
    assert "Category: c++" in cpp
    assert "Templates" in cpp and "Pointers" not in cpp
    assert "Category: c" in c
    assert "Pointers" in c and "Templates" not in c


def test_each_url_is_published_once(project):
    result = build_site(project)
    urls = [page.url for page in result.pages]
    assert urls.count("/about/") == 1
    assert len(urls) == len(set(urls))


def test_check_unique_outputs_names_listing_pages():
    pages = [
        OutputPage(url="/", content="", kind="index"),
        OutputPage(url="/", content="", kind="page", source=Path("site/home.md")),
    ]
    with pytest.raises(DuplicatePathError) as excinfo:
        check_unique_outputs(pages)
    assert excinfo.value.paths == ("the index listing /", "site/home.md")


def test_missing_category_layout_aborts_build(project):
    (project / "site" / "_layouts" / "category.html.jinja").unlink()
    with pytest.raises(TemplateNotFoundError) as excinfo:
        build_site(project)
    assert excinfo.value.template == "category"
    assert not (project / "output").exists()


def test_build_requires_site_directory(tmp_path):
    with pytest.raises(ConfigError):
        build_site(tmp_path)


@pytest.mark.parametrize(
    "config",
    [
        "paginate: -1\n",
        "workers: 0\n",
        "port: nope\n",
        "paginate: true\n",
        "post_permalink: ':title/'\n",
        "post_permalink: /../:title/\n",
        "output_dir: ''\n",
        "- just\n- a list\n",
        "paginate: [unclosed\n",
    ],
)
def test_invalid_config_is_rejected(tmp_path, config):
    (tmp_path / "scribe.yaml").write_text(config, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_output_dir_may_not_overwrite_sources(project):
    (project / "scribe.yaml").write_text("output_dir: site/out\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        build_site(project)
    (project / "scribe.yaml").write_text("output_dir: .\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        build_site(project)


def test_load_config_defaults(tmp_path):
    config = load_config(tmp_path)
    assert config["output_dir"] == "output"
    assert config["paginate"] == 10
    assert config["workers"] == 1
    assert config["post_permalink"] == "/:year/:month/:day/:title/"


def test_load_data_merges_site_yaml(tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "site.yaml").write_text("title: Blog\n", encoding="utf-8")
    (data_dir / "links.yaml").write_text("- https://go.dev\n", encoding="utf-8")
    assert load_data(tmp_path) == {"title": "Blog", "links": ["https://go.dev"]}

    (data_dir / "bad.yaml").write_text("a: [\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_data(tmp_path)
