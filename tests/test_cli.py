from datetime import datetime

import yaml
from click.testing import CliRunner

from scribe.build import BuildResult
from scribe.cli import _get_existing_slugs, cli
from scribe.errors import BuildError


def mock_prompts(monkeypatch, *answers):
    responses = iter(answers)

    def mock_text(*args, **kwargs):
        class MockQuestion:
            def ask(self):
                return next(responses)

        return MockQuestion()

    monkeypatch.setattr("scribe.cli.questionary.text", mock_text)


def test_cli_new_scaffolds_project(tmp_path):
    runner = CliRunner()
    target = tmp_path / "mysite"
    result = runner.invoke(cli, ["new", str(target)])
    assert result.exit_code == 0
    assert (target / "scribe.yaml").exists()
    assert (target / "site" / "_layouts" / "post.html.jinja").exists()
    assert (target / "site" / "_posts" / "2024-01-01-hello-world.md").exists()
    assert (target / "assets" / "css" / "main.css").exists()
    assert not (target / "package.json").exists()

    # fails on non-empty directory
    (target / "extra.txt").write_text("x", encoding="utf-8")
    result = runner.invoke(cli, ["new", str(target)])
    assert result.exit_code != 0
    assert "non-empty" in result.output


def test_cli_build_scaffold(tmp_path, monkeypatch):
    runner = CliRunner()
    project = tmp_path / "mysite"
    runner.invoke(cli, ["new", str(project)])
    monkeypatch.chdir(project)

    result = runner.invoke(cli, ["build"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "Built 6 pages from 2 documents" in result.output
    assert (project / "output" / "about" / "index.html").exists()


def test_cli_build_reports_offending_file(tmp_path, monkeypatch):
    runner = CliRunner()
    project = tmp_path / "mysite"
    runner.invoke(cli, ["new", str(project)])
    (project / "site" / "_posts" / "2024-05-05-nodate.md").write_text(
        "---\ntitle: No Date\n---\nBody\n", encoding="utf-8"
    )
    monkeypatch.chdir(project)

    result = runner.invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "File: site/_posts/2024-05-05-nodate.md" in result.output
    assert "'date' is required" in result.output
    assert not (project / "output").exists()


def test_cli_build_reports_undecodable_file(tmp_path, monkeypatch):
    runner = CliRunner()
    project = tmp_path / "mysite"
    runner.invoke(cli, ["new", str(project)])
    (project / "site" / "notes.md").write_bytes(b"---\ntitle: Notes\n---\n\xff\xfe\n")
    monkeypatch.chdir(project)

    result = runner.invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "File: site/notes.md" in result.output
    assert "not valid UTF-8" in result.output


def test_cli_build_config_error(tmp_path, monkeypatch):
    runner = CliRunner()
    (tmp_path / "scribe.yaml").write_text("paginate: -3\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "'paginate' must be an integer" in result.output


def test_cli_build_and_serve(monkeypatch, tmp_path):
    runner = CliRunner()
    monkeypatch.chdir(tmp_path)

    def fake_build_site(root, include_drafts=False, root_url=None, output_dir_override=None):
        out = root / "output"
        out.mkdir()
        return BuildResult(documents=[], pages=[], output_dir=out, data={})

    called = {}

    class DummyServer:
        def __init__(self, root, http_port=None, ws_port=None):
            self.root = root
            called["port"] = http_port
            called["ws_port"] = ws_port

        def start(self, include_drafts=False):
            called["drafts"] = include_drafts

    monkeypatch.setattr("scribe.build.build_site", fake_build_site)
    monkeypatch.setattr("scribe.server.DevServer", DummyServer)

    result = runner.invoke(cli, ["build"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "Built 0 pages from 0 documents" in result.output

    result = runner.invoke(
        cli, ["serve", "--drafts", "--port", "5050", "--ws-port", "5051"], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert called == {"port": 5050, "ws_port": 5051, "drafts": True}


def test_cli_serve_reports_initial_build_failure(monkeypatch, tmp_path):
    runner = CliRunner()
    monkeypatch.chdir(tmp_path)

    class FailingServer:
        def __init__(self, root, http_port=None, ws_port=None):
            pass

        def start(self, include_drafts=False):
            raise BuildError(None, "Template 'post' not found")

    monkeypatch.setattr("scribe.server.DevServer", FailingServer)
    result = runner.invoke(cli, ["serve"])
    assert result.exit_code == 1
    assert "Template 'post' not found" in result.output
    assert "File:" not in result.output


def test_post_command_no_site_dir(tmp_path, monkeypatch):
    runner = CliRunner()
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "No site/ directory found" in result.output


def test_post_command_creates_file(tmp_path, monkeypatch):
    runner = CliRunner()
    (tmp_path / "site").mkdir()
    monkeypatch.chdir(tmp_path)
    mock_prompts(monkeypatch, "  Why I Chose Go  ", "Go Programming")

    result = runner.invoke(cli, ["post"], catch_exceptions=False)
    assert result.exit_code == 0

    date_prefix = datetime.now().strftime("%Y-%m-%d")
    expected_file = tmp_path / "site" / "_posts" / f"{date_prefix}-why-i-chose-go.md"
    assert expected_file.exists()
    header = expected_file.read_text(encoding="utf-8").split("---\n")[1]
    front_matter = yaml.safe_load(header)
    assert front_matter["layout"] == "post"
    assert front_matter["title"] == "Why I Chose Go"
    assert front_matter["categories"] == "go programming"
    assert str(front_matter["date"]).startswith(date_prefix)


def test_post_command_without_categories(tmp_path, monkeypatch):
    runner = CliRunner()
    (tmp_path / "site").mkdir()
    monkeypatch.chdir(tmp_path)
    mock_prompts(monkeypatch, "Plain", "")

    result = runner.invoke(cli, ["post"], catch_exceptions=False)
    assert result.exit_code == 0
    created = next((tmp_path / "site" / "_posts").glob("*-plain.md"))
    assert "categories" not in created.read_text(encoding="utf-8")


def test_post_command_duplicate_detection(tmp_path, monkeypatch):
    runner = CliRunner()
    posts_dir = tmp_path / "site" / "_posts"
    posts_dir.mkdir(parents=True)
    (posts_dir / "2024-01-01-existing-post.md").write_text("---\n---\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    mock_prompts(monkeypatch, "Existing Post", "")

    result = runner.invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_post_command_aborts_on_cancel(tmp_path, monkeypatch):
    runner = CliRunner()
    (tmp_path / "site").mkdir()
    monkeypatch.chdir(tmp_path)
    mock_prompts(monkeypatch, None)

    result = runner.invoke(cli, ["post"])
    assert result.exit_code != 0
    assert not (tmp_path / "site" / "_posts").exists()


def test_get_existing_slugs(tmp_path):
    posts_dir = tmp_path / "_posts"
    posts_dir.mkdir()
    (posts_dir / "2024-01-01-first-post.md").write_text("", encoding="utf-8")
    (posts_dir / "second-post.markdown").write_text("", encoding="utf-8")
    (posts_dir / "notes.txt").write_text("", encoding="utf-8")
    assert _get_existing_slugs(posts_dir) == {
        "first-post": "2024-01-01-first-post.md",
        "second-post": "second-post.markdown",
    }
    assert _get_existing_slugs(tmp_path / "missing") == {}


def test_module_main_entrypoint():
    from scribe.__main__ import main

    assert callable(main)


def test_main_invokes_cli(monkeypatch):
    import scribe.cli as cli_mod

    called = {}

    def fake_cli():
        called["ran"] = True

    monkeypatch.setattr(cli_mod, "cli", fake_cli)
    cli_mod.main()
    assert called["ran"]


def test_version_option():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "scribe, version 0.1.0" in result.output
