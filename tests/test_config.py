"""docgen.toml overrides and the command line surface."""

from __future__ import annotations

from pathlib import Path

import pytest

import generate_docs


def write_docgen(project: Path, body: str) -> None:
    (project / "docgen.toml").write_text(body, encoding="utf-8")


def test_defaults_resolve_against_project_dir(config, project):
    root = project.resolve()
    assert config.config_dir == root / "config"
    assert config.log_dir == root / "logs"
    assert config.output_dir == root / "docs" / "api"
    assert config.temp_dir == root / "temp"
    assert config.static_dir == root / "static-docs"
    assert tuple(config.tools) == ("jsdoc", "swagger", "doxygen")


def test_docs_table_overrides_paths_and_tool_order(project, tmp_path):
    absolute_out = tmp_path / "site"
    write_docgen(
        project,
        f"""
[docs]
output_dir = "{absolute_out.as_posix()}"
log_dir = "build/logs"
tools = ["doxygen", "jsdoc"]
""",
    )
    config = generate_docs.load_docs_config(project)
    assert config.output_dir == absolute_out
    assert config.log_dir == project.resolve() / "build" / "logs"
    assert config.config_dir == project.resolve() / "config"
    assert config.tools == ("doxygen", "jsdoc")


@pytest.mark.parametrize(
    "body",
    [
        '[docs]\ntools = ["sphinx"]\n',
        "[docs]\ntools = []\n",
        '[docs]\ntools = "jsdoc"\n',
        "[docs]\noutput_dir = 3\n",
        '[docs]\nthemes = "dark"\n',
        'docs = "not a table"\n',
        "[docs\n",
    ],
)
def test_invalid_docgen_file_exits(project, body):
    write_docgen(project, body)
    with pytest.raises(SystemExit) as excinfo:
        generate_docs.load_docs_config(project)
    assert excinfo.value.code == 1


def test_main_defaults_to_development(project, monkeypatch):
    seen = {}

    def fake_pipeline(config, environment):
        seen["environment"] = environment
        seen["project_dir"] = config.project_dir
        return 0

    monkeypatch.setattr(generate_docs, "run_pipeline", fake_pipeline)
    assert generate_docs.main(["--project-dir", str(project)]) == 0
    assert seen == {"environment": "development", "project_dir": project.resolve()}


def test_main_passes_environment_through(project, monkeypatch):
    seen = []
    monkeypatch.setattr(generate_docs, "run_pipeline", lambda config, env: seen.append(env) or 0)
    assert generate_docs.main(["staging", "--project-dir", str(project)]) == 0
    assert seen == ["staging"]


def test_main_rejects_two_environments(project, monkeypatch, capsys):
    monkeypatch.setattr(generate_docs, "run_pipeline", lambda config, env: pytest.fail("pipeline ran"))
    assert generate_docs.main(["staging", "production", "--project-dir", str(project)]) == 1
    out = capsys.readouterr().out
    assert "Error: Too many arguments provided." in out
    assert "usage: generate-docs" in out


def test_unknown_option_is_a_usage_error(capsys):
    with pytest.raises(SystemExit) as excinfo:
        generate_docs.main(["--colour"])
    assert excinfo.value.code == 1
    assert "usage: generate-docs" in capsys.readouterr().out


def test_main_reports_interrupt(project, monkeypatch):
    def interrupted(config, environment):
        raise KeyboardInterrupt

    monkeypatch.setattr(generate_docs, "run_pipeline", interrupted)
    assert generate_docs.main(["--project-dir", str(project)]) == 1


def test_log_lines_are_timestamped(project, monkeypatch, capsys):
    monkeypatch.setattr(generate_docs, "run_pipeline", lambda config, env: generate_docs.LOGGER.info("hello") or 0)
    generate_docs.main(["--project-dir", str(project)])
    line = capsys.readouterr().out.strip().splitlines()[-1]
    assert line.endswith("] hello")
    assert line.startswith("[")
    assert len(line.split("]")[0]) == len("[2024-01-01 00:00:00")
