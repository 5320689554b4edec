import pytest
from dflint.MODELS.lint_config import LintConfig
from dflint.MODELS.lint_result import Severity
from dflint.PARSERS.config_parser import ConfigError, ConfigParser


@pytest.fixture
def parser():
    return ConfigParser()


def test_parse_full_config(parser):
    config = parser.parse_from_string("""
ignored:
  - DL3008
  - DL3013
override:
  error:
    - DL3001
  info:
    - DL3002
failure-threshold: warning
disable-ignore-pragma: true
no-fail: true
fixable-only: true
""")
    assert config.ignored == {"DL3008", "DL3013"}
    assert config.severity_overrides == {"DL3001": Severity.ERROR, "DL3002": Severity.INFO}
    assert config.failure_threshold is Severity.WARNING
    assert config.disable_ignore_pragma
    assert config.no_fail
    assert config.fixable_only


def test_empty_config_is_default(parser):
    assert parser.parse_from_string("") == LintConfig()


def test_unknown_severities_are_skipped(parser, caplog):
    config = parser.parse_from_string("failure-threshold: loud\noverride:\n  fatal: [DL3000]\n")
    assert config.failure_threshold is Severity.INFO
    assert config.severity_overrides == {}
    assert "loud" in caplog.text


@pytest.mark.parametrize("content", [
    "ignored: [DL3000",
    "- just\n- a list\n",
    "ignored: 12",
    "override: [DL3000]",
])
def test_malformed_config(parser, content):
    with pytest.raises(ConfigError):
        parser.parse_from_string(content)


def test_parse_missing_file(parser, tmp_path):
    with pytest.raises(ConfigError):
        parser.parse(str(tmp_path / "missing.yaml"))


def test_find_and_load_prefers_project_file(parser, tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    (tmp_path / ".hadolint.yml").write_text("ignored: [DL3007]\n")
    (tmp_path / ".hadolint.yaml").write_text("ignored: [DL3006]\n")

    config = parser.find_and_load(str(tmp_path))
    assert config.ignored == {"DL3006"}


def test_find_and_load_falls_back_to_xdg(parser, tmp_path, monkeypatch):
    xdg = tmp_path / "xdg"
    xdg.mkdir()
    (xdg / "hadolint.yaml").write_text("failure-threshold: error\n")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))

    project = tmp_path / "project"
    project.mkdir()
    config = parser.find_and_load(str(project))
    assert config.failure_threshold is Severity.ERROR


def test_find_and_load_nothing(parser, tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    assert parser.find_and_load(str(tmp_path)) is None
