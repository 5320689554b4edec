import textwrap

import pytest
from dflint.MODELS.lint_config import LintConfig
from dflint.MODELS.lint_result import LintResult, Severity
from dflint.PARSERS.config_parser import ConfigParser
from dflint.RUNNERS.lint_runner import lint_file

CLEAN = textwrap.dedent("""\
    # syntax=docker/dockerfile:1
    FROM node:20.11-alpine AS build
    WORKDIR /src
    COPY package.json yarn.lock ./
    RUN yarn install --frozen-lockfile && yarn cache clean
    COPY . .
    RUN yarn build

    FROM nginx:1.25-alpine
    COPY --from=build /src/dist /usr/share/nginx/html
    EXPOSE 80
    HEALTHCHECK --interval=30s CMD wget -q -O /dev/null http://localhost/ || exit 1
    USER nginx
    CMD ["nginx", "-g", "daemon off;"]
""")

MESSY = textwrap.dedent("""\
    FROM ubuntu:latest
    MAINTAINER someone@example.com
    RUN apt-get update
    RUN apt-get install python3 python3-pip
    RUN pip install flask
    ADD app /app
    WORKDIR app
    RUN cd /app && curl -sL https://example.com/setup.sh | bash
    USER root
    CMD python3 app.py
""")


@pytest.fixture
def write(tmp_path):
    def _write(name, content):
        path = tmp_path / name
        path.write_text(content)
        return str(path)
    return _write


def test_clean_dockerfile(write):
    result = lint_file(write("Dockerfile", CLEAN))
    assert result.parse_errors == []
    assert result.failures == []
    assert not result.should_fail(LintConfig())


def test_messy_dockerfile(write):
    result = lint_file(write("Dockerfile", MESSY))
    by_code = {}
    for failure in result.failures:
        by_code.setdefault(failure.code, failure)

    expected = {
        "DL3007": 1, "DL4000": 2, "DL3059": 4, "DL3008": 4, "DL3014": 4, "DL3015": 4, "DL3009": 4,
        "DL3013": 5, "DL3042": 5, "DL3020": 6, "DL3000": 7, "DL3003": 8, "DL4006": 8,
        "DL3002": 9, "DL3025": 10, "DL3057": 1,
    }
    for code, line in expected.items():
        assert by_code[code].line == line, code

    assert result.has_errors
    assert result.max_severity() is Severity.ERROR
    assert result.should_fail(LintConfig())

    restored = LintResult.model_validate_json(result.model_dump_json())
    assert restored.failures == result.failures


def test_with_project_config(write, tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    write(".hadolint.yaml", textwrap.dedent("""\
        ignored: [DL3057, DL3059]
        override:
          error: [DL3008]
        failure-threshold: warning
    """))
    config = ConfigParser().find_and_load(str(tmp_path))

    result = lint_file(write("Dockerfile", MESSY), config)
    codes = result.codes()
    assert "DL3057" not in codes and "DL3059" not in codes
    # Info level failures fall under the threshold
    assert "DL3009" not in codes and "DL3015" not in codes
    assert next(f for f in result.failures if f.code == "DL3008").severity is Severity.ERROR
