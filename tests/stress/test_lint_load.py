import time
from concurrent.futures import ThreadPoolExecutor

from dflint.MODELS.lint_config import LintConfig
from dflint.RUNNERS.lint_runner import LintRunner, lint

STAGE = """FROM python:3.12-slim AS stage{n}
WORKDIR /app
RUN apt-get update && apt-get install -y --no-install-recommends curl=8.5.0-2 \\
    && rm -rf /var/lib/apt/lists/*
COPY requirements.txt .
RUN pip install --no-cache-dir -r requirements.txt
USER app
"""


def test_large_document():
    """
    Lint a 500 stage document (roughly 3500 lines) in one go.
    """
    content = "".join(STAGE.format(n=i) for i in range(500))

    start_time = time.time()
    result = lint(content)
    end_time = time.time()
    print(f"Linted {content.count(chr(10))} lines in {end_time - start_time:.2f}s")

    assert result.parse_errors == []
    # Only the missing HEALTHCHECK is reported, once for the document
    assert result.codes() == ["DL3057"]


def test_concurrent_batch_linting():
    """
    One shared runner linting many documents from a thread pool.
    """
    runner = LintRunner(LintConfig())
    documents = []
    for i in range(200):
        tag = "latest" if i % 2 else f"3.{i}"
        documents.append(f"FROM python:{tag}\nRUN cd /tmp && pip install flask\nCMD run\n")

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(runner.lint, documents))

    for i, result in enumerate(results):
        codes = result.codes()
        assert ("DL3007" in codes) == bool(i % 2)
        assert "DL3003" in codes
        assert "DL3013" in codes

    sequential = [runner.lint(doc) for doc in documents]
    assert [r.failures for r in results] == [r.failures for r in sequential]
