import random
import string
import pytest
from dflint.PARSERS.dockerfile_parser import DockerfileParser
from dflint.PARSERS.config_parser import ConfigError, ConfigParser
from dflint.PARSERS.shell_parser import tokenize
from dflint.RUNNERS.lint_runner import lint

KEYWORDS = ["FROM", "RUN", "COPY", "ADD", "ENV", "LABEL", "EXPOSE", "ARG", "CMD", "ENTRYPOINT",
            "SHELL", "USER", "WORKDIR", "VOLUME", "HEALTHCHECK", "ONBUILD", "STOPSIGNAL", "#"]
FRAGMENTS = ["\\", "\"", "'", "[", "]", ",", "=", "--", "&&", "|", ";", "$(", ")", "@", ":", " ", "\n"]


def random_string(rng, length):
    return ''.join(rng.choice(string.printable) for _ in range(length))


def random_dockerfile(rng, lines):
    out = []
    for _ in range(lines):
        words = [rng.choice(KEYWORDS)]
        for _ in range(rng.randint(0, 6)):
            words.append(rng.choice(FRAGMENTS) + random_string(rng, rng.randint(0, 8)))
        out.append(" ".join(words))
    return "\n".join(out)


@pytest.mark.parametrize("seed", range(5))
def test_fuzz_dockerfile_parser(seed):
    rng = random.Random(seed)
    parser = DockerfileParser()
    for _ in range(100):
        ast = parser.parse_from_string(random_string(rng, rng.randint(0, 1000)))
        assert all(i.line >= 1 for i in ast.instructions)


@pytest.mark.parametrize("seed", range(5))
def test_fuzz_structured_dockerfiles(seed):
    rng = random.Random(seed)
    for _ in range(50):
        content = random_dockerfile(rng, rng.randint(1, 30))
        result = lint(content)
        lines = [f.line for f in result.failures]
        assert lines == sorted(lines)
        assert all(error.startswith("line ") for error in result.parse_errors)


def test_fuzz_shell_tokenizer():
    rng = random.Random(7)
    for _ in range(200):
        script = "".join(rng.choice(FRAGMENTS + ["echo", "apt-get", "-y", "x"]) for _ in range(rng.randint(0, 40)))
        parsed = tokenize(script)
        assert parsed.original == script
        assert all(cmd.name for cmd in parsed.commands)


def test_fuzz_config_parser():
    rng = random.Random(11)
    parser = ConfigParser()
    for _ in range(100):
        content = random_string(rng, rng.randint(0, 200))
        try:
            parser.parse_from_string(content)
        except ConfigError:
            pass


def test_edge_cases_parsers():
    parser = DockerfileParser()

    # Empty string
    assert parser.parse_from_string("").instructions == []

    # Only whitespace
    assert parser.parse_from_string("   \n\t  ").instructions == []

    # Very long line
    assert len(parser.parse_from_string("RUN " + "a" * 10000).instructions) == 1

    # Many line continuations
    ast = parser.parse_from_string("RUN echo \\\n" * 100 + "hello")
    assert len(ast.instructions) == 1
    assert ast.instructions[0].line == 1
