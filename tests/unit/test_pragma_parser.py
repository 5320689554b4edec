import pytest
from dflint.PARSERS.dockerfile_parser import DockerfileParser
from dflint.PARSERS.pragma_parser import PragmaKind, PragmaParser


@pytest.fixture
def pragmas():
    return PragmaParser()


def extract(pragmas, content):
    return pragmas.extract(DockerfileParser().parse_from_string(content).instructions)


def test_parse_ignore(pragmas):
    pragma = pragmas.parse_comment("# hadolint ignore=DL3008,DL3009")
    assert pragma.kind is PragmaKind.IGNORE
    assert pragma.codes == ["DL3008", "DL3009"]


def test_parse_global_ignore(pragmas):
    pragma = pragmas.parse_comment("hadolint global ignore=DL3008")
    assert pragma.kind is PragmaKind.GLOBAL_IGNORE
    assert pragma.codes == ["DL3008"]


def test_parse_shell_and_disable_file(pragmas):
    assert pragmas.parse_comment("# hadolint shell=/bin/bash").shell == "/bin/bash"
    assert pragmas.parse_comment("# hadolint disable-file").kind is PragmaKind.DISABLE_FILE


@pytest.mark.parametrize("comment", [
    "# This is a regular comment",
    "# hadolint ignore=",
    "# mention hadolint ignore=DL3008 later",
])
def test_not_a_pragma(pragmas, comment):
    assert pragmas.parse_comment(comment) is None


def test_ignore_applies_to_next_instruction(pragmas):
    state = extract(pragmas, (
        "FROM ubuntu:22.04\n"
        "# hadolint ignore=DL3008\n"
        "# another comment\n"
        "RUN apt-get install -y curl\n"
        "RUN apt-get install -y wget\n"
    ))
    assert state.is_ignored("DL3008", 4)
    assert not state.is_ignored("DL3008", 5)
    assert not state.is_ignored("DL3009", 4)


def test_global_ignore_and_shell(pragmas):
    state = extract(pragmas, (
        "# hadolint global ignore=DL3006\n"
        "# hadolint shell=powershell\n"
        "FROM ubuntu\n"
    ))
    assert state.is_ignored("DL3006", 3)
    assert state.is_ignored("DL3006", 99)
    assert state.shell == "powershell"


def test_is_disabled(pragmas):
    assert pragmas.is_disabled("\n\n# hadolint disable-file\nFROM alpine\n")
    assert not pragmas.is_disabled("FROM alpine\n# hadolint disable-file\n")
    assert not pragmas.is_disabled("# just a comment\n# hadolint disable-file\n")
    assert not pragmas.is_disabled("")
