import pytest
from dflint.PARSERS.shell_parser import Command, ParsedShellScript, tokenize
from dflint.MODELS.dockerfile_ast import ExecForm, ShellForm


def test_splits_on_operators():
    script = tokenize("apt-get update && apt-get install -y curl; echo done || true")
    assert script.command_names == ["apt-get", "apt-get", "echo", "true"]
    assert not script.has_pipe


def test_pipe_detection():
    assert tokenize("curl -sL https://x | bash").has_pipe
    assert not tokenize("a || b").has_pipe
    assert not tokenize("echo 'a | b'").has_pipe


def test_quotes_are_stripped_and_preserved():
    script = tokenize('echo "hello world" \'single quoted\' ""')
    cmd = script.commands[0]
    assert cmd.arguments == ["hello world", "single quoted", ""]


def test_operators_inside_quotes_do_not_split():
    script = tokenize('sh -c "make && make install"')
    assert script.command_names == ["sh"]
    assert script.commands[0].arguments == ["-c", "make && make install"]


def test_escapes():
    script = tokenize('echo a\\ b "say \\"x\\""')
    assert script.commands[0].arguments == ["a b", 'say "x"']


def test_newline_separates_commands():
    assert tokenize("cd /tmp\nmake").command_names == ["cd", "make"]


def test_subshell_unwrapped():
    script = tokenize("(cd /src && make) && ( rm -rf /tmp/x )")
    assert script.command_names == ["cd", "make", "rm"]
    assert script.commands[1].arguments == []


@pytest.mark.parametrize("script, expected", [
    ('python -c "print(1)"', ["-c", "print(1)"]),
    ('echo ")"', [")"]),
    ('echo "a (b)"', ["a (b)"]),
    ("echo '{' '}'", ["{", "}"]),
    ("echo \\)", [")"]),
])
def test_quoted_parentheses_kept(script, expected):
    assert tokenize(script).commands[0].arguments == expected


def test_quoted_parentheses_inside_subshell():
    script = tokenize('(python -c "print(1)")')
    assert script.command_names == ["python"]
    assert script.commands[0].arguments == ["-c", "print(1)"]


def test_brace_group_unwrapped():
    script = tokenize("{ make; make install; }")
    assert script.command_names == ["make", "make"]
    assert script.commands[1].arguments == ["install"]


def test_command_substitution_stays_in_word():
    script = tokenize("echo $(uname -m && true) done")
    assert script.command_names == ["echo"]
    assert script.commands[0].arguments == ["$(uname -m && true)", "done"]


def test_comments_are_ignored():
    script = tokenize("make # && rm -rf /\nmake install")
    assert script.command_names == ["make", "make"]


def test_flags():
    cmd = tokenize("apt-get -qq install --no-install-recommends --opt=1 - -- pkg").commands[0]
    assert cmd.flags == ["q", "q", "no-install-recommends", "opt"]
    assert cmd.args_no_flags() == ["install", "pkg"]
    assert cmd.has_flag("no-install-recommends")
    assert cmd.flag_count("q") == 2


def test_flag_values():
    cmd = tokenize("pip install --index-url=https://pypi.org -t /opt pkg").commands[0]
    assert cmd.get_flag_value("index-url") == "https://pypi.org"
    assert cmd.get_flag_value("t") == "/opt"
    assert cmd.get_flag_value("missing") is None


@pytest.mark.parametrize("script, expected", [
    ("pip install flask", True),
    ("pip3 install flask", True),
    ("python3 -m pip install flask", True),
    ("pipenv install", False),
    ("pip freeze", False),
])
def test_is_pip_install(script, expected):
    assert tokenize(script).commands[0].is_pip_install() is expected


def test_package_manager_helpers():
    assert Command(name="apt-get", arguments=["install", "curl"]).is_apt_get_install()
    assert not Command(name="apt-get", arguments=["update"]).is_apt_get_install()
    assert Command(name="apk", arguments=["add", "curl"]).is_apk_add()


def test_script_predicates():
    script = tokenize("wget -q http://x && tar xf x.tar")
    assert script.using_program("wget")
    assert script.any_command(lambda c: c.name == "tar")
    assert script.no_commands(lambda c: c.name == "curl")
    assert not script.all_commands(lambda c: c.name == "wget")
    assert [c.name for c in script.find_commands("tar")] == ["tar"]


def test_from_arguments():
    exec_script = ParsedShellScript.from_arguments(ExecForm(items=["apt-get", "install", "-y", "vim"]))
    assert exec_script.commands[0].name == "apt-get"
    assert exec_script.commands[0].has_flag("y")

    shell_script = ParsedShellScript.from_arguments(ShellForm(text="make"))
    assert shell_script.original == "make"


def test_empty_and_unterminated_input():
    assert tokenize("").commands == []
    assert tokenize(" ; && ").commands == []
    # An unterminated quote consumes the rest of the script
    assert tokenize('echo "abc').commands[0].arguments == ["abc"]
