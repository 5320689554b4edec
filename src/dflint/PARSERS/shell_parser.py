# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Lightweight shell tokenizer for RUN instructions.

This is not a shell: it splits a script into commands on ``&&``, ``||``,
``;``, ``|`` and newlines, strips quotes, and extracts flags. That is enough
for rules that look for programs and their options.
"""
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from ..MODELS.dockerfile_ast import ExecForm, ShellForm

# Word text and whether any part of it was quoted or escaped
Word = Tuple[str, bool]


@dataclass(frozen=True)
class Command:
    """
    A single simple command: program name, arguments and extracted flags.

    ``arguments`` holds every word after the program name, flags included,
    in source order.
    """
    name: str
    arguments: List[str] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)

    def has_args(self, *args: str) -> bool:
        """Whether every given word appears among the arguments."""
        return all(arg in self.arguments for arg in args)

    def has_any_arg(self, *args: str) -> bool:
        return any(arg in self.arguments for arg in args)

    def has_flag(self, flag: str) -> bool:
        return flag in self.flags

    def has_any_flag(self, *flags: str) -> bool:
        return any(flag in self.flags for flag in flags)

    def flag_count(self, flag: str) -> int:
        return self.flags.count(flag)

    def args_no_flags(self) -> List[str]:
        """Arguments that do not start with ``-``."""
        return [arg for arg in self.arguments if not arg.startswith('-')]

    def get_flag_value(self, flag: str) -> Optional[str]:
        """
        Value of ``--flag=value``, ``--flag value`` or ``-f value``.

        The word following a bare flag is taken as its value, so only use
        this for options that are known to take one.
        """
        prefix = f"-{flag}" if len(flag) == 1 else f"--{flag}"
        for i, arg in enumerate(self.arguments):
            if arg.startswith(prefix + '='):
                return arg[len(prefix) + 1:]
            if arg == prefix and i + 1 < len(self.arguments):
                return self.arguments[i + 1]
        return None

    def is_pip_install(self) -> bool:
        """``pip install``, ``pip3 install`` or ``python -m pip install``."""
        if self.name.startswith('pip') and not self.name.startswith('pipenv'):
            return 'install' in self.arguments
        if self.name.startswith('python'):
            args = self.arguments
            for i in range(len(args) - 2):
                if args[i] == '-m' and args[i + 1].startswith('pip') and args[i + 2] == 'install':
                    return True
        return False

    def is_apt_get_install(self) -> bool:
        return self.name == 'apt-get' and 'install' in self.arguments

    def is_apk_add(self) -> bool:
        return self.name == 'apk' and 'add' in self.arguments


@dataclass(frozen=True)
class ParsedShellScript:
    """
    The commands found in one RUN script.
    """
    original: str
    commands: List[Command] = field(default_factory=list)
    has_pipe: bool = False

    @classmethod
    def from_arguments(cls, arguments) -> "ParsedShellScript":
        """Tokenize exec or shell form arguments."""
        if isinstance(arguments, (ExecForm, ShellForm)):
            return tokenize(arguments.to_script())
        return tokenize(str(arguments))

    def any_command(self, predicate: Callable[[Command], bool]) -> bool:
        return any(predicate(cmd) for cmd in self.commands)

    def all_commands(self, predicate: Callable[[Command], bool]) -> bool:
        return all(predicate(cmd) for cmd in self.commands)

    def no_commands(self, predicate: Callable[[Command], bool]) -> bool:
        return not self.any_command(predicate)

    def find_commands(self, name: str) -> List[Command]:
        return [cmd for cmd in self.commands if cmd.name == name]

    @property
    def command_names(self) -> List[str]:
        return [cmd.name for cmd in self.commands]

    def using_program(self, name: str) -> bool:
        return name in self.command_names


def tokenize(script: str) -> ParsedShellScript:
    """
    Split a shell script into commands.

    :param script: Raw script text.
    :return: ParsedShellScript with one Command per simple command.
    """
    words_per_command, has_pipe = _split(script)
    commands = []
    for words in words_per_command:
        words = _strip_subshell(words)
        if not words or not words[0]:
            continue
        name, arguments = words[0], words[1:]
        commands.append(Command(name=name, arguments=arguments, flags=_extract_flags(arguments)))
    return ParsedShellScript(original=script, commands=commands, has_pipe=has_pipe)


def _split(script: str) -> Tuple[List[List[Word]], bool]:
    """
    Scan the script once, returning the words of each command.

    Each word is paired with whether any of it was quoted or escaped, so
    an empty ``""`` still produces a word and a quoted ``)`` is never
    taken for a grouping token. Unquoted ``(`` and ``)`` are words of
    their own.
    """
    commands: List[List[Word]] = []
    words: List[Word] = []
    current: List[str] = []
    in_word = False
    quoted = False
    quote: Optional[str] = None
    subst_depth = 0
    has_pipe = False
    i = 0
    n = len(script)

    def end_word():
        nonlocal current, in_word, quoted
        if in_word:
            words.append((''.join(current), quoted))
        current = []
        in_word = False
        quoted = False

    def end_command():
        nonlocal words
        end_word()
        if words:
            commands.append(words)
        words = []

    while i < n:
        ch = script[i]

        if quote == "'":
            if ch == "'":
                quote = None
            else:
                current.append(ch)
            i += 1
            continue

        if quote == '"':
            if ch == '\\' and i + 1 < n and script[i + 1] in '"\\$`':
                current.append(script[i + 1])
                i += 2
            elif ch == '"':
                quote = None
                i += 1
            else:
                current.append(ch)
                i += 1
            continue

        if ch == '\\' and i + 1 < n:
            nxt = script[i + 1]
            if nxt != '\n':
                current.append(nxt)
                in_word = True
                quoted = True
            i += 2
            continue

        if subst_depth:
            # Inside $( ... ) everything stays in the current word
            if ch == '(':
                subst_depth += 1
            elif ch == ')':
                subst_depth -= 1
            current.append(ch)
            i += 1
            continue

        if ch in ('"', "'"):
            quote = ch
            in_word = True
            quoted = True
            i += 1
            continue

        if ch == '(' and not in_word:
            words.append(('(', False))
            i += 1
            continue

        if ch == ')':
            end_word()
            words.append((')', False))
            i += 1
            continue

        if ch == '$' and i + 1 < n and script[i + 1] == '(':
            current.append('$(')
            in_word = True
            subst_depth = 1
            i += 2
            continue

        if ch == '#' and not in_word:
            # Comment runs to end of line
            while i < n and script[i] != '\n':
                i += 1
            continue

        if ch in '&|':
            if i + 1 < n and script[i + 1] == ch:
                end_command()
                i += 2
                continue
            if ch == '|':
                has_pipe = True
                end_command()
                i += 1
                continue
            # Lone & backgrounds the command
            end_command()
            i += 1
            continue

        if ch in ';\n':
            end_command()
            i += 1
            continue

        if ch in ' \t\r':
            end_word()
            i += 1
            continue

        current.append(ch)
        in_word = True
        i += 1

    end_command()
    return commands, has_pipe


def _strip_subshell(words: List[Word]) -> List[str]:
    """Unwrap ``( cmd args )`` and ``{ cmd args; }`` groupings."""
    start, end = 0, len(words)
    while start < end and words[start] in (('(', False), ('{', False)):
        start += 1
    while end > start and words[end - 1] in ((')', False), ('}', False)):
        end -= 1
    return [text for text, _ in words[start:end]]


def _extract_flags(arguments: Sequence[str]) -> List[str]:
    flags = []
    for arg in arguments:
        if arg.startswith('--'):
            name = arg[2:].split('=', 1)[0]
            if name:
                flags.append(name)
        elif arg.startswith('-') and len(arg) > 1:
            flags.extend(arg[1:])
    return flags
