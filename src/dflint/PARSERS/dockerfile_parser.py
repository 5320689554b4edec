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
Parser for Dockerfiles, producing positioned instructions.
"""
import logging
import re
from typing import Dict, Iterator, List, Optional, Tuple, Union

from ..MODELS.dockerfile_ast import (
    Add, Arg, BindMount, CacheMount, Cmd, Comment, Copy, DockerfileAST,
    Entrypoint, Env, ExecForm, Expose, From, Healthcheck, Instruction,
    Label, Maintainer, OnBuild, Port, PositionedInstruction, Run, RunFlags,
    SecretMount, Shell, ShellForm, SshMount, StopSignal, TmpfsMount, User,
    Volume, Workdir,
)
from ..REGISTRY.image_reference import ImageReference

logger = logging.getLogger(__name__)

_INSTRUCTION_RE = re.compile(r"^([A-Za-z]+)\s+(.*)$", re.DOTALL)
_EXEC_ESCAPES = {'"': '"', "\\": "\\", "n": "\n", "t": "\t", "r": "\r"}

# Instructions ONBUILD may not wrap.
_ONBUILD_FORBIDDEN = (OnBuild, From, Maintainer)

Flags = Dict[str, Union[str, List[str]]]


class DockerfileSyntaxError(ValueError):
    """
    Raised by a grammar when a line is recognisably malformed.
    """


class DockerfileParser:
    """
    Parser for Dockerfile instructions.

    Unknown, non-comment lines are dropped silently; lines a grammar
    explicitly rejects are reported in ``DockerfileAST.parse_errors``.
    """

    def __init__(self):
        # Grammars in priority order, keyed by upper-case keyword.
        self._grammars = {
            "FROM": self._parse_from,
            "RUN": self._parse_run,
            "COPY": self._parse_copy,
            "ADD": self._parse_add,
            "ENV": self._parse_env,
            "LABEL": self._parse_label,
            "EXPOSE": self._parse_expose,
            "ARG": self._parse_arg,
            "ENTRYPOINT": self._parse_entrypoint,
            "CMD": self._parse_cmd,
            "SHELL": self._parse_shell,
            "USER": self._parse_user,
            "WORKDIR": self._parse_workdir,
            "VOLUME": self._parse_volume,
            "MAINTAINER": self._parse_maintainer,
            "HEALTHCHECK": self._parse_healthcheck,
            "ONBUILD": self._parse_onbuild,
            "STOPSIGNAL": self._parse_stopsignal,
        }

    def parse(self, dockerfile_path: str) -> DockerfileAST:
        """
        Parses a Dockerfile from a file path.

        Args:
            dockerfile_path (str): Path to the Dockerfile.

        Returns:
            DockerfileAST: Parsed instructions and parse errors.
        """
        with open(dockerfile_path, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> DockerfileAST:
        """
        Parses a Dockerfile from a string content.

        Args:
            content (str): Content of the Dockerfile.

        Returns:
            DockerfileAST: Parsed instructions and parse errors.
        """
        ast = DockerfileAST()

        for line_number, logical, source_text in self._logical_lines(content):
            try:
                instruction = self._parse_instruction(logical)
            except DockerfileSyntaxError as e:
                ast.parse_errors.append(f"line {line_number}: {e}")
                continue

            if instruction is None:
                if logical.startswith('#'):
                    instruction = Comment(text=logical[1:].strip())
                else:
                    logger.debug("Dropping unrecognised line %d: %r", line_number, logical)
                    continue

            ast.instructions.append(PositionedInstruction(
                instruction=instruction,
                line=line_number,
                source_text=source_text,
            ))

        return ast

    @staticmethod
    def _logical_lines(content: str) -> Iterator[Tuple[int, str, str]]:
        """
        Join continuation lines.

        Yields (start line, joined text, verbatim source) for every
        non-blank logical line. Comment lines inside a continuation are
        skipped, and a comment never starts a continuation.
        """
        lines = content.splitlines()
        i = 0
        while i < len(lines):
            start = i + 1
            source = [lines[i]]
            text = lines[i].strip()
            i += 1

            if not text.startswith('#'):
                while _continues(text) and i < len(lines):
                    text = text[:-1].rstrip() + ' '
                    following = lines[i]
                    source.append(following)
                    i += 1
                    stripped = following.strip()
                    if stripped.startswith('#'):
                        # Comments within a continuation are removed
                        text = text + '\\'
                        continue
                    text += stripped
                if _continues(text):
                    text = text[:-1]
                text = text.strip()

            if not text:
                continue
            yield start, text, '\n'.join(source).rstrip()

    def _parse_instruction(self, line: str) -> Optional[Instruction]:
        match = _INSTRUCTION_RE.match(line)
        if not match:
            return None
        keyword = match.group(1).upper()
        payload = match.group(2).strip()
        grammar = self._grammars.get(keyword)
        if grammar is None or not payload:
            return None
        return grammar(payload)

    # Individual grammars

    def _parse_from(self, payload: str) -> Instruction:
        flags, rest = _consume_flags(payload)
        words = rest.split()
        if not words:
            raise DockerfileSyntaxError("FROM requires an image reference")

        alias = None
        if len(words) >= 3 and words[1].lower() == 'as':
            alias = words[2]

        return From(
            image=ImageReference.parse(words[0]),
            alias=alias,
            platform=_single(flags.get('platform')),
        )

    def _parse_run(self, payload: str) -> Instruction:
        flags, rest = _consume_flags(payload, repeatable=('mount',))
        mounts = [_parse_mount(value) for value in flags.get('mount', [])]
        return Run(
            arguments=_parse_arguments(rest),
            flags=RunFlags(
                mounts=mounts,
                network=_single(flags.get('network')),
                security=_single(flags.get('security')),
            ),
        )

    def _parse_copy(self, payload: str) -> Instruction:
        flags, rest = _consume_flags(payload, boolean=('link', 'parents'))
        sources, dest = _parse_paths('COPY', rest)
        return Copy(
            sources=sources,
            dest=dest,
            from_stage=_single(flags.get('from')),
            chown=_single(flags.get('chown')),
            chmod=_single(flags.get('chmod')),
            link=_truthy(flags.get('link')),
        )

    def _parse_add(self, payload: str) -> Instruction:
        flags, rest = _consume_flags(payload, boolean=('link', 'keep-git-dir'))
        sources, dest = _parse_paths('ADD', rest)
        return Add(
            sources=sources,
            dest=dest,
            chown=_single(flags.get('chown')),
            chmod=_single(flags.get('chmod')),
            checksum=_single(flags.get('checksum')),
            link=_truthy(flags.get('link')),
        )

    def _parse_env(self, payload: str) -> Instruction:
        return Env(pairs=_parse_key_values('ENV', payload))

    def _parse_label(self, payload: str) -> Instruction:
        return Label(pairs=_parse_key_values('LABEL', payload))

    def _parse_expose(self, payload: str) -> Instruction:
        ports = []
        for entry in payload.split():
            port = _parse_port(entry)
            if port is None:
                logger.debug("Skipping non-numeric EXPOSE entry %r", entry)
                continue
            ports.append(port)
        return Expose(ports=ports)

    def _parse_arg(self, payload: str) -> Instruction:
        if '=' in payload:
            name, default = payload.split('=', 1)
            return Arg(name=name.strip(), default=_unquote(default.strip()))
        return Arg(name=payload.strip())

    def _parse_entrypoint(self, payload: str) -> Instruction:
        return Entrypoint(arguments=_parse_arguments(payload))

    def _parse_cmd(self, payload: str) -> Instruction:
        return Cmd(arguments=_parse_arguments(payload))

    def _parse_shell(self, payload: str) -> Instruction:
        return Shell(arguments=_parse_arguments(payload))

    def _parse_user(self, payload: str) -> Instruction:
        return User(user=payload)

    def _parse_workdir(self, payload: str) -> Instruction:
        return Workdir(path=payload)

    def _parse_volume(self, payload: str) -> Instruction:
        items = _parse_exec_form(payload)
        if items is None:
            items = payload.split()
        return Volume(paths=items)

    def _parse_maintainer(self, payload: str) -> Instruction:
        return Maintainer(name=payload)

    def _parse_healthcheck(self, payload: str) -> Instruction:
        if payload.upper() == 'NONE':
            return Healthcheck()

        flags, rest = _consume_flags(payload)
        keyword, _, command = rest.partition(' ')
        if keyword.upper() != 'CMD' or not command.strip():
            raise DockerfileSyntaxError("HEALTHCHECK requires NONE or CMD <command>")

        retries = _single(flags.get('retries'))
        return Healthcheck(
            cmd=_parse_arguments(command),
            interval=_single(flags.get('interval')),
            timeout=_single(flags.get('timeout')),
            start_period=_single(flags.get('start-period')),
            start_interval=_single(flags.get('start-interval')),
            retries=int(retries) if retries and retries.isdecimal() else None,
        )

    def _parse_onbuild(self, payload: str) -> Instruction:
        inner = self._parse_instruction(payload)
        if inner is None:
            raise DockerfileSyntaxError(f"ONBUILD payload is not an instruction: {payload!r}")
        if isinstance(inner, _ONBUILD_FORBIDDEN):
            keyword = payload.split(None, 1)[0].upper()
            raise DockerfileSyntaxError(f"ONBUILD cannot wrap {keyword}")
        return OnBuild(instruction=inner)

    def _parse_stopsignal(self, payload: str) -> Instruction:
        return StopSignal(signal=payload)


def _continues(text: str) -> bool:
    """Whether a line ends in an unescaped continuation backslash."""
    trailing = len(text) - len(text.rstrip('\\'))
    return trailing % 2 == 1


def _consume_flags(
    payload: str,
    boolean: Tuple[str, ...] = (),
    repeatable: Tuple[str, ...] = (),
) -> Tuple[Flags, str]:
    """
    Consume a leading block of ``--name=value`` / ``--name value`` flags.

    :param payload: Instruction text after the keyword.
    :param boolean: Flags that take no separate value.
    :param repeatable: Flags collected into a list instead of last-one-wins.
    :return: The flags and the remaining payload.
    """
    flags: Flags = {}
    rest = payload.lstrip()

    while rest.startswith('--'):
        token, _, rest = _split_word(rest)
        name, has_value, value = token[2:].partition('=')
        if not name:
            break
        if not has_value:
            if name in boolean:
                value = 'true'
            else:
                value, _, rest = _split_word(rest)
        value = _unquote(value)

        if name in repeatable:
            flags.setdefault(name, []).append(value)
        else:
            flags[name] = value
        rest = rest.lstrip()

    return flags, rest


def _split_word(text: str) -> Tuple[str, str, str]:
    parts = text.split(None, 1)
    if not parts:
        return '', '', ''
    if len(parts) == 1:
        return parts[0], '', ''
    return parts[0], ' ', parts[1]


def _single(value: Union[str, List[str], None]) -> Optional[str]:
    if isinstance(value, list):
        return value[-1] if value else None
    return value or None


def _truthy(value: Union[str, List[str], None]) -> bool:
    value = _single(value)
    return value is not None and value.lower() in ('true', '1', 'yes')


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def _parse_mount(text: str) -> Union[BindMount, CacheMount, TmpfsMount, SecretMount, SshMount]:
    """
    Parse a ``--mount`` value such as ``type=cache,target=/root/.cache``.
    """
    opts: Dict[str, str] = {}
    for part in text.split(","):
        if not part:
            continue
        key, _, value = part.partition('=')
        opts[key.strip().lower()] = value.strip()

    def _int(key: str) -> Optional[int]:
        value = opts.get(key, '')
        return int(value) if value.isdecimal() else None

    read_only = 'ro' in opts or 'readonly' in opts
    required = opts.get('required', 'false').lower() in ('', 'true')
    from_stage = opts.get('from')
    mount_type = opts.get('type', 'bind')
    target = opts.get('target') or opts.get('dst') or opts.get('destination')
    source = opts.get('source') or opts.get('src')

    if mount_type == 'cache':
        return CacheMount(
            target=target, id=opts.get('id'), sharing=opts.get('sharing'),
            from_stage=from_stage, source=source, mode=opts.get('mode'),
            uid=_int('uid'), gid=_int('gid'), read_only=read_only,
        )
    if mount_type == 'tmpfs':
        return TmpfsMount(target=target, size=opts.get('size'))
    if mount_type == 'secret':
        return SecretMount(
            id=opts.get('id'), target=target, required=required,
            mode=opts.get('mode'), uid=_int('uid'), gid=_int('gid'),
        )
    if mount_type == 'ssh':
        return SshMount(
            id=opts.get('id'), target=target, required=required,
            mode=opts.get('mode'), uid=_int('uid'), gid=_int('gid'),
        )
    return BindMount(target=target, source=source, from_stage=from_stage, read_only=read_only)


def _parse_arguments(text: str) -> Union[ExecForm, ShellForm]:
    """Exec form if the text is a JSON-style string list, shell form otherwise."""
    text = text.strip()
    items = _parse_exec_form(text)
    if items is not None:
        return ExecForm(items=items)
    return ShellForm(text=text)


def _parse_exec_form(text: str) -> Optional[List[str]]:
    """
    Parse ``["a", "b"]``; returns None when the text is not in that form.
    """
    text = text.strip()
    if not text.startswith('['):
        return None

    items: List[str] = []
    i = _skip_spaces(text, 1)
    if i < len(text) and text[i] == ']':
        return items if not text[i + 1:].strip() else None

    while i < len(text):
        if text[i] != '"':
            return None
        item, i = _read_exec_string(text, i + 1)
        if item is None:
            return None
        items.append(item)

        i = _skip_spaces(text, i)
        if i >= len(text):
            return None
        if text[i] == ']':
            return items if not text[i + 1:].strip() else None
        if text[i] != ',':
            return None
        i = _skip_spaces(text, i + 1)

    return None


def _read_exec_string(text: str, i: int) -> Tuple[Optional[str], int]:
    chars = []
    while i < len(text):
        ch = text[i]
        if ch == '"':
            return ''.join(chars), i + 1
        if ch == '\\' and i + 1 < len(text):
            nxt = text[i + 1]
            chars.append(_EXEC_ESCAPES.get(nxt, '\\' + nxt))
            i += 2
            continue
        chars.append(ch)
        i += 1
    return None, i


def _skip_spaces(text: str, i: int) -> int:
    while i < len(text) and text[i] in ' \t':
        i += 1
    return i


def _parse_paths(keyword: str, text: str) -> Tuple[List[str], str]:
    """Split COPY/ADD arguments into sources and destination."""
    items = _parse_exec_form(text)
    if items is None:
        items = text.split()
    if len(items) < 2:
        raise DockerfileSyntaxError(f"{keyword} requires at least one source and a destination")
    return items[:-1], items[-1]


def _parse_key_values(keyword: str, text: str) -> List[Tuple[str, str]]:
    """
    Parse ``KEY=VALUE`` pairs (several per line) or a single legacy
    ``KEY VALUE`` pair.
    """
    pairs = []
    rest = text.strip()

    while rest:
        if rest[:1] in ('"', "'"):
            key, rest = _read_quoted(keyword, rest)
        else:
            match = re.match(r"[^=\s]+", rest)
            if not match:
                raise DockerfileSyntaxError(f"{keyword} is missing a key before '='")
            key = match.group(0)
            rest = rest[match.end():]

        if not rest.startswith('='):
            # Legacy format: KEY VALUE (rest of the line)
            value = rest.strip()
            if value[:1] in ('"', "'"):
                value, _ = _read_quoted(keyword, value)
            pairs.append((key, value))
            break

        rest = rest[1:]
        if rest[:1] in ('"', "'"):
            value, rest = _read_quoted(keyword, rest)
        else:
            value, rest = _read_bare(rest)
        pairs.append((key, value))
        rest = rest.lstrip()

    return pairs


def _read_quoted(keyword: str, text: str) -> Tuple[str, str]:
    """Read a quoted value; returns (unescaped value, remaining text)."""
    quote = text[0]
    escaped = False
    for i in range(1, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
        elif ch == '\\':
            escaped = True
        elif ch == quote:
            value = text[1:i].replace(f'\\{quote}', quote)
            return value, text[i + 1:]
    raise DockerfileSyntaxError(f"unterminated quoted value in {keyword}")


def _read_bare(text: str) -> Tuple[str, str]:
    """Read an unquoted value up to unescaped whitespace; ``\\ `` keeps a space."""
    value = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == '\\' and i + 1 < len(text):
            value.append(text[i + 1])
            i += 2
            continue
        if ch.isspace():
            break
        value.append(ch)
        i += 1
    return ''.join(value), text[i:]


def _parse_port(entry: str) -> Optional[Port]:
    number, _, protocol = entry.partition('/')
    start, _, end = number.partition('-')
    if not start.isdecimal() or (end and not end.isdecimal()):
        return None
    return Port(
        number=int(start),
        end=int(end) if end else None,
        protocol=(protocol or 'tcp').lower(),
    )
