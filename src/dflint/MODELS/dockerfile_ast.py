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
Models for the Dockerfile Abstract Syntax Tree.

Every directive kind is its own immutable model carrying a literal ``kind``
discriminator, so a parsed document can be dumped and re-validated without
losing which variant each instruction was.
"""
from typing import Annotated, List, Literal, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field

from ..REGISTRY.image_reference import ImageReference

ARCHIVE_EXTENSIONS = (
    ".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tbz2", ".tar.xz", ".txz",
    ".tar.zst", ".tar.lz", ".tar.lzma", ".zip", ".gz", ".bz2", ".xz",
    ".lz", ".lzma", ".Z",
)
URL_SCHEMES = ("http://", "https://", "ftp://")


class Node(BaseModel):
    """
    Base class for all immutable AST nodes.
    """
    model_config = ConfigDict(frozen=True)


# Command arguments

class ExecForm(Node):
    """
    Bracketed argument list: ``RUN ["apt-get", "update"]``.
    """
    form: Literal["exec"] = "exec"
    items: List[str] = []

    @property
    def is_exec_form(self) -> bool:
        return True

    def to_script(self) -> str:
        return " ".join(self.items)


class ShellForm(Node):
    """
    Raw, unexpanded shell text: ``RUN apt-get update``.
    """
    form: Literal["shell"] = "shell"
    text: str

    @property
    def is_exec_form(self) -> bool:
        return False

    def to_script(self) -> str:
        return self.text


Arguments = Annotated[Union[ExecForm, ShellForm], Field(discriminator="form")]


# RUN --mount specifications

class BindMount(Node):
    type: Literal["bind"] = "bind"
    target: Optional[str] = None
    source: Optional[str] = None
    from_stage: Optional[str] = None
    read_only: bool = False


class CacheMount(Node):
    type: Literal["cache"] = "cache"
    target: Optional[str] = None
    id: Optional[str] = None
    sharing: Optional[str] = None
    from_stage: Optional[str] = None
    source: Optional[str] = None
    mode: Optional[str] = None
    uid: Optional[int] = None
    gid: Optional[int] = None
    read_only: bool = False


class TmpfsMount(Node):
    type: Literal["tmpfs"] = "tmpfs"
    target: Optional[str] = None
    size: Optional[str] = None


class SecretMount(Node):
    type: Literal["secret"] = "secret"
    id: Optional[str] = None
    target: Optional[str] = None
    required: bool = False
    mode: Optional[str] = None
    uid: Optional[int] = None
    gid: Optional[int] = None


class SshMount(Node):
    type: Literal["ssh"] = "ssh"
    id: Optional[str] = None
    target: Optional[str] = None
    required: bool = False
    mode: Optional[str] = None
    uid: Optional[int] = None
    gid: Optional[int] = None


Mount = Annotated[
    Union[BindMount, CacheMount, TmpfsMount, SecretMount, SshMount],
    Field(discriminator="type"),
]


class RunFlags(Node):
    """
    Flags accepted by RUN (``--mount``, ``--network``, ``--security``).
    """
    mounts: List[Mount] = []
    network: Optional[str] = None
    security: Optional[str] = None


class Port(Node):
    """
    A single EXPOSE entry, optionally a range (``8000-8010/udp``).
    """
    number: int
    end: Optional[int] = None
    protocol: str = "tcp"


# Instructions

class InstructionBase(Node):
    """
    Common behaviour of every instruction variant.
    """

    def unwrap_onbuild(self) -> Optional["Instruction"]:
        """Get the wrapped instruction if this is ONBUILD."""
        return None


class From(InstructionBase):
    """
    FROM: base-image declaration of a build stage.
    """
    kind: Literal["from"] = "from"
    image: ImageReference
    alias: Optional[str] = None
    platform: Optional[str] = None

    @property
    def tag(self) -> Optional[str]:
        return self.image.tag

    @property
    def digest(self) -> Optional[str]:
        return self.image.digest

    @property
    def is_scratch(self) -> bool:
        return self.image.is_scratch

    @property
    def is_variable(self) -> bool:
        return self.image.is_variable

    @property
    def has_version(self) -> bool:
        """Whether the image is pinned by tag or digest."""
        return self.tag is not None or self.digest is not None


class Run(InstructionBase):
    kind: Literal["run"] = "run"
    arguments: Arguments
    flags: RunFlags = Field(default_factory=RunFlags)


class Copy(InstructionBase):
    kind: Literal["copy"] = "copy"
    sources: List[str]
    dest: str
    from_stage: Optional[str] = None
    chown: Optional[str] = None
    chmod: Optional[str] = None
    link: bool = False


class Add(InstructionBase):
    kind: Literal["add"] = "add"
    sources: List[str]
    dest: str
    chown: Optional[str] = None
    chmod: Optional[str] = None
    checksum: Optional[str] = None
    link: bool = False

    @property
    def has_url(self) -> bool:
        """Check if any source is a URL."""
        return any(source.startswith(URL_SCHEMES) for source in self.sources)

    @property
    def has_archive(self) -> bool:
        """Check if any source appears to be an archive."""
        return any(source.endswith(ARCHIVE_EXTENSIONS) for source in self.sources)


class Env(InstructionBase):
    kind: Literal["env"] = "env"
    pairs: List[Tuple[str, str]]


class Label(InstructionBase):
    kind: Literal["label"] = "label"
    pairs: List[Tuple[str, str]]


class Expose(InstructionBase):
    kind: Literal["expose"] = "expose"
    ports: List[Port]


class Arg(InstructionBase):
    kind: Literal["arg"] = "arg"
    name: str
    default: Optional[str] = None


class Entrypoint(InstructionBase):
    kind: Literal["entrypoint"] = "entrypoint"
    arguments: Arguments


class Cmd(InstructionBase):
    kind: Literal["cmd"] = "cmd"
    arguments: Arguments


class Shell(InstructionBase):
    kind: Literal["shell"] = "shell"
    arguments: Arguments


class User(InstructionBase):
    kind: Literal["user"] = "user"
    user: str

    @property
    def name(self) -> str:
        return self.user.split(":", 1)[0]

    @property
    def group(self) -> Optional[str]:
        if ":" in self.user:
            return self.user.split(":", 1)[1]
        return None


class Workdir(InstructionBase):
    kind: Literal["workdir"] = "workdir"
    path: str


class Volume(InstructionBase):
    kind: Literal["volume"] = "volume"
    paths: List[str]


class Maintainer(InstructionBase):
    kind: Literal["maintainer"] = "maintainer"
    name: str


class Healthcheck(InstructionBase):
    """
    HEALTHCHECK: ``cmd`` is None for ``HEALTHCHECK NONE``.
    """
    kind: Literal["healthcheck"] = "healthcheck"
    cmd: Optional[Arguments] = None
    interval: Optional[str] = None
    timeout: Optional[str] = None
    start_period: Optional[str] = None
    start_interval: Optional[str] = None
    retries: Optional[int] = None

    @property
    def is_disabled(self) -> bool:
        return self.cmd is None


class OnBuild(InstructionBase):
    """
    ONBUILD: owns exactly one wrapped instruction.
    """
    kind: Literal["onbuild"] = "onbuild"
    instruction: "Instruction"

    def unwrap_onbuild(self) -> Optional["Instruction"]:
        return self.instruction


class StopSignal(InstructionBase):
    kind: Literal["stopsignal"] = "stopsignal"
    signal: str


class Comment(InstructionBase):
    kind: Literal["comment"] = "comment"
    text: str


Instruction = Annotated[
    Union[
        From, Run, Copy, Add, Env, Label, Expose, Arg, Entrypoint, Cmd,
        Shell, User, Workdir, Volume, Maintainer, Healthcheck, OnBuild,
        StopSignal, Comment,
    ],
    Field(discriminator="kind"),
]

OnBuild.model_rebuild()


class PositionedInstruction(Node):
    """
    A parsed instruction with its 1-indexed start line and verbatim source.
    """
    instruction: Instruction
    line: int
    source_text: str


class DockerfileAST(BaseModel):
    """
    Represents the complete Abstract Syntax Tree of a Dockerfile.
    """
    instructions: List[PositionedInstruction] = []
    parse_errors: List[str] = []
