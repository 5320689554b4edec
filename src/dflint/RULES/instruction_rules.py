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
Rules that judge the shape of a single instruction.
"""
import re

from ..MODELS.dockerfile_ast import (
    URL_SCHEMES, Add, Cmd, Copy, Entrypoint, Expose, From,
    Maintainer, Workdir,
)
from ..MODELS.lint_result import Severity
from .framework import simple_rule, stateful_rule

MAX_PORT = 65535
_IMAGE_NAME_RE = re.compile(r"^[a-z0-9._/:-]+$")
_WINDOWS_DRIVE_RE = re.compile(r"^[A-Za-z]:[\\/]")
_TAR_EXTENSIONS = (
    ".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tbz2", ".tar.xz", ".txz",
    ".tar.zst", ".tar.lz", ".tar.lzma",
)


def _strip_quotes(text: str) -> str:
    return text.strip('"\'')


@simple_rule("DL3000", Severity.ERROR, "Use absolute WORKDIR")
def absolute_workdir(instruction, shell):
    if not isinstance(instruction, Workdir):
        return True
    path = _strip_quotes(instruction.path)
    return path.startswith(("/", "$")) or bool(_WINDOWS_DRIVE_RE.match(path))


@stateful_rule("DL3006", Severity.WARNING, "Always tag the version of an image explicitly")
def tagged_base_image(scope, line, instruction, shell):
    if not isinstance(instruction, From):
        return
    aliases = scope.data.get_set("aliases")
    image = instruction.image

    # Previous stages are referenced by alias and need no tag
    if not (instruction.is_scratch or instruction.has_version or instruction.is_variable
            or image.full_name.lower() in aliases):
        scope.fail(line)

    if instruction.alias:
        aliases.add(instruction.alias.lower())


@simple_rule(
    "DL3007", Severity.WARNING,
    "Using latest is prone to errors if the image will ever update. "
    "Pin the version explicitly to a release tag",
)
def no_latest_tag(instruction, shell):
    if not isinstance(instruction, From):
        return True
    return instruction.tag != "latest" or instruction.digest is not None


@simple_rule("DL3010", Severity.INFO, "Use ADD for extracting archives into an image.")
def add_for_local_archives(instruction, shell):
    if not isinstance(instruction, Copy) or instruction.from_stage:
        return True
    for source in instruction.sources:
        if source.startswith(URL_SCHEMES) or source.startswith("$"):
            continue
        if source.lower().endswith(_TAR_EXTENSIONS):
            return False
    return True


@simple_rule("DL3011", Severity.ERROR, "Valid UNIX ports range from 0 to 65535")
def valid_port_range(instruction, shell):
    if not isinstance(instruction, Expose):
        return True
    return all(
        port.number <= MAX_PORT and (port.end is None or port.end <= MAX_PORT)
        for port in instruction.ports
    )


@simple_rule("DL3020", Severity.ERROR, "Use COPY instead of ADD for files and folders", fixable=True)
def copy_instead_of_add(instruction, shell):
    if not isinstance(instruction, Add):
        return True
    return instruction.has_url or instruction.has_archive


@simple_rule(
    "DL3021", Severity.ERROR,
    "COPY with more than 2 arguments requires the last argument to end with /",
)
def copy_multiple_sources_dest(instruction, shell):
    if not isinstance(instruction, Copy) or len(instruction.sources) < 2:
        return True
    return _strip_quotes(instruction.dest).endswith("/")


@simple_rule(
    "DL3025", Severity.WARNING,
    "Use arguments JSON notation for CMD and ENTRYPOINT arguments",
    fixable=True,
)
def json_cmd_entrypoint(instruction, shell):
    if not isinstance(instruction, (Cmd, Entrypoint)):
        return True
    return instruction.arguments.is_exec_form


@simple_rule(
    "DL3029", Severity.WARNING,
    "Do not use --platform flag with FROM unless you're building cross-platform images.",
)
def no_fixed_platform(instruction, shell):
    if not isinstance(instruction, From) or instruction.platform is None:
        return True
    return instruction.platform.startswith("$")


@simple_rule("DL3061", Severity.ERROR, "Invalid image name in `FROM`.")
def valid_image_name(instruction, shell):
    if not isinstance(instruction, From):
        return True
    if instruction.is_scratch or instruction.is_variable:
        return True
    return bool(_IMAGE_NAME_RE.match(instruction.image.full_name))


@simple_rule("DL4000", Severity.ERROR, "MAINTAINER is deprecated", fixable=True)
def no_maintainer(instruction, shell):
    return not isinstance(instruction, Maintainer)


RULES = [
    absolute_workdir,
    tagged_base_image,
    no_latest_tag,
    add_for_local_archives,
    valid_port_range,
    copy_instead_of_add,
    copy_multiple_sources_dest,
    json_cmd_entrypoint,
    no_fixed_platform,
    valid_image_name,
    no_maintainer,
]
