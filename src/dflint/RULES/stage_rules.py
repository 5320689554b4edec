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
Rules that track build stages across instructions.
"""
import re
from dataclasses import dataclass
from typing import Optional

from ..MODELS.dockerfile_ast import Cmd, Comment, Copy, Entrypoint, From, Healthcheck, Run, User, Workdir
from ..MODELS.lint_result import Severity
from .framework import finalizing_rule, stateful_rule

ROOT_USERS = ("root", "0")
_WINDOWS_DRIVE_RE = re.compile(r"^[A-Za-z]:")
_NO_STAGE = "__none__"


@dataclass
class _LastUser:
    line: Optional[int] = None
    is_root: bool = False


def _report_root_user(scope):
    if scope.data.is_root and scope.data.line is not None:
        scope.fail(scope.data.line)


@finalizing_rule("DL3002", Severity.WARNING, "Last USER should not be root",
                 done=_report_root_user, state=_LastUser)
def last_user_not_root(scope, line, instruction, shell):
    if isinstance(instruction, From):
        scope.data.line = None
        scope.data.is_root = False
    elif isinstance(instruction, User):
        scope.data.line = line
        scope.data.is_root = instruction.name in ROOT_USERS


@stateful_rule("DL3012", Severity.ERROR, "Multiple `HEALTHCHECK` instructions.")
def single_healthcheck(scope, line, instruction, shell):
    if isinstance(instruction, From):
        scope.data.set_int("count", 0)
    elif isinstance(instruction, Healthcheck):
        if scope.data.increment("count") > 1:
            scope.fail(line)


@stateful_rule("DL3022", Severity.WARNING, "`COPY --from` should reference a previously defined `FROM` alias.")
def copy_from_known_stage(scope, line, instruction, shell):
    if isinstance(instruction, From):
        if instruction.alias:
            scope.data.add_to_set("aliases", instruction.alias.lower())
        scope.data.increment("stages")
    elif isinstance(instruction, Copy) and instruction.from_stage:
        source = instruction.from_stage
        known_alias = scope.data.set_contains("aliases", source.lower())
        earlier_index = source.isdecimal() and int(source) < scope.data.get_int("stages")
        # Anything that looks like an image reference is an external image
        external_image = "/" in source or ":" in source or source.startswith("$")
        if not (known_alias or earlier_index or external_image):
            scope.fail(line, f"`COPY --from={source}` references an undefined stage.")


@stateful_rule("DL3023", Severity.ERROR, "`COPY --from` cannot reference its own `FROM` alias.")
def copy_from_other_stage(scope, line, instruction, shell):
    if isinstance(instruction, From):
        stage = scope.data.get_int("stages")
        scope.data.set_int("current", stage)
        scope.data.set_int("stages", stage + 1)
        scope.data.set_string("alias", (instruction.alias or "").lower())
    elif isinstance(instruction, Copy) and instruction.from_stage:
        source = instruction.from_stage
        own_alias = bool(source) and source.lower() == scope.data.get_string("alias")
        own_index = source.isdecimal() and int(source) == scope.data.get_int("current", -1)
        if own_alias or own_index:
            scope.fail(line)


@stateful_rule("DL3024", Severity.ERROR, "`FROM` aliases (stage names) must be unique.")
def unique_stage_aliases(scope, line, instruction, shell):
    if not isinstance(instruction, From) or not instruction.alias:
        return
    alias = instruction.alias.lower()
    if scope.data.set_contains("aliases", alias):
        scope.fail(line, f"Duplicate `FROM` alias `{instruction.alias}`.")
    else:
        scope.data.add_to_set("aliases", alias)


@stateful_rule("DL3045", Severity.WARNING, "`COPY` to a relative destination without `WORKDIR` set.")
def copy_relative_needs_workdir(scope, line, instruction, shell):
    data = scope.data
    if isinstance(instruction, From):
        stage = (instruction.alias or instruction.image.full_name).lower()
        data.set_string("stage", stage)
        # A stage built on an earlier stage inherits its WORKDIR
        if data.set_contains("with_workdir", instruction.image.full_name.lower()):
            data.add_to_set("with_workdir", stage)
    elif isinstance(instruction, Workdir):
        data.add_to_set("with_workdir", data.get_string("stage") or _NO_STAGE)
    elif isinstance(instruction, Copy):
        if data.set_contains("with_workdir", data.get_string("stage") or _NO_STAGE):
            return
        dest = instruction.dest.strip("\"'")
        if dest.startswith(("/", "$")) or _WINDOWS_DRIVE_RE.match(dest):
            return
        scope.fail(line)


@dataclass
class _HealthcheckSeen:
    first_line: Optional[int] = None
    has_healthcheck: bool = False
    has_instructions: bool = False


def _report_missing_healthcheck(scope):
    data = scope.data
    if data.has_instructions and not data.has_healthcheck:
        scope.fail(data.first_line or 1)


@finalizing_rule("DL3057", Severity.INFO, "HEALTHCHECK instruction missing.",
                 done=_report_missing_healthcheck, state=_HealthcheckSeen)
def healthcheck_present(scope, line, instruction, shell):
    if isinstance(instruction, Comment):
        return
    data = scope.data
    if data.first_line is None:
        data.first_line = line
    if isinstance(instruction, Healthcheck):
        data.has_healthcheck = True
    if not isinstance(instruction, From):
        data.has_instructions = True


@stateful_rule("DL3059", Severity.INFO, "Multiple consecutive `RUN` instructions. Consider consolidation.")
def consolidate_runs(scope, line, instruction, shell):
    if isinstance(instruction, Comment):
        return
    if isinstance(instruction, Run):
        if scope.data.increment("consecutive") > 1:
            scope.fail(line)
    else:
        scope.data.set_int("consecutive", 0)


@stateful_rule(
    "DL4003", Severity.WARNING,
    "Multiple `CMD` instructions found. If you list more than one `CMD` then only the last `CMD` will take effect",
)
def single_cmd(scope, line, instruction, shell):
    if isinstance(instruction, From):
        scope.data.set_int("count", 0)
    elif isinstance(instruction, Cmd):
        if scope.data.increment("count") > 1:
            scope.fail(line)


@stateful_rule(
    "DL4004", Severity.ERROR,
    "Multiple `ENTRYPOINT` instructions found. If you list more than one `ENTRYPOINT` "
    "then only the last `ENTRYPOINT` will take effect",
)
def single_entrypoint(scope, line, instruction, shell):
    if isinstance(instruction, From):
        scope.data.set_int("count", 0)
    elif isinstance(instruction, Entrypoint):
        if scope.data.increment("count") > 1:
            scope.fail(line)


RULES = [
    last_user_not_root,
    single_healthcheck,
    copy_from_known_stage,
    copy_from_other_stage,
    unique_stage_aliases,
    copy_relative_needs_workdir,
    healthcheck_present,
    consolidate_runs,
    single_cmd,
    single_entrypoint,
]
