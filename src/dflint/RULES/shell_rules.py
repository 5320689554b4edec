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
Rules that inspect the commands of RUN instructions.
"""
from dataclasses import dataclass, field
from typing import List

from ..MODELS.dockerfile_ast import ExecForm, From, Run, Shell
from ..MODELS.lint_result import Severity
from .framework import finalizing_rule, simple_rule, stateful_rule

NON_POSIX_SHELLS = ("pwsh", "powershell", "cmd")


def _is_run_with(instruction, shell) -> bool:
    return isinstance(instruction, Run) and shell is not None


@simple_rule("DL3003", Severity.WARNING, "Use WORKDIR to switch to a directory", needs_shell=True)
def no_cd(instruction, shell):
    if not _is_run_with(instruction, shell):
        return True
    return not shell.using_program("cd")


@simple_rule(
    "DL3004", Severity.ERROR,
    "Do not use sudo as it leads to unpredictable behavior. Use a tool like gosu to enforce root",
    needs_shell=True,
)
def no_sudo(instruction, shell):
    if not _is_run_with(instruction, shell):
        return True
    return not shell.using_program("sudo")


@simple_rule(
    "DL3027", Severity.WARNING,
    "Do not use apt as it is meant to be an end-user tool, use apt-get or apt-cache instead",
    needs_shell=True, fixable=True,
)
def no_apt(instruction, shell):
    if not _is_run_with(instruction, shell):
        return True
    return not shell.using_program("apt")


@stateful_rule(
    "DL3047", Severity.INFO,
    "Avoid using both `wget` and `curl` since they serve the same purpose.",
    needs_shell=True,
)
def one_downloader_per_stage(scope, line, instruction, shell):
    data = scope.data
    if isinstance(instruction, From):
        data.bools.clear()
        return
    if not _is_run_with(instruction, shell):
        return
    if shell.using_program("wget"):
        data.set_bool("wget", True)
    if shell.using_program("curl"):
        data.set_bool("curl", True)
    if data.get_bool("wget") and data.get_bool("curl") and not data.get_bool("reported"):
        scope.fail(line)
        data.set_bool("reported", True)


@dataclass
class _DownloaderLines:
    wget: List[int] = field(default_factory=list)
    curl: List[int] = field(default_factory=list)


def _report_mixed_downloaders(scope):
    if scope.data.wget and scope.data.curl:
        for line in sorted(scope.data.wget + scope.data.curl):
            scope.fail(line)


@finalizing_rule("DL4001", Severity.WARNING, "Either use `wget` or `curl`, but not both.",
                 done=_report_mixed_downloaders, state=_DownloaderLines, needs_shell=True)
def one_downloader(scope, line, instruction, shell):
    if not _is_run_with(instruction, shell):
        return
    if shell.using_program("wget"):
        scope.data.wget.append(line)
    if shell.using_program("curl"):
        scope.data.curl.append(line)


@simple_rule("DL4005", Severity.WARNING, "Use `SHELL` to change the default shell.", needs_shell=True)
def no_symlinked_shell(instruction, shell):
    if not _is_run_with(instruction, shell):
        return True
    return shell.no_commands(lambda cmd: cmd.name == "ln" and "/bin/sh" in cmd.arguments)


def _shell_sets_pipefail(instruction: Shell) -> bool:
    if isinstance(instruction.arguments, ExecForm):
        items = instruction.arguments.items
    else:
        items = instruction.arguments.text.split()
    if not items:
        return False
    program = items[0].replace("\\", "/").rsplit("/", 1)[-1].lower()
    if program.endswith(".exe"):
        program = program[:-4]
    if program in NON_POSIX_SHELLS:
        return True
    return any(items[i] == "-o" and items[i + 1] == "pipefail" for i in range(len(items) - 1))


def _script_sets_pipefail(shell) -> bool:
    return shell.any_command(
        lambda cmd: cmd.name == "set" and ("pipefail" in cmd.arguments) and cmd.has_flag("o")
    )


@stateful_rule(
    "DL4006", Severity.WARNING,
    "Set the SHELL option -o pipefail before RUN with a pipe in it. If you are using /bin/sh "
    "in an alpine image or if your shell is symlinked to busybox then consider explicitly "
    "setting your SHELL to /bin/ash, or disable this check",
    needs_shell=True,
)
def pipefail_before_pipe(scope, line, instruction, shell):
    if isinstance(instruction, From):
        scope.data.set_bool("pipefail", False)
    elif isinstance(instruction, Shell):
        scope.data.set_bool("pipefail", _shell_sets_pipefail(instruction))
    elif _is_run_with(instruction, shell) and shell.has_pipe:
        if not (scope.data.get_bool("pipefail") or _script_sets_pipefail(shell)):
            scope.fail(line)


RULES = [
    no_cd,
    no_sudo,
    no_apt,
    one_downloader_per_stage,
    one_downloader,
    no_symlinked_shell,
    pipefail_before_pipe,
]
