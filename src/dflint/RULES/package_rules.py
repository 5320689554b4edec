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
Rules for package manager usage inside RUN instructions: apt-get, apk,
pip, npm and yarn.
"""
from dataclasses import dataclass, field
from typing import List

from ..MODELS.dockerfile_ast import CacheMount, Env, From, Run
from ..MODELS.lint_result import Severity
from .framework import finalizing_rule, simple_rule, stateful_rule

PIP_VERSION_OPERATORS = ("==", ">=", "<=", "!=", "~=", "<", ">")
APK_VALUE_FLAGS = ("--virtual", "-t", "--repository", "-X")


def _is_run_with(instruction, shell) -> bool:
    return isinstance(instruction, Run) and shell is not None


def _has_cache_mount(instruction, target_prefix: str) -> bool:
    return any(
        isinstance(mount, CacheMount) and (mount.target or "").startswith(target_prefix)
        for mount in instruction.flags.mounts
    )


def _words_after(cmd, subcommand: str, value_flags=()) -> List[str]:
    """Non-flag words following ``subcommand``, skipping values of ``value_flags``."""
    words = []
    found = False
    skip_next = False
    for arg in cmd.arguments:
        if skip_next:
            skip_next = False
            continue
        if not found:
            found = arg == subcommand
            continue
        if arg in value_flags:
            skip_next = True
            continue
        if not arg.startswith("-"):
            words.append(arg)
    return words


# apt-get

@simple_rule("DL3005", Severity.WARNING, "Do not use `apt-get upgrade` or `dist-upgrade`.", needs_shell=True)
def no_apt_upgrade(instruction, shell):
    if not _is_run_with(instruction, shell):
        return True
    return shell.no_commands(lambda cmd: cmd.name == "apt-get" and cmd.has_any_arg("upgrade", "dist-upgrade"))


def _apt_pinned(package: str) -> bool:
    return "=" in package or "/" in package or package.endswith(".deb")


@simple_rule(
    "DL3008", Severity.WARNING,
    "Pin versions in apt get install. Instead of `apt-get install <package>` use "
    "`apt-get install <package>=<version>`",
    needs_shell=True,
)
def pin_apt_versions(instruction, shell):
    if not _is_run_with(instruction, shell):
        return True
    for cmd in shell.commands:
        if cmd.is_apt_get_install():
            packages = _words_after(cmd, "install", value_flags=("-o", "-t", "--target-release"))
            if not all(_apt_pinned(pkg) for pkg in packages):
                return False
    return True


@simple_rule("DL3009", Severity.INFO, "Delete the apt-get lists after installing something.", needs_shell=True)
def clean_apt_lists(instruction, shell):
    if not _is_run_with(instruction, shell) or not shell.any_command(lambda cmd: cmd.is_apt_get_install()):
        return True
    if _has_cache_mount(instruction, "/var/lib/apt"):
        return True
    return shell.any_command(
        lambda cmd: (cmd.name == "rm" and any("/var/lib/apt/lists" in arg for arg in cmd.arguments))
        or (cmd.name == "apt-get" and cmd.has_any_arg("clean", "autoclean"))
    )


@simple_rule(
    "DL3014", Severity.WARNING,
    "Use the `-y` switch to avoid manual input `apt-get -y install <package>`.",
    needs_shell=True, fixable=True,
)
def apt_assume_yes(instruction, shell):
    if not _is_run_with(instruction, shell):
        return True
    return shell.no_commands(
        lambda cmd: cmd.is_apt_get_install()
        and not (cmd.has_any_flag("y", "yes", "assume-yes") or cmd.flag_count("q") >= 2)
    )


@simple_rule(
    "DL3015", Severity.INFO,
    "Avoid additional packages by specifying `--no-install-recommends`.",
    needs_shell=True, fixable=True,
)
def apt_no_recommends(instruction, shell):
    if not _is_run_with(instruction, shell):
        return True
    return shell.no_commands(
        lambda cmd: cmd.is_apt_get_install()
        and not cmd.has_flag("no-install-recommends")
        and "APT::Install-Recommends=false" not in cmd.arguments
    )


# pip

def _pip_pinned(package: str) -> bool:
    if "://" in package or package.startswith(("/", ".", "$")) or package.endswith((".whl", ".tar.gz")):
        return True
    return any(op in package for op in PIP_VERSION_OPERATORS) or "@" in package


@simple_rule(
    "DL3013", Severity.WARNING,
    "Pin versions in pip. Instead of `pip install <package>` use `pip install <package>==<version>` "
    "or `pip install --requirement <requirements file>`",
    needs_shell=True,
)
def pin_pip_versions(instruction, shell):
    if not _is_run_with(instruction, shell):
        return True
    for cmd in shell.commands:
        if not cmd.is_pip_install():
            continue
        if cmd.has_any_flag("r", "requirement", "c", "constraint", "e", "editable"):
            continue
        packages = _words_after(cmd, "install", value_flags=("-i", "--index-url", "--extra-index-url",
                                                             "-t", "--target", "--prefix", "--root"))
        if not all(_pip_pinned(pkg) for pkg in packages):
            return False
    return True


@dataclass
class _PipCache:
    disabled_by_env: bool = False


@stateful_rule(
    "DL3042", Severity.WARNING,
    "Avoid use of cache directory with pip. Use `pip install --no-cache-dir <package>`.",
    state=_PipCache, needs_shell=True, fixable=True,
)
def pip_no_cache_dir(scope, line, instruction, shell):
    if isinstance(instruction, From):
        scope.data.disabled_by_env = False
    elif isinstance(instruction, Env):
        if any(key == "PIP_NO_CACHE_DIR" for key, _ in instruction.pairs):
            scope.data.disabled_by_env = True
    elif _is_run_with(instruction, shell):
        if scope.data.disabled_by_env or _has_cache_mount(instruction, "/root/.cache/pip"):
            return
        if shell.any_command(lambda cmd: cmd.is_pip_install() and not cmd.has_flag("no-cache-dir")):
            scope.fail(line)


# npm

def _npm_pinned(package: str) -> bool:
    if package.startswith((".", "/", "file:", "git", "$")) or "github.com" in package or "gitlab.com" in package:
        return True
    if package.startswith("@"):
        return package.count("@") >= 2 and not package.endswith("@")
    _, _, version = package.partition("@")
    return bool(version)


@simple_rule(
    "DL3016", Severity.WARNING,
    "Pin versions in npm. Instead of `npm install <package>` use `npm install <package>@<version>`.",
    needs_shell=True,
)
def pin_npm_versions(instruction, shell):
    if not _is_run_with(instruction, shell):
        return True
    for cmd in shell.find_commands("npm"):
        for subcommand in ("install", "i"):
            if subcommand in cmd.arguments:
                if not all(_npm_pinned(pkg) for pkg in _words_after(cmd, subcommand)):
                    return False
                break
    return True


# apk

def _apk_pinned(package: str) -> bool:
    return package.startswith((".", "$")) or "=" in package or "~" in package


@simple_rule(
    "DL3018", Severity.WARNING,
    "Pin versions in apk add. Instead of `apk add <package>` use `apk add <package>=<version>`.",
    needs_shell=True,
)
def pin_apk_versions(instruction, shell):
    if not _is_run_with(instruction, shell):
        return True
    for cmd in shell.commands:
        if cmd.is_apk_add():
            if not all(_apk_pinned(pkg) for pkg in _words_after(cmd, "add", value_flags=APK_VALUE_FLAGS)):
                return False
    return True


@simple_rule(
    "DL3019", Severity.INFO,
    "Use the `--no-cache` switch to avoid the need to use `--update` and remove `/var/cache/apk/*`.",
    needs_shell=True, fixable=True,
)
def apk_no_cache(instruction, shell):
    if not _is_run_with(instruction, shell) or _has_cache_mount(instruction, "/var/cache/apk"):
        return True
    return shell.no_commands(lambda cmd: cmd.is_apk_add() and not cmd.has_flag("no-cache"))


# yarn

@dataclass
class _PendingYarnInstalls:
    lines: List[int] = field(default_factory=list)


def _is_yarn_install(cmd) -> bool:
    return cmd.name == "yarn" and cmd.has_any_arg("install", "add")


def _is_yarn_cache_clean(cmd) -> bool:
    if cmd.name == "yarn":
        return cmd.has_args("cache", "clean")
    return cmd.name == "rm" and any("yarn" in arg and "cache" in arg for arg in cmd.arguments)


def _flush_yarn_installs(scope):
    for line in scope.data.lines:
        scope.fail(line)
    scope.data.lines.clear()


@finalizing_rule(
    "DL3060", Severity.INFO, "`yarn cache clean` missing after `yarn install` was run.",
    done=_flush_yarn_installs, state=_PendingYarnInstalls, needs_shell=True,
)
def yarn_cache_clean(scope, line, instruction, shell):
    if isinstance(instruction, From):
        _flush_yarn_installs(scope)
        return
    if not _is_run_with(instruction, shell):
        return

    # A clean only covers installs that came before it
    pending = False
    for cmd in shell.commands:
        if _is_yarn_cache_clean(cmd):
            scope.data.lines.clear()
            pending = False
        elif _is_yarn_install(cmd):
            pending = True
    if pending and not _has_cache_mount(instruction, "/"):
        scope.data.lines.append(line)


RULES = [
    no_apt_upgrade,
    pin_apt_versions,
    clean_apt_lists,
    apt_assume_yes,
    apt_no_recommends,
    pin_pip_versions,
    pip_no_cache_dir,
    pin_npm_versions,
    pin_apk_versions,
    apk_no_cache,
    yarn_cache_clean,
]
