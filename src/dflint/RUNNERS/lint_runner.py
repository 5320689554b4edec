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
Runs the rule catalog over a Dockerfile and collects the results.
"""
import logging
from typing import Iterable, List, Optional

from ..MODELS.dockerfile_ast import DockerfileAST, Run
from ..MODELS.lint_config import LintConfig
from ..MODELS.lint_result import CheckFailure, LintResult, Severity
from ..PARSERS.dockerfile_parser import DockerfileParser
from ..PARSERS.pragma_parser import PragmaParser, PragmaState
from ..PARSERS.shell_parser import ParsedShellScript
from ..RULES.catalog import all_rules
from ..RULES.framework import Rule, RuleState

logger = logging.getLogger(__name__)


class LintRunner:
    """
    Lints Dockerfiles with a fixed configuration and rule set.

    A runner holds no per-document state, so one instance can be shared
    between threads.
    """

    def __init__(self, config: Optional[LintConfig] = None, rules: Optional[Iterable[Rule]] = None):
        """
        :param config: Lint configuration; defaults to ``LintConfig()``.
        :param rules: Rules to run; defaults to the built-in catalog.
        """
        self.config = config or LintConfig()
        self.rules = list(rules) if rules is not None else all_rules()
        self.parser = DockerfileParser()
        self.pragmas = PragmaParser()

    def lint(self, content: str) -> LintResult:
        """
        Lints Dockerfile content.

        :param content: Dockerfile text.
        :return: Failures and parse errors of the document.
        """
        config = self.config
        if not config.disable_ignore_pragma and self.pragmas.is_disabled(content):
            logger.debug("Skipping document with disable-file pragma")
            return LintResult()

        ast = self.parser.parse_from_string(content)
        pragmas = PragmaState() if config.disable_ignore_pragma else self.pragmas.extract(ast.instructions)

        enabled = [rule for rule in self.rules if not config.is_rule_ignored(rule.code)]
        logger.debug("Running %d of %d rules", len(enabled), len(self.rules))

        errors = list(ast.parse_errors)
        failures = self._run_rules(enabled, ast, errors)
        return LintResult(
            failures=self._filter(failures, pragmas),
            parse_errors=errors,
        )

    def lint_file(self, path: str) -> LintResult:
        """
        Lints a Dockerfile on disk.

        An unreadable file gives an empty result carrying one parse error.
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read %s: %s", path, e)
            return LintResult(parse_errors=[f"{path}: {e}"])
        return self.lint(content)

    @staticmethod
    def _run_rules(rules: List[Rule], ast: DockerfileAST, errors: List[str]) -> List[CheckFailure]:
        state = RuleState()
        shell_needed = any(rule.needs_shell for rule in rules)

        def dispatch(line, instruction):
            shell = None
            if shell_needed and isinstance(instruction, Run):
                shell = ParsedShellScript.from_arguments(instruction.arguments)
            for rule in rules:
                try:
                    rule.check(state, line, instruction, shell)
                except Exception as e:
                    logger.exception("Rule %s failed on line %d", rule.code, line)
                    errors.append(f"line {line}: rule {rule.code} failed: {e}")
            inner = instruction.unwrap_onbuild()
            if inner is not None:
                dispatch(line, inner)

        for positioned in ast.instructions:
            dispatch(positioned.line, positioned.instruction)

        for rule in rules:
            try:
                rule.finalize(state)
            except Exception as e:
                logger.exception("Rule %s failed to finalize", rule.code)
                errors.append(f"rule {rule.code} failed: {e}")

        return state.failures

    def _filter(self, failures: List[CheckFailure], pragmas: PragmaState) -> List[CheckFailure]:
        config = self.config
        kept = []
        for failure in failures:
            if pragmas.is_ignored(failure.code, failure.line):
                continue
            severity = config.effective_severity(failure.code, failure.severity)
            if severity is Severity.IGNORE or severity < config.failure_threshold:
                continue
            if config.fixable_only and not failure.fixable:
                continue
            kept.append(failure.with_severity(severity))

        kept.sort(key=lambda failure: (failure.line, failure.code))
        return kept


def lint(content: str, config: Optional[LintConfig] = None) -> LintResult:
    """Lint Dockerfile content with the built-in rules."""
    return LintRunner(config).lint(content)


def lint_file(path: str, config: Optional[LintConfig] = None) -> LintResult:
    """Lint a Dockerfile on disk with the built-in rules."""
    return LintRunner(config).lint_file(path)
