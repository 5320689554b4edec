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
Building blocks for lint rules.

A rule is one immutable ``Rule`` value of a closed ``RuleKind``:

* SIMPLE rules judge each instruction on its own with a predicate.
* STATEFUL rules fold a step function over the instructions, keeping
  private data in their own state slot.
* FINALIZING rules are stateful rules with a ``done`` hook that runs once
  after the last instruction.

Rules are written as plain functions and turned into ``Rule`` values with
the ``simple_rule``, ``stateful_rule`` and ``finalizing_rule`` decorators.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from ..MODELS.dockerfile_ast import Instruction
from ..MODELS.lint_result import CheckFailure, Severity
from ..PARSERS.shell_parser import ParsedShellScript


class RuleKind(Enum):
    SIMPLE = "simple"
    STATEFUL = "stateful"
    FINALIZING = "finalizing"


@dataclass
class RuleData:
    """
    Generic scratch area for stateful rules that need no dedicated type.
    """
    ints: Dict[str, int] = field(default_factory=dict)
    bools: Dict[str, bool] = field(default_factory=dict)
    strings: Dict[str, str] = field(default_factory=dict)
    string_sets: Dict[str, Set[str]] = field(default_factory=dict)

    def get_int(self, key: str, default: int = 0) -> int:
        return self.ints.get(key, default)

    def set_int(self, key: str, value: int) -> None:
        self.ints[key] = value

    def increment(self, key: str) -> int:
        self.ints[key] = self.ints.get(key, 0) + 1
        return self.ints[key]

    def get_bool(self, key: str, default: bool = False) -> bool:
        return self.bools.get(key, default)

    def set_bool(self, key: str, value: bool) -> None:
        self.bools[key] = value

    def get_string(self, key: str) -> Optional[str]:
        return self.strings.get(key)

    def set_string(self, key: str, value: str) -> None:
        self.strings[key] = value

    def get_set(self, key: str) -> Set[str]:
        return self.string_sets.setdefault(key, set())

    def add_to_set(self, key: str, value: str) -> None:
        self.get_set(key).add(value)

    def set_contains(self, key: str, value: str) -> bool:
        return value in self.string_sets.get(key, ())


class RuleState:
    """
    Mutable state of one lint run: the failures found so far plus one
    private slot per rule, created on first use.
    """

    def __init__(self):
        self.failures: List[CheckFailure] = []
        self._slots: Dict[str, Any] = {}

    def add_failure(
        self,
        code: str,
        severity: Severity,
        message: str,
        line: int,
        column: Optional[int] = None,
        fixable: bool = False,
    ) -> None:
        self.failures.append(CheckFailure(
            code=code,
            severity=severity,
            message=message,
            line=line,
            column=column,
            fixable=fixable,
        ))

    def slot(self, rule: "Rule") -> Any:
        """Get the rule's private state, creating it if needed."""
        data = self._slots.get(rule.code)
        if data is None:
            data = rule.state_factory()
            self._slots[rule.code] = data
        return data


class RuleScope:
    """
    What a stateful rule sees: its own data and a way to report failures
    under its own code and severity.
    """

    def __init__(self, rule: "Rule", state: RuleState):
        self._rule = rule
        self._state = state
        self.data = state.slot(rule)

    def fail(self, line: int, message: Optional[str] = None, column: Optional[int] = None) -> None:
        self._state.add_failure(
            self._rule.code,
            self._rule.severity,
            message or self._rule.message,
            line,
            column=column,
            fixable=self._rule.fixable,
        )


Predicate = Callable[[Instruction, Optional[ParsedShellScript]], bool]
Step = Callable[[RuleScope, int, Instruction, Optional[ParsedShellScript]], None]
Done = Callable[[RuleScope], None]


@dataclass(frozen=True)
class Rule:
    """
    A lint rule. Immutable and shared between runs.
    """
    code: str
    severity: Severity
    message: str
    kind: RuleKind
    predicate: Optional[Predicate] = None
    step: Optional[Step] = None
    done: Optional[Done] = None
    state_factory: Callable[[], Any] = RuleData
    needs_shell: bool = False
    fixable: bool = False

    def check(
        self,
        state: RuleState,
        line: int,
        instruction: Instruction,
        shell: Optional[ParsedShellScript] = None,
    ) -> None:
        """Apply the rule to one instruction."""
        if self.kind is RuleKind.SIMPLE:
            if not self.predicate(instruction, shell):
                state.add_failure(self.code, self.severity, self.message, line, fixable=self.fixable)
        else:
            self.step(RuleScope(self, state), line, instruction, shell)

    def finalize(self, state: RuleState) -> None:
        """Run the end-of-document hook of finalizing rules."""
        if self.kind is RuleKind.FINALIZING and self.done is not None:
            self.done(RuleScope(self, state))


def simple_rule(code: str, severity: Severity, message: str, *, needs_shell: bool = False,
                fixable: bool = False) -> Callable[[Predicate], Rule]:
    """
    Decorator turning ``predicate(instruction, shell) -> bool`` into a rule.
    The predicate returns False for a violation.
    """
    def decorator(predicate: Predicate) -> Rule:
        return Rule(
            code=code,
            severity=severity,
            message=message,
            kind=RuleKind.SIMPLE,
            predicate=predicate,
            needs_shell=needs_shell,
            fixable=fixable,
        )
    return decorator


def stateful_rule(code: str, severity: Severity, message: str, *, state: Callable[[], Any] = RuleData,
                  needs_shell: bool = False, fixable: bool = False) -> Callable[[Step], Rule]:
    """
    Decorator turning ``step(scope, line, instruction, shell)`` into a rule.
    """
    def decorator(step: Step) -> Rule:
        return Rule(
            code=code,
            severity=severity,
            message=message,
            kind=RuleKind.STATEFUL,
            step=step,
            state_factory=state,
            needs_shell=needs_shell,
            fixable=fixable,
        )
    return decorator


def finalizing_rule(code: str, severity: Severity, message: str, *, done: Done,
                    state: Callable[[], Any] = RuleData, needs_shell: bool = False,
                    fixable: bool = False) -> Callable[[Step], Rule]:
    """
    Decorator for stateful rules that also need ``done(scope)`` at the end.
    """
    def decorator(step: Step) -> Rule:
        return Rule(
            code=code,
            severity=severity,
            message=message,
            kind=RuleKind.FINALIZING,
            step=step,
            done=done,
            state_factory=state,
            needs_shell=needs_shell,
            fixable=fixable,
        )
    return decorator
