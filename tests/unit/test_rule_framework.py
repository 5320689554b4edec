from dataclasses import dataclass

from dflint.MODELS.dockerfile_ast import Comment, Run, ShellForm, Workdir
from dflint.MODELS.lint_result import Severity
from dflint.RULES.catalog import all_rules, get_rule, rule_codes
from dflint.RULES.framework import (
    RuleData, RuleKind, RuleState, finalizing_rule, simple_rule, stateful_rule,
)

RUN = Run(arguments=ShellForm(text="make"))
WORKDIR = Workdir(path="/app")


@simple_rule("T001", Severity.WARNING, "No RUN allowed", fixable=True)
def no_run(instruction, shell):
    return not isinstance(instruction, Run)


@stateful_rule("T002", Severity.INFO, "Second RUN")
def second_run(scope, line, instruction, shell):
    if isinstance(instruction, Run) and scope.data.increment("runs") == 2:
        scope.fail(line, "custom message", column=3)


@dataclass
class _Lines:
    seen: list


def _report_total(scope):
    scope.fail(scope.data.seen[-1], f"{len(scope.data.seen)} instructions")


@finalizing_rule("T003", Severity.ERROR, "unused", done=_report_total, state=lambda: _Lines(seen=[]))
def count_lines(scope, line, instruction, shell):
    scope.data.seen.append(line)


def test_simple_rule():
    state = RuleState()
    assert no_run.kind is RuleKind.SIMPLE
    no_run.check(state, 1, WORKDIR)
    no_run.check(state, 2, RUN)
    assert len(state.failures) == 1
    failure = state.failures[0]
    assert (failure.code, failure.line, failure.message, failure.fixable) == ("T001", 2, "No RUN allowed", True)


def test_stateful_rule_uses_private_slot():
    state = RuleState()
    for line in (1, 2, 3):
        second_run.check(state, line, RUN)
    assert [(f.line, f.message, f.column) for f in state.failures] == [(2, "custom message", 3)]
    assert isinstance(state.slot(second_run), RuleData)
    assert state.slot(second_run).get_int("runs") == 3


def test_slots_are_keyed_by_rule():
    state = RuleState()
    second_run.check(state, 1, RUN)
    count_lines.check(state, 1, RUN)
    assert state.slot(second_run) is not state.slot(count_lines)
    assert state.slot(count_lines).seen == [1]


def test_finalizing_rule():
    state = RuleState()
    count_lines.check(state, 1, WORKDIR)
    count_lines.check(state, 4, Comment(text="x"))
    assert state.failures == []
    count_lines.finalize(state)
    assert [(f.code, f.line, f.message) for f in state.failures] == [("T003", 4, "2 instructions")]

    # Finalize is a no-op for other kinds
    second_run.finalize(state)
    assert len(state.failures) == 1


def test_rule_data_helpers():
    data = RuleData()
    assert data.get_int("x") == 0
    data.set_bool("flag", True)
    data.set_string("name", "a")
    data.add_to_set("aliases", "build")
    assert data.get_bool("flag")
    assert data.get_string("name") == "a"
    assert data.set_contains("aliases", "build")
    assert not data.set_contains("other", "build")


def test_catalog():
    codes = rule_codes()
    assert codes == sorted(codes)
    assert len(codes) == len(set(codes))
    assert len(all_rules()) == len(codes)
    for code in ("DL3000", "DL3002", "DL3008", "DL3060", "DL4006"):
        assert get_rule(code).code == code
    assert get_rule("DL9999") is None
    assert get_rule("DL3057").kind is RuleKind.FINALIZING
    assert get_rule("DL3007").kind is RuleKind.SIMPLE
    assert get_rule("DL3020").fixable
