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
Models for lint diagnostics: severities, individual failures and the
result of one lint run.
"""
from enum import Enum
from typing import Dict, List, Optional, TYPE_CHECKING
from pydantic import BaseModel, ConfigDict, computed_field

if TYPE_CHECKING:
    from .lint_config import LintConfig


class Severity(str, Enum):
    """
    Severity of a rule violation.

    Ordered from most to least severe: ``error > warning > info > style > ignore``.
    """

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    STYLE = "style"
    IGNORE = "ignore"

    @classmethod
    def parse(cls, value: str) -> Optional["Severity"]:
        """Parse a severity name case-insensitively; 'none' means ignore."""
        value = value.strip().lower()
        if value == "none":
            return cls.IGNORE
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_RANKS = {
    Severity.IGNORE: 0,
    Severity.STYLE: 1,
    Severity.INFO: 2,
    Severity.WARNING: 3,
    Severity.ERROR: 4,
}


class CheckFailure(BaseModel):
    """
    A single rule violation found during linting.
    """
    model_config = ConfigDict(frozen=True)

    code: str
    severity: Severity
    message: str
    line: int
    column: Optional[int] = None
    fixable: bool = False

    def with_severity(self, severity: Severity) -> "CheckFailure":
        """Return a copy of this failure carrying a different severity."""
        if severity is self.severity:
            return self
        return self.model_copy(update={"severity": severity})


class LintResult(BaseModel):
    """
    Outcome of linting one Dockerfile.
    """
    failures: List[CheckFailure] = []
    parse_errors: List[str] = []

    @computed_field
    @property
    def counts(self) -> Dict[str, int]:
        """Number of failures per severity name."""
        counts = {severity.value: 0 for severity in Severity if severity is not Severity.IGNORE}
        for failure in self.failures:
            counts[failure.severity.value] = counts.get(failure.severity.value, 0) + 1
        return counts

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @property
    def has_errors(self) -> bool:
        return any(f.severity is Severity.ERROR for f in self.failures)

    @property
    def has_warnings(self) -> bool:
        return any(f.severity is Severity.WARNING for f in self.failures)

    def max_severity(self) -> Optional[Severity]:
        """Get the highest severity among the failures, if any."""
        if not self.failures:
            return None
        return max(f.severity for f in self.failures)

    def should_fail(self, config: "LintConfig") -> bool:
        """
        Whether this result should make a calling process exit non-zero.

        :param config: Configuration providing ``no_fail`` and the threshold.
        :return: True when a failure reaches the configured threshold.
        """
        if config.no_fail:
            return False
        highest = self.max_severity()
        return highest is not None and highest >= config.failure_threshold

    def codes(self) -> List[str]:
        """Distinct rule codes in order of first appearance."""
        seen: Dict[str, None] = {}
        for failure in self.failures:
            seen.setdefault(failure.code, None)
        return list(seen)
