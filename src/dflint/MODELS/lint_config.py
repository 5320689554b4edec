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
Model for the configuration consumed by one lint run.
"""
from typing import Dict, Set
from pydantic import BaseModel

from .lint_result import Severity


class LintConfig(BaseModel):
    """
    Options controlling which failures a lint run reports.
    Equivalent to a parsed .hadolint.yaml file.
    """
    ignored: Set[str] = set()
    severity_overrides: Dict[str, Severity] = {}
    failure_threshold: Severity = Severity.INFO
    disable_ignore_pragma: bool = False
    fixable_only: bool = False
    no_fail: bool = False

    def is_rule_ignored(self, code: str) -> bool:
        return code in self.ignored

    def effective_severity(self, code: str, default: Severity) -> Severity:
        """Severity a failure of ``code`` is reported with after overrides."""
        return self.severity_overrides.get(code, default)

    def ignore(self, *codes: str) -> "LintConfig":
        """Return a copy that also ignores the given rule codes."""
        return self.model_copy(update={"ignored": self.ignored | set(codes)})

    def override(self, code: str, severity: Severity) -> "LintConfig":
        """Return a copy reporting ``code`` with ``severity``."""
        overrides = dict(self.severity_overrides)
        overrides[code] = severity
        return self.model_copy(update={"severity_overrides": overrides})

    def with_threshold(self, threshold: Severity) -> "LintConfig":
        """Return a copy with a different minimum reported severity."""
        return self.model_copy(update={"failure_threshold": threshold})
