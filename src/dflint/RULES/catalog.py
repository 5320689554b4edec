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
The catalog of built-in rules.
"""
import logging
from typing import Dict, List, Optional

from . import instruction_rules, package_rules, shell_rules, stage_rules
from .framework import Rule

logger = logging.getLogger(__name__)

_RULE_MODULES = (instruction_rules, stage_rules, shell_rules, package_rules)


def _build_catalog() -> Dict[str, Rule]:
    catalog: Dict[str, Rule] = {}
    for module in _RULE_MODULES:
        for rule in module.RULES:
            if rule.code in catalog:
                raise ValueError(f"Duplicate rule code {rule.code} in {module.__name__}")
            catalog[rule.code] = rule
    logger.debug("Loaded %d built-in rules", len(catalog))
    return dict(sorted(catalog.items()))


_CATALOG = _build_catalog()


def all_rules() -> List[Rule]:
    """All built-in rules, ordered by code."""
    return list(_CATALOG.values())


def get_rule(code: str) -> Optional[Rule]:
    return _CATALOG.get(code)


def rule_codes() -> List[str]:
    return list(_CATALOG)
