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
Loader for ``.hadolint.yaml`` style configuration files.
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..MODELS.lint_config import LintConfig
from ..MODELS.lint_result import Severity

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = (".hadolint.yaml", ".hadolint.yml")


class ConfigError(ValueError):
    """
    Raised when a configuration file cannot be read or is malformed.
    """


class ConfigParser:
    """
    Parser for linter configuration files.
    """

    def parse(self, config_path: str) -> LintConfig:
        """
        Parses a configuration file from a path.

        :param config_path: Path to the YAML file.
        :return: Parsed configuration.
        """
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except OSError as e:
            raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> LintConfig:
        """
        Parses a configuration from a YAML string.

        :param content: YAML content.
        :return: Parsed configuration.
        """
        try:
            data = yaml.safe_load(content)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(f"Invalid YAML in config: {e}") from e

        if not data:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("Config must be a mapping at the top level")

        options: Dict[str, Any] = {
            "ignored": set(self._string_list(data, 'ignored')),
            "severity_overrides": self._parse_overrides(data.get('override')),
        }

        threshold = data.get('failure-threshold')
        if threshold is not None:
            severity = Severity.parse(str(threshold))
            if severity is None:
                logger.warning("Unknown failure-threshold %r, keeping default", threshold)
            else:
                options["failure_threshold"] = severity

        for key, field_name in (
            ('disable-ignore-pragma', 'disable_ignore_pragma'),
            ('no-fail', 'no_fail'),
            ('fixable-only', 'fixable_only'),
        ):
            if key in data:
                options[field_name] = bool(data[key])

        return LintConfig(**options)

    def find_and_load(self, start_dir: Optional[str] = None) -> Optional[LintConfig]:
        """
        Load the first configuration file found.

        Search order: ``.hadolint.yaml`` then ``.hadolint.yml`` in
        ``start_dir`` (default: the working directory), then
        ``$XDG_CONFIG_HOME/hadolint.yaml``, then ``~/.hadolint.yaml``.

        :return: The parsed configuration, or None when no file exists.
        """
        for path in self._candidates(start_dir):
            if path.is_file():
                logger.debug("Loading config from %s", path)
                return self.parse(str(path))
        return None

    @staticmethod
    def _candidates(start_dir: Optional[str]) -> List[Path]:
        base = Path(start_dir) if start_dir else Path.cwd()
        candidates = [base / name for name in CONFIG_FILE_NAMES]

        xdg = os.environ.get('XDG_CONFIG_HOME')
        config_home = Path(xdg) if xdg else Path.home() / '.config'
        candidates.append(config_home / 'hadolint.yaml')
        candidates.append(Path.home() / '.hadolint.yaml')
        return candidates

    def _parse_overrides(self, overrides: Any) -> Dict[str, Severity]:
        if overrides is None:
            return {}
        if not isinstance(overrides, dict):
            raise ConfigError("'override' must be a mapping of severity to rule codes")

        result: Dict[str, Severity] = {}
        for level, codes in overrides.items():
            severity = Severity.parse(str(level))
            if severity is None:
                logger.warning("Ignoring override for unknown severity %r", level)
                continue
            for code in self._string_list(overrides, level):
                result[code] = severity
        return result

    @staticmethod
    def _string_list(data: Dict[Any, Any], key: Any) -> List[str]:
        value = data.get(key)
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if not isinstance(value, list):
            raise ConfigError(f"'{key}' must be a list of rule codes")
        return [str(item) for item in value]
