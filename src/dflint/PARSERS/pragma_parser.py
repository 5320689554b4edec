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
Inline ``# hadolint`` pragmas: per-instruction and global rule ignores,
shell declarations and the whole-file opt-out.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set

from ..MODELS.dockerfile_ast import Comment, PositionedInstruction

logger = logging.getLogger(__name__)

PRAGMA_PREFIX = "hadolint"


class PragmaKind(Enum):
    IGNORE = "ignore"
    GLOBAL_IGNORE = "global-ignore"
    SHELL = "shell"
    DISABLE_FILE = "disable-file"


@dataclass(frozen=True)
class Pragma:
    kind: PragmaKind
    codes: List[str] = field(default_factory=list)
    shell: Optional[str] = None


@dataclass
class PragmaState:
    """
    Pragmas collected from one document.

    ``ignored`` is keyed by the line of the instruction a pragma applies to,
    which is the first non-comment instruction after it.
    """
    ignored: Dict[int, Set[str]] = field(default_factory=dict)
    global_ignored: Set[str] = field(default_factory=set)
    shell: Optional[str] = None
    disable_file: bool = False

    def is_ignored(self, code: str, line: int) -> bool:
        if code in self.global_ignored:
            return True
        return code in self.ignored.get(line, ())


class PragmaParser:
    """
    Extracts pragmas from parsed comments.
    """

    def parse_comment(self, comment: str) -> Optional[Pragma]:
        """
        Parse a single comment, with or without its leading ``#``.

        Returns None when the comment is not a pragma.
        """
        text = comment.strip().lstrip('#').strip()
        if not text.startswith(PRAGMA_PREFIX):
            return None
        body = text[len(PRAGMA_PREFIX):].strip()

        if body == "disable-file":
            return Pragma(kind=PragmaKind.DISABLE_FILE)

        if body.startswith("global"):
            codes = self._parse_ignore_list(body[len("global"):])
            if codes:
                return Pragma(kind=PragmaKind.GLOBAL_IGNORE, codes=codes)
            return None

        codes = self._parse_ignore_list(body)
        if codes:
            return Pragma(kind=PragmaKind.IGNORE, codes=codes)

        if body.startswith("shell"):
            key, sep, value = body.partition('=')
            if sep and key.strip() == "shell" and value.strip():
                return Pragma(kind=PragmaKind.SHELL, shell=value.strip())

        return None

    def extract(self, instructions: Sequence[PositionedInstruction]) -> PragmaState:
        """
        Collect the pragma state of a parsed document.
        """
        state = PragmaState()
        pending: Set[str] = set()

        for positioned in instructions:
            instruction = positioned.instruction
            if not isinstance(instruction, Comment):
                if pending:
                    state.ignored.setdefault(positioned.line, set()).update(pending)
                    pending = set()
                continue

            pragma = self.parse_comment(instruction.text)
            if pragma is None:
                continue
            logger.debug("Pragma on line %d: %s", positioned.line, pragma)

            if pragma.kind is PragmaKind.IGNORE:
                pending.update(pragma.codes)
            elif pragma.kind is PragmaKind.GLOBAL_IGNORE:
                state.global_ignored.update(pragma.codes)
            elif pragma.kind is PragmaKind.SHELL:
                state.shell = pragma.shell
            elif pragma.kind is PragmaKind.DISABLE_FILE:
                state.disable_file = True

        return state

    def is_disabled(self, content: str) -> bool:
        """Whether the first non-blank line is ``# hadolint disable-file``."""
        for line in content.splitlines():
            stripped = line.strip()
            if not stripped:
                continue
            if not stripped.startswith('#'):
                return False
            pragma = self.parse_comment(stripped)
            return pragma is not None and pragma.kind is PragmaKind.DISABLE_FILE
        return False

    @staticmethod
    def _parse_ignore_list(text: str) -> List[str]:
        key, sep, value = text.strip().partition('=')
        if not sep or key.strip() != "ignore":
            return []
        return [code.strip() for code in value.split(',') if code.strip()]
