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
Image reference parsing for base-image declarations.
Parses references like 'ubuntu:20.04', 'gcr.io/project/image:v1' or
'localhost:5000/app@sha256:abc123...' into their structured parts.
"""

from typing import Optional, Tuple
from dataclasses import dataclass


@dataclass(frozen=True)
class ImageReference:
    """
    Parsed image reference as written in a FROM instruction.

    Unlike a pull reference, nothing is defaulted: an image without a tag
    keeps ``tag=None`` so rules can tell "untagged" apart from "latest".

    Examples:
        - ubuntu -> name='ubuntu'
        - ubuntu:20.04 -> name='ubuntu', tag='20.04'
        - gcr.io/project/image:v1 -> registry='gcr.io', name='project/image', tag='v1'
        - localhost:5000/app -> registry='localhost:5000', name='app'
    """

    name: str
    registry: Optional[str] = None
    tag: Optional[str] = None
    digest: Optional[str] = None

    MAX_PORT_LENGTH = 5

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse an image reference string.

        Args:
            reference: Image reference string (e.g., 'nginx:latest', 'myuser/myimage:v1')

        Returns:
            Parsed ImageReference object.
        """
        if not reference:
            raise ValueError("Empty image reference")

        # Handle digest format (image@sha256:...)
        digest = None
        if "@" in reference:
            reference, digest = reference.split("@", 1)

        name, tag = cls._split_tag(reference)
        registry, name = cls._split_registry(name)

        return cls(name=name, registry=registry, tag=tag or None, digest=digest or None)

    @classmethod
    def _split_tag(cls, reference: str) -> Tuple[str, Optional[str]]:
        """Split a trailing ':tag' off the last path segment."""
        parts = reference.split("/")

        if len(parts) == 1:
            if ":" in reference:
                name, tag = reference.rsplit(":", 1)
                return name, tag
            return reference, None

        last_part = parts[-1]
        if ":" in last_part:
            potential_tag = last_part.rsplit(":", 1)[1]
            # A short all-digit token reads as a registry port, not a tag
            if not potential_tag.isdigit() or len(potential_tag) > cls.MAX_PORT_LENGTH:
                return reference[: -len(potential_tag) - 1], potential_tag

        return reference, None

    @staticmethod
    def _split_registry(name: str) -> Tuple[Optional[str], str]:
        """Split a registry host off the first path segment."""
        if "/" in name:
            first_part, rest = name.split("/", 1)
            if "." in first_part or ":" in first_part or first_part == "localhost":
                return first_part, rest
        return None, name

    @property
    def full_name(self) -> str:
        """Get the image name including the registry, without tag or digest."""
        if self.registry:
            return f"{self.registry}/{self.name}"
        return self.name

    @property
    def is_variable(self) -> bool:
        """Whether the image name is an unexpanded build argument."""
        return self.full_name.startswith("$")

    @property
    def is_scratch(self) -> bool:
        """Whether this is the empty 'scratch' base image."""
        return self.registry is None and self.name.lower() == "scratch"

    def __str__(self) -> str:
        reference = self.full_name
        if self.tag:
            reference = f"{reference}:{self.tag}"
        if self.digest:
            reference = f"{reference}@{self.digest}"
        return reference

    def __repr__(self) -> str:
        return f"ImageReference({self})"
