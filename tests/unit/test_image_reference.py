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
Unit tests for image reference parsing.
"""
import pytest
from dflint.REGISTRY.image_reference import ImageReference


class TestImageReference:
    """Tests for ImageReference parsing."""

    def test_parse_simple_name(self):
        """An untagged name keeps tag and registry unset."""
        ref = ImageReference.parse("nginx")
        assert ref.registry is None
        assert ref.name == "nginx"
        assert ref.tag is None
        assert ref.digest is None

    def test_parse_with_tag(self):
        ref = ImageReference.parse("nginx:1.21")
        assert ref.name == "nginx"
        assert ref.tag == "1.21"

    def test_parse_numeric_tag_single_segment(self):
        ref = ImageReference.parse("myimage:1234")
        assert ref.name == "myimage"
        assert ref.tag == "1234"

    def test_parse_user_image(self):
        """A namespace without a dot is not a registry."""
        ref = ImageReference.parse("myuser/myimage:v1")
        assert ref.registry is None
        assert ref.name == "myuser/myimage"
        assert ref.tag == "v1"

    def test_parse_full_reference(self):
        ref = ImageReference.parse("gcr.io/project/image:latest")
        assert ref.registry == "gcr.io"
        assert ref.name == "project/image"
        assert ref.tag == "latest"
        assert ref.full_name == "gcr.io/project/image"

    def test_parse_with_digest(self):
        ref = ImageReference.parse("nginx@sha256:abc123")
        assert ref.name == "nginx"
        assert ref.digest == "sha256:abc123"
        assert ref.tag is None

    def test_parse_tag_and_digest(self):
        ref = ImageReference.parse("nginx:1.25@sha256:abc123")
        assert ref.tag == "1.25"
        assert ref.digest == "sha256:abc123"

    def test_parse_localhost_registry_with_port(self):
        ref = ImageReference.parse("localhost:5000/app")
        assert ref.registry == "localhost:5000"
        assert ref.name == "app"
        assert ref.tag is None

    def test_parse_registry_port_and_tag(self):
        ref = ImageReference.parse("registry.example.com:5000/team/app:2.0.1")
        assert ref.registry == "registry.example.com:5000"
        assert ref.name == "team/app"
        assert ref.tag == "2.0.1"

    def test_long_numeric_tag_on_path(self):
        ref = ImageReference.parse("team/app:20240101")
        assert ref.tag == "20240101"

    def test_variable_and_scratch(self):
        assert ImageReference.parse("${BASE_IMAGE}").is_variable
        assert ImageReference.parse("scratch").is_scratch
        assert not ImageReference.parse("gcr.io/scratch").is_scratch

    def test_str(self):
        assert str(ImageReference.parse("gcr.io/p/i:1@sha256:ff")) == "gcr.io/p/i:1@sha256:ff"
        assert str(ImageReference.parse("alpine")) == "alpine"

    def test_empty_reference(self):
        with pytest.raises(ValueError):
            ImageReference.parse("")
