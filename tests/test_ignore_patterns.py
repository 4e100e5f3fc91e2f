# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
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

"""Tests for shared discovery ignore rules."""

from pathlib import Path

from perl_assist.codebase.ignore_patterns import (
    get_effective_skip_dirs,
    is_source_file,
    should_ignore_path,
)


class TestShouldIgnorePath:
    def test_regular_module(self):
        assert not should_ignore_path(Path("lib/App/Main.pm"))

    def test_build_and_hidden_dirs(self):
        assert should_ignore_path(Path("blib/lib/App/Main.pm"))
        assert should_ignore_path(Path("local/lib/perl5/Moo.pm"))
        assert should_ignore_path(Path(".git/hooks/pre-commit.pl"))

    def test_file_named_like_skip_dir(self):
        """Test only directory components named 'build' are skipped, not build.pl."""
        assert not should_ignore_path(Path("script/build.pl"))

    def test_extra_skip_dirs(self):
        assert should_ignore_path(Path("fixtures/Data.pm"), extra_skip_dirs=["fixtures"])
        assert "fixtures" in get_effective_skip_dirs(extra_skip_dirs=["fixtures"])


class TestIsSourceFile:
    def test_default_extensions(self):
        assert is_source_file(Path("a.pl"))
        assert is_source_file(Path("Lib.PM"))
        assert is_source_file(Path("t/basic.t"))
        assert not is_source_file(Path("Makefile.PL.orig"))
        assert not is_source_file(Path("README.md"))

    def test_custom_extensions(self):
        assert is_source_file(Path("App.psgi"), {".psgi"})
        assert not is_source_file(Path("a.pl"), {".psgi"})
