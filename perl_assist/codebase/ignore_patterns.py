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

"""Shared ignore rules for workspace discovery.

Centralizes which files and directories are excluded, so the indexer, the file
watcher and the repository map agree on the set of eligible Perl files.

- Hidden directories (starting with '.') are excluded by convention
- Build, version-control and vendor directories are excluded by name
- Extra directory names can be added per workspace
"""

from pathlib import Path
from typing import Iterable, Optional, Set

# Hidden directories (starting with '.') are excluded automatically by should_ignore_path()
DEFAULT_SKIP_DIRS: Set[str] = {
    # Perl build outputs
    "blib",
    "_build",
    "cover_db",
    "pm_to_blib",
    # Local library installs (local::lib, carton)
    "local",
    "extlib",
    # Generic build outputs
    "build",
    "dist",
    # Vendored code
    "vendor",
    "third_party",
    "node_modules",
}

DEFAULT_EXTENSIONS: Set[str] = {".pl", ".pm", ".t"}


def is_hidden_path(path: Path) -> bool:
    """Check if any component of the path is hidden ('.' and '..' excepted)."""
    for part in path.parts:
        if part.startswith(".") and part not in (".", ".."):
            return True
    return False


def get_effective_skip_dirs(
    base_skip_dirs: Optional[Set[str]] = None,
    extra_skip_dirs: Optional[Iterable[str]] = None,
) -> Set[str]:
    """Combine the base skip set with workspace-specific extras."""
    effective = set(base_skip_dirs) if base_skip_dirs is not None else set(DEFAULT_SKIP_DIRS)
    if extra_skip_dirs:
        effective |= set(extra_skip_dirs)
    return effective


def should_ignore_path(
    path: Path,
    skip_dirs: Optional[Set[str]] = None,
    extra_skip_dirs: Optional[Iterable[str]] = None,
) -> bool:
    """Check if a path should be ignored during discovery.

    Pass paths relative to the workspace root so that a hidden or skipped
    directory above the root does not exclude the whole workspace.

    Example:
        >>> should_ignore_path(Path("lib/App/Main.pm"))
        False
        >>> should_ignore_path(Path(".git/config"))
        True
        >>> should_ignore_path(Path("blib/lib/App/Main.pm"))
        True
    """
    if is_hidden_path(path):
        return True

    effective_skip_dirs = get_effective_skip_dirs(skip_dirs, extra_skip_dirs)
    return any(part in effective_skip_dirs for part in path.parts)


def is_source_file(path: Path, extensions: Optional[Iterable[str]] = None) -> bool:
    """Check whether the file extension marks a Perl source file."""
    allowed = set(extensions) if extensions is not None else DEFAULT_EXTENSIONS
    return path.suffix.lower() in allowed
