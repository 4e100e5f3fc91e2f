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

"""Exception types raised by the Perl assist engine.

Most engine operations degrade instead of raising (a failed file is skipped, a
failed search returns no hits). These exceptions cover the cases where a caller
must be told that a request could not be served.
"""


class PerlAssistError(Exception):
    """Base class for all engine errors."""


class ContextAssemblyError(PerlAssistError):
    """Basic context (prefix, suffix, imports, variables) could not be assembled."""

    def __init__(self, file_name: str, cause: str):
        self.file_name = file_name
        self.cause = cause
        super().__init__(f"Failed to assemble context for {file_name}: {cause}")


class IndexStoreError(PerlAssistError):
    """The on-disk vector store could not be opened or created."""


class MalformedResponseError(PerlAssistError):
    """The AI backend returned a payload with an unexpected shape."""

    def __init__(self, message: str, payload: object = None):
        self.payload = payload
        super().__init__(message)
