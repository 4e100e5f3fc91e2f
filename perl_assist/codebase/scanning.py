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

"""Delimiter scanning for pattern-based Perl extraction.

When no syntax tree is available, routine bodies are located by counting
balanced braces character by character. The scanner skips quoted strings,
slash-delimited regex literals and line comments, so braces inside them never
change the depth.
"""

from typing import Optional, Tuple

# Characters after which a '/' opens a regex literal rather than a division
_REGEX_PRECEDERS = set("~(,=!{;|&?:")

# Words after which a '/' opens a quote-like literal, with the number of
# delimiters that close it (s/// and tr/// have two parts)
_QUOTE_WORDS = {"m": 1, "qr": 1, "split": 1, "grep": 1, "s": 2, "tr": 2, "y": 2}

# A quote word right after one of these is a name, not an operator: $s / $n
_SIGILS = set("$@%&")


def _previous_token(text: str, index: int) -> Tuple[str, int]:
    """Return the word or single character preceding index and where it starts, skipping spaces."""
    j = index - 1
    while j >= 0 and text[j] in " \t":
        j -= 1
    if j < 0:
        return "", 0
    if text[j].isalnum() or text[j] == "_":
        end = j + 1
        while j >= 0 and (text[j].isalnum() or text[j] == "_"):
            j -= 1
        return text[j + 1 : end], j + 1
    return text[j], j


def _is_operand(text: str, start: int) -> bool:
    """True when the word at start is a variable, call or member (``$s``, ``&m``, ``->y``, ``Foo::s``)."""
    if start > 0 and text[start - 1] in _SIGILS:
        return True
    return text[max(0, start - 2) : start] in ("->", "::")


def _regex_parts(text: str, index: int) -> int:
    """Number of '/' delimiters still to close if text[index] opens a regex, else 0."""
    token, start = _previous_token(text, index)
    if token == "":
        return 1
    if token in _QUOTE_WORDS:
        return 0 if _is_operand(text, start) else _QUOTE_WORDS[token]
    if len(token) == 1 and token in _REGEX_PRECEDERS:
        return 1
    return 0


def find_block_end(text: str, start: int, limit: Optional[int] = None) -> int:
    """Find the end of the brace-delimited block that begins at or after start.

    Scanning stops at the '}' that balances the first '{' seen. A ';' reached
    before any '{' ends a body-less declaration (``sub foo;`` or a glob alias).

    Args:
        text: Source text
        start: Character index to scan from (usually the start of ``sub``)
        limit: Optional end index; defaults to the end of text

    Returns:
        Character index just past the closing delimiter, or ``limit``/len(text)
        when the block is never closed
    """
    end = len(text) if limit is None else min(limit, len(text))
    depth = 0
    seen_open = False
    in_comment = False
    quote: Optional[str] = None
    quote_parts = 0
    escaped = False

    i = start
    while i < end:
        ch = text[i]

        if in_comment:
            if ch == "\n":
                in_comment = False
            i += 1
            continue

        if quote is not None:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote_parts -= 1
                if quote_parts <= 0:
                    quote = None
            elif quote != "/" and ch == "\n":
                # Unterminated string on this line; stop treating it as a string
                quote = None
            i += 1
            continue

        if ch == "#":
            # $#array is the last-index operator, not a comment
            if i > 0 and text[i - 1] == "$":
                i += 1
                continue
            in_comment = True
        elif ch in ("'", '"'):
            # Old-style package separator: Foo'bar
            if ch == "'" and i > 0 and (text[i - 1].isalnum() or text[i - 1] == "_"):
                prev, _ = _previous_token(text, i)
                if prev not in _QUOTE_WORDS and prev not in ("q", "qq"):
                    i += 1
                    continue
            quote = ch
            quote_parts = 1
        elif ch == "/":
            parts = _regex_parts(text, i)
            if parts:
                quote = "/"
                quote_parts = parts
        elif ch == "{":
            depth += 1
            seen_open = True
        elif ch == "}":
            depth -= 1
            if seen_open and depth == 0:
                return i + 1
        elif ch == ";" and not seen_open:
            return i + 1
        i += 1

    return end


def line_number_at(text: str, index: int) -> int:
    """0-based line number of a character index."""
    return text.count("\n", 0, index)


def byte_offset(text: str, index: int) -> int:
    """Convert a character index into a UTF-8 byte offset."""
    if text.isascii():
        return index
    return len(text[:index].encode("utf-8"))
