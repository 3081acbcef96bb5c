"""Restricted extraction of declared JavaScript literals.

Some providers publish their rules as a JavaScript module, e.g.::

    export const parameterRules = [
      { domain: 'example.com', removeParams: ['ref', /^utm_/i] },
    ];

This module locates one declaration by name and parses its initializer as
a data literal: objects, arrays, strings, numbers, booleans, null and
undefined, with comments and trailing commas allowed. Regex literals are
returned as their source text (``"/^utm_/i"``). Anything else, such as
identifiers, calls, spreads or template substitutions, is rejected. No
code is ever evaluated.
"""

import re
from typing import Any

from linkpure.core.exceptions import RuleSourceError


IDENTIFIER = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
NUMBER = re.compile(
    r"[+-]?(?:0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
)
KEYWORDS = {"true": True, "false": False, "null": None, "undefined": None}
SIMPLE_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0",
}


class LiteralSyntaxError(RuleSourceError):
    """Declared literal could not be parsed."""

    def __init__(self, message: str, position: int):
        self.position = position
        super().__init__(f"{message} at offset {position}")


def extract_declared_literal(text: str, name: str) -> Any:
    """Find ``[export] const|let|var <name> = <literal>`` and parse the literal.

    Raises:
        RuleSourceError: If the declaration is missing or not a plain literal
    """
    declaration = re.compile(
        rf"(?:\bexport\s+)?\b(?:const|let|var)\s+{re.escape(name)}\s*=\s*"
    )
    match = declaration.search(text)
    if match is None:
        raise RuleSourceError(f"Declaration '{name}' not found")
    return LiteralParser(text, match.end()).parse_initializer()


class LiteralParser:
    """Recursive-descent parser for JavaScript data literals."""

    def __init__(self, text: str, pos: int = 0):
        self.text = text
        self.pos = pos

    # ------------------------------------------------------------------
    # Scanning helpers
    # ------------------------------------------------------------------

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, char: str) -> None:
        self.skip_blank()
        if self.peek() != char:
            found = self.peek() or "end of input"
            raise LiteralSyntaxError(f"Expected {char!r}, found {found!r}", self.pos)
        self.pos += 1

    def skip_blank(self) -> None:
        """Skip whitespace and comments."""
        text = self.text
        while self.pos < len(text):
            char = text[self.pos]
            if char.isspace():
                self.pos += 1
            elif text.startswith("//", self.pos):
                end = text.find("\n", self.pos)
                self.pos = len(text) if end == -1 else end + 1
            elif text.startswith("/*", self.pos):
                end = text.find("*/", self.pos + 2)
                if end == -1:
                    raise LiteralSyntaxError("Unterminated comment", self.pos)
                self.pos = end + 2
            else:
                break

    # ------------------------------------------------------------------
    # Grammar
    # ------------------------------------------------------------------

    def parse_initializer(self) -> Any:
        """Parse a declaration initializer up to the end of its statement.

        Only `;`, a line break or the end of the text may follow the
        literal.
        """
        value = self.parse_value()
        end = self.pos
        self.skip_blank()
        line_ended = "\n" in self.text[end:self.pos]
        if self.peek() not in ("", ";") and not line_ended:
            raise LiteralSyntaxError("Unexpected trailing content", self.pos)
        return value

    def parse_value(self) -> Any:
        self.skip_blank()
        char = self.peek()

        if char == "{":
            return self.parse_object()
        if char == "[":
            return self.parse_array()
        if char in ("'", '"', "`"):
            return self.parse_string()
        if char == "/":
            return self.parse_regex()

        number = NUMBER.match(self.text, self.pos)
        if number:
            self.pos = number.end()
            return _to_number(number.group(0))

        word = IDENTIFIER.match(self.text, self.pos)
        if word and word.group(0) in KEYWORDS:
            self.pos = word.end()
            return KEYWORDS[word.group(0)]

        if not char:
            raise LiteralSyntaxError("Unexpected end of input", self.pos)
        raise LiteralSyntaxError("Unsupported expression", self.pos)

    def parse_object(self) -> dict[str, Any]:
        self.expect("{")
        result: dict[str, Any] = {}
        while True:
            self.skip_blank()
            if self.peek() == "}":
                self.pos += 1
                return result

            key = self.parse_key()
            self.expect(":")
            result[key] = self.parse_value()

            self.skip_blank()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != "}":
                raise LiteralSyntaxError("Expected ',' or '}' in object", self.pos)

    def parse_key(self) -> str:
        char = self.peek()
        if char in ("'", '"'):
            return self.parse_string()

        word = IDENTIFIER.match(self.text, self.pos)
        if word:
            self.pos = word.end()
            return word.group(0)

        number = NUMBER.match(self.text, self.pos)
        if number:
            self.pos = number.end()
            return number.group(0)

        raise LiteralSyntaxError("Unsupported object key", self.pos)

    def parse_array(self) -> list[Any]:
        self.expect("[")
        result: list[Any] = []
        while True:
            self.skip_blank()
            if self.peek() == "]":
                self.pos += 1
                return result
            if self.peek() == ",":
                raise LiteralSyntaxError("Array holes are not supported", self.pos)

            result.append(self.parse_value())

            self.skip_blank()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != "]":
                raise LiteralSyntaxError("Expected ',' or ']' in array", self.pos)

    def parse_string(self) -> str:
        quote = self.peek()
        start = self.pos
        self.pos += 1
        chars: list[str] = []
        text = self.text

        while self.pos < len(text):
            char = text[self.pos]

            if char == quote:
                self.pos += 1
                return "".join(chars)

            if char == "\\":
                chars.append(self._parse_escape())
                continue

            if quote == "`" and text.startswith("${", self.pos):
                raise LiteralSyntaxError("Template substitutions are not supported", self.pos)
            if char == "\n" and quote != "`":
                break

            chars.append(char)
            self.pos += 1

        raise LiteralSyntaxError("Unterminated string", start)

    def _parse_escape(self) -> str:
        text = self.text
        self.pos += 1
        if self.pos >= len(text):
            raise LiteralSyntaxError("Unterminated escape", self.pos)
        char = text[self.pos]
        self.pos += 1

        if char in SIMPLE_ESCAPES:
            return SIMPLE_ESCAPES[char]
        if char == "\n":
            return ""  # line continuation
        if char == "x":
            return self._hex_escape(2)
        if char == "u":
            if self.peek() == "{":
                end = text.find("}", self.pos)
                if end == -1:
                    raise LiteralSyntaxError("Unterminated unicode escape", self.pos)
                digits = text[self.pos + 1:end]
                self.pos = end + 1
                return self._code_point(digits)
            return self._hex_escape(4)
        return char

    def _hex_escape(self, length: int) -> str:
        digits = self.text[self.pos:self.pos + length]
        self.pos += length
        return self._code_point(digits)

    def _code_point(self, digits: str) -> str:
        try:
            return chr(int(digits, 16))
        except ValueError:
            raise LiteralSyntaxError(f"Invalid escape digits {digits!r}", self.pos) from None

    def parse_regex(self) -> str:
        """Read a regex literal and return its source text, flags included."""
        start = self.pos
        text = self.text
        self.pos += 1
        in_class = False

        while self.pos < len(text):
            char = text[self.pos]
            if char == "\\":
                self.pos += 2
                continue
            if char == "\n":
                break
            if char == "[":
                in_class = True
            elif char == "]":
                in_class = False
            elif char == "/" and not in_class:
                self.pos += 1
                flags = re.compile(r"[a-z]*").match(text, self.pos)
                self.pos = flags.end()
                return text[start:self.pos]
            self.pos += 1

        raise LiteralSyntaxError("Unterminated regex literal", start)


def _to_number(token: str) -> int | float:
    sign = -1 if token.startswith("-") else 1
    body = token.lstrip("+-")
    if body[:2].lower() == "0x":
        return sign * int(body, 16)
    if any(c in body for c in ".eE"):
        return sign * float(body)
    return sign * int(body)
