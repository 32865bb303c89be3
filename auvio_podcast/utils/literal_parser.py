"""
Parser for JavaScript literal expressions.

Recovers structured data from bundle source text without executing it.
Supported grammar:

- objects with identifier, string or numeric keys and trailing commas
- arrays (trailing commas allowed, holes are not)
- single, double and backtick quoted strings (backticks without ${...})
- numbers: decimal, exponent, hex/octal/binary, leading sign or dot
- true, false, null, undefined, NaN, Infinity
- the minifier shorthands !0 / !1 and void 0
- // and /* */ comments between tokens

Anything else (calls, references, operators) is a syntax error.
"""

import math
from typing import Any, Tuple


class LiteralSyntaxError(ValueError):
    """Raised when the text is not a supported literal expression"""

    def __init__(self, message: str, position: int):
        super().__init__(f"{message} at position {position}")
        self.position = position


_IDENT_START = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_$")
_DIGITS = set("0123456789")
_IDENT_PART = _IDENT_START | _DIGITS

_KEYWORDS = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
    "NaN": math.nan,
    "Infinity": math.inf,
}

_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


class _Parser:
    def __init__(self, text: str, pos: int = 0):
        self.text = text
        self.pos = pos

    def error(self, message: str) -> LiteralSyntaxError:
        return LiteralSyntaxError(message, self.pos)

    def peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        if index < len(self.text):
            return self.text[index]
        return ""

    def skip_ignored(self):
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
                    raise self.error("Unterminated comment")
                self.pos = end + 2
            else:
                break

    def expect(self, char: str):
        self.skip_ignored()
        if self.peek() != char:
            found = self.peek() or "end of input"
            raise self.error(f"Expected {char!r}, found {found!r}")
        self.pos += 1

    def parse_value(self) -> Any:
        self.skip_ignored()
        char = self.peek()
        if char == "":
            raise self.error("Unexpected end of input")
        if char == "{":
            return self.parse_object()
        if char == "[":
            return self.parse_array()
        if char in ("\"", "'", "`"):
            return self.parse_string()
        if char in _DIGITS or char == "." or char in ("+", "-"):
            return self.parse_number()
        if char == "!":
            return self.parse_negation()
        if char in _IDENT_START:
            word = self.parse_identifier()
            if word in _KEYWORDS:
                return _KEYWORDS[word]
            if word == "void":
                self.skip_ignored()
                self.parse_number()
                return None
            raise LiteralSyntaxError(f"Unsupported identifier {word!r}", self.pos - len(word))
        raise self.error(f"Unexpected character {char!r}")

    def parse_object(self) -> dict:
        self.expect("{")
        result = {}
        while True:
            self.skip_ignored()
            if self.peek() == "}":
                self.pos += 1
                return result
            key = self.parse_key()
            self.expect(":")
            result[key] = self.parse_value()
            self.skip_ignored()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() == "}":
                continue
            else:
                raise self.error("Expected ',' or '}' in object")

    def parse_key(self) -> str:
        char = self.peek()
        if char in ("\"", "'", "`"):
            return self.parse_string()
        if char in _IDENT_START:
            return self.parse_identifier()
        if char in _DIGITS or char == ".":
            number = self.parse_number()
            if isinstance(number, float) and number.is_integer():
                number = int(number)
            return str(number)
        raise self.error(f"Invalid object key starting with {char or 'end of input'!r}")

    def parse_array(self) -> list:
        self.expect("[")
        result = []
        while True:
            self.skip_ignored()
            if self.peek() == "]":
                self.pos += 1
                return result
            if self.peek() == ",":
                raise self.error("Array holes are not supported")
            result.append(self.parse_value())
            self.skip_ignored()
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != "]":
                raise self.error("Expected ',' or ']' in array")

    def parse_identifier(self) -> str:
        start = self.pos
        while self.peek() and self.peek() in _IDENT_PART:
            self.pos += 1
        return self.text[start:self.pos]

    def parse_negation(self) -> bool:
        self.pos += 1
        self.skip_ignored()
        operand = self.parse_value()
        if isinstance(operand, (dict, list)):
            return False
        return not operand

    def parse_string(self) -> str:
        quote = self.peek()
        self.pos += 1
        chunks = []
        text = self.text
        while True:
            if self.pos >= len(text):
                raise self.error("Unterminated string")
            char = text[self.pos]
            if char == quote:
                self.pos += 1
                return "".join(chunks)
            if char == "\\":
                chunks.append(self.parse_escape())
                continue
            if quote == "`" and text.startswith("${", self.pos):
                raise self.error("Template substitutions are not supported")
            if char == "\n" and quote != "`":
                raise self.error("Unterminated string")
            chunks.append(char)
            self.pos += 1

    def parse_escape(self) -> str:
        self.pos += 1
        char = self.peek()
        if char == "":
            raise self.error("Unterminated escape sequence")
        self.pos += 1
        if char in _SIMPLE_ESCAPES and not (char == "0" and self.peek() in _DIGITS):
            return _SIMPLE_ESCAPES[char]
        if char == "x":
            return chr(self.read_hex(2))
        if char == "u":
            if self.peek() == "{":
                end = self.text.find("}", self.pos)
                if end == -1:
                    raise self.error("Unterminated unicode escape")
                digits = self.text[self.pos + 1:end]
                self.pos = end + 1
                try:
                    return chr(int(digits, 16))
                except ValueError:
                    raise self.error(f"Invalid unicode escape {digits!r}")
            code = self.read_hex(4)
            # Surrogate pairs are written as two consecutive \u escapes
            if 0xD800 <= code <= 0xDBFF and self.text.startswith("\\u", self.pos):
                save = self.pos
                self.pos += 2
                low = self.read_hex(4)
                if 0xDC00 <= low <= 0xDFFF:
                    return chr(0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00))
                self.pos = save
            return chr(code)
        if char == "\r":
            if self.peek() == "\n":
                self.pos += 1
            return ""
        if char in ("\n", "\u2028", "\u2029"):
            return ""
        return char

    def read_hex(self, length: int) -> int:
        digits = self.text[self.pos:self.pos + length]
        if len(digits) != length:
            raise self.error("Truncated hex escape")
        try:
            value = int(digits, 16)
        except ValueError:
            raise self.error(f"Invalid hex escape {digits!r}")
        self.pos += length
        return value

    def parse_number(self) -> Any:
        start = self.pos
        sign = 1
        if self.peek() in ("+", "-"):
            if self.peek() == "-":
                sign = -1
            self.pos += 1
            self.skip_ignored()
            if self.text.startswith("Infinity", self.pos):
                self.pos += len("Infinity")
                return sign * math.inf

        if self.peek() == "0" and self.peek(1) in ("x", "X", "o", "O", "b", "B"):
            base = {"x": 16, "o": 8, "b": 2}[self.peek(1).lower()]
            self.pos += 2
            digits_start = self.pos
            while self.peek() and (self.peek().isalnum() or self.peek() == "_"):
                self.pos += 1
            digits = self.text[digits_start:self.pos].replace("_", "")
            try:
                return sign * int(digits, base)
            except ValueError:
                raise LiteralSyntaxError(f"Invalid number {self.text[start:self.pos]!r}", start)

        digits_start = self.pos
        is_float = False
        while self.peek() in _DIGITS or self.peek() == "_":
            self.pos += 1
        if self.peek() == ".":
            is_float = True
            self.pos += 1
            while self.peek() in _DIGITS or self.peek() == "_":
                self.pos += 1
        if self.peek() in ("e", "E"):
            is_float = True
            self.pos += 1
            if self.peek() in ("+", "-"):
                self.pos += 1
            if self.peek() not in _DIGITS:
                raise self.error("Invalid exponent")
            while self.peek() in _DIGITS:
                self.pos += 1

        literal = self.text[digits_start:self.pos].replace("_", "")
        if literal in ("", "."):
            raise LiteralSyntaxError(f"Invalid number {self.text[start:self.pos + 1]!r}", start)
        if is_float:
            return sign * float(literal)
        return sign * int(literal)


def parse_literal_at(text: str, start: int = 0) -> Tuple[Any, int]:
    """
    Parse one literal beginning at `start`.

    Returns the parsed value and the index just past the literal, so
    callers can pull a literal out of a larger chunk of source.
    """
    parser = _Parser(text, start)
    value = parser.parse_value()
    return value, parser.pos


def parse_literal(text: str) -> Any:
    """Parse text that must consist of exactly one literal expression"""
    parser = _Parser(text)
    value = parser.parse_value()
    parser.skip_ignored()
    if parser.pos != len(text):
        raise parser.error("Unexpected trailing content")
    return value
