"""Statement text format.

A statement is one line of flat configuration: whitespace separated tokens,
where a token that contains whitespace or a special character is wrapped in
double quotes. Inside quotes, backslash escapes keep the encoding reversible:

    description "uplink to \\"core\\" switch"
"""
from dataclasses import dataclass
from typing import Iterable, Union

# Characters that force a token to be quoted
SPECIAL_CHARS = frozenset(' \t\n\r"\\;{}#')

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
}
_UNESCAPES = {
    "\\": "\\",
    '"': '"',
    "n": "\n",
    "t": "\t",
    "r": "\r",
}


class TokenizeError(ValueError):
    """Malformed statement text (unterminated quote, dangling escape)."""


def escape(value: str) -> str:
    """Escape a free-text value for use inside double quotes."""
    return "".join(_ESCAPES.get(char, char) for char in value)


def unescape(value: str) -> str:
    """Reverse escape().

    Unknown escape sequences are kept verbatim, backslash included.
    """
    result = []
    i = 0
    while i < len(value):
        char = value[i]
        if char == "\\" and i + 1 < len(value):
            nxt = value[i + 1]
            if nxt in _UNESCAPES:
                result.append(_UNESCAPES[nxt])
            else:
                result.append(char + nxt)
            i += 2
            continue
        result.append(char)
        i += 1
    return "".join(result)


def quote_token(token: str) -> str:
    """Render one token, quoting it only when needed."""
    if token == "" or any(char in SPECIAL_CHARS for char in token):
        return f'"{escape(token)}"'
    return token


def split_tokens(line: str) -> list[str]:
    """Split a statement line into unquoted, unescaped tokens.

    Examples:
        'host-name "my server"' -> ["host-name", "my server"]
        'description ""'        -> ["description", ""]
    """
    tokens: list[str] = []
    i = 0
    length = len(line)

    while i < length:
        char = line[i]
        if char in " \t\r\n":
            i += 1
            continue

        if char == '"':
            # Quoted token: scan to the closing quote, honoring escapes
            j = i + 1
            raw = []
            while j < length and line[j] != '"':
                if line[j] == "\\":
                    if j + 1 >= length:
                        raise TokenizeError(f"dangling escape in: {line}")
                    raw.append(line[j:j + 2])
                    j += 2
                    continue
                raw.append(line[j])
                j += 1
            if j >= length:
                raise TokenizeError(f"unterminated quote in: {line}")
            tokens.append(unescape("".join(raw)))
            i = j + 1
            continue

        j = i
        while j < length and line[j] not in " \t\r\n":
            j += 1
        tokens.append(line[i:j])
        i = j

    return tokens


@dataclass(frozen=True)
class Statement:
    """One flat configuration statement: a keyword path plus optional value."""
    tokens: tuple[str, ...] = ()

    @classmethod
    def of(cls, *tokens: Union[str, int]) -> "Statement":
        """Build a statement from raw (unquoted) tokens."""
        return cls(tuple(str(t) for t in tokens))

    @classmethod
    def parse(cls, line: str) -> "Statement":
        """Parse a rendered line back into a statement."""
        return cls(tuple(split_tokens(line)))

    def __str__(self) -> str:
        return " ".join(quote_token(t) for t in self.tokens)

    def __len__(self) -> int:
        return len(self.tokens)

    def startswith(self, prefix: Iterable[str]) -> bool:
        prefix = tuple(prefix)
        return self.tokens[:len(prefix)] == prefix

    def render(self, action: str, base_path: str = "") -> str:
        """Render as a full device line, e.g. ``set <base_path> <statement>``."""
        parts = [action]
        if base_path:
            parts.append(base_path)
        body = str(self)
        if body:
            parts.append(body)
        return " ".join(parts)


def render_path(*tokens: Union[str, int]) -> str:
    """Join raw path tokens into a quoted path string."""
    return " ".join(quote_token(str(t)) for t in tokens)
