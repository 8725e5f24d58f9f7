from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import LexError


class TokenKind(Enum):
    NUMBER = "number"
    OPERATOR = "operator"
    OPEN_PAREN = "("
    CLOSE_PAREN = ")"
    OPEN_BRACKET = "["
    CLOSE_BRACKET = "]"
    DELIMITER = ","
    ALTERNATION = "|"
    DIE = "d"
    KEEP = "k"
    DROP = "drop"
    HIGHEST = "h"
    LOWEST = "l"
    INFINITE = "i"
    EXPLODE = "!"
    REROLL = "r"
    UNIQUE = "u"
    FUDGE = "F"
    COMPARISON = "comparison"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    position: int
    value: int | None = None

    def __str__(self) -> str:
        return self.text


_DIGITS = set("0123456789")
_OPERATORS = set("+-*/%")
_HIGHEST = {"h", "H"}
_LOWEST = {"l", "L"}

_SINGLE_CHAR: dict[str, TokenKind] = {
    "(": TokenKind.OPEN_PAREN,
    ")": TokenKind.CLOSE_PAREN,
    "[": TokenKind.OPEN_BRACKET,
    "]": TokenKind.CLOSE_BRACKET,
    ",": TokenKind.DELIMITER,
    "|": TokenKind.ALTERNATION,
    "\\": TokenKind.ALTERNATION,
    "k": TokenKind.KEEP,
    "K": TokenKind.KEEP,
    "h": TokenKind.HIGHEST,
    "H": TokenKind.HIGHEST,
    "l": TokenKind.LOWEST,
    "L": TokenKind.LOWEST,
    "i": TokenKind.INFINITE,
    "I": TokenKind.INFINITE,
    "∞": TokenKind.INFINITE,
    "!": TokenKind.EXPLODE,
    "r": TokenKind.REROLL,
    "R": TokenKind.REROLL,
    "u": TokenKind.UNIQUE,
    "U": TokenKind.UNIQUE,
    "f": TokenKind.FUDGE,
    "F": TokenKind.FUDGE,
}

# Longest match first.
_COMPARISONS = ("<=", ">=", "=!", "<", ">", "=")


def tokenize(text: str) -> list[Token]:
    """Split ``text`` into tokens, left to right.

    ``d`` is ambiguous: followed by ``h``/``l`` it is the drop marker of a
    ``dh``/``dl`` suffix, otherwise it is the die marker.

    Raises LexError on the first character that starts no token.
    """

    tokens: list[Token] = []
    i = 0
    n = len(text)

    while i < n:
        c = text[i]

        if c.isspace():
            i += 1
            continue

        if c in _DIGITS:
            start = i
            while i < n and text[i] in _DIGITS:
                i += 1
            tokens.append(Token(TokenKind.NUMBER, text[start:i], start, int(text[start:i])))
            continue

        if c in ("d", "D"):
            nxt = text[i + 1] if i + 1 < n else ""
            kind = TokenKind.DROP if nxt in _HIGHEST or nxt in _LOWEST else TokenKind.DIE
            tokens.append(Token(kind, c, i))
            i += 1
            continue

        if c in _OPERATORS:
            tokens.append(Token(TokenKind.OPERATOR, c, i))
            i += 1
            continue

        if c in "<>=":
            op = next(op for op in _COMPARISONS if text.startswith(op, i))
            tokens.append(Token(TokenKind.COMPARISON, op, i))
            i += len(op)
            continue

        kind = _SINGLE_CHAR.get(c)
        if kind is None:
            raise LexError(c, i)
        tokens.append(Token(kind, c, i))
        i += 1

    return tokens
