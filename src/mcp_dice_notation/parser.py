from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .config import Settings, get_settings
from .errors import ParseError
from .models import (
    BinaryTerm,
    Comparison,
    Condition,
    ConstantTerm,
    Die,
    DieTerm,
    Explode,
    FaceRange,
    FaceSet,
    GroupTerm,
    Modifier,
    ParsedTerm,
    ReRoll,
    Selection,
    UnaryTerm,
    Unique,
    fudge_die,
)
from .tokenizer import Token, TokenKind, tokenize


logger = logging.getLogger(__name__)

_EXAMPLE = "Example: '4d6k3', '2d[1,10]r<=2' or '3d6>=5'."

_SELECTION_SUFFIX = {
    "keep_highest": "k",
    "keep_lowest": "kl",
    "drop_highest": "dh",
    "drop_lowest": "dl",
}


@dataclass(frozen=True)
class ParsedExpression:
    input: str
    tree: ParsedTerm
    normalized_expression: str
    trailing: tuple[Token, ...] = ()


class _Parser:
    def __init__(self, tokens: Sequence[Token], settings: Settings) -> None:
        self._tokens = tokens
        self._pos = 0
        self._settings = settings

    def remaining(self) -> tuple[Token, ...]:
        return tuple(self._tokens[self._pos :])

    def _peek(self) -> Token | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _next(self) -> Token | None:
        tok = self._peek()
        if tok is not None:
            self._pos += 1
        return tok

    def _accept(self, kind: TokenKind, text: str | None = None) -> Token | None:
        tok = self._peek()
        if tok is None or tok.kind is not kind:
            return None
        if text is not None and tok.text != text:
            return None
        self._pos += 1
        return tok

    def _expect(self, kind: TokenKind, message: str) -> Token:
        tok = self._peek()
        if tok is None:
            raise ParseError(f"{message} Reached the end of input.")
        if tok.kind is not kind:
            raise ParseError(f"{message} Found '{tok}' at position {tok.position}.", tok)
        self._pos += 1
        return tok

    # Arithmetic, lowest precedence first.

    def parse_additive(self) -> ParsedTerm:
        left = self.parse_multiplicative()
        while True:
            tok = self._peek()
            if tok is None or tok.kind is not TokenKind.OPERATOR or tok.text not in "+-":
                return left
            self._pos += 1
            left = BinaryTerm(left, tok.text, self.parse_multiplicative())

    def parse_multiplicative(self) -> ParsedTerm:
        left = self.parse_unary()
        while True:
            tok = self._peek()
            if tok is None or tok.kind is not TokenKind.OPERATOR or tok.text not in "*/%":
                return left
            self._pos += 1
            left = BinaryTerm(left, tok.text, self.parse_unary())

    def parse_unary(self) -> ParsedTerm:
        tok = self._peek()
        if tok is not None and tok.kind is TokenKind.OPERATOR and tok.text in "+-":
            self._pos += 1
            return UnaryTerm(tok.text, self.parse_unary())
        return self.parse_primary()

    def parse_primary(self) -> ParsedTerm:
        tok = self._next()
        if tok is None:
            raise ParseError(f"Unexpected end of input. {_EXAMPLE}")

        if tok.kind is TokenKind.OPEN_PAREN:
            inner = self.parse_additive()
            self._expect(TokenKind.CLOSE_PAREN, f"Expected ')' to close '(' at position {tok.position}.")
            return GroupTerm(inner)

        if tok.kind is TokenKind.NUMBER:
            if self._accept(TokenKind.DIE):
                return self._parse_die_term(tok.value)
            return ConstantTerm(tok.value)

        # "d20" is shorthand for "1d20".
        if tok.kind is TokenKind.DIE:
            return self._parse_die_term(1)

        raise ParseError(f"Unexpected token '{tok}' at position {tok.position}. {_EXAMPLE}", tok)

    # Dice terms.

    def _parse_die_term(self, count: int) -> DieTerm:
        die = self._parse_die()
        modifiers: list[Modifier] = []
        selection: Selection | None = None
        closed = False

        while True:
            tok = self._peek()
            if tok is None:
                break

            if tok.kind in (TokenKind.KEEP, TokenKind.DROP):
                if selection is not None:
                    raise ParseError(
                        f"Only one keep/drop suffix is allowed per dice term, found a second at position {tok.position}.",
                        tok,
                        code="DUPLICATE_SELECTION",
                    )
                selection = self._parse_selection()
                continue

            # A condition collapses the roll to pass/fail; nothing may follow it.
            if closed:
                break

            if tok.kind is TokenKind.EXPLODE:
                modifiers.append(self._parse_explode())
            elif tok.kind is TokenKind.REROLL:
                modifiers.append(self._parse_reroll(tuple(modifiers)))
            elif tok.kind is TokenKind.UNIQUE:
                modifiers.append(self._parse_unique(tuple(modifiers)))
            elif tok.kind is TokenKind.COMPARISON:
                modifiers.append(Condition(self._parse_comparisons()))
                closed = True
            else:
                break

        return DieTerm(count=count, die=die, modifiers=tuple(modifiers), selection=selection)

    def _parse_die(self) -> Die:
        tok = self._next()
        if tok is None:
            raise ParseError("Expected a die size after 'd'. Reached the end of input.")

        if tok.kind is TokenKind.NUMBER:
            if tok.value < 1:
                raise ParseError(
                    f"A die needs at least one side, got 'd{tok.value}'. Example: '1d6'.",
                    tok,
                    code="INVALID_DIE",
                )
            return FaceRange(1, tok.value)

        if tok.kind is TokenKind.FUDGE:
            return fudge_die()

        # Modulo cannot follow a die marker, so "d%" is the percentile die.
        if tok.kind is TokenKind.OPERATOR and tok.text == "%":
            return FaceRange(1, 100)

        if tok.kind is TokenKind.OPEN_BRACKET:
            first = self._parse_signed("Expected a number after '['.")

            if self._accept(TokenKind.DELIMITER):
                last = self._parse_signed("Expected a number after ','.")
                self._expect(TokenKind.CLOSE_BRACKET, "Expected ']' to close the die range.")
                if first > last:
                    raise ParseError(
                        f"Die range [{first},{last}] is empty: the minimum exceeds the maximum.",
                        tok,
                        code="INVALID_DIE",
                    )
                return FaceRange(first, last)

            values = [first]
            while self._accept(TokenKind.ALTERNATION):
                values.append(self._parse_signed("Expected a number after '|'."))
            self._expect(TokenKind.CLOSE_BRACKET, "Expected ']' to close the die faces.")
            return FaceSet(tuple(values))

        raise ParseError(
            f"Expected a die size after 'd', found '{tok}' at position {tok.position}. "
            "Example: '1d6', '1d[0,9]', '1d[1|3|5]' or '4dF'.",
            tok,
        )

    def _parse_signed(self, message: str) -> int:
        negative = self._accept(TokenKind.OPERATOR, "-") is not None
        number = self._expect(TokenKind.NUMBER, message)
        return -number.value if negative else number.value

    def _parse_limit(self, default: int) -> int:
        tok = self._accept(TokenKind.NUMBER)
        if tok is not None:
            return tok.value
        if self._accept(TokenKind.INFINITE):
            return self._settings.infinite_limit
        return default

    def _parse_comparison(self) -> Comparison:
        op = self._expect(TokenKind.COMPARISON, "Expected a comparison operator.")
        operand = self._parse_signed(f"Expected a number after '{op}'.")
        return Comparison(op.text, operand)

    def _parse_comparisons(self) -> tuple[Comparison, ...]:
        comparisons = [self._parse_comparison()]
        while self._peek() is not None and self._peek().kind is TokenKind.COMPARISON:
            comparisons.append(self._parse_comparison())
        return tuple(comparisons)

    def _parse_explode(self) -> Explode:
        self._expect(TokenKind.EXPLODE, "Expected '!'.")
        combined = self._accept(TokenKind.EXPLODE) is not None
        return Explode(limit=self._parse_limit(1), combined=combined)

    def _parse_reroll(self, nested: tuple[Modifier, ...]) -> ReRoll:
        self._expect(TokenKind.REROLL, "Expected 'r'.")
        limit = self._parse_limit(self._settings.reroll_limit)
        trigger = None
        tok = self._peek()
        if tok is not None and tok.kind is TokenKind.COMPARISON:
            trigger = self._parse_comparison()
        return ReRoll(nested=nested, limit=limit, trigger=trigger)

    def _parse_unique(self, nested: tuple[Modifier, ...]) -> Unique:
        self._expect(TokenKind.UNIQUE, "Expected 'u'.")
        return Unique(nested=nested, limit=self._parse_limit(self._settings.unique_limit))

    def _parse_selection(self) -> Selection:
        tok = self._next()
        if tok.kind is TokenKind.KEEP:
            kind = "keep_highest"
            if self._accept(TokenKind.LOWEST):
                kind = "keep_lowest"
            else:
                self._accept(TokenKind.HIGHEST)
        else:
            if self._accept(TokenKind.HIGHEST):
                kind = "drop_highest"
            elif self._accept(TokenKind.LOWEST):
                kind = "drop_lowest"
            else:
                raise ParseError(
                    "Expected 'h' or 'l' after the drop marker. Example: '4d6dl1'.",
                    self._peek(),
                )

        count = self._accept(TokenKind.NUMBER)
        return Selection(kind=kind, count=count.value if count is not None else 1)


def _limit_suffix(limit: int, default: int) -> str:
    return "" if limit == default else str(limit)


def _build_modifier(modifier: Modifier, settings: Settings) -> str:
    if isinstance(modifier, Explode):
        marks = "!!" if modifier.combined else "!"
        return marks + _limit_suffix(modifier.limit, 1)
    if isinstance(modifier, ReRoll):
        trigger = ""
        if modifier.trigger is not None:
            trigger = f"{modifier.trigger.operator}{modifier.trigger.operand}"
        return "r" + _limit_suffix(modifier.limit, settings.reroll_limit) + trigger
    if isinstance(modifier, Unique):
        return "u" + _limit_suffix(modifier.limit, settings.unique_limit)
    return "".join(f"{c.operator}{c.operand}" for c in modifier.comparisons)


def build_normalized_expression(term: ParsedTerm, settings: Settings | None = None) -> str:
    """Render a tree back into canonical notation."""
    settings = settings or get_settings()

    if isinstance(term, ConstantTerm):
        return str(term.value)
    if isinstance(term, DieTerm):
        chunks = [f"{term.count}d{term.die.describe()}"]
        chunks.extend(_build_modifier(m, settings) for m in term.modifiers)
        if term.selection is not None:
            chunks.append(f"{_SELECTION_SUFFIX[term.selection.kind]}{term.selection.count}")
        return "".join(chunks)
    if isinstance(term, BinaryTerm):
        left = build_normalized_expression(term.left, settings)
        right = build_normalized_expression(term.right, settings)
        return f"{left} {term.operator} {right}"
    if isinstance(term, UnaryTerm):
        return f"{term.operator}{build_normalized_expression(term.operand, settings)}"
    return f"({build_normalized_expression(term.inner, settings)})"


def parse_tokens(tokens: Sequence[Token], source: str = "") -> ParsedExpression:
    if not tokens:
        raise ParseError(f"Empty input. {_EXAMPLE}")

    settings = get_settings()
    parser = _Parser(tokens, settings)
    tree = parser.parse_additive()

    trailing = parser.remaining()
    if trailing:
        logger.warning(
            "Ignoring %d trailing token(s) starting with '%s' at position %d in %r",
            len(trailing),
            trailing[0],
            trailing[0].position,
            source,
        )

    return ParsedExpression(
        input=source,
        tree=tree,
        normalized_expression=build_normalized_expression(tree, settings),
        trailing=trailing,
    )


def parse_request(text: str) -> ParsedExpression:
    if not text or not text.strip():
        raise ParseError(f"Empty input. {_EXAMPLE}")
    return parse_tokens(tokenize(text), source=text)
