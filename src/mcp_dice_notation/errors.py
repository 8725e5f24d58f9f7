from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .tokenizer import Token


class DiceError(ValueError):
    """User-facing errors. Messages start with a stable ``[CODE]`` prefix."""

    code = "DICE_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        if code is not None:
            self.code = code
        super().__init__(f"[{self.code}] {message}")


class LexError(DiceError):
    code = "UNEXPECTED_CHARACTER"

    def __init__(self, character: str, position: int) -> None:
        self.character = character
        self.position = position
        super().__init__(f"Unexpected character '{character}' at position {position}.")


class ParseError(DiceError):
    code = "UNEXPECTED_TOKEN"

    def __init__(self, message: str, token: Token | None = None, code: str | None = None) -> None:
        self.token = token
        if token is None and code is None:
            code = "UNEXPECTED_END"
        super().__init__(message, code)


class ModifierError(DiceError):
    code = "MODIFIER_ERROR"
