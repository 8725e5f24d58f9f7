import pytest

from mcp_dice_notation.errors import DiceError, LexError, ParseError
from mcp_dice_notation.parser import parse_request


@pytest.mark.parametrize(
    ("text", "prefix"),
    [
        ("", "[UNEXPECTED_END]"),
        ("   ", "[UNEXPECTED_END]"),
        ("2d", "[UNEXPECTED_END]"),
        ("+", "[UNEXPECTED_END]"),
        ("(1 + 2", "[UNEXPECTED_END]"),
        ("1d[1,6", "[UNEXPECTED_END]"),
        ("1d6r<", "[UNEXPECTED_END]"),
        ("*3", "[UNEXPECTED_TOKEN]"),
        (")", "[UNEXPECTED_TOKEN]"),
        ("1dk", "[UNEXPECTED_TOKEN]"),
        ("1d[1|]", "[UNEXPECTED_TOKEN]"),
        ("1d[1,2,3]", "[UNEXPECTED_TOKEN]"),
        ("2d0", "[INVALID_DIE]"),
        ("1d[6,1]", "[INVALID_DIE]"),
        ("4d6k2k1", "[DUPLICATE_SELECTION]"),
    ],
)
def test_parse_rejections(text, prefix):
    with pytest.raises(ParseError) as exc:
        parse_request(text)
    assert str(exc.value).startswith(prefix)


def test_parse_error_names_the_offending_token():
    with pytest.raises(ParseError) as exc:
        parse_request("1 + * 2")
    assert exc.value.token.text == "*"
    assert exc.value.token.position == 4


def test_lexical_errors_surface_through_the_parser():
    with pytest.raises(LexError) as exc:
        parse_request("1d6 # comment")
    assert isinstance(exc.value, DiceError)
    assert exc.value.position == 4
