import logging

import pytest

from mcp_dice_notation.models import (
    BinaryTerm,
    Comparison,
    Condition,
    ConstantTerm,
    DieTerm,
    Explode,
    FaceRange,
    FaceSet,
    GroupTerm,
    ReRoll,
    Selection,
    UnaryTerm,
    Unique,
    fudge_die,
)
from mcp_dice_notation.parser import parse_request


D6 = FaceRange(1, 6)


@pytest.mark.parametrize(
    ("text", "normalized_expression", "tree"),
    [
        ("4d6", "4d6", DieTerm(count=4, die=D6)),
        ("d20", "1d20", DieTerm(count=1, die=FaceRange(1, 20))),
        ("4d6k3", "4d6k3", DieTerm(count=4, die=D6, selection=Selection("keep_highest", 3))),
        ("4d6kh3", "4d6k3", DieTerm(count=4, die=D6, selection=Selection("keep_highest", 3))),
        ("4d6kl", "4d6kl1", DieTerm(count=4, die=D6, selection=Selection("keep_lowest", 1))),
        ("4d6dh1", "4d6dh1", DieTerm(count=4, die=D6, selection=Selection("drop_highest", 1))),
        ("4d6dl2", "4d6dl2", DieTerm(count=4, die=D6, selection=Selection("drop_lowest", 2))),
        (
            "4d6k3!2",
            "4d6!2k3",
            DieTerm(count=4, die=D6, modifiers=(Explode(limit=2),), selection=Selection("keep_highest", 3)),
        ),
        ("1d6!!i", "1d6!!1000", DieTerm(count=1, die=D6, modifiers=(Explode(limit=1000, combined=True),))),
        (
            "2d[1,10]r<=2",
            "2d10r<=2",
            DieTerm(count=2, die=FaceRange(1, 10), modifiers=(ReRoll(trigger=Comparison("<=", 2)),)),
        ),
        ("1d[-2,2]", "1d[-2,2]", DieTerm(count=1, die=FaceRange(-2, 2))),
        ("2d[1|3|5]u", "2d[1|3|5]u", DieTerm(count=2, die=FaceSet((1, 3, 5)), modifiers=(Unique(),))),
        ("1d[7]", "1d[7]", DieTerm(count=1, die=FaceSet((7,)))),
        ("1dF", "1dF", DieTerm(count=1, die=fudge_die())),
        ("1d%", "1d100", DieTerm(count=1, die=FaceRange(1, 100))),
        ("d% % 7", "1d100 % 7", BinaryTerm(DieTerm(count=1, die=FaceRange(1, 100)), "%", ConstantTerm(7))),
        (
            "1d6!r3",
            "1d6!r3",
            DieTerm(count=1, die=D6, modifiers=(Explode(), ReRoll(nested=(Explode(),), limit=3))),
        ),
        (
            "1d6!u5r",
            "1d6!u5r",
            DieTerm(
                count=1,
                die=D6,
                modifiers=(
                    Explode(),
                    Unique(nested=(Explode(),), limit=5),
                    ReRoll(nested=(Explode(), Unique(nested=(Explode(),), limit=5))),
                ),
            ),
        ),
        ("3d6>=5", "3d6>=5", DieTerm(count=3, die=D6, modifiers=(Condition((Comparison(">=", 5),)),))),
        (
            "1d6>3<6",
            "1d6>3<6",
            DieTerm(count=1, die=D6, modifiers=(Condition((Comparison(">", 3), Comparison("<", 6))),)),
        ),
        ("4dF>=-1", "4dF>=-1", DieTerm(count=4, die=fudge_die(), modifiers=(Condition((Comparison(">=", -1),)),))),
        (
            "1 + 2 * 3",
            "1 + 2 * 3",
            BinaryTerm(ConstantTerm(1), "+", BinaryTerm(ConstantTerm(2), "*", ConstantTerm(3))),
        ),
        (
            "8 - 4 - 2",
            "8 - 4 - 2",
            BinaryTerm(BinaryTerm(ConstantTerm(8), "-", ConstantTerm(4)), "-", ConstantTerm(2)),
        ),
        (
            "-(1 + 2) % 2",
            "-(1 + 2) % 2",
            BinaryTerm(
                UnaryTerm("-", GroupTerm(BinaryTerm(ConstantTerm(1), "+", ConstantTerm(2)))),
                "%",
                ConstantTerm(2),
            ),
        ),
        (
            "2d6 + 1d4 - 1",
            "2d6 + 1d4 - 1",
            BinaryTerm(
                BinaryTerm(DieTerm(count=2, die=D6), "+", DieTerm(count=1, die=FaceRange(1, 4))),
                "-",
                ConstantTerm(1),
            ),
        ),
    ],
)
def test_parse_acceptance(text, normalized_expression, tree):
    parsed = parse_request(text)
    assert parsed.normalized_expression == normalized_expression
    assert parsed.tree == tree
    assert parsed.trailing == ()


def test_selection_may_follow_or_precede_modifiers():
    assert parse_request("4d6k3!2").tree == parse_request("4d6!2k3").tree


def test_condition_closes_the_modifier_chain():
    parsed = parse_request("1d6>=5!")
    assert parsed.tree.modifiers == (Condition((Comparison(">=", 5),)),)
    assert [t.text for t in parsed.trailing] == ["!"]


def test_trailing_tokens_are_reported_not_fatal(caplog):
    with caplog.at_level(logging.WARNING, logger="mcp_dice_notation.parser"):
        parsed = parse_request("2d6 3 4")

    assert parsed.tree == DieTerm(count=2, die=D6)
    assert [t.text for t in parsed.trailing] == ["3", "4"]
    assert "trailing" in caplog.text
