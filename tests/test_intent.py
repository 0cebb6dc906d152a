from __future__ import annotations

import pytest

from askexcel.intent import RULES, find_builtin_script, match_intent
from askexcel.scripts import CLOSING_MARKER, OPENING_MARKER, SCRIPTS, Intent


@pytest.mark.parametrize(
    "instruction, expected",
    [
        ("Test connection", Intent.CONNECTION_TEST),
        ("bold the header row", Intent.BOLD_HEADER),
        ("Bold row 1 please", Intent.BOLD_HEADER),
        ("make the selection bold", Intent.BOLD_SELECTION),
        ("apply financial style", Intent.FINANCIAL_STYLE),
        ("color inputs blue", Intent.FINANCIAL_STYLE),
        ("add borders to the table", Intent.BORDERS),
        ("put a border around the selection", Intent.BORDERS_SELECTION),
        ("Autofit columns", Intent.AUTOFIT),
        ("auto size so it fits", Intent.AUTOFIT),
        ("show these as dollars", Intent.CURRENCY),
        ("format as percent", Intent.PERCENT),
        ("read the selection", Intent.READ_SELECTION),
        ("clear selection", Intent.CLEAR_SELECTION),
        ("freeze the top row", Intent.FREEZE_TOP_ROW),
        ("unfreeze panes", Intent.UNFREEZE),
    ],
)
def test_match_intent_routes_keywords(instruction: str, expected: Intent) -> None:
    assert match_intent(instruction) is expected


def test_first_rule_wins_on_overlap() -> None:
    # Both bold-header and bold-selection are satisfied; header comes first.
    assert match_intent("bold the header and the selection") is Intent.BOLD_HEADER
    # "test connection" beats everything else mentioned alongside it.
    assert match_intent("test connection then bold row 1") is Intent.CONNECTION_TEST


def test_unfreeze_top_row_resolves_to_freeze() -> None:
    assert match_intent("unfreeze top row") is Intent.FREEZE_TOP_ROW


@pytest.mark.parametrize("instruction", ["", "   ", None, "make column totals stand out"])
def test_no_match_returns_none(instruction) -> None:
    assert match_intent(instruction) is None
    assert find_builtin_script(instruction) is None


def test_builtin_script_is_returned_unchanged() -> None:
    script = find_builtin_script("bold the header row")
    assert script == SCRIPTS[Intent.BOLD_HEADER]
    assert find_builtin_script("bold the header row") == script


def test_catalog_covers_every_intent_with_well_formed_script() -> None:
    assert set(SCRIPTS) == set(Intent)
    assert {rule.intent for rule in RULES} <= set(SCRIPTS)
    for script in SCRIPTS.values():
        assert script.startswith(f'{OPENING_MARKER} "Microsoft Excel"')
        assert script.endswith(CLOSING_MARKER)
        assert "return" in script
