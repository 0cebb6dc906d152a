from __future__ import annotations

from textwrap import dedent

from askexcel.sanitizer import clean_script, is_valid_script

SCRIPT = dedent(
    """
    tell application "Microsoft Excel"
      activate
      return "ok"
    end tell
    """
).strip()


def test_strips_fences_and_surrounding_prose() -> None:
    raw = f"Sure! Here you go:\n```AppleScript\n{SCRIPT}\n```\nLet me know if that helps."
    assert clean_script(raw) == SCRIPT


def test_osascript_and_bare_fences_removed() -> None:
    assert clean_script(f"```osascript\n{SCRIPT}\n```") == SCRIPT
    assert clean_script(f"```\n{SCRIPT}```") == SCRIPT


def test_clean_script_is_idempotent() -> None:
    once = clean_script(f"  \n```applescript\n{SCRIPT}\n```  ")
    assert clean_script(once) == once


def test_text_without_markers_returned_trimmed() -> None:
    raw = "  I cannot help with that.  "
    cleaned = clean_script(raw)
    assert cleaned == "I cannot help with that."
    assert not is_valid_script(cleaned)


def test_closing_marker_before_opening_is_left_unbounded() -> None:
    raw = 'end tell\ntell application "Microsoft Excel"'
    assert clean_script(raw) == raw


def test_trailing_prose_repeating_closing_marker_is_swallowed() -> None:
    raw = f"{SCRIPT}\nRemember to end tell blocks with end tell"
    cleaned = clean_script(raw)
    assert cleaned.startswith(SCRIPT)
    assert cleaned.endswith("end tell")
    assert "Remember" in cleaned


def test_is_valid_script_requires_both_markers() -> None:
    assert is_valid_script(SCRIPT)
    assert not is_valid_script('tell application "Microsoft Excel"')
    assert not is_valid_script("end tell")
    assert not is_valid_script("")
    assert not is_valid_script(None)


def test_none_input_yields_empty_string() -> None:
    assert clean_script(None) == ""
