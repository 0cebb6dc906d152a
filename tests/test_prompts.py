from __future__ import annotations

from askexcel.prompts import build_prompt


def test_prompt_embeds_instruction_and_context_verbatim() -> None:
    prompt = build_prompt("sum column B into B10", "Sheet: Q3, Selection: $A$1:$C$4")

    assert prompt.startswith("Generate AppleScript for Excel on Mac.")
    assert "CONTEXT: Sheet: Q3, Selection: $A$1:$C$4\n" in prompt
    assert "TASK: sum column B into B10\n" in prompt
    assert prompt.rstrip().endswith("NOW GENERATE CODE:")


def test_prompt_carries_rules_and_five_examples() -> None:
    prompt = build_prompt("anything", "Sheet: Unknown")

    assert 'Always start with: tell application "Microsoft Excel"' in prompt
    assert "tell active sheet" in prompt
    for number in range(1, 6):
        assert f"Example {number} -" in prompt
    assert "Example 6" not in prompt


def test_prompt_is_deterministic() -> None:
    assert build_prompt("x", "y") == build_prompt("x", "y")
    assert build_prompt("x", "y") != build_prompt("x", "z")
