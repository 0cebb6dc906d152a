"""Pre-built AppleScript for Excel operations that bypass the AI providers.

Every catalog script starts with ``tell application "Microsoft Excel"``, ends
with ``end tell`` and returns a confirmation string.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

APP_NAME = "Microsoft Excel"
OPENING_MARKER = "tell application"
CLOSING_MARKER = "end tell"


class Intent(str, enum.Enum):
    CONNECTION_TEST = "connection_test"
    BOLD_HEADER = "bold_header"
    BOLD_SELECTION = "bold_selection"
    ITALIC_SELECTION = "italic_selection"
    BLUE_FONT = "blue_font"
    RED_FONT = "red_font"
    GREEN_FONT = "green_font"
    FINANCIAL_STYLE = "financial_style"
    BORDERS = "borders"
    BORDERS_SELECTION = "borders_selection"
    AUTOFIT = "autofit"
    CURRENCY = "currency"
    PERCENT = "percent"
    NUMBER = "number"
    READ_SELECTION = "read_selection"
    READ_A1 = "read_a1"
    SHEET_INFO = "sheet_info"
    CLEAR_SELECTION = "clear_selection"
    DELETE_ROW = "delete_row"
    INSERT_ROW = "insert_row"
    FREEZE_TOP_ROW = "freeze_top_row"
    UNFREEZE = "unfreeze"


_SCRIPTS: dict[Intent, str] = {
    # Basic formatting
    Intent.BOLD_HEADER: """
tell application "Microsoft Excel"
  activate
  set bold of font object of row 1 of active sheet to true
  return "Made row 1 bold"
end tell""",
    Intent.BOLD_SELECTION: """
tell application "Microsoft Excel"
  activate
  set bold of font object of selection to true
  return "Made selection bold"
end tell""",
    Intent.ITALIC_SELECTION: """
tell application "Microsoft Excel"
  activate
  set italic of font object of selection to true
  return "Made selection italic"
end tell""",
    # Font colors
    Intent.BLUE_FONT: """
tell application "Microsoft Excel"
  activate
  set color of font object of selection to {0, 0, 255}
  return "Set selection font to blue"
end tell""",
    Intent.RED_FONT: """
tell application "Microsoft Excel"
  activate
  set color of font object of selection to {255, 0, 0}
  return "Set selection font to red"
end tell""",
    Intent.GREEN_FONT: """
tell application "Microsoft Excel"
  activate
  set color of font object of selection to {0, 128, 0}
  return "Set selection font to green"
end tell""",
    # Borders
    Intent.BORDERS: """
tell application "Microsoft Excel"
  activate
  tell used range of active sheet
    set weight of (get border which edge left) to border weight thin
    set weight of (get border which edge right) to border weight thin
    set weight of (get border which edge top) to border weight thin
    set weight of (get border which edge bottom) to border weight thin
  end tell
  return "Added borders to used range"
end tell""",
    Intent.BORDERS_SELECTION: """
tell application "Microsoft Excel"
  activate
  tell selection
    set weight of (get border which edge left) to border weight thin
    set weight of (get border which edge right) to border weight thin
    set weight of (get border which edge top) to border weight thin
    set weight of (get border which edge bottom) to border weight thin
  end tell
  return "Added borders to selection"
end tell""",
    # Column sizing
    Intent.AUTOFIT: """
tell application "Microsoft Excel"
  activate
  autofit column of used range of active sheet
  return "Auto-fitted columns"
end tell""",
    # Number formats
    Intent.CURRENCY: """
tell application "Microsoft Excel"
  activate
  set number format of selection to "$#,##0.00"
  return "Formatted selection as currency"
end tell""",
    Intent.PERCENT: """
tell application "Microsoft Excel"
  activate
  set number format of selection to "0.0%"
  return "Formatted selection as percent"
end tell""",
    Intent.NUMBER: """
tell application "Microsoft Excel"
  activate
  set number format of selection to "#,##0.00"
  return "Formatted selection as number"
end tell""",
    # Inputs blue, formulas black, headers bold
    Intent.FINANCIAL_STYLE: """
tell application "Microsoft Excel"
  activate
  tell active sheet
    set rng to used range
    set rowCount to count rows of rng
    set colCount to count columns of rng
    set constCount to 0
    set formulaCount to 0
    repeat with r from 1 to rowCount
      repeat with c from 1 to colCount
        set theCell to cell r of column c of rng
        if value of theCell is not missing value then
          if has formula of theCell then
            set color of font object of theCell to {0, 0, 0}
            set formulaCount to formulaCount + 1
          else
            set color of font object of theCell to {0, 0, 255}
            set constCount to constCount + 1
          end if
        end if
      end repeat
    end repeat
    set bold of font object of row 1 of rng to true
    return "Applied financial style: " & constCount & " inputs (blue), " & formulaCount & " formulas (black), headers bold"
  end tell
end tell""",
    # Read operations
    Intent.READ_SELECTION: """
tell application "Microsoft Excel"
  set v to value of selection
  if v is missing value then
    return "Selection is empty"
  else
    return v as text
  end if
end tell""",
    Intent.READ_A1: """
tell application "Microsoft Excel"
  set v to value of range "A1" of active sheet
  if v is missing value then
    return "A1 is empty"
  else
    return "A1 = " & (v as text)
  end if
end tell""",
    Intent.SHEET_INFO: """
tell application "Microsoft Excel"
  tell active sheet
    set info to "Sheet: " & name
    try
      set rng to used range
      set info to info & ", Range: " & (get address of rng)
    end try
    return info
  end tell
end tell""",
    # Cell operations
    Intent.CLEAR_SELECTION: """
tell application "Microsoft Excel"
  activate
  clear contents selection
  return "Cleared selection"
end tell""",
    Intent.DELETE_ROW: """
tell application "Microsoft Excel"
  activate
  delete entire row of selection
  return "Deleted row"
end tell""",
    Intent.INSERT_ROW: """
tell application "Microsoft Excel"
  activate
  insert into range (entire row of selection) shift shift down
  return "Inserted row"
end tell""",
    # Freeze panes
    Intent.FREEZE_TOP_ROW: """
tell application "Microsoft Excel"
  activate
  tell active sheet
    set freeze panes of (get window 1) to false
    select range "A2"
    set freeze panes of (get window 1) to true
  end tell
  return "Froze top row"
end tell""",
    Intent.UNFREEZE: """
tell application "Microsoft Excel"
  activate
  set freeze panes of (get window 1) to false
  return "Unfroze panes"
end tell""",
    Intent.CONNECTION_TEST: """
tell application "Microsoft Excel"
  activate
  if not (exists active workbook) then
    return "ERROR: No workbook open"
  end if
  tell active sheet
    set sheetName to name
    set testVal to value of range "A1"
    if testVal is missing value then
      set testVal to "(empty)"
    end if
    return "OK: Sheet '" & sheetName & "', A1=" & (testVal as text)
  end tell
end tell""",
}

SCRIPTS: Mapping[Intent, str] = MappingProxyType({intent: text.strip() for intent, text in _SCRIPTS.items()})


# Auxiliary scripts used by the executor and the command line.

ACTIVATE_SCRIPT = """
tell application "Microsoft Excel"
  activate
end tell""".strip()

CONTEXT_SCRIPT = """
tell application "Microsoft Excel"
  if not (exists active workbook) then return "No workbook"
  tell active sheet
    set sel to selection
    return "Sheet: " & name & ", Selection: " & (get address of sel)
  end tell
end tell""".strip()

TEST_CONNECTION_SCRIPT = """
tell application "Microsoft Excel"
  activate
  if exists active workbook then
    set sheetName to name of active sheet
    set testCell to value of range "A1" of active sheet
    return "Connected: Sheet '" & sheetName & "', A1=" & (testCell as text)
  else
    return "Excel open but no workbook"
  end if
end tell""".strip()

READ_SHEET_SCRIPT = """
tell application "Microsoft Excel"
  if not (exists active workbook) then return "No workbook open"

  tell active sheet
    set output to "Sheet: " & name & return & return

    try
      set sel to selection
      set selAddr to get address of sel
      set output to output & "Selection: " & selAddr & return

      set vals to value of sel
      if class of vals is list then
        repeat with row in vals
          if class of row is list then
            set rowStr to ""
            repeat with cell in row
              if cell is missing value then
                set rowStr to rowStr & "[empty] "
              else
                set rowStr to rowStr & (cell as text) & " "
              end if
            end repeat
            set output to output & rowStr & return
          else
            set output to output & (row as text) & return
          end if
        end repeat
      else
        set output to output & "Value: " & (vals as text) & return
      end if
    on error
      set output to output & "Could not read selection" & return
    end try

    try
      set rng to used range
      set output to output & return & "Used range: " & (get address of rng)
    end try

    return output
  end tell
end tell""".strip()


@dataclass(frozen=True)
class QuickAction:
    id: str
    title: str
    instruction: str


QUICK_ACTIONS: tuple[QuickAction, ...] = (
    QuickAction("test-connection", "Test Connection", "Test connection to Excel"),
    QuickAction("financial-style", "Financial Style", "Apply financial style with blue inputs and black formulas"),
    QuickAction("bold-headers", "Bold Headers", "Bold row 1"),
    QuickAction("format-currency", "Format Currency", "Format selection as currency"),
    QuickAction("format-percent", "Format Percent", "Format selection as percent"),
    QuickAction("add-borders", "Add Borders", "Add borders to used range"),
    QuickAction("autofit-columns", "Auto-fit Columns", "Autofit columns"),
    QuickAction("read-selection", "Read Selection", "Read selection values"),
    QuickAction("freeze-top-row", "Freeze Top Row", "Freeze top row"),
)


def find_quick_action(action_id: str) -> QuickAction | None:
    wanted = action_id.strip().lower()
    return next((action for action in QUICK_ACTIONS if action.id == wanted), None)


__all__ = [
    "ACTIVATE_SCRIPT",
    "APP_NAME",
    "CLOSING_MARKER",
    "CONTEXT_SCRIPT",
    "Intent",
    "OPENING_MARKER",
    "QUICK_ACTIONS",
    "QuickAction",
    "READ_SHEET_SCRIPT",
    "SCRIPTS",
    "TEST_CONNECTION_SCRIPT",
    "find_quick_action",
]
