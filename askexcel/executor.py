"""Run AppleScript against Microsoft Excel and classify failures."""
from __future__ import annotations

import asyncio
import logging
import platform
import re
import subprocess
from dataclasses import dataclass
from typing import Callable, Optional

import psutil  # type: ignore[import-untyped]

from askexcel.errors import (
    AppleScriptError,
    ApplicationUnreachable,
    AskExcelError,
    PermissionDenied,
    RangeOrCellNotFound,
    UnclassifiedExecutionError,
)
from askexcel.scripts import (
    ACTIVATE_SCRIPT,
    APP_NAME,
    CONTEXT_SCRIPT,
    READ_SHEET_SCRIPT,
    TEST_CONNECTION_SCRIPT,
)

logger = logging.getLogger(__name__)

Runner = Callable[[str, Optional[float]], str]

CONTEXT_TIMEOUT_SECONDS = 2.0
SETTLE_DELAY_SECONDS = 0.1

CONTEXT_BUSY = "Context unavailable (Excel busy)"
CONTEXT_NOT_RUNNING = f"{APP_NAME} is not running"

_ACCESSIBILITY_MESSAGE = (
    "Excel needs Accessibility permissions. Go to System Settings > Privacy & Security > "
    "Accessibility and add the application running askexcel (for example Terminal)."
)
_AUTOMATION_MESSAGE = (
    "Excel needs Automation permissions. Go to System Settings > Privacy & Security > "
    "Automation and allow the application running askexcel to control Microsoft Excel."
)

# osascript reports "... (-1728)" at the end of execution errors.
_ERROR_CODE_RE = re.compile(r"\((-?\d+)\)\s*$")

_PERMISSION_CODES = {
    -1743: "Automation",  # not authorized to send Apple events
    -1719: "Accessibility",  # assistive access not enabled
    -25211: "Accessibility",
    1002: "Accessibility",  # not allowed to send keystrokes
}
_NOT_FOUND_CODES = {-1728}
_UNREACHABLE_CODES = {-600, -609}

_PERMISSION_PHRASES = (
    "not allowed to send keystrokes",
    "not allowed assistive access",
)


@dataclass(frozen=True)
class ContextSnapshot:
    text: str
    reachable: bool = True


def parse_error_code(message: str) -> int | None:
    match = _ERROR_CODE_RE.search(message.strip())
    if match:
        return int(match.group(1))
    return None


def _permission_error(permission: str) -> PermissionDenied:
    message = _AUTOMATION_MESSAGE if permission == "Automation" else _ACCESSIBILITY_MESSAGE
    return PermissionDenied(permission, message)


def classify_error(error: AppleScriptError) -> AskExcelError:
    """Map a raw osascript failure onto the error taxonomy.

    Structured error numbers are consulted first; phrase matching is the
    fallback for messages that carry no number.
    """
    code = error.code if error.code is not None else parse_error_code(error.message)
    if code in _PERMISSION_CODES:
        return _permission_error(_PERMISSION_CODES[code])
    if code in _NOT_FOUND_CODES:
        return RangeOrCellNotFound()
    if code in _UNREACHABLE_CODES:
        return ApplicationUnreachable()

    lowered = error.message.lower()
    if any(phrase in lowered for phrase in _PERMISSION_PHRASES):
        return _permission_error("Accessibility")
    if "missing value" in lowered:
        return RangeOrCellNotFound()
    return UnclassifiedExecutionError(error.message)


def run_osascript(script: str, timeout: float | None = None) -> str:
    """Execute AppleScript through ``osascript`` and return its stdout."""
    if platform.system() != "Darwin":
        raise AppleScriptError("AppleScript automation requires macOS")
    try:
        completed = subprocess.run(
            ["osascript", "-e", script],
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise AppleScriptError(f"osascript timed out after {timeout}s") from exc
    except OSError as exc:
        raise AppleScriptError(f"Failed to launch osascript: {exc}") from exc
    if completed.returncode != 0:
        message = completed.stderr.strip() or "AppleScript execution failed"
        raise AppleScriptError(message, parse_error_code(message))
    return completed.stdout.strip()


def excel_process_running() -> bool:
    for proc in psutil.process_iter(["name"]):
        if (proc.info.get("name") or "") == APP_NAME:
            return True
    return False


class ScriptExecutor:
    """Bring Excel forward and run scripts against it."""

    def __init__(
        self,
        *,
        runner: Runner | None = None,
        app_probe: Callable[[], bool] | None = None,
        settle_delay: float = SETTLE_DELAY_SECONDS,
    ) -> None:
        self._runner: Runner = runner or run_osascript
        self._app_probe = app_probe or excel_process_running
        self._settle_delay = settle_delay

    def is_running(self) -> bool:
        try:
            return bool(self._app_probe())
        except psutil.Error as exc:
            logger.warning("Process lookup failed: %s", exc)
            return False

    async def read_context(self) -> ContextSnapshot:
        try:
            result = self._runner(CONTEXT_SCRIPT, CONTEXT_TIMEOUT_SECONDS)
        except AppleScriptError as exc:
            logger.debug("Context probe failed: %s", exc.message)
            return ContextSnapshot(CONTEXT_BUSY)
        return ContextSnapshot(result or "Sheet: Unknown")

    async def activate(self) -> None:
        try:
            self._runner(ACTIVATE_SCRIPT, None)
        except AppleScriptError as exc:
            logger.warning("Activation error: %s", exc.message)
        await asyncio.sleep(self._settle_delay)

    async def execute(self, script: str) -> str:
        """Run ``script`` and return its result; failures raise an ``AskExcelError``."""
        logger.debug("Executing script:\n%s", script)
        await self.activate()
        try:
            result = self._runner(script, None)
        except AppleScriptError as exc:
            logger.warning("Script error: %s", exc.message)
            raise classify_error(exc) from exc
        logger.debug("Script result: %s", result)
        return result.strip() or "Executed successfully"

    async def test_connection(self) -> str:
        try:
            return self._runner(TEST_CONNECTION_SCRIPT, None)
        except AppleScriptError as exc:
            raise classify_error(exc) from exc

    async def read_sheet(self) -> str:
        if not self.is_running():
            raise ApplicationUnreachable()
        try:
            return self._runner(READ_SHEET_SCRIPT, None)
        except AppleScriptError as exc:
            raise classify_error(exc) from exc


__all__ = [
    "CONTEXT_BUSY",
    "CONTEXT_NOT_RUNNING",
    "ContextSnapshot",
    "ScriptExecutor",
    "classify_error",
    "excel_process_running",
    "parse_error_code",
    "run_osascript",
]
