"""Instruction pipeline: route, generate, sanitize, validate, execute, report."""
from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol

from askexcel.config import Settings
from askexcel.errors import (
    ApplicationUnreachable,
    AskExcelError,
    EmptyInstruction,
    InvalidGeneratedScript,
    ScriptReportedError,
)
from askexcel.executor import CONTEXT_NOT_RUNNING, ContextSnapshot, ScriptExecutor
from askexcel.history import HistoryStore
from askexcel.intent import match_intent
from askexcel.model_adapter import ModelAdapter
from askexcel.prompts import build_prompt
from askexcel.sanitizer import clean_script, is_valid_script
from askexcel.scripts import SCRIPTS, Intent


logger = logging.getLogger(__name__)


class CompletionModel(Protocol):
    async def complete(self, prompt: str) -> str: ...


class RunState(str, enum.Enum):
    IDLE = "Idle"
    CHECKING_APP = "CheckingApp"
    READING_CONTEXT = "ReadingContext"
    MATCHED_BUILTIN = "MatchedBuiltin"
    GENERATING_SCRIPT = "GeneratingScript"
    SANITIZING = "Sanitizing"
    VALIDATING = "Validating"
    EXECUTING = "Executing"
    SUCCESS = "Success"
    FAILED = "Failed"


@dataclass
class RunResult:
    success: bool
    state: RunState
    instruction: str
    result: str = ""
    script: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    source: Optional[str] = None
    intent: Optional[Intent] = None
    context: Optional[str] = None
    elapsed: float = 0.0
    transitions: List[RunState] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "state": self.state.value,
            "instruction": self.instruction,
            "result": self.result,
            "script": self.script,
            "error": self.error,
            "error_kind": self.error_kind,
            "source": self.source,
            "intent": self.intent.value if self.intent else None,
            "context": self.context,
            "elapsed": round(self.elapsed, 3),
            "transitions": [state.value for state in self.transitions],
        }


class Orchestrator:
    """Sequence one instruction through the pipeline and report the outcome.

    Every taxonomy error ends in a ``Failed`` result; nothing is retried.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        executor: Optional[ScriptExecutor] = None,
        model: Optional[CompletionModel] = None,
        history: Optional[HistoryStore] = None,
    ) -> None:
        self.settings = settings
        self.executor = executor or ScriptExecutor()
        self.model = model or ModelAdapter(settings)
        self.history = history

    async def run(self, instruction: str, *, intent: Optional[Intent] = None) -> RunResult:
        """Drive ``instruction`` to a terminal state.

        Passing ``intent`` skips keyword matching and runs that catalog script.
        """
        run = RunResult(success=False, state=RunState.IDLE, instruction=instruction, transitions=[RunState.IDLE])
        started = time.monotonic()
        try:
            await self._drive(run, intent)
        except AskExcelError as exc:
            self._advance(run, RunState.FAILED)
            run.error = exc.message
            run.error_kind = exc.kind
            logger.info("Instruction failed (%s): %s", exc.kind, exc.message)
        else:
            self._advance(run, RunState.SUCCESS)
            run.success = True
            self._record_history(instruction)
            logger.info("Instruction succeeded via %s", run.source)
        run.elapsed = time.monotonic() - started
        return run

    async def _drive(self, run: RunResult, forced: Optional[Intent] = None) -> None:
        instruction = run.instruction
        if not instruction or not instruction.strip():
            raise EmptyInstruction()

        self._advance(run, RunState.CHECKING_APP)
        running = self.executor.is_running()

        self._advance(run, RunState.READING_CONTEXT)
        if running:
            snapshot = await self.executor.read_context()
        else:
            snapshot = ContextSnapshot(CONTEXT_NOT_RUNNING, reachable=False)
        run.context = snapshot.text

        intent = forced if forced is not None else match_intent(instruction)
        if intent is not None:
            # Built-ins are trusted and do not depend on the context.
            self._advance(run, RunState.MATCHED_BUILTIN)
            run.intent = intent
            run.source = "builtin"
            run.script = SCRIPTS[intent]
        else:
            if not snapshot.reachable:
                raise ApplicationUnreachable()
            self._advance(run, RunState.GENERATING_SCRIPT)
            run.source = "ai"
            raw = await self.model.complete(build_prompt(instruction, snapshot.text))

            self._advance(run, RunState.SANITIZING)
            run.script = clean_script(raw)

            self._advance(run, RunState.VALIDATING)
            if not is_valid_script(run.script):
                raise InvalidGeneratedScript()

        self._advance(run, RunState.EXECUTING)
        result = await self.executor.execute(run.script)
        run.result = result
        if result.startswith("ERROR"):
            raise ScriptReportedError(result)

    def _advance(self, run: RunResult, state: RunState) -> None:
        logger.debug("%s -> %s", run.state.value, state.value)
        run.state = state
        run.transitions.append(state)

    def _record_history(self, instruction: str) -> None:
        if self.history is None:
            return
        try:
            self.history.record(instruction)
        except OSError as exc:
            logger.warning("Failed to save history: %s", exc)


__all__ = ["CompletionModel", "Orchestrator", "RunResult", "RunState"]
