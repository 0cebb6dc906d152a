"""Error taxonomy shared by the routing, generation and execution layers."""
from __future__ import annotations


class AskExcelError(RuntimeError):
    """Base class for every failure that is reported back to the caller."""

    kind = "AskExcelError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class EmptyInstruction(AskExcelError):
    kind = "EmptyInstruction"

    def __init__(self) -> None:
        super().__init__("Instruction is empty. Describe what Excel should do.")


class CredentialMissing(AskExcelError):
    kind = "CredentialMissing"

    def __init__(self, provider: str, label: str) -> None:
        if provider == "ollama":
            message = "Set the Ollama host (providers.ollama.host) in the configuration"
        else:
            message = f"Add {label} API key in configuration"
        super().__init__(message)
        self.provider = provider


class ProviderHTTPError(AskExcelError):
    kind = "ProviderHTTPError"

    def __init__(self, provider: str, label: str, status: int) -> None:
        super().__init__(f"{label} error: {status}")
        self.provider = provider
        self.status = status


class ProviderUnavailable(AskExcelError):
    kind = "ProviderUnavailable"

    def __init__(self, provider: str, label: str, detail: str) -> None:
        super().__init__(f"Unable to reach {label}: {detail}")
        self.provider = provider


class MalformedProviderResponse(AskExcelError):
    kind = "MalformedProviderResponse"

    def __init__(self, provider: str, label: str) -> None:
        super().__init__(f"{label} returned an unexpected response")
        self.provider = provider


class InvalidGeneratedScript(AskExcelError):
    kind = "InvalidGeneratedScript"

    def __init__(self) -> None:
        super().__init__("AI did not generate valid AppleScript")


class ApplicationUnreachable(AskExcelError):
    kind = "ApplicationUnreachable"

    def __init__(self, message: str = "Microsoft Excel is not running. Open Excel first.") -> None:
        super().__init__(message)


class PermissionDenied(AskExcelError):
    kind = "PermissionDenied"

    def __init__(self, permission: str, message: str) -> None:
        super().__init__(message)
        self.permission = permission


class RangeOrCellNotFound(AskExcelError):
    kind = "RangeOrCellNotFound"

    def __init__(self) -> None:
        super().__init__("Range or cell not found. Check that the sheet has data and ranges exist.")


class UnclassifiedExecutionError(AskExcelError):
    kind = "UnclassifiedExecutionError"

    def __init__(self, detail: str) -> None:
        super().__init__(f"AppleScript error: {detail}")
        self.detail = detail


class ScriptReportedError(AskExcelError):
    """The script ran but its own return value starts with ``ERROR``."""

    kind = "ScriptReportedError"

    def __init__(self, result: str) -> None:
        super().__init__(f"Failed: {result}")
        self.result = result


class AppleScriptError(Exception):
    """Raw failure from ``osascript`` before classification."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


__all__ = [
    "AskExcelError",
    "AppleScriptError",
    "ApplicationUnreachable",
    "CredentialMissing",
    "EmptyInstruction",
    "InvalidGeneratedScript",
    "MalformedProviderResponse",
    "PermissionDenied",
    "ProviderHTTPError",
    "ProviderUnavailable",
    "RangeOrCellNotFound",
    "ScriptReportedError",
    "UnclassifiedExecutionError",
]
