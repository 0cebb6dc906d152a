"""Command-line front end for asking Excel to do things."""
from __future__ import annotations

import argparse
import asyncio
import copy
import getpass
import json
import logging
import sys
from datetime import datetime
from typing import Any, Sequence

import yaml  # type: ignore[import-untyped]

from askexcel import config as core_config
from askexcel.config import PROVIDER_NAMES, Settings
from askexcel.errors import AskExcelError
from askexcel.executor import ScriptExecutor
from askexcel.history import HistoryStore, KeyValueStore
from askexcel.model_adapter import ModelAdapter
from askexcel.orchestrator import Orchestrator, RunResult
from askexcel.scripts import QUICK_ACTIONS, SCRIPTS, Intent, find_quick_action

_TROUBLESHOOTING = (
    "Troubleshooting:\n"
    "- Make sure Excel is open with a workbook\n"
    "- Check that cells/ranges exist\n"
    "- Try a simpler command first"
)


def _config_failure(exc: Exception) -> SystemExit:
    if isinstance(exc, yaml.YAMLError):
        return SystemExit(f"Could not parse {core_config.config_path()}: {exc}")
    return SystemExit(str(exc))


def _load_settings(args: argparse.Namespace) -> Settings:
    try:
        settings = core_config.load_settings()
    except (ValueError, yaml.YAMLError) as exc:
        raise _config_failure(exc) from exc
    provider = getattr(args, "provider", None)
    if provider:
        settings = settings.with_provider(provider)
    return settings


def _build_orchestrator(settings: Settings) -> Orchestrator:
    return Orchestrator(
        settings,
        executor=ScriptExecutor(),
        model=ModelAdapter(settings),
        history=HistoryStore(KeyValueStore()),
    )


def _format_result(run: RunResult) -> str:
    if run.success:
        lines = [f"✓ Done ({run.elapsed:.1f}s)", ""]
        if run.result and run.result != "Done":
            lines.extend([f"Result: {run.result}", ""])
        lines.extend(["Script executed:", run.script or ""])
        return "\n".join(lines)
    lines = [
        f"✗ Error: {run.error or 'Unknown error'}",
        "",
        "Script attempted:",
        run.script or "(no script generated)",
        "",
        _TROUBLESHOOTING,
    ]
    return "\n".join(lines)


def _run_instruction(instruction: str, args: argparse.Namespace, intent: Intent | None = None) -> int:
    settings = _load_settings(args)
    orchestrator = _build_orchestrator(settings)
    run = asyncio.run(orchestrator.run(instruction, intent=intent))
    if getattr(args, "json", False):
        print(json.dumps(run.to_dict(), indent=2))
    else:
        print(_format_result(run))
    return 0 if run.success else 1


def _ask(args: argparse.Namespace) -> int:
    instruction = " ".join(args.instruction).strip()
    return _run_instruction(instruction, args)


def _quick(args: argparse.Namespace) -> int:
    if not args.action:
        width = max(len(action.id) for action in QUICK_ACTIONS)
        for action in QUICK_ACTIONS:
            print(f"{action.id.ljust(width)}  {action.title}  ({action.instruction})")
        return 0
    action = find_quick_action(args.action)
    if action is None:
        raise SystemExit(f"Unknown quick action '{args.action}'. Run `askexcel quick` to list them.")
    return _run_instruction(action.instruction, args)


def _builtin_id(intent: Intent) -> str:
    return intent.value.replace("_", "-")


def _builtin(args: argparse.Namespace) -> int:
    if not args.name:
        for intent in SCRIPTS:
            print(_builtin_id(intent))
        return 0
    wanted = args.name.strip().lower().replace("_", "-")
    intent = next((item for item in SCRIPTS if _builtin_id(item) == wanted), None)
    if intent is None:
        raise SystemExit(f"Unknown built-in '{args.name}'. Run `askexcel builtin` to list them.")
    return _run_instruction(wanted.replace("-", " "), args, intent=intent)


def _read(args: argparse.Namespace) -> int:  # noqa: ARG001
    executor = ScriptExecutor()
    try:
        output = asyncio.run(executor.read_sheet())
    except AskExcelError as exc:
        print(f"Error: {exc.message}")
        return 1
    print(output)
    return 0


def _test(args: argparse.Namespace) -> int:  # noqa: ARG001
    executor = ScriptExecutor()
    if not executor.is_running():
        print("Error: Microsoft Excel is not running. Please open Excel first.")
        return 1
    try:
        result = asyncio.run(executor.test_connection())
    except AskExcelError as exc:
        print(f"Error: {exc.message}")
        return 1
    print(result)
    return 0


def _history(args: argparse.Namespace) -> int:
    history = HistoryStore(KeyValueStore())
    if args.clear:
        history.clear()
        print("History cleared.")
        return 0
    entries = history.entries()
    if not entries:
        print("No recent instructions.")
        return 0
    for entry in entries:
        stamp = datetime.fromtimestamp(entry.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
        text = entry.instruction if len(entry.instruction) <= 50 else entry.instruction[:50] + "..."
        print(f"{stamp}  {text}")
    return 0


def _mask_secrets(data: Any) -> Any:
    if isinstance(data, dict):
        masked: dict[str, Any] = {}
        for key, value in data.items():
            if key == "api_key" and value:
                masked[key] = "****" + str(value)[-4:]
            else:
                masked[key] = _mask_secrets(value)
        return masked
    return data


def _config_show(args: argparse.Namespace) -> int:  # noqa: ARG001
    try:
        data = _mask_secrets(copy.deepcopy(core_config.get_config()))
    except (ValueError, yaml.YAMLError) as exc:
        raise _config_failure(exc) from exc
    print(f"# {core_config.config_path()}")
    print(yaml.safe_dump(data, sort_keys=False).rstrip())
    return 0


def _config_provider(args: argparse.Namespace) -> int:
    try:
        core_config.set_provider(args.name)
    except KeyError as exc:
        raise SystemExit(str(exc.args[0])) from exc
    except (ValueError, yaml.YAMLError) as exc:
        raise _config_failure(exc) from exc
    print(f"Provider set to {PROVIDER_NAMES[args.name]}.")
    return 0


def _config_set_key(args: argparse.Namespace) -> int:
    if args.provider == "ollama":
        raise SystemExit("Ollama has no API key; set providers.ollama.host in the config file instead.")
    secret = getpass.getpass(f"{PROVIDER_NAMES[args.provider]} API key: ").strip()
    if not secret:
        print("No key entered.")
        return 1
    core_config.store_credential(args.provider, secret)
    print(f"✓ {PROVIDER_NAMES[args.provider]} API key saved to the system keyring.")
    return 0


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--provider", choices=sorted(PROVIDER_NAMES), help="Use this AI provider for one run")
    parser.add_argument("--json", action="store_true", help="Print the run result as JSON")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="askexcel", description="Control Microsoft Excel with natural language.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    ask_cmd = sub.add_parser("ask", help="Run a natural-language instruction against Excel")
    ask_cmd.add_argument("instruction", nargs="+", help="What Excel should do")
    _add_run_arguments(ask_cmd)
    ask_cmd.set_defaults(func=_ask)

    quick_cmd = sub.add_parser("quick", help="List quick actions or run one by id")
    quick_cmd.add_argument("action", nargs="?", help="Quick action id")
    _add_run_arguments(quick_cmd)
    quick_cmd.set_defaults(func=_quick)

    builtin_cmd = sub.add_parser("builtin", help="List built-in scripts or run one by name")
    builtin_cmd.add_argument("name", nargs="?", help="Built-in name, for example italic-selection")
    _add_run_arguments(builtin_cmd)
    builtin_cmd.set_defaults(func=_builtin)

    read_cmd = sub.add_parser("read", help="Show the active sheet's selection and used range")
    read_cmd.set_defaults(func=_read)

    test_cmd = sub.add_parser("test", help="Check that Excel automation works")
    test_cmd.set_defaults(func=_test)

    history_cmd = sub.add_parser("history", help="Show recent instructions")
    history_cmd.add_argument("--clear", action="store_true", help="Forget all recent instructions")
    history_cmd.set_defaults(func=_history)

    config_cmd = sub.add_parser("config", help="Inspect or change the configuration")
    config_sub = config_cmd.add_subparsers(dest="config_command", required=True)

    show_cmd = config_sub.add_parser("show", help="Print the merged configuration")
    show_cmd.set_defaults(func=_config_show)

    provider_cmd = config_sub.add_parser("provider", help="Select the AI provider")
    provider_cmd.add_argument("name", choices=sorted(PROVIDER_NAMES))
    provider_cmd.set_defaults(func=_config_provider)

    key_cmd = config_sub.add_parser("set-key", help="Store a provider API key in the system keyring")
    key_cmd.add_argument("provider", choices=sorted(PROVIDER_NAMES))
    key_cmd.set_defaults(func=_config_set_key)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    return int(args.func(args) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
