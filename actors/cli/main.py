"""Afkari CLI actor implemented with Typer."""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import typer

from config import settings
from decisions import (
    AnalysisBusyError,
    AssemblyError,
    ConfigurationError,
    DecisionError,
    DecisionRepository,
    EmptyContentError,
    InputError,
    ParseError,
    PersistenceError,
    UpstreamError,
    build_prompt,
    export_all,
    write_export,
)
from decisions.analysis import DecisionAnalyzer
from decisions.prompt import SUPPORTED_PROMPT_VERSIONS
from llm import GeminiClient
from log_config import configure_logging
from models import Decision
from services.database import init_db

SUCCESS_EXIT_CODE = 0
INPUT_ERROR_EXIT_CODE = 2
DOMAIN_ERROR_EXIT_CODE = 3
BACKEND_ERROR_EXIT_CODE = 4

_BACKEND_ERRORS = (UpstreamError, ConfigurationError, PersistenceError)


@dataclass(frozen=True)
class CliConfig:
    """Global CLI runtime options."""

    as_json: bool
    locale: str
    prompt_version: str


class DecisionNotFound(DecisionError, KeyError):
    """Raised when a command names a decision id that is not stored."""

    def __init__(self, decision_id: str) -> None:
        """Initialize the error with the missing decision identifier."""
        super().__init__(f"decision not found: {decision_id}")
        self.decision_id = decision_id

    def __str__(self) -> str:
        return str(self.args[0])


def open_repository() -> DecisionRepository:
    """Open the local decision store, applying migrations on first use."""
    return DecisionRepository(init_db())


def build_analyzer(cfg: CliConfig, repository: DecisionRepository) -> DecisionAnalyzer:
    """Return an analyzer wired to the Gemini backend."""
    return DecisionAnalyzer(
        GeminiClient(),
        repository,
        locale=cfg.locale,
        prompt_version=cfg.prompt_version,
    )


def _emit_output(data: Any, as_json: bool, render: Callable[[Any], str]) -> None:
    """Render command output in requested format."""
    if as_json:
        typer.echo(json.dumps(data, ensure_ascii=False, sort_keys=True, separators=(",", ":")))
        return
    typer.echo(render(data))


def _error_payload(exc: Exception) -> dict[str, Any]:
    """Return the most specific diagnostic available for ``exc``."""
    payload: dict[str, Any] = {"error": str(exc), "kind": type(exc).__name__}
    if isinstance(exc, ParseError):
        payload["rawText"] = exc.raw_text
    elif isinstance(exc, UpstreamError):
        if exc.status_code is not None:
            payload["status"] = exc.status_code
    elif isinstance(exc, EmptyContentError) and exc.raw is not None:
        payload["raw"] = exc.raw
    return payload


def _emit_error(exc: Exception, as_json: bool) -> None:
    """Render mapped errors to stderr."""
    payload = _error_payload(exc)
    if as_json:
        typer.echo(json.dumps(payload, ensure_ascii=False, default=str), err=True)
        return
    typer.echo(f"error: {exc}", err=True)
    if "rawText" in payload:
        typer.echo(f"raw model output:\n{payload['rawText']}", err=True)


def _exit_code_for(exc: Exception) -> int:
    if isinstance(exc, InputError):
        return INPUT_ERROR_EXIT_CODE
    if isinstance(exc, _BACKEND_ERRORS):
        return BACKEND_ERROR_EXIT_CODE
    return DOMAIN_ERROR_EXIT_CODE


def _run_command(cfg: CliConfig, invoke: Callable[[], Any], render: Callable[[Any], str]) -> None:
    """Execute one command and map outputs/errors to process semantics."""
    try:
        result = invoke()
    except DecisionError as exc:
        if isinstance(exc, PersistenceError) and exc.decision is not None:
            _emit_output(exc.decision.to_record(), cfg.as_json, _render_decision)
        _emit_error(exc, cfg.as_json)
        raise typer.Exit(code=_exit_code_for(exc)) from exc

    _emit_output(result, cfg.as_json, render)
    raise typer.Exit(code=SUCCESS_EXIT_CODE)


def _render_decision(record: dict[str, Any]) -> str:
    """Render one decision record for human reading, v1 or v2 shape."""
    lines = [
        f"{record['title']}",
        f"id: {record['id']}  created: {record['createdAt']}  updated: {record['updatedAt']}",
    ]
    if record.get("goal"):
        lines.append(f"Goal: {record['goal']}")
    for heading, key in (("Constraints", "constraints"), ("Criteria", "criteria")):
        if record.get(key):
            lines.append(f"{heading}:")
            lines.extend(f"  - {item}" for item in record[key])

    evaluation = record.get("evaluation")
    if record.get("options"):
        lines.append("Options:")
        for index, option in enumerate(record["options"]):
            marker = "*" if evaluation and evaluation["bestOptionIndex"] == index else " "
            score = f" [{option['score']}]" if evaluation else ""
            lines.append(f" {marker}{index + 1}. {option['title']}{score}")
            if option.get("rationale"):
                lines.append(f"     {option['rationale']}")
            for risk in option.get("risks", []):
                lines.append(f"     risk: {risk}")

    if evaluation:
        lines.append(
            f"Recommendation: {evaluation['bestOptionTitle']} "
            f"(confidence {evaluation['confidence']})"
        )
        if evaluation.get("reason"):
            lines.append(f"  {evaluation['reason']}")
        if evaluation.get("summary"):
            lines.append(f"  {evaluation['summary']}")

    if record.get("clarifyingQuestions"):
        lines.append("Clarifying questions:")
        lines.extend(f"  ? {question}" for question in record["clarifyingQuestions"])
    if record.get("actionPlan"):
        lines.append("Action plan:")
        for step in record["actionPlan"]:
            box = "x" if step["done"] else " "
            due = f" (due {step['dueDate']})" if step.get("dueDate") else ""
            lines.append(f"  [{box}] {step['id']}: {step['text']}{due}")
    return "\n".join(lines)


def _render_list(records: list[dict[str, Any]]) -> str:
    if not records:
        return "No decisions yet."
    return "\n".join(
        f"{record['id']}  {record['createdAt']}  {record['title']}" for record in records
    )


def _render_ok(_: Any) -> str:
    return "ok"


def _require_config(ctx: typer.Context) -> CliConfig:
    """Return required CLI config from Typer context."""
    config = ctx.obj
    if not isinstance(config, CliConfig):
        raise RuntimeError("CLI configuration not initialized")
    return config


def _get_record(repository: DecisionRepository, decision_id: str) -> Decision:
    decision = repository.get(decision_id)
    if decision is None:
        raise DecisionNotFound(decision_id)
    return decision


app = typer.Typer(no_args_is_help=True, help="Afkari decision coach")


@app.callback()
def main(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Emit JSON output"),
    locale: str = typer.Option(
        settings.prompt.locale, envvar="AFKARI_LOCALE", help="Response language"
    ),
    prompt_version: str = typer.Option(
        settings.prompt.version, "--prompt-version", help="Prompt schema version"
    ),
    log_level: str = typer.Option(settings.log_level, help="Log level"),
) -> None:
    """Store global options for all commands."""
    if prompt_version not in SUPPORTED_PROMPT_VERSIONS:
        raise typer.BadParameter(
            f"must be one of {', '.join(SUPPORTED_PROMPT_VERSIONS)}",
            param_hint="--prompt-version",
        )
    configure_logging(level=log_level, json_output=settings.log_json, stream=sys.stderr)
    ctx.obj = CliConfig(as_json=as_json, locale=locale, prompt_version=prompt_version)


@app.command("analyze")
def analyze_command(
    ctx: typer.Context,
    problem_text: str = typer.Argument(..., help="Free-text description of the decision"),
) -> None:
    """Analyze a problem and store the resulting decision."""
    cfg = _require_config(ctx)

    def invoke() -> dict[str, Any]:
        repository = open_repository()
        analyzer = build_analyzer(cfg, repository)
        decision = asyncio.run(analyzer.analyze(problem_text, cfg.locale))
        return decision.to_record()

    _run_command(cfg, invoke, _render_decision)


@app.command("list")
def list_command(ctx: typer.Context) -> None:
    """List stored decisions, newest first."""
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda: [decision.to_record() for decision in open_repository().list()],
        _render_list,
    )


@app.command("show")
def show_command(
    ctx: typer.Context, decision_id: str = typer.Argument(..., help="Decision id")
) -> None:
    """Show one decision."""
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda: _get_record(open_repository(), decision_id).to_record(),
        _render_decision,
    )


@app.command("step")
def step_command(
    ctx: typer.Context,
    decision_id: str = typer.Argument(..., help="Decision id"),
    step_id: str = typer.Argument(..., help="Action step id"),
    done: bool = typer.Option(True, "--done/--undone", help="Mark the step done or not done"),
) -> None:
    """Mark an action step of a legacy decision as done or not done."""
    cfg = _require_config(ctx)

    def invoke() -> None:
        open_repository().update_step(decision_id, step_id, done)

    _run_command(cfg, invoke, _render_ok)


@app.command("delete")
def delete_command(
    ctx: typer.Context, decision_id: str = typer.Argument(..., help="Decision id")
) -> None:
    """Delete a decision. Unknown ids are ignored."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda: open_repository().delete(decision_id), _render_ok)


@app.command("export")
def export_command(
    ctx: typer.Context,
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write to this file (default: export.filename setting)"
    ),
    to_stdout: bool = typer.Option(False, "--stdout", help="Print the document instead"),
) -> None:
    """Export every decision as one JSON document."""
    cfg = _require_config(ctx)
    options = {
        "version": settings.export.version,
        "include_exported_at": settings.export.include_exported_at,
    }

    if to_stdout:
        try:
            content = export_all(open_repository(), **options)
        except DecisionError as exc:
            _emit_error(exc, cfg.as_json)
            raise typer.Exit(code=_exit_code_for(exc)) from exc
        typer.echo(content)
        raise typer.Exit(code=SUCCESS_EXIT_CODE)

    target = output or Path(settings.export.filename)
    _run_command(
        cfg,
        lambda: {"path": str(target), "count": write_export(open_repository(), target, **options)},
        lambda data: f"Exported {data['count']} decisions to {data['path']}",
    )


@app.command("prompt")
def prompt_command(
    ctx: typer.Context,
    problem_text: str = typer.Argument(..., help="Free-text description of the decision"),
) -> None:
    """Print the prompt that would be sent for a problem."""
    cfg = _require_config(ctx)

    def invoke() -> dict[str, str]:
        if not problem_text.strip():
            raise InputError("problemText is required")
        return {
            "promptVersion": cfg.prompt_version,
            "prompt": build_prompt(problem_text, cfg.locale, version=cfg.prompt_version),
        }

    _run_command(cfg, invoke, lambda data: data["prompt"])


if __name__ == "__main__":
    app()
