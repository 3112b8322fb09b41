"""note-researcher CLI entry point.

Commands print a JSON envelope on stdout; progress notices go to stderr.
``run`` and ``resume`` stay in the foreground until the run ends.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

import click

from note_researcher.config import ResearchConfig, get_config, set_config
from note_researcher.core.controller import RunController, create_controller
from note_researcher.core.errors import NoteNotFoundError
from note_researcher.core.models import ReasonCode, RunOutcome, RunRecord
from note_researcher.cli.output import emit_error, emit_success

# Reason codes that end a run
TERMINAL_REASONS = frozenset(
    {
        ReasonCode.COMPLETED_OK,
        ReasonCode.WRITE_FAILED,
        ReasonCode.REQUEST_FAILED,
        ReasonCode.ABANDONED,
    }
)


def _record_data(record: Optional[RunRecord]) -> Optional[Dict[str, Any]]:
    return record.model_dump(mode="json") if record is not None else None


def _outcome_data(outcome: RunOutcome) -> Dict[str, Any]:
    return {
        "ok": outcome.ok,
        "message": outcome.message,
        "reason": outcome.reason.value if outcome.reason else None,
        "run": _record_data(outcome.record),
        "report_path": str(outcome.report_path) if outcome.report_path else None,
    }


async def _follow(controller: RunController) -> RunOutcome:
    """Wait for polling to stop and return the outcome that ended the run."""
    try:
        await controller.scheduler.wait_stopped()
    finally:
        await controller.scheduler.aclose()

    outcome = controller.last_outcome
    if outcome is not None and outcome.reason in TERMINAL_REASONS:
        return outcome
    return RunOutcome(
        ok=False,
        message="Polling stopped; the run is no longer tracked by this process.",
        record=controller.current_run,
        user_facing=False,
    )


def _emit_final(outcome: RunOutcome) -> None:
    if outcome.ok:
        emit_success(_outcome_data(outcome))
    else:
        emit_error(
            outcome.message,
            code=outcome.reason.value if outcome.reason else "RUN_ENDED",
            details=_outcome_data(outcome),
        )


@click.group()
@click.option(
    "--config",
    "config_file",
    envvar="NOTE_RESEARCHER_CONFIG_FILE",
    type=click.Path(exists=False),
    help="Path to a note-researcher.toml config file.",
)
@click.option(
    "--vault",
    type=click.Path(file_okay=False),
    help="Override the vault root directory.",
)
def cli(config_file: Optional[str], vault: Optional[str]) -> None:
    """Run Gemini deep research on Markdown notes.

    One run at a time; its state survives restarts (use `resume`).
    """
    config = ResearchConfig.from_env(config_file)
    if vault:
        config.vault_root = Path(vault).expanduser()
    config.setup_logging()
    set_config(config)


@cli.command("run")
@click.argument("note")
@click.option(
    "--detach",
    is_flag=True,
    help="Start the run and exit; poll later with `resume`.",
)
def run_cmd(note: str, detach: bool) -> None:
    """Start deep research on NOTE (a vault-relative path)."""
    config = get_config()
    controller = create_controller(config)

    try:
        subject = controller.vault.get_note(note)
    except NoteNotFoundError as e:
        controller.run_log.close()
        emit_error(str(e), code="NOT_FOUND")

    async def _run() -> RunOutcome:
        outcome = await controller.start_research(subject)
        if not outcome.ok or detach:
            await controller.scheduler.aclose()
            return outcome
        return await _follow(controller)

    try:
        final = asyncio.run(_run())
    except KeyboardInterrupt:
        emit_error(
            "Polling interrupted; the run is still recorded. Use `resume` to continue.",
            code="INTERRUPTED",
            details={"run": _record_data(controller.current_run)},
        )
    finally:
        controller.run_log.close()
    _emit_final(final)


@cli.command("resume")
def resume_cmd() -> None:
    """Resume polling a run recorded by an earlier process."""
    config = get_config()
    controller = create_controller(config)

    if controller.current_run is None:
        controller.run_log.close()
        emit_error("No active run to resume.", code="NOT_FOUND")

    async def _resume() -> Optional[RunOutcome]:
        if not controller.start_polling():
            return None
        controller.notifier.notify(
            f"Resumed polling for {controller.current_run.subject_name}."
        )
        return await _follow(controller)

    try:
        final = asyncio.run(_resume())
    except KeyboardInterrupt:
        emit_error(
            "Polling interrupted; the run is still recorded. Use `resume` to continue.",
            code="INTERRUPTED",
        )
    finally:
        controller.run_log.close()

    if final is None:
        emit_error("Failed to initialize provider; see the run log.", code="DR_INIT_FAILED")
    _emit_final(final)


@cli.command("abandon")
def abandon_cmd() -> None:
    """Reset / abandon the current run without contacting the provider."""
    controller = create_controller(get_config())
    try:
        outcome = asyncio.run(controller.reset_abandon_run())
    finally:
        controller.run_log.close()
    emit_success(_outcome_data(outcome))


@cli.command("status")
def status_cmd() -> None:
    """Show the current run, if any."""
    controller = create_controller(get_config())
    record = controller.current_run
    controller.run_log.close()
    emit_success({"state": controller.state.value, "run": _record_data(record)})


@cli.command("config")
def config_cmd() -> None:
    """Show the effective configuration."""
    emit_success(get_config().to_dict())


if __name__ == "__main__":
    cli()
