"""Run controller: the deep research run state machine.

States are derived from the run store: IDLE when no record is persisted,
RUNNING when one is. The only transitions are IDLE -> RUNNING on a
successful start, and RUNNING -> IDLE on completion, failure or abandonment.

Every public operation returns a ``RunOutcome``. Outcomes flagged
``user_facing`` are shown through the notifier; every outcome carrying a
reason code is appended to the run log, including silent failures such as
transient status check errors.

All provider calls are suspension points. A call that resolves after its run
was abandoned (or replaced) is discarded: the record is re-read and compared
with the one the call was issued for before any state is touched.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from note_researcher.config import ResearchConfig
from note_researcher.core.errors import NoteResearcherError
from note_researcher.core.models import (
    ReasonCode,
    ResearchState,
    RunOutcome,
    RunRecord,
    RunState,
)
from note_researcher.core.notifier import ConsoleNotifier, Notifier
from note_researcher.core.providers import DeepResearchProvider, create_provider
from note_researcher.core.run_log import LOG_FILENAME, RunLog
from note_researcher.core.run_store import RunStore
from note_researcher.core.scheduler import PollingScheduler, SleepFunc
from note_researcher.core.vault import Note, NoteVault, ReportSink

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[str], DeepResearchProvider]


class RunController:
    """Starts, polls, finalizes and abandons the single deep research run."""

    def __init__(
        self,
        config: ResearchConfig,
        store: RunStore,
        vault: NoteVault,
        sink: ReportSink,
        notifier: Notifier,
        run_log: RunLog,
        provider_factory: ProviderFactory = create_provider,
        sleep: Optional[SleepFunc] = None,
    ) -> None:
        """Initialize the controller.

        Args:
            config: Deep research settings (read only)
            store: Persistence for the current run record
            vault: Source of prompt and note text
            sink: Destination for finished reports
            notifier: User-facing notices
            run_log: Durable reason-coded log
            provider_factory: Builds a provider from the credential file path
            sleep: Optional sleep override for the scheduler's timers
        """
        self.config = config
        self.store = store
        self.vault = vault
        self.sink = sink
        self.notifier = notifier
        self.run_log = run_log
        self._provider_factory = provider_factory
        self._provider: Optional[DeepResearchProvider] = None
        self._starting: Optional[str] = None
        self.last_outcome: Optional[RunOutcome] = None

        scheduler_kwargs = {"sleep": sleep} if sleep is not None else {}
        self.scheduler = PollingScheduler(
            on_status=self.check_run_status,
            on_notice=self.emit_progress_notice,
            check_interval=config.check_interval_sec,
            notice_interval=config.notice_interval_sec,
            **scheduler_kwargs,
        )

    @property
    def state(self) -> RunState:
        return RunState.RUNNING if self.store.get() is not None else RunState.IDLE

    @property
    def current_run(self) -> Optional[RunRecord]:
        return self.store.get()

    @property
    def provider(self) -> Optional[DeepResearchProvider]:
        return self._provider

    # =========================================================================
    # Outcome routing
    # =========================================================================

    def _report(self, outcome: RunOutcome, detail: Optional[str] = None) -> RunOutcome:
        self.last_outcome = outcome
        if outcome.user_facing:
            self.notifier.notify(outcome.message)
        if outcome.reason is not None:
            self.run_log.record(outcome.reason, detail or outcome.message)
        return outcome

    def _fail(
        self,
        reason: ReasonCode,
        message: str,
        detail: str,
        *,
        record: Optional[RunRecord] = None,
    ) -> RunOutcome:
        return self._report(
            RunOutcome(ok=False, message=message, reason=reason, record=record),
            detail,
        )

    # =========================================================================
    # Start
    # =========================================================================

    async def start_research(self, subject: Note) -> RunOutcome:
        """Start a deep research run for ``subject``.

        Preconditions are checked in a fixed order and each failure leaves
        state untouched. A record is persisted only after the provider
        accepted the job.
        """
        cfg = self.config
        if not cfg.enabled:
            return self._fail(
                ReasonCode.DISABLED,
                "Deep research is disabled in settings.",
                "Deep research is disabled",
            )
        if not cfg.prompt_path:
            return self._fail(
                ReasonCode.PROMPT_PATH_MISSING,
                "Deep research prompt path is not configured.",
                "Prompt path missing",
            )
        if not cfg.env_file_path:
            return self._fail(
                ReasonCode.ENV_PATH_MISSING,
                "Deep research .env file path is not configured.",
                "Env file path missing",
            )

        current = self.store.get()
        if current is not None or self._starting is not None:
            busy_name = current.subject_name if current else self._starting
            return self._fail(
                ReasonCode.BUSY,
                f"Deep research is already running for {busy_name}. "
                "Please reset/abandon first.",
                f"Start for {subject.name} rejected, run active for {busy_name}",
                record=current,
            )

        self._starting = subject.name
        try:
            return await self._start(subject)
        finally:
            self._starting = None

    async def _start(self, subject: Note) -> RunOutcome:
        try:
            provider = self._provider_factory(self.config.env_file_path)
        except (NoteResearcherError, ValueError, OSError) as e:
            return self._fail(
                ReasonCode.INIT_FAILED,
                "Failed to initialize provider.",
                f"Provider init failed: {e}",
            )
        self._provider = provider

        try:
            prompt_content = self.vault.read(self.config.prompt_path)
        except (NoteResearcherError, OSError, UnicodeDecodeError) as e:
            return self._fail(
                ReasonCode.PROMPT_READ_FAILED,
                "Failed to read prompt file.",
                f"Read prompt failed: {e}",
            )

        try:
            note_content = self.vault.read(subject)
        except (NoteResearcherError, OSError, UnicodeDecodeError) as e:
            return self._fail(
                ReasonCode.NOTE_READ_FAILED,
                "Failed to read active note.",
                f"Read note failed: {e}",
            )

        try:
            interaction_id = await provider.start(note_content, prompt_content)
        except Exception as e:
            logger.warning("Provider start failed for %s: %s", subject.name, e)
            return self._fail(
                ReasonCode.REQUEST_FAILED,
                "Failed to start deep research session.",
                f"Start request failed: {e}",
            )

        record = RunRecord(
            interaction_id=interaction_id,
            subject_path=subject.path,
            subject_name=subject.name,
        )
        conflict = self.store.set_if_empty(record)
        if conflict is not None:
            logger.warning(
                "Run for %s recorded by another process; interaction %s is orphaned",
                conflict.subject_name,
                interaction_id,
            )
            return self._fail(
                ReasonCode.BUSY,
                f"Deep research is already running for {conflict.subject_name}. "
                "Please reset/abandon first.",
                f"Start for {subject.name} lost to run for {conflict.subject_name}; "
                f"interaction {interaction_id} orphaned",
                record=conflict,
            )

        outcome = self._report(
            RunOutcome(
                ok=True,
                message="Deep research started. Running in background...",
                reason=ReasonCode.STARTED,
                record=record,
            ),
            f"Started for {subject.name} (interaction {interaction_id})",
        )
        self.start_polling()
        return outcome

    # =========================================================================
    # Abandon
    # =========================================================================

    async def reset_abandon_run(self) -> RunOutcome:
        """Forget the current run without contacting the provider.

        Idempotent: with no run active this only notifies the user.
        """
        record = self.store.get()
        if record is None:
            return self._report(
                RunOutcome(ok=True, message="No active run to abandon.")
            )

        self.store.clear()
        self.stop_polling()
        return self._report(
            RunOutcome(
                ok=True,
                message=f"Deep research run for {record.subject_name} abandoned.",
                reason=ReasonCode.ABANDONED,
                record=record,
            ),
            f"Run for {record.subject_name} abandoned",
        )

    # =========================================================================
    # Polling
    # =========================================================================

    def start_polling(self) -> bool:
        """Arm the scheduler for the persisted run.

        Rebuilds the provider from configuration when none is held in memory,
        which is the case after a process restart.

        Returns:
            True if the timers are armed after the call
        """
        record = self.store.get()
        if record is None:
            return False

        if self._provider is None:
            try:
                self._provider = self._provider_factory(self.config.env_file_path)
            except (NoteResearcherError, ValueError, OSError) as e:
                logger.error("Failed to re-init provider for polling: %s", e)
                self.run_log.record(
                    ReasonCode.INIT_FAILED,
                    f"Provider re-init for {record.subject_name} failed: {e}",
                )
                return False

        self.scheduler.start()
        return True

    def stop_polling(self) -> None:
        self.scheduler.stop()

    async def emit_progress_notice(self) -> None:
        """Notice tick: remind the user a run is still going."""
        record = self.store.get()
        if record is not None:
            self.notifier.notify(f"Deep research in progress for {record.subject_name}...")

    def _is_current(self, record: RunRecord) -> bool:
        return self.store.get() == record

    async def check_run_status(self) -> RunOutcome:
        """Status tick: poll the provider once and act on terminal outcomes."""
        record = self.store.get()
        provider = self._provider
        if record is None or provider is None:
            logger.info("No run or provider available, stopping polling")
            self.stop_polling()
            return RunOutcome(ok=False, message="Nothing to poll", user_facing=False)

        try:
            status = await provider.check_status(record.interaction_id)
        except Exception as e:
            logger.warning("Status check for %s failed: %s", record.interaction_id, e)
            return self._report(
                RunOutcome(
                    ok=False,
                    message=f"Status check failed: {e}",
                    reason=ReasonCode.CHECK_FAILED,
                    user_facing=False,
                    record=record,
                ),
                f"Status check for {record.subject_name} failed: {e}",
            )

        if not self._is_current(record):
            logger.info("Discarding stale status for %s", record.interaction_id)
            return RunOutcome(ok=False, message="Stale status discarded", user_facing=False)

        if not status.is_terminal:
            return RunOutcome(ok=True, message="Still running", user_facing=False, record=record)
        if status.state == ResearchState.COMPLETED:
            return await self.handle_completion(record, status.report)
        return await self.handle_failure(record, status.error or "Unknown error")

    # =========================================================================
    # Terminal outcomes
    # =========================================================================

    def _clear_if_current(self, record: RunRecord) -> None:
        if self._is_current(record):
            self.store.clear()

    async def handle_completion(
        self,
        record: RunRecord,
        inline_report: Optional[str] = None,
    ) -> RunOutcome:
        """Fetch and save the report, then clear the run.

        The run is cleared even when the report cannot be saved, so a broken
        report never leaves the controller stuck in RUNNING.
        """
        self.stop_polling()

        try:
            report = inline_report
            if not report and self._provider is not None:
                report = await self._provider.get_report(record.interaction_id)

            if not self._is_current(record):
                logger.info("Run %s was abandoned during completion", record.interaction_id)
                return RunOutcome(ok=False, message="Stale completion discarded", user_facing=False)

            if not report:
                raise NoteResearcherError("No report content available")

            path = self.sink.write_report(
                record.subject_name, report, datetime.now(timezone.utc)
            )
        except Exception as e:
            logger.warning("Saving report for %s failed: %s", record.subject_name, e)
            outcome = self._report(
                RunOutcome(
                    ok=False,
                    message=f"Deep research completed but failed to save report: {e}",
                    reason=ReasonCode.WRITE_FAILED,
                    record=record,
                ),
                f"Write failed for {record.subject_name}: {e}",
            )
        else:
            outcome = self._report(
                RunOutcome(
                    ok=True,
                    message=(
                        f"Deep research completed for {record.subject_name}. "
                        f"Saved to {path}"
                    ),
                    reason=ReasonCode.COMPLETED_OK,
                    record=record,
                    report_path=path,
                ),
                f"Completed for {record.subject_name}",
            )
        finally:
            self._clear_if_current(record)

        return outcome

    async def handle_failure(self, record: RunRecord, error: str) -> RunOutcome:
        """Report the provider's failure verbatim and clear the run."""
        self.stop_polling()
        outcome = self._report(
            RunOutcome(
                ok=False,
                message=f"Deep research failed for {record.subject_name}: {error}",
                reason=ReasonCode.REQUEST_FAILED,
                record=record,
            ),
            f"Run failed: {error}",
        )
        self._clear_if_current(record)
        return outcome


def create_controller(
    config: ResearchConfig,
    notifier: Optional[Notifier] = None,
    provider_factory: ProviderFactory = create_provider,
) -> RunController:
    """Wire a controller to the vault and state directory named in ``config``."""
    state_dir = config.get_state_dir()
    return RunController(
        config=config,
        store=RunStore(state_dir),
        vault=NoteVault(config.vault_root),
        sink=ReportSink(config.vault_root),
        notifier=notifier or ConsoleNotifier(),
        run_log=RunLog(state_dir / LOG_FILENAME),
        provider_factory=provider_factory,
    )
