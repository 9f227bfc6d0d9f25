"""Consumer-facing facade: start / abort / manual retry / snapshot / restore."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import replace

from audioscribe.config import PipelineConfig, VerificationConfig
from audioscribe.exceptions import AudioScribeError, CancelReason, ConfigurationError
from audioscribe.models.run import EngineSnapshot, RunStatus
from audioscribe.models.segment import Segment, SegmentPhase
from audioscribe.pipeline.assembly import assemble_polished, assemble_raw
from audioscribe.pipeline.concurrency import SlotPool
from audioscribe.pipeline.reconciler import PostPassReconciler
from audioscribe.pipeline.scheduler import SegmentScheduler
from audioscribe.pipeline.state_machine import SegmentStateMachine
from audioscribe.pipeline.store import SegmentStore
from audioscribe.pipeline.watchdog import Watchdog
from audioscribe.services.snapshot_writer import SnapshotWriter
from audioscribe.services.state_sink import SessionSnapshot, StateSink
from audioscribe.stages.base import PipelineStages

logger = logging.getLogger(__name__)


class _RunHandle:
    __slots__ = ("aborted",)

    def __init__(self) -> None:
        self.aborted = False


class TranscriptionEngine:
    """Run every segment through the state machine under a concurrency cap.

    `start()` returns once the main pass and the reconciliation pass are done
    (or the run was aborted). Polishing continuations still pending after the
    grace period keep running in the background.
    """

    def __init__(
        self,
        pipeline: PipelineConfig,
        stages: PipelineStages,
        *,
        verification: VerificationConfig | None = None,
        state_sink: StateSink | None = None,
        source: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pipeline = pipeline
        self.source = source
        self.store = SegmentStore(max_retries=pipeline.max_retries, clock=clock)
        self.slots = SlotPool(pipeline.concurrency)
        self.machine = SegmentStateMachine(
            self.store,
            stages,
            pipeline=pipeline,
            verification=verification,
        )
        self.scheduler = SegmentScheduler(self.machine, self.slots)
        self.watchdog = Watchdog(
            self.store,
            self.scheduler,
            interval_s=pipeline.watchdog_interval_s,
            timeout_s=pipeline.watchdog_timeout_s,
            max_retries=pipeline.max_retries,
            clock=clock,
        )
        self.reconciler = PostPassReconciler(
            self.store,
            self.scheduler,
            self.machine,
            max_retries=pipeline.max_retries,
            grace_s=pipeline.reconcile_grace_s,
        )
        self._status = RunStatus.IDLE
        self._run: _RunHandle | None = None
        # Held for the whole of a run so a new run starts only after an aborted one unwound.
        self._run_lock = asyncio.Lock()
        self._sink = state_sink
        self._writer: SnapshotWriter | None = None
        if state_sink is not None:
            self._writer = SnapshotWriter(state_sink, source=source)
            self.store.subscribe(self._writer)

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def raw_text(self) -> str:
        return assemble_raw(self.store.snapshot())

    @property
    def polished_text(self) -> str:
        return assemble_polished(self.store.snapshot())

    def snapshot(self) -> EngineSnapshot:
        return EngineSnapshot(status=self._status, segments=self.store.snapshot())

    async def start(self, audio_paths: Iterable[str]) -> EngineSnapshot:
        """Submit ordered audio segments and process them all."""
        paths = [str(p) for p in audio_paths]
        if not paths:
            raise ConfigurationError("No audio segments to process")
        run = self._claim()
        async with self._run_lock:
            if run.aborted:
                return self._finish(run)
            self.scheduler.cancel_all(CancelReason.SUPERSEDED)
            self.machine.cancel_continuations()
            self.machine.forget_prepared()
            self.scheduler.reopen()
            now = self.store.now()
            self.store.reset(
                Segment(index=i, audio_path=path, last_activity=now) for i, path in enumerate(paths, start=1)
            )
            return await self._execute([s.index for s in self.store.snapshot()], run)

    async def resume(self, audio_paths: Iterable[str] | None = None) -> EngineSnapshot:
        """Process the restored segments that did not reach a terminal phase."""
        if self._status == RunStatus.PROCESSING:
            raise AudioScribeError("A run is already in progress")
        if audio_paths is not None:
            self._attach_audio([str(p) for p in audio_paths])
        run = self._claim()
        async with self._run_lock:
            if run.aborted:
                return self._finish(run)
            pending = [s.index for s in self.store.snapshot() if not s.phase.is_terminal]
            self.scheduler.reopen()
            if not pending:
                return self._finish(run)
            return await self._execute(pending, run)

    def _claim(self) -> _RunHandle:
        if self._status == RunStatus.PROCESSING:
            raise AudioScribeError("A run is already in progress")
        run = _RunHandle()
        self._run = run
        self._status = RunStatus.PROCESSING
        return run

    def _finish(self, run: _RunHandle) -> EngineSnapshot:
        status = RunStatus.ABORTED if run.aborted else RunStatus.COMPLETED
        if self._run is run:
            self._status = status
        return EngineSnapshot(status=status, segments=self.store.snapshot())

    async def _execute(self, indices: list[int], run: _RunHandle) -> EngineSnapshot:
        logger.info(
            "run started (segments=%s, concurrency=%s, max_retries=%s)",
            len(indices),
            self.slots.max,
            self.pipeline.max_retries,
        )
        started = time.perf_counter()
        self.watchdog.start()
        try:
            await self.scheduler.run(indices)
            if not run.aborted:
                await self.reconciler.run()
        finally:
            await self.watchdog.stop()

        snap = self._finish(run)
        logger.info(
            "run finished (status=%s, committed=%s, skipped=%s, hallucination=%s, error=%s, peak_slots=%s, elapsed_s=%.1f)",
            snap.status.value,
            snap.count(SegmentPhase.COMMITTED),
            snap.count(SegmentPhase.SKIPPED),
            snap.count(SegmentPhase.HALLUCINATION_DETECTED),
            snap.count(SegmentPhase.ERROR),
            self.slots.peak,
            time.perf_counter() - started,
        )
        return snap

    def abort(self) -> None:
        """Cancel every outstanding token and discard in-flight work."""
        self._status = RunStatus.ABORTED
        if self._run is not None:
            self._run.aborted = True
        self.scheduler.close()
        for segment in self.store.snapshot():
            if segment.phase.holds_slot or segment.phase == SegmentPhase.POLISHING:
                self.store.append_log(segment.index, "Process aborted.")
        cancelled = self.scheduler.cancel_all(CancelReason.ABORTED)
        logger.info("run aborted (cancelled=%s)", len(cancelled))

    def retry_segment(self, index: int) -> asyncio.Task[None]:
        """Reset one segment to IDLE and relaunch it outside the concurrency cap."""
        self.store.get(index)
        self.scheduler.cancel(index, CancelReason.SUPERSEDED)
        self.store.update(
            index,
            phase=SegmentPhase.IDLE,
            retry_count=0,
            needs_retry=False,
            verdict=None,
            error_code=None,
            error_message=None,
            reason="Manual retry",
            log="--- Manual Retry ---",
        )
        logger.info("manual retry (index=%s)", index)
        return self.scheduler.launch(index, SegmentPhase.IDLE, bounded=False)

    async def settle(self, timeout: float | None = None) -> bool:
        """Wait for in-flight segments and their polishing continuations."""
        await self.scheduler.wait_idle()
        return await self.machine.wait_continuations(timeout)

    async def restore(self, snapshot: SessionSnapshot | None = None) -> EngineSnapshot | None:
        """Reload text state from `snapshot` or, when omitted, from the state sink."""
        if snapshot is None:
            if self._sink is None:
                return None
            snapshot = await self._sink.load()
        if snapshot is None:
            return None
        if self.source and snapshot.source and snapshot.source != self.source:
            logger.info("state snapshot belongs to another source; ignoring (source=%s)", snapshot.source)
            return None

        segments = []
        for seg in snapshot.segments:
            # In-flight work cannot survive a reload.
            if not seg.phase.is_terminal and seg.phase != SegmentPhase.IDLE:
                seg = replace(seg, phase=SegmentPhase.IDLE)
            segments.append(replace(seg, last_activity=self.store.now()))
        try:
            self.store.reset(segments)
        except ValueError as exc:
            logger.warning("state snapshot rejected (error=%s)", exc)
            return None
        done = bool(segments) and all(s.phase.is_terminal for s in segments)
        self._status = RunStatus.COMPLETED if done else RunStatus.IDLE
        logger.info("session restored (segments=%s, completed=%s)", len(segments), done)
        return self.snapshot()

    def _attach_audio(self, paths: list[str]) -> None:
        current = self.store.snapshot()
        if len(paths) != len(current):
            raise ConfigurationError(
                f"Restored session has {len(current)} segments but {len(paths)} audio files were given"
            )
        self.store.reset(replace(seg, audio_path=path) for seg, path in zip(current, paths))

    async def close(self) -> None:
        await self.watchdog.stop()
        if self._writer is not None:
            await self._writer.flush()
        if self._sink is not None:
            await self._sink.close()
