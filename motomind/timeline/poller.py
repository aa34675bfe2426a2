"""Processing-status tracking and polling for uploaded images."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Iterable

from ..types import LinkedImage, ProcessingStatus

logger = logging.getLogger(__name__)

POLL_JOB_ID = "poll_processing_status"
ANY_IMAGE = "*"

StatusCallback = Callable[[str, "ProcessingStatus | None", "ProcessingStatus | None"], None]
FetchImages = Callable[[], Awaitable[list[LinkedImage]]]
SettledCallback = Callable[[list[str]], Awaitable[None]]


class InvalidTransition(ValueError):
    """A local status change that the processing lifecycle does not allow."""


class ProcessingPoller:
    """Tracks per-image extraction status and polls while any is in flight.

    pending → processing → completed | failed. Terminal images are only
    polled again after ``request_reprocess``. Uses one APScheduler interval
    job for the poll and one date job per "just completed" pulse.
    """

    def __init__(
        self,
        fetch_images: FetchImages,
        *,
        interval: float = 3.0,
        pulse_seconds: float = 2.0,
        on_settled: SettledCallback | None = None,
        scheduler=None,
    ) -> None:
        """Initialize the poller.

        Args:
            fetch_images: Coroutine returning the full current image list.
            interval: Seconds between polls while work is in flight.
            pulse_seconds: How long a completed image stays "just completed".
            on_settled: Awaited with the ids that reached a terminal status.
            scheduler: Optional APScheduler instance; one is created on demand.

        Raises:
            ImportError: If apscheduler is not installed.
        """
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
        except ImportError:
            raise ImportError("apscheduler is required: pip install apscheduler")

        self._AsyncIOScheduler = AsyncIOScheduler
        self._scheduler = scheduler
        self._owns_scheduler = scheduler is None
        self._fetch_images = fetch_images
        self._interval = interval
        self._pulse_seconds = pulse_seconds
        self._on_settled = on_settled

        self._statuses: dict[str, ProcessingStatus] = {}
        self._just_completed: set[str] = set()
        # Reprocess requested locally, server has not picked it up yet
        self._reprocessing: set[str] = set()
        self._subscribers: dict[str, list[StatusCallback]] = {}
        self._in_flight = False
        self._polling = False
        self._closed = False

    # ── State ──

    def status(self, image_id: str) -> ProcessingStatus | None:
        return self._statuses.get(image_id)

    @property
    def active(self) -> set[str]:
        """Ids of images still pending or processing."""
        return {i for i, s in self._statuses.items() if not s.is_terminal}

    @property
    def has_active(self) -> bool:
        return any(not s.is_terminal for s in self._statuses.values())

    @property
    def polling(self) -> bool:
        return self._polling

    @property
    def just_completed(self) -> frozenset[str]:
        return frozenset(self._just_completed)

    def is_just_completed(self, image_id: str) -> bool:
        return image_id in self._just_completed

    def track(self, images: Iterable[LinkedImage]) -> list[str]:
        """Replace the status map from a full image list.

        Server statuses are authoritative, except that a terminal status is
        ignored for an image whose reprocess the server has not picked up
        yet (it is the result of the previous run). Returns the ids that
        moved from in-flight to a terminal status.
        """
        previous = self._statuses
        self._statuses = {
            img.id: img.processing_status
            for img in images
            if img.id and img.processing_status is not None
        }
        for image_id in sorted(self._reprocessing):
            server = self._statuses.get(image_id)
            local = previous.get(image_id)
            if server is not None and server.is_terminal and local is not None:
                logger.debug("Ignoring stale %s status for image %s", server.value, image_id)
                self._statuses[image_id] = local
            else:
                self._reprocessing.discard(image_id)

        settled: list[str] = []
        for image_id in sorted(previous.keys() | self._statuses.keys()):
            old, new = previous.get(image_id), self._statuses.get(image_id)
            if old == new:
                continue
            self._notify(image_id, old, new)
            if old is not None and not old.is_terminal and new is not None and new.is_terminal:
                settled.append(image_id)
                if new is ProcessingStatus.COMPLETED:
                    self._pulse(image_id)
        return settled

    # ── Local transitions ──

    def request_reprocess(self, image_id: str) -> None:
        """Reset a settled (or untracked) image to pending and resume polling."""
        old = self._statuses.get(image_id)
        if old is not None and not old.is_terminal:
            raise InvalidTransition(f"Image {image_id} is already {old.value}")
        self._set(image_id, ProcessingStatus.PENDING)
        self._reprocessing.add(image_id)
        logger.info("Reprocess requested for image %s", image_id)
        self.sync()

    def acknowledge(self, image_id: str) -> None:
        """The extraction service accepted the image: pending → processing."""
        old = self._statuses.get(image_id)
        if old is not ProcessingStatus.PENDING:
            raise InvalidTransition(
                f"Image {image_id} cannot start processing from {old.value if old else 'untracked'}"
            )
        self._reprocessing.discard(image_id)
        self._set(image_id, ProcessingStatus.PROCESSING)

    def revert(self, image_id: str, status: ProcessingStatus | None) -> None:
        """Restore a status after a reprocess request was rejected."""
        self._reprocessing.discard(image_id)
        self._set(image_id, status)
        self.sync()

    def _set(self, image_id: str, status: ProcessingStatus | None) -> None:
        old = self._statuses.get(image_id)
        if status is None:
            self._statuses.pop(image_id, None)
        else:
            self._statuses[image_id] = status
        if old != status:
            self._notify(image_id, old, status)

    # ── Subscriptions ──

    def subscribe(self, image_id: str, callback: StatusCallback) -> None:
        """Call ``callback(image_id, old, new)`` on every change for ``image_id``.

        Pass ``ANY_IMAGE`` to receive changes for all images.
        """
        self._subscribers.setdefault(image_id, []).append(callback)

    def unsubscribe(self, image_id: str, callback: StatusCallback) -> None:
        callbacks = self._subscribers.get(image_id, [])
        if callback in callbacks:
            callbacks.remove(callback)
        if not callbacks:
            self._subscribers.pop(image_id, None)

    def _notify(
        self, image_id: str, old: ProcessingStatus | None, new: ProcessingStatus | None
    ) -> None:
        callbacks = [
            *self._subscribers.get(image_id, []),
            *self._subscribers.get(ANY_IMAGE, []),
        ]
        for callback in callbacks:
            try:
                callback(image_id, old, new)
            except Exception:
                logger.exception("Status callback failed for image %s", image_id)

    # ── Polling ──

    async def tick(self) -> bool:
        """Run one poll. Returns True if a fetch happened."""
        if self._closed:
            return False
        if self._in_flight:
            logger.debug("Poll skipped: previous fetch still in flight")
            return False
        if not self.has_active:
            self._stop()
            return False

        self._in_flight = True
        try:
            images = await self._fetch_images()
        except Exception:
            logger.exception("Image status refresh failed")
            return False
        finally:
            self._in_flight = False

        settled = self.track(images)
        logger.debug("Poll: %d image(s) still processing", len(self.active))
        if settled:
            logger.info("%d image(s) finished processing", len(settled))
            if self._on_settled is not None:
                try:
                    await self._on_settled(settled)
                except Exception:
                    logger.exception("Refresh after processing failed")
        self.sync()
        return True

    def sync(self) -> None:
        """Start polling if work is in flight, stop it when everything settled."""
        if self._closed:
            return
        active = self.has_active
        if active and not self._polling:
            self._start()
        elif not active and self._polling:
            self._stop()

    def _get_scheduler(self):
        if self._scheduler is None:
            self._scheduler = self._AsyncIOScheduler()
        if not self._scheduler.running:
            self._scheduler.start()
        return self._scheduler

    def _start(self) -> None:
        self._get_scheduler().add_job(
            self.tick,
            trigger="interval",
            seconds=self._interval,
            id=POLL_JOB_ID,
            name="Image processing status",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._polling = True
        logger.info(
            "Polling every %.1fs (%d image(s) processing)",
            self._interval,
            len(self.active),
        )

    def _stop(self) -> None:
        if not self._polling:
            return
        self._remove_job(POLL_JOB_ID)
        self._polling = False
        logger.info("Polling stopped: no images processing")

    def _pulse(self, image_id: str) -> None:
        if self._closed:
            return
        self._just_completed.add(image_id)
        self._get_scheduler().add_job(
            self._expire_pulse,
            trigger="date",
            run_date=datetime.now(timezone.utc) + timedelta(seconds=self._pulse_seconds),
            args=[image_id],
            id=f"pulse:{image_id}",
            replace_existing=True,
        )

    async def _expire_pulse(self, image_id: str) -> None:
        self._just_completed.discard(image_id)

    def _remove_job(self, job_id: str) -> None:
        if self._scheduler is not None and self._scheduler.get_job(job_id):
            self._scheduler.remove_job(job_id)

    # ── Teardown ──

    def close(self) -> None:
        """Cancel the poll and every pending pulse."""
        if self._closed:
            return
        self._closed = True
        self._remove_job(POLL_JOB_ID)
        for image_id in self._just_completed:
            self._remove_job(f"pulse:{image_id}")
        if self._owns_scheduler and self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._polling = False
        self._just_completed.clear()
        self._reprocessing.clear()
        self._subscribers.clear()
        logger.debug("Poller closed")
