"""Delay-and-coalesce batching for the quick +/- stock buttons.

Each item gets its own :class:`Debouncer`. A tap adds to the pending delta
and re-arms a one-shot scheduler job; only when the job fires without being
re-armed does the accumulated delta reach the flush callback, once.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable

from apscheduler.triggers.date import DateTrigger

from cleanstock.errors import InventoryError


logger = logging.getLogger(__name__)

FlushCallback = Callable[[str, Decimal], None]


class Debouncer:
    def __init__(
        self,
        key: str,
        *,
        delay: timedelta,
        flush: FlushCallback,
        scheduler,
    ):
        self.key = key
        self.delay = delay
        self.scheduler = scheduler
        self._flush = flush
        self._pending = Decimal("0")
        self._lock = threading.Lock()

    @property
    def job_id(self) -> str:
        return f"quick-adjust:{self.key}"

    @property
    def pending(self) -> Decimal:
        with self._lock:
            return self._pending

    def push(self, amount) -> Decimal:
        with self._lock:
            self._pending += Decimal(amount)
            pending = self._pending
            self.scheduler.add_job(
                self.fire,
                trigger=DateTrigger(run_date=datetime.now(timezone.utc) + self.delay),
                id=self.job_id,
                replace_existing=True,
                max_instances=1,
                misfire_grace_time=None,
            )
        return pending

    def fire(self) -> None:
        with self._lock:
            amount = self._pending
            self._pending = Decimal("0")
        if amount == 0:
            return
        try:
            self._flush(self.key, amount)
        except InventoryError as exc:
            logger.warning("Quick adjustment of %s for %s failed: %s", amount, self.key, exc)
        except Exception:
            logger.exception("Quick adjustment of %s for %s crashed", amount, self.key)

    def cancel(self) -> Decimal:
        with self._lock:
            amount = self._pending
            self._pending = Decimal("0")
        job = self.scheduler.get_job(self.job_id)
        if job is not None:
            self.scheduler.remove_job(self.job_id)
        return amount


class QuickAdjustBatcher:
    """Owns one debouncer per item so controls never share an accumulator."""

    def __init__(self, *, flush: FlushCallback, scheduler, delay_ms: int = 500):
        self.flush = flush
        self.scheduler = scheduler
        self.delay = timedelta(milliseconds=delay_ms)
        self._debouncers: dict[str, Debouncer] = {}
        self._lock = threading.Lock()

    def debouncer_for(self, item_id: str) -> Debouncer:
        with self._lock:
            debouncer = self._debouncers.get(item_id)
            if debouncer is None:
                debouncer = Debouncer(
                    item_id,
                    delay=self.delay,
                    flush=self.flush,
                    scheduler=self.scheduler,
                )
                self._debouncers[item_id] = debouncer
            return debouncer

    def tap(self, item_id: str, amount) -> Decimal:
        return self.debouncer_for(item_id).push(amount)

    def pending(self, item_id: str) -> Decimal:
        debouncer = self._debouncers.get(item_id)
        return debouncer.pending if debouncer is not None else Decimal("0")

    def forget(self, item_id: str) -> None:
        with self._lock:
            debouncer = self._debouncers.pop(item_id, None)
        if debouncer is not None:
            debouncer.cancel()
