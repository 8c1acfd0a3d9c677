"""
Availability Reconciler

Keeps a read-only mirror of inventory for the products and variants a cart
references. One background task does all the fetching: it wakes up either on
the refresh interval or when the tracked subject set changes, so a timer tick
and a composition change never produce two concurrent fetches. A change that
arrives while a fetch is in flight sets the trigger again and is covered by
the next pass. A trigger whose subject set was already fetched by a direct
refresh() is dropped.
"""

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..models.cart import CartLineItem
from ..models.inventory import AvailabilitySnapshot, AvailabilityView
from .contracts import InventoryService

logger = logging.getLogger(__name__)

FETCH_ERROR_MESSAGE = "Failed to fetch product availability"


class AvailabilityReconciler:
    """Batch availability for a tracked set of product and variant ids"""

    def __init__(self, inventory: InventoryService, refresh_interval: float = 30.0):
        self.inventory = inventory
        self.refresh_interval = refresh_interval

        self._product_ids: frozenset[str] = frozenset()
        self._variant_ids: frozenset[str] = frozenset()
        self._snapshots: dict[str, AvailabilitySnapshot] = {}

        self._lock = asyncio.Lock()
        self._trigger = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._stopping = False
        # Bumped on every composition change; refresh() records what it covered
        self._generation = 0
        self._covered_generation = -1

        self.loading = False
        self.error: Optional[str] = None
        self.last_fetched_at: Optional[datetime] = None

    # ==================== Tracking ====================

    def track(self, items: Iterable[CartLineItem]) -> bool:
        """Track the subjects referenced by a set of line items"""
        items = list(items)
        return self.track_ids(
            product_ids=(item.product_id for item in items if not item.variant_id),
            variant_ids=(item.variant_id for item in items if item.variant_id),
        )

    def track_ids(self, product_ids: Iterable[str], variant_ids: Iterable[str]) -> bool:
        """
        Replace the tracked subject set.

        Returns:
            True if the set changed (an immediate refresh is then scheduled)
        """
        product_ids = frozenset(product_ids)
        variant_ids = frozenset(variant_ids)
        if product_ids == self._product_ids and variant_ids == self._variant_ids:
            return False

        self._product_ids = product_ids
        self._variant_ids = variant_ids
        referenced = product_ids | variant_ids
        self._snapshots = {
            subject: snapshot
            for subject, snapshot in self._snapshots.items()
            if subject in referenced
        }
        self._generation += 1
        self._trigger.set()
        logger.debug(f"Tracking {len(product_ids)} products, {len(variant_ids)} variants")
        return True

    @property
    def subjects(self) -> frozenset[str]:
        return self._product_ids | self._variant_ids

    # ==================== Fetching ====================

    async def refresh(self) -> bool:
        """
        Fetch availability for the current subject set.

        On failure the previous snapshots stay in place and ``error`` is set.

        Returns:
            True if the fetch succeeded
        """
        async with self._lock:
            product_ids, variant_ids = self._product_ids, self._variant_ids
            self._covered_generation = self._generation
            if not product_ids and not variant_ids:
                self.error = None
                return True

            self.loading = True
            try:
                fetched = await self.inventory.get_availability(product_ids, variant_ids)
            except Exception as e:
                logger.warning(f"Availability fetch failed, keeping previous snapshot: {e}")
                self.error = FETCH_ERROR_MESSAGE
                return False
            finally:
                self.loading = False

            merged = dict(self._snapshots)
            for subject in product_ids | variant_ids:
                if subject in fetched:
                    merged[subject] = fetched[subject]
                else:
                    # Absent from a partial answer: no longer known
                    merged.pop(subject, None)

            referenced = self.subjects
            self._snapshots = {s: snap for s, snap in merged.items() if s in referenced}
            self.error = None
            self.last_fetched_at = datetime.now(timezone.utc)
            return True

    async def _run(self) -> None:
        while not self._stopping:
            waiter = asyncio.ensure_future(self._trigger.wait())
            try:
                done, _ = await asyncio.wait({waiter}, timeout=self.refresh_interval)
            finally:
                waiter.cancel()
            if self._stopping:
                break

            self._trigger.clear()
            if done and self._covered_generation == self._generation:
                logger.debug("Tracked subjects already fetched, skipping triggered refresh")
                continue
            await self.refresh()

    def start(self) -> None:
        """Start polling (fetches immediately)"""
        if self._task and not self._task.done():
            return
        self._stopping = False
        self._covered_generation = -1
        self._trigger.set()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop polling; the loop also exits on its own once it sees the stop flag"""
        task = self._task
        if not task:
            return
        self._stopping = True
        self._trigger.set()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ==================== Results ====================

    @property
    def snapshots(self) -> dict[str, AvailabilitySnapshot]:
        return dict(self._snapshots)

    @property
    def products(self) -> dict[str, AvailabilitySnapshot]:
        return {s: snap for s, snap in self._snapshots.items() if s in self._product_ids}

    @property
    def variants(self) -> dict[str, AvailabilitySnapshot]:
        return {s: snap for s, snap in self._snapshots.items() if s in self._variant_ids}

    def get(self, subject_id: str) -> Optional[AvailabilitySnapshot]:
        return self._snapshots.get(subject_id)

    def unavailable_products(self, items: Iterable[CartLineItem]) -> set[str]:
        """Products whose stock is out or below the requested quantity"""
        unavailable = set()
        for item in items:
            snapshot = self._snapshots.get(item.subject_id)
            if snapshot is not None and not snapshot.can_fulfil(item.quantity):
                unavailable.add(item.product_id)
        return unavailable

    def unknown_products(self, items: Iterable[CartLineItem]) -> set[str]:
        """Products with no snapshot yet (never fetched, or absent upstream)"""
        return {
            item.product_id for item in items
            if item.subject_id not in self._snapshots
        }

    def conflicts(self, items: Iterable[CartLineItem]) -> tuple[set[str], set[str]]:
        items = list(items)
        return self.unavailable_products(items), self.unknown_products(items)

    def view(self, items: Optional[Iterable[CartLineItem]] = None) -> AvailabilityView:
        items = list(items or [])
        unavailable, unknown = self.conflicts(items)
        return AvailabilityView(
            loading=self.loading or (bool(self.subjects) and self.last_fetched_at is None and self.error is None),
            error=self.error,
            product_availability=self.products,
            variant_availability=self.variants,
            unavailable=sorted(unavailable),
            unknown=sorted(unknown),
        )


def use_availability(
    inventory: InventoryService,
    product_ids: Iterable[str] = (),
    variant_ids: Iterable[str] = (),
    refresh_interval: float = 60.0,
) -> AvailabilityReconciler:
    """Build a reconciler tracking the given ids (passive badges refresh every 60s)"""
    reconciler = AvailabilityReconciler(inventory, refresh_interval=refresh_interval)
    reconciler.track_ids(product_ids, variant_ids)
    return reconciler
