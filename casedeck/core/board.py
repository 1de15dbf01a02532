"""CaseBoard — the authoritative live-state projection of active cases.

Each incoming ``CaseSnapshot`` becomes exactly one transition:

1. inactive (state code present and non-zero): remove the case if it is
   on the board, otherwise ignore it;
2. active and already on the board: update it in place;
3. active and new: insert it, evicting slot 0 first when the board is full.

Transitions run one at a time through a ``SerialTaskQueue`` in arrival
order.  Each one commits its state change to the ``SlotTable`` before it
enqueues any visual effect on the ``AnimationQueue``, so the board's
logical state may run ahead of what the device currently shows but the
two never disagree about order.

Render failures never mutate state: an insert whose render fails is
rejected, and an update whose render fails leaves the previous entry
(and what is on the key) untouched.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable, Iterable

from casedeck.core import effects
from casedeck.core.clock import AsyncioClock, Clock
from casedeck.core.slot_table import Removal, SlotTable
from casedeck.core.task_queue import AnimationQueue, SerialTaskQueue
from casedeck.display.base import Display
from casedeck.models.board import (
    BoardSnapshot,
    SlotEntry,
    SlotView,
    TransitionKind,
    TransitionResult,
)
from casedeck.models.cases import CaseSnapshot
from casedeck.render.keys import render_case_key

logger = logging.getLogger(__name__)

CaseRenderer = Callable[[CaseSnapshot], bytes]

DEFAULT_FRAME_DELAY = 0.12


class CaseBoard:
    """Fixed-capacity ordered board of active cases bound to one display.

    Parameters
    ----------
    display:
        Target display; its geometry fixes the capacity and key mapping.
    renderer:
        Pure function ``CaseSnapshot -> RGB key buffer``.  Defaults to
        ``render_case_key`` at the display's key size.
    animations:
        Queue that runs every display write.  A private one is created if
        not provided.
    clock:
        Time source for animation frame delays.
    frame_delay:
        Seconds between animation frames.
    """

    def __init__(
        self,
        display: Display,
        renderer: CaseRenderer | None = None,
        *,
        animations: AnimationQueue | None = None,
        clock: Clock | None = None,
        frame_delay: float = DEFAULT_FRAME_DELAY,
    ) -> None:
        self._display = display
        self._geometry = display.geometry
        self._renderer = renderer or functools.partial(
            render_case_key, size=self._geometry.key_size
        )
        self._table = SlotTable(self._geometry.slot_count)
        self._animations = animations or AnimationQueue()
        self._transitions = SerialTaskQueue("transitions")
        self._clock = clock or AsyncioClock()
        self._frame_delay = frame_delay

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def capacity(self) -> int:
        return self._table.capacity

    @property
    def animations(self) -> AnimationQueue:
        return self._animations

    @property
    def display(self) -> Display:
        return self._display

    def __len__(self) -> int:
        return len(self._table)

    # ------------------------------------------------------------------
    # Event intake
    # ------------------------------------------------------------------

    def submit(self, snapshot: CaseSnapshot) -> None:
        """Queue *snapshot* for a transition after every earlier one.

        Safe to call from a subscriber callback; returns immediately.
        """
        self._transitions.enqueue(functools.partial(self._apply_queued, snapshot))

    async def settle(self) -> None:
        """Wait until every submitted transition has been applied."""
        await self._transitions.flush()

    async def flush(self) -> None:
        """Wait for pending transitions and then for their animations."""
        await self._transitions.flush()
        await self._animations.flush()

    async def load(self, snapshots: Iterable[CaseSnapshot]) -> list[TransitionResult]:
        """Apply an initial bulk snapshot without animation, then redraw all keys."""
        results: list[TransitionResult] = []

        async def _load() -> None:
            for snapshot in snapshots:
                results.append(await self._apply(snapshot, animate=False))
            self.render_all()

        self._transitions.enqueue(_load)
        await self._transitions.flush()
        logger.info("Loaded %d case(s) onto the board (%d present).", len(results), len(self))
        return results

    async def apply(self, snapshot: CaseSnapshot) -> TransitionResult:
        """Apply one snapshot immediately and return what happened.

        Callers must not run two ``apply`` calls concurrently; event
        handlers should use ``submit()`` instead.
        """
        return await self._apply(snapshot, animate=True)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def slot_of(self, case_id: str) -> int | None:
        return self._table.slot_of(case_id)

    def entry_at(self, slot: int) -> SlotEntry | None:
        return self._table.get(slot)

    def case_at_key(self, key: int) -> CaseSnapshot | None:
        """Return the case shown on *key*, or ``None`` for empty/unreserved keys."""
        slot = self._geometry.slot_for_key(key)
        if slot is None:
            return None
        entry = self._table.get(slot)
        return entry.case if entry else None

    def snapshot(self) -> BoardSnapshot:
        """Produce a point-in-time view of the occupied slots."""
        views = [
            SlotView(
                slot=slot,
                key=self._geometry.key_for_slot(slot),
                case_id=entry.case_id,
                ticket=entry.case.ticket_display,
                title=entry.case.title_display,
                priority=entry.case.priority_display,
                status=entry.case.status_display,
                color=entry.case.priority_color,
            )
            for slot, entry in self._table.entries()
        ]
        return BoardSnapshot(capacity=self.capacity, slots=views)

    def check_invariants(self) -> None:
        self._table.check_invariants()

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def render_all(self) -> None:
        """Queue a redraw of every slot in slot order, without animation."""
        placements: list[tuple[int, bytes]] = []
        vacant: list[int] = []
        for slot in range(self.capacity):
            entry = self._table.get(slot)
            key = self._geometry.key_for_slot(slot)
            if entry is None:
                vacant.append(key)
            else:
                placements.append((key, entry.buffer))
        self._animations.enqueue(
            functools.partial(effects.redraw, self._display, placements, vacant)
        )

    def key_down(self, key: int) -> CaseSnapshot | None:
        """Flash a pressed key and return the case shown on it, if any."""
        self._animations.enqueue(functools.partial(effects.flash, self._display, key))
        return self.case_at_key(key)

    def key_up(self, key: int) -> None:
        """Restore a released key to what the board says it shows."""
        slot = self._geometry.slot_for_key(key)
        entry = self._table.get(slot) if slot is not None else None
        if entry is None:
            self._animations.enqueue(functools.partial(self._display.clear, key))
        else:
            self._animations.enqueue(
                functools.partial(effects.redraw, self._display, [(key, entry.buffer)])
            )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _apply_queued(self, snapshot: CaseSnapshot) -> None:
        result = await self._apply(snapshot, animate=True)
        logger.debug("Transition %s for case %s.", result.kind.value, result.case_id)

    async def _apply(self, snapshot: CaseSnapshot, *, animate: bool) -> TransitionResult:
        present = self._table.slot_of(snapshot.case_id) is not None

        if not snapshot.is_active:
            if not present:
                return TransitionResult(kind=TransitionKind.IGNORED, case_id=snapshot.case_id)
            return self._remove(snapshot.case_id, animate=animate)
        if present:
            return await self._update(snapshot, animate=animate)
        return await self._insert(snapshot, animate=animate)

    async def _insert(self, snapshot: CaseSnapshot, *, animate: bool) -> TransitionResult:
        buffer = await self._render(snapshot)
        if buffer is None:
            return TransitionResult(kind=TransitionKind.REJECTED, case_id=snapshot.case_id)

        eviction: Removal | None = None
        if self._table.is_full:
            eviction = self._table.evict_front()

        slot = self._table.first_empty()
        if slot is None:
            # evict_front on a full table always frees the last slot
            raise RuntimeError("No free slot after eviction")
        self._table.place(slot, SlotEntry(case=snapshot, buffer=buffer))

        if animate:
            if eviction is not None:
                self._animations.enqueue(
                    functools.partial(
                        effects.redraw,
                        self._display,
                        self._placements(eviction.shifted),
                        [self._geometry.key_for_slot(eviction.vacated)],
                    )
                )
            self._animations.enqueue(
                functools.partial(
                    effects.slide_in,
                    self._display,
                    self._clock,
                    self._geometry.key_for_slot(slot),
                    buffer,
                    self._frame_delay,
                )
            )

        evicted_id = eviction.entry.case_id if eviction else None
        if evicted_id:
            logger.info(
                "Inserted case %s at slot %d (evicted %s).", snapshot.case_id, slot, evicted_id
            )
        else:
            logger.info("Inserted case %s at slot %d.", snapshot.case_id, slot)
        return TransitionResult(
            kind=TransitionKind.INSERTED,
            case_id=snapshot.case_id,
            slot=slot,
            evicted_id=evicted_id,
            shifted=eviction.shifted if eviction else [],
        )

    async def _update(self, snapshot: CaseSnapshot, *, animate: bool) -> TransitionResult:
        buffer = await self._render(snapshot)
        if buffer is None:
            return TransitionResult(
                kind=TransitionKind.REJECTED,
                case_id=snapshot.case_id,
                slot=self._table.slot_of(snapshot.case_id),
            )

        slot = self._table.replace(SlotEntry(case=snapshot, buffer=buffer))
        if animate:
            self._animations.enqueue(
                functools.partial(
                    effects.pulse,
                    self._display,
                    self._clock,
                    self._geometry.key_for_slot(slot),
                    buffer,
                    self._frame_delay,
                )
            )
        logger.info("Updated case %s in place at slot %d.", snapshot.case_id, slot)
        return TransitionResult(kind=TransitionKind.UPDATED, case_id=snapshot.case_id, slot=slot)

    def _remove(self, case_id: str, *, animate: bool) -> TransitionResult:
        removal = self._table.remove(case_id)

        if animate:
            self._animations.enqueue(
                functools.partial(
                    effects.fade_out,
                    self._display,
                    self._clock,
                    self._geometry.key_for_slot(removal.slot),
                    removal.entry.buffer,
                    self._frame_delay,
                )
            )
            if removal.shifted:
                self._animations.enqueue(
                    functools.partial(
                        effects.shift_ripple,
                        self._display,
                        self._clock,
                        self._placements(removal.shifted),
                        [self._geometry.key_for_slot(removal.vacated)],
                        self._frame_delay,
                    )
                )

        logger.info(
            "Removed case %s from slot %d (%d shifted).",
            case_id,
            removal.slot,
            len(removal.shifted),
        )
        return TransitionResult(
            kind=TransitionKind.REMOVED,
            case_id=case_id,
            slot=removal.slot,
            shifted=removal.shifted,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _render(self, snapshot: CaseSnapshot) -> bytes | None:
        """Render off the event loop; ``None`` on any failure."""
        try:
            buffer = await asyncio.to_thread(self._renderer, snapshot)
        except Exception as exc:
            logger.warning("Render failed for case %s: %s", snapshot.case_id, exc)
            return None
        if len(buffer) != self._geometry.key_buffer_size:
            logger.warning(
                "Render for case %s produced %d bytes, expected %d.",
                snapshot.case_id,
                len(buffer),
                self._geometry.key_buffer_size,
            )
            return None
        return buffer

    def _placements(self, slots: Iterable[int]) -> list[tuple[int, bytes]]:
        placements: list[tuple[int, bytes]] = []
        for slot in slots:
            entry = self._table.get(slot)
            if entry is not None:
                placements.append((self._geometry.key_for_slot(slot), entry.buffer))
        return placements

    def __repr__(self) -> str:
        return f"CaseBoard(capacity={self.capacity}, occupied={len(self)})"
