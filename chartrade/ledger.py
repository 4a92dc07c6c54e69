"""Position ledger with FIFO lots and weighted-average cost basis."""
from __future__ import annotations

import datetime as dt
import logging
import uuid
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from chartrade.types import ClosedTrade, Lot, LotId, Position, Side

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


# ───────────────────────────── ledger class ─────────────────────────────
@dataclass(slots=True, frozen=True)
class PositionLedger:
    """Open long/short positions, at most one per side.

    Features:
      • Repeated opens on one side append lots and re-average the cost
      • Partial closes consume lots FIFO, each lot touched = one ClosedTrade
      • Mark-to-market via `unrealized_pl`

    The ledger is immutable: every operation returns a new ledger and the
    original is left untouched. P&L values are never rounded here.
    """

    positions: Tuple[Position, ...] = ()

    # --------------------------- helper properties ---------------------------
    def position(self, side: Side) -> Optional[Position]:
        """Return the open position on ``side`` or None if flat."""
        for pos in self.positions:
            if pos.side is side:
                return pos
        return None

    @property
    def is_flat(self) -> bool:
        return not self.positions

    def lots(self) -> List[Tuple[Side, Lot]]:
        """Every open lot with its side, in position order."""
        return [(pos.side, lot) for pos in self.positions for lot in pos.lots]

    def _with_position(self, side: Side, pos: Optional[Position]) -> "PositionLedger":
        """Replace (or drop, when ``pos`` is None) the position on ``side``."""
        kept: List[Position] = []
        replaced = False
        for existing in self.positions:
            if existing.side is side:
                replaced = True
                if pos is not None:
                    kept.append(pos)
            else:
                kept.append(existing)
        if not replaced and pos is not None:
            kept.append(pos)
        return PositionLedger(positions=tuple(kept))

    # --------------------------- trade execution -----------------------------
    def open(self, side: Side, price: float, size: float, date: dt.date) -> "PositionLedger":
        """Add a lot of ``size`` at ``price`` on ``side``.

        Creates the position if the side is flat, otherwise appends the lot to
        the existing one. Size validation is the caller's job.
        """
        lot = Lot(id=LotId(_new_id()), price=float(price), size=size, date=date)
        existing = self.position(side)
        if existing is None:
            return self._with_position(side, Position(side=side, lots=(lot,)))
        return self._with_position(side, replace(existing, lots=existing.lots + (lot,)))

    def close_partial(
        self,
        side: Side,
        amount: float,
        mark_price: float,
        exit_date: dt.date,
    ) -> Tuple["PositionLedger", Tuple[ClosedTrade, ...]]:
        """Close ``amount`` units on ``side`` at ``mark_price``, oldest lot first.

        Returns:
            ``(ledger, trades)``. When no position exists on ``side``, or
            ``amount`` is not in ``(0, total_size]``, the same ledger and an
            empty tuple come back.
        """
        pos = self.position(side)
        if pos is None:
            logger.debug("close %s rejected: no open position", side.value)
            return self, ()
        if amount <= 0 or amount > pos.total_size:
            logger.debug("close %s rejected: amount %s vs size %s", side.value, amount, pos.total_size)
            return self, ()

        remaining = amount
        trades: List[ClosedTrade] = []
        kept: List[Lot] = []
        for lot in pos.lots:
            if remaining <= 0:
                kept.append(lot)
                continue

            close_size = min(remaining, lot.size)
            if side is Side.LONG:
                profit = (mark_price - lot.price) * close_size
            else:
                profit = (lot.price - mark_price) * close_size
            trades.append(
                ClosedTrade(
                    id=_new_id(),
                    side=side,
                    entry_price=lot.price,
                    exit_price=float(mark_price),
                    size=close_size,
                    entry_date=lot.date,
                    exit_date=exit_date,
                    profit=profit,
                    lot_id=lot.id,
                )
            )
            if lot.size > close_size:
                kept.append(replace(lot, size=lot.size - close_size))
            remaining -= close_size

        new_pos = replace(pos, lots=tuple(kept)) if kept else None
        return self._with_position(side, new_pos), tuple(trades)

    # ----------------------------- mark-to-market ----------------------------
    def unrealized_pl(self, mark_price: float) -> float:
        """Open P&L of all positions valued at ``mark_price``."""
        total = 0.0
        for pos in self.positions:
            if pos.side is Side.LONG:
                total += (mark_price - pos.avg_price) * pos.total_size
            else:
                total += (pos.avg_price - mark_price) * pos.total_size
        return total
