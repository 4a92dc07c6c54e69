"""Session report: P&L summary, trade log, and chart export for a replay."""
from __future__ import annotations

from pathlib import Path
from statistics import median
from typing import List, Sequence, Tuple

import matplotlib.pyplot as plt
import pandas as pd

from chartrade.data_downloader import candles_to_frame
from chartrade.replay import SimulationState, current_candle, visible_candles
from chartrade.types import ClosedTrade, Side


# ------------------------------- analytics -----------------------------------
def _consecutive_counts(vals: List[bool]) -> Tuple[int, int]:
    """Return (max_consecutive_true, max_consecutive_false)."""
    max_t = max_f = cur_t = cur_f = 0
    for v in vals:
        if v:
            cur_t += 1
            cur_f = 0
        else:
            cur_f += 1
            cur_t = 0
        max_t = max(max_t, cur_t)
        max_f = max(max_f, cur_f)
    return max_t, max_f


def _holding_days(trades: Sequence[ClosedTrade]) -> Tuple[float, float]:
    """Return (avg_days, median_days) for realised trades."""
    if not trades:
        return 0.0, 0.0
    days = [(t.exit_date - t.entry_date).days for t in trades]
    return sum(days) / len(days), float(median(days))


# --------------------------- text reports --------------------------------
def summary(state: SimulationState) -> str:
    """Multi-line P&L and trade statistics for ``state``."""
    trades = state.trade_history
    bar = current_candle(state)
    mark = bar.close if bar is not None else 0.0

    total = len(trades)
    wins = sum(t.profit > 0 for t in trades)
    losses = sum(t.profit < 0 for t in trades)
    flats = total - wins - losses
    win_rate = (wins / total * 100.0) if total else 0.0

    gross_profit = sum(max(t.profit, 0.0) for t in trades)
    gross_loss = sum(min(t.profit, 0.0) for t in trades)
    profit_factor = (gross_profit / abs(gross_loss)) if gross_loss < 0 else float("inf")
    best = max((t.profit for t in trades), default=0.0)
    worst = min((t.profit for t in trades), default=0.0)
    max_wins, max_losses = _consecutive_counts([t.profit > 0 for t in trades])
    avg_days, med_days = _holding_days(trades)

    lines = [
        "========== Replay Summary ==========",
        f"Title                      : {state.title}",
        f"Current bar                : {bar.time.isoformat() if bar else '-'}",
        f"Mark price                 : {mark:,.2f}",
    ]
    for side in Side:
        pos = state.ledger.position(side)
        if pos is None:
            lines.append(f"Open {side.value:<5}                 : -")
        else:
            lines.append(
                f"Open {side.value:<5}                 : {pos.total_size:g} @ {pos.avg_price:,.2f} "
                f"({len(pos.lots)} lots)"
            )
    lines += [
        "",
        f"Realised PnL               : {state.realized_pl:,.2f}",
        f"Unrealised PnL             : {state.unrealized_pl:,.2f}",
        f"Total PnL                  : {state.realized_pl + state.unrealized_pl:,.2f}",
        "",
        f"Trades (total/win/loss/flat): {total} / {wins} / {losses} / {flats}",
        f"Win rate                   : {win_rate:,.2f} %",
        f"Profit factor              : {profit_factor if profit_factor != float('inf') else 'inf'}",
        f"Best / Worst trade         : {best:,.2f} / {worst:,.2f}",
        f"Max consecutive wins/loss  : {max_wins} / {max_losses}",
        f"Avg / Median hold (days)   : {avg_days:,.2f} / {med_days:,.2f}",
        "====================================",
    ]
    return "\n".join(lines)


def trade_logs(state: SimulationState) -> str:
    header = "\n----- Trade Log -----"
    if not state.trade_history:
        return f"{header}\nNo trades executed."
    body = "\n".join(
        f"{t.entry_date} {t.side.value.upper()} {t.size:g}@{t.entry_price:.2f} → "
        f"{t.exit_date} CLOSE @{t.exit_price:.2f}  PnL {t.profit:.2f}"
        for t in state.trade_history
    )
    return f"{header}\n{body}"


# --------------------------- plotting & export ---------------------------
def save_plot(state: SimulationState, dst_file: Path) -> None:
    """Plot visible closes with entry/exit markers of closed and open trades."""
    df = candles_to_frame(visible_candles(state))

    plt.style.use("seaborn-v0_8-darkgrid")
    plt.figure(figsize=(13, 6))
    plt.plot(df["close"], label="Close", linewidth=1.3, color="#1f77b4")

    trades = state.trade_history
    if trades:
        plt.scatter(
            [pd.Timestamp(t.entry_date) for t in trades], [t.entry_price for t in trades],
            marker="^", s=90, color="#2196F3", label="Entry", zorder=3,
        )
        plt.scatter(
            [pd.Timestamp(t.exit_date) for t in trades], [t.exit_price for t in trades],
            marker="v", s=90,
            color=["#4CAF50" if t.profit > 0 else "#F44336" for t in trades],
            label="Exit", zorder=3,
        )
    lots = state.ledger.lots()
    if lots:
        plt.scatter(
            [pd.Timestamp(lot.date) for _, lot in lots], [lot.price for _, lot in lots],
            marker="o", s=60,
            color=["#2196F3" if side is Side.LONG else "#F44336" for side, _ in lots],
            label="Open", zorder=3,
        )

    plt.title(f"{state.title} Replay", fontsize=14, pad=10)
    plt.xlabel("Date")
    plt.ylabel("Price")
    plt.legend()
    plt.tight_layout()
    plt.savefig(dst_file, dpi=120)
    plt.close()


def export_logs(state: SimulationState, dst_dir: Path) -> None:
    """Write trade.log (summary + trade logs) and trades.png into dst_dir."""
    dst_dir.mkdir(parents=True, exist_ok=True)
    combined = f"{summary(state)}\n{trade_logs(state)}"
    (dst_dir / "trade.log").write_text(combined, encoding="utf-8")
    if state.candles:
        save_plot(state, dst_dir / "trades.png")
