"""Replay controller: the state machine behind the trading trainer.

A session moves through three phases:

    IDLE  --LoadData-->  LOADED  --StartReplay-->  REPLAYING
                            ^                           |
                            +------- last AdvanceDay ---+

Every user intent is an action object. ``dispatch`` routes it to one pure
transition function and returns a new ``SimulationState``. Transitions whose
preconditions fail return the *same* state object, so callers can detect
"nothing happened" with ``is``. The premium flag is passed in explicitly and
re-applied after every transition.
"""
from __future__ import annotations

import bisect
import datetime as dt
import logging
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from chartrade import indicators
from chartrade.aggregate import to_weekly
from chartrade.config import SimulationConfig, ViewConfig
from chartrade.entitlement import Feature, is_allowed
from chartrade.ledger import PositionLedger
from chartrade.types import Candle, ClosedTrade, LinePoint, MacdPoint, Position, Side

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "ChartTrade Trainer"


# ─────────────────────────────────────────────────────────────── state ────
class Phase(Enum):
    IDLE = auto()
    LOADED = auto()
    REPLAYING = auto()


class IndicatorKind(Enum):
    MOVING_AVERAGE = "ma"
    RSI = "rsi"
    MACD = "macd"
    VOLUME = "volume"


_INDICATOR_FEATURES: Dict[IndicatorKind, Feature] = {
    IndicatorKind.MOVING_AVERAGE: Feature.MOVING_AVERAGE,
    IndicatorKind.RSI: Feature.RSI,
    IndicatorKind.MACD: Feature.MACD,
    IndicatorKind.VOLUME: Feature.VOLUME,
}


@dataclass(frozen=True)
class SimulationState:
    """Immutable snapshot of one replay session.

    Attributes:
        candles: Loaded daily candles, ascending.
        weekly: Weekly view derived from ``candles`` at load time.
        title: Display title of the loaded series.
        file_loaded: True once any data was loaded.
        replay_index: Index of the current bar (None before the first replay).
        is_replay: True while stepping through bars.
        ledger: Open positions.
        trade_history: Closed trades, oldest first.
        realized_pl: Running sum of closed-trade profits.
        unrealized_pl: Open P&L at the current bar's close.
        view: Chart settings, kept across reloads.
        config: Simulation knobs.
    """

    candles: Tuple[Candle, ...] = ()
    weekly: Tuple[Candle, ...] = ()
    title: str = DEFAULT_TITLE
    file_loaded: bool = False
    replay_index: Optional[int] = None
    is_replay: bool = False
    ledger: PositionLedger = PositionLedger()
    trade_history: Tuple[ClosedTrade, ...] = ()
    realized_pl: float = 0.0
    unrealized_pl: float = 0.0
    view: ViewConfig = field(default_factory=ViewConfig)
    config: SimulationConfig = SimulationConfig()

    @property
    def phase(self) -> Phase:
        if not self.file_loaded:
            return Phase.IDLE
        if self.is_replay and self.replay_index is not None:
            return Phase.REPLAYING
        return Phase.LOADED


# ───────────────────────────────────────────────────────────── actions ────
@dataclass(frozen=True)
class LoadData:
    candles: Sequence[Candle]
    title: str = DEFAULT_TITLE


@dataclass(frozen=True)
class StartReplay:
    start_date: dt.date


@dataclass(frozen=True)
class AdvanceDay:
    pass


@dataclass(frozen=True)
class Trade:
    side: Side


@dataclass(frozen=True)
class ClosePosition:
    side: Side
    amount: float


@dataclass(frozen=True)
class ToggleIndicator:
    """Flip an overlay. ``key`` is the MA period string for moving averages."""
    kind: IndicatorKind
    key: Optional[str] = None


@dataclass(frozen=True)
class ToggleWeeklyChart:
    pass


@dataclass(frozen=True)
class SetCandleColor:
    """Cosmetic; ``target`` is ``"up"`` or ``"down"``."""
    target: str
    color: str


Action = Union[
    LoadData,
    StartReplay,
    AdvanceDay,
    Trade,
    ClosePosition,
    ToggleIndicator,
    ToggleWeeklyChart,
    SetCandleColor,
]


# ───────────────────────────────────────────────────────── transitions ────
def _reset_trading(state: SimulationState, **changes) -> SimulationState:
    """Clear positions, history and P&L while applying ``changes``."""
    return replace(
        state,
        ledger=PositionLedger(),
        trade_history=(),
        realized_pl=0.0,
        unrealized_pl=0.0,
        **changes,
    )


def _load_data(state: SimulationState, action: LoadData, is_premium: bool) -> SimulationState:
    candles = tuple(action.candles)
    if not candles:
        logger.debug("load rejected: empty candle sequence")
        return state
    logger.info("loaded %d candles for %s", len(candles), action.title)
    return _reset_trading(
        state,
        candles=candles,
        weekly=to_weekly(candles),
        title=action.title,
        file_loaded=True,
        replay_index=None,
        is_replay=False,
    )


def _start_replay(state: SimulationState, action: StartReplay, is_premium: bool) -> SimulationState:
    if not state.candles:
        logger.debug("replay rejected: no data loaded")
        return state
    start = action.start_date
    if isinstance(start, dt.datetime):
        start = start.date()
    times = [bar.time for bar in state.candles]
    index = bisect.bisect_left(times, start)
    if index >= len(times):
        logger.debug("replay rejected: no bar on or after %s", start)
        return state
    logger.info("replay started at %s (index %d)", times[index], index)
    return _reset_trading(state, replay_index=index, is_replay=True)


def _advance_day(state: SimulationState, action: AdvanceDay, is_premium: bool) -> SimulationState:
    if state.phase is not Phase.REPLAYING:
        logger.debug("advance rejected: not replaying")
        return state
    if state.replay_index >= len(state.candles) - 1:
        logger.info("replay reached the last bar")
        return replace(state, is_replay=False)
    index = state.replay_index + 1
    mark = state.candles[index].close
    return replace(state, replay_index=index, unrealized_pl=state.ledger.unrealized_pl(mark))


def _trade(state: SimulationState, action: Trade, is_premium: bool) -> SimulationState:
    if state.phase is not Phase.REPLAYING:
        logger.debug("trade rejected: not replaying")
        return state
    feature = Feature.LONG if action.side is Side.LONG else Feature.SHORT
    if not is_allowed(feature, is_premium, short_requires_premium=state.config.short_requires_premium):
        logger.debug("trade rejected: %s requires premium", action.side.value)
        return state
    bar = state.candles[state.replay_index]
    ledger = state.ledger.open(action.side, bar.close, state.config.lot_size, bar.time)
    return replace(state, ledger=ledger, unrealized_pl=ledger.unrealized_pl(bar.close))


def _close_position(state: SimulationState, action: ClosePosition, is_premium: bool) -> SimulationState:
    if state.phase is not Phase.REPLAYING:
        logger.debug("close rejected: not replaying")
        return state
    bar = state.candles[state.replay_index]
    ledger, trades = state.ledger.close_partial(action.side, action.amount, bar.close, bar.time)
    if not trades:
        return state
    return replace(
        state,
        ledger=ledger,
        trade_history=state.trade_history + trades,
        realized_pl=state.realized_pl + sum(t.profit for t in trades),
        unrealized_pl=ledger.unrealized_pl(bar.close),
    )


def _toggle_indicator(state: SimulationState, action: ToggleIndicator, is_premium: bool) -> SimulationState:
    if not is_allowed(_INDICATOR_FEATURES[action.kind], is_premium):
        logger.debug("toggle rejected: %s requires premium", action.kind.value)
        return state

    view = state.view
    if action.kind is IndicatorKind.MOVING_AVERAGE:
        if action.key not in view.ma_configs:
            logger.debug("toggle rejected: unknown moving average %r", action.key)
            return state
        view = view.with_ma_visible(action.key, not view.ma_configs[action.key].visible)
    elif action.kind is IndicatorKind.RSI:
        view = replace(view, rsi=replace(view.rsi, visible=not view.rsi.visible))
    elif action.kind is IndicatorKind.MACD:
        view = replace(view, macd=replace(view.macd, visible=not view.macd.visible))
    else:
        view = replace(view, volume=replace(view.volume, visible=not view.volume.visible))
    return replace(state, view=view)


def _toggle_weekly(state: SimulationState, action: ToggleWeeklyChart, is_premium: bool) -> SimulationState:
    return replace(state, view=replace(state.view, show_weekly_chart=not state.view.show_weekly_chart))


def _set_candle_color(state: SimulationState, action: SetCandleColor, is_premium: bool) -> SimulationState:
    if action.target == "up":
        return replace(state, view=replace(state.view, up_color=action.color))
    if action.target == "down":
        return replace(state, view=replace(state.view, down_color=action.color))
    logger.debug("color rejected: unknown target %r", action.target)
    return state


_TRANSITIONS: Dict[type, Callable[[SimulationState, Action, bool], SimulationState]] = {
    LoadData: _load_data,
    StartReplay: _start_replay,
    AdvanceDay: _advance_day,
    Trade: _trade,
    ClosePosition: _close_position,
    ToggleIndicator: _toggle_indicator,
    ToggleWeeklyChart: _toggle_weekly,
    SetCandleColor: _set_candle_color,
}


def apply_entitlement(state: SimulationState, is_premium: bool) -> SimulationState:
    """Hide premium-only indicators for non-premium accounts.

    Returns ``state`` itself when nothing needs revoking.
    """
    if is_premium or not (state.view.rsi.visible or state.view.macd.visible):
        return state
    logger.debug("revoking premium indicators")
    view = replace(
        state.view,
        rsi=replace(state.view.rsi, visible=False),
        macd=replace(state.view.macd, visible=False),
    )
    return replace(state, view=view)


def dispatch(state: SimulationState, action: Action, *, is_premium: bool = False) -> SimulationState:
    """Apply ``action`` to ``state`` and return the resulting state.

    Raises:
        TypeError: If ``action`` is not one of the known action types.
    """
    try:
        transition = _TRANSITIONS[type(action)]
    except KeyError:
        raise TypeError(f"Unknown action: {action!r}") from None
    return apply_entitlement(transition(state, action, is_premium), is_premium)


# ─────────────────────────────────────────────────────────── derived views ────
def visible_candles(state: SimulationState) -> Tuple[Candle, ...]:
    """Bars the chart may show: up to the current bar while replaying."""
    if state.phase is Phase.REPLAYING:
        return state.candles[: state.replay_index + 1]
    return state.candles


def current_candle(state: SimulationState) -> Optional[Candle]:
    if state.replay_index is None or not state.candles:
        return None
    return state.candles[state.replay_index]


def moving_averages(state: SimulationState) -> Dict[str, List[LinePoint]]:
    """SMA series for every visible moving average, keyed like ``ma_configs``."""
    data = visible_candles(state)
    return {
        key: indicators.sma(data, cfg.period)
        for key, cfg in state.view.ma_configs.items()
        if cfg.visible
    }


def rsi_series(state: SimulationState) -> List[LinePoint]:
    if not state.view.rsi.visible:
        return []
    return indicators.rsi(visible_candles(state), state.view.rsi.period)


def macd_series(state: SimulationState) -> List[MacdPoint]:
    cfg = state.view.macd
    if not cfg.visible:
        return []
    return indicators.macd(visible_candles(state), cfg.fast_period, cfg.slow_period, cfg.signal_period)


def open_positions(state: SimulationState) -> Tuple[Position, ...]:
    return state.ledger.positions


def total_pl(state: SimulationState) -> float:
    return state.realized_pl + state.unrealized_pl


# ───────────────────────────────────────────────────────────── session ────
class ReplaySession:
    """Mutable holder for one user's simulation.

    Each method is a user intent: it dispatches one action and returns the new
    state. Changing ``is_premium`` re-applies the feature gate immediately.
    """

    def __init__(
        self,
        *,
        is_premium: bool = False,
        config: Optional[SimulationConfig] = None,
        view: Optional[ViewConfig] = None,
    ) -> None:
        self._is_premium = bool(is_premium)
        self.state = SimulationState(
            config=config or SimulationConfig(),
            view=view or ViewConfig(),
        )
        self.state = apply_entitlement(self.state, self._is_premium)

    # --------------------------- entitlement ---------------------------------
    @property
    def is_premium(self) -> bool:
        return self._is_premium

    @is_premium.setter
    def is_premium(self, value: bool) -> None:
        self._is_premium = bool(value)
        self.state = apply_entitlement(self.state, self._is_premium)

    # ------------------------------ intents ----------------------------------
    def dispatch(self, action: Action) -> SimulationState:
        self.state = dispatch(self.state, action, is_premium=self._is_premium)
        return self.state

    def load_data(self, candles: Sequence[Candle], title: str = DEFAULT_TITLE) -> SimulationState:
        return self.dispatch(LoadData(candles=candles, title=title))

    def start_replay(self, start_date: dt.date) -> SimulationState:
        return self.dispatch(StartReplay(start_date=start_date))

    def advance_day(self) -> SimulationState:
        return self.dispatch(AdvanceDay())

    def trade(self, side: Side) -> SimulationState:
        return self.dispatch(Trade(side=side))

    def close_position(self, side: Side, amount: Optional[float] = None) -> SimulationState:
        if amount is None:
            amount = self.state.config.close_amount
        return self.dispatch(ClosePosition(side=side, amount=amount))

    def toggle_indicator(self, kind: IndicatorKind, key: Optional[str] = None) -> SimulationState:
        return self.dispatch(ToggleIndicator(kind=kind, key=key))

    def toggle_weekly_chart(self) -> SimulationState:
        return self.dispatch(ToggleWeeklyChart())

    def set_candle_color(self, target: str, color: str) -> SimulationState:
        return self.dispatch(SetCandleColor(target=target, color=color))

    # ------------------------------ views ------------------------------------
    @property
    def phase(self) -> Phase:
        return self.state.phase

    def visible_candles(self) -> Tuple[Candle, ...]:
        return visible_candles(self.state)

    def moving_averages(self) -> Dict[str, List[LinePoint]]:
        return moving_averages(self.state)

    def rsi(self) -> List[LinePoint]:
        return rsi_series(self.state)

    def macd(self) -> List[MacdPoint]:
        return macd_series(self.state)

    @property
    def total_pl(self) -> float:
        return total_pl(self.state)
