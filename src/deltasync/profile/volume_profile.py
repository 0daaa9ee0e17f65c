"""Per-bar volume profile: delta, point of control and value area.

The bar's price range [low, high] is split into ``price_levels`` equal-width
levels and every trade's quantity is accumulated into the level its price
falls in. From that histogram:

- delta = total buy volume - total sell volume
- VPOC  = price of the level with the most volume
- VAH/VAL = highest/lowest price among the levels that, taken in descending
  volume order, first reach ``value_area_pct`` of the total volume

The value area is volume-greedy: its levels need not be contiguous in price.

Level keys are integer indices so adjacent trades can never fragment into
separate levels through rounding. CRITICAL: All arithmetic is Decimal.
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from deltasync.models import Bar, Trade, VolumeProfile

DEFAULT_PRICE_LEVELS = 100
DEFAULT_VALUE_AREA_PCT = Decimal("0.70")


@dataclass
class PriceLevel:
    """Accumulated volume at one histogram level."""

    index: int
    price: Decimal  # lower bound of the level
    volume: Decimal = Decimal("0")
    buy_volume: Decimal = Decimal("0")
    sell_volume: Decimal = Decimal("0")


def degenerate_profile(bar: Bar) -> VolumeProfile:
    """Fallback profile for bars without a usable histogram."""
    return VolumeProfile(
        delta=Decimal("0"),
        vpoc=bar.close,
        vah=bar.high,
        val=bar.low,
    )


def level_index(price: Decimal, low: Decimal, high: Decimal, price_levels: int) -> int:
    """Return the histogram level for ``price``, clamped into range.

    Computed as floor((price - low) * levels / (high - low)) so the division
    happens once and exact boundaries land in the upper level.
    """
    scaled = (price - low) * price_levels / (high - low)
    index = int(scaled.to_integral_value(rounding=ROUND_FLOOR))
    return min(max(index, 0), price_levels - 1)


def build_histogram(
    trades: list[Trade],
    low: Decimal,
    high: Decimal,
    price_levels: int = DEFAULT_PRICE_LEVELS,
) -> list[PriceLevel]:
    """Accumulate trades into price levels.

    Args:
        trades: Trades of the bar, in arrival order.
        low: Bar low (lower bound of level 0).
        high: Bar high. Must be greater than ``low``.
        price_levels: Number of equal-width levels.

    Returns:
        Levels that received at least one trade, in the order their first
        trade arrived.
    """
    span = high - low
    levels: dict[int, PriceLevel] = {}

    for trade in trades:
        index = level_index(trade.price, low, high, price_levels)
        level = levels.get(index)
        if level is None:
            level = PriceLevel(index=index, price=low + span * index / price_levels)
            levels[index] = level
        level.volume += trade.quantity
        if trade.is_buy:
            level.buy_volume += trade.quantity
        else:
            level.sell_volume += trade.quantity

    return list(levels.values())


def find_vpoc(levels: list[PriceLevel]) -> PriceLevel:
    """Return the level with strictly maximum volume.

    Levels are scanned in the order given (first-touch order from
    build_histogram), so on a tie the level traded first wins.
    """
    best = levels[0]
    for level in levels[1:]:
        if level.volume > best.volume:
            best = level
    return best


def select_value_area(
    levels: list[PriceLevel],
    value_area_pct: Decimal = DEFAULT_VALUE_AREA_PCT,
) -> list[PriceLevel]:
    """Greedily pick the highest-volume levels until the target share is reached.

    The sort is stable, so equal-volume levels keep first-touch order.
    """
    total = sum((level.volume for level in levels), Decimal("0"))
    target = total * value_area_pct

    selected: list[PriceLevel] = []
    accumulated = Decimal("0")
    for level in sorted(levels, key=lambda lv: lv.volume, reverse=True):
        selected.append(level)
        accumulated += level.volume
        if accumulated >= target:
            break
    return selected


def compute_profile(
    bar: Bar,
    price_levels: int = DEFAULT_PRICE_LEVELS,
    value_area_pct: Decimal = DEFAULT_VALUE_AREA_PCT,
) -> VolumeProfile:
    """Compute delta, VPOC, VAH and VAL for a closed bar.

    Bars with no trades, no price range, or no traded quantity get the
    degenerate profile (vpoc=close, vah=high, val=low, delta=0). Missing
    trades are not an error: a gap in the trade stream only makes the
    profile sparser.
    """
    trades = bar.trades
    if not trades or bar.high == bar.low:
        return degenerate_profile(bar)

    levels = build_histogram(trades, bar.low, bar.high, price_levels)
    total = sum((level.volume for level in levels), Decimal("0"))
    if total == 0:
        return degenerate_profile(bar)

    buy_volume = sum((t.quantity for t in trades if t.is_buy), Decimal("0"))
    sell_volume = sum((t.quantity for t in trades if not t.is_buy), Decimal("0"))

    vpoc = find_vpoc(levels)
    value_area = select_value_area(levels, value_area_pct)

    return VolumeProfile(
        delta=buy_volume - sell_volume,
        vpoc=vpoc.price,
        vah=max(level.price for level in value_area),
        val=min(level.price for level in value_area),
    )


def enrich_bar(
    bar: Bar,
    price_levels: int = DEFAULT_PRICE_LEVELS,
    value_area_pct: Decimal = DEFAULT_VALUE_AREA_PCT,
) -> Bar:
    """Attach the computed profile to ``bar`` and return it."""
    bar.profile = compute_profile(bar, price_levels, value_area_pct)
    return bar
