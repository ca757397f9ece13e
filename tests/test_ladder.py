import pytest

from depth_ladder.engine.ladder import WINDOW, LadderAggregator, build_ladder
from depth_ladder.types import EMPTY_UPDATE, PriceLevel

from conftest import make_update


def test_initial_state(aggregator: LadderAggregator) -> None:
    """Tests that a new aggregator starts empty."""
    assert aggregator.current_update == EMPTY_UPDATE
    assert aggregator.current_ladder == ()
    assert aggregator.last_traded_price == 0
    assert aggregator.update_count == 0
    assert aggregator.last_trade_index() is None
    assert aggregator.row_for_price(0) is None


def test_ladder_shape(aggregator: LadderAggregator) -> None:
    """Tests that the ladder has 200 descending rows centered on the last trade."""
    aggregator.apply(make_update(1000))
    ladder = aggregator.current_ladder

    assert len(ladder) == 2 * WINDOW
    assert ladder[0].price == 1099
    assert ladder[-1].price == 900
    assert all(a.price - b.price == 1 for a, b in zip(ladder, ladder[1:]))


def test_single_level_scenario(aggregator: LadderAggregator) -> None:
    """Tests bid/ask placement and last-trade flag for one level."""
    update = make_update(1000, {1000: PriceLevel(1000, 5.0, 1001, 3.0)})
    aggregator.apply(update)

    row_1000 = aggregator.row_for_price(1000)
    row_1001 = aggregator.row_for_price(1001)
    assert row_1000.bid_qty == 5.0
    assert row_1000.ask_qty == 0.0
    assert row_1000.is_last_trade
    assert row_1001.ask_qty == 3.0
    assert row_1001.bid_qty == 0.0
    assert not row_1001.is_last_trade

    others = [r for r in aggregator.current_ladder if r.price not in (1000, 1001)]
    assert len(others) == 198
    assert all(r.bid_qty == 0 and r.ask_qty == 0 for r in others)


def test_empty_levels_zero_price(aggregator: LadderAggregator) -> None:
    """Tests the ladder built from an empty update with no trade yet."""
    aggregator.apply(make_update(0))
    ladder = aggregator.current_ladder

    assert ladder[0].price == 99
    assert ladder[-1].price == -100
    assert aggregator.row_for_price(0).is_last_trade
    assert all(r.bid_qty == 0 and r.ask_qty == 0 for r in ladder)


def test_exactly_one_last_trade_row(aggregator: LadderAggregator) -> None:
    """Tests that exactly one row carries the last-trade flag."""
    aggregator.apply(make_update(5432))

    flagged = [r for r in aggregator.current_ladder if r.is_last_trade]
    assert len(flagged) == 1
    assert flagged[0].price == 5432
    assert aggregator.current_ladder[aggregator.last_trade_index()] == flagged[0]


def test_quantities_copied_exactly(aggregator: LadderAggregator) -> None:
    """Tests that quantities are copied without rounding."""
    aggregator.apply(make_update(200, {
        190: PriceLevel(190, 0.123456789, 0, 0.0),
        210: PriceLevel(0, 0.0, 210, 1e-9),
    }))

    assert aggregator.row_for_price(190).bid_qty == 0.123456789
    assert aggregator.row_for_price(210).ask_qty == 1e-9


def test_out_of_window_levels_dropped(aggregator: LadderAggregator) -> None:
    """Tests that levels outside the window are silently clipped."""
    aggregator.apply(make_update(1000, {
        900: PriceLevel(900, 7.0, 0, 0.0),      # lowest row, inside
        899: PriceLevel(899, 8.0, 0, 0.0),      # just below
        1099: PriceLevel(0, 0.0, 1099, 9.0),    # highest row, inside
        1100: PriceLevel(0, 0.0, 1100, 10.0),   # upper bound is exclusive
        5000: PriceLevel(5000, 1.0, 5001, 1.0),
    }))
    ladder = aggregator.current_ladder

    assert ladder[-1].bid_qty == 7.0
    assert ladder[0].ask_qty == 9.0
    assert sum(r.bid_qty for r in ladder) == 7.0
    assert sum(r.ask_qty for r in ladder) == 9.0
    assert aggregator.row_for_price(899) is None
    assert aggregator.row_for_price(1100) is None


def test_zero_price_side_ignored(aggregator: LadderAggregator) -> None:
    """Tests that a zero best price means no level on that side."""
    aggregator.apply(make_update(50, {0: PriceLevel(0, 4.0, 0, 6.0)}))

    row_0 = aggregator.row_for_price(0)
    assert row_0.bid_qty == 0.0
    assert row_0.ask_qty == 0.0


def test_level_key_does_not_position_rows(aggregator: LadderAggregator) -> None:
    """Tests that rows are located by level prices, not by map keys."""
    aggregator.apply(make_update(1000, {1: PriceLevel(995, 2.0, 1005, 4.0)}))

    assert aggregator.row_for_price(995).bid_qty == 2.0
    assert aggregator.row_for_price(1005).ask_qty == 4.0


def test_apply_is_idempotent(aggregator: LadderAggregator) -> None:
    """Tests that applying the same update twice yields the same ladder."""
    update = make_update(300, {299: PriceLevel(299, 1.5, 301, 2.5)})

    aggregator.apply(update)
    first = aggregator.current_ladder
    aggregator.apply(update)

    assert aggregator.current_ladder == first
    assert aggregator.update_count == 2


def test_no_state_leaks_between_updates(aggregator: LadderAggregator) -> None:
    """Tests that a level from a previous update does not persist."""
    aggregator.apply(make_update(1000, {999: PriceLevel(999, 3.0, 1001, 3.0)}))
    aggregator.apply(make_update(1000))

    assert all(r.bid_qty == 0 and r.ask_qty == 0 for r in aggregator.current_ladder)
    assert len(aggregator.current_update.levels) == 0


def test_ladder_notified_every_apply(aggregator: LadderAggregator) -> None:
    """Tests that ladder subscribers fire on every apply."""
    snapshots = []
    aggregator.subscribe_ladder(snapshots.append)

    aggregator.apply(make_update(100, last_traded_qty=2.0, command="depth"))
    aggregator.apply(make_update(100))

    assert len(snapshots) == 2
    assert snapshots[0].last_traded_qty == 2.0
    assert snapshots[0].command == "depth"
    assert snapshots[1].update_count == 2
    assert snapshots[1] is aggregator.snapshot


def test_last_traded_price_notification_gated(aggregator: LadderAggregator) -> None:
    """Tests that price subscribers fire only when the price changes."""
    prices = []
    aggregator.subscribe_last_traded_price(prices.append)

    aggregator.apply(make_update(100))
    aggregator.apply(make_update(100))
    aggregator.apply(make_update(101))
    aggregator.apply(make_update(101))

    assert prices == [100, 101]
    assert aggregator.last_traded_price == 101


def test_initial_zero_price_does_not_notify(aggregator: LadderAggregator) -> None:
    """Tests that an update at price 0 is not a change from the initial state."""
    prices = []
    aggregator.subscribe_last_traded_price(prices.append)

    aggregator.apply(make_update(0))

    assert prices == []
    assert len(aggregator.current_ladder) == 200


def test_price_notified_after_ladder_published(aggregator: LadderAggregator) -> None:
    """Tests that the ladder is already current when the price callback runs."""
    seen = []
    aggregator.subscribe_last_traded_price(
        lambda price: seen.append(aggregator.row_for_price(price).is_last_trade)
    )

    aggregator.apply(make_update(777))

    assert seen == [True]


def test_unsubscribe(aggregator: LadderAggregator) -> None:
    """Tests that unsubscribed callbacks stop firing."""
    snapshots = []
    unsubscribe = aggregator.subscribe_ladder(snapshots.append)

    aggregator.apply(make_update(10))
    unsubscribe()
    unsubscribe()
    aggregator.apply(make_update(11))

    assert len(snapshots) == 1


def test_failing_subscriber_does_not_break_apply(aggregator: LadderAggregator) -> None:
    """Tests that an exception in one subscriber does not stop the others."""
    def broken(_snapshot) -> None:
        raise RuntimeError("boom")

    snapshots = []
    aggregator.subscribe_ladder(broken)
    aggregator.subscribe_ladder(snapshots.append)

    aggregator.apply(make_update(10))

    assert len(snapshots) == 1
    assert aggregator.last_traded_price == 10


def test_reset(aggregator: LadderAggregator) -> None:
    """Tests that reset returns to the initial state."""
    aggregator.apply(make_update(10))
    aggregator.reset()

    assert aggregator.current_ladder == ()
    assert aggregator.last_traded_price == 0
    assert aggregator.update_count == 0
    assert aggregator.current_update == EMPTY_UPDATE


def test_custom_window() -> None:
    """Tests a narrower window."""
    ladder = build_ladder(make_update(50, {47: PriceLevel(47, 1.0, 0, 0.0)}), window=3)

    assert [r.price for r in ladder] == [52, 51, 50, 49, 48, 47]
    assert ladder[-1].bid_qty == 1.0
    assert ladder[2].is_last_trade


def test_invalid_window() -> None:
    """Tests that a non-positive window is rejected."""
    with pytest.raises(ValueError):
        LadderAggregator(window=0)


def test_negative_prices_in_window() -> None:
    """Tests that rows below zero are still addressable but zero-priced sides are not."""
    ladder = build_ladder(make_update(-5, {-10: PriceLevel(-10, 2.0, 3, 4.0)}))

    prices = {r.price: r for r in ladder}
    # Negative best prices are not > 0, so they never land
    assert prices[-10].bid_qty == 0.0
    assert prices[3].ask_qty == 4.0
    assert prices[-5].is_last_trade
