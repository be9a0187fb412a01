"""
Tests for distribution statistics

Fun fact: Corrado Gini published his coefficient in 1912 in "Variabilità e
mutabilità" - the same formula now checks that bike wheels are shared fairly!
"""

import pytest

from partshare.allocation.engine import AllocationEngine
from partshare.allocation.models import Selection
from partshare.allocation.statistics import (
    compute_equity_index,
    compute_gini_coefficient,
    compute_statistics,
)
from tests.helpers import create_distribution_record, type_id_by_name


def test_gini_perfect_equality() -> None:
    """Test equal totals give 0"""
    assert compute_gini_coefficient([3, 3, 3]) == 0.0


def test_gini_concentration() -> None:
    """Test one participant holding everything approaches 1"""
    gini = compute_gini_coefficient([0, 0, 0, 10])

    assert gini == pytest.approx(0.75)


@pytest.mark.parametrize("values", [[], [5], [0, 0]])
def test_gini_degenerate_inputs(values) -> None:
    """Test empty, single and all-zero inputs give 0"""
    assert compute_gini_coefficient(values) == 0.0


def test_equity_index() -> None:
    """Test equity index is 100 minus the coefficient of variation"""
    mean, std_dev, index = compute_equity_index([2, 4])

    assert mean == 3
    assert std_dev == 1
    assert index == pytest.approx(66.7)


def test_equity_index_without_units() -> None:
    """Test nothing distributed counts as perfectly equitable"""
    assert compute_equity_index([0, 0]) == (0.0, 0.0, 100.0)
    assert compute_equity_index([]) == (0.0, 0.0, 100.0)


def test_statistics_on_empty_ledger(ledger) -> None:
    """Test statistics work before any distribution"""
    with ledger.transaction() as session:
        stats = compute_statistics(session)

    assert stats.total_distributions == 0
    assert stats.total_units == 0
    assert stats.participants == []
    assert stats.objects == []


def test_statistics_after_distributions(ledger, test_time, roster, bike) -> None:
    """Test totals, shares and per-object breakdown"""
    alice, bob, chloe = roster
    engine = AllocationEngine(ledger)
    full = [Selection(type_id=type_id_by_name(bike, "Full bike"), count=2)]  # 6 units

    first = create_distribution_record(ledger, test_time.now(), [alice, bob], full)
    engine.allocate(first, [alice, bob], full, {"type": "share_less"})

    with ledger.transaction() as session:
        stats = compute_statistics(session)

    assert stats.total_distributions == 1
    assert stats.total_units == 6
    assert stats.unique_participants == 2

    shares = {p.participant_id: p for p in stats.participants}
    assert shares[alice].total_units == 3
    assert shares[bob].total_units == 3
    assert shares[chloe].total_units == 0
    assert shares[alice].share_percent == 50.0
    assert shares[alice].participation_rate == 100.0
    assert shares[chloe].participation_rate == 0.0

    # Averages include Chloe, who received nothing
    assert stats.mean_units == pytest.approx(2.0)
    assert stats.gini_coefficient == pytest.approx(1 / 3)

    [bike_share] = stats.objects
    assert bike_share.name == "Bike"
    assert bike_share.total_units == 6
    assert bike_share.share_percent == 100.0
    parts = {p.name: p for p in bike_share.parts}
    assert parts["wheel"].total_units == 4
    assert parts["frame"].total_units == 2
    assert sum(parts["wheel"].per_participant.values()) == 4
