"""Pytest configuration and shared fixtures."""

from datetime import date

import pytest

from catrisk.cat_risk import BetaRisk, CatEvent, EventSet


@pytest.fixture
def historical_events():
    """Ten years of date-sorted catastrophe events observed from 2000."""
    return (
        CatEvent(date(2000, 3, 15), 10.0),
        CatEvent(date(2001, 8, 24), 25.0),
        CatEvent(date(2001, 9, 10), 5.0),
        CatEvent(date(2004, 1, 1), 7.5),
        CatEvent(date(2005, 8, 29), 125.0),
        CatEvent(date(2009, 6, 30), 3.0),
    )


@pytest.fixture
def event_set(historical_events):
    """Event set observed over [2000-01-01, 2010-01-01)."""
    return EventSet(historical_events, date(2000, 1, 1), date(2010, 1, 1))


@pytest.fixture
def beta_risk():
    """One event every two years, annual loss mean 150 and std dev 220."""
    return BetaRisk(max_loss=1_000.0, years=2.0, mean=150.0, std_dev=220.0, seed=42)
