"""Tests for Quote and CacheEntry."""

import dataclasses

import pytest

from app.relay.models import CacheEntry, Quote


class TestQuote:
    """Unit tests for the Quote snapshot."""

    def test_to_dict_wire_keys(self):
        """Test serialization uses the dashboard's short keys."""
        quote = Quote(
            symbol="RELIANCE",
            last=2450.75,
            change=12.5,
            change_percent=0.51,
            volume=1200,
            high=2460.0,
            low=2430.0,
            open=2440.0,
            previous_close=2438.25,
            name="Reliance Industries",
            source="groww-quote",
            timestamp=1_700_000_000.123,
        )
        assert quote.to_dict() == {
            "symbol": "RELIANCE",
            "name": "Reliance Industries",
            "last": 2450.75,
            "chg": 12.5,
            "pchg": 0.51,
            "vol": 1200,
            "high": 2460.0,
            "low": 2430.0,
            "open": 2440.0,
            "previousClose": 2438.25,
            "source": "groww-quote",
            "timestamp": 1_700_000_000_123,
        }

    def test_name_falls_back_to_symbol(self):
        """Test a quote without a company name uses the symbol."""
        assert Quote(symbol="TCS", last=3890.5).to_dict()["name"] == "TCS"

    def test_direction(self):
        """Test direction follows the sign of the change."""
        assert Quote(symbol="TCS", last=1.0, change=0.5).direction == "up"
        assert Quote(symbol="TCS", last=1.0, change=-0.5).direction == "down"
        assert Quote(symbol="TCS", last=1.0).direction == "flat"

    def test_immutable(self):
        """Test quotes cannot be mutated in place."""
        quote = Quote(symbol="TCS", last=3890.5)
        with pytest.raises(dataclasses.FrozenInstanceError):
            quote.last = 1.0

    def test_timestamp_defaults_to_now(self):
        """Test the timestamp is filled in at construction."""
        assert Quote(symbol="TCS", last=1.0).timestamp > 0


class TestCacheEntry:
    """Unit tests for CacheEntry."""

    def test_age(self):
        """Test age is measured from insertion."""
        entry = CacheEntry(quote=Quote(symbol="TCS", last=1.0), inserted_at=100.0)
        assert entry.age(now=107.5) == 7.5

    def test_age_never_negative(self):
        """Test a clock behind the insertion time reports zero age."""
        entry = CacheEntry(quote=Quote(symbol="TCS", last=1.0), inserted_at=100.0)
        assert entry.age(now=90.0) == 0.0
