"""Tests for the door-staff booking search."""

from __future__ import annotations

from datetime import date, time, timedelta

import pytest

from apps.bookings.application.search import BookingSearch, SearchScope
from apps.bookings.domain.entities import BookingStatus
from apps.bookings.domain.exceptions import ValidationError

from .fakes import (
    DOOR_STAFF,
    InMemoryBookingRepository,
    InMemoryTableRepository,
    aware,
    default_tables,
    make_booking,
)

NIGHT = date(2025, 6, 14)
NOW = aware(2025, 6, 14, 22, 45)


@pytest.fixture
def bookings():
    return [
        make_booking(
            booking_ref="BRL-2025-AAAAA",
            customer_name="Jane Smith",
            customer_phone="07700900123",
            arrival_time=time(22, 0),
            table_ids=(5,),
        ),
        make_booking(
            booking_ref="BRL-2025-BBBBB",
            customer_name="Sam Smithson",
            customer_phone="07700900456",
            arrival_time=time(21, 0),
            table_ids=(6,),
            status=BookingStatus.ARRIVED,
            checked_in_at=aware(2025, 6, 14, 21, 5),
        ),
        make_booking(
            booking_ref="BRL-2025-CCCCC",
            customer_name="Alex Smith",
            arrival_time=time(23, 0),
            table_ids=(7,),
            drinks_package={"name": "Prosecco"},
        ),
        make_booking(
            booking_ref="BRL-2025-DDDDD",
            customer_name="Pat Smith",
            table_ids=(8,),
            status=BookingStatus.CANCELLED,
        ),
        make_booking(
            booking_ref="BRL-2025-EEEEE",
            customer_name="Lee Smith",
            booking_date=NIGHT + timedelta(days=1),
        ),
    ]


@pytest.fixture
def search(bookings) -> BookingSearch:
    return BookingSearch(
        InMemoryBookingRepository(bookings),
        InMemoryTableRepository(default_tables()),
        clock=lambda: NOW,
    )


def refs(results):
    return [result.booking.booking_ref for result in results]


def test_name_search_is_case_insensitive_and_ordered_by_arrival(search):
    results = search.search("SMITH", SearchScope.NAME, actor=DOOR_STAFF)

    assert refs(results) == ["BRL-2025-BBBBB", "BRL-2025-AAAAA", "BRL-2025-CCCCC"]


def test_cancelled_and_other_nights_are_excluded(search):
    results = search.search("smith", actor=DOOR_STAFF)

    assert "BRL-2025-DDDDD" not in refs(results)
    assert "BRL-2025-EEEEE" not in refs(results)


def test_reference_scope(search):
    results = search.search("ccccc", SearchScope.REFERENCE, actor=DOOR_STAFF)

    assert refs(results) == ["BRL-2025-CCCCC"]


def test_phone_scope(search):
    results = search.search("900456", SearchScope.PHONE, actor=DOOR_STAFF)

    assert refs(results) == ["BRL-2025-BBBBB"]


def test_reference_scope_ignores_names(search):
    assert search.search("Jane", SearchScope.REFERENCE, actor=DOOR_STAFF) == []


def test_explicit_date(search):
    results = search.search("lee", booking_date=NIGHT + timedelta(days=1), actor=DOOR_STAFF)

    assert refs(results) == ["BRL-2025-EEEEE"]


def test_results_are_enriched(search):
    by_ref = {r.booking.booking_ref: r for r in search.search("smith", actor=DOOR_STAFF)}

    late = by_ref["BRL-2025-AAAAA"]
    assert late.is_late is True
    assert late.can_check_in is True
    assert [table.table_number for table in late.tables] == [5]

    arrived = by_ref["BRL-2025-BBBBB"]
    assert arrived.is_late is False
    assert arrived.can_check_in is False

    upcoming = by_ref["BRL-2025-CCCCC"]
    assert upcoming.is_late is False
    assert upcoming.to_dict()["has_drinks_package"] is True


def test_limit_caps_results(bookings):
    search = BookingSearch(
        InMemoryBookingRepository(bookings),
        InMemoryTableRepository(default_tables()),
        limit=2,
        clock=lambda: NOW,
    )

    assert len(search.search("smith", actor=DOOR_STAFF)) == 2


@pytest.mark.parametrize("query", ["", "   ", None])
def test_empty_query_is_rejected(search, query):
    with pytest.raises(ValidationError):
        search.search(query, actor=DOOR_STAFF)


@pytest.mark.parametrize(
    ("value", "scope"),
    [
        (None, SearchScope.ALL),
        ("booking_ref", SearchScope.REFERENCE),
        ("reference", SearchScope.REFERENCE),
        ("name", SearchScope.NAME),
        ("phone", SearchScope.PHONE),
    ],
)
def test_scope_parsing(value, scope):
    assert SearchScope.parse(value) is scope


def test_unknown_scope_is_rejected():
    with pytest.raises(ValidationError):
        SearchScope.parse("email")


def test_tonight_lists_expected_bookings_with_stats(search):
    summary = search.tonight(actor=DOOR_STAFF)

    assert summary.booking_date == NIGHT
    assert refs(summary.results) == ["BRL-2025-BBBBB", "BRL-2025-AAAAA", "BRL-2025-CCCCC"]
    assert summary.stats == {
        "total_expected": 3,
        "arrived": 1,
        "pending": 2,
        "late": 1,
        "total_guests": 12,
        "arrived_guests": 4,
    }


def test_tonight_is_not_capped_by_search_limit(bookings):
    search = BookingSearch(
        InMemoryBookingRepository(bookings),
        InMemoryTableRepository(default_tables()),
        limit=1,
        clock=lambda: NOW,
    )

    assert len(search.tonight(actor=DOOR_STAFF).results) == 3


def test_quiet_night_has_zero_stats(search):
    summary = search.tonight(NIGHT + timedelta(days=2), actor=DOOR_STAFF)

    assert summary.results == ()
    assert set(summary.stats.values()) == {0}
    assert summary.to_dict()["last_updated"] == NOW.isoformat()
