"""Test helper utilities for campus2career tests."""

from .marketplace_fixture import (
    LISTING_ID,
    NDA_LISTING_ID,
    OTHER_LISTING_ID,
    OTHER_PARTNER_ID,
    OTHER_STUDENT_ID,
    PARTNER_ID,
    STUDENT_ID,
    FakeMarketplace,
    load_marketplace_fixture,
    valid_form,
)

__all__ = [
    "FakeMarketplace",
    "LISTING_ID",
    "NDA_LISTING_ID",
    "OTHER_LISTING_ID",
    "OTHER_PARTNER_ID",
    "OTHER_STUDENT_ID",
    "PARTNER_ID",
    "STUDENT_ID",
    "load_marketplace_fixture",
    "valid_form",
]
