"""
Tests for flexible date parsing and its failure bookkeeping.
"""

from concurrent.futures import ThreadPoolExecutor

from crm_import.utils import date as date_utils
from crm_import.utils.date import FAILED_SAMPLE_LIMIT, parse_flexible_date, to_iso_date


class TestParseFlexibleDate:

    def test_unambiguous_day_first(self):
        assert to_iso_date("25/12/2024") == "2024-12-25"

    def test_blank_is_not_a_failure(self):
        before = dict(date_utils._failure_stats).get("blank-check", {}).get("count", 0)
        assert parse_flexible_date("   ", log_context="blank-check") is None
        after = dict(date_utils._failure_stats).get("blank-check", {}).get("count", 0)
        assert after == before


class TestFailureStats:

    def test_concurrent_failures_are_all_counted(self):
        context = "concurrent-failure-count"
        attempts = 400

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(
                lambda n: parse_flexible_date(f"not a date {n}", log_context=context),
                range(attempts),
            ))

        assert results == [None] * attempts
        stats = date_utils._failure_stats[context]
        assert stats["count"] == attempts
        assert len(stats["samples"]) == FAILED_SAMPLE_LIMIT
