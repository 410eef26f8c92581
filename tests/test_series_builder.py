"""
Tests for the daily price series
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from db import atomic
from identity import IdentityResolver
from jobs.build_series import BuildSeriesJob
from repositories.price_repository import PriceRepository
from services.series_builder import build_series, day_start

from conftest import StubLimiter, make_config

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def at(day, hour):
    return datetime(2026, 10, day, hour, 0, tzinfo=timezone.utc)


def seed_prices(prices):
    """``prices`` is ``[(region_code, amount, recorded_at), ...]``"""
    with atomic():
        product, _ = IdentityResolver().resolve('Celeste', None, None, slug='celeste')
        for region_code, amount, recorded_at in prices:
            currency = 'EUR' if region_code == 'EU' else 'USD'
            sku_region = PriceRepository.upsert_sku_region(product.id, region_code, 'steam', currency)
            PriceRepository.add_price(sku_region, amount, currency, recorded_at=recorded_at)
    return product


def series_rows(product):
    return {
        (row.region_code, row.window_start.date().isoformat()): row
        for row in PriceRepository.series_for_product(product.id)
    }


class TestBuildSeries:
    """Day buckets per region"""

    def test_buckets_per_region_and_day(self, app):
        product = seed_prices([
            ('US', 10.0, at(18, 10)),
            ('US', 14.0, at(18, 20)),
            ('US', 12.0, at(19, 8)),
            ('EU', 9.99, at(18, 12)),
            ('US', 99.0, datetime(2026, 8, 1, tzinfo=timezone.utc)),
        ])

        assert build_series(product.id, now=NOW) == 3

        rows = series_rows(product)
        assert set(rows) == {('US', '2026-10-18'), ('US', '2026-10-19'), ('EU', '2026-10-18')}
        us = rows[('US', '2026-10-18')]
        assert (us.min_fiat, us.max_fiat, us.avg_fiat, us.sample_count) == (10.0, 14.0, 12.0, 2)
        assert us.bucket == 'day'
        assert us.window_end - us.window_start == timedelta(days=1)
        assert rows[('EU', '2026-10-18')].currency == 'EUR'

    def test_rebuild_updates_buckets_in_place(self, app):
        product = seed_prices([('US', 10.0, at(18, 10))])
        build_series(product.id, now=NOW)

        with atomic():
            sku_region = PriceRepository.sku_regions_for_product(product.id)[0]
            PriceRepository.add_price(sku_region, 11.0, 'USD', recorded_at=at(18, 11))
        build_series(product.id, now=NOW)

        rows = series_rows(product)
        assert len(rows) == 1
        bucket = rows[('US', '2026-10-18')]
        assert bucket.sample_count == 2
        assert bucket.avg_fiat == 10.5

    def test_average_is_rounded(self, app):
        product = seed_prices([('US', 10.0, at(18, 1)), ('US', 10.0, at(18, 2)), ('US', 10.01, at(18, 3))])

        build_series(product.id, now=NOW)

        assert series_rows(product)[('US', '2026-10-18')].avg_fiat == 10.0

    def test_no_prices(self, app):
        product = seed_prices([])
        assert build_series(product.id, now=NOW) == 0

    def test_day_start(self):
        assert day_start(datetime(2026, 10, 18, 23, 59)) == datetime(2026, 10, 18, tzinfo=timezone.utc)


class TestBuildSeriesJob:
    def test_job_uses_window_from_context(self, app):
        product = seed_prices([('US', 20.0, datetime.now(timezone.utc) - timedelta(days=3))])

        job = BuildSeriesJob({'product_id': product.id, 'window_days': 2}, config=make_config(),
                             limiter=StubLimiter(), dispatcher=MagicMock())
        assert job.run() == 0

        job = BuildSeriesJob({'product_id': product.id}, config=make_config(),
                             limiter=StubLimiter(), dispatcher=MagicMock())
        assert job.run() == 1
