"""
Repository for SkuRegion / RegionPrice / PriceSeriesAggregate / ProviderUsage
"""

from datetime import timedelta

from db import db
from models.sku_region import SkuRegion
from models.region_price import RegionPrice
from models.price_series_aggregate import PriceSeriesAggregate
from models.provider_usage import ProviderUsage
from utils import now_utc


class PriceRepository:
    """Price rows hang off SkuRegion, which is unique per (product, region, retailer)"""

    @staticmethod
    def sku_regions_for_product(product_id, active_only=False, limit=None):
        query = SkuRegion.query.filter_by(product_id=product_id)
        if active_only:
            query = query.filter(SkuRegion.is_active.is_(True))
        query = query.order_by(SkuRegion.id)
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def upsert_sku_region(product_id, region_code, retailer, currency, sku=None, metadata=None):
        sku_region = SkuRegion.query.filter_by(
            product_id=product_id, region_code=region_code, retailer=retailer
        ).first()
        if sku_region is None:
            sku_region = SkuRegion(product_id=product_id, region_code=region_code, retailer=retailer, is_active=True)
            db.session.add(sku_region)

        sku_region.currency = currency
        if sku:
            sku_region.sku = sku
        if metadata:
            sku_region.metadata_json = {**(sku_region.metadata_json or {}), **metadata}

        db.session.flush()
        return sku_region

    @staticmethod
    def add_price(sku_region, amount, currency, normal_amount=None, recorded_at=None, raw_payload=None):
        price = RegionPrice(
            sku_region_id=sku_region.id,
            fiat_amount=amount,
            normal_amount=normal_amount,
            currency=currency,
            recorded_at=recorded_at or now_utc(),
            tax_inclusive=True,
            raw_payload=raw_payload,
        )
        db.session.add(price)
        db.session.flush()
        return price

    @staticmethod
    def prices_since(product_id, since):
        return (
            db.session.query(RegionPrice, SkuRegion)
            .join(SkuRegion, RegionPrice.sku_region_id == SkuRegion.id)
            .filter(SkuRegion.product_id == product_id, RegionPrice.recorded_at >= since)
            .order_by(RegionPrice.recorded_at)
            .all()
        )

    @staticmethod
    def upsert_series_bucket(product_id, region_code, bucket, window_start, **values):
        row = PriceSeriesAggregate.query.filter_by(
            product_id=product_id, region_code=region_code, bucket=bucket, window_start=window_start
        ).first()
        if row is None:
            row = PriceSeriesAggregate(
                product_id=product_id, region_code=region_code, bucket=bucket, window_start=window_start
            )
            db.session.add(row)

        row.window_end = values.get("window_end") or (window_start + timedelta(days=1))
        for key in ("currency", "min_fiat", "max_fiat", "avg_fiat", "sample_count", "metadata_json"):
            if key in values:
                setattr(row, key, values[key])
        db.session.flush()
        return row

    @staticmethod
    def series_for_product(product_id, region_code=None):
        query = PriceSeriesAggregate.query.filter_by(product_id=product_id)
        if region_code:
            query = query.filter_by(region_code=region_code)
        return query.order_by(PriceSeriesAggregate.window_start).all()

    @staticmethod
    def usage(provider):
        return ProviderUsage.query.filter_by(provider=provider).first()

    @staticmethod
    def record_usage(provider, now=None):
        """Bump today's and the lifetime call counters for ``provider``"""
        now = now or now_utc()
        usage = PriceRepository.usage(provider)
        if usage is None:
            usage = ProviderUsage(provider=provider, total_calls=0, daily_calls=0)
            db.session.add(usage)

        if usage.daily_window != now.date():
            usage.daily_window = now.date()
            usage.daily_calls = 0

        usage.daily_calls = (usage.daily_calls or 0) + 1
        usage.total_calls = (usage.total_calls or 0) + 1
        usage.last_called_at = now
        db.session.commit()
        return usage
