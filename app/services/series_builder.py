"""
Daily price series: collapse recent RegionPrice rows into
PriceSeriesAggregate buckets per region.
"""
from collections import defaultdict
from datetime import datetime, time, timedelta, timezone

import structlog

from db import atomic
from repositories.price_repository import PriceRepository
from utils import ensure_utc, now_utc

logger = structlog.get_logger("series")

SERIES_WINDOW_DAYS = 30


def day_start(moment) -> datetime:
    moment = ensure_utc(moment)
    return datetime.combine(moment.date(), time.min, tzinfo=timezone.utc)


def bucket_prices(rows):
    """``{(region_code, day_start): [(amount, currency), ...]}``"""
    buckets = defaultdict(list)
    for price, sku_region in rows:
        if price.fiat_amount is None or price.recorded_at is None:
            continue
        key = (sku_region.region_code, day_start(price.recorded_at))
        buckets[key].append((float(price.fiat_amount), price.currency or sku_region.currency))
    return buckets


def build_series(product_id, window_days: int = SERIES_WINDOW_DAYS, now=None) -> int:
    """Rebuild the day buckets of the last ``window_days``; returns the bucket count"""
    since = day_start(now or now_utc()) - timedelta(days=window_days)
    buckets = bucket_prices(PriceRepository.prices_since(product_id, since))

    with atomic():
        for (region_code, start), samples in sorted(buckets.items()):
            amounts = [amount for amount, _ in samples]
            PriceRepository.upsert_series_bucket(
                product_id,
                region_code,
                "day",
                start,
                window_end=start + timedelta(days=1),
                currency=samples[-1][1],
                min_fiat=min(amounts),
                max_fiat=max(amounts),
                avg_fiat=round(sum(amounts) / len(amounts), 2),
                sample_count=len(amounts),
            )

    logger.info("series.built", product_id=product_id, buckets=len(buckets))
    return len(buckets)
