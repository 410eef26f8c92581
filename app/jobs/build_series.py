"""
Rebuild the daily price series for one product
"""
from constants import QUEUE_AGGREGATE
from jobs.base import IngestionJob
from services.series_builder import SERIES_WINDOW_DAYS, build_series
from utils import to_int


class BuildSeriesJob(IngestionJob):
    name = "build_series"
    task_name = "tasks.build_series"
    queue = QUEUE_AGGREGATE
    tries = 3
    backoff_schedule = [60]

    @classmethod
    def idempotency_key_for(cls, context):
        return f"series:{(context or {}).get('product_id')}"

    def handle(self):
        window_days = to_int(self.context.get("window_days")) or SERIES_WINDOW_DAYS
        return build_series(self.context.get("product_id"), window_days=window_days)
