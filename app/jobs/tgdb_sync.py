"""
TheGamesDB mirror maintenance: full sync, incremental updates and the
sharded sweep that re-pulls a slice of known ids every day.

Client errors propagate (``TheGamesDbApiException``) so the task wrapper
retries with backoff.
"""
from typing import Any, Dict, List, Optional

import structlog

from constants import QUEUE_FETCH
from db import atomic
from jobs.base import IngestionJob
from job_tracker import SnapshotTracker
from repositories.mirror_repository import TheGamesDbMirrorRepository
from services.thegamesdb.api_client import TheGamesDbApiClient
from services.thegamesdb.transformer import TgdbPayload, format_include, game_ids, transform_games
from utils import chunked, ensure_utc, isoformat, now_utc, to_int, unique

logger = structlog.get_logger("thegamesdb")

UPDATE_CHUNK_SIZE = 75


def format_fields(fields) -> Optional[str]:
    if isinstance(fields, str):
        return fields.strip() or None
    if isinstance(fields, (list, tuple)):
        cleaned = unique([f.strip() for f in fields if isinstance(f, str) and f.strip()])
        return ",".join(cleaned) or None
    return None


def normalize_queries(entry) -> List[str]:
    """``queries`` list, else a single ``query`` or ``title``"""
    if isinstance(entry, str):
        entry = {"query": entry}
    if not isinstance(entry, dict):
        return []
    queries = entry.get("queries") or [entry.get("query") or entry.get("title")]
    if not isinstance(queries, list):
        queries = [queries]
    return unique([q.strip() for q in queries if isinstance(q, str) and q.strip()])


class TgdbJob(IngestionJob):
    queue = QUEUE_FETCH
    tries = 5

    def __init__(self, context=None, client=None, **kwargs):
        super().__init__(context, **kwargs)
        self._client = client

    @property
    def client(self) -> TheGamesDbApiClient:
        if self._client is None:
            self._client = TheGamesDbApiClient(self.config.thegamesdb, config=self.config, limiter=self.limiter)
        return self._client

    @classmethod
    def idempotency_key_for(cls, context):
        return f"{cls.name}:{now_utc().date().isoformat()}"

    def run(self):
        if not self.config.thegamesdb.has_credentials:
            logger.warning("thegamesdb.credentials_missing", job=self.name)
            return 0
        return super().run()

    def request_params(self, include_default="boxart") -> Dict[str, Any]:
        tgdb = self.config.thegamesdb
        fields = format_fields(self.context.get("fields", tgdb.fields))
        include = format_include(self.context.get("include", tgdb.include or include_default))
        return {k: v for k, v in {"fields": fields, "include": include}.items() if v}

    def store(self, payload, context=None) -> int:
        """Upsert every game in one response; PC titles before 2015 are skipped"""
        if not payload:
            return 0
        rows = transform_games(TgdbPayload(payload), context)
        with atomic():
            for attributes in rows:
                TheGamesDbMirrorRepository.upsert_game(attributes)
        return len(rows)


class TgdbFullSyncJob(TgdbJob):
    name = "tgdb_full_sync"
    task_name = "tasks.tgdb_full_sync"
    backoff_schedule = [60, 120, 240, 480, 960]

    def handle(self):
        entries = self.context.get("games") or list(self.config.thegamesdb.games)
        params = self.request_params("boxart,platforms")

        with SnapshotTracker("tgdb:full_sync", provider="thegamesdb", context={"entries": len(entries)}) as run:
            upserts = 0
            queries = 0
            for entry in entries:
                entry_context = entry if isinstance(entry, dict) else {}
                for query in normalize_queries(entry):
                    queries += 1
                    payload = self.client.search_by_name(query, True, params)
                    upserts += self.store(payload, entry_context)

            TheGamesDbMirrorRepository.update_full_sync_state(now_utc(), {"last_full_count": upserts})
            run.row_count = upserts
            run.context["queries"] = queries

        logger.info("thegamesdb.mirror.full_sync", upserts=upserts, queries=queries)
        return upserts


class TgdbIncrementalUpdateJob(TgdbJob):
    name = "tgdb_incremental_update"
    task_name = "tasks.tgdb_incremental_update"
    backoff_schedule = [120, 240, 480, 960, 1800]

    @classmethod
    def idempotency_key_for(cls, context):
        return f"{cls.name}:{now_utc().strftime('%Y-%m-%dT%H')}"

    def handle(self):
        state = TheGamesDbMirrorRepository.latest_sync_state()
        since = ensure_utc(state.last_incremental_sync_at or state.last_full_sync_at)

        with SnapshotTracker("tgdb:incremental", provider="thegamesdb", context={"since": isoformat(since)}) as run:
            ids = game_ids(self.client.updates_since(since))
            if not ids:
                TheGamesDbMirrorRepository.update_incremental_sync_state(now_utc(), {"last_incremental_count": 0})
                return 0

            params = self.request_params()
            upserts = 0
            for chunk in chunked(ids, UPDATE_CHUNK_SIZE):
                upserts += self.store(self.client.by_ids(chunk, False, params))

            TheGamesDbMirrorRepository.update_incremental_sync_state(now_utc(), {"last_incremental_count": upserts})
            run.row_count = upserts
            run.context["updated_ids"] = len(ids)

        logger.info(
            "thegamesdb.mirror.incremental_sync",
            upserts=upserts,
            chunk_groups=-(-len(ids) // UPDATE_CHUNK_SIZE),
        )
        return upserts


class TgdbSweepShardJob(TgdbJob):
    """
    Re-pull the shard ``day_of_year % window_days`` of mirrored ids, then
    spend what is left of the daily call budget discovering new ids.
    """

    name = "tgdb_sweep_shard"
    task_name = "tasks.tgdb_sweep_shard"
    backoff_schedule = [120, 240, 480, 960, 1800]

    def handle(self):
        sweep = self.config.thegamesdb.sweep
        window_days = max(1, to_int(self.context.get("window_days")) or sweep.window_days)
        total_shards = max(1, to_int(self.context.get("total_shards")) or window_days)
        shard = to_int(self.context.get("shard"))
        if shard is None:
            shard = now_utc().timetuple().tm_yday % total_shards
        shard %= total_shards
        chunk_size = max(1, to_int(self.context.get("chunk_size")) or sweep.chunk_size)
        budget = max(1, to_int(self.context.get("daily_budget")) or sweep.daily_budget)
        params = self.request_params()

        summary = {"shard": shard, "total_shards": total_shards, "window_days": window_days, "budget": budget}
        with SnapshotTracker("tgdb:sweep", provider="thegamesdb", context=summary) as run:
            calls = 0
            upserts = 0
            queried = 0
            ids = TheGamesDbMirrorRepository.shard_ids(total_shards, shard, limit=budget * chunk_size)
            for chunk in chunked(ids, chunk_size):
                if calls >= budget:
                    break
                calls += 1
                queried += len(chunk)
                upserts += self.store(self.client.by_ids(chunk, True, params, "games.sweep"))

            discovery = None
            if self.config.thegamesdb.discovery.enabled and calls < budget:
                discovery = self.discover(budget - calls, params)
                calls += discovery["requests"]
                upserts += discovery["upserts"]
                queried += discovery["queried"]

            details = {
                "last_sweep_shard": shard,
                "total_shards": total_shards,
                "window_days": window_days,
                "calls_used": calls,
                "budget": budget,
                "upserts": upserts,
                "queried_ids": queried,
                "discovery": discovery,
            }
            TheGamesDbMirrorRepository.update_sweep_state(now_utc(), details)
            run.row_count = upserts
            run.context.update(details)

        logger.info("thegamesdb.mirror.sweep", **details)
        return upserts

    def discover(self, remaining_budget: int, params: Dict[str, Any]) -> Dict[str, Any]:
        """Walk id ranges above ``next_start_id`` looking for games not yet mirrored"""
        config = self.config.thegamesdb.discovery
        max_requests = min(remaining_budget, max(1, config.requests_per_run))
        batch_size = max(1, config.batch_size)
        start_id = max(1, config.start_id)

        state = TheGamesDbMirrorRepository.latest_sync_state()
        stored = (state.metadata_json or {}).get("discovery") or {}
        next_start = max(start_id, to_int(stored.get("next_start_id")) or start_id)

        requests = upserts = queried = 0
        last_range = None
        while requests < max_requests:
            if config.max_id is not None and next_start > config.max_id:
                break
            range_end = next_start + batch_size - 1
            if config.max_id is not None:
                range_end = min(range_end, config.max_id)

            ids = list(range(next_start, range_end + 1))
            payload = self.client.by_ids(ids, config.use_private_key, params, "games.discovery")
            requests += 1
            queried += len(ids)
            batch_upserts = self.store(payload)
            upserts += batch_upserts
            last_range = [next_start, range_end]
            next_start = range_end + 1

            TheGamesDbMirrorRepository.update_discovery_state(
                now_utc(), {"next_start_id": next_start, "last_range": last_range, "last_upserts": batch_upserts}
            )

        return {"requests": requests, "upserts": upserts, "queried": queried, "range": last_range}
