"""
Tests for the TheGamesDB mirror: client, transformer, repository and sync jobs
"""
from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from exceptions import ProviderException, TheGamesDbApiException
from jobs.tgdb_sync import TgdbFullSyncJob, TgdbIncrementalUpdateJob, TgdbSweepShardJob, normalize_queries
from repositories.http_cache_repository import VendorHttpCacheRepository
from repositories.mirror_repository import TheGamesDbMirrorRepository
from repositories.snapshot_repository import SnapshotRepository
from services.thegamesdb.api_client import TheGamesDbApiClient
from services.thegamesdb.transformer import TgdbPayload, game_ids, transform_games
from settings import TheGamesDbConfig

from conftest import StubLimiter, make_config

BOXART_BASE = 'https://cdn.thegamesdb.net/images/original/'

PLATFORMS = {
    '1': {'id': 1, 'name': 'PC'},
    '4911': {'id': 4911, 'name': 'Nintendo Switch'},
}


def tgdb_game(game_id, title=None, platform=4911, released='2019-03-01'):
    return {'id': game_id, 'game_title': title or f'Game {game_id}', 'platform': platform, 'release_date': released}


def games_payload(*games, boxart=None):
    return {
        'data': {'count': len(games), 'games': list(games)},
        'include': {
            'boxart': {'base_url': {'original': BOXART_BASE}, 'data': boxart or {}},
            'platforms': {'data': PLATFORMS},
        },
    }


def tgdb_config(**overrides):
    return make_config({'thegamesdb': {'public_key': 'pub', 'private_key': 'priv', **overrides}})


def mirror(*ids, stale_first=None):
    """Seed the mirror; ``stale_first`` ids get the oldest last_synced_at"""
    base = datetime(2026, 10, 1, tzinfo=timezone.utc)
    order = list(stale_first or []) + [i for i in ids if i not in (stale_first or [])]
    for position, external_id in enumerate(order):
        TheGamesDbMirrorRepository.upsert_game({
            'external_id': external_id,
            'title': f'Game {external_id}',
            'platform': 'Nintendo Switch',
            'last_synced_at': base + timedelta(hours=position),
        })


class TestTransformer:
    """Payload mapping"""

    def test_maps_platform_and_front_box_art(self):
        payload = games_payload(
            tgdb_game(7, 'Celeste'),
            boxart={'7': [
                {'side': 'back', 'filename': 'boxart/back/7-1.jpg'},
                {'side': 'front', 'filename': 'boxart/front/7-1.jpg', 'thumbnail': 'thumb/7-1.jpg'},
            ]},
        )

        row = transform_games(TgdbPayload(payload))[0]

        assert row['external_id'] == 7
        assert row['slug'] == 'celeste'
        assert row['platform'] == 'Nintendo Switch'
        assert row['release_date'] == date(2019, 3, 1)
        assert row['image_url'] == BOXART_BASE + 'boxart/front/7-1.jpg'
        assert row['thumb_url'] == BOXART_BASE + 'thumb/7-1.jpg'
        assert row['metadata']['platform_id'] == 4911

    def test_old_pc_games_are_skipped(self):
        payload = games_payload(
            tgdb_game(1, 'Old PC Game', platform=1, released='2010-05-05'),
            tgdb_game(2, 'New PC Game', platform=1, released='2020-05-05'),
            tgdb_game(3, 'Old Switch Game', released='2010-05-05'),
        )

        rows = transform_games(TgdbPayload(payload))

        assert [r['title'] for r in rows] == ['New PC Game', 'Old Switch Game']

    def test_rows_without_id_or_title_are_dropped(self):
        payload = games_payload({'id': 0, 'game_title': 'No Id'}, {'id': 5, 'game_title': '  '}, 'junk')
        assert transform_games(TgdbPayload(payload)) == []

    def test_context_fills_missing_fields(self):
        payload = games_payload({'id': 9, 'game_title': 'Mario Kart 8', 'platform': 'Wii U'})

        row = transform_games(TgdbPayload(payload), {'slug': 'mk8', 'category': 'Game', 'queries': ['Mario Kart']})[0]

        assert row['slug'] == 'mk8'
        assert row['platform'] == 'Wii U'
        assert row['metadata']['search_queries'] == ['Mario Kart']

    @pytest.mark.parametrize('payload, expected', [
        ({'data': {'updates': [{'game_id': 3}, {'id': 4}, 3, '5']}}, [3, 4, 5]),
        ({'data': {'games': [{'id': 8}]}}, [8]),
        ({'data': {'updates': 'nope'}}, []),
        (None, []),
    ])
    def test_game_ids(self, payload, expected):
        assert game_ids(payload) == expected

    def test_normalize_queries(self):
        assert normalize_queries('Hades') == ['Hades']
        assert normalize_queries({'queries': ['Hades', ' Hades ', '']}) == ['Hades']
        assert normalize_queries({'title': 'Celeste'}) == ['Celeste']
        assert normalize_queries(42) == []


class TestMirrorRepository:
    """Validation, search and sync cursors"""

    def test_upsert_requires_id_and_title(self, app):
        with pytest.raises(ValueError):
            TheGamesDbMirrorRepository.upsert_game({'title': 'Nameless'})
        with pytest.raises(ValueError):
            TheGamesDbMirrorRepository.upsert_game({'external_id': 3, 'title': ' '})

    def test_upsert_updates_in_place(self, app):
        TheGamesDbMirrorRepository.upsert_game({'external_id': 3, 'title': 'Hades'})
        TheGamesDbMirrorRepository.upsert_game({'external_id': 3, 'title': 'Hades', 'platform': 'PC'})

        assert TheGamesDbMirrorRepository.count() == 1
        game = TheGamesDbMirrorRepository.get(3)
        assert game.slug == 'hades'
        assert game.platform == 'PC'

    def test_search_prefers_exact_slug(self, app):
        TheGamesDbMirrorRepository.upsert_game({'external_id': 1, 'title': 'Hades II', 'platform': 'PC'})
        TheGamesDbMirrorRepository.upsert_game({'external_id': 2, 'title': 'Hades', 'platform': 'Nintendo Switch'})

        assert [g.external_id for g in TheGamesDbMirrorRepository.search('Hades')] == [2, 1]
        assert [g.external_id for g in TheGamesDbMirrorRepository.search('Hades', {'platforms': 'PC'})] == [1]
        assert TheGamesDbMirrorRepository.search('  ') == []

    def test_for_platform(self, app):
        mirror(1, 2)
        assert len(TheGamesDbMirrorRepository.for_platform('Nintendo Switch')) == 2
        assert TheGamesDbMirrorRepository.for_platform('') == []

    def test_shard_ids_are_stalest_first(self, app):
        mirror(2, 4, 6, 3, stale_first=[6])
        assert TheGamesDbMirrorRepository.shard_ids(2, 0) == [6, 2, 4]
        assert TheGamesDbMirrorRepository.shard_ids(2, 0, limit=1) == [6]

    def test_nested_state_merges(self, app):
        TheGamesDbMirrorRepository.update_sweep_state(extra={'calls_used': 3})
        TheGamesDbMirrorRepository.update_sweep_state(extra={'upserts': 9})
        TheGamesDbMirrorRepository.update_full_sync_state(extra={'last_full_count': 12})

        metadata = TheGamesDbMirrorRepository.latest_sync_state().metadata_json
        assert metadata['sweep'] == {'calls_used': 3, 'upserts': 9}
        assert metadata['last_full_count'] == 12
        assert 'last_sweep_at' in metadata


class TestApiClient:
    """Conditional requests and error mapping"""

    def response(self, status=200, payload=None, headers=None):
        resp = MagicMock()
        resp.status_code = status
        resp.json.return_value = payload
        resp.headers = headers or {}
        return resp

    def make(self, **config):
        http = MagicMock()
        tgdb = TheGamesDbConfig(public_key='pub', private_key='priv', **config)
        return TheGamesDbApiClient(tgdb, http=http), http

    def test_validators_are_stored_and_replayed(self, app):
        client, http = self.make()
        http.get.return_value = self.response(200, games_payload(tgdb_game(1)), {
            'ETag': '"v1"', 'Last-Modified': 'Mon, 19 Oct 2026 07:28:00 GMT',
        })

        assert client.search_by_name('Celeste', cache_key='games.celeste')['data']['count'] == 1
        assert http.get.call_args.kwargs['params'] == {'name': 'Celeste', 'apikey': 'pub'}
        cached = VendorHttpCacheRepository.get('thegamesdb', 'games.celeste')
        assert cached.etag == '"v1"'

        http.get.return_value = self.response(304)
        assert client.search_by_name('Celeste', cache_key='games.celeste') is None
        headers = http.get.call_args.kwargs['headers']
        assert headers['If-None-Match'] == '"v1"'
        assert headers['If-Modified-Since'] == 'Mon, 19 Oct 2026 07:28:00 GMT'

    def test_private_key(self, app):
        client, http = self.make()
        http.get.return_value = self.response(200, {'data': {}})

        client.by_ids([3, '3', 'x', 4], True)

        assert http.get.call_args.kwargs['params'] == {'id': '3,4', 'apikey': 'priv'}

    def test_no_valid_ids_skips_request(self, app):
        client, http = self.make()
        assert client.by_ids(['x', 0]) is None
        http.get.assert_not_called()

    def test_missing_key(self):
        client = TheGamesDbApiClient(TheGamesDbConfig(public_key='pub'), http=MagicMock())
        with pytest.raises(TheGamesDbApiException):
            client.resolve_api_key(use_private_key=True)
        assert client.resolve_api_key() == 'pub'

    def test_transport_error_is_wrapped(self, app):
        client, http = self.make()
        http.get.side_effect = ProviderException('HTTP 500', provider='thegamesdb')

        with pytest.raises(TheGamesDbApiException):
            client.updates_since(None)

    def test_invalid_payload(self, app):
        client, http = self.make()
        http.get.return_value = self.response(200, ['not', 'a', 'dict'])

        with pytest.raises(TheGamesDbApiException):
            client.by_ids([7])


class TestFullSync:
    """Configured name searches into the mirror"""

    def test_full_sync(self, app):
        client = MagicMock()
        client.search_by_name.side_effect = lambda query, *args: games_payload(tgdb_game(
            7 if query.startswith('Celeste') else 8, query.split(' ')[0]
        ))
        context = {'games': [{'queries': ['Celeste', 'Celeste Classic'], 'category': 'Game'}, 'Hades']}

        upserts = TgdbFullSyncJob(context, client=client, config=tgdb_config(), limiter=StubLimiter()).run()

        assert upserts == 3
        assert TheGamesDbMirrorRepository.count() == 2
        assert [c.args[:2] for c in client.search_by_name.call_args_list] == [
            ('Celeste', True), ('Celeste Classic', True), ('Hades', True),
        ]
        assert client.search_by_name.call_args.args[2]['include'] == 'boxart,platforms'

        state = TheGamesDbMirrorRepository.latest_sync_state()
        assert state.last_full_sync_at is not None
        assert state.metadata_json['last_full_count'] == 3

        snapshot = SnapshotRepository.latest('tgdb:full_sync')[0]
        assert snapshot.status == 'succeeded'
        assert snapshot.row_count == 3
        assert snapshot.context['queries'] == 3

    def test_entries_come_from_config(self, app):
        client = MagicMock()
        client.search_by_name.return_value = None
        config = tgdb_config(games=[{'query': 'Tunic'}])

        assert TgdbFullSyncJob({}, client=client, config=config, limiter=StubLimiter()).run() == 0
        client.search_by_name.assert_called_once()

    def test_without_credentials_nothing_runs(self, app):
        client = MagicMock()

        assert TgdbFullSyncJob({'games': ['Hades']}, client=client, config=make_config(), limiter=StubLimiter()).run() == 0
        client.search_by_name.assert_not_called()
        assert SnapshotRepository.count() == 0

    def test_failure_marks_snapshot_failed(self, app):
        client = MagicMock()
        client.search_by_name.side_effect = TheGamesDbApiException('HTTP 500')

        with pytest.raises(TheGamesDbApiException):
            TgdbFullSyncJob({'games': ['Hades']}, client=client, config=tgdb_config(), limiter=StubLimiter()).run()

        assert SnapshotRepository.latest('tgdb:full_sync')[0].status == 'failed'


class TestIncrementalUpdate:
    """Games/Updates polling"""

    def test_updates_since_last_full_sync(self, app):
        TheGamesDbMirrorRepository.update_full_sync_state(datetime(2026, 10, 18, tzinfo=timezone.utc))
        client = MagicMock()
        client.updates_since.return_value = {'data': {'updates': [{'game_id': 1}, {'game_id': 2}, 1]}}
        client.by_ids.return_value = games_payload(tgdb_game(1), tgdb_game(2))

        upserts = TgdbIncrementalUpdateJob({}, client=client, config=tgdb_config(), limiter=StubLimiter()).run()

        assert upserts == 2
        assert client.updates_since.call_args.args[0] == datetime(2026, 10, 18, tzinfo=timezone.utc)
        ids, use_private_key = client.by_ids.call_args.args[:2]
        assert (ids, use_private_key) == ([1, 2], False)
        state = TheGamesDbMirrorRepository.latest_sync_state()
        assert state.metadata_json['last_incremental_count'] == 2
        assert state.last_incremental_sync_at is not None

    def test_ids_are_chunked(self, app):
        client = MagicMock()
        client.updates_since.return_value = {'data': {'updates': list(range(1, 81))}}
        client.by_ids.return_value = None

        TgdbIncrementalUpdateJob({}, client=client, config=tgdb_config(), limiter=StubLimiter()).run()

        assert [len(c.args[0]) for c in client.by_ids.call_args_list] == [75, 5]

    def test_no_updates(self, app):
        client = MagicMock()
        client.updates_since.return_value = {'data': {'updates': []}}

        assert TgdbIncrementalUpdateJob({}, client=client, config=tgdb_config(), limiter=StubLimiter()).run() == 0
        client.by_ids.assert_not_called()
        assert TheGamesDbMirrorRepository.latest_sync_state().metadata_json['last_incremental_count'] == 0


class TestSweepShard:
    """Daily shard re-pull and id discovery"""

    def by_ids(self, ids, *args):
        return games_payload(*[tgdb_game(i) for i in ids])

    def test_sweep_refreshes_shard(self, app):
        mirror(1, 2, 3, 4, 6, stale_first=[6])
        client = MagicMock()
        client.by_ids.side_effect = self.by_ids
        context = {'shard': 0, 'total_shards': 2, 'chunk_size': 2, 'daily_budget': 5}

        upserts = TgdbSweepShardJob(context, client=client, config=tgdb_config(), limiter=StubLimiter()).run()

        assert upserts == 3
        assert [c.args[0] for c in client.by_ids.call_args_list] == [[6, 2], [4]]
        assert client.by_ids.call_args.args[1:] == (True, {'fields': 'players,publishers,genres,overview,platform',
                                                           'include': 'boxart,platforms'}, 'games.sweep')
        sweep = TheGamesDbMirrorRepository.latest_sync_state().metadata_json['sweep']
        assert sweep['calls_used'] == 2
        assert sweep['queried_ids'] == 3
        assert sweep['discovery'] is None

    def test_budget_caps_calls(self, app):
        mirror(2, 4, 6, 8)
        client = MagicMock()
        client.by_ids.side_effect = self.by_ids
        context = {'shard': 0, 'total_shards': 2, 'chunk_size': 1, 'daily_budget': 2}

        TgdbSweepShardJob(context, client=client, config=tgdb_config(), limiter=StubLimiter()).run()

        assert client.by_ids.call_count == 2

    def test_discovery_spends_remaining_budget(self, app):
        mirror(2)
        client = MagicMock()
        client.by_ids.side_effect = lambda ids, *args: games_payload(tgdb_game(ids[0])) if ids[0] >= 100 else None
        config = tgdb_config(discovery={
            'enabled': True, 'start_id': 100, 'batch_size': 10, 'max_id': 115, 'requests_per_run': 3,
        })
        context = {'shard': 0, 'total_shards': 2, 'chunk_size': 5, 'daily_budget': 4}

        upserts = TgdbSweepShardJob(context, client=client, config=config, limiter=StubLimiter()).run()

        discovery_calls = [c.args for c in client.by_ids.call_args_list if c.args[3] == 'games.discovery']
        assert [(args[0][0], args[0][-1]) for args in discovery_calls] == [(100, 109), (110, 115)]
        assert upserts == 2
        assert TheGamesDbMirrorRepository.get(110) is not None

        metadata = TheGamesDbMirrorRepository.latest_sync_state().metadata_json
        assert metadata['discovery'] == {'next_start_id': 116, 'last_range': [110, 115], 'last_upserts': 1}
        assert metadata['sweep']['discovery'] == {'requests': 2, 'upserts': 2, 'queried': 16, 'range': [110, 115]}

    def test_discovery_resumes_from_stored_cursor(self, app):
        TheGamesDbMirrorRepository.update_discovery_state(extra={'next_start_id': 300})
        client = MagicMock()
        client.by_ids.return_value = None
        config = tgdb_config(discovery={'enabled': True, 'start_id': 1, 'batch_size': 50})

        TgdbSweepShardJob({'shard': 0, 'daily_budget': 10}, client=client, config=config, limiter=StubLimiter()).run()

        ids = client.by_ids.call_args.args[0]
        assert (ids[0], ids[-1]) == (300, 349)
