"""
Tests for the catalogue aggregator quotas and dedup
"""
from unittest.mock import MagicMock

import pytest

from exceptions import RateLimited, SourceUnavailable
from services.catalogue.aggregator import CatalogueAggregator, dedupe_by_slug, resolve_source_limit
from services.catalogue.rawg_importer import RawgTrendingImporter
from services.catalogue.trending_data import TrendingGameData
from services.providers import ProviderRegistry
from settings import SourceConfig

from conftest import StaticSource, make_config


def rawg_game(name, slug=None):
    return TrendingGameData.from_rawg({'name': name, 'slug': slug, 'released': '2024-01-01'})


def nexarda_game(title):
    return TrendingGameData.from_nexarda({'title': title})


def catalogue(**sources):
    return make_config({'catalogue': {'window_days': 7, 'sources': sources}}, defaults=False)


class TestResolveSourceLimit:
    """Take-quota for one source"""

    @pytest.mark.parametrize('preferred, remaining, fallback, expected', [
        (None, 5, 7, 5),
        (0, 4, 7, 4),
        (3, 5, 7, 3),
        (10, 5, 7, 5),
        (None, 0, 7, 7),
        (3, 0, 7, 3),
    ])
    def test_quota(self, preferred, remaining, fallback, expected):
        assert resolve_source_limit(preferred, remaining, fallback) == expected


class TestCatalogueAggregator:
    """Tests for aggregate()"""

    def test_dedup_keeps_first_source(self):
        rawg = StaticSource('rawg', [rawg_game('Halo: Infinite', 'halo-infinite'), rawg_game('Starfield', 'starfield')])
        nexarda = StaticSource('nexarda', [nexarda_game('halo infinite'), nexarda_game('Elden Ring')])
        config = catalogue(rawg={'enabled': True}, nexarda={'enabled': True})

        result = CatalogueAggregator(config, ProviderRegistry([rawg, nexarda])).aggregate(4)

        assert [e.slug for e in result.entries] == ['halo-infinite', 'starfield', 'elden-ring']
        assert result.entries[0].source() == 'rawg'
        assert result.sources == {
            'rawg': {'count': 2, 'requested': 4},
            'nexarda': {'count': 2, 'requested': 2},
        }
        assert result.total_requested == 4

    def test_quota_respected(self):
        capped = StaticSource('rawg', [rawg_game(f'Capped {i}') for i in range(10)])
        open_ended = StaticSource('nexarda', [nexarda_game(f'Open {i}') for i in range(10)])
        config = catalogue(rawg={'limit': 5}, nexarda={'limit': None})

        result = CatalogueAggregator(config, ProviderRegistry([capped, open_ended])).aggregate(8)

        assert len(result.entries) == 8
        assert result.sources['rawg'] == {'count': 5, 'requested': 5}
        assert result.sources['nexarda'] == {'count': 3, 'requested': 3}

    def test_satisfied_pass_skips_later_sources(self):
        rawg = StaticSource('rawg', [rawg_game(f'Game {i}') for i in range(5)])
        nexarda = StaticSource('nexarda', [nexarda_game('Late Entry')])
        config = catalogue(rawg={}, nexarda={})

        result = CatalogueAggregator(config, ProviderRegistry([rawg, nexarda])).aggregate(3)

        assert len(result.entries) == 3
        assert nexarda.requests == []
        assert 'nexarda' not in result.sources

    def test_always_fetch_source_runs_after_limit_is_met(self):
        rawg = StaticSource('rawg', [rawg_game(f'Game {i}') for i in range(5)])
        feed = StaticSource('nexarda_feed', [nexarda_game('Boosted Title')])
        config = catalogue(rawg={}, nexarda_feed={'always_fetch': True, 'limit': 4})

        result = CatalogueAggregator(config, ProviderRegistry([rawg, feed])).aggregate(3)

        assert feed.requests[0][0] == 4
        assert result.sources['nexarda_feed'] == {'count': 1, 'requested': 4}
        # truncation still applies
        assert len(result.entries) == 3

    def test_failing_source_contributes_nothing(self):
        broken = StaticSource('rawg', error=RuntimeError('boom'))
        nexarda = StaticSource('nexarda', [nexarda_game('Elden Ring')])
        config = catalogue(rawg={}, nexarda={})

        result = CatalogueAggregator(config, ProviderRegistry([broken, nexarda])).aggregate(2)

        assert [e.name for e in result.entries] == ['Elden Ring']
        assert result.sources['rawg'] == {'count': 0, 'requested': 2}

    def test_unavailable_source_is_soft(self):
        broken = StaticSource('rawg', error=SourceUnavailable('no key', provider='rawg'))
        config = catalogue(rawg={})

        result = CatalogueAggregator(config, ProviderRegistry([broken])).aggregate(2)

        assert result.entries == []
        assert result.sources['rawg']['count'] == 0

    def test_disabled_and_unregistered_sources(self):
        disabled_client = StaticSource('rawg', [rawg_game('Hidden')], enabled=False)
        config = catalogue(rawg={}, giantbomb={}, nexarda={'enabled': False})

        result = CatalogueAggregator(config, ProviderRegistry([disabled_client])).aggregate(2)

        assert result.entries == []
        assert disabled_client.requests == []
        assert 'nexarda' not in result.sources
        assert result.sources['giantbomb']['count'] == 0

    def test_window_days_reaches_sources(self):
        rawg = StaticSource('rawg', [rawg_game('Starfield')])
        config = catalogue(rawg={})

        CatalogueAggregator(config, ProviderRegistry([rawg])).aggregate(1, window_days=30)

        assert rawg.requests == [(1, {'window_days': 30})]

    def test_dedupe_by_slug_falls_back_to_name(self):
        entries = [TrendingGameData(name='Hades', slug=''), TrendingGameData(name='HADES', slug='hades')]
        assert len(dedupe_by_slug(entries)) == 1


def test_rate_limited_source_keeps_collected_entries():
    http = MagicMock()
    http.get_json.side_effect = [
        {'results': [{'name': 'Starfield', 'slug': 'starfield'}, {'name': 'Hades', 'slug': 'hades'}], 'next': 'page-2'},
        RateLimited('rawg', 30),
    ]
    rawg = RawgTrendingImporter(SourceConfig(key='rawg', api_key='secret'), http=http)
    config = catalogue(rawg={'enabled': True, 'api_key': 'secret'})

    result = CatalogueAggregator(config, ProviderRegistry([rawg])).aggregate(4)

    assert [e.slug for e in result.entries] == ['starfield', 'hades']
    assert result.sources['rawg']['count'] == 2
