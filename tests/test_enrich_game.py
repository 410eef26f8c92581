"""
Tests for GiantBomb enrichment
"""
from datetime import date
from unittest.mock import MagicMock

import pytest

from db import db
from exceptions import ProviderException, RateLimited
from identity import IdentityResolver
from jobs.enrich_game import EnrichGameJob, best_match, estimate_rating, match_score
from jobs.fetch_media import FetchProductMediaJob
from repositories.alias_repository import AliasRepository

from conftest import StubLimiter, make_config

HADES = {
    'id': 71623,
    'name': 'Hades',
    'deck': 'Battle out of hell in this rogue-like dungeon crawler.',
    'site_detail_url': 'https://www.giantbomb.com/hades/3030-71623/',
    'original_release_date': '2020-09-17',
    'platforms': [{'name': 'Nintendo Switch'}, {'name': 'PC'}],
    'genres': [{'name': 'Action'}],
    'aliases': 'Hades: Battle Out of Hell\nHADES',
    'original_game_rating': [{'name': 'ESRB: T'}],
    'image': {'original_url': 'https://giantbomb.com/a/hades.jpg'},
}


def giantbomb_client(results=None, enabled=True):
    client = MagicMock()
    client.enabled.return_value = enabled
    client.search.return_value = results if results is not None else [HADES]
    return client


def make_product(**fields):
    product, _ = IdentityResolver().resolve('Hades', None, None, slug='hades')
    for key, value in fields.items():
        setattr(product, key, value)
    db.session.commit()
    return product


def make_job(product, client, limiter=None, dispatcher=None):
    return EnrichGameJob(
        {'product_id': product.id},
        client=client,
        config=make_config(),
        limiter=limiter or StubLimiter(),
        dispatcher=dispatcher,
    )


class TestMatching:
    """Search result ranking"""

    def test_exact_match_beats_substring(self):
        results = [{'name': 'Hades II', 'id': 2}, {'name': 'Hades', 'id': 1}]
        assert best_match('hades', results)['id'] == 1

    def test_match_is_on_normalized_names(self):
        assert match_score('Halo: Infinite', 'halo infinite') == 3.0
        assert match_score('halo', 'Halo Infinite') == 2.0
        assert 0 < match_score('halo infinit', 'Halo Wars') < 2.0

    def test_no_candidates(self):
        assert best_match('hades', []) is None
        assert best_match('hades', ['not a dict']) is None

    def test_estimate_rating(self):
        assert estimate_rating({'original_game_rating': [{'name': 'ESRB: T'}, {'name': 'ESRB: M'}]}, 0.0) == 85.0
        assert estimate_rating({'original_game_rating': [{'name': 'PEGI: 16'}]}, 12.0) == 12.0


class TestEnrichGameJob:
    """Tests for handle()"""

    def test_enriches_product(self, app, dispatcher):
        product = make_product()

        result = make_job(product, giantbomb_client(), dispatcher=dispatcher).run()

        assert result == product.id
        assert product.synopsis == HADES['deck']
        assert product.release_date == date(2020, 9, 17)
        assert product.primary_platform_family == 'nintendo'
        assert product.rating == 82.0
        assert product.external_ids['giantbomb'] == '71623'
        assert product.source_metadata('giantbomb')['aliases'] == ['Hades: Battle Out of Hell', 'HADES']
        assert AliasRepository.get('giantbomb', '71623').product_id == product.id
        assert AliasRepository.count('alias') == 2
        assert dispatcher.of(FetchProductMediaJob) == [{'product_id': product.id, 'query': 'Hades', 'resource': 'game'}]

    def test_existing_values_are_kept(self, app, dispatcher):
        product = make_product(release_date=date(2018, 12, 6), rating=91.0)

        make_job(product, giantbomb_client(), dispatcher=dispatcher).run()

        assert product.release_date == date(2018, 12, 6)
        assert product.rating == 91.0

    def test_rate_limited(self, app, dispatcher):
        product = make_product()
        client = giantbomb_client()

        with pytest.raises(RateLimited):
            make_job(product, client, limiter=StubLimiter(denied={'giantbomb'}), dispatcher=dispatcher).run()
        client.search.assert_not_called()

    def test_disabled_client_skips(self, app, dispatcher):
        product = make_product()
        client = giantbomb_client(enabled=False)

        assert make_job(product, client, dispatcher=dispatcher).run() is None
        client.search.assert_not_called()
        assert dispatcher.dispatched == []

    def test_failed_search_term_moves_to_next(self, app, dispatcher):
        product = make_product(name='Hades Deluxe')
        client = giantbomb_client()
        client.search.side_effect = [ProviderException('timeout', provider='giantbomb'), [HADES]]

        assert make_job(product, client, dispatcher=dispatcher).run() == product.id
        assert [c.args[0] for c in client.search.call_args_list] == ['hades', 'Hades Deluxe']

    def test_no_match(self, app, dispatcher):
        product = make_product()

        assert make_job(product, giantbomb_client(results=[]), dispatcher=dispatcher).run() is None
        assert product.synopsis is None

    def test_missing_product(self, app, dispatcher):
        job = EnrichGameJob({'product_id': 999}, client=giantbomb_client(), config=make_config(),
                            limiter=StubLimiter(), dispatcher=dispatcher)
        assert job.run() is None

    def test_search_terms_prefer_rawg_slug(self, app, dispatcher):
        product = make_product(metadata_json={'sources': {'rawg': {'rawg_slug': 'hades-2018'}}})

        terms = make_job(product, giantbomb_client(), dispatcher=dispatcher).search_terms(product)

        assert terms == ['hades-2018', 'hades', 'Hades']
