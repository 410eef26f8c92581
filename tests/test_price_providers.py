"""
Tests for the individual price providers
"""
from unittest.mock import MagicMock

import pytest

from exceptions import ProviderException
from services.pricing.itad import IsThereAnyDealProvider, normalize_regions
from services.pricing.nexarda_prices import NexardaPriceProvider, resolve_regions, resolve_slug
from services.pricing.nintendo_eshop import NintendoEshopProvider
from services.pricing.pricecharting import PriceChartingProvider, normalize_catalog
from services.pricing.regions import cheapest_per_store, normalize_store_map
from services.pricing.storefront_stubs import PlayStationStoreProvider
from settings import PricingProviderConfig


def provider(cls, responder, **config):
    http = MagicMock()
    http.get_json.side_effect = responder
    return cls(PricingProviderConfig(key=cls.key, enabled=True, **config), http=http), http


class TestRegions:
    """Store-map helpers"""

    def test_normalize_store_map(self):
        store_map = normalize_store_map({
            'Steam': {'usd': {'store_id': 'steam_us', 'region_code': 'us'}, 'eur': {}},
            'Broken': {'usd': {}},
            'Junk': 'nope',
        })

        assert store_map == {'steam': {'USD': {'store_id': 'steam_us', 'region_code': 'US', 'currency': 'USD'}}}

    def test_cheapest_per_store(self):
        deals = [
            {'store_id': 'steam', 'sale_price': 9.99},
            {'store_id': 'gog', 'sale_price': 7.0},
            {'store_id': 'steam', 'sale_price': 4.99},
            None,
        ]
        assert [(d['store_id'], d['sale_price']) for d in cheapest_per_store(deals)] == [('steam', 4.99), ('gog', 7.0)]


class TestIsThereAnyDeal:
    """Plain lookup and regional prices"""

    def responder(self, path, params=None):
        if path.startswith('/v02/search'):
            return {'data': {'results': [{'title': 'Hades II', 'plain': 'hadesii'}, {'title': 'Hades', 'plain': 'hades'}]}}
        return {'data': {'hades': {'list': [
            {'shop': {'id': 'steam'}, 'price_new': 12.49, 'price_old': 24.99, 'timestamp': 1760000000,
             'url': 'https://store.example/hades'},
            {'shop': {'id': 'gog'}, 'price_new': 0},
        ]}}}

    def test_resolves_plain_and_maps_offers(self):
        itad, http = provider(IsThereAnyDealProvider, self.responder)

        result = itad.fetch_deals({
            'api_key': 'k',
            'requests': [{'title': 'Hades', 'product': {'title': 'Hades', 'slug': 'hades', 'platform': 'PC'}}],
            'default_regions': [{'currency': 'usd', 'country': 'US', 'region_code': 'us'}],
        })

        entry = result['results'][0]
        assert entry['game']['slug'] == 'hades'
        assert entry['game']['metadata']['plain'] == 'hades'
        assert entry['deals'] == [{
            'deal_id': 'itad:hades:steam:usd',
            'store_id': 'itad_steam_usd',
            'sale_price': 12.49,
            'normal_price': 24.99,
            'currency': 'USD',
            'region_code': 'US',
            'last_change': 1760000000,
            'extras': {'offer_url': 'https://store.example/hades', 'shop': {'id': 'steam'}},
        }]
        price_call = http.get_json.call_args_list[-1]
        assert price_call.kwargs['params']['plains'] == 'hades'
        assert price_call.kwargs['params']['country'] == 'us'

    def test_requires_api_key(self):
        itad, _ = provider(IsThereAnyDealProvider, self.responder)
        with pytest.raises(ProviderException):
            itad.fetch_deals({'requests': [{'plain': 'hades'}]})

    def test_nothing_to_look_up(self):
        itad, http = provider(IsThereAnyDealProvider, self.responder, api_key='k')

        result = itad.fetch_deals({'requests': [{'regions': []}]})

        assert result['results'] == []
        http.get_json.assert_not_called()

    def test_normalize_regions_dedupes(self):
        regions = normalize_regions([{'currency': 'eur', 'country': 'DE', 'region': 'eu1'}, {'currency': 'EUR', 'country': 'de', 'region': 'EU1'}])
        assert regions == [{'currency': 'EUR', 'country': 'de', 'region': 'eu1', 'region_code': 'DE'}]


class TestPriceCharting:
    """Search, product lookup and condition prices"""

    def responder(self, path, params=None):
        if path == '/products':
            return {'products': [
                {'id': '100', 'product-name': 'Zelda Poster', 'console-name': 'Merch'},
                {'id': '200', 'product-name': 'Zelda Breath of the Wild', 'console-name': 'Nintendo Switch'},
            ]}
        return {'product': {
            'id': params['id'], 'console-name': 'Nintendo Switch',
            'loose-price': 35.0, 'complete-price': '42.5', 'new-price': 0,
        }}

    def test_condition_prices(self):
        pricecharting, http = provider(PriceChartingProvider, self.responder, token='t')

        result = pricecharting.fetch_deals({
            'catalog': [{'product_slug': 'zelda-botw', 'title': 'Zelda Breath of the Wild', 'platform': 'Nintendo Switch'}],
            'store_map': {'loose': {'store_id': 'pc_loose', 'region_code': 'US'}},
        })

        entry = result['results'][0]
        assert entry['game']['metadata']['pricecharting_id'] == '200'
        assert [(d['store_id'], d['sale_price']) for d in entry['deals']] == [
            ('pc_loose', 35.0), ('pricecharting_complete_usd', 42.5),
        ]
        assert result['meta']['regions'] == ['US']
        assert http.get_json.call_args.kwargs['params'] == {'t': 't', 'id': '200'}

    def test_known_product_id_skips_search(self):
        pricecharting, http = provider(PriceChartingProvider, self.responder, token='t')

        pricecharting.fetch_deals({'catalog': [{'slug': 'zelda-botw', 'product_id': 555}]})

        assert [c.args[0] for c in http.get_json.call_args_list] == ['/product']

    def test_requires_token(self):
        pricecharting, _ = provider(PriceChartingProvider, self.responder)
        with pytest.raises(ProviderException):
            pricecharting.fetch_deals({'catalog': [{'slug': 'zelda'}]})

    def test_failed_entry_is_skipped(self):
        def responder(path, params=None):
            if params.get('q') == 'Broken':
                raise ProviderException('HTTP 500', provider='pricecharting')
            return self.responder(path, params)

        pricecharting, _ = provider(PriceChartingProvider, responder, token='t')

        result = pricecharting.fetch_deals({'catalog': [
            {'slug': 'broken', 'title': 'Broken'},
            {'slug': 'zelda-botw', 'title': 'Zelda Breath of the Wild', 'platform': 'Nintendo Switch'},
        ]})

        assert [r['game']['slug'] for r in result['results']] == ['zelda-botw']

    def test_normalize_catalog_defaults(self):
        assert normalize_catalog([{'slug': 'super-mario-odyssey'}, {'title': 'no slug'}]) == [{
            'product_slug': 'super-mario-odyssey',
            'title': 'Super Mario Odyssey',
            'platform': 'Multi-platform',
            'category': 'Physical',
            'product_id': None,
            'search': 'super-mario-odyssey',
        }]


class TestNexardaPrices:
    """Per-currency offers"""

    def responder(self, path, params=None):
        return {
            'success': True,
            'info': {'name': 'Elden Ring', 'slug': '/games/elden-ring-(2022)'},
            'prices': {'highest': 59.99, 'list': [
                {'store': {'name': 'Steam'}, 'price': 39.99},
                {'store': {'name': 'Fanatical'}, 'price': 35.5},
            ]},
        }

    def test_cheapest_offer_per_store(self):
        nexarda, http = provider(NexardaPriceProvider, self.responder)

        result = nexarda.fetch_deals({'products': [{'id': '991', 'regions': [{'currency': 'gbp', 'region_code': 'gb'}]}]})

        entry = result['results'][0]
        assert entry['game']['slug'] == 'elden-ring-2022'
        assert [(d['store_id'], d['sale_price'], d['normal_price']) for d in entry['deals']] == [('nexarda_gbp', 35.5, 59.99)]
        assert http.get_json.call_args.kwargs['params']['currency'] == 'GBP'

    def test_unsuccessful_response_raises(self):
        nexarda, _ = provider(NexardaPriceProvider, lambda path, params=None: {'success': False})
        with pytest.raises(ProviderException):
            nexarda.fetch_deals({'products': [{'id': '991'}], 'default_regions': [{'currency': 'USD'}]})

    def test_region_and_slug_helpers(self):
        regions = resolve_regions({'regions': [{'currency': 'usd'}]}, [{'currency': 'USD', 'region_code': 'CA'}, {'currency': 'EUR', 'region_code': 'EU'}])
        assert [(r['currency'], r['region_code']) for r in regions] == [('USD', 'US'), ('EUR', 'EU')]
        assert resolve_slug({'title': 'Elden Ring'}, {}) == 'elden-ring'


class TestNintendoEshop:
    def test_discount_price_is_the_sale_price(self):
        def responder(path, params=None):
            return {'prices': [{
                'title_id': 70010000000025,
                'regular_price': {'amount': '59.99', 'currency': 'USD'},
                'discount_price': {'amount': '41.99', 'start_datetime': '2026-10-01T00:00:00Z'},
            }]}

        eshop, _ = provider(NintendoEshopProvider, responder)

        result = eshop.fetch_deals({
            'catalog': [{'nsuid': '70010000000025', 'slug': 'zelda-botw'}],
            'countries': [{'country': 'us', 'currency': 'USD'}],
        })

        deal = result['results'][0]['deals'][0]
        assert (deal['sale_price'], deal['normal_price'], deal['store_id']) == (41.99, 59.99, 'nintendo_eshop_us')
        assert result['results'][0]['game']['platform'] == 'Nintendo Switch'

    def test_no_countries(self):
        eshop, http = provider(NintendoEshopProvider, None)

        result = eshop.fetch_deals({'catalog': [{'nsuid': '1', 'slug': 'x'}]})

        assert result['results'] == []
        assert result['meta']['product_count'] == 1
        http.get_json.assert_not_called()


def test_storefront_stub_returns_no_deals():
    stub = PlayStationStoreProvider(PricingProviderConfig(key='playstation_store', enabled=True))

    payload = stub.fetch_deals({'catalog_queries': ['Astro Bot']})

    assert payload['results'] == []
    assert payload['meta']['stub'] is True
    assert payload['meta']['provider_name'] == 'PlayStation Store'
