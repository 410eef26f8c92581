"""
Tests for outbound link verification
"""
from unittest.mock import MagicMock

import requests

from db import db
from identity import IdentityResolver
from jobs.verify_links import VerifyLinksJob, probe
from repositories.media_repository import MediaRepository
from repositories.price_repository import PriceRepository

from conftest import StubLimiter, make_config


def http_response(status, reason='OK'):
    resp = MagicMock()
    resp.status_code = status
    resp.reason = reason
    return resp


def session_for(statuses):
    """Session whose HEAD answers from ``{url: status | exception}``"""
    session = MagicMock()

    def head(url, **kwargs):
        outcome = statuses[url]
        if isinstance(outcome, Exception):
            raise outcome
        return http_response(outcome, 'OK' if outcome < 400 else 'Not Found')

    session.head.side_effect = head
    return session


class TestProbe:
    """Single url checks"""

    def test_ok(self):
        session = session_for({'https://store.example/hk': 200})

        result = probe('https://store.example/hk', session=session)

        assert result['status'] == 'ok'
        assert result['code'] == 200
        assert result['reason'] is None
        assert session.head.call_args.kwargs['headers']['User-Agent'] == 'GameCompareLinkVerifier/1.0'

    def test_redirects_count_as_ok(self):
        assert probe('https://a.example', session=session_for({'https://a.example': 302}))['status'] == 'ok'

    def test_head_not_allowed_falls_back_to_get(self):
        session = MagicMock()
        session.head.return_value = http_response(405, 'Method Not Allowed')
        session.get.return_value = http_response(200)

        result = probe('https://store.example/hk', session=session)

        assert result['status'] == 'ok'
        assert session.get.call_args.kwargs['stream'] is True
        session.get.return_value.close.assert_called_once()

    def test_failed_status_keeps_reason(self):
        result = probe('https://gone.example', session=session_for({'https://gone.example': 404}))
        assert result == {'status': 'failed', 'code': 404, 'checked_at': result['checked_at'], 'reason': 'Not Found'}

    def test_transport_error(self):
        session = session_for({'https://down.example': requests.ConnectionError('refused')})

        result = probe('https://down.example', session=session)

        assert result['status'] == 'error'
        assert result['code'] is None
        assert 'refused' in result['reason']


class TestVerifyLinksJob:
    """Media and SkuRegion link bookkeeping"""

    def seed(self):
        product, _ = IdentityResolver().resolve('Hollow Knight', None, 'PC', slug='hollow-knight')
        db.session.flush()
        MediaRepository.upsert(product.id, 'rawg', '1', url='https://img.example/cover.jpg', is_primary=True)
        MediaRepository.upsert(product.id, 'rawg', '2', url='not a url')
        live = PriceRepository.upsert_sku_region(product.id, 'US', 'steam', 'USD',
                                                 metadata={'store_url': 'https://store.example/hk'})
        dead = PriceRepository.upsert_sku_region(product.id, 'EU', 'gog', 'EUR',
                                                 metadata={'url': 'https://gone.example/hk'})
        unlinked = PriceRepository.upsert_sku_region(product.id, 'GB', 'humble', 'GBP')
        db.session.commit()
        return product, live, dead, unlinked

    def run(self, product, session):
        job = VerifyLinksJob({'product_id': product.id}, session=session, config=make_config(),
                             limiter=StubLimiter(), dispatcher=MagicMock())
        return job.run()

    def test_checks_media_and_regions(self, app):
        product, live, dead, unlinked = self.seed()
        session = session_for({
            'https://img.example/cover.jpg': 200,
            'https://store.example/hk': 200,
            'https://gone.example/hk': 404,
        })

        result = self.run(product, session)

        assert result == {'media': 2, 'regions': 2, 'failures': 2}
        assert live.is_active is True
        assert live.metadata_json['link_check']['status'] == 'ok'
        assert dead.is_active is False
        assert dead.metadata_json['link_check']['code'] == 404
        assert unlinked.is_active is True
        assert 'link_check' not in (unlinked.metadata_json or {})

        statuses = {m.external_id: m.metadata_json['link_check']['status'] for m in MediaRepository.for_product(product.id)}
        assert statuses == {'1': 'ok', '2': 'invalid_url'}
        # invalid urls are never requested
        assert session.head.call_count == 3

    def test_transport_error_deactivates_region(self, app):
        product, live, dead, unlinked = self.seed()
        session = session_for({
            'https://img.example/cover.jpg': 200,
            'https://store.example/hk': requests.Timeout('slow'),
            'https://gone.example/hk': 200,
        })

        self.run(product, session)

        assert live.is_active is False
        assert live.metadata_json['link_check']['status'] == 'error'
        assert dead.is_active is True

    def test_product_without_links(self, app):
        product, _ = IdentityResolver().resolve('Tunic', None, None, slug='tunic')
        db.session.commit()

        assert self.run(product, MagicMock()) == {'media': 0, 'regions': 0, 'failures': 0}
