"""
Tests for name normalization, uid hashing and the identity resolver
"""
import hashlib
from datetime import date

import pytest

from identity import (
    IdentityResolver,
    compute_uid,
    determine_platform_family,
    is_excluded_pc_release,
    normalize_name,
)
from repositories.alias_repository import AliasRepository
from repositories.product_repository import ProductRepository


class TestNormalizeName:
    """Tests for the cross-provider dedup key"""

    @pytest.mark.parametrize('raw, expected', [
        ('Pokémon Scarlet (Switch)', 'pokemon scarlet'),
        ('Halo: Infinite', 'halo infinite'),
        ('  HALO   infinite ', 'halo infinite'),
        ('Final Fantasy VII [Remake] {Deluxe}', 'final fantasy vii'),
        ('(Untitled)', 'untitled'),
    ])
    def test_normalizes(self, raw, expected):
        assert normalize_name(raw) == expected

    def test_empty_input(self):
        assert normalize_name(None) is None
        assert normalize_name('') is None
        assert normalize_name('!!!') is None

    def test_non_string_input_does_not_raise(self):
        assert normalize_name(2077) == '2077'


class TestComputeUid:
    """uid stability"""

    def test_formatting_variants_share_a_uid(self):
        a = compute_uid('Starfield', '2023-09-06', 'xbox')
        b = compute_uid('  STARFIELD ', date(2023, 9, 6), 'xbox')
        assert a == b

    def test_family_changes_the_uid(self):
        assert compute_uid('Starfield', '2023-09-06', 'xbox') != compute_uid('Starfield', '2023-09-06', 'pc')

    def test_missing_parts_use_unknown(self):
        expected = hashlib.sha256('starfield|unknown|unknown'.encode('utf-8')).hexdigest()
        assert compute_uid('Starfield') == expected


class TestPlatformFamily:
    """Keyword classification of free-text platforms"""

    @pytest.mark.parametrize('platform, family', [
        ('PlayStation 5', 'playstation'),
        ('ps5', 'playstation'),
        ('Xbox Series X|S', 'xbox'),
        ('Nintendo Switch', 'nintendo'),
        ('PC', 'pc'),
        ('Windows', 'pc'),
        ('PC Engine', 'retro'),
        ('Android', 'mobile'),
        ('Sega Saturn', 'sega'),
        ('Neo Geo', 'arcade'),
        ('Atari 2600', 'retro'),
    ])
    def test_known_platforms(self, platform, family):
        assert determine_platform_family(platform) == family

    def test_unknown_platform(self):
        assert determine_platform_family('Ouya') is None
        assert determine_platform_family('') is None
        assert determine_platform_family(None) is None

    def test_pc_cutoff(self):
        assert is_excluded_pc_release('pc', '2012-01-01') is True
        assert is_excluded_pc_release('pc', '2015-01-01') is False
        assert is_excluded_pc_release('pc', None) is False
        assert is_excluded_pc_release('playstation', '2012-01-01') is False


class TestIdentityResolver:
    """Find-or-create and merge rules"""

    def test_resolve_creates_then_finds(self, app):
        resolver = IdentityResolver()

        product, created = resolver.resolve('Starfield', '2023-09-06', 'Xbox Series X|S', slug='starfield')
        again, created_again = resolver.resolve('Starfield', '2023-09-06', 'Xbox Series X|S', slug='starfield')

        assert created is True
        assert created_again is False
        assert again.id == product.id
        assert product.primary_platform_family == 'xbox'
        assert ProductRepository.count() == 1

    def test_slug_fallback_when_uid_differs(self, app):
        resolver = IdentityResolver()
        product, _ = resolver.resolve('Hades', None, None, slug='hades')

        other, created = resolver.resolve('Hades', '2020-09-17', 'Nintendo Switch', slug='hades')

        assert created is False
        assert other.id == product.id

    def test_display_fields_are_first_writer_wins(self, app):
        resolver = IdentityResolver()
        product, _ = resolver.resolve('Hades', '2020-09-17', None, slug='hades')
        assert product.platform == 'Unknown'

        resolver.resolve('HADES Deluxe', '2021-08-13', 'Nintendo Switch', slug='hades')

        assert product.name == 'Hades'
        assert product.release_date == date(2020, 9, 17)
        assert product.platform == 'Nintendo Switch'
        assert product.primary_platform_family == 'nintendo'

    def test_resolve_without_slug(self, app):
        assert IdentityResolver().resolve('???') == (None, False)

    def test_merge_source_replaces_provider_subtree(self, app):
        resolver = IdentityResolver()
        product, _ = resolver.resolve('Celeste', '2018-01-25', 'PC', slug='celeste')

        resolver.merge_source(product, 'rawg', {'rating': 4.5, 'tags': ['indie']}, platforms=['PC'])
        resolver.merge_source(product, 'rawg', {'rating': 4.7}, platforms=['Nintendo Switch'])

        rawg = product.source_metadata('rawg')
        assert rawg['rating'] == 4.7
        assert 'tags' not in rawg
        assert 'fetched_at' in rawg
        assert product.metadata_json['platforms'] == ['PC', 'Nintendo Switch']

    def test_merge_external_ids_ignores_empty_values(self, app):
        resolver = IdentityResolver()
        product, _ = resolver.resolve('Celeste', None, None, slug='celeste')

        resolver.merge_external_ids(product, {'rawg': 123, 'giantbomb': None, 'nexarda': ''})

        assert product.external_ids == {'rawg': '123'}

    def test_sync_platforms_and_genres(self, app):
        resolver = IdentityResolver()
        product, _ = resolver.resolve('Celeste', None, None, slug='celeste')

        resolver.sync_platforms(product, ['PC', 'Nintendo Switch', 'PC', ''])
        resolver.sync_genres(product, ['Platformer', 'Indie'])

        assert sorted(p.code for p in product.platforms) == ['nintendo-switch', 'pc']
        assert sorted(g.slug for g in product.genres) == ['indie', 'platformer']

    def test_alias_is_retargeted_not_duplicated(self, app):
        resolver = IdentityResolver()
        first, _ = resolver.resolve('Control', None, None, slug='control')
        second, _ = resolver.resolve('Control Ultimate Edition', None, None, slug='control-ultimate-edition')

        resolver.link_alias(first, 'giantbomb', '123', 'Control')
        resolver.link_alias(second, 'giantbomb', 123, 'Control Ultimate Edition')

        assert AliasRepository.count('giantbomb') == 1
        alias = AliasRepository.get('giantbomb', '123')
        assert alias.product_id == second.id
        assert alias.alias_title == 'Control Ultimate Edition'

    def test_link_alias_without_id(self, app):
        resolver = IdentityResolver()
        product, _ = resolver.resolve('Control', None, None, slug='control')

        assert resolver.link_alias(product, 'rawg', None) is None
        assert AliasRepository.count() == 0
