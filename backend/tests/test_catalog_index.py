"""
Tests del índice de productos
"""
from decimal import Decimal
from unittest.mock import patch

import pytest

from gestionbot.exceptions import CatalogSnapshotError
from gestionbot.models.catalog import CatalogItem
from gestionbot.services.catalog_index import CatalogIndex


def names(items):
    return [item.name for item in items]


class TestBuild:

    def test_stats(self, index):
        stats = index.stats()
        assert stats.total_items == 7
        assert stats.total_categories == 3
        assert stats.total_subcategories == 4
        assert stats.built_at is not None

    def test_rejects_non_mapping_and_keeps_previous_index(self, index):
        with pytest.raises(CatalogSnapshotError):
            index.build(["no", "es", "un", "mapa"])

        assert index.stats().total_items == 7
        assert index.find_by_exact_name("cuaderno a4") is not None

    def test_skips_malformed_entries(self):
        idx = CatalogIndex()
        stats = idx.build({
            "rota": "no es un mapa",
            "libreria": {
                "cuadernos": {
                    "cuaderno": {"precio": 10},
                    "roto": "sin datos",
                },
                "otra": ["lista"],
            },
        })
        assert stats.total_items == 1
        assert names(idx.all_items()) == ["cuaderno"]

    def test_odd_values_do_not_abort_build(self):
        idx = CatalogIndex()
        stats = idx.build({"libreria": {"varios": {
            "sin_precio": {"precio": "NaN"},
            "infinito": {"precio": "Infinity", "precio_desde": 300},
            "resma": {"precio": 10, "unidad": 12, "descripcion": 500, "tiempo_entrega": 2},
            "foto_rara": {"precio": 10, "imagenes": [{"url": "https://cdn.test/f.jpg", "width": 800.5, "height": "alto"}]},
        }}})

        assert stats.total_items == 4
        assert idx.find_by_exact_name("sin precio").price is None
        assert idx.find_by_exact_name("infinito").unit_price == Decimal("300")

    def test_item_that_fails_validation_is_skipped(self):
        original = CatalogItem.from_raw

        def from_raw(category, subcategory, name, raw):
            if name == "roto":
                raise ArithmeticError("precio imposible")
            return original(category, subcategory, name, raw)

        idx = CatalogIndex()
        with patch.object(CatalogItem, "from_raw", side_effect=from_raw):
            stats = idx.build({"a": {"b": {"roto": {"precio": 1}, "sano": {"precio": 2}}}})

        assert stats.total_items == 1
        assert names(idx.all_items()) == ["sano"]

    def test_duplicate_barcode_keeps_first(self):
        idx = CatalogIndex()
        idx.build({"a": {"b": {
            "primero": {"precio": 10, "codigo_barras": "123"},
            "segundo": {"precio": 20, "codigo_barras": "123"},
        }}})
        assert idx.find_by_barcode("123").name == "primero"

    def test_rebuild_replaces_everything(self, index):
        index.rebuild({"nueva": {"sub": {"tijera": {"precio": 500}}}})
        assert names(index.all_items()) == ["tijera"]
        assert index.search("cuaderno") == []

    def test_clear(self, index):
        index.clear()
        assert index.is_empty()


class TestLookups:

    def test_find_by_key(self, index):
        item = index.find_by_key("libreria::cuadernos::cuaderno_a4")
        assert item.display_name == "Cuaderno A4"
        assert item.price == Decimal("1000")

    def test_find_by_exact_name_is_accent_and_case_insensitive(self, index):
        assert index.find_by_exact_name("Cuaderno A4").name == "cuaderno_a4"

    def test_find_by_barcode(self, index):
        assert index.find_by_barcode(" 7790001000011 ").name == "cuaderno_a4"
        assert index.find_by_barcode("000") is None

    def test_find_by_category(self, index):
        assert len(index.find_by_category("Librería")) == 5

    def test_find_by_subcategory(self, index):
        assert names(index.find_by_subcategory("libreria", "escritura")) == [
            "lapicera_azul", "lapicera_negra", "lapiz_hb",
        ]

    def test_find_by_price_range_sorted_by_price(self, index):
        items = index.find_by_price_range(Decimal("300"), Decimal("1000"))
        assert names(items) == [
            "lapicera_azul", "lapicera_negra", "globos_rojos", "cuaderno_a5", "cuaderno_a4",
        ]

    def test_categories_in_catalog_order(self, index):
        assert index.categories() == ["libreria", "cotillon", "servicios"]
        assert index.subcategories("libreria") == ["cuadernos", "escritura"]


class TestSearch:

    def test_exact_name_ranks_first(self, index):
        assert index.search("lapicera azul")[0].name == "lapicera_azul"
        assert index.search("lapicera negra")[0].name == "lapicera_negra"

    def test_typo_tolerance(self, index):
        assert "cuaderno_a4" in names(index.search("cuadernoo"))

    def test_plural(self, index):
        assert set(names(index.search("lapiceras"))) == {"lapicera_azul", "lapicera_negra"}

    def test_synonyms(self, index):
        assert set(names(index.search("birome"))) == {"lapicera_azul", "lapicera_negra"}

    def test_abbreviation(self, index):
        results = index.search("a4")
        assert results[0].name == "cuaderno_a4"

    def test_color_bonus(self, index):
        matches = index.search_matches("globos rojos")
        assert matches[0].item.name == "globos_rojos"

    def test_ties_keep_catalog_order(self, index):
        assert names(index.search("cuaderno")) == ["cuaderno_a4", "cuaderno_a5"]

    def test_requested_quantity_is_carried(self, index):
        match = index.search_matches("cuaderno", requested_quantity=3)[0]
        assert match.requested_quantity == 3

    def test_empty_query(self, index):
        assert index.search("") == []
        assert index.search("   ") == []

    def test_no_match(self, index):
        assert index.search("heladera") == []

    def test_search_in_stock(self, index):
        assert names(index.search("lapiz")) == ["lapiz_hb"]
        assert index.search_in_stock("lapiz") == []


class TestSearchBest:

    def test_single_full_match_wins(self, index):
        assert names(index.search_best("cuadernos a4")) == ["cuaderno_a4"]

    def test_tied_full_matches_are_all_returned(self, index):
        assert names(index.search_best("cuaderno")) == ["cuaderno_a4", "cuaderno_a5"]

    def test_abbreviation_resolves_to_single_item(self, index):
        assert names(index.search_best("a4")) == ["cuaderno_a4"]


class TestCatalogItem:

    def test_price_wins_over_price_from(self):
        item = CatalogItem.from_raw("c", "s", "x", {"precio": 100, "precio_desde": 50})
        assert item.price == Decimal("100")
        assert item.price_from is None
        assert not item.is_price_from

    def test_price_from_only(self, index):
        item = index.find_by_exact_name("globos rojos")
        assert item.is_price_from
        assert item.unit_price == Decimal("800")

    def test_missing_stock_means_available(self):
        assert CatalogItem.from_raw("c", "s", "x", {"precio": 1}).in_stock
        assert not CatalogItem.from_raw("c", "s", "x", {"precio": 1, "stock": False}).in_stock

    def test_invalid_price_is_ignored(self):
        item = CatalogItem.from_raw("c", "s", "x", {"precio": "gratis"})
        assert item.price is None
        assert item.unit_price == Decimal("0")

    def test_english_keys(self):
        item = CatalogItem.from_raw("c", "s", "x", {
            "price": 10,
            "barcode": 123,
            "images": ["https://cdn.test/x.jpg"],
        })
        assert item.barcode == "123"
        assert item.images[0].url == "https://cdn.test/x.jpg"

    def test_nan_price_is_ignored(self):
        item = CatalogItem.from_raw("c", "s", "x", {"precio": "NaN", "precio_desde": "nan"})
        assert item.price is None
        assert item.price_from is None

    def test_non_text_values_become_text(self):
        item = CatalogItem.from_raw("c", "s", "resma", {
            "precio": 10,
            "unidad": 12,
            "descripcion": 500,
            "tiempo_entrega": 2,
        })
        assert item.unit == "12"
        assert item.description == "500"
        assert item.delivery_time == "2"

    def test_image_dimensions_are_tolerant(self):
        item = CatalogItem.from_raw("c", "s", "x", {"imagenes": [
            {"url": "https://cdn.test/x.jpg", "width": 800.5, "height": "alto", "format": "jpg"},
        ]})
        image = item.images[0]
        assert image.width == 800
        assert image.height is None
        assert image.format == "jpg"
