"""
Tests de normalización y extracción de cantidades
"""
import pytest

from gestionbot.services.text_normalizer import (
    clean_product_query,
    collapse_repeats,
    extract_number,
    extract_quantity,
    format_display_name,
    normalize,
)


class TestNormalize:

    def test_strips_accents_and_lowercases(self):
        assert normalize("¿Tenés Cuadernos A4?") == "tenes cuadernos a4"

    def test_enie_becomes_n(self):
        assert normalize("Muñeco") == "muneco"

    def test_separators_become_spaces(self):
        assert normalize("cuaderno_rayado-a4/tapa") == "cuaderno rayado a4 tapa"

    def test_collapses_whitespace(self):
        assert normalize("  hola    che  ") == "hola che"

    def test_empty_and_none(self):
        assert normalize("") == ""
        assert normalize(None) == ""

    @pytest.mark.parametrize("text", [
        "¿Tenés Cuadernos A4?",
        "LÁPICES de COLORES!!!",
        "quiero   2 globos_rojos",
        "Ñandú",
    ])
    def test_idempotent(self, text):
        once = normalize(text)
        assert normalize(once) == once


class TestHelpers:

    def test_format_display_name(self):
        assert format_display_name("cuaderno_rayado_a4") == "Cuaderno Rayado A4"

    def test_collapse_repeats(self):
        assert collapse_repeats("siiiii") == "sii"
        assert collapse_repeats("llave") == "llave"

    def test_extract_number(self):
        assert extract_number("quitar 3") == 3
        assert extract_number("quitar el tercero") is None


class TestExtractQuantity:

    def test_digits(self):
        assert extract_quantity("quiero 2 cuadernos") == 2

    def test_number_words(self):
        assert extract_quantity("dame tres lapiceras") == 3

    def test_digits_inside_product_name_are_ignored(self):
        assert extract_quantity("cuaderno a4") == 1

    def test_defaults_to_one(self):
        assert extract_quantity("globos") == 1

    def test_zero_is_one(self):
        assert extract_quantity("0 globos") == 1


class TestCleanProductQuery:

    def test_removes_fillers_and_quantity(self):
        assert clean_product_query("quiero 2 cuadernos por favor") == "cuadernos"

    def test_keeps_product_codes(self):
        assert clean_product_query("quiero 2 cuadernos a4") == "cuadernos a4"

    def test_only_fillers(self):
        assert clean_product_query("hay stock?") == ""
