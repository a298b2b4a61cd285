from __future__ import annotations

from warranty_desk.tickets.search import build_search_tokens, normalize_search_token, normalize_text


def test_tokens_cover_name_words_digits_and_codes():
    tokens = build_search_tokens(
        customer_name="José da Silva",
        customer_document="123.456.789-09",
        customer_phone="(11) 98765-4321",
        sale_number="VD-5501",
        part_code="BX-10",
        part_ref="Ref. Ã12",
    )

    assert tokens == ["jose", "da", "silva", "12345678909", "11987654321", "5501", "bx 10", "ref a12"]


def test_tokens_are_deduplicated_and_skip_empty_values():
    tokens = build_search_tokens(customer_name="Ana Ana", customer_document="", sale_number="---")

    assert tokens == ["ana"]


def test_normalize_text_strips_accents_and_punctuation():
    assert normalize_text("  Açaí, Ônibus!! ") == "acai onibus"
    assert normalize_text(None) == ""


def test_query_reduces_to_first_token():
    assert normalize_search_token("JOSÉ Silva") == "jose"
    assert normalize_search_token("123.456.789-09") == "123"
    assert normalize_search_token("   ") == ""


def test_digit_query_matches_formatted_document():
    tokens = build_search_tokens(customer_document="123.456.789-09")

    assert normalize_search_token("12345678909") in tokens
