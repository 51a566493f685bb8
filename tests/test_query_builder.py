"""Tests for Help Scout query string construction."""
import pytest

from helpscout_mcp.query_builder import (
    QueryFilter,
    build_query,
    build_search_query,
    quote_term,
    term_variations,
)


class TestBuildQuery:
    """Test structured criteria → query string translation."""

    def test_content_terms_are_or_combined(self):
        assert build_query(QueryFilter(content_terms=["a", "b"])) == '(body:"a" OR body:"b")'

    def test_empty_criteria_yields_none(self):
        assert build_query(QueryFilter()) is None

    def test_leading_at_sign_is_stripped_from_domain(self):
        with_at = build_query(QueryFilter(email_domain="@foo.com"))
        without_at = build_query(QueryFilter(email_domain="foo.com"))
        assert with_at == without_at == 'email:"foo.com"'

    def test_groups_emitted_in_fixed_order(self):
        """content, subject, email, domain, tags regardless of argument order."""
        criteria = QueryFilter(
            tags=["vip", "billing"],
            email_domain="acme.com",
            customer_email="jo@acme.com",
            subject_terms=["invoice"],
            content_terms=["refund"],
        )
        assert build_query(criteria) == (
            '(body:"refund") AND (subject:"invoice") AND email:"jo@acme.com" '
            'AND email:"acme.com" AND (tag:"vip" OR tag:"billing")'
        )

    def test_term_order_preserved_within_group(self):
        query = build_query(QueryFilter(tags=["zeta", "alpha", "mid"]))
        assert query == '(tag:"zeta" OR tag:"alpha" OR tag:"mid")'

    def test_quotes_in_terms_are_escaped(self):
        query = build_query(QueryFilter(content_terms=['say "hi"']))
        assert query == r'(body:"say \"hi\"")'

    def test_backslashes_are_escaped(self):
        assert quote_term("C:\\temp") == '"C:\\\\temp"'

    @pytest.mark.parametrize("terms", [[""], ["   "], ["", "  "]])
    def test_blank_terms_never_produce_empty_groups(self, terms):
        assert build_query(QueryFilter(content_terms=terms, tags=terms)) is None

    def test_blank_terms_are_dropped_from_mixed_groups(self):
        query = build_query(QueryFilter(subject_terms=["", "outage", " "]))
        assert query == '(subject:"outage")'

    def test_bare_at_sign_domain_is_ignored(self):
        assert build_query(QueryFilter(email_domain="@")) is None

    @pytest.mark.parametrize("term", ['"', '""', '"(', 'a"b"c', "\\", ""])
    def test_parentheses_balance_for_awkward_terms(self, term):
        query = build_query(QueryFilter(content_terms=[term, "ok"], tags=[term]))
        assert query is not None
        assert query.count("(") == query.count(")")
        # every unescaped quote is paired
        unescaped = query.replace("\\\\", "").replace('\\"', "")
        assert unescaped.count('"') % 2 == 0


class TestBuildSearchQuery:
    """Test the multi-location query used by comprehensive search."""

    def test_both_locations_per_term(self):
        assert build_search_query(["refund"], ["both"]) == '(body:"refund" OR subject:"refund")'

    def test_terms_are_or_joined(self):
        assert build_search_query(["a", "b"], ["body"]) == '(body:"a") OR (body:"b")'

    def test_subject_only(self):
        assert build_search_query(["outage"], ["subject"]) == '(subject:"outage")'

    def test_variations_expand_each_location(self):
        query = build_search_query(["e-mail"], ["subject"], include_variations=True)
        assert query == '(subject:"e-mail" OR subject:"e mail" OR subject:"email")'

    def test_blank_terms_only_yields_none(self):
        assert build_search_query(["", " "], ["both"]) is None


class TestTermVariations:
    def test_hyphenated_term(self):
        assert term_variations("e-mail") == ["e-mail", "e mail", "email"]

    def test_spaced_term(self):
        assert term_variations("log in") == ["log in", "log-in", "login"]

    def test_single_word_has_no_variants(self):
        assert term_variations("refund") == ["refund"]
