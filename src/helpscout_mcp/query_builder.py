"""Help Scout search query construction.

Translates structured filter criteria into Help Scout's boolean query dialect,
e.g. `(body:"refund" OR body:"chargeback") AND email:"acme.com"`.

Terms are always double-quoted. Backslashes and double quotes inside a term
are escaped, parentheses (the dialect's grouping syntax) become spaces, and
terms left blank are dropped, so every generated group is non-empty and
parentheses always balance.
"""
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

SEARCH_IN_BODY = "body"
SEARCH_IN_SUBJECT = "subject"
SEARCH_IN_BOTH = "both"


@dataclass(frozen=True)
class QueryFilter:
    """Filter groups for an advanced search.

    List groups are OR-combined internally; groups are AND-combined with each
    other in the order content, subject, email, domain, tags.
    """

    content_terms: Sequence[str] = field(default_factory=tuple)
    subject_terms: Sequence[str] = field(default_factory=tuple)
    tags: Sequence[str] = field(default_factory=tuple)
    customer_email: Optional[str] = None
    email_domain: Optional[str] = None


def quote_term(term: str) -> str:
    """Wrap a term in double quotes, escaping backslashes and quotes."""
    escaped = term.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def normalize_domain(domain: str) -> str:
    domain = sanitize_term(domain)
    if domain.startswith("@"):
        domain = domain[1:]
    return domain.strip()


def sanitize_term(term: Optional[str]) -> str:
    """Strip grouping parentheses and surrounding whitespace from a term."""
    if not term:
        return ""
    return term.replace("(", " ").replace(")", " ").strip()


def _clean(terms: Optional[Iterable[str]]) -> list[str]:
    cleaned = (sanitize_term(term) for term in (terms or ()))
    return [term for term in cleaned if term]


def _or_group(field_name: str, terms: Iterable[str]) -> Optional[str]:
    parts = [f"{field_name}:{quote_term(term)}" for term in _clean(terms)]
    if not parts:
        return None
    return f"({' OR '.join(parts)})"


def build_query(criteria: QueryFilter) -> Optional[str]:
    """Build a query string from criteria, or None when nothing restricts it."""
    query_parts: list[str] = []

    content = _or_group("body", criteria.content_terms)
    if content:
        query_parts.append(content)

    subject = _or_group("subject", criteria.subject_terms)
    if subject:
        query_parts.append(subject)

    email = sanitize_term(criteria.customer_email)
    if email:
        query_parts.append(f"email:{quote_term(email)}")

    # Help Scout matches a bare domain against every address at that domain
    if criteria.email_domain:
        domain = normalize_domain(criteria.email_domain)
        if domain:
            query_parts.append(f"email:{quote_term(domain)}")

    tags = _or_group("tag", criteria.tags)
    if tags:
        query_parts.append(tags)

    if not query_parts:
        return None
    return " AND ".join(query_parts)


def term_variations(term: str) -> list[str]:
    """Return the term plus its hyphen/space spelling variants.

    "e-mail" -> ["e-mail", "e mail", "email"]; "log in" -> ["log in",
    "log-in", "login"]. Order is stable and duplicates are removed.
    """
    variants = [term]
    if "-" in term:
        variants += [term.replace("-", " "), term.replace("-", "")]
    elif " " in term.strip():
        words = term.split()
        variants += ["-".join(words), "".join(words)]
    seen: set[str] = set()
    unique = []
    for variant in variants:
        key = variant.lower()
        if key not in seen:
            seen.add(key)
            unique.append(variant)
    return unique


def build_search_query(
    terms: Sequence[str],
    search_in: Sequence[str] = (SEARCH_IN_BOTH,),
    include_variations: bool = False,
) -> Optional[str]:
    """Build the multi-location query used by comprehensive search.

    Each term yields `(body:"t" OR subject:"t")` restricted to the requested
    locations; term groups are OR-joined.
    """
    in_body = SEARCH_IN_BODY in search_in or SEARCH_IN_BOTH in search_in
    in_subject = SEARCH_IN_SUBJECT in search_in or SEARCH_IN_BOTH in search_in

    queries: list[str] = []
    for term in _clean(terms):
        spellings = term_variations(term) if include_variations else [term]
        term_queries: list[str] = []
        for spelling in spellings:
            if in_body:
                term_queries.append(f"body:{quote_term(spelling)}")
            if in_subject:
                term_queries.append(f"subject:{quote_term(spelling)}")
        if term_queries:
            queries.append(f"({' OR '.join(term_queries)})")

    if not queries:
        return None
    return " OR ".join(queries)
