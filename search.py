"""
Product search: query admission and relevance ranking over the catalog.

- is_admissible(query, catalog) -> bool
- search(query, catalog) -> ranked products
- run_search(raw_query, catalog) -> what the search box shows
"""
import re
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

import config
from logger import get_logger
from schemas import SearchableProduct

logger = get_logger("search")

MIN_VALIDATED_LENGTH = 3
GIBBERISH_MIN_WORD_LENGTH = 9
MIN_SCORE = 10
MAX_RESULTS = 15

VOCABULARY: Dict[str, FrozenSet[str]] = {
    "categories": frozenset([
        "ring", "rings", "necklace", "necklaces", "earring", "earrings", "bracelet", "bracelets",
        "pendant", "pendants", "brooch", "brooches", "cuff", "cuffs",
    ]),
    "materials": frozenset([
        "gold", "18k", "yellow", "white", "rose", "silver", "platinum", "turquoise", "persian",
        "diamond", "diamonds", "stone", "stones",
    ]),
    "collections": frozenset(["kaleidoscope", "heritage", "talisman", "forever", "bespoke", "calligraphy"]),
    "styles": frozenset([
        "statement", "minimalist", "classic", "modern", "traditional", "luxury", "elegant", "bold",
        "delicate", "vintage", "contemporary",
    ]),
    "occasions": frozenset(["wedding", "bridal", "engagement", "anniversary", "gift", "birthday", "special"]),
    "terms": frozenset([
        "chain", "setting", "prong", "bezel", "clasp", "band", "charm", "stud", "drop", "hoop",
        "tennis", "eternity", "solitaire", "cluster",
    ]),
}

ALL_TERMS: Tuple[str, ...] = tuple(sorted(set().union(*VOCABULARY.values())))

DENYLIST: Tuple[str, ...] = (
    "sex", "sexual", "porn", "xxx", "adult", "nude", "naked", "fuck", "shit", "damn", "hell",
    "bitch", "ass", "dick", "cock", "pussy", "tits", "boobs", "drug", "drugs",
)

def active_denylist() -> Tuple[str, ...]:
    """Built-in denied terms plus any the deployment adds through SEARCH_EXTRA_DENIED_TERMS."""
    return DENYLIST + tuple(config.SEARCH_EXTRA_DENIED_TERMS)


CONSONANT_RUN = re.compile(r"[bcdfghjklmnpqrstvwxyz]{5,}", re.IGNORECASE)
REPEATED_CHAR = re.compile(r"(.)\1{3,}")
KEY_CLUSTER = re.compile(r"[asd]{3,}|[qwe]{3,}|[zxc]{3,}", re.IGNORECASE)


def split_words(text: str) -> List[str]:
    return text.lower().split()


def looks_like_gibberish(word: str) -> bool:
    """Only long words are judged; short ones are too noisy to call."""
    if len(word) < GIBBERISH_MIN_WORD_LENGTH:
        return False
    return bool(CONSONANT_RUN.search(word) or REPEATED_CHAR.search(word) or KEY_CLUSTER.search(word))


def contains_denied_term(query: str, denylist: Iterable[str] = DENYLIST) -> bool:
    low = query.lower()
    return any(term in low for term in denylist)


def is_vocabulary_hit(word: str, terms: Iterable[str] = ALL_TERMS) -> bool:
    terms = tuple(terms)
    if word in terms:
        return True
    if len(word) < 3:
        return False
    for term in terms:
        if len(term) < 4:
            continue
        if term.startswith(word):
            return True
        if len(word) >= 4 and term.startswith(word[:3]):
            return True
    return False


def matches_product_name(word: str, name: str) -> bool:
    if len(word) < 3:
        return False
    for name_word in split_words(name):
        if name_word == word:
            return True
        if len(word) >= 4 and len(name_word) >= 4 and name_word.startswith(word):
            return True
    return False


def is_admissible(
    query: str,
    catalog: Iterable[SearchableProduct],
    denylist: Optional[Iterable[str]] = None,
) -> bool:
    if len(query) < MIN_VALIDATED_LENGTH:
        return True

    words = split_words(query)
    if any(looks_like_gibberish(w) for w in words):
        logger.info(f"Rejected query with random pattern: {query!r}")
        return False

    if contains_denied_term(query, active_denylist() if denylist is None else denylist):
        logger.info("Rejected query containing a denied term")
        return False

    if any(is_vocabulary_hit(w) for w in words):
        return True

    return any(
        matches_product_name(w, product.name)
        for product in catalog
        for w in words
    )


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit cost for insertion, deletion and substitution."""
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j - 1], previous[j], current[j - 1]))
        previous = current
    return previous[-1]


def score_product(query: str, words: List[str], product: SearchableProduct) -> int:
    score = 0

    if query in product.name.lower():
        score += 100
    if query in product.description.lower():
        score += 80
    if query in product.collection.lower():
        score += 70

    for tag in product.tags:
        if query in tag.lower():
            score += 60

    for key in ("material", "stone"):
        value = product.specifications.get(key)
        if value and query in value.lower():
            score += 50

    search_words = product.search_text.split()
    for word in words:
        if len(word) < 3:
            continue
        for sw in search_words:
            if sw == word:
                score += 30
            elif word in sw:
                score += 15
            elif sw in word and len(sw) >= 3:
                score += 10

    if score == 0:
        # single-typo tolerance
        for word in words:
            if len(word) < 4:
                continue
            for sw in search_words:
                if abs(len(word) - len(sw)) <= 1 and levenshtein(word, sw) == 1:
                    score += 5

    return score


def search(query: str, catalog: Iterable[SearchableProduct]) -> List[SearchableProduct]:
    query = query.strip().lower()
    if not query:
        return []
    words = split_words(query)

    scored = []
    for product in catalog:
        score = score_product(query, words, product)
        if score >= MIN_SCORE:
            scored.append((score, product))

    # sorted() is stable, equal scores keep catalog order
    scored = sorted(scored, key=lambda item: -item[0])
    return [product for _, product in scored[:MAX_RESULTS]]


def run_search(raw_query: str, catalog: Iterable[SearchableProduct]) -> List[SearchableProduct]:
    query = (raw_query or "").strip().lower()
    if not query:
        return []
    products = list(catalog)
    if not is_admissible(query, products):
        logger.info(f"Blocking invalid search: {query!r}")
        return []
    results = search(query, products)
    logger.debug(f"Search results for {query!r}: {len(results)}")
    return results
