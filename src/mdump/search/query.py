"""Query tokenization, fuzzy expansion and FTS5 MATCH compilation."""

import re
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass, field

# Mirrors the unicode61 tokenizer: letters and digits are token characters,
# everything else (including "_") separates tokens.
_TOKEN_PATTERN = re.compile(r"[^\W_]+")

MAX_FUZZY_DISTANCE = 6


def normalize(text: str) -> str:
    """Lowercase text and strip diacritics the way the index tokenizer does."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def tokenize(text: str) -> list[str]:
    """Split text into normalized index terms.

    Args:
        text: Raw document or query text.

    Returns:
        Terms in order of appearance; the list index is the token position.
    """
    return _TOKEN_PATTERN.findall(normalize(text))


def levenshtein_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1
    if not s2:
        return len(s1)

    prev_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        curr_row = [i + 1]
        for j, c2 in enumerate(s2):
            curr_row.append(
                min(
                    prev_row[j + 1] + 1,
                    curr_row[j] + 1,
                    prev_row[j] + (c1 != c2),
                )
            )
        prev_row = curr_row

    return prev_row[-1]


def fuzzy_distance(term: str, fuzziness: float) -> int:
    """Maximum edit distance tolerated for a query term.

    Args:
        term: Normalized query term.
        fuzziness: Fraction of the term length allowed as edits.

    Returns:
        Edit distance budget, capped at MAX_FUZZY_DISTANCE.
    """
    if fuzziness <= 0:
        return 0
    return min(MAX_FUZZY_DISTANCE, round(len(term) * fuzziness))


@dataclass
class TermClause:
    """Everything a single query token is allowed to match.

    Attributes:
        token: The normalized query token, matched as a prefix.
        variants: Vocabulary terms within the fuzzy distance budget.
    """

    token: str
    variants: set[str] = field(default_factory=set)

    def matches(self, term: str) -> bool:
        """Check whether an indexed term satisfies this clause."""
        return term.startswith(self.token) or term in self.variants


@dataclass
class CompiledQuery:
    """A user query turned into an FTS5 MATCH expression.

    Attributes:
        expression: FTS5 MATCH string.
        clauses: Per-token clauses, used to locate matched terms.
    """

    expression: str
    clauses: list[TermClause]

    def matches(self, term: str) -> bool:
        """Check whether an indexed term satisfies any clause."""
        return any(clause.matches(term) for clause in self.clauses)


def quote_term(term: str) -> str:
    """Quote a term as an FTS5 string literal."""
    return '"' + term.replace('"', '""') + '"'


def expand_fuzzy(token: str, vocabulary: Iterable[str], max_distance: int) -> set[str]:
    """Find vocabulary terms within an edit distance of a token.

    Args:
        token: Normalized query token.
        vocabulary: Candidate index terms.
        max_distance: Largest accepted Levenshtein distance.

    Returns:
        Matching terms other than the token itself.
    """
    if max_distance <= 0:
        return set()

    variants: set[str] = set()
    for term in vocabulary:
        if term == token or abs(len(term) - len(token)) > max_distance:
            continue
        if levenshtein_distance(term, token) <= max_distance:
            variants.add(term)
    return variants


def compile_query(
    raw: str,
    vocabulary: Iterable[str] = (),
    fuzziness: float = 0.0,
) -> CompiledQuery | None:
    """Compile user input into a safe FTS5 MATCH expression.

    Every token matches as a prefix; when fuzziness allows it, nearby
    vocabulary terms are OR-ed in as well. Token clauses are OR-ed
    together so partial matches still rank. Returns None when the
    input holds no searchable characters.

    Args:
        raw: Raw user query string.
        vocabulary: Index terms used for fuzzy expansion.
        fuzziness: Fraction of each token's length allowed as edits.

    Returns:
        The compiled query, or None if unusable.
    """
    tokens = list(dict.fromkeys(tokenize(raw)))
    if not tokens:
        return None

    budgets = {token: fuzzy_distance(token, fuzziness) for token in tokens}
    terms = list(vocabulary) if any(budgets.values()) else []

    clauses: list[TermClause] = []
    parts: list[str] = []
    for token in tokens:
        clause = TermClause(token=token)
        clause.variants = expand_fuzzy(token, terms, budgets[token])
        clauses.append(clause)

        alternatives = [f"{quote_term(token)}*"]
        alternatives.extend(quote_term(v) for v in sorted(clause.variants))
        if len(alternatives) == 1:
            parts.append(alternatives[0])
        else:
            parts.append("(" + " OR ".join(alternatives) + ")")

    return CompiledQuery(expression=" OR ".join(parts), clauses=clauses)


def match_positions(text: str, query: CompiledQuery) -> dict[str, list[int]]:
    """Locate the terms of a field that satisfy a compiled query.

    Args:
        text: Stored field text.
        query: Compiled query to test terms against.

    Returns:
        Mapping of matched term to its token positions, in first-seen order.
    """
    found: dict[str, list[int]] = {}
    for position, term in enumerate(tokenize(text)):
        if term in found:
            found[term].append(position)
        elif query.matches(term):
            found[term] = [position]
    return found
