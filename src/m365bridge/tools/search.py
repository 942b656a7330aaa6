"""Weighted fuzzy search over the command catalog.

Each command is matched on two fields, its name and its description.
A query is split into terms and every term is compared against the
field on its own, so rearranged words ("list sharepoint") and partial
words ("sharep") still match:

1. A term found verbatim inside the field scores 0 (perfect)
2. Otherwise it scores 1 - the best difflib ratio against a field token
3. The field's distance is the mean over all terms

A field whose distance is within the threshold counts as matched, and
matched fields are combined into one score where heavier fields pull
the score down more. Lower scores rank first.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from difflib import SequenceMatcher

from m365bridge.config import SearchConfig

from .base import CatalogUnavailableError, CommandDescriptor, SearchMatch
from .catalog import CommandCatalog, error_payload

logger = logging.getLogger(__name__)

# Floor for a perfect field distance so weights still order exact matches
EPSILON = 1e-3

_TOKEN_PATTERN = re.compile(r"[a-z0-9]+")


def tokenize(text: str) -> list[str]:
    """Split text into lowercase alphanumeric tokens."""
    return _TOKEN_PATTERN.findall(text.lower())


def clamp_limit(limit: int | None, settings: SearchConfig | None = None) -> int:
    """Apply the default and clamp a caller-provided limit to [1, max_limit]."""
    settings = settings or SearchConfig()
    if limit is None:
        limit = settings.default_limit
    return max(1, min(limit, settings.max_limit))


@dataclass(frozen=True)
class _IndexedField:
    """Pre-normalized text of one searchable field."""

    name: str
    weight: float
    text: str
    tokens: tuple[str, ...]


def _term_distance(term: str, indexed: _IndexedField) -> float:
    """Distance of one query term from a field (0 = found verbatim)."""
    if term in indexed.text:
        return 0.0
    if not indexed.tokens:
        return 1.0
    best = max(SequenceMatcher(None, term, token).ratio() for token in indexed.tokens)
    return 1.0 - best


def field_distance(terms: list[str], indexed: _IndexedField) -> float:
    """Mean distance of all query terms from a field."""
    if not terms:
        return 1.0
    return sum(_term_distance(term, indexed) for term in terms) / len(terms)


class CommandIndex:
    """Read-only fuzzy index over one catalog snapshot.

    Example:
        index = CommandIndex(snapshot.commands)
        for match in index.search("sharepoint list", limit=5):
            print(match.command.name, match.score)
    """

    def __init__(
        self,
        commands: Iterable[CommandDescriptor],
        settings: SearchConfig | None = None,
    ) -> None:
        self._settings = settings or SearchConfig()
        self._records: list[tuple[CommandDescriptor, tuple[_IndexedField, ...]]] = []
        for command in commands:
            self._records.append((command, self._index_fields(command)))

    def __len__(self) -> int:
        return len(self._records)

    @property
    def settings(self) -> SearchConfig:
        """Search tuning in effect."""
        return self._settings

    def _index_fields(self, command: CommandDescriptor) -> tuple[_IndexedField, ...]:
        values = (
            ("name", self._settings.name_weight, command.name),
            ("description", self._settings.description_weight, command.description),
        )
        return tuple(
            _IndexedField(
                name=name,
                weight=weight,
                text=text.lower(),
                tokens=tuple(tokenize(text)),
            )
            for name, weight, text in values
        )

    def query_terms(self, query: str) -> list[str]:
        """Split a query into terms long enough to be matched."""
        return [term for term in tokenize(query) if len(term) >= self._settings.min_match_length]

    def search(self, query: str, limit: int | None = None) -> list[SearchMatch]:
        """Rank commands against a free-text query.

        Args:
            query: Free-text query (e.g., "sharepoint list")
            limit: Maximum number of matches (default from settings)

        Returns:
            Matches ordered best first; ties keep catalog order
        """
        limit = self._settings.default_limit if limit is None else limit
        terms = self.query_terms(query)
        if not terms or limit < 1:
            return []

        matches: list[SearchMatch] = []
        for command, fields in self._records:
            score = 1.0
            matched: list[str] = []
            for indexed in fields:
                distance = field_distance(terms, indexed)
                if distance <= self._settings.threshold:
                    score *= max(distance, EPSILON) ** indexed.weight
                    matched.append(indexed.name)
            if matched:
                matches.append(SearchMatch(command=command, score=score, matched_fields=matched))

        # sorted() is stable, so equal scores keep catalog order
        matches = sorted(matches, key=lambda match: match.score)
        logger.debug("Query %r matched %d of %d commands", query, len(matches), len(self))
        return matches[:limit]


async def search_commands(
    catalog: CommandCatalog,
    query: str,
    limit: int | None = None,
    settings: SearchConfig | None = None,
) -> list[dict[str, str | None]]:
    """Search the catalog, rebuilding the index from a fresh snapshot.

    Args:
        catalog: Catalog to read commands from
        query: Free-text query
        limit: Requested result count, clamped to [1, max_limit]
        settings: Search tuning

    Returns:
        Ranked {name, description, docs} payloads, or the catalog's error
        payload if the catalog could not be loaded
    """
    settings = settings or SearchConfig()
    try:
        snapshot = await catalog.snapshot()
    except CatalogUnavailableError as e:
        logger.error("An error occurred: %s", e)
        return error_payload(e)

    index = CommandIndex(snapshot.commands, settings)
    matches = index.search(query, clamp_limit(limit, settings))
    return [match.command.to_payload() for match in matches]
