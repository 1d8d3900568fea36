"""Transcript reconciliation.

Providers stream transcripts as overlapping fragments: true deltas, repeated text, partial-word overlaps, and
occasionally a revision of everything said so far. `append_transcript_segment` decides how each fragment combines with
the running text, trying these rules in order:

1. Empty fragment: no change.
2. Empty aggregate: the fragment becomes the aggregate.
3. Identical fragment: no change.
4. Fragment extends the aggregate: append the suffix.
5. Aggregate already ends with or contains the fragment: no change.
6. Rewrite mode only: a fragment that revises the aggregate replaces it.
7. Longest suffix of the aggregate that prefixes the fragment: append the remainder.
8. Otherwise: join with a single space, unless either side already has whitespace at the seam.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptUpdate:
    """Result of merging one fragment.

    Attributes:
        next: The new aggregate.
        delta: Text appended to the previous aggregate; empty for no-ops and rewrites.
        rewrite: Whether the aggregate was replaced wholesale.
    """

    next: str
    delta: str = ""
    rewrite: bool = False


def _common_prefix_length(a: str, b: str) -> int:
    length = 0
    for left, right in zip(a, b):
        if left != right:
            break
        length += 1
    return length


def _common_suffix_length(a: str, b: str) -> int:
    return _common_prefix_length(a[::-1], b[::-1])


def should_rewrite_transcript(previous: str, incoming: str) -> bool:
    """Decide whether an incoming fragment is a provider revision of the aggregate.

    Comparison is case-insensitive on trimmed text. A revision either contains the aggregate somewhere other than at
    its start, is contained in it, or shares a partial prefix or suffix with it.
    """
    prior = previous.strip().lower()
    candidate = incoming.strip().lower()

    if not prior or not candidate or prior == candidate:
        return False

    if prior in candidate and not candidate.startswith(prior):
        return True

    if candidate in prior:
        return True

    if 0 < _common_prefix_length(prior, candidate) < len(prior):
        return True

    return 0 < _common_suffix_length(prior, candidate) < len(prior)


def append_transcript_segment(previous: str, incoming: str, allow_rewrite: bool = False) -> TranscriptUpdate:
    """Merge an incoming fragment into the aggregate.

    Pure function; inputs are never modified.

    Args:
        previous: Current aggregate.
        incoming: Incoming fragment.
        allow_rewrite: Treat revisions as replacements. Used for completed transcripts, never for deltas.

    Returns:
        The merged transcript.
    """
    prior = previous if isinstance(previous, str) else ""
    fragment = incoming if isinstance(incoming, str) else ""

    if not fragment:
        return TranscriptUpdate(prior)

    if not prior:
        return TranscriptUpdate(fragment, fragment)

    if fragment == prior:
        return TranscriptUpdate(prior)

    if fragment.startswith(prior):
        return TranscriptUpdate(fragment, fragment[len(prior) :])

    if prior.endswith(fragment) or fragment in prior:
        return TranscriptUpdate(prior)

    if allow_rewrite and should_rewrite_transcript(prior, fragment):
        return TranscriptUpdate(fragment, rewrite=True)

    for overlap in range(min(len(prior), len(fragment)), 0, -1):
        if fragment.startswith(prior[-overlap:]):
            delta = fragment[overlap:]
            return TranscriptUpdate(prior + delta, delta)

    joiner = "" if prior[-1:].isspace() or fragment[:1].isspace() else " "
    delta = f"{joiner}{fragment}"
    return TranscriptUpdate(prior + delta, delta)


class TranscriptReconciler:
    """Running transcript for one recording session."""

    def __init__(self) -> None:
        """Start with an empty aggregate."""
        self._aggregated = ""

    @property
    def text(self) -> str:
        """Current aggregate."""
        return self._aggregated

    def append(self, fragment: str, allow_rewrite: bool = False) -> TranscriptUpdate:
        """Merge a fragment into the aggregate and keep the result."""
        update = append_transcript_segment(self._aggregated, fragment, allow_rewrite=allow_rewrite)
        if update.rewrite:
            logger.debug("length=<%d> | transcript rewritten by provider revision", len(update.next))

        self._aggregated = update.next
        return update

    def replace(self, text: str) -> None:
        """Replace the aggregate with an authoritative final transcript."""
        self._aggregated = text

    def reset(self) -> None:
        """Clear the aggregate for a new session."""
        self._aggregated = ""
