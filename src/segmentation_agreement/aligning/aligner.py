"""
Pairwise alignment of segmented texts.

Each annotated text is turned into a character sequence in which every unit
is framed by reserved boundary markers. Two such sequences are aligned with
an edit-distance dynamic program whose costs forbid substitutions: a
mismatch costs ``2 * gap_weight + 1`` and is therefore always dominated by a
deletion plus an insertion.

Backtracking enumerates the co-optimal alignments. At boundary markers it
prefers aligning opening markers with each other (or with a gap) before it
branches, which keeps units aligned where an optimal solution allows it.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from segmentation_agreement.exceptions import OverlappingUnitsError, ReservedCharacterError
from segmentation_agreement.models import AnnotatedText

logger = logging.getLogger(__name__)

# Noncharacter code points, never part of interchanged text
OPEN_UNIT = "\uFDD0"
CLOSE_UNIT = "\uFDD1"
GAP = "\uFDD2"

# Backtracking moves as (consumed from A, consumed from B)
DIAGONAL = (1, 1)
GAP_IN_A = (0, 1)
GAP_IN_B = (1, 0)

DEFAULT_MAX_ALIGNMENTS = 10_000

# Linked path node: (char of A, char of B, node of the previous column)
_PathNode = Optional[Tuple[str, str, "_PathNode"]]


def insert_markers(
    text: AnnotatedText,
    open_char: str = OPEN_UNIT,
    close_char: str = CLOSE_UNIT,
    gap_char: str = GAP,
) -> str:
    """
    Frame every unit of an annotated text with boundary markers.

    Args:
        text: Annotated text whose units form a segmentation
        open_char: Marker inserted before each unit
        close_char: Marker inserted after each unit
        gap_char: Gap marker (only checked for absence)

    Returns:
        The raw text with markers inserted

    Raises:
        ReservedCharacterError: If a marker already occurs in the text
        OverlappingUnitsError: If two units overlap

    Example:
        >>> insert_markers(text, "{", "}", "-")   # "kaufmann" as kauf|mann
        '{kauf}{mann}'
    """
    for marker, meaning in (
        (open_char, "the start of a unit"),
        (close_char, "the end of a unit"),
        (gap_char, "a gap"),
    ):
        if marker in text.text:
            raise ReservedCharacterError(
                f"The character denoting {meaning} ({marker!r}) may not appear in the text"
            )

    chars = list(text.text)
    position = 0
    offset = 0

    for unit in text.units:
        if unit.begin + offset < position:
            raise OverlappingUnitsError(
                f"Unit [{unit.begin}, {unit.end}) overlaps a preceding unit"
            )

        chars.insert(unit.begin + offset, open_char)
        offset += 2
        position = unit.end + offset
        chars.insert(position - 1, close_char)

    return "".join(chars)


class PairwiseAligner:
    """
    Dynamic-programming aligner for two marker-augmented sequences.

    The cost matrix is built on construction; the co-optimal alignments are
    enumerated on first access with an explicit stack and stop after
    ``max_alignments`` results.

    Args:
        sequence_a: First sequence (usually from ``insert_markers``)
        sequence_b: Second sequence
        gap_weight: Cost of one insertion or deletion
        max_alignments: Cap on enumerated alignments (None for no cap)
        gap_char: Character written for gaps in aligned output
        open_char: Marker opening a unit
        close_char: Marker closing a unit

    Example:
        >>> aligner = PairwiseAligner("their", "there", gap_char="-")
        >>> len(aligner.alignments)
        1
        >>> aligner.insertions, aligner.deletions, aligner.substitutions
        (1, 1, 0)
    """

    def __init__(
        self,
        sequence_a: Sequence[str],
        sequence_b: Sequence[str],
        gap_weight: int = 1,
        max_alignments: Optional[int] = DEFAULT_MAX_ALIGNMENTS,
        gap_char: str = GAP,
        open_char: str = OPEN_UNIT,
        close_char: str = CLOSE_UNIT,
    ) -> None:
        if gap_weight < 1:
            raise ValueError(f"Gap weight must be at least 1, got {gap_weight}")
        if max_alignments is not None and max_alignments < 1:
            raise ValueError(f"max_alignments must be at least 1, got {max_alignments}")
        if len({gap_char, open_char, close_char}) != 3:
            raise ValueError("Gap, open and close markers must be distinct")

        self.sequence_a = "".join(sequence_a)
        self.sequence_b = "".join(sequence_b)
        self.gap_weight = gap_weight
        self.max_alignments = max_alignments
        self.gap_char = gap_char
        self.open_char = open_char
        self.close_char = close_char

        self.truncated = False
        self._matrix = self._fill_matrix()
        self._alignments: Optional[List[Tuple[str, str]]] = None

    @classmethod
    def from_texts(
        cls,
        text1: AnnotatedText,
        text2: AnnotatedText,
        gap_weight: int = 1,
        max_alignments: Optional[int] = DEFAULT_MAX_ALIGNMENTS,
    ) -> PairwiseAligner:
        """Align two annotated texts using the reserved marker characters."""
        return cls(
            insert_markers(text1),
            insert_markers(text2),
            gap_weight=gap_weight,
            max_alignments=max_alignments,
        )

    # =========================================================================
    # Cost matrix
    # =========================================================================

    def _fill_matrix(self) -> np.ndarray:
        a = np.array([ord(c) for c in self.sequence_a], dtype=np.int64)
        b = np.array([ord(c) for c in self.sequence_b], dtype=np.int64)
        gap = self.gap_weight
        mismatch = 2 * gap + 1

        steps = np.arange(len(b) + 1, dtype=np.int64) * gap
        matrix = np.empty((len(a) + 1, len(b) + 1), dtype=np.int64)
        matrix[0] = steps

        for i in range(1, len(a) + 1):
            previous = matrix[i - 1]
            weights = np.where(b == a[i - 1], 0, mismatch)

            best = np.empty(len(b) + 1, dtype=np.int64)
            best[0] = i * gap
            best[1:] = np.minimum(previous[:-1] + weights, previous[1:] + gap)

            # Gaps in A chain along the row: cell j may come from any k <= j
            matrix[i] = steps + np.minimum.accumulate(best - steps)

        return matrix

    @property
    def cost(self) -> int:
        """Optimal alignment cost."""
        return int(self._matrix[-1, -1])

    def _weight(self, char_a: str, char_b: str) -> int:
        return 0 if char_a == char_b else 2 * self.gap_weight + 1

    def _optimal_moves(self, i: int, j: int, cost: List[List[int]]) -> Tuple[bool, bool, bool]:
        here = cost[i][j]
        gap = self.gap_weight
        diagonal = (
            i > 0
            and j > 0
            and here
            == cost[i - 1][j - 1] + self._weight(self.sequence_a[i - 1], self.sequence_b[j - 1])
        )
        gap_in_a = j > 0 and here == cost[i][j - 1] + gap
        gap_in_b = i > 0 and here == cost[i - 1][j] + gap
        return diagonal, gap_in_a, gap_in_b

    # =========================================================================
    # Backtracking
    # =========================================================================

    def _next_moves(self, i: int, j: int, cost: List[List[int]]) -> List[Tuple[int, int]]:
        diagonal, gap_in_a, gap_in_b = self._optimal_moves(i, j, cost)
        char_a = self.sequence_a[i - 1] if i > 0 else None
        char_b = self.sequence_b[j - 1] if j > 0 else None
        markers = (self.open_char, self.close_char)

        if char_a in markers or char_b in markers:
            if diagonal and char_a == self.open_char:
                return [DIAGONAL]
            if i > 0 and j > 0 and char_a == self.open_char and gap_in_a:
                return [GAP_IN_A]
            if i > 0 and j > 0 and char_b == self.open_char and gap_in_b:
                return [GAP_IN_B]
            return [
                move
                for move, optimal in ((DIAGONAL, diagonal), (GAP_IN_A, gap_in_a), (GAP_IN_B, gap_in_b))
                if optimal
            ]

        for move, optimal in ((DIAGONAL, diagonal), (GAP_IN_A, gap_in_a), (GAP_IN_B, gap_in_b)):
            if optimal:
                return [move]
        return []

    @staticmethod
    def _materialize(node: _PathNode) -> Tuple[str, str]:
        # The node reached at cell (0, 0) holds the first column
        chars_a: List[str] = []
        chars_b: List[str] = []
        while node is not None:
            char_a, char_b, node = node
            chars_a.append(char_a)
            chars_b.append(char_b)
        return "".join(chars_a), "".join(chars_b)

    def _backtrack(self) -> List[Tuple[str, str]]:
        cost = self._matrix.tolist()
        results: List[Tuple[str, str]] = []
        stack: List[Tuple[int, int, _PathNode]] = [
            (len(self.sequence_a), len(self.sequence_b), None)
        ]

        while stack:
            i, j, node = stack.pop()

            if i == 0 and j == 0:
                results.append(self._materialize(node))
                if self.max_alignments is not None and len(results) >= self.max_alignments:
                    if stack:
                        self.truncated = True
                        logger.warning(
                            f"Stopped enumerating alignments after {len(results)} results; "
                            f"further co-optimal alignments were skipped"
                        )
                    break
                continue

            # Push in reverse so the preferred move is expanded first
            for di, dj in reversed(self._next_moves(i, j, cost)):
                char_a = self.sequence_a[i - 1] if di else self.gap_char
                char_b = self.sequence_b[j - 1] if dj else self.gap_char
                stack.append((i - di, j - dj, (char_a, char_b, node)))

        logger.debug(
            f"Aligned sequences of length {len(self.sequence_a)} and "
            f"{len(self.sequence_b)}: {len(results)} optimal alignment(s)"
        )
        return results

    @property
    def alignments(self) -> List[Tuple[str, str]]:
        """Co-optimal aligned sequence pairs, gaps written as ``gap_char``."""
        if self._alignments is None:
            self._alignments = self._backtrack()
        return self._alignments

    # =========================================================================
    # Edit statistics
    # =========================================================================

    def _greedy_path(self) -> List[Tuple[int, int]]:
        """One optimal path, preferring diagonal, then gap in A, then gap in B."""
        cost = self._matrix.tolist()
        i, j = len(self.sequence_a), len(self.sequence_b)
        moves: List[Tuple[int, int]] = []

        while i > 0 or j > 0:
            diagonal, gap_in_a, _ = self._optimal_moves(i, j, cost)
            if diagonal:
                move = DIAGONAL
            elif gap_in_a:
                move = GAP_IN_A
            else:
                move = GAP_IN_B
            moves.append(move)
            i, j = i - move[0], j - move[1]

        return moves

    @property
    def insertions(self) -> int:
        """Characters present only in sequence B along the greedy optimal path."""
        return sum(1 for move in self._greedy_path() if move == GAP_IN_A)

    @property
    def deletions(self) -> int:
        """Characters present only in sequence A along the greedy optimal path."""
        return sum(1 for move in self._greedy_path() if move == GAP_IN_B)

    @property
    def substitutions(self) -> int:
        """Always 0: the cost model never prefers a substitution."""
        return 0

    @property
    def length(self) -> int:
        """Length of the aligned sequences."""
        return len(self.alignments[0][0])
