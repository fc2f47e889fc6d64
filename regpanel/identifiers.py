"""
identifiers.py - Deterministic identifier normalisation for register linkage.

Register extracts use inconsistent identifier schemes: the same person key can
arrive as an integer in one file and as a padded string in another. This module
provides the rule-based normalisation applied before exact-match lookup, and an
advisory near-match lookup used only to annotate unresolved identifiers.

Module: regpanel.identifiers
"""

__all__ = ['normalize_identifier', 'is_absent', 'NearMatchIndex']

import logging
import math
import re
from typing import Any, Iterable, List, Optional, Tuple

from rapidfuzz import process, fuzz
from unidecode import unidecode

logger = logging.getLogger(__name__)

SPACE_RE = re.compile(r"\s+")
LEADING_ZEROS_RE = re.compile(r"^0+(?=.)")


def is_absent(raw: Any) -> bool:
    """
    Return True when a raw identifier cell carries no identifier at all.

    None, NaN and blank strings are absent (e.g. a birth without a reported father).
    """
    if raw is None:
        return True
    if isinstance(raw, float) and math.isnan(raw):
        return True
    if isinstance(raw, str) and not raw.strip():
        return True
    return False


def normalize_identifier(raw: Any,
                         strip_whitespace: bool = True,
                         casefold: bool = False,
                         strip_leading_zeros: bool = False) -> Optional[str]:
    """
    Normalise a raw identifier into its comparison key.

    Args:
        raw: Raw identifier value (int, str, ...).
        strip_whitespace (bool): Remove surrounding whitespace and collapse inner runs.
        casefold (bool): Compare case-insensitively.
        strip_leading_zeros (bool): Treat '000123' and '123' as the same key.

    Returns:
        Optional[str]: The normalised key, or None if the identifier is absent.
    """
    if is_absent(raw):
        return None
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    key = unidecode(str(raw))
    if strip_whitespace:
        key = SPACE_RE.sub(" ", key.strip())
    if casefold:
        key = key.casefold()
    if strip_leading_zeros:
        key = LEADING_ZEROS_RE.sub("", key)
    return key


class NearMatchIndex:
    """
    Fuzzy lookup over canonical keys, used to suggest what an unresolved
    identifier may have been meant to be.

    Suggestions are advisory: the reconciler never resolves through this index.

    Attributes:
        threshold (int): Minimum similarity score (0-100) for a suggestion.
    """

    def __init__(self, keys: Iterable[str], threshold: int = 90):
        self.__keys: List[str] = sorted(set(keys))
        self.threshold: int = threshold

    def __len__(self) -> int:
        return len(self.__keys)

    def suggest(self, key: str) -> Optional[Tuple[str, float]]:
        """
        Find the closest canonical key to an unresolved key.

        Args:
            key (str): Normalised key that failed exact lookup.

        Returns:
            Optional[Tuple[str, float]]: (closest key, score) or None if nothing
            reaches the threshold.
        """
        if not key or not self.__keys:
            return None
        match = process.extractOne(key, self.__keys, scorer=fuzz.ratio, score_cutoff=self.threshold)
        if match is None:
            return None
        best, score, _ = match
        if best == key:
            return None
        logger.debug(f"Near match for '{key}': '{best}' ({score:.0f})")
        return best, score
