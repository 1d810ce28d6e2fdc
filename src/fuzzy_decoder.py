"""
Error-correcting Morse decoder.

Maps (possibly malformed) symbol patterns to the most probable characters:
- Exact lookup first (confidence 1.0)
- Known timing-error rewrites and single-edit brute force, ranked by similarity
- Normalized Levenshtein similarity against the whole alphabet

Ambiguous letters are rendered as AMBIGUOUS_CHAR, never raised.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from config import (
    FUZZY_MIN_CONFIDENCE, FUZZY_TOP_N, CONTEXT_MIN_CONFIDENCE,
    MAX_LETTER_SYMBOLS, AMBIGUOUS_CHAR
)
from encoder import REVERSE_CODE, LETTER_SEPARATOR, WORD_SEPARATOR


# Timing-error rewrites: (observed fragment, intended fragment)
CONTEXT_RULES: Tuple[Tuple[str, str], ...] = (
    ("-", ".."),   # two dots merged when the intra-letter gap was missed
    ("..", "-"),   # a dash split in two by a flicker frame
)

SYMBOLS = ('.', '-')


def levenshtein_distance(a: str, b: str) -> int:
    # Classic DP; patterns are at most a handful of symbols.
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        curr = [i]
        for j, cb in enumerate(b, start=1):
            ins = curr[j - 1] + 1
            dele = prev[j] + 1
            sub = prev[j - 1] + (0 if ca == cb else 1)
            curr.append(min(ins, dele, sub))
        prev = curr
    return prev[-1]


def similarity(a: str, b: str) -> float:
    """1 - editDistance / maxLength, in [0, 1]."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


@dataclass(frozen=True)
class LetterMatch:
    char: str
    confidence: float
    alternates: Tuple[Tuple[str, float], ...] = ()
    exact: bool = False


@dataclass
class DecodeResult:
    text: str
    confidence: float
    letters: List[LetterMatch] = field(default_factory=list)


class FuzzyDecoder:
    """
    Decodes symbol strings with graceful degradation.

    Nothing is precomputed: alphabet similarity is recomputed per call,
    which is cheap for ~50 patterns of at most 7 symbols.
    """

    def __init__(self, reverse_table: Optional[Dict[str, str]] = None):
        self.reverse = reverse_table if reverse_table is not None else REVERSE_CODE
        self.longest_pattern = max((len(p) for p in self.reverse), default=0)

    def decode_letter(self, pattern: str,
                      min_confidence: float = FUZZY_MIN_CONFIDENCE) -> LetterMatch:
        """
        Best character for a pattern, with up to FUZZY_TOP_N - 1 alternates.

        Returns confidence 1.0 only for an exact pattern match.
        """
        char = self.reverse.get(pattern)
        if char is not None:
            return LetterMatch(char, 1.0, exact=True)

        scored = [(c, similarity(pattern, p)) for p, c in self.reverse.items()]
        # sorted() is stable, so ties keep alphabet-table order
        ranked = sorted(
            ((c, s) for c, s in scored if s >= min_confidence),
            key=lambda item: -item[1]
        )[:FUZZY_TOP_N]

        if not ranked:
            return LetterMatch(AMBIGUOUS_CHAR, 0.0)

        best_char, best_conf = ranked[0]
        return LetterMatch(best_char, best_conf, alternates=tuple(ranked[1:]))

    def correct_with_context(self, pattern: str) -> Optional[LetterMatch]:
        """
        Repair a pattern damaged by a single timing error.

        Candidates come from the known rewrites (CONTEXT_RULES) and from
        every single insertion, deletion and substitution. Each is scored
        by its similarity to the observed pattern and accepted only at
        CONTEXT_MIN_CONFIDENCE or better; equal scores keep rewrites first.

        Returns:
            LetterMatch, or None if no acceptable repair exists
        """
        if pattern in self.reverse:
            return LetterMatch(self.reverse[pattern], 1.0, exact=True)

        candidates = self._rule_candidates(pattern)
        candidates += [c for c in self._edit_candidates(pattern) if c not in candidates]

        accepted = []
        for candidate in candidates:
            if candidate not in self.reverse:
                continue
            confidence = similarity(pattern, candidate)
            if confidence >= CONTEXT_MIN_CONFIDENCE:
                accepted.append((self.reverse[candidate], confidence))
        if not accepted:
            return None

        accepted.sort(key=lambda item: -item[1])
        best_char, best_conf = accepted[0]
        return LetterMatch(best_char, best_conf, alternates=tuple(accepted[1:FUZZY_TOP_N]))

    def _rule_candidates(self, pattern: str) -> List[str]:
        seen: List[str] = []
        for observed, intended in CONTEXT_RULES:
            start = pattern.find(observed)
            while start != -1:
                candidate = pattern[:start] + intended + pattern[start + len(observed):]
                if candidate and candidate not in seen:
                    seen.append(candidate)
                start = pattern.find(observed, start + 1)
        # flicker after the last symbol shows up as a trailing dot
        if len(pattern) > 1 and pattern.endswith('.') and pattern[:-1] not in seen:
            seen.append(pattern[:-1])
        return seen

    def _edit_candidates(self, pattern: str) -> List[str]:
        seen: List[str] = []

        def add(candidate):
            if candidate and candidate != pattern and candidate not in seen:
                seen.append(candidate)

        for i in range(len(pattern)):
            add(pattern[:i] + pattern[i + 1:])
        for i in range(len(pattern)):
            for symbol in SYMBOLS:
                add(pattern[:i] + symbol + pattern[i + 1:])
        for i in range(len(pattern) + 1):
            for symbol in SYMBOLS:
                add(pattern[:i] + symbol + pattern[i:])
        return seen

    def decode_sequence(self, sequence: str,
                        min_confidence: float = FUZZY_MIN_CONFIDENCE,
                        fuzzy: bool = True) -> DecodeResult:
        """
        Decode a full symbol string.

        Args:
            sequence: Letters separated by ' ', words by '/'
            min_confidence: Floor for fuzzy candidates
            fuzzy: False restricts decoding to exact matches

        Returns:
            DecodeResult; confidence is the mean per-letter confidence
            (0.0 for an empty sequence)
        """
        words = []
        letters: List[LetterMatch] = []

        for raw_word in sequence.split('/'):
            tokens = raw_word.split()
            if not tokens:
                continue
            chars = []
            for token in tokens:
                match = self._decode_token(token, min_confidence, fuzzy)
                letters.append(match)
                chars.append(match.char)
            words.append(''.join(chars))

        confidence = sum(m.confidence for m in letters) / len(letters) if letters else 0.0
        return DecodeResult(text=' '.join(words), confidence=confidence, letters=letters)

    def _decode_token(self, token: str, min_confidence: float, fuzzy: bool) -> LetterMatch:
        char = self.reverse.get(token)
        if char is not None:
            return LetterMatch(char, 1.0, exact=True)
        if not fuzzy:
            return LetterMatch(AMBIGUOUS_CHAR, 0.0)

        corrected = self.correct_with_context(token)
        if corrected is not None:
            return corrected
        return self.decode_letter(token, min_confidence)

    def cleanup(self, sequence: str, max_symbols: Optional[int] = None) -> str:
        """
        Normalize a raw sequence before decoding.

        - duplicate separators collapse
        - tokens that are not purely dots/dashes are dropped
        - letters longer than max_symbols are dropped as noise bursts
          (default: MAX_LETTER_SYMBOLS, raised to the longest pattern in
          the alphabet so every character stays reachable)
        """
        cap = max_symbols if max_symbols is not None else max(MAX_LETTER_SYMBOLS, self.longest_pattern)

        words = []
        for raw_word in sequence.split('/'):
            letters = [
                token for token in raw_word.split()
                if not set(token) - set(SYMBOLS) and len(token) <= cap
            ]
            if letters:
                words.append(LETTER_SEPARATOR.join(letters))
        return WORD_SEPARATOR.join(words)
