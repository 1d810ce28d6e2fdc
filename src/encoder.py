"""
Text <-> Morse symbol strings, and symbol strings -> timed on/off steps.

Symbol string format:
- '.' and '-' are symbols
- ' ' separates letters
- ' / ' separates words

Example: "SOS HI" -> "... --- ... / .... .."
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from timing import TimingModel


# International Morse Code (ITU letters, digits, punctuation)
MORSE_CODE: Dict[str, str] = {
    'A': '.-',    'B': '-...',  'C': '-.-.',  'D': '-..',   'E': '.',
    'F': '..-.',  'G': '--.',   'H': '....',  'I': '..',    'J': '.---',
    'K': '-.-',   'L': '.-..',  'M': '--',    'N': '-.',    'O': '---',
    'P': '.--.',  'Q': '--.-',  'R': '.-.',   'S': '...',   'T': '-',
    'U': '..-',   'V': '...-',  'W': '.--',   'X': '-..-',  'Y': '-.--',
    'Z': '--..',
    '0': '-----', '1': '.----', '2': '..---', '3': '...--', '4': '....-',
    '5': '.....', '6': '-....', '7': '--...', '8': '---..', '9': '----.',
    '.': '.-.-.-', ',': '--..--', '?': '..--..', "'": '.----.',
    '!': '-.-.--', '/': '-..-.', '(': '-.--.', ')': '-.--.-',
    '&': '.-...', ':': '---...', ';': '-.-.-.', '=': '-...-',
    '+': '.-.-.', '-': '-....-', '_': '..--.-', '"': '.-..-.',
    '$': '...-..-', '@': '.--.-.'
}

LETTER_SEPARATOR = ' '
WORD_SEPARATOR = ' / '


def _build_reverse(table: Dict[str, str]) -> Dict[str, str]:
    """
    Invert the alphabet, rejecting malformed tables.

    Raises:
        ValueError: if a pattern holds anything but '.'/'-', or two
            characters share a pattern
    """
    reverse: Dict[str, str] = {}
    for char, pattern in table.items():
        if not pattern or set(pattern) - {'.', '-'}:
            raise ValueError(f"Invalid Morse pattern for {char!r}: {pattern!r}")
        if pattern in reverse:
            raise ValueError(
                f"Duplicate Morse pattern {pattern!r} for {reverse[pattern]!r} and {char!r}"
            )
        reverse[pattern] = char
    return reverse


REVERSE_CODE: Dict[str, str] = _build_reverse(MORSE_CODE)


class UnsupportedCharacter(ValueError):
    """Raised by strict encoding when a character has no Morse pattern."""

    def __init__(self, char: str, position: int):
        super().__init__(f"Unsupported character {char!r} at position {position}")
        self.char = char
        self.position = position


@dataclass(frozen=True)
class TimedStep:
    """One emitter instruction: light on/off for duration_ms."""
    on: bool
    duration_ms: int


def total_duration_ms(steps: List[TimedStep]) -> int:
    """Total wall time of a step sequence."""
    return sum(step.duration_ms for step in steps)


class Encoder:
    """
    Maps text to symbol strings and symbol strings to timed steps.

    Unknown characters are skipped (partial alphabets are allowed);
    the skipped characters of the last encode() are kept in
    `last_skipped` for callers that want to warn about them.
    """

    def __init__(self, timing: Optional[TimingModel] = None,
                 table: Optional[Dict[str, str]] = None):
        self.timing = timing if timing is not None else TimingModel()
        self.table = table if table is not None else MORSE_CODE
        self.reverse = REVERSE_CODE if table is None else _build_reverse(self.table)
        self.last_skipped: List[str] = []

    def encode(self, text: str, strict: bool = False) -> str:
        """
        Encode text into a symbol string.

        Args:
            text: Message, any case
            strict: Raise UnsupportedCharacter instead of skipping

        Returns:
            Symbol string, e.g. "... --- ..."
        """
        self.last_skipped = []
        words: List[List[str]] = [[]]

        for position, char in enumerate(text.upper()):
            if char == ' ':
                if words[-1]:
                    words.append([])
                continue
            pattern = self.table.get(char)
            if pattern is None:
                if strict:
                    raise UnsupportedCharacter(char, position)
                self.last_skipped.append(char)
                continue
            words[-1].append(pattern)

        return WORD_SEPARATOR.join(
            LETTER_SEPARATOR.join(letters) for letters in words if letters
        )

    def to_timed_steps(self, symbols: str) -> List[TimedStep]:
        """
        Convert a symbol string to on/off steps at the current speed.

        A word boundary yields a single inter-word gap in place of the
        letter gap. There is no leading or trailing off step.
        """
        profile = self.timing.profile
        steps: List[TimedStep] = []

        words = [w.split() for w in symbols.split('/')]
        words = [w for w in words if w]

        for wi, letters in enumerate(words):
            if wi > 0:
                steps.append(TimedStep(False, profile.inter_word_gap))
            for li, letter in enumerate(letters):
                if li > 0:
                    steps.append(TimedStep(False, profile.inter_letter_gap))
                for si, symbol in enumerate(letter):
                    if si > 0:
                        steps.append(TimedStep(False, profile.intra_letter_gap))
                    if symbol == '.':
                        steps.append(TimedStep(True, profile.dot))
                    elif symbol == '-':
                        steps.append(TimedStep(True, profile.dash))
                    else:
                        raise ValueError(f"Invalid symbol {symbol!r} in {symbols!r}")

        return steps

    def validate(self, text: str) -> bool:
        """True iff every character is encodable or a space."""
        return all(char == ' ' or char in self.table for char in text.upper())

    def decode_exact(self, symbols: str) -> str:
        """Exact inverse lookup; unknown letters are dropped."""
        words = []
        for word in symbols.split('/'):
            letters = word.split()
            if letters:
                words.append(''.join(self.reverse.get(letter, '') for letter in letters))
        return ' '.join(words)
