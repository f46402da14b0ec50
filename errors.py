"""
Error types for the phoneme guessing game.
"""


class PhonemeGameError(Exception):
    """Base class for all game errors."""


class DataLoadError(PhonemeGameError):
    """Dictionary or frequency data could not be loaded. Fatal at startup."""


class GuessError(PhonemeGameError):
    """A submitted guess was rejected. The round carries on."""

    def __init__(self, word: str, message: str):
        super().__init__(message)
        self.word = word
        self.message = message


class UnknownWordError(GuessError):
    """The guessed word has no pronunciation in the dictionary."""

    def __init__(self, word: str):
        super().__init__(word, "Word not in dictionary")


class WrongLengthError(GuessError):
    """The guessed word does not have exactly five phonemes."""

    def __init__(self, word: str, length: int):
        super().__init__(word, f"Guess must have 5 sounds (not {length})")
        self.length = length
