"""
Round state and the game controller.

A GameController owns one RoundState at a time and is the only thing that
mutates it. Phases run loading -> playing <-> revealing -> over, and a new
round is the only way out of over.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from errors import DataLoadError, GuessError, UnknownWordError, WrongLengthError
from game_logic import apply_guess, evaluate_guess, is_solved, new_status_map
from lexicon import WORD_LENGTH, Lexicon

logger = logging.getLogger(__name__)

MAX_GUESSES = 6

LOADING = "loading"
PLAYING = "playing"
REVEALING = "revealing"
OVER = "over"

WON = "won"
LOST = "lost"


@dataclass(frozen=True)
class GuessRecord:
    word: str
    phonemes: Tuple[str, ...]
    feedback: Tuple[str, ...]

    def to_dict(self) -> dict:
        return {"word": self.word, "phonemes": list(self.phonemes), "feedback": list(self.feedback)}


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of submit_guess: either an accepted guess or a rejection."""
    guess: Optional[GuessRecord] = None
    error: Optional[GuessError] = None

    @property
    def accepted(self) -> bool:
        return self.error is None


@dataclass
class RoundState:
    target_word: str = ""
    target_phonemes: Tuple[str, ...] = ()
    guesses: List[GuessRecord] = field(default_factory=list)
    current_guess: str = ""
    current_row: int = 0
    phase: str = LOADING
    outcome: Optional[str] = None


class GameController:
    """Drives rounds against a loaded Lexicon."""

    def __init__(self, lexicon: Lexicon, rng: Optional[random.Random] = None):
        self.lexicon = lexicon
        self.rng = rng or random.Random()
        self.state = RoundState()
        self.status = new_status_map(lexicon.alphabet)

    @property
    def phase(self) -> str:
        return self.state.phase

    @property
    def target(self) -> Optional[str]:
        """The target word, disclosed only once the round is over."""
        if self.state.phase != OVER:
            return None
        return self.state.target_word

    def start_round(self):
        """Pick a new target and reset everything for a fresh round."""
        if not self.lexicon.candidates:
            raise DataLoadError("Cannot start a round without candidate words")

        target = self.rng.choice(self.lexicon.candidates)
        self.state = RoundState(
            target_word=target,
            target_phonemes=self.lexicon.lookup(target),
            phase=PLAYING,
        )
        self.status = new_status_map(self.lexicon.alphabet)
        logger.debug("New round started. Target: %s /%s/", target, " ".join(self.state.target_phonemes))

    def handle_character(self, ch):
        if self.state.phase != PLAYING:
            return False
        if len(ch) != 1 or not ch.isascii() or not ch.isalpha():
            return False
        self.state.current_guess += ch.upper()
        return True

    def handle_backspace(self):
        if self.state.phase != PLAYING:
            return False
        self.state.current_guess = self.state.current_guess[:-1]
        return True

    def handle_restart(self):
        if self.state.phase != OVER:
            return False
        self.start_round()
        return True

    def submit_guess(self, text: Optional[str] = None) -> Optional[SubmitResult]:
        """
        Validate and evaluate a guess.

        Rejections come back inside the result and leave the phase alone.
        An accepted guess moves the round to revealing; the win/loss call
        waits for finalize_row().

        Args:
            text: Guess text. Defaults to the in-progress guess.

        Returns:
            None when there is nothing to submit, otherwise a SubmitResult
        """
        state = self.state
        if state.phase != PLAYING:
            return None
        word = (state.current_guess if text is None else text).strip().upper()
        if not word:
            return None

        phonemes = self.lexicon.lookup(word)
        if phonemes is None:
            state.current_guess = ""
            return SubmitResult(error=UnknownWordError(word))
        if len(phonemes) != WORD_LENGTH:
            state.current_guess = ""
            return SubmitResult(error=WrongLengthError(word, len(phonemes)))

        state.phase = REVEALING
        feedback = evaluate_guess(phonemes, state.target_phonemes)
        record = GuessRecord(word=word, phonemes=phonemes, feedback=feedback)
        state.guesses.append(record)
        apply_guess(self.status, phonemes, feedback)
        state.current_guess = ""
        return SubmitResult(guess=record)

    def finalize_row(self) -> Optional[str]:
        """Decide win, loss or continue for the row just revealed."""
        state = self.state
        if state.phase != REVEALING:
            return None

        last = state.guesses[-1]
        if is_solved(last.feedback):
            state.phase = OVER
            state.outcome = WON
        elif len(state.guesses) >= MAX_GUESSES:
            state.phase = OVER
            state.outcome = LOST
        else:
            state.current_row += 1
            state.phase = PLAYING
        return state.phase

    def handle_key(self, key):
        """
        Dispatch a key press: Enter, Backspace or a single letter.

        Returns the SubmitResult for a submission, otherwise whether the
        key changed anything.
        """
        if self.state.phase == OVER and key == "Enter":
            return self.handle_restart()
        if self.state.phase != PLAYING:
            return False
        if key == "Enter":
            return self.submit_guess()
        if key == "Backspace":
            return self.handle_backspace()
        return self.handle_character(key)

    def outcome_message(self):
        if self.state.phase != OVER:
            return None
        if self.state.outcome == WON:
            return {"text": "You won!", "subtext": "Press Enter to play again"}
        pronunciation = " ".join(self.state.target_phonemes)
        return {
            "text": "Out of guesses!",
            "subtext": f"The word was: {self.state.target_word}\n/{pronunciation}/\nPress Enter to play again",
        }

    def snapshot(self) -> dict:
        """Everything the page needs to render the round."""
        state = self.state
        over = state.phase == OVER
        return {
            "phase": state.phase,
            "row": state.current_row,
            "current_guess": state.current_guess,
            "max_guesses": MAX_GUESSES,
            "word_length": WORD_LENGTH,
            "guesses": [g.to_dict() for g in state.guesses],
            "alphabet": list(self.lexicon.alphabet),
            "keyboard": dict(self.status),
            "outcome": state.outcome,
            "target": state.target_word if over else None,
            "target_phonemes": list(state.target_phonemes) if over else None,
        }
