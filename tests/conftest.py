import random

import pytest

from game import GameController
from lexicon import load

DICTIONARY = """\
;;; # test dictionary
PLANT  P L AE1 N T
STAND  S T AE1 N D
GRAND  G R AE1 N D
BLEND  B L EH1 N D
TRUST  T R AH1 S T
PRINT  P R IH1 N T
SPEAK  S P IY1 K
GARDEN  G AA1 R D AH0 N
"""


def make_lexicon(*common_words):
    """Lexicon over DICTIONARY whose candidates are the given words."""
    return load(DICTIONARY, "\n".join(common_words or ("plant",)))


@pytest.fixture
def lexicon():
    return make_lexicon("plant")


@pytest.fixture
def controller(lexicon):
    game = GameController(lexicon, rng=random.Random(7))
    game.start_round()
    return game


def type_word(game, word):
    for ch in word:
        game.handle_character(ch)
