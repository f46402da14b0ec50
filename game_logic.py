CORRECT = "correct"
PRESENT = "present"
ABSENT = "absent"
DEFAULT = "default"

# Keyboard status ranks, lowest first
STATUS_RANK = {DEFAULT: 0, ABSENT: 1, PRESENT: 2, CORRECT: 3}


# Evaluate a guessed pronunciation against the target pronunciation.
def evaluate_guess(guess, target):
    if len(guess) != len(target):
        raise ValueError(f"Guess has {len(guess)} phonemes, target has {len(target)}")

    feedback = [ABSENT] * len(target)
    remaining = list(target)

# First pass: exact positions consume their target slot
    for i, (g, t) in enumerate(zip(guess, target)):
        if g == t:
            feedback[i] = CORRECT
            remaining[i] = None

# Second pass: each leftover phoneme takes the first unconsumed matching slot
    for i, g in enumerate(guess):
        if feedback[i] == CORRECT:
            continue
        if g in remaining:
            feedback[i] = PRESENT
            remaining[remaining.index(g)] = None

    return tuple(feedback)


# Check if every position of a feedback row is correct.
def is_solved(feedback) -> bool:
    return bool(feedback) and all(f == CORRECT for f in feedback)


def new_status_map(alphabet) -> dict:
    """Fresh keyboard status map with every phoneme at default."""
    return {p: DEFAULT for p in alphabet}


def apply_guess(status: dict, guess, feedback) -> dict:
    """
    Merge one guess's feedback into the keyboard status map.

    Correct always wins and never goes back. Present upgrades default or
    absent. Absent only marks phonemes nothing is known about yet, so a
    phoneme seen present or correct earlier keeps that status.

    Args:
        status: Map of phoneme -> status, updated in place
        guess: Guessed phoneme sequence
        feedback: Feedback row for that guess

    Returns:
        The same status map
    """
    for phoneme, verdict in zip(guess, feedback):
        current = status.get(phoneme, DEFAULT)
        if STATUS_RANK[verdict] > STATUS_RANK[current]:
            status[phoneme] = verdict
    return status
