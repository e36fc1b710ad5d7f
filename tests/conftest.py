import os
import sys

import pytest

# Add project root to sys.path (so tests can import the flat modules)
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.append(PROJECT_ROOT)

from board_manager import BoardManager  # noqa: E402
from sudoku import str_to_arr  # noqa: E402

QUIZ = "000260701680070090190004500820100040004602900050003028009300074040050036703018000"
SOLUTION = "435269781682571493197834562826195347374682915951743628519326874248957136763418259"


@pytest.fixture
def solution():
    """A known valid 9x9 solution."""
    return str_to_arr(SOLUTION)


@pytest.fixture
def quiz():
    """A puzzle with a unique solution, SOLUTION."""
    return str_to_arr(QUIZ)


@pytest.fixture
def manager():
    """Seeded manager with completion checks on every mutation."""
    return BoardManager(seed=1234, completion_debounce=0.0)


@pytest.fixture
def recorder():
    """Listener that records (event, payload) pairs."""

    class _Recorder:
        def __init__(self):
            self.events = []

        def __call__(self, event, payload):
            self.events.append((event, payload))

        def of(self, event):
            return [payload for e, payload in self.events if e is event]

    return _Recorder()
