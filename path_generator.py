#!/usr/bin/env python3
# path_generator.py

"""Enemy path generation across the Sudoku grid.

The path enters at column 0 and leaves at column 8, moving only up, down or
right, so it never crosses itself column-wise. Each step is scored by a few
heuristics and picked with controlled randomness, which keeps paths organic
rather than strictly greedy.
"""

import logging
import random
from typing import Iterable, Iterator, List, Optional, Sequence, Set, Tuple

logger = logging.getLogger(__name__)

Cell = Tuple[int, int]

GRID_SIZE = 9
EXIT_COL = GRID_SIZE - 1

# Up, down, right. Never left, never diagonal.
MOVES = ((-1, 0), (1, 0), (0, 1))

# Scoring weights (tunable)
DEFAULT_MAX_LENGTH = 13
PATH_BASE_SCORE = 1.0
PATH_RIGHT_BONUS = 3.0
PATH_HOMING_BONUS = 4.0
PATH_HOMING_START = 0.6  # Fraction of the horizontal span after which the path homes in
PATH_NEAR_POI_BONUS = 10.0
PATH_GREEDY_PROBABILITY = 0.7


class EnemyPath:
    """Ordered enemy route with O(1) cell membership."""

    def __init__(self, cells: Iterable[Cell] = (), degraded: bool = False):
        self.cells: List[Cell] = [(int(r), int(c)) for r, c in cells]
        self.cell_set = frozenset(self.cells)
        # True when the walk gave up before reaching the exit column
        self.degraded = degraded

    @classmethod
    def top_row(cls) -> "EnemyPath":
        """The minimal straight path along row 0."""
        return cls((0, c) for c in range(GRID_SIZE))

    def to_array(self) -> List[List[int]]:
        """Path as a list of [row, col] pairs."""
        return [[r, c] for r, c in self.cells]

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self) -> Iterator[Cell]:
        return iter(self.cells)

    def __contains__(self, cell) -> bool:
        return tuple(cell) in self.cell_set

    def __repr__(self) -> str:
        flag = ", degraded" if self.degraded else ""
        return f"EnemyPath({self.cells}{flag})"


def is_connected_path(cells: Sequence[Cell]) -> bool:
    """
    True iff `cells` is a non-repeating walk from column 0 to column 8 where
    each step is exactly one of up, down or right.
    """
    if not cells:
        return False
    if cells[0][1] != 0 or cells[-1][1] != EXIT_COL:
        return False
    if len(set(cells)) != len(cells):
        return False
    for r, c in cells:
        if not (0 <= r < GRID_SIZE and 0 <= c < GRID_SIZE):
            return False
    for (r0, c0), (r1, c1) in zip(cells, cells[1:]):
        if (r1 - r0, c1 - c0) not in MOVES:
            return False
    return True


def _in_bounds(row: int, col: int) -> bool:
    return 0 <= row < GRID_SIZE and 0 <= col < GRID_SIZE


def _near(cell: Cell, points: Set[Cell]) -> bool:
    """True if any point is one of the 8 neighbours of `cell`."""
    r, c = cell
    return any(
        (r + dr, c + dc) in points
        for dr in (-1, 0, 1)
        for dc in (-1, 0, 1)
        if dr or dc
    )


def _score(
    move: Tuple[int, int], row: int, col: int, end_row: int, points: Set[Cell]
) -> float:
    dr, dc = move
    target = (row + dr, col + dc)
    score = PATH_BASE_SCORE
    if dc == 1:
        score += PATH_RIGHT_BONUS
    elif col >= PATH_HOMING_START * EXIT_COL and abs(target[0] - end_row) < abs(row - end_row):
        score += PATH_HOMING_BONUS
    if points and _near(target, points):
        score += PATH_NEAR_POI_BONUS
    return score


def _choose(candidates: List[Tuple[float, Tuple[int, int]]], rng) -> Tuple[int, int]:
    """Best candidate with probability PATH_GREEDY_PROBABILITY, else any other one."""
    rng.shuffle(candidates)  # Random tie-breaking, sort below is stable
    candidates.sort(key=lambda sc: sc[0], reverse=True)
    if len(candidates) == 1 or rng.random() < PATH_GREEDY_PROBABILITY:
        return candidates[0][1]
    return rng.choice(candidates[1:])[1]


def _dead_end(cell: Cell, dr: int, visited: Set[Cell], blocked: Set[Cell]) -> bool:
    """True if a vertical step into `cell` leaves no way to carry on."""
    r, c = cell
    for nxt in ((r, c + 1), (r + dr, c)):
        if _in_bounds(*nxt) and nxt not in visited and nxt not in blocked:
            return False
    return True


def _forced_step(row: int, col: int, visited: Set[Cell]) -> Optional[Cell]:
    """Dead end: a right step if possible, else a vertical detour, ignoring points of interest."""
    for dr, dc in ((0, 1), (-1, 0), (1, 0)):
        cell = (row + dr, col + dc)
        if _in_bounds(*cell) and cell not in visited:
            return cell
    return None


def _run_to_exit_row(
    cells: List[Cell], visited: Set[Cell], blocked: Set[Cell], end_row: int
) -> None:
    """
    Extends a path standing in the exit column vertically to `end_row`.
    A blocked cell is bypassed through the column to the left: the run is
    rewound to where it entered the exit column, walks down (or up) column 7
    past the obstacle and steps back right. A blocked exit cell ends the run
    at the nearest reachable row.
    """
    row = cells[-1][0]
    while row != end_row:
        step = 1 if end_row > row else -1
        nxt = (row + step, EXIT_COL)
        if not _in_bounds(*nxt) or nxt in visited:
            break
        if nxt not in blocked:
            cells.append(nxt)
            visited.add(nxt)
            row += step
            continue
        if nxt[0] == end_row:
            logger.debug("Exit cell %s blocked, path ends at row %d", nxt, row)
            break

        # Rewind the run in the exit column back to the entry cell
        tail = []
        while len(cells) > 1 and cells[-1][1] == EXIT_COL and cells[-2][1] == EXIT_COL:
            tail.append(cells.pop())
        entry_row = cells[-1][0]
        past = row + 2 * step
        detour = [(r, EXIT_COL - 1) for r in range(entry_row + step, past + step, step)]
        detour.append((past, EXIT_COL))
        if (
            len(cells) > 1
            and cells[-2] == (entry_row, EXIT_COL - 1)
            and all(_in_bounds(*cell) and cell not in visited and cell not in blocked
                    for cell in detour)
        ):
            for cell in tail:
                visited.discard(cell)
            visited.discard(cells.pop())
            cells.extend(detour)
            visited.update(detour)
            row = past
            continue

        cells.extend(reversed(tail))
        logger.debug("Exit column blocked at %s, path ends at row %d", nxt, row)
        break


def generate_path(
    max_length: int = DEFAULT_MAX_LENGTH,
    points_of_interest: Iterable[Cell] = (),
    rng: Optional[random.Random] = None,
) -> EnemyPath:
    """
    Carves an enemy path from a random row of column 0 to column 8.

    Args:
        max_length: soft cap on the number of cells. Vertical moves are only
            taken while the cap still leaves room for the remaining right
            steps; the final run to the exit row may go past it.
        points_of_interest: cells to avoid (e.g. placed towers). Cells next to
            them score a bonus so the path passes close by.
        rng: random source, the `random` module by default.
    """
    rng = random if rng is None else rng
    blocked = {(int(r), int(c)) for r, c in points_of_interest}

    free_rows = [r for r in range(GRID_SIZE) if (r, 0) not in blocked]
    row = rng.choice(free_rows or list(range(GRID_SIZE)))
    col = 0
    end_row = rng.randrange(GRID_SIZE)

    cells = [(row, col)]
    visited = {(row, col)}
    degraded = False

    while col < EXIT_COL:
        right = (row, col + 1)
        right_ok = right not in blocked
        room_left = len(cells) + (EXIT_COL - col) < max_length

        candidates = []
        for dr, dc in MOVES:
            cell = (row + dr, col + dc)
            if not _in_bounds(*cell) or cell in visited or cell in blocked:
                continue
            if dc == 0 and right_ok and not room_left:
                continue
            if dc == 0 and _dead_end(cell, dr, visited, blocked):
                continue
            candidates.append((_score((dr, dc), row, col, end_row, blocked), (dr, dc)))

        if candidates:
            dr, dc = _choose(candidates, rng)
            cell = (row + dr, col + dc)
        else:
            cell = _forced_step(row, col, visited)
            if cell is None:
                logger.warning("Enemy path stuck at (%d, %d), breaking early", row, col)
                degraded = True
                break
            logger.debug("Enemy path forced through (%d, %d)", *cell)

        cells.append(cell)
        visited.add(cell)
        row, col = cell

    if not degraded and row != end_row:
        _run_to_exit_row(cells, visited, blocked, end_row)

    logger.debug("Generated enemy path with %d cells, exit row %d", len(cells), end_row)
    return EnemyPath(cells, degraded=degraded)
