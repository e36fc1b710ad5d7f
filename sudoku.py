#!/usr/bin/env python3
# sudoku.py

"""Sudoku constraint solver, solution generator and puzzle builder."""

from datetime import timedelta
import logging
import random
from timeit import default_timer as timer
from typing import AbstractSet, List, Optional, Tuple, Union

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)

Board = NDArray[np.int_]  # Shape: (9, 9) = np.ndarray((9, 9), dtype=int)
Mask = NDArray[np.bool_]  # Shape: (9, 9), True marks a cell
BoardOrStr = Union[Board, str]
Cell = Tuple[int, int]

DIGITS = tuple(range(1, 10))


class GenerationError(RuntimeError):
    """A generator that is constructed to always succeed has failed."""


# Utility functions
def arr_to_str(board: Board) -> str:
    """Convert a 2D NumPy array to a string."""
    return "".join(str(c) for row in board for c in row)


def str_to_arr(board: str) -> Board:
    """Convert a string to a 2D NumPy array."""
    a = [int(c) for c in board]
    return np.reshape(np.array(a, dtype=np.int32), (9, 9))


def empty_grid() -> Board:
    """A 9x9 grid of zeros."""
    return np.zeros((9, 9), dtype=np.int32)


def format_grid_to_strings(grid: Board, mask: Optional[Mask] = None) -> List[str]:
    """Formats a 9x9 grid for pretty printing, replacing 0s with spaces.
    Cells set in `mask` (e.g. the enemy path) are drawn as X.
    """
    s = []
    for r in range(9):
        if r > 0 and r % 3 == 0:
            s.append("------+-------+------")

        row_str = "".join(
            [
                "X" if mask is not None and mask[r, c] else (str(d) if d != 0 else " ")
                for c, d in enumerate(grid[r, :])
            ]
        )

        s.append(
            " ".join(row_str[0:3])
            + " | "
            + " ".join(row_str[3:6])
            + " | "
            + " ".join(row_str[6:9])
        )
    return s


def format_grid_to_string(grid: Board, mask: Optional[Mask] = None) -> str:
    """Formats a 9x9 grid for pretty printing, replacing 0s with spaces."""
    return "\n".join(format_grid_to_strings(grid, mask))


def print_grid(board: BoardOrStr, mask: Optional[Mask] = None) -> None:
    """Print Sudoku board."""
    board = str_to_arr(board) if isinstance(board, str) else board
    print(format_grid_to_string(board, mask))


def print_grids(
    grids: List[BoardOrStr],
    titles: List[str],
    gap: str = "    ",
    mask: Optional[Mask] = None,
) -> None:
    """Print multiple Sudoku boards horizontally.
    For example, useful for puzzle and solution side by side.
    """
    grids = [str_to_arr(grid) if isinstance(grid, str) else grid for grid in grids]
    grids_str = [format_grid_to_strings(grid, mask) for grid in grids]

    print(gap.join([f"{h:21s}" for h in titles]))

    lines = len(grids_str[0])
    print(
        "\n".join(
            [gap.join([grid_str[i] for grid_str in grids_str]) for i in range(lines)]
        )
    )


def _is_valid(board: Board, row: int, col: int, n: int) -> bool:
    """
    Check to see if placing number 'n' at (row, col) is valid.
    The cell itself is not a peer, so a value already sitting there is ignored.
    """
    peers = board[row, :] == n
    peers[col] = False
    if peers.any():
        return False

    peers = board[:, col] == n
    peers[row] = False
    if peers.any():
        return False

    start_row, start_col = 3 * (row // 3), 3 * (col // 3)
    peers = board[start_row : start_row + 3, start_col : start_col + 3] == n
    peers[row - start_row, col - start_col] = False
    return not peers.any()


def is_valid_placement(board: BoardOrStr, row: int, col: int, n: int) -> bool:
    """
    True iff 'n' does not already appear in another cell of the row, column
    or 3x3 box of (row, col).
    """
    board = str_to_arr(board) if isinstance(board, str) else board
    return _is_valid(board, row, col, n)


def count_blanks(board: BoardOrStr) -> int:
    """Count the number of blank/empty cells (0s) on the board."""
    board = str_to_arr(board) if isinstance(board, str) else board
    return int(np.count_nonzero(board == 0))


def find_blank(board: Board) -> Optional[Cell]:
    """
    Find the first blank/empty cell (0) on the board, in row-major order.
    """
    empty_cells = np.argwhere(board == 0)
    if empty_cells.size == 0:
        return None
    r, c = empty_cells[0]
    return int(r), int(c)


def all_possible(board: BoardOrStr, row: int, col: int) -> List[int]:
    """
    Return all possible numbers that can be placed at (row, col)
    without violating the Sudoku rules.
    """
    board = str_to_arr(board) if isinstance(board, str) else board
    return [n for n in DIGITS if _is_valid(board, row, col, n)]


# Sudoku Solvers


def _fill(board: Board, cells: List[Cell]) -> bool:
    """
    Backtracking fill of `cells` (in the given order) trying digits 1-9 ascending.
    Uses pre-computed sets of used numbers for all rows, cols, and boxes for
    O(1) lookups. Cells are reset to 0 on dead ends.
    """
    rows = [set() for _ in range(9)]
    cols = [set() for _ in range(9)]
    boxes = [set() for _ in range(9)]
    for r, c in np.argwhere(board != 0):
        d = int(board[r, c])
        rows[r].add(d)
        cols[c].add(d)
        boxes[3 * (r // 3) + c // 3].add(d)

    def _solve(index: int) -> bool:
        if index == len(cells):
            return True
        row, col = cells[index]
        box = 3 * (row // 3) + col // 3
        for n in DIGITS:
            if n in rows[row] or n in cols[col] or n in boxes[box]:
                continue
            board[row, col] = n
            rows[row].add(n)
            cols[col].add(n)
            boxes[box].add(n)
            if _solve(index + 1):
                return True
            rows[row].discard(n)
            cols[col].discard(n)
            boxes[box].discard(n)
        board[row, col] = 0  # Backtrack
        return False

    return _solve(0)


def solve(board: Board) -> bool:
    """
    Solves the Sudoku puzzle in place using backtracking.
    Empty cells are filled in row-major order, digits tried in increasing order.
    Returns True iff the board is now completely filled.
    """
    cells = [(int(r), int(c)) for r, c in np.argwhere(board == 0)]
    return _fill(board, cells)


def is_solvable(board: Board, excluded_cells: AbstractSet[Cell] = frozenset()) -> bool:
    """
    True iff the empty cells of the board that are not in `excluded_cells`
    admit an assignment consistent with the Sudoku rules, holding every
    non-empty cell as fixed context. Works in place, pass a copy to keep
    the original.
    """
    cells = [
        (int(r), int(c))
        for r, c in np.argwhere(board == 0)
        if (int(r), int(c)) not in excluded_cells
    ]
    if not cells:
        return True
    logger.debug("Checking if puzzle is solvable with %d empty cells", len(cells))
    return _fill(board, cells)


def is_solved_grid(board: Board) -> bool:
    """Checks that every row, column and 3x3 box is a permutation of 1-9."""

    def _check_group(group) -> bool:
        return sorted(int(d) for d in group) == list(DIGITS)

    for i in range(9):
        if not _check_group(board[i, :]) or not _check_group(board[:, i]):
            return False
    for i in range(3):
        for j in range(3):
            if not _check_group(board[i * 3 : (i + 1) * 3, j * 3 : (j + 1) * 3].flatten()):
                return False
    return True


# Sudoku Builder


def generate_solution(rng: Optional[random.Random] = None) -> Board:
    """
    Generates a complete, solved Sudoku grid.

    The three diagonal 3x3 boxes share no row, column or box, so each one is
    seeded with an independently shuffled permutation of 1-9. The backtracking
    solver completes the rest; the random seed makes the completion random too.
    """
    rng = random if rng is None else rng
    grid = empty_grid()
    for box in range(3):
        nums = list(DIGITS)
        rng.shuffle(nums)
        grid[box * 3 : (box + 1) * 3, box * 3 : (box + 1) * 3] = np.reshape(nums, (3, 3))

    if not solve(grid):
        raise GenerationError(
            f"Solver failed to complete a diagonal seeding: {arr_to_str(grid)}"
        )
    return grid


def build_puzzle(
    solution: Board,
    path_cells: AbstractSet[Cell],
    reveal_count: int,
    rng: Optional[random.Random] = None,
) -> Tuple[Board, Mask]:
    """
    Builds a puzzle from a solved grid.

    Path cells are always cleared and never fixed. Of the remaining cells,
    `reveal_count` randomly chosen ones keep their solution value and are
    marked fixed; all others are cleared.
    Returns (puzzle, fixed).
    """
    if reveal_count < 0:
        raise ValueError(f"reveal_count must be non-negative, got {reveal_count}")
    rng = random if rng is None else rng

    puzzle = solution.copy()
    fixed = np.zeros((9, 9), dtype=bool)

    # Create a list of all 81 indices (r, c) and shuffle them
    all_indices = [(r, c) for r in range(9) for c in range(9)]
    rng.shuffle(all_indices)

    for r, c in path_cells:
        puzzle[r, c] = 0

    revealed = 0
    for r, c in all_indices:
        if (r, c) in path_cells:
            continue
        if revealed < reveal_count:
            fixed[r, c] = True
            revealed += 1
        else:
            puzzle[r, c] = 0
    return puzzle, fixed


def main():
    """Times the solver on a known puzzle and generates a random solution."""
    num_iter = 100
    quiz = "000260701680070090190004500820100040004602900050003028009300074040050036703018000"
    known = "435269781682571493197834562826195347374682915951743628519326874248957136763418259"

    start_time = timer()
    for _i in range(num_iter):
        board = str_to_arr(quiz)
        solved = solve(board)
    elapsed_time = (timer() - start_time) / num_iter
    time_str = str(timedelta(seconds=elapsed_time))
    if solved and arr_to_str(board) == known:
        print(f"Solved in {time_str}:")
    else:
        print(f"FAIL: solver result differs from known solution ({time_str})")
    print_grids([quiz, board], ["Puzzle", "Solution"])

    print()
    print("Random solution:")
    print_grid(generate_solution())


if __name__ == "__main__":
    main()
