"""
Solver, solution generator and puzzle builder.
"""

import random

import numpy as np
import pytest

from conftest import SOLUTION
from sudoku import (
    GenerationError,
    all_possible,
    arr_to_str,
    build_puzzle,
    count_blanks,
    empty_grid,
    find_blank,
    format_grid_to_string,
    generate_solution,
    is_solvable,
    is_solved_grid,
    is_valid_placement,
    solve,
)


def test_is_valid_placement_ignores_the_cell_itself(solution):
    # Every value of a solved grid is valid where it sits
    for r in range(9):
        for c in range(9):
            assert is_valid_placement(solution, r, c, solution[r, c])
    # Any other value collides with a peer
    other = solution[0, 0] % 9 + 1
    assert not is_valid_placement(solution, 0, 0, other)


def test_is_valid_placement_checks_row_column_and_box():
    grid = empty_grid()
    grid[0, 8] = 5
    assert not is_valid_placement(grid, 0, 0, 5)  # row
    assert not is_valid_placement(grid, 7, 8, 5)  # column
    assert not is_valid_placement(grid, 2, 6, 5)  # box
    assert is_valid_placement(grid, 4, 4, 5)


def test_find_blank_and_count_blanks(quiz):
    assert find_blank(quiz) == (0, 0)
    assert count_blanks(quiz) == 81 - 36
    assert find_blank(np.ones((9, 9), dtype=np.int32)) is None


def test_all_possible(quiz):
    # (0, 0) of the known puzzle only admits its solution value among a few
    values = all_possible(quiz, 0, 0)
    assert 4 in values
    assert all(1 <= v <= 9 for v in values)
    assert 2 not in values  # already in row 0


def test_solve_known_puzzle(quiz):
    assert solve(quiz)
    assert arr_to_str(quiz) == SOLUTION


def test_solve_reports_failure_and_resets_cells():
    grid = empty_grid()
    grid[0, :8] = range(1, 9)
    grid[1, 8] = 9
    before = grid.copy()
    # (0, 8) has no candidate: 1-8 in its row, 9 in its column
    assert not is_solvable(grid.copy(), {(r, c) for r in range(2, 9) for c in range(9)})
    assert not solve(grid)
    assert (grid == before).all()


@pytest.mark.parametrize("seed", range(8))
def test_generate_solution_is_valid(seed):
    grid = generate_solution(random.Random(seed))
    assert grid.shape == (9, 9)
    assert is_solved_grid(grid)


def test_generate_solution_is_randomized():
    grids = {arr_to_str(generate_solution(random.Random(seed))) for seed in range(5)}
    assert len(grids) > 1


def test_generate_solution_is_reproducible():
    a = generate_solution(random.Random(7))
    b = generate_solution(random.Random(7))
    assert (a == b).all()


def test_generate_solution_raises_when_solver_fails(monkeypatch):
    import sudoku

    monkeypatch.setattr(sudoku, "solve", lambda grid: False)
    with pytest.raises(GenerationError):
        generate_solution(random.Random(0))


def test_is_solvable_leaves_excluded_cells_empty(solution):
    path = {(0, c) for c in range(9)}
    puzzle, _fixed = build_puzzle(solution, path, 30, random.Random(3))
    work = puzzle.copy()
    assert is_solvable(work, path)
    for r in range(9):
        for c in range(9):
            if (r, c) in path:
                assert work[r, c] == 0
            else:
                assert work[r, c] != 0


def test_is_solvable_with_nothing_to_fill(solution):
    assert is_solvable(solution.copy())
    assert is_solvable(empty_grid(), {(r, c) for r in range(9) for c in range(9)})


@pytest.mark.parametrize("reveal_count", [0, 25, 30, 40, 72])
def test_build_puzzle_reveal_counts(solution, reveal_count):
    path = {(4, c) for c in range(9)}
    puzzle, fixed = build_puzzle(solution, path, reveal_count, random.Random(11))
    assert int(fixed.sum()) == reveal_count
    for r, c in path:
        assert puzzle[r, c] == 0
        assert not fixed[r, c]
    # Revealed values come from the solution, everything else is hidden
    assert (puzzle[fixed] == solution[fixed]).all()
    assert (puzzle[~fixed] == 0).all()


def test_build_puzzle_caps_at_available_cells(solution):
    path = {(0, c) for c in range(9)}
    _puzzle, fixed = build_puzzle(solution, path, 81, random.Random(0))
    assert int(fixed.sum()) == 72


def test_build_puzzle_is_deterministic_for_a_seed(solution):
    path = {(2, 0), (2, 1)}
    a = build_puzzle(solution, path, 30, random.Random(5))
    b = build_puzzle(solution, path, 30, random.Random(5))
    assert (a[0] == b[0]).all() and (a[1] == b[1]).all()
    c = build_puzzle(solution, path, 30, random.Random(6))
    assert not (a[1] == c[1]).all()


def test_build_puzzle_does_not_touch_solution(solution):
    before = solution.copy()
    build_puzzle(solution, {(0, 0)}, 10, random.Random(0))
    assert (solution == before).all()


def test_build_puzzle_rejects_negative_reveal_count(solution):
    with pytest.raises(ValueError):
        build_puzzle(solution, set(), -1)


def test_format_grid_marks_masked_cells(solution):
    mask = np.zeros((9, 9), dtype=bool)
    mask[0, 0] = True
    lines = format_grid_to_string(solution, mask).splitlines()
    assert lines[0].startswith("X")
    assert len(lines) == 11
