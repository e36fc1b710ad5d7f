"""
Enemy path generation:
- paths span column 0 to column 8 with up/down/right steps only
- the length cap is respected up to the final run to the exit row
- points of interest are avoided
"""

import random

import pytest

from path_generator import (
    EXIT_COL,
    MOVES,
    EnemyPath,
    _run_to_exit_row,
    generate_path,
    is_connected_path,
)

SEEDS = range(40)


def _assert_connected(cells):
    assert cells[0][1] == 0, f"Path must start at column 0: {cells}"
    assert cells[-1][1] == EXIT_COL, f"Path must end at column 8: {cells}"
    assert len(set(cells)) == len(cells), f"Path repeats cells: {cells}"
    for (r0, c0), (r1, c1) in zip(cells, cells[1:]):
        assert (r1 - r0, c1 - c0) in MOVES, f"Illegal step {(r0, c0)} -> {(r1, c1)}"


@pytest.mark.parametrize("seed", SEEDS)
def test_generated_paths_are_connected(seed):
    path = generate_path(13, rng=random.Random(seed))
    _assert_connected(path.cells)
    assert is_connected_path(path.cells)
    assert not path.degraded


@pytest.mark.parametrize("max_length", [6, 9, 13, 20])
def test_path_length_cap(max_length):
    for seed in SEEDS:
        path = generate_path(max_length, rng=random.Random(seed))
        # Cells up to the exit column respect the cap, the exit run adds at most 8
        entry = next(i for i, (_r, c) in enumerate(path.cells) if c == EXIT_COL)
        assert entry + 1 <= max(max_length, 9)
        assert len(path) <= max(max_length, 9) + 8


def test_short_cap_gives_straight_run_to_exit_column():
    path = generate_path(6, rng=random.Random(3))
    columns = [c for _r, c in path.cells]
    entry = columns.index(EXIT_COL)
    assert columns[: entry + 1] == list(range(9))


def test_paths_vary():
    paths = {tuple(generate_path(13, rng=random.Random(seed)).cells) for seed in range(10)}
    assert len(paths) > 1


@pytest.mark.parametrize("seed", SEEDS)
def test_path_avoids_point_of_interest(seed):
    poi = (4, 4)
    path = generate_path(13, points_of_interest=[poi], rng=random.Random(seed))
    _assert_connected(path.cells)
    assert poi not in path


@pytest.mark.parametrize("seed", SEEDS)
def test_exit_column_obstacle_is_bypassed_or_stops_short(seed):
    poi = (4, EXIT_COL)
    path = generate_path(13, points_of_interest=[poi], rng=random.Random(seed))
    _assert_connected(path.cells)
    assert poi not in path


def test_enemy_path_accessors():
    path = EnemyPath([(2, 0), (2, 1), (3, 1)])
    assert len(path) == 3
    assert (2, 1) in path
    assert [2, 1] in path
    assert (0, 0) not in path
    assert path.to_array() == [[2, 0], [2, 1], [3, 1]]
    assert list(path) == [(2, 0), (2, 1), (3, 1)]
    assert path.cell_set == frozenset({(2, 0), (2, 1), (3, 1)})


def test_top_row_path():
    path = EnemyPath.top_row()
    assert path.cells == [(0, c) for c in range(9)]
    assert is_connected_path(path.cells)


@pytest.mark.parametrize(
    "cells",
    [
        [],
        [(0, 0), (0, 1)],  # does not reach column 8
        [(0, 1)] + [(0, c) for c in range(2, 9)],  # does not start at column 0
        [(0, 0), (1, 1)] + [(1, c) for c in range(2, 9)],  # diagonal
        [(0, c) for c in range(5)] + [(0, 3)] + [(0, c) for c in range(5, 9)],  # repeat
        [(0, 0), (0, 1), (1, 1), (1, 0)] + [(2, c) for c in range(9)],  # left step
    ],
)
def test_is_connected_path_rejects(cells):
    assert not is_connected_path(cells)


@pytest.mark.parametrize("blocked_row", range(9))
def test_any_exit_column_obstacle_terminates(blocked_row):
    poi = (blocked_row, EXIT_COL)
    for seed in SEEDS:
        path = generate_path(13, points_of_interest=[poi], rng=random.Random(seed))
        _assert_connected(path.cells)
        assert poi not in path
        assert len(path) <= 13 + 10


def test_blocked_exit_cell_stops_at_nearest_row():
    cells = [(3, c) for c in range(9)]
    _run_to_exit_row(cells, set(cells), {(4, EXIT_COL)}, end_row=4)
    assert cells == [(3, c) for c in range(9)]

    cells = [(0, c) for c in range(9)]
    _run_to_exit_row(cells, set(cells), {(6, EXIT_COL)}, end_row=6)
    assert cells[-1] == (5, EXIT_COL)
    _assert_connected(cells)


def test_exit_run_detours_past_obstacle():
    cells = [(0, c) for c in range(9)]
    _run_to_exit_row(cells, set(cells), {(3, EXIT_COL)}, end_row=6)
    _assert_connected(cells)
    assert (3, EXIT_COL) not in cells
    assert cells[-1] == (6, EXIT_COL)
