#!/usr/bin/env python3
# board_manager.py

"""Board state manager for Sudoku tower defense.

The manager is the single source of truth for the live puzzle: it generates a
solution, an enemy path and a solvable puzzle around that path, then tracks
player placements, Sudoku-rule validity and unit completion. Collaborators
(rendering, combat, scoring) read copies through the accessors and subscribe
to `BoardEvent` notifications.
"""

import argparse
from collections import namedtuple
from collections.abc import Mapping
from enum import Enum
import logging
import random
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np

from path_generator import (
    DEFAULT_MAX_LENGTH,
    EnemyPath,
    generate_path,
    is_connected_path,
)
from sudoku import (
    DIGITS,
    Board,
    GenerationError,
    Mask,
    build_puzzle,
    empty_grid,
    format_grid_to_string,
    generate_solution,
    is_solvable,
    is_valid_placement,
    print_grids,
)

logger = logging.getLogger(__name__)


class Difficulty(str, Enum):
    """Puzzle difficulty, maps to the number of revealed cells."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class GameStyle(str, Enum):
    """DEFENSE carves an enemy path, BASIC is a plain Sudoku."""

    DEFENSE = "defense"
    BASIC = "basic"


class BoardState(Enum):
    """Lifecycle of a board manager."""

    UNINITIALIZED = "uninitialized"
    GENERATING = "generating"
    LIVE = "live"


class BoardEvent(Enum):
    """Notifications published to subscribed listeners."""

    PUZZLE_GENERATED = "sudoku:generated"
    PATH_CHANGED = "path:changed"
    CELL_VALID = "sudoku:cell-valid"
    CELL_INVALID = "sudoku:cell-invalid"
    PUZZLE_COMPLETE = "sudoku:complete"
    UNIT_COMPLETED = "unit:completed"


# Event payloads and reconciliation input
CellChange = namedtuple("CellChange", ("row", "col", "value"))
UnitCompletion = namedtuple("UnitCompletion", ("kind", "index", "player_contributed"))
Placement = namedtuple("Placement", ("row", "col", "value"))

Listener = Callable[[BoardEvent, Any], None]
PathFactory = Callable[..., EnemyPath]

# Number of cells to reveal
DIFFICULTY_SETTINGS = {
    Difficulty.EASY: 40,
    Difficulty.MEDIUM: 30,
    Difficulty.HARD: 25,
}
MAX_GENERATION_ATTEMPTS = 5
DEFAULT_PATH_LENGTH = 9  # Start with shorter paths
SHORT_PATH_LENGTH = 6
SHORT_PATH_AFTER_ATTEMPT = 3  # Use an even simpler path on later attempts
EMERGENCY_REVEAL_COUNT = 45
COMPLETION_DEBOUNCE_S = 0.2

UNIT_ROW = "row"
UNIT_COLUMN = "column"
UNIT_GRID = "grid"


def grid_index(row: int, col: int) -> int:
    """Index 0-8 of the 3x3 box holding (row, col), numbered row-major."""
    return 3 * (row // 3) + col // 3


def _build_units() -> List[Tuple[str, int, Tuple[Tuple[int, int], ...]]]:
    units = []
    for i in range(9):
        units.append((UNIT_ROW, i, tuple((i, c) for c in range(9))))
    for i in range(9):
        units.append((UNIT_COLUMN, i, tuple((r, i) for r in range(9))))
    for i in range(9):
        cells = tuple((r, c) for r in range(9) for c in range(9) if grid_index(r, c) == i)
        units.append((UNIT_GRID, i, cells))
    return units


UNITS = _build_units()


def _default_path_factory(max_length, rng, points_of_interest=()) -> EnemyPath:
    return generate_path(max_length, points_of_interest=points_of_interest, rng=rng)


def _parse_enum(enum_cls, value):
    """Enum member for `value` (member or its string value), None if unknown."""
    try:
        return enum_cls(value)
    except ValueError:
        return None


class BoardManager:
    """
    Live Sudoku board with an enemy path.

    Attributes:
        difficulty: difficulty used by the next generation
        style: DEFENSE (with path) or BASIC
        state: lifecycle state, mutations are only accepted when LIVE
        completion_debounce: minimum seconds between two completion checks
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
        max_attempts: int = MAX_GENERATION_ATTEMPTS,
        completion_debounce: float = COMPLETION_DEBOUNCE_S,
        clock: Callable[[], float] = time.monotonic,
        path_factory: Optional[PathFactory] = None,
        difficulty_settings: Optional[Dict[Any, int]] = None,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be a positive integer, got {max_attempts}")
        if completion_debounce < 0:
            raise ValueError(
                f"completion_debounce must be non-negative, got {completion_debounce}"
            )

        self._rng = rng if rng is not None else random.Random(seed)
        self.max_attempts = max_attempts
        self.completion_debounce = completion_debounce
        self._clock = clock
        self._path_factory = path_factory or _default_path_factory

        self.difficulty_settings = dict(DIFFICULTY_SETTINGS)
        for key, count in (difficulty_settings or {}).items():
            level = _parse_enum(Difficulty, key)
            if level is None:
                raise ValueError(f"Unknown difficulty in settings: {key!r}")
            if not 0 <= count <= 81:
                raise ValueError(f"Reveal count for {level.value} must be in 0-81, got {count}")
            self.difficulty_settings[level] = count

        self.difficulty = Difficulty.MEDIUM
        self.style = GameStyle.DEFENSE
        self.state = BoardState.UNINITIALIZED

        self._board = empty_grid()
        self._solution = empty_grid()
        self._fixed: Mask = np.zeros((9, 9), dtype=bool)
        self._path = EnemyPath()
        self._path_mask: Mask = np.zeros((9, 9), dtype=bool)

        # Track completed units to avoid triggering events multiple times
        self._completed: Dict[str, set] = {UNIT_ROW: set(), UNIT_COLUMN: set(), UNIT_GRID: set()}
        self._last_completion_check: Optional[float] = None
        self._completion_dirty = False

        self._listeners: List[Listener] = []

    # Notifications

    def subscribe(self, listener: Listener) -> None:
        """Registers `listener(event, payload)` for all board events."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: BoardEvent, payload: Any = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Listener %r failed on %s", listener, event.name)

    # Generation

    def reseed(self, seed: Optional[int]) -> None:
        """Reseeds the random source used for generation."""
        self._rng.seed(seed)

    def init(self, difficulty: Any = Difficulty.MEDIUM, style: Any = GameStyle.DEFENSE) -> bool:
        """(Re)generates and commits a puzzle. False for unknown difficulty/style."""
        level = _parse_enum(Difficulty, difficulty)
        game_style = _parse_enum(GameStyle, style)
        if level is None or game_style is None:
            logger.warning("Cannot initialize board: difficulty=%r style=%r", difficulty, style)
            return False
        logger.info("BoardManager initializing (%s, %s)", level.value, game_style.value)
        return self.generate_puzzle(level, game_style) is not None

    def set_difficulty(self, difficulty: Any) -> bool:
        """Difficulty for the next generation. False for unknown values."""
        level = _parse_enum(Difficulty, difficulty)
        if level is None:
            logger.warning("Unknown difficulty %r", difficulty)
            return False
        self.difficulty = level
        return True

    def generate_puzzle(self, difficulty: Any = None, style: Any = None) -> Optional[Board]:
        """
        Generates a new puzzle and commits it as the live board.

        Up to `max_attempts` times: carve a path (DEFENSE style), generate a
        solution, build the puzzle and check that the hidden cells can still
        be filled. Falls back to an almost fully revealed puzzle with the top
        row as path when every attempt fails.

        Returns:
            Copy of the committed board, or None for unknown difficulty/style.

        Raises:
            GenerationError: the emergency fallback failed (a logic defect).
            Any failure leaves the previous board and lifecycle state in place.
        """
        level = self.difficulty if difficulty is None else _parse_enum(Difficulty, difficulty)
        game_style = self.style if style is None else _parse_enum(GameStyle, style)
        if level is None or game_style is None:
            logger.warning("Cannot generate puzzle: difficulty=%r style=%r", difficulty, style)
            return None

        logger.info("Generating new Sudoku puzzle (%s, %s)", level.value, game_style.value)
        previous_state = self.state
        self.state = BoardState.GENERATING
        try:
            committed = self._generate(level, game_style)
        except Exception:
            self.state = previous_state
            raise

        puzzle, solution, fixed, path = committed
        self._commit(puzzle, solution, fixed, path)
        self.difficulty = level
        self.style = game_style
        logger.info(
            "Generated puzzle with %d fixed cells and %d path cells",
            int(np.count_nonzero(fixed)),
            len(path),
        )

        if game_style is GameStyle.DEFENSE:
            self._emit(BoardEvent.PATH_CHANGED, path.to_array())
        self._emit(
            BoardEvent.PUZZLE_GENERATED,
            {
                "board": self.get_board(),
                "solution": self.get_solution(),
                "fixed_cells": self.get_fixed_cells(),
                "path_cells": self.get_path_array(),
            },
        )
        return self.get_board()

    def _make_path(self, style: GameStyle, attempt: int) -> Optional[EnemyPath]:
        if style is GameStyle.BASIC:
            return EnemyPath()
        max_length = (
            SHORT_PATH_LENGTH if attempt > SHORT_PATH_AFTER_ATTEMPT else DEFAULT_PATH_LENGTH
        )
        path = self._path_factory(max_length, self._rng)
        if not is_connected_path(path.cells):
            logger.info("Rejecting enemy path that does not span the board: %r", path)
            return None
        return path

    def _generate(self, level: Difficulty, style: GameStyle):
        reveal_count = self.difficulty_settings[level]
        for attempt in range(1, self.max_attempts + 1):
            logger.info("Puzzle generation attempt %d", attempt)
            path = self._make_path(style, attempt)
            if path is None:
                continue
            solution = generate_solution(self._rng)
            puzzle, fixed = build_puzzle(solution, path.cell_set, reveal_count, self._rng)
            if is_solvable(puzzle.copy(), path.cell_set):
                logger.info("Valid solvable puzzle generated")
                return puzzle, solution, fixed, path
            logger.info("Generated puzzle is not solvable with current path, retrying")

        logger.warning(
            "Failed to generate a valid puzzle after %d attempts, using emergency generation",
            self.max_attempts,
        )
        return self._emergency_generation(style)

    def _emergency_generation(self, style: GameStyle):
        """Fresh solution, top-row path and many revealed cells."""
        solution = generate_solution(self._rng)
        path = EnemyPath.top_row() if style is GameStyle.DEFENSE else EnemyPath()
        puzzle, fixed = build_puzzle(solution, path.cell_set, EMERGENCY_REVEAL_COUNT, self._rng)
        if not is_solvable(puzzle.copy(), path.cell_set):
            raise GenerationError("Emergency puzzle generation produced an unsolvable puzzle")
        return puzzle, solution, fixed, path

    def _commit(self, board: Board, solution: Board, fixed: Mask, path: EnemyPath) -> None:
        self._board = np.array(board, dtype=np.int32)
        self._solution = np.array(solution, dtype=np.int32)
        self._fixed = np.array(fixed, dtype=bool)
        self._set_path(path)
        self.state = BoardState.LIVE
        self._reset_completion()
        # Units already complete at commit time are tracked without notifications
        self._update_completion(notify=False)

    def _set_path(self, path: EnemyPath) -> None:
        self._path = path
        self._path_mask = np.zeros((9, 9), dtype=bool)
        for r, c in path:
            self._path_mask[r, c] = True

    def set_state(
        self,
        board: Board,
        solution: Board,
        fixed: Mask,
        path_cells: Iterable[Tuple[int, int]] = (),
    ) -> None:
        """
        Commits an externally built puzzle (e.g. a restored game) as the live board.
        Path cells are kept in the given order, fixed cells must not be on the path.
        """
        if any(np.shape(grid) != (9, 9) for grid in (board, solution, fixed)):
            raise ValueError("board, solution and fixed must be 9x9 grids")
        path = EnemyPath(path_cells)
        fixed = np.array(fixed, dtype=bool)
        if any(fixed[r, c] for r, c in path):
            raise ValueError("Fixed cells cannot be path cells")
        self._commit(board, solution, fixed, path)
        self.style = GameStyle.DEFENSE if path.cells else GameStyle.BASIC

    def generate_enemy_path(
        self, max_length: int = DEFAULT_MAX_LENGTH, points_of_interest: Iterable = ()
    ) -> List[List[int]]:
        """
        Carves a new enemy path over the live puzzle, e.g. between waves.
        Values on the new path are cleared and unfixed, cells freed by the old
        path become playable. Returns the new path, [] if refused.
        """
        if self.state is not BoardState.LIVE or self.style is not GameStyle.DEFENSE:
            logger.debug("Not regenerating enemy path: state=%s style=%s", self.state, self.style)
            return []
        path = self._path_factory(max_length, self._rng, points_of_interest)
        if not is_connected_path(path.cells):
            logger.warning("Rejecting enemy path that does not span the board: %r", path)
            return []

        for r, c in path:
            self._board[r, c] = 0
            self._fixed[r, c] = False
        self._set_path(path)
        self._reset_completion()
        self._update_completion(notify=False)

        path_array = path.to_array()
        logger.info("Generated enemy path with %d cells", len(path_array))
        self._emit(BoardEvent.PATH_CHANGED, path_array)
        return path_array

    # Accessors

    def get_board(self) -> Board:
        return self._board.copy()

    def get_solution(self) -> Board:
        return self._solution.copy()

    def get_fixed_cells(self) -> Mask:
        return self._fixed.copy()

    def get_path_cells(self) -> frozenset:
        """Path cells as a set of (row, col) tuples."""
        return self._path.cell_set

    def get_path_array(self) -> List[List[int]]:
        """Path cells in traversal order as [row, col] pairs."""
        return self._path.to_array()

    @property
    def completed_rows(self) -> frozenset:
        return frozenset(self._completed[UNIT_ROW])

    @property
    def completed_columns(self) -> frozenset:
        return frozenset(self._completed[UNIT_COLUMN])

    @property
    def completed_grids(self) -> frozenset:
        return frozenset(self._completed[UNIT_GRID])

    def get_completion_status(self) -> Dict[str, List[int]]:
        """Completed rows, columns and grids. Flushes a debounced check first."""
        if self._completion_dirty:
            self.check_unit_completion(force=True)
        return {
            "rows": sorted(self._completed[UNIT_ROW]),
            "columns": sorted(self._completed[UNIT_COLUMN]),
            "grids": sorted(self._completed[UNIT_GRID]),
        }

    def format_board(self, show_solution: bool = False) -> str:
        """Text rendering of the board (or solution), path cells drawn as X."""
        grid = self._solution if show_solution else self._board
        return format_grid_to_string(grid, self._path_mask)

    def print_board(self) -> None:
        """Prints puzzle and solution side by side."""
        print_grids([self._board, self._solution], ["Board", "Solution"], mask=self._path_mask)

    # Queries

    @staticmethod
    def _in_bounds(row: int, col: int) -> bool:
        return 0 <= row < 9 and 0 <= col < 9

    def is_path_cell(self, row: int, col: int) -> bool:
        return (row, col) in self._path.cell_set

    def is_valid_move(self, row: int, col: int, value: int) -> bool:
        """
        Sudoku-rule legality of `value` at (row, col) against the live board:
        no other cell of the row, column or box holds it. Clearing is always legal.
        """
        if not self._in_bounds(row, col) or not 0 <= value <= 9:
            return False
        if value == 0:
            return True
        return is_valid_placement(self._board, row, col, value)

    def get_possible_values(self, row: int, col: int) -> List[int]:
        """Legal values for a playable cell, [] for fixed and path cells."""
        if not self._in_bounds(row, col):
            return []
        if self._fixed[row, col] or self.is_path_cell(row, col):
            return []
        return [n for n in DIGITS if self.is_valid_move(row, col, n)]

    def is_cell_correct(self, row: int, col: int) -> bool:
        """True iff the live value at (row, col) matches the solution."""
        if self.state is not BoardState.LIVE or not self._in_bounds(row, col):
            return False
        return bool(self._board[row, col] == self._solution[row, col])

    def is_complete(self) -> bool:
        """True iff every non-path cell matches the solution."""
        if self.state is not BoardState.LIVE:
            return False
        playable = ~self._path_mask
        return bool(np.array_equal(self._board[playable], self._solution[playable]))

    # Mutation

    def set_cell_value(self, row: int, col: int, value: int) -> bool:
        """
        Places `value` (0 clears) at (row, col).

        Rule-violating values are accepted and flagged with CELL_INVALID, so
        collaborators can penalize or remove them later.

        Returns:
            False, with no state change, when the board is not live, the
            coordinates or value are out of range, the cell is fixed or on the
            path, or the cell already holds `value`.
        """
        if self.state is not BoardState.LIVE:
            logger.debug("Rejecting (%s, %s) = %s: board is %s", row, col, value, self.state.value)
            return False
        if not self._in_bounds(row, col) or not 0 <= value <= 9:
            logger.debug("Rejecting out of range placement (%s, %s) = %s", row, col, value)
            return False
        if self._fixed[row, col] or self.is_path_cell(row, col):
            return False
        if value > 0 and self._board[row, col] == value:
            logger.debug("Cell already contains value %d at [%d,%d]", value, row, col)
            return False

        self._board[row, col] = value
        change = CellChange(row, col, value)

        if value == 0:
            self.check_unit_completion()
            self._emit(BoardEvent.CELL_VALID, change)
            return True

        if self.is_valid_move(row, col, value):
            self._emit(BoardEvent.CELL_VALID, change)
        else:
            logger.debug("Value %d at [%d,%d] violates Sudoku rules", value, row, col)
            self._emit(BoardEvent.CELL_INVALID, change)

        self.check_unit_completion()
        if self.is_complete():
            logger.info("Sudoku puzzle is COMPLETE!")
            self._emit(BoardEvent.PUZZLE_COMPLETE)
        return True

    def fix_board_discrepancies(self, placements: Iterable) -> int:
        """
        Reconciles the board with an external placement registry (e.g. towers).

        Args:
            placements: `Placement(row, col, value)` tuples, or mappings with
                "row", "col" and "value" (or "expected_value") keys.

        Returns:
            Number of cells overwritten. Out of range entries, fixed and path
            cells are skipped.
        """
        if self.state is not BoardState.LIVE:
            return 0
        fixed_count = 0
        for placement in placements:
            fields = _placement_fields(placement)
            if fields is None:
                logger.debug("Skipping malformed placement %r", placement)
                continue
            row, col, value = fields
            if not self._in_bounds(row, col) or not 0 <= value <= 9:
                continue
            if self._fixed[row, col] or self.is_path_cell(row, col):
                continue
            if self._board[row, col] != value:
                logger.info(
                    "Fixing discrepancy at (%d, %d): setting board value %d -> %d",
                    row, col, self._board[row, col], value,
                )
                self._board[row, col] = value
                fixed_count += 1

        if fixed_count:
            self.check_unit_completion(force=True)
        return fixed_count

    # Completion tracking

    def _reset_completion(self) -> None:
        for completed in self._completed.values():
            completed.clear()
        self._last_completion_check = None
        self._completion_dirty = False

    def check_unit_completion(self, force: bool = False) -> None:
        """
        Updates completed rows, columns and grids, emitting UNIT_COMPLETED for
        each unit that became complete. Calls within `completion_debounce`
        seconds of the previous check are skipped unless `force` is set; the
        skipped check runs on the next call or completion status query.
        """
        now = self._clock()
        if (
            not force
            and self._last_completion_check is not None
            and now - self._last_completion_check < self.completion_debounce
        ):
            self._completion_dirty = True
            return
        self._last_completion_check = now
        self._completion_dirty = False
        self._update_completion(notify=True)

    def _update_completion(self, notify: bool) -> None:
        newly_completed = []
        for kind, index, cells in UNITS:
            playable = [cell for cell in cells if not self._path_mask[cell]]
            # Skip units that have only path cells
            if not playable:
                continue
            values = [int(self._board[cell]) for cell in playable if self._board[cell] > 0]
            unit_complete = len(values) == len(playable) and len(set(values)) == len(playable)

            completed = self._completed[kind]
            if unit_complete and index not in completed:
                completed.add(index)
                # Player must have contributed at least one cell
                player_contributed = any(not self._fixed[cell] for cell in playable)
                newly_completed.append(UnitCompletion(kind, index, player_contributed))
            elif not unit_complete and index in completed:
                completed.discard(index)

        if newly_completed:
            logger.debug("New completions found: %s", newly_completed)
        if notify:
            for unit in newly_completed:
                self._emit(BoardEvent.UNIT_COMPLETED, unit)


def _placement_fields(placement) -> Optional[Tuple[int, int, int]]:
    try:
        if isinstance(placement, Mapping):
            value = placement.get("value", placement.get("expected_value"))
            return int(placement["row"]), int(placement["col"]), int(value)
        row, col, value = placement
        return int(row), int(col), int(value)
    except (KeyError, TypeError, ValueError):
        return None


def parse_args():
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Tower Defense Sudoku board generator")
    parser.add_argument(
        "--difficulty",
        type=str,
        default=Difficulty.EASY.value,
        choices=[d.value for d in Difficulty],
        help="Puzzle difficulty (number of revealed cells).",
    )
    parser.add_argument(
        "--style",
        type=str,
        default=GameStyle.DEFENSE.value,
        choices=[s.value for s in GameStyle],
        help="defense carves an enemy path, basic is a plain Sudoku.",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for generation.")
    parser.add_argument("--verbose", action="store_true", help="Log generation details.")
    return parser.parse_args()


def main():
    """Generates a tower defense puzzle and prints it."""
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    manager = BoardManager(seed=args.seed)
    manager.init(args.difficulty, args.style)
    print()
    manager.print_board()
    print(f"Path: {manager.get_path_array()}")
    print(f"Fixed cells: {int(np.count_nonzero(manager.get_fixed_cells()))}")


if __name__ == "__main__":
    main()
