import csv
import json
import logging
import os
import random
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Union

from ..errors import PersistenceFailure
from ..models.board import (
    CATEGORY_COUNT, DOUBLE_VALUES, STANDARD_VALUES, VALUES_PER_CATEGORY, Board, RoundBoard
)
from ..models.question import Clue, FinalClue

logger = logging.getLogger(__name__)

BOARD_ROUNDS = ("1", "2")
FINAL_ROUNDS = ("3", "FJ")

# Daily doubles in the double round never sit in the second row.
DOUBLE_ROUND_EXCLUDED_ROW = 1


def clue_id(row: Dict[str, str]) -> str:
    """Stable id for a TSV row, shared with the used-questions file"""
    return f"{row.get('round', '')}_{row.get('category', '')}_{row.get('question', '')}_{row.get('answer', '')}"


class QuestionBank:
    """
    Loads the clue archive (a TSV with round, category, answer and question
    columns, where "answer" is the clue shown and "question" the expected
    response) and builds boards from the clues not played in earlier games.
    """

    def __init__(self, tsv_path: Union[str, Path], used_path: Union[str, Path],
                 rng: Optional[random.Random] = None):
        self.tsv_path = Path(tsv_path)
        self.used_path = Path(used_path)
        self.rng = rng or random.Random()
        self.questions: List[Dict[str, str]] = []
        self.final_questions: List[Dict[str, str]] = []
        self.used_ids: Set[str] = set()
        logger.info(f"QuestionBank initialized with archive: {self.tsv_path}")

    @classmethod
    def from_settings(cls, settings, rng: Optional[random.Random] = None) -> "QuestionBank":
        return cls(settings.tsv_path, settings.used_path, rng=rng)

    def initialize(self) -> None:
        self.load_used_questions()
        self.load_tsv()
        logger.info(f"Loaded {len(self.questions)} questions, "
                    f"{len(self.final_questions)} final questions, {len(self.used_ids)} already used")

    def load_used_questions(self) -> None:
        """A missing or unreadable file just means nothing has been played yet."""
        if not self.used_path.exists():
            self.used_ids = set()
            return
        try:
            with open(self.used_path, "r", encoding="utf-8") as f:
                self.used_ids = set(json.load(f))
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Error loading used questions from {self.used_path}: {e}")
            self.used_ids = set()

    def _read_rows(self) -> Iterable[Dict[str, str]]:
        with open(self.tsv_path, "r", encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f, delimiter="\t", quoting=csv.QUOTE_NONE)
            for row in reader:
                yield {
                    (key or "").strip(): (value or "").strip()
                    for key, value in row.items() if key is not None
                }

    def load_tsv(self) -> None:
        try:
            rows = list(self._read_rows())
        except OSError as e:
            logger.error(f"Error loading TSV {self.tsv_path}: {e}")
            raise

        self.questions = []
        self.final_questions = []
        for row in rows:
            round_label = row.get("round", "")
            if not row.get("category") or not row.get("answer") or not row.get("question"):
                continue
            row["id"] = clue_id(row)
            if row["id"] in self.used_ids:
                continue
            if round_label in BOARD_ROUNDS:
                self.questions.append(row)
            elif round_label in FINAL_ROUNDS:
                self.final_questions.append(row)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def categories(self, exclude_ids: Optional[Set[str]] = None) -> Dict[str, List[Dict[str, str]]]:
        grouped: Dict[str, List[Dict[str, str]]] = OrderedDict()
        for question in self.questions:
            if exclude_ids and question["id"] in exclude_ids:
                continue
            grouped.setdefault(question["category"], []).append(question)
        return grouped

    def eligible_categories(self, exclude: Iterable[str] = (),
                            exclude_ids: Optional[Set[str]] = None) -> List[str]:
        """Categories with enough unplayed clues to fill a board column"""
        excluded = set(exclude)
        return [
            name for name, questions in self.categories(exclude_ids).items()
            if len(questions) >= VALUES_PER_CATEGORY and name not in excluded
        ]

    def get_random_categories(self, count: int = CATEGORY_COUNT, exclude: Iterable[str] = ()) -> List[str]:
        eligible = self.eligible_categories(exclude)
        return self.rng.sample(eligible, min(count, len(eligible)))

    def swap_category(self, old_category: str, current_categories: List[str]) -> Optional[str]:
        """Pick a replacement that is not already on the staging board."""
        available = self.eligible_categories(exclude=list(current_categories) + [old_category])
        if not available:
            logger.info(f"No replacement available for category {old_category!r}")
            return None
        return self.rng.choice(available)

    # ------------------------------------------------------------------
    # Boards
    # ------------------------------------------------------------------

    def _build_round(self, categories: List[str], values: List[int],
                     taken_ids: Set[str]) -> List[Clue]:
        if len(categories) != CATEGORY_COUNT:
            raise ValueError(f"A round needs exactly {CATEGORY_COUNT} categories, got {len(categories)}")
        if len(set(categories)) != len(categories):
            raise ValueError(f"A round cannot repeat a category: {categories}")
        grouped = self.categories(exclude_ids=taken_ids)
        clues = []
        for category in categories:
            pool = grouped.get(category, [])
            if len(pool) < VALUES_PER_CATEGORY:
                raise ValueError(f"Category {category!r} does not have {VALUES_PER_CATEGORY} unplayed clues")
            for value, row in zip(values, self.rng.sample(pool, VALUES_PER_CATEGORY)):
                taken_ids.add(row["id"])
                clues.append(Clue(
                    id=row["id"],
                    category=category,
                    value=value,
                    text=row["answer"],
                    response=row["question"],
                ))
        return clues

    def place_daily_doubles(self, clues: List[Clue], double_round: bool) -> List[Clue]:
        """
        One daily double anywhere in the standard round. Two in the double
        round, in different categories and never in the second row.
        """
        positions = list(range(len(clues)))
        if not double_round:
            chosen = [self.rng.choice(positions)]
        else:
            valid = [p for p in positions if p % VALUES_PER_CATEGORY != DOUBLE_ROUND_EXCLUDED_ROW]
            first = self.rng.choice(valid)
            second = self.rng.choice([
                p for p in valid if p // VALUES_PER_CATEGORY != first // VALUES_PER_CATEGORY
            ])
            chosen = [first, second]
        for position in chosen:
            clues[position] = clues[position].model_copy(update={"daily_double": True})
        return clues

    def get_final_clue(self) -> Optional[FinalClue]:
        if not self.final_questions:
            logger.warning("No unplayed final questions in the archive")
            return None
        row = self.rng.choice(self.final_questions)
        return FinalClue(id=row["id"], category=row["category"], text=row["answer"], response=row["question"])

    def build_board(self, standard_categories: List[str], double_categories: List[str]) -> Board:
        taken: Set[str] = set()
        standard = self.place_daily_doubles(
            self._build_round(standard_categories, STANDARD_VALUES, taken), double_round=False
        )
        double = self.place_daily_doubles(
            self._build_round(double_categories, DOUBLE_VALUES, taken), double_round=True
        )
        board = Board(
            standard=RoundBoard(categories=list(standard_categories), clues=standard),
            double=RoundBoard(categories=list(double_categories), clues=double),
            final=self.get_final_clue(),
        )
        logger.info(f"Built board: standard={standard_categories}, double={double_categories}")
        return board

    def generate_board(self) -> Board:
        standard_categories = self.get_random_categories(CATEGORY_COUNT)
        double_categories = self.get_random_categories(CATEGORY_COUNT, exclude=standard_categories)
        return self.build_board(standard_categories, double_categories)

    async def get_board(self, custom_categories: Optional[Dict[str, List[str]]] = None) -> Board:
        if custom_categories:
            return self.build_board(custom_categories["standard"], custom_categories["double"])
        return self.generate_board()

    # ------------------------------------------------------------------
    # Used clue tracking
    # ------------------------------------------------------------------

    def mark_questions_used(self, question_ids: Iterable[str]) -> int:
        ids = set(question_ids)
        self.save_used_questions(self.used_ids | ids)
        self.used_ids.update(ids)
        self.questions = [q for q in self.questions if q["id"] not in ids]
        self.final_questions = [q for q in self.final_questions if q["id"] not in ids]
        return len(ids)

    def save_used_questions(self, used_ids: Optional[Set[str]] = None) -> None:
        """Write the used ids through a temp file so a failed save keeps the previous list."""
        used_ids = self.used_ids if used_ids is None else used_ids
        try:
            content = json.dumps(sorted(used_ids), indent=2)
        except TypeError as e:
            raise PersistenceFailure(f"Used question ids must be strings: {e}") from e
        tmp_path = self.used_path.with_name(self.used_path.name + ".tmp")
        try:
            os.makedirs(self.used_path.parent, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_path, self.used_path)
        except OSError as e:
            raise PersistenceFailure(f"Could not save used questions to {self.used_path}: {e}") from e
        logger.info(f"Saved {len(used_ids)} used questions")

    async def persist_used_clues(self, ids: List[str]) -> None:
        self.mark_questions_used(ids)
