"""Quiz engine: random drilling of deck words without repetition."""

import random
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from hzcli.models import WordRecord
from hzcli.tones import normalize_tone


class QuizCategory(Enum):
    """Direction of a quiz question."""

    CHINESE_PINYIN = "chinese-pinyin"
    CHINESE_MEANING = "chinese-english"
    MEANING_CHINESE = "english-chinese"
    MEANING_PINYIN = "english-pinyin"

    @property
    def label(self) -> str:
        return {
            QuizCategory.CHINESE_PINYIN: "Chinese → Pinyin",
            QuizCategory.CHINESE_MEANING: "Chinese → English",
            QuizCategory.MEANING_CHINESE: "English → Chinese",
            QuizCategory.MEANING_PINYIN: "English → Pinyin",
        }[self]


class QuizState(Enum):
    READY = "ready"
    SAMPLING = "sampling"
    ASKING = "asking"
    GRADING = "grading"
    FINISHED = "finished"


def parse_category(kind: str) -> Optional[QuizCategory]:
    """
    Parse a quiz kind name.

    Args:
        kind: "mixed" or a category value such as "chinese-pinyin"

    Returns:
        The category, or None for mixed mode

    Raises:
        ValueError: If the kind is unknown
    """
    if kind == "mixed":
        return None
    try:
        return QuizCategory(kind)
    except ValueError:
        available = ", ".join(["mixed"] + [c.value for c in QuizCategory])
        raise ValueError(f"Unknown test kind: {kind}. Available kinds: {available}")


def compare_strings(a: str, b: str) -> bool:
    """Case-insensitive comparison of trimmed, NFC-normalized strings."""
    return (
        unicodedata.normalize("NFC", a.strip()).lower()
        == unicodedata.normalize("NFC", b.strip()).lower()
    )


def is_eligible(category: QuizCategory, record: WordRecord) -> bool:
    if category in (QuizCategory.CHINESE_PINYIN, QuizCategory.MEANING_PINYIN):
        return bool(record.pinyin)
    return len(record.translations) > 0


def build_pools(
    words: dict[str, WordRecord],
    categories: list[QuizCategory],
) -> dict[QuizCategory, list[str]]:
    """
    Build one candidate pool per category.

    A word can sit in several pools at once; empty pools are left out.
    """
    pools = {}
    for category in categories:
        pool = [word for word, record in words.items() if is_eligible(category, record)]
        if pool:
            pools[category] = pool
    return pools


def grade_answer(category: QuizCategory, word: str, record: WordRecord, response: str) -> bool:
    """
    Grade a response for a question.

    Pinyin answers may use doubled-letter tone notation (e.g. "nIiI").
    """
    if category is QuizCategory.CHINESE_PINYIN:
        return compare_strings(normalize_tone(response.strip()), record.pinyin)
    if category is QuizCategory.CHINESE_MEANING:
        return any(compare_strings(t, response) for t in record.translations)
    if category is QuizCategory.MEANING_CHINESE:
        return compare_strings(response, word)
    if category is QuizCategory.MEANING_PINYIN:
        return compare_strings(normalize_tone(response), record.pinyin)
    raise ValueError(f"Unknown test kind: {category}")


@dataclass
class Question:
    """A single quiz question."""

    number: int
    category: QuizCategory
    word: str
    record: WordRecord

    @property
    def meanings(self) -> str:
        return ", ".join(self.record.translations)

    @property
    def prompt(self) -> str:
        if self.category is QuizCategory.CHINESE_PINYIN:
            return f'{self.number}. What is the pinyin for "{self.word}"? '
        if self.category is QuizCategory.CHINESE_MEANING:
            return f'{self.number}. What is the English translation for "{self.word}"? '
        if self.category is QuizCategory.MEANING_CHINESE:
            return f"{self.number}. What are the Chinese characters for {self.meanings}? "
        return f"{self.number}. What is the pinyin for {self.meanings}? "

    @property
    def expected(self) -> str:
        if self.category in (QuizCategory.CHINESE_PINYIN, QuizCategory.MEANING_PINYIN):
            return self.record.pinyin
        if self.category is QuizCategory.CHINESE_MEANING:
            return self.meanings
        return self.word


@dataclass
class QuizResult:
    """Statistics of a finished quiz session."""

    asked: int = 0
    correct: int = 0
    asked_by_category: dict[QuizCategory, int] = field(
        default_factory=lambda: {c: 0 for c in QuizCategory}
    )
    failures: dict[QuizCategory, list[str]] = field(
        default_factory=lambda: {c: [] for c in QuizCategory}
    )

    @property
    def total_errors(self) -> int:
        return sum(len(words) for words in self.failures.values())


class QuizSession:
    """
    Interactive quiz over the words of a deck.

    Each category keeps its own shrinking pool, so a word leaves one
    category's pool when asked there but stays eligible for the others.
    The session ends when every pool is empty or the requested number of
    questions has been asked.
    """

    def __init__(
        self,
        words: dict[str, WordRecord],
        category: Optional[QuizCategory] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize a session.

        Args:
            words: Deck words keyed by headword
            category: Restrict to one category, or None for mixed mode
            rng: Random source, mainly for tests
        """
        self.words = words
        self.categories = [category] if category is not None else list(QuizCategory)
        self.pools = build_pools(words, self.categories)
        self.rng = rng or random.Random()
        self.result = QuizResult()
        self.state = QuizState.READY

    @property
    def remaining(self) -> int:
        return sum(len(pool) for pool in self.pools.values())

    def next_question(self) -> Optional[Question]:
        """
        Sample the next question, or finish the session if the pools are empty.
        """
        if self.state is QuizState.FINISHED:
            return None

        self.state = QuizState.SAMPLING
        if self.remaining == 0:
            self.state = QuizState.FINISHED
            return None

        category = self.rng.choice(list(self.pools))
        pool = self.pools[category]
        word = pool.pop(self.rng.randrange(len(pool)))
        if not pool:
            del self.pools[category]

        self.result.asked += 1
        self.result.asked_by_category[category] += 1
        self.state = QuizState.ASKING
        return Question(self.result.asked, category, word, self.words[word])

    def answer(self, question: Question, response: str) -> bool:
        """Grade a response and record it in the session result."""
        self.state = QuizState.GRADING
        correct = grade_answer(question.category, question.word, question.record, response)
        if correct:
            self.result.correct += 1
        else:
            self.result.failures[question.category].append(question.word)
        self.state = QuizState.SAMPLING
        return correct

    def finish(self) -> QuizResult:
        self.state = QuizState.FINISHED
        return self.result

    def run(
        self,
        count: int,
        ask: Callable[[Question], str],
        on_graded: Optional[Callable[[Question, str, bool], None]] = None,
    ) -> QuizResult:
        """
        Ask up to count questions.

        Args:
            count: Maximum number of questions
            ask: Returns the user's response to a question
            on_graded: Called with (question, response, correct) after grading

        Returns:
            Session result
        """
        for _ in range(count):
            question = self.next_question()
            if question is None:
                break
            response = ask(question)
            correct = self.answer(question, response)
            if on_graded is not None:
                on_graded(question, response, correct)
        return self.finish()
