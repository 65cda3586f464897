"""Correctness evaluation for a single question.

Tokens are accepted in either encoding an Option can have: its persisted id or
its 1-based position. Older clients send positions, newer ones send ids, and some
mix both in one answer, so both forms are always matched instead of guessing
which encoding a client used.

Rule precedence (first applicable rule decides):
1. NO_ANSWER_KEY - no option flagged correct and no correct-answer list:
   any non-empty selection is accepted
2. EMPTY_SELECTION - nothing submitted
3. MULTI_EXACT_SET - multi-answer flag set: the selected options must equal the
   correct options exactly
4. LEGACY_ANSWER_LIST - not multi-answer but a correct-answer list of length > 1
5. SELECT_UP_TO / UNKEYED_MULTI_SELECT - text asks for several selections but the
   data only keys one answer: accept 1..N selections (or any non-empty selection)
6. SINGLE_ANSWER - exactly one token naming the first correct option; rows that
   flag several options without the multi-answer flag are scored this way too

Rules 1 and 5 are tolerances for badly authored questions and are reported as
reduced-confidence so callers can log them for data-quality follow-up.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass

from app.scoring.types import OptionSnapshot, QuestionSnapshot

RULE_NO_ANSWER_KEY = "NO_ANSWER_KEY"
RULE_EMPTY_SELECTION = "EMPTY_SELECTION"
RULE_MULTI_EXACT_SET = "MULTI_EXACT_SET"
RULE_LEGACY_ANSWER_LIST = "LEGACY_ANSWER_LIST"
RULE_SELECT_UP_TO = "SELECT_UP_TO"
RULE_UNKEYED_MULTI_SELECT = "UNKEYED_MULTI_SELECT"
RULE_SINGLE_ANSWER = "SINGLE_ANSWER"

SELECT_UP_TO_PATTERN = re.compile(r"select up to (\d+)", re.IGNORECASE)

MULTI_SELECT_PHRASES = (
    "select all that apply",
    "select all applicable",
    "select up to",
    "(select all",
    "select 2",
    "select two",
    "select multiple",
)


@dataclass(frozen=True)
class Evaluation:
    """Outcome of evaluating one answer."""

    is_correct: bool
    rule_fired: str
    reduced_confidence: bool = False


def extract_select_up_to(text: str) -> int:
    """Return N from a "select up to N" instruction, or 0 if there is none."""
    match = SELECT_UP_TO_PATTERN.search(text or "")
    return int(match.group(1)) if match else 0


def implies_multiple_selection(text: str) -> bool:
    """True when the question text asks for more than one selection."""
    lowered = (text or "").lower()
    return any(phrase in lowered for phrase in MULTI_SELECT_PHRASES)


def option_tokens(question: QuestionSnapshot) -> list[tuple[OptionSnapshot, frozenset[str]]]:
    """Both valid token forms (persisted id, 1-based position) for every option."""
    return [
        (option, frozenset((str(option.id), str(position))))
        for position, option in enumerate(question.options, start=1)
    ]


def resolve_option(question: QuestionSnapshot, token: str) -> OptionSnapshot | None:
    """Resolve a token to an option: persisted id first, then 1-based position."""
    for option in question.options:
        if str(option.id) == token:
            return option
    for position, option in enumerate(question.options, start=1):
        if str(position) == token:
            return option
    return None


def resolve_selected_option_id(question: QuestionSnapshot, tokens: Sequence[str]) -> int | None:
    """Option id recorded as the user's answer: the option named by the first token."""
    if not tokens:
        return None
    option = resolve_option(question, tokens[0])
    return option.id if option else None


def _keyed_correct_options(question: QuestionSnapshot) -> tuple[OptionSnapshot, ...]:
    """Options flagged correct; failing that, options whose text is in the answer list."""
    flagged = question.correct_options
    if flagged or not question.correct_answers:
        return flagged
    answer_texts = set(question.correct_answers)
    return tuple(option for option in question.options if option.text in answer_texts)


def _matches_exact_set(
    question: QuestionSnapshot,
    tokens: Sequence[str],
    correct: tuple[OptionSnapshot, ...],
) -> bool:
    """Every token names a correct option and every correct option is named."""
    tokens_by_option = option_tokens(question)
    correct_ids = {option.id for option in correct}
    covered: set[int] = set()

    for token in tokens:
        # id first, then position
        by_id = next(
            (o for o, _ in tokens_by_option if o.id in correct_ids and str(o.id) == token), None
        )
        hit = by_id or next(
            (o for o, forms in tokens_by_option if o.id in correct_ids and token in forms), None
        )
        if hit is None:
            return False
        covered.add(hit.id)

    return covered == correct_ids


def _matches_answer_list(question: QuestionSnapshot, tokens: Sequence[str]) -> bool:
    """Legacy rows: a correct-answer text list without the multi-answer flag."""
    answer_texts = list(dict.fromkeys(question.correct_answers))

    accepted: set[str] = set(answer_texts)
    for option, forms in option_tokens(question):
        if option.text in answer_texts:
            accepted |= forms

    flagged = question.correct_options
    if flagged:
        primary = {flagged[0].text}
        primary |= next(forms for option, forms in option_tokens(question) if option.id == flagged[0].id)
    else:
        primary = {answer_texts[0]}

    if len(tokens) == 1:
        return tokens[0] in accepted or tokens[0] in primary
    return len(tokens) <= len(answer_texts) and all(token in accepted for token in tokens)


def evaluate_detailed(question: QuestionSnapshot, tokens: Sequence[str] | None) -> Evaluation:
    """
    Evaluate a submitted answer and report which rule decided it.

    Never raises: malformed questions and empty selections degrade to a result.

    Args:
        question: Question snapshot with ordered options
        tokens: Submitted tokens (deduplicated)

    Returns:
        Evaluation with correctness, deciding rule and confidence flag
    """
    tokens = list(tokens or [])

    if not question.correct_options and not question.correct_answers:
        return Evaluation(bool(tokens), RULE_NO_ANSWER_KEY, reduced_confidence=True)

    if not tokens:
        return Evaluation(False, RULE_EMPTY_SELECTION)

    correct = _keyed_correct_options(question)

    if correct and question.has_multiple_correct_answers:
        return Evaluation(_matches_exact_set(question, tokens, correct), RULE_MULTI_EXACT_SET)

    if len(question.correct_answers) > 1:
        return Evaluation(_matches_answer_list(question, tokens), RULE_LEGACY_ANSWER_LIST)

    if not correct or implies_multiple_selection(question.text):
        limit = extract_select_up_to(question.text)
        if limit > 0:
            return Evaluation(1 <= len(tokens) <= limit, RULE_SELECT_UP_TO, reduced_confidence=True)
        return Evaluation(True, RULE_UNKEYED_MULTI_SELECT, reduced_confidence=True)

    forms = next(forms for option, forms in option_tokens(question) if option.id == correct[0].id)
    return Evaluation(len(tokens) == 1 and tokens[0] in forms, RULE_SINGLE_ANSWER)


def evaluate(question: QuestionSnapshot, tokens: Sequence[str] | None) -> bool:
    """True when the submitted tokens answer the question correctly."""
    return evaluate_detailed(question, tokens).is_correct
