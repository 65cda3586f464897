"""Tests for the correctness evaluator."""

import pytest
from hypothesis import given, settings, strategies as st

from app.scoring.evaluator import (
    RULE_EMPTY_SELECTION,
    RULE_LEGACY_ANSWER_LIST,
    RULE_MULTI_EXACT_SET,
    RULE_NO_ANSWER_KEY,
    RULE_SELECT_UP_TO,
    RULE_SINGLE_ANSWER,
    RULE_UNKEYED_MULTI_SELECT,
    evaluate,
    evaluate_detailed,
    extract_select_up_to,
    implies_multiple_selection,
    resolve_selected_option_id,
)
from app.scoring.types import OptionSnapshot, QuestionSnapshot


def make_question(
    correct_ids=(),
    first_id: int = 101,
    count: int = 4,
    text: str = "Which option is correct?",
    multiple: bool = False,
    correct_answers=(),
) -> QuestionSnapshot:
    options = tuple(
        OptionSnapshot(id=first_id + i, text="ABCDEFGH"[i], is_correct=(first_id + i) in correct_ids)
        for i in range(count)
    )
    return QuestionSnapshot(
        id=1,
        text=text,
        options=options,
        topic="Architecture",
        has_multiple_correct_answers=multiple,
        correct_answers=tuple(correct_answers),
    )


# ============================================================================
# Single answer
# ============================================================================


class TestScenarioA:
    """Options A-D, correct B (id 102, position 2)."""

    question = make_question(correct_ids=(102,))

    def test_by_id(self):
        assert evaluate(self.question, ["102"]) is True

    def test_by_position(self):
        assert evaluate(self.question, ["2"]) is True

    def test_wrong_position(self):
        assert evaluate(self.question, ["1"]) is False

    def test_rule_fired(self):
        assert evaluate_detailed(self.question, ["102"]).rule_fired == RULE_SINGLE_ANSWER


def test_single_answer_rejects_multiple_tokens():
    question = make_question(correct_ids=(102,))
    assert evaluate(question, ["102", "2"]) is False
    assert evaluate(question, ["102", "103"]) is False


def test_single_answer_rejects_unknown_token():
    question = make_question(correct_ids=(102,))
    assert evaluate(question, ["abc"]) is False
    assert evaluate(question, ["999"]) is False


def test_empty_selection_is_incorrect():
    question = make_question(correct_ids=(102,))
    result = evaluate_detailed(question, [])
    assert result.is_correct is False
    assert result.rule_fired == RULE_EMPTY_SELECTION
    assert evaluate(question, None) is False


# ============================================================================
# Multiple answers
# ============================================================================


class TestScenarioB:
    """Four options, correct ids 201 and 203."""

    question = make_question(correct_ids=(201, 203), first_id=201, multiple=True)

    def test_exact_set(self):
        assert evaluate(self.question, ["201", "203"]) is True

    def test_missing_one(self):
        assert evaluate(self.question, ["201"]) is False

    def test_extra_one(self):
        assert evaluate(self.question, ["201", "202", "203"]) is False

    def test_order_and_encoding_do_not_matter(self):
        assert evaluate(self.question, ["3", "201"]) is True
        assert evaluate(self.question, ["3", "1"]) is True

    def test_same_option_twice_in_both_encodings_does_not_cover_set(self):
        assert evaluate(self.question, ["201", "1"]) is False

    def test_rule_fired(self):
        assert evaluate_detailed(self.question, ["201", "203"]).rule_fired == RULE_MULTI_EXACT_SET


def test_two_flagged_options_without_flag_score_first_correct_option():
    question = make_question(correct_ids=(101, 104), multiple=False)

    result = evaluate_detailed(question, ["101"])
    assert result.is_correct is True
    assert result.rule_fired == RULE_SINGLE_ANSWER
    assert evaluate(question, ["1"]) is True
    assert evaluate(question, ["104"]) is False
    assert evaluate(question, ["101", "104"]) is False


def test_multi_flag_with_answer_texts_only():
    # No option flagged correct; the answer list names the correct options
    question = make_question(multiple=True, correct_answers=("A", "C"))
    assert evaluate(question, ["1", "3"]) is True
    assert evaluate(question, ["101", "103"]) is True
    assert evaluate(question, ["1"]) is False


# ============================================================================
# Tolerance for malformed data
# ============================================================================


def test_no_answer_key_accepts_any_selection():
    question = make_question()
    result = evaluate_detailed(question, ["3"])
    assert result.is_correct is True
    assert result.rule_fired == RULE_NO_ANSWER_KEY
    assert result.reduced_confidence is True
    assert evaluate(question, []) is False


def test_legacy_answer_list_without_flag():
    question = make_question(correct_ids=(101,), correct_answers=("A", "B"))

    assert evaluate_detailed(question, ["A"]).rule_fired == RULE_LEGACY_ANSWER_LIST
    assert evaluate(question, ["A"]) is True
    assert evaluate(question, ["B"]) is True
    assert evaluate(question, ["102"]) is True
    assert evaluate(question, ["1"]) is True
    assert evaluate(question, ["A", "B"]) is True
    assert evaluate(question, ["C"]) is False
    assert evaluate(question, ["A", "C"]) is False


def test_legacy_answer_list_with_all_listed_options_flagged():
    question = make_question(correct_ids=(101, 102), correct_answers=("A", "B"))

    result = evaluate_detailed(question, ["101"])
    assert result.is_correct is True
    assert result.rule_fired == RULE_LEGACY_ANSWER_LIST
    assert evaluate(question, ["2"]) is True
    assert evaluate(question, ["101", "102"]) is True
    assert evaluate(question, ["103"]) is False
    assert evaluate(question, ["101", "103"]) is False


def test_legacy_answer_list_with_no_option_flagged():
    question = make_question(correct_answers=("A", "B"))

    result = evaluate_detailed(question, ["A"])
    assert result.is_correct is True
    assert result.rule_fired == RULE_LEGACY_ANSWER_LIST
    assert evaluate(question, ["102"]) is True
    assert evaluate(question, ["1", "2"]) is True
    assert evaluate(question, ["C"]) is False


def test_legacy_answer_list_rejects_more_tokens_than_answers():
    question = make_question(correct_ids=(101,), correct_answers=("A", "B"))
    assert evaluate(question, ["A", "B", "101"]) is False


def test_select_up_to_without_key_data():
    question = make_question(
        correct_ids=(101,),
        text="Which features apply? (Select up to 3)",
    )
    result = evaluate_detailed(question, ["1", "2"])
    assert result.is_correct is True
    assert result.rule_fired == RULE_SELECT_UP_TO
    assert result.reduced_confidence is True
    assert evaluate(question, ["1", "2", "3"]) is True
    assert evaluate(question, ["1", "2", "3", "4"]) is False


def test_implied_multi_select_without_limit_accepts_any_selection():
    question = make_question(correct_ids=(101,), text="Select all that apply: which are widgets?")
    result = evaluate_detailed(question, ["4"])
    assert result.is_correct is True
    assert result.rule_fired == RULE_UNKEYED_MULTI_SELECT


def test_select_up_to_does_not_override_exact_set():
    question = make_question(
        correct_ids=(101, 102),
        text="Select up to 3 options",
        multiple=True,
    )
    assert evaluate(question, ["1", "2", "3"]) is False


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Select up to 3", 3),
        ("which ones? select UP TO 12 answers", 12),
        ("Select all that apply", 0),
        ("", 0),
    ],
)
def test_extract_select_up_to(text, expected):
    assert extract_select_up_to(text) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Select all that apply", True),
        ("Pick the best answers (select all applicable)", True),
        ("Which two? Select two.", True),
        ("Select 2 options", True),
        ("Select multiple", True),
        ("Which option is correct?", False),
    ],
)
def test_implies_multiple_selection(text, expected):
    assert implies_multiple_selection(text) is expected


def test_resolve_selected_option_prefers_id_then_position():
    question = make_question(correct_ids=(102,), first_id=1)
    # Token "3" is both id 3 and position 3 here; id wins and they coincide
    assert resolve_selected_option_id(question, ["3"]) == 3

    other = make_question(correct_ids=(102,))
    assert resolve_selected_option_id(other, ["103"]) == 103
    assert resolve_selected_option_id(other, ["2", "103"]) == 102
    assert resolve_selected_option_id(other, ["77"]) is None
    assert resolve_selected_option_id(other, []) is None


# ============================================================================
# Properties
# ============================================================================

OPTION_BASE = 100


@settings(max_examples=200, deadline=None)
@given(
    count=st.integers(min_value=2, max_value=6),
    data=st.data(),
)
def test_single_answer_id_and_position_both_correct(count, data):
    """
    Property: the correct option's id and its position are correct, any other
    single token is not.
    """
    correct_position = data.draw(st.integers(min_value=1, max_value=count))
    correct_id = OPTION_BASE + correct_position
    question = make_question(correct_ids=(correct_id,), first_id=OPTION_BASE + 1, count=count)

    assert evaluate(question, [str(correct_id)]) is True
    assert evaluate(question, [str(correct_position)]) is True

    other = data.draw(
        st.one_of(
            st.integers(min_value=1, max_value=count).filter(lambda p: p != correct_position),
            st.integers(min_value=OPTION_BASE + 1, max_value=OPTION_BASE + count).filter(
                lambda i: i != correct_id
            ),
            st.integers(min_value=1000, max_value=2000),
        )
    )
    assert evaluate(question, [str(other)]) is False


@settings(max_examples=300, deadline=None)
@given(
    count=st.integers(min_value=3, max_value=6),
    data=st.data(),
)
def test_multi_answer_exact_set_only(count, data):
    """
    Property: a multi-answer question is answered correctly iff the selected set
    equals the correct set, in any mix of id and position encodings.
    """
    positions = list(range(1, count + 1))
    correct = data.draw(st.sets(st.sampled_from(positions), min_size=2))
    selected = data.draw(st.sets(st.sampled_from(positions), min_size=1))
    question = make_question(
        correct_ids=tuple(OPTION_BASE + p for p in correct),
        first_id=OPTION_BASE + 1,
        count=count,
        multiple=True,
    )

    tokens = [
        str(OPTION_BASE + p) if data.draw(st.booleans()) else str(p)
        for p in sorted(selected)
    ]
    assert evaluate(question, tokens) is (selected == correct)
