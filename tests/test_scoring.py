from decimal import Decimal

import pytest

from quiz_service.answers import parse_answer, parse_definition
from quiz_service.models import QuestionType
from quiz_service.scoring import ShortAnswerMatch, score, texts_match


def _mcq_multiple():
    return parse_definition(QuestionType.MCQ_MULTIPLE, ["A", "B", "C"], ["A", "C"], Decimal("4"), question_id=1)


class TestChoiceScoring:
    """MCQ answers score only on exact set equality."""

    def test_exact_set_scores_full_points(self):
        out = score(_mcq_multiple(), parse_answer(QuestionType.MCQ_MULTIPLE, ["C", "A"]))
        assert out.is_correct
        assert out.points_earned == Decimal("4")

    @pytest.mark.parametrize("submitted", [["A"], ["A", "B", "C"], []])
    def test_subsets_supersets_and_empty_score_zero(self, submitted):
        out = score(_mcq_multiple(), parse_answer(QuestionType.MCQ_MULTIPLE, submitted))
        assert not out.is_correct
        assert out.points_earned == Decimal("0")

    def test_single_choice_with_extra_selection_is_incorrect(self):
        q = parse_definition(QuestionType.MCQ_SINGLE, ["A", "B"], ["A"], Decimal("5"))
        assert not score(q, frozenset({"A", "B"})).is_correct
        assert score(q, frozenset({"A"})).points_earned == Decimal("5")

    def test_unknown_option_is_incorrect_not_an_error(self):
        q = parse_definition(QuestionType.MCQ_SINGLE, ["A", "B"], ["A"], Decimal("5"))
        assert not score(q, frozenset({"Z"})).is_correct

    def test_text_answer_against_choice_key_is_incorrect(self):
        assert not score(_mcq_multiple(), "A").is_correct


class TestTextScoring:

    def test_exact_match_is_the_default(self):
        q = parse_definition(QuestionType.SHORT_ANSWER, None, "blue", Decimal("5"))
        assert score(q, "blue").is_correct
        assert not score(q, "Blue").is_correct
        assert not score(q, " blue").is_correct

    def test_configured_strategy_is_applied(self):
        q = parse_definition(QuestionType.SHORT_ANSWER, None, "blue", Decimal("5"))
        out = score(q, "  BLUE ", ShortAnswerMatch.CASE_INSENSITIVE)
        assert out.is_correct
        assert out.points_earned == Decimal("5")


@pytest.mark.parametrize(
    "submitted, expected, strategy, matches",
    [
        ("blue", "blue", ShortAnswerMatch.EXACT, True),
        ("blue ", "blue", ShortAnswerMatch.EXACT, False),
        (" blue\t", "blue", ShortAnswerMatch.TRIMMED, True),
        ("Blue", "blue", ShortAnswerMatch.TRIMMED, False),
        (" BLUE ", "blue", ShortAnswerMatch.CASE_INSENSITIVE, True),
        ("dark  blue", "dark blue", ShortAnswerMatch.CASE_INSENSITIVE, False),
        ("Dark \n Blue", "dark blue", ShortAnswerMatch.NORMALIZED, True),
        ("ｂｌｕｅ", "blue", ShortAnswerMatch.NORMALIZED, True),
    ],
)
def test_texts_match(submitted, expected, strategy, matches):
    assert texts_match(submitted, expected, strategy) is matches


def test_from_setting_is_case_insensitive():
    assert ShortAnswerMatch.from_setting(" trimmed ") is ShortAnswerMatch.TRIMMED


def test_from_setting_rejects_unknown_values():
    with pytest.raises(RuntimeError, match="SHORT_ANSWER_MATCH"):
        ShortAnswerMatch.from_setting("fuzzy")
