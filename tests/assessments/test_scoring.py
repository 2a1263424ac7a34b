"""Tests for quiz scoring."""

import pytest

from learnpath.assessments.scoring import round_half_up, score_answer, time_bonus


class TestTimeBonus:
    def test_instant_answer_gets_full_bonus(self):
        assert time_bonus(0, 60) == 50

    def test_bonus_decays_linearly(self):
        assert time_bonus(15, 60) == 25

    def test_no_bonus_from_half_limit_on(self):
        assert time_bonus(30, 60) == 0
        assert time_bonus(59, 60) == 0

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            time_bonus(1, 0)


class TestScoreAnswer:
    def test_wrong_answer_scores_zero(self):
        assert score_answer(False, 0, 60) == 0

    def test_correct_answer_base_plus_bonus(self):
        assert score_answer(True, 0, 60) == 150
        assert score_answer(True, 30, 60) == 100

    def test_half_point_rounds_up(self):
        # 100 + 50 - 5/20 * 50 = 137.5
        assert score_answer(True, 5, 40) == 138

    def test_round_half_up(self):
        assert round_half_up(137.5) == 138
        assert round_half_up(137.49) == 137
        assert round_half_up(2.5) == 3
