from quizlive.services.games.scoring import (
    MAX_STREAK_BONUS,
    round_half_up,
    score,
    streak_bonus_for,
)


def test_instant_answer_earns_full_points():
    result = score(1000, 20000, 0, True, 0, True, False)
    assert result.points == 1000
    assert result.new_streak == 1
    assert result.time_bonus == 500
    assert result.streak_bonus == 0


def test_answer_at_deadline_earns_half():
    result = score(1000, 20000, 20000, True, 0, True, False)
    assert result.points == 500
    assert result.time_bonus == 0
    assert result.new_streak == 1


def test_late_answer_clamps_to_half_floor():
    result = score(1000, 20000, 45000, True, 0, True, False)
    assert result.points == 500
    assert result.time_bonus == 0


def test_flat_scoring_adds_streak_bonus():
    result = score(1000, 20000, 5000, False, 3, True, False)
    assert result.points == 1300
    assert result.new_streak == 4
    assert result.streak_bonus == 300
    assert result.time_bonus == 0


def test_speed_points_and_streak_bonus_stack():
    # 5s of 20s -> 87.5% of 1000, plus 2 * 100
    result = score(1000, 20000, 5000, True, 2, True, False)
    assert result.points == 875 + 200
    assert result.time_bonus == 375


def test_streak_bonus_is_capped():
    assert streak_bonus_for(0) == 0
    assert streak_bonus_for(4) == 400
    assert streak_bonus_for(5) == MAX_STREAK_BONUS
    assert streak_bonus_for(12) == MAX_STREAK_BONUS
    assert score(1000, 20000, 0, False, 9, True).points == 1500


def test_wrong_answer_resets_streak():
    result = score(1000, 20000, 100, True, 4, False, False)
    assert result == (0, 0, 0, 0, False)


def test_warmup_never_changes_score_or_streak():
    result = score(1000, 20000, 1000, True, 2, True, True)
    assert result.points == 0
    assert result.new_streak == 2
    assert result.time_bonus == 0
    assert result.streak_bonus == 0
    assert result.is_warmup

    wrong = score(1000, 20000, 1000, True, 2, False, True)
    assert (wrong.points, wrong.new_streak) == (0, 2)


def test_rounding_is_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4999) == 2
    # 1 - 10/20000 -> factor 0.99975 -> 99.975 rounds to 100
    assert score(100, 20000, 10, True, 0, True).points == 100


def test_zero_time_limit_falls_back_to_floor():
    assert score(1000, 0, 0, True, 0, True).points == 500
