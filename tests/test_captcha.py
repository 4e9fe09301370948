import random

from socialclaw.services.captcha import check_answer, generate_robot_challenge


def test_answer_matches_parameters():
    rng = random.Random(1234)
    for _ in range(200):
        challenge = generate_robot_challenge(rng)
        assert 10 <= challenge.top_k <= 59
        assert 0.0 <= challenge.temperature <= 2.0
        assert challenge.answer == challenge.top_k * 10 + round(challenge.temperature * 100)
        assert f"top_k={challenge.top_k}" in challenge.question
        assert f"temperature={challenge.temperature:.1f}" in challenge.question


def test_check_answer():
    assert check_answer("470", 470)
    assert check_answer(" 470 ", 470)
    assert not check_answer("471", 470)
    assert not check_answer("four hundred", 470)
    assert not check_answer("", 470)
    assert not check_answer(None, 470)
    assert not check_answer("470", None)
