"""Registration challenge that only a calculator-equipped agent is expected to solve."""

import random
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RobotChallenge:
    top_k: int
    temperature: float
    question: str
    answer: int


# PUBLIC_INTERFACE
def generate_robot_challenge(rng: Optional[random.Random] = None) -> RobotChallenge:
    """Draw top_k in [10, 59] and temperature in [0.0, 2.0] and build the question."""
    rng = rng or random
    top_k = rng.randint(10, 59)
    temperature = round(rng.random() * 2, 1)
    answer = top_k * 10 + round(temperature * 100)
    question = f"(top_k * 10) + (temperature * 100) | Params: top_k={top_k}, temperature={temperature:.1f}"
    return RobotChallenge(top_k=top_k, temperature=temperature, question=question, answer=answer)


# PUBLIC_INTERFACE
def check_answer(submitted: Optional[str], expected: Optional[int]) -> bool:
    """Compare the submitted text, parsed as an integer, with the stored answer."""
    if expected is None or submitted is None:
        return False
    try:
        return int(submitted.strip()) == expected
    except ValueError:
        return False
