import pytest


class ScriptedResolver:
    """Returns the given draws in order, ignoring the die."""

    def __init__(self, draws, exhaustive=False):
        self.draws = list(draws)
        self.exhaustive = exhaustive
        self.calls = 0

    def draw(self, die):
        self.calls += 1
        return float(self.draws.pop(0))


class ScriptedRng:
    """Stands in for random.Random inside RandomResolver."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = 0

    def randint(self, low, high):
        self.calls += 1
        return self.values.pop(0)

    def choice(self, seq):
        self.calls += 1
        return self.values.pop(0)


@pytest.fixture
def scripted():
    return ScriptedResolver


@pytest.fixture
def scripted_rng():
    return ScriptedRng
