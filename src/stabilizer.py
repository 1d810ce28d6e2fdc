"""Debounce of the published symbol sequence."""

from dataclasses import dataclass

from config import STABILIZER_CONFIRMATIONS


@dataclass
class StabilizedOutput:
    candidate: str = ""
    confirm_count: int = 0
    published: str = ""


class SequenceStabilizer:
    """
    Publishes a sequence only after it has been read `confirmations`
    times in a row, so a single stray reclassification never shows up.
    """

    def __init__(self, confirmations: int = STABILIZER_CONFIRMATIONS):
        self.confirmations = confirmations
        self.state = StabilizedOutput()

    @property
    def published(self) -> str:
        return self.state.published

    def update(self, sequence: str) -> str:
        current = sequence.strip()
        state = self.state
        if current == state.candidate:
            state.confirm_count += 1
        else:
            state.candidate = current
            state.confirm_count = 1

        if state.confirm_count >= self.confirmations:
            state.published = state.candidate
        return state.published

    def reset(self) -> None:
        self.state = StabilizedOutput()
