from dataclasses import dataclass

from app.orchestrator.states import TRANSITIONS, Screen, ScreenAction


class InvalidTransitionError(ValueError):
    pass


@dataclass
class TransitionResult:
    previous: Screen
    current: Screen
    action: ScreenAction


class ScreenEngine:
    """Exactly one active screen; it only moves on an explicit user action."""

    def __init__(self, initial: Screen = Screen.HOME):
        self.current = initial

    def can(self, action: ScreenAction) -> bool:
        return (self.current, action) in TRANSITIONS

    def apply(self, action: ScreenAction) -> TransitionResult:
        target = TRANSITIONS.get((self.current, action))
        if target is None:
            raise InvalidTransitionError(f"Cannot {action.value} from {self.current.value}")
        result = TransitionResult(previous=self.current, current=target, action=action)
        self.current = target
        return result

    def reset(self) -> None:
        self.current = Screen.HOME
