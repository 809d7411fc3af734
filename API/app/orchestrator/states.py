from enum import Enum


class Screen(str, Enum):
    HOME = "HOME"
    INPUT = "INPUT"
    ANALYSIS = "ANALYSIS"
    DIARY = "DIARY"


class ScreenAction(str, Enum):
    PICK_SUBJECT = "pick_subject"
    OPEN_DIARY = "open_diary"
    RUN_ANALYSIS = "run_analysis"
    BACK = "back"


TRANSITIONS: dict[tuple[Screen, ScreenAction], Screen] = {
    (Screen.HOME, ScreenAction.PICK_SUBJECT): Screen.INPUT,
    (Screen.HOME, ScreenAction.OPEN_DIARY): Screen.DIARY,
    (Screen.INPUT, ScreenAction.RUN_ANALYSIS): Screen.ANALYSIS,
    (Screen.INPUT, ScreenAction.BACK): Screen.HOME,
    (Screen.ANALYSIS, ScreenAction.BACK): Screen.INPUT,
    (Screen.DIARY, ScreenAction.BACK): Screen.HOME,
}
