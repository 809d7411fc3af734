from __future__ import annotations

import asyncio
import html
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from app.client.gateway_client import GatewayClient
from app.client.image_normalizer import DATA_URI_PREFIX, encode_frame, load_image_file, normalize_image
from app.client.render import render_diary_entry, render_markdown, render_quiz
from app.core.logging import DOMAIN_UI, get_domain_logger
from app.core.settings import settings
from app.memory.diary_store import DiaryRepository
from app.orchestrator.engine import ScreenEngine
from app.orchestrator.states import Screen, ScreenAction
from app.schemas.diary import DiaryEntry
from app.schemas.homework import STUDY_SUBJECTS, AIResultDocument, QuizDocument, Subject

logger = get_domain_logger(__name__, DOMAIN_UI)

STATUS_CALLING = "Calling the expert team..."
STATUS_ANALYSING = "Experts are analysing..."
RECEIVING_PLACEHOLDER = "Receiving solution data..."
PREPARING_PLACEHOLDER = "Preparing content..."
PRACTICE_NOTICE = "A similar practice exercise has been prepared below."
STEPS_HEADING = "### Key analysis:\n"
IMAGE_INPUT_LABEL = "Image"
MISSING_INPUT_MESSAGE = "Please enter the exercise or take a photo!"
CAMERA_PERMISSION_MESSAGE = "Please grant camera permission!"
SAVED_MESSAGE = "Saved to diary"


class AgentType(str, Enum):
    """Display tabs over the single result document."""

    SPEED = "Speed"
    SOCRATIC = "Socratic"
    PERPLEXITY = "Perplexity"


class CameraUnavailableError(RuntimeError):
    pass


class MissingInputError(ValueError):
    pass


@dataclass
class SessionState:
    subject: Subject | None = None
    image: str | None = None
    voice_text: str = ""
    selected_agent: AgentType = AgentType.SPEED
    results: dict[AgentType, str] = field(default_factory=dict)
    document: AIResultDocument | None = None
    quiz_answer: int | None = None
    loading: bool = False
    loading_status: str = ""
    saved: bool = False
    countdown: int = 0

    @property
    def quiz(self) -> QuizDocument | None:
        return self.document.quiz if self.document else None

    @property
    def supplementary_steps(self) -> str | None:
        if not self.document or not self.document.steps:
            return None
        return "\n\n".join(self.document.steps)

    def clear_results(self) -> None:
        self.results = {}
        self.document = None
        self.quiz_answer = None
        self.saved = False


class HomeworkController:
    def __init__(self, gateway: GatewayClient, diary: DiaryRepository, engine: ScreenEngine | None = None):
        self.gateway = gateway
        self.diary = diary
        self.engine = engine or ScreenEngine()
        self.state = SessionState()

    @property
    def screen(self) -> Screen:
        return self.engine.current

    def select_subject(self, subject: Subject) -> Screen:
        action = ScreenAction.OPEN_DIARY if subject == Subject.DIARY else ScreenAction.PICK_SUBJECT
        self.engine.apply(action)
        self.state = SessionState(subject=None if subject == Subject.DIARY else subject)
        logger.info("Screen changed | screen=%s subject=%s", self.screen.value, subject.value)
        return self.screen

    def set_voice_text(self, text: str) -> None:
        self.state.voice_text = text or ""

    def attach_image(self, data_uri: str) -> None:
        self.state.image = data_uri

    def attach_image_file(self, path: str | Path) -> None:
        self.state.image = load_image_file(path)

    async def capture_image(self, source, countdown: int | None = None) -> str:
        """Count down, grab one frame from ``source`` and keep it as a JPEG data URI.

        ``source`` is any camera handle with ``read()`` (a PIL image or encoded
        bytes) and ``release()``. The camera is released whether or not the
        capture succeeds.
        """
        state = self.state
        state.countdown = settings.camera_countdown_seconds if countdown is None else countdown
        try:
            while state.countdown > 0:
                await asyncio.sleep(1)
                state.countdown -= 1
            try:
                frame = source.read()
            except OSError as exc:
                logger.warning("Camera capture failed | error=%s", exc)
                raise CameraUnavailableError(CAMERA_PERMISSION_MESSAGE) from exc
            state.image = encode_frame(frame)
        finally:
            state.countdown = 0
            source.release()
        logger.info("Photo captured | subject=%s", state.subject.value if state.subject else "-")
        return state.image

    def back(self) -> Screen:
        self.engine.apply(ScreenAction.BACK)
        return self.screen

    def select_agent(self, agent: AgentType) -> str:
        self.state.selected_agent = agent
        self.state.saved = False
        return self.state.results.get(agent) or PREPARING_PLACEHOLDER

    def _on_fragment(self, _text: str) -> None:
        # Partial text is never shown; only the placeholder.
        self.state.loading_status = STATUS_ANALYSING
        self.state.results[AgentType.SPEED] = RECEIVING_PLACEHOLDER

    def _show_document(self, document: AIResultDocument) -> None:
        self.state.document = document
        self.state.results = {
            AgentType.SPEED: document.final_answer,
            AgentType.SOCRATIC: STEPS_HEADING + "\n\n".join(document.steps),
            AgentType.PERPLEXITY: PRACTICE_NOTICE,
        }

    async def run_analysis(self) -> AIResultDocument | None:
        state = self.state
        if not state.image and not state.voice_text:
            raise MissingInputError(MISSING_INPUT_MESSAGE)
        if state.subject not in STUDY_SUBJECTS:
            raise MissingInputError("Pick a subject first")
        self.engine.apply(ScreenAction.RUN_ANALYSIS)

        state.loading = True
        state.loading_status = STATUS_CALLING
        state.clear_results()
        try:
            image = state.image
            if image and image.startswith(f"{DATA_URI_PREFIX}image"):
                image = normalize_image(image)
            document = await self.gateway.stream_solution(
                state.subject,
                image=image,
                voice_text=state.voice_text,
                on_fragment=self._on_fragment,
            )
            self._show_document(document)
            return document
        except Exception as exc:
            logger.warning("Analysis failed | subject=%s error=%s", state.subject.value, exc)
            state.results[AgentType.SPEED] = f"Error: {str(exc) or 'Connection failed'}. Check the API key!"
            return None
        finally:
            state.loading = False
            state.loading_status = ""

    def answer_quiz(self, index: int) -> bool:
        quiz = self.state.quiz
        if quiz is None:
            raise ValueError("No quiz to answer")
        if not 0 <= index < len(quiz.options):
            raise ValueError(f"Option index out of range: {index}")
        self.state.quiz_answer = index
        return index == quiz.correct_index

    def save_diary(self) -> DiaryEntry | None:
        state = self.state
        content = state.results.get(state.selected_agent)
        if state.subject is None or not content:
            return None
        entry = DiaryEntry(
            subject=state.subject,
            section=state.selected_agent.value,
            input_text=state.voice_text or IMAGE_INPUT_LABEL,
            image=state.image,
            result_content=content,
            supplementary_steps=state.supplementary_steps,
        )
        self.diary.append(entry)
        state.saved = True
        return entry

    def diary_entries(self) -> list[DiaryEntry]:
        """Newest first."""
        return list(reversed(self.diary.list()))

    def render(self) -> str:
        state = self.state
        if self.screen == Screen.DIARY:
            entries = self.diary_entries()
            if not entries:
                return '<p class="empty">No diary entries yet</p>'
            return "\n".join(render_diary_entry(entry) for entry in entries)
        if self.screen != Screen.ANALYSIS:
            return ""
        if state.loading:
            return f'<p class="status">{state.loading_status}</p>'
        blocks = []
        # The acknowledgement is shown by one render only.
        if state.saved:
            blocks.append(f'<p class="saved">{SAVED_MESSAGE}</p>')
            state.saved = False
        blocks.append(render_markdown(state.results.get(state.selected_agent) or PREPARING_PLACEHOLDER))
        if state.selected_agent == AgentType.SPEED and state.supplementary_steps:
            blocks.append(f'<pre class="steps">{html.escape(state.supplementary_steps)}</pre>')
        if state.quiz is not None:
            blocks.append(render_quiz(state.quiz, state.quiz_answer))
        return "\n".join(blocks)
