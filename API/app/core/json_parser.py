import json

from pydantic import ValidationError

from app.schemas.homework import AIResultDocument

INVALID_FORMAT_MESSAGE = "AI returned an invalid format"


class InvalidResultFormatError(ValueError):
    def __init__(self, message: str = INVALID_FORMAT_MESSAGE):
        super().__init__(message)


def parse_llm_json(text: str):
    if not text or not text.strip():
        raise InvalidResultFormatError()
    try:
        return json.loads(text.strip())
    except json.JSONDecodeError as exc:
        raise InvalidResultFormatError() from exc


def parse_result_document(text: str) -> AIResultDocument:
    """Parse the full generated text as one result document, or fail as a whole."""
    data = parse_llm_json(text)
    if not isinstance(data, dict):
        raise InvalidResultFormatError()
    try:
        return AIResultDocument.model_validate(data)
    except ValidationError as exc:
        raise InvalidResultFormatError() from exc
