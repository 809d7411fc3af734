from app.schemas.homework import SolveRequest

DEFAULT_IMAGE_MIME = "image/jpeg"
NO_TEXT_HINT = "Please read the exercise from the attached image"

INSTRUCTIONS = """You are the exercise-solving expert of the SM-AS homework system.
Subject: {subject}.
Task: solve this exercise in detail and return the result as plain JSON only.

REQUIRED JSON STRUCTURE:
{{
  "solution": {{
    "ans": "Short final answer",
    "steps": ["Step 1...", "Step 2...", "Step 3..."]
  }},
  "quiz": {{
    "q": "A similar multiple-choice question for practice",
    "opt": ["Option A", "Option B", "Option C", "Option D"],
    "correct": 0,
    "reason": "Short explanation of why that option is correct"
  }}
}}

Additional content from the user: {user_text}."""


def build_prompt_text(subject: str, user_text: str | None) -> str:
    return INSTRUCTIONS.format(subject=subject, user_text=(user_text or "").strip() or NO_TEXT_HINT)


def split_image(image: str) -> tuple[str, str]:
    """Return (mime_type, base64_data) for a data URI or a bare base64 string."""
    if "," not in image:
        return DEFAULT_IMAGE_MIME, image.strip()
    header, data = image.split(",", 1)
    mime = DEFAULT_IMAGE_MIME
    if header.startswith("data:"):
        declared = header[len("data:"):].split(";", 1)[0].strip()
        if declared.startswith("image/"):
            mime = declared
    return mime, data.strip()


def build_parts(request: SolveRequest) -> list[dict]:
    parts: list[dict] = [{"text": build_prompt_text(request.subject.value, request.user_text)}]
    if request.image and request.image.strip():
        mime, data = split_image(request.image)
        if data:
            parts.append({"inlineData": {"mimeType": mime, "data": data}})
    return parts
