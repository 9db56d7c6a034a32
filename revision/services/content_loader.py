"""Static content loader: question banks, answer keys, lesson manifests and lesson markdown.

Usage:
    from revision.services.content_loader import ContentLoader

    async with ContentLoader() as loader:
        bank = await loader.load_bank("maths")
        lessons = await loader.load_lessons("maths")

Content is served over HTTP under /data/{subject}/... (the service mounts its
own copy, see server.py). Every fetch or parse problem surfaces as
ContentUnavailable; transport errors are retried first.
"""

import logging
import re
from typing import Any, Optional

import httpx
import yaml
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from revision.config import settings
from revision.errors import ContentUnavailable
from revision.models.lesson import LessonContent, LessonMeta, LessonScreen
from revision.models.practice import Difficulty, Question, QuestionBank

logger = logging.getLogger(__name__)

_BANK_PREFIX_RE = re.compile(r"^\d+_")
_FRONTMATTER_RE = re.compile(r"^---[ \t]*\n(.*?)\n---[ \t]*(?:\n|$)", re.DOTALL)
_SCREEN_SPLIT_RE = re.compile(r"^---[ \t]*$", re.MULTILINE)
_SCREEN_TITLE_RE = re.compile(r"^# Screen \d+:\s*(.+)$")


def topic_for_bank(bank_name: str) -> str:
    """001_BIDMAS -> bidmas"""
    return _BANK_PREFIX_RE.sub("", bank_name).lower()


def flatten_sections(questions_json: dict, topic: str) -> list[Question]:
    """Flatten {"sections": [{..., "questions": [...]}]} into one list of Questions."""
    try:
        sections = questions_json["sections"]
        flat = []
        for section in sections:
            difficulty = Difficulty(section["difficulty"])
            for q in section["questions"]:
                flat.append(
                    Question(
                        id=int(q["id"]),
                        topic=topic,
                        question_text=q["question"],
                        difficulty=difficulty,
                        subtopic=section.get("sectionTitle", "") or "",
                        section_id=section.get("sectionId"),
                    )
                )
        return flat
    except (KeyError, TypeError, ValueError) as exc:
        raise ContentUnavailable(f"questions for {topic}", f"malformed: {exc}") from exc


def answer_map(answers_json: dict, topic: str) -> dict[str, Any]:
    """{"answers": [{"id": 1, "answer": 4}, ...]} -> {"bidmas-1": 4, ...}"""
    try:
        return {f"{topic}-{int(a['id'])}": a["answer"] for a in answers_json["answers"]}
    except (KeyError, TypeError, ValueError) as exc:
        raise ContentUnavailable(f"answers for {topic}", f"malformed: {exc}") from exc


def parse_lesson_markdown(content: str) -> LessonContent:
    """Split a lesson file into frontmatter metadata and titled screens.

    Screens are separated by standalone `---` lines. A screen takes its title
    from a `# Screen N: Title` heading found in its first five lines.
    """
    metadata: dict = {}
    body = content
    match = _FRONTMATTER_RE.match(content)
    if match:
        try:
            metadata = yaml.safe_load(match.group(1)) or {}
        except yaml.YAMLError as exc:
            raise ContentUnavailable("lesson frontmatter", str(exc)) from exc
        if not isinstance(metadata, dict):
            metadata = {}
        body = content[match.end():]

    screens = []
    for index, section in enumerate(_SCREEN_SPLIT_RE.split(body.strip())):
        lines = section.strip().split("\n")
        title = f"Screen {index + 1}"
        start = 0
        for i, line in enumerate(lines[:5]):
            line = line.strip()
            if line.startswith("# Screen "):
                title_match = _SCREEN_TITLE_RE.match(line)
                if title_match:
                    title = title_match.group(1).strip()
                start = i + 1
                break
        text = "\n".join(lines[start:]).strip()
        if text:
            screens.append(LessonScreen(title=title, content=text))

    return LessonContent(metadata=metadata, screens=screens)


class ContentLoader:
    """Async client for the static content tree.

    A custom transport can be injected for tests (httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        banks: Optional[dict[str, list[str]]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.banks = banks if banks is not None else settings.practice_banks
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.content_base_url,
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type(httpx.TransportError),
        before_sleep=lambda retry_state: logger.warning(
            "Content fetch failed (attempt %d), retrying: %s",
            retry_state.attempt_number,
            retry_state.outcome.exception(),
        ),
        reraise=True,
    )
    async def _get(self, path: str) -> httpx.Response:
        return await self._client.get(path)

    async def _fetch(self, path: str) -> httpx.Response:
        try:
            response = await self._get(path)
        except httpx.HTTPError as exc:
            logger.error(f"Fetching {path} failed: {exc}")
            raise ContentUnavailable(path, str(exc)) from exc
        if response.status_code != 200:
            logger.error(f"Fetching {path} returned HTTP {response.status_code}")
            raise ContentUnavailable(path, f"HTTP {response.status_code}")
        return response

    async def fetch_json(self, path: str) -> Any:
        response = await self._fetch(path)
        try:
            return response.json()
        except ValueError as exc:
            raise ContentUnavailable(path, "invalid JSON") from exc

    async def fetch_text(self, path: str) -> str:
        response = await self._fetch(path)
        return response.text

    # ── Question banks ───────────────────────────────────────────────

    async def load_bank(self, subject: str) -> QuestionBank:
        """Load and merge every configured question bank of a subject."""
        subject = subject.lower()
        bank_names = self.banks.get(subject)
        if not bank_names:
            raise ContentUnavailable(f"question banks for {subject}", "none configured")

        bank = QuestionBank(subject=subject)
        for name in bank_names:
            questions_json = await self.fetch_json(f"/data/{subject}/questions/{name}_questions.json")
            answers_json = await self.fetch_json(f"/data/{subject}/answers/{name}_answers.json")
            if not isinstance(questions_json, dict) or not isinstance(answers_json, dict):
                raise ContentUnavailable(f"bank {name}", "expected JSON objects")

            topic = questions_json.get("topic") or topic_for_bank(name)
            questions = flatten_sections(questions_json, topic)
            answers = answer_map(answers_json, topic)

            for question in questions:
                if question.key not in answers:
                    logger.warning(f"Question {question.key} has no answer key, skipping")
                    continue
                bank.questions.append(question)
                bank.answers[question.key] = answers[question.key]

        logger.info(f"Loaded {len(bank.questions)} questions for {subject}")
        return bank

    # ── Lessons ──────────────────────────────────────────────────────

    async def load_lessons(self, subject: str) -> list[LessonMeta]:
        data = await self.fetch_json(f"/data/{subject.lower()}/lessons.json")
        try:
            return [LessonMeta.model_validate(item) for item in data["lessons"]]
        except (KeyError, TypeError, ValueError) as exc:
            raise ContentUnavailable(f"lessons for {subject}", f"malformed: {exc}") from exc

    async def load_lesson_content(self, subject: str, lesson: LessonMeta) -> LessonContent:
        """Fetch and parse a lesson's markdown instructions.

        Tries {number}_{TOPIC}_lesson.md first, where TOPIC is the first word
        of the slug, then {number}_lesson.md.
        """
        subject = subject.lower()
        topic_code = lesson.slug.split("-")[0].upper()
        candidates = [
            f"/data/{subject}/instructions/{lesson.number}_{topic_code}_lesson.md",
            f"/data/{subject}/instructions/{lesson.number}_lesson.md",
        ]
        last_error: Optional[ContentUnavailable] = None
        for path in candidates:
            try:
                markdown = await self.fetch_text(path)
            except ContentUnavailable as exc:
                last_error = exc
                continue
            return parse_lesson_markdown(markdown)
        raise last_error


async def get_content_loader():
    """FastAPI dependency yielding a ContentLoader for the request."""
    loader = ContentLoader()
    try:
        yield loader
    finally:
        await loader.aclose()
