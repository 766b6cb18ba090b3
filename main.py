"""
Interview Prep - Main Module
Handles resume text extraction, question generation and model output parsing.
"""

import os
import io
import json
import re
import time
import pypdf
import requests
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError
from typing import List, Dict, Any, Optional, Tuple

load_dotenv()

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MODELS = ["gemini-2.5-flash", "gemini-2.5-pro", "gemini-2.0-flash"]

DEFAULT_QUESTION_COUNT = 10
MAX_QUESTION_COUNT = 25


# --- ERRORS ---

class InterviewPrepError(Exception):
    """Base error carrying the HTTP status and payload returned to the client."""
    status_code = 500

    def __init__(self, message: str, details: Any = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class PDFExtractionError(InterviewPrepError):
    status_code = 500


class EmptyResumeTextError(InterviewPrepError):
    status_code = 400


class MissingAPIKeyError(InterviewPrepError):
    status_code = 500


class ModelUnavailableError(InterviewPrepError):
    status_code = 503


class EmptyModelOutputError(InterviewPrepError):
    status_code = 500


class ModelOutputParseError(InterviewPrepError):
    status_code = 500


class InterviewQuestion(BaseModel):
    question: str = Field(description="The interview question, phrased as the interviewer would ask it.")
    answer: str = Field(default="", description="A detailed model answer grounded in the resume.")


# --- CONFIGURATION ---

def get_api_key(api_key: str = None) -> str:
    return api_key or os.getenv("GEMINI_API_KEY") or ""


def get_preferred_models() -> List[str]:
    raw = os.getenv("GEMINI_MODELS", "")
    models = [m.strip() for m in raw.split(",") if m.strip()]
    return models or list(DEFAULT_MODELS)


def _env_number(name: str, default, cast=int):
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return cast(value)
    except ValueError:
        print(f"⚠️ Ignoring invalid {name}={value!r}, using {default}")
        return default


# --- PDF ---

def extract_text_from_pdf(file_stream) -> str:
    """Extract text from a PDF file stream (or raw bytes), including link annotations."""
    if isinstance(file_stream, (bytes, bytearray)):
        file_stream = io.BytesIO(file_stream)

    try:
        reader = pypdf.PdfReader(file_stream)
        text = ""
        for page in reader.pages:
            text += (page.extract_text() or "") + "\n"

            # Extract links from annotations
            if "/Annots" in page:
                for annot in page["/Annots"]:
                    obj = annot.get_object()
                    if "/A" in obj and "/URI" in obj["/A"]:
                        uri = obj["/A"]["/URI"]
                        text += f" [Extracted Link: {uri}] "
    except Exception as e:
        print(f"❌ Error extracting text from PDF: {e}")
        raise PDFExtractionError("Failed to extract text from PDF", details=str(e)[:1000]) from e

    return text.strip()


# --- MODEL CALLS ---

def build_questions_prompt(resume_text: str, count: int = DEFAULT_QUESTION_COUNT) -> str:
    return f"""You are an AI interview assistant. Based on the resume below, generate exactly {count} interview questions with detailed answers.
IMPORTANT: Return ONLY a single JSON array (no surrounding text, no markdown, no backticks) in this exact format:
[
  {{"question":"Question text","answer":"Detailed answer"}}
]
Escape internal double quotes as \\" and backslashes as \\\\. Replace literal newlines in answers with \\n.

Resume:
{resume_text}"""


def call_gemini_once(model: str, prompt: str, api_key: str, timeout: float = None) -> Tuple[requests.Response, Optional[dict]]:
    """
    Call a single Gemini model once via REST.
    Returns the raw response and its decoded JSON body (None if the body is not JSON).
    """
    if timeout is None:
        timeout = _env_number("GEMINI_TIMEOUT", 60, float)

    url = GEMINI_ENDPOINT.format(model=model)
    payload = {
        "contents": [{
            "parts": [{"text": prompt}]
        }],
        "generationConfig": {"temperature": 0.0, "maxOutputTokens": 8192}
    }

    response = requests.post(
        url,
        params={"key": api_key},
        headers={"Content-Type": "application/json"},
        json=payload,
        timeout=timeout
    )

    try:
        data = response.json()
    except ValueError:
        data = None
    return response, data


def _is_transient(status: int) -> bool:
    return status == 429 or 500 <= status < 600


def generate_with_fallback(prompt: str, api_key: str = None, models: List[str] = None,
                           max_retries: int = None, initial_backoff: float = None):
    """
    Call Gemini with retries and a fallback chain of models.

    Each model gets up to max_retries attempts. Rate limits (429), server errors (5xx)
    and connection failures sleep and retry with a doubling backoff; the backoff resets
    for the next model. Any other non-2xx status is returned to the caller untouched.

    Returns (response, data, model_used).
    """
    api_key = get_api_key(api_key)
    if not api_key:
        raise MissingAPIKeyError("Missing GEMINI_API_KEY in environment")

    if models is None:
        models = get_preferred_models()
    if max_retries is None:
        max_retries = _env_number("GEMINI_MAX_RETRIES", 3)
    if initial_backoff is None:
        initial_backoff = _env_number("GEMINI_INITIAL_BACKOFF", 0.5, float)

    for model_name in models:
        attempt = 0
        backoff = initial_backoff
        while attempt < max_retries:
            attempt += 1
            print(f"   ⚡ Gemini: Attempting with {model_name} ({attempt}/{max_retries})...")
            try:
                response, data = call_gemini_once(model_name, prompt, api_key)
            except requests.RequestException as e:
                print(f"   ⚠️ Exception calling {model_name}: {e}")
                time.sleep(backoff)
                backoff *= 2
                continue

            if response.ok:
                return response, data, model_name

            status = response.status_code
            if _is_transient(status):
                print(f"   ⚠️ Transient error from {model_name} (status {status}) - "
                      f"retry {attempt}/{max_retries} after {backoff:.1f}s")
                time.sleep(backoff)
                backoff *= 2
                continue

            # Non-transient: hand back so the caller can show details
            return response, data, model_name

        print(f"   ⚠️ Exhausted retries for {model_name}, trying next model if available.")

    raise ModelUnavailableError("All model attempts failed after retries. Try again later.")


def extract_candidate_text(data: Any) -> str:
    """Locate the generated text inside a Gemini generateContent payload."""
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""

    first = candidates[0]
    if isinstance(first, str):
        return first
    if not isinstance(first, dict):
        return ""

    content = first.get("content")
    parts = []
    if isinstance(content, dict):
        parts = content.get("parts") or []
    text = "".join(p.get("text") or "" for p in parts if isinstance(p, dict))
    if text:
        return text

    output = first.get("output")
    return output if isinstance(output, str) else ""


# --- OUTPUT PARSING ---

_INVALID_ESCAPE = re.compile(r'\\(\\|["/bfnrt]|u[0-9a-fA-F]{4})|\\')
_TRAILING_COMMA = re.compile(r',\s*([\]}])')


def _repair_json(candidate: str) -> str:
    """Mild cleanup: smart quotes, stray backslashes, trailing commas."""
    attempt = re.sub(r'[“”]', '"', candidate)
    attempt = re.sub(r'[‘’]', "'", attempt)
    # Keep valid escapes (and escaped backslashes) intact, double everything else
    attempt = _INVALID_ESCAPE.sub(lambda m: m.group(0) if m.group(1) else '\\\\', attempt)
    attempt = _TRAILING_COMMA.sub(r'\1', attempt)
    return attempt


def extract_json_array_from_text(text: str) -> list:
    """
    Pull a JSON array out of free-form model output.

    Strips markdown fences, takes everything from the first '[' to the last ']' and
    parses it. If that fails, a cleanup pass fixes the usual LLM damage (curly quotes,
    unescaped backslashes, raw newlines in strings, trailing commas) before a second
    attempt. Raises ModelOutputParseError when nothing usable comes out.
    """
    if not text or not isinstance(text, str):
        raise ModelOutputParseError("No text provided")

    cleaned = re.sub(r'```json|```', '', text).strip()
    match = re.search(r'\[[\s\S]*\]', cleaned)
    if not match:
        raise ModelOutputParseError("No JSON array found", details={"cleaned": cleaned[:3000]})

    candidate = match.group(0)
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        attempt = _repair_json(candidate)
        try:
            # strict=False lets literal newlines/tabs through inside strings
            parsed = json.loads(attempt, strict=False)
        except json.JSONDecodeError as e:
            raise ModelOutputParseError(
                "JSON parse failed after cleanup",
                details={"cleaned": attempt[:3000], "parse_error": str(e)}
            ) from e

    # Only reachable if the bracket match above is loosened
    if not isinstance(parsed, list):
        raise ModelOutputParseError("Parsed content is not an array", details={"parsed_preview": str(parsed)[:1000]})
    return parsed


def coerce_questions(items: list) -> List[InterviewQuestion]:
    """Validate parsed items as question/answer pairs, dropping the ones that don't fit."""
    questions = []
    dropped = 0
    for item in items:
        try:
            questions.append(InterviewQuestion.model_validate(item))
        except ValidationError:
            dropped += 1

    if dropped:
        print(f"   ⚠️ Dropped {dropped} malformed item(s) from model output")
    if not questions:
        raise ModelOutputParseError("Parsed content contains no question/answer objects",
                                    details={"item_count": len(items)})
    return questions


# --- PIPELINE ---

def normalize_count(count: Any) -> int:
    """Parse a requested question count, raising InterviewPrepError(400) when invalid."""
    if count is None or count == "":
        return DEFAULT_QUESTION_COUNT
    if isinstance(count, bool):
        raise InterviewPrepError("count must be an integer", status_code=400)
    try:
        value = int(count)
    except (TypeError, ValueError, OverflowError):
        raise InterviewPrepError("count must be an integer", status_code=400)
    if value < 1 or value > MAX_QUESTION_COUNT:
        raise InterviewPrepError(f"count must be between 1 and {MAX_QUESTION_COUNT}", status_code=400)
    return value


def generate_interview_questions(resume_text: str, count: int = DEFAULT_QUESTION_COUNT,
                                 api_key: str = None, models: List[str] = None) -> Tuple[List[InterviewQuestion], str]:
    """
    Generate interview questions with answers for a resume.
    Returns (questions, model_used).
    """
    prompt = build_questions_prompt(resume_text, count)
    response, data, model_used = generate_with_fallback(prompt, api_key=api_key, models=models)
    print(f"   ✅ Used model: {model_used} (status {response.status_code})")
    print(f"   Raw API Response (preview): {json.dumps(data)[:3000]}")

    candidate_text = extract_candidate_text(data)
    if not candidate_text:
        details = f"Model returned status {response.status_code} without text"
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            details = data["error"].get("message") or details
        print("   ❌ No text returned from model")
        raise EmptyModelOutputError("No text returned from model", details=details)

    try:
        items = extract_json_array_from_text(candidate_text)
    except ModelOutputParseError as e:
        print(f"   ❌ Parsing error: {e.message}")
        raise ModelOutputParseError("Could not parse questions from model output",
                                    details={"reason": e.message, **(e.details or {})}) from e

    return coerce_questions(items), model_used


def questions_to_dicts(questions: List[InterviewQuestion]) -> List[Dict[str, str]]:
    return [q.model_dump() for q in questions]
