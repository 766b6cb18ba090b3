from flask import Flask, request, jsonify
from flask_cors import CORS
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException
import sys
import os
import io
import base64
from functools import wraps
from time import time
from collections import defaultdict

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from main import (
    extract_text_from_pdf,
    generate_interview_questions,
    normalize_count,
    questions_to_dicts,
    InterviewPrepError,
    EmptyResumeTextError,
    InterviewQuestion,
)
from qa_builder import create_questions_pdf, format_questions_text, export_filename

VERSION = "1.0.0"

# Input size limits
MAX_TEXT_SIZE = 50000  # characters of resume text
MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10MB PDF
MAX_EXPORT_QUESTIONS = 200

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_BYTES

CORS(app, resources={
    r"/api/*": {
        "origins": [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
        "methods": ["GET", "POST"],
        "allow_headers": ["Content-Type"]
    }
})

# Rate limiting (in-memory, resets on deployment)
rate_limit_store = defaultdict(list)


def get_max_requests_per_minute():
    try:
        return int(os.getenv("MAX_REQUESTS_PER_MINUTE", "30"))
    except ValueError:
        return 30


def validate_text_size(text, max_size=MAX_TEXT_SIZE):
    """Validate text input size."""
    if not text or not str(text).strip():
        return False, "Text cannot be empty"
    if len(str(text)) > max_size:
        return False, f"Input too large (max {max_size} characters)"
    return True, None


def rate_limit(f):
    """Simple rate limiting decorator."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        client_ip = request.remote_addr or 'unknown'
        current_time = time()

        # Clean old requests (older than 1 minute)
        rate_limit_store[client_ip] = [
            req_time for req_time in rate_limit_store[client_ip]
            if current_time - req_time < 60
        ]

        if len(rate_limit_store[client_ip]) >= get_max_requests_per_minute():
            print(f"⚠️ Rate limit exceeded for {client_ip}")
            return jsonify({"error": "Rate limit exceeded. Please try again later."}), 429

        rate_limit_store[client_ip].append(current_time)

        return f(*args, **kwargs)
    return decorated_function


def error_response(err: InterviewPrepError):
    print(f"❌ {err.message} ({err.status_code})")
    return jsonify(err.to_dict()), err.status_code


def questions_response(questions, model_used):
    return jsonify({"questions": questions_to_dicts(questions), "model": model_used})


def parse_export_payload(data):
    """Validate an export request body into (questions, source_name)."""
    if not isinstance(data, dict):
        raise InterviewPrepError("Request body must be a JSON object", status_code=400)

    items = data.get('questions')
    if not isinstance(items, list) or not items:
        raise InterviewPrepError("Missing questions in request body", status_code=400)
    if len(items) > MAX_EXPORT_QUESTIONS:
        raise InterviewPrepError(f"Too many questions (max {MAX_EXPORT_QUESTIONS})", status_code=400)

    try:
        questions = [InterviewQuestion.model_validate(item) for item in items]
    except ValidationError as e:
        raise InterviewPrepError("Invalid questions payload", details=str(e)[:1000], status_code=400)

    source_name = data.get('source_name')
    return questions, str(source_name) if source_name else None


@app.errorhandler(413)
def too_large(e):
    return jsonify({"error": f"Uploaded file too large (max {MAX_UPLOAD_BYTES // (1024 * 1024)}MB)"}), 413


@app.route('/api/upload-and-generate', methods=['POST'])
@rate_limit
def upload_and_generate():
    try:
        print("--- upload-and-generate called ---")
        file = request.files.get('file')
        if file is None or file.filename == '':
            print(f"   request form keys: {list(request.form.keys())}")
            raise InterviewPrepError('No file uploaded. Client must send FormData with field "file".', status_code=400)

        count = normalize_count(request.form.get('count'))

        pdf_bytes = file.read()
        print(f"   📄 Uploaded file: {file.filename} ({file.mimetype}, {len(pdf_bytes)} bytes)")

        resume_text = extract_text_from_pdf(pdf_bytes)
        print(f"   Extracted length: {len(resume_text)}")
        print(f"   Resume preview: {' '.join(resume_text[:400].split())}")

        if not resume_text:
            raise EmptyResumeTextError("PDF had no extractable text (may be a scanned image PDF). OCR required.")

        valid, error = validate_text_size(resume_text)
        if not valid:
            raise InterviewPrepError(error, status_code=400)

        questions, model_used = generate_interview_questions(resume_text, count=count)
        return questions_response(questions, model_used)
    except InterviewPrepError as e:
        return error_response(e)
    except HTTPException:
        raise
    except Exception as e:
        print(f"❌ upload-and-generate top-level error: {e}")
        return jsonify({"error": str(e)}), 500


@app.route('/api/generate-questions', methods=['POST'])
@rate_limit
def generate_questions():
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        resume_text = data.get('resumeText')
        api_key = data.get('api_key')

        if not isinstance(resume_text, str) or not resume_text.strip():
            raise InterviewPrepError("Missing resumeText in request body", status_code=400)

        valid, error = validate_text_size(resume_text)
        if not valid:
            raise InterviewPrepError(error, status_code=400)

        count = normalize_count(data.get('count'))

        questions, model_used = generate_interview_questions(resume_text, count=count, api_key=api_key)
        return questions_response(questions, model_used)
    except InterviewPrepError as e:
        return error_response(e)
    except HTTPException:
        raise
    except Exception as e:
        print(f"❌ generate-questions error: {e}")
        return jsonify({"error": str(e)}), 500


@app.route('/api/export-pdf', methods=['POST'])
@rate_limit
def export_pdf():
    try:
        questions, source_name = parse_export_payload(request.get_json(silent=True))

        # Generate PDF in-memory
        buffer = io.BytesIO()
        create_questions_pdf(questions, buffer, source_name=source_name)
        pdf_base64 = base64.b64encode(buffer.getvalue()).decode('utf-8')

        return jsonify({"pdf_base64": pdf_base64, "filename": export_filename("pdf")})
    except InterviewPrepError as e:
        return error_response(e)
    except HTTPException:
        raise
    except Exception as e:
        print(f"❌ export-pdf error: {e}")
        return jsonify({"error": str(e)}), 500


@app.route('/api/export-text', methods=['POST'])
@rate_limit
def export_text():
    try:
        questions, source_name = parse_export_payload(request.get_json(silent=True))
        text = format_questions_text(questions, source_name=source_name)
        return jsonify({"text": text, "filename": export_filename("txt")})
    except InterviewPrepError as e:
        return error_response(e)
    except HTTPException:
        raise
    except Exception as e:
        print(f"❌ export-text error: {e}")
        return jsonify({"error": str(e)}), 500


# Health check
@app.route('/api/health', methods=['GET'])
def health():
    return jsonify({"status": "ok", "version": VERSION})


if __name__ == '__main__':
    print(f"Gemini API key present? {bool(os.getenv('GEMINI_API_KEY'))}")
    app.run(debug=True, port=int(os.getenv("PORT", "5000")))
