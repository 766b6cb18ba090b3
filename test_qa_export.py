import io
import sys
import os
from datetime import datetime

import pypdf

# Ensure we can import qa_builder
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from main import InterviewQuestion
from qa_builder import format_questions_text, create_questions_pdf, export_filename, to_paragraph_markup

QUESTIONS = [
    InterviewQuestion(question="Tell me about yourself.", answer="Backend engineer, 6 years."),
    {"question": "Biggest outage you handled?", "answer": "A cache stampede.\nFixed with request coalescing."},
]


def test_text_export_layout():
    text = format_questions_text(QUESTIONS, source_name="jane.pdf", generated_on=datetime(2026, 3, 1))
    lines = text.split("\n")

    assert lines[0] == "INTERVIEW QUESTIONS & ANSWERS"
    assert lines[1] == "=" * 80
    assert "Generated from: jane.pdf" in lines
    assert "Date: 2026-03-01" in lines
    assert "Total Questions: 2" in lines
    assert "QUESTION 2:\nBiggest outage you handled?\n\nANSWER:\nA cache stampede." in text
    assert text.count("-" * 80) == 2


def test_text_export_without_source():
    text = format_questions_text(QUESTIONS[:1], generated_on=datetime(2026, 3, 1))
    assert "Generated from" not in text
    assert "Total Questions: 1" in text


def test_pdf_export_is_readable():
    buffer = io.BytesIO()
    create_questions_pdf(QUESTIONS * 20, buffer, source_name="jane.pdf", generated_on=datetime(2026, 3, 1))

    reader = pypdf.PdfReader(io.BytesIO(buffer.getvalue()))
    assert len(reader.pages) >= 2
    first_page = reader.pages[0].extract_text()
    assert "Interview Questions" in first_page
    assert "Tell me about yourself." in first_page


def test_paragraph_markup_escapes_and_breaks_lines():
    assert to_paragraph_markup("a < b & c\r\nnext") == "a &lt; b &amp; c<br/>next"


def test_export_filename():
    assert export_filename("pdf", now=1700000000.5) == "interview-questions-1700000000500.pdf"


if __name__ == "__main__":
    for name, fn in list(globals().items()):
        if name.startswith("test_") and callable(fn):
            fn()
            print(f"   ✅ {name}")
