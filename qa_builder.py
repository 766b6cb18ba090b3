from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER, TA_LEFT, TA_JUSTIFY
from reportlab.platypus import BaseDocTemplate, Frame, PageTemplate, Paragraph, Spacer, Table, TableStyle, KeepTogether
from reportlab.lib import colors
from xml.sax.saxutils import escape
from datetime import datetime
import time

# --- CONFIGURATION ---
PAGE_WIDTH, PAGE_HEIGHT = letter
MARGIN_SIDE = 50
MARGIN_VERTICAL = 45
CONTENT_WIDTH = PAGE_WIDTH - (2 * MARGIN_SIDE)

RULE_WIDTH = 80
TITLE = "Interview Questions & Answers"


def _field(qa, name):
    """Read question/answer from either a pydantic model or a plain dict."""
    if isinstance(qa, dict):
        return str(qa.get(name) or '')
    return str(getattr(qa, name, '') or '')


def export_filename(extension: str, now: float = None) -> str:
    if now is None:
        now = time.time()
    return f"interview-questions-{int(now * 1000)}.{extension}"


def format_questions_text(questions, source_name: str = None, generated_on: datetime = None) -> str:
    """Plain-text export: header block followed by numbered question/answer blocks."""
    if generated_on is None:
        generated_on = datetime.now()

    lines = [TITLE.upper(), '=' * RULE_WIDTH, '']
    if source_name:
        lines.append(f"Generated from: {source_name}")
    lines.append(f"Date: {generated_on.strftime('%Y-%m-%d')}")
    lines.append(f"Total Questions: {len(questions)}")
    lines += ['', '=' * RULE_WIDTH, '']

    for index, qa in enumerate(questions, start=1):
        lines.append(f"QUESTION {index}:")
        lines.append(_field(qa, 'question'))
        lines.append('')
        lines.append("ANSWER:")
        lines.append(_field(qa, 'answer'))
        lines.append('')
        lines.append('-' * RULE_WIDTH)
        lines.append('')

    return '\n'.join(lines)


def get_styles():
    styles = getSampleStyleSheet()

    styles.add(ParagraphStyle(
        name='DocTitle',
        fontName='Helvetica-Bold',
        fontSize=18,
        alignment=TA_CENTER,
        leading=22,
        spaceAfter=4
    ))

    styles.add(ParagraphStyle(
        name='MetaLine',
        fontName='Helvetica',
        fontSize=9,
        textColor=colors.grey,
        alignment=TA_CENTER,
        leading=11,
        spaceAfter=10
    ))

    # "QUESTION 3" label above each block
    styles.add(ParagraphStyle(
        name='QuestionLabel',
        fontName='Helvetica-Bold',
        fontSize=9,
        textColor=colors.HexColor('#4338ca'),
        alignment=TA_LEFT,
        leading=11,
        spaceBefore=8,
        spaceAfter=2
    ))

    styles.add(ParagraphStyle(
        name='QuestionText',
        fontName='Helvetica-Bold',
        fontSize=11,
        leading=14,
        spaceAfter=4
    ))

    styles.add(ParagraphStyle(
        name='AnswerText',
        fontName='Helvetica',
        fontSize=10,
        leading=13,
        alignment=TA_JUSTIFY,
        leftIndent=10,
        spaceAfter=4
    ))

    return styles


def to_paragraph_markup(text) -> str:
    """Escape reportlab mini-markup characters and keep the answer's line breaks."""
    return escape(str(text)).replace('\r\n', '\n').replace('\n', '<br/>')


def create_hr_line(width=CONTENT_WIDTH, color=colors.lightgrey):
    """Thin horizontal rule built from a one-cell table."""
    line_table = Table([['']], colWidths=[width], rowHeights=[2])
    line_table.setStyle(TableStyle([
        ('LINEABOVE', (0, 0), (-1, 0), 0.5, color),
        ('TOPPADDING', (0, 0), (-1, -1), 0),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 0),
        ('LEFTPADDING', (0, 0), (-1, -1), 0),
        ('RIGHTPADDING', (0, 0), (-1, -1), 0),
    ]))
    line_table.hAlign = 'LEFT'
    return line_table


def create_questions_pdf(questions, output_path_or_buffer, source_name: str = None, generated_on: datetime = None):
    """
    Render the question/answer list into a paginated PDF.
    Accepts InterviewQuestion models or plain {question, answer} dicts.
    """
    if generated_on is None:
        generated_on = datetime.now()

    doc = BaseDocTemplate(
        output_path_or_buffer,
        pagesize=letter,
        leftMargin=MARGIN_SIDE,
        rightMargin=MARGIN_SIDE,
        topMargin=MARGIN_VERTICAL,
        bottomMargin=MARGIN_VERTICAL,
        title=TITLE
    )

    frame = Frame(
        x1=MARGIN_SIDE,
        y1=MARGIN_VERTICAL,
        width=CONTENT_WIDTH,
        height=PAGE_HEIGHT - 2 * MARGIN_VERTICAL,
        id='normal',
        showBoundary=0,
        leftPadding=0,
        rightPadding=0,
        topPadding=0,
        bottomPadding=0
    )
    doc.addPageTemplates([PageTemplate(id='questions', frames=[frame])])

    styles = get_styles()
    story = []

    # 1. Header
    story.append(Paragraph(escape(TITLE), styles['DocTitle']))
    meta = [f"Date: {generated_on.strftime('%Y-%m-%d')}", f"Total Questions: {len(questions)}"]
    if source_name:
        meta.insert(0, f"Generated from: {escape(source_name)}")
    story.append(Paragraph(" | ".join(meta), styles['MetaLine']))
    story.append(create_hr_line(color=colors.black))
    story.append(Spacer(1, 4))

    # 2. Question blocks; the label and question stay on the same page
    for index, qa in enumerate(questions, start=1):
        story.append(KeepTogether([
            Paragraph(f"QUESTION {index}", styles['QuestionLabel']),
            Paragraph(to_paragraph_markup(_field(qa, 'question')), styles['QuestionText']),
        ]))
        answer = _field(qa, 'answer')
        if answer:
            story.append(Paragraph(to_paragraph_markup(answer), styles['AnswerText']))
        story.append(Spacer(1, 4))
        story.append(create_hr_line())

    doc.build(story)
    return output_path_or_buffer
