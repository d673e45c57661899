"""
Certificate of completion - PDF rendered with reportlab
"""
from datetime import datetime
from io import BytesIO
from typing import Optional
from xml.sax.saxutils import escape
import logging

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from models.progress import LearnerDashboard

logger = logging.getLogger(__name__)

COUNTRY_NAMES = {
    "US": "United States",
    "IN": "India",
    "GB": "United Kingdom",
    "CA": "Canada",
    "AU": "Australia",
    "DE": "Germany",
    "FR": "France",
    "ES": "Spain",
    "JP": "Japan",
    "BR": "Brazil",
    "MX": "Mexico",
    "CN": "China",
}


class NothingCompleted(Exception):
    """The learner has no completed lessons to certify."""


def country_name(code: Optional[str]) -> str:
    return COUNTRY_NAMES.get((code or "US").upper(), "International")


def certificate_filename(username: str) -> str:
    safe = "".join(c for c in username if c.isalnum() or c in "-_") or "Student"
    return f"Learn2Go_Certificate_{safe}.pdf"


def render_certificate(username: str, dashboard: LearnerDashboard,
                       country: Optional[str] = None) -> bytes:
    """
    Build the certificate for a learner's dashboard.

    The completion date is the learner's most recent completed lesson.
    Raises NothingCompleted if no lesson has been completed.
    """
    if dashboard.lessons_completed == 0:
        raise NothingCompleted(f"User {dashboard.user_id} has not completed a lesson")

    completed = [p for p in dashboard.recent_progress if p.get("completed")]
    if completed:
        completed_on = datetime.fromisoformat(completed[0]["completed_at"])
    else:
        completed_on = dashboard.last_activity or datetime.now()

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=landscape(A4),
                            title="Learn2Go Certificate of Completion")
    styles = getSampleStyleSheet()
    elements = []

    elements.append(Paragraph("Learn2Go", styles['Title']))
    elements.append(Paragraph("Certificate of Completion", styles['Heading1']))
    elements.append(Spacer(1, 20))
    elements.append(Paragraph("This is to certify that", styles['Normal']))
    elements.append(Paragraph(escape(username), styles['Heading2']))
    elements.append(Paragraph(
        f"has successfully completed the Road Safety Education Program for {country_name(country)}",
        styles['Normal']
    ))
    elements.append(Spacer(1, 20))

    data = [
        ['Completion Date', 'Lessons Completed', 'Average Score'],
        [completed_on.strftime('%B %d, %Y'), str(dashboard.lessons_completed),
         f"{dashboard.average_score}%"],
    ]
    table = Table(data)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.darkblue),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
        ('GRID', (0, 0), (-1, -1), 1, colors.grey)
    ]))
    elements.append(table)

    doc.build(elements)
    logger.info(f"Rendered certificate for user {dashboard.user_id}")
    return buffer.getvalue()
