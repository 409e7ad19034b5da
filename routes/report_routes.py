from flask import Blueprint, jsonify, Response
import logging

from feedback_app.errors import NotFoundError, AuthorizationError
from feedback_app.models import Faculty, FeedbackForm, FeedbackResponse
from feedback_app.services.aggregation import form_summary, faculty_rankings, faculty_breakdown
from feedback_app.services.auth import require_role, current_auth
from report_generator import generate_faculty_report
from utils import normalize_email

logger = logging.getLogger(__name__)

report_bp = Blueprint('reports', __name__, url_prefix='/api/reports')


def ensure_own_faculty_email(email):
    auth = current_auth()
    if auth.role == 'faculty' and auth.email != normalize_email(email):
        raise AuthorizationError('You can only view your own reports')


def _faculty_report_data(email):
    email = normalize_email(email)
    faculty = Faculty.get_by_email(email)
    forms = FeedbackForm.get_all(faculty_email=email)
    if not faculty and not forms:
        raise NotFoundError('Faculty not found')
    if not faculty:
        faculty = {'id': None, 'name': forms[0]['faculty_name'], 'email': email}

    responses = FeedbackResponse.get_all(form_ids=[f['id'] for f in forms])
    return faculty, faculty_breakdown(forms, responses)


@report_bp.route('/forms/<form_id>', methods=['GET'])
@require_role('admin', 'faculty', message='Only admins and faculty can view reports')
def form_report(form_id):
    form = FeedbackForm.get(form_id)
    if not form:
        raise NotFoundError('Form not found')
    ensure_own_faculty_email(form['faculty_email'])

    responses = FeedbackResponse.get_all(form_id=form_id)
    return jsonify(form_summary(form, responses, FeedbackForm.questions(form_id)))


@report_bp.route('/faculty', methods=['GET'])
@require_role('admin', message='Only admins can view faculty rankings')
def faculty_ranking_report():
    forms = FeedbackForm.get_all()
    responses = FeedbackResponse.get_all()
    return jsonify(faculty_rankings(Faculty.get_all(), forms, responses))


@report_bp.route('/faculty/<email>', methods=['GET'])
@require_role('admin', 'faculty', message='Only admins and faculty can view reports')
def faculty_report(email):
    ensure_own_faculty_email(email)
    faculty, breakdown = _faculty_report_data(email)
    breakdown['faculty'] = faculty
    return jsonify(breakdown)


@report_bp.route('/faculty/<email>/pdf', methods=['GET'])
@require_role('admin', 'faculty', message='Only admins and faculty can view reports')
def faculty_report_pdf(email):
    ensure_own_faculty_email(email)
    faculty, breakdown = _faculty_report_data(email)
    pdf = generate_faculty_report(faculty, breakdown)
    filename = f"feedback_report_{faculty['email'].split('@')[0]}.pdf"
    return Response(pdf, mimetype='application/pdf',
                    headers={'Content-Disposition': f'attachment; filename={filename}'})
