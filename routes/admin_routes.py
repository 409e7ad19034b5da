from flask import Blueprint, request, jsonify, current_app, Response
import logging

from config import ALLOWED_EXTENSIONS, ALLOWED_IMAGE_TYPES, FORM_STATUSES, FORM_TYPES, QUESTION_TYPES
from feedback_app.errors import ValidationError, NotFoundError, ConflictError
from feedback_app.models import (
    AdminUser, Faculty, FeedbackForm, Question, Student, Timetable, TimetableImage,
)
from feedback_app.services.auth import require_role, current_auth, check_email_in_other_roles
from feedback_app.services.excel_service import process_student_spreadsheet, process_faculty_spreadsheet
from feedback_app.services.form_service import create_forms, generate_from_timetable
from feedback_app.services.monitor import monitor_data
from feedback_app.services.sheet_service import csv_export_url, fetch_sheet_csv
from feedback_app.services.timetable_parser import extract_pdf_text, parse_timetable_text, split_entries
from feedback_app.services.timetable_service import add_entries, import_timetable_csv, export_timetable_csv
from report_non_submission import generate_non_submission_report
from utils import normalize_email, parse_semester, clean_optional
from routes.student_routes import json_body

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def allowed_file(filename):
    """Check if file has an allowed extension."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def uploaded_file(extensions_message):
    """The ``file`` part of a multipart upload, as (filename, bytes)."""
    if 'file' not in request.files:
        raise ValidationError('No file uploaded')
    file = request.files['file']
    if file.filename == '':
        raise ValidationError('No file selected')
    if extensions_message and not allowed_file(file.filename):
        raise ValidationError(extensions_message)
    return file.filename, file.read()


def required_semester(value):
    semester = parse_semester(value)
    if semester is None:
        raise ValidationError('Semester must be between 1 and 8')
    return semester


def bulk_summary(summary, noun):
    """Shape a bulk upsert result; errors are truncated to the first 10."""
    total = summary.get('total', summary['created'] + summary['updated'] + summary['skipped']
                        + len(summary['errors']))
    return {
        'message': f"Processed {total} {noun}: {summary['created']} created, "
                   f"{summary['updated']} updated, {summary['skipped']} skipped",
        'created': summary['created'],
        'updated': summary['updated'],
        'skipped': summary['skipped'],
        'total': total,
        'errors': summary['errors'][:10],
    }


# ---------------------------------------------------------------- admin users

@admin_bp.route('/admin-users', methods=['GET'])
@require_role('admin', message='Only admins can view admin users')
def list_admin_users():
    return jsonify(AdminUser.get_all())


@admin_bp.route('/admin-users', methods=['POST'])
@require_role('admin', message='Only admins can add admin users')
def add_admin_user():
    data = json_body()
    email = normalize_email(data.get('email'))
    if not email:
        raise ValidationError('Email is required')
    if AdminUser.get_by_email(email):
        raise ConflictError('This email is already an admin')
    check_email_in_other_roles(email, 'admin')

    admin = AdminUser.add(email, data.get('name'))
    logger.info(f"Admin {current_auth().email} added admin {email}")
    return jsonify({'message': 'Admin added successfully', 'admin': admin}), 201


@admin_bp.route('/admin-users', methods=['DELETE'])
@require_role('admin', message='Only admins can remove admin users')
def remove_admin_user():
    admin_id = request.args.get('id')
    if not admin_id:
        raise ValidationError('Admin ID is required')
    admin = AdminUser.get(admin_id)
    if not admin:
        raise NotFoundError('Admin user not found')
    if admin['email'] == current_auth().email:
        raise ValidationError('You cannot remove yourself as admin')

    AdminUser.delete(admin_id)
    logger.info(f"Admin {current_auth().email} removed admin {admin['email']}")
    return jsonify({'message': 'Admin removed successfully'})


# -------------------------------------------------------------------- faculty

@admin_bp.route('/faculty', methods=['GET'])
@require_role()
def list_faculty():
    return jsonify(Faculty.get_all())


@admin_bp.route('/faculty', methods=['POST'])
@require_role('admin', message='Only admins can add faculty')
def add_faculty():
    data = json_body()
    name = clean_optional(data.get('name'))
    email = normalize_email(data.get('email'))
    faculty_code = clean_optional(data.get('facultyCode'), upper=True)
    if not name or not email or not faculty_code:
        raise ValidationError('Missing required fields (name, email, facultyCode)')
    if Faculty.get_by_email(email):
        raise ConflictError('A faculty with this email already exists')
    check_email_in_other_roles(email, 'faculty')

    faculty_id = Faculty.add(name, email, faculty_code)
    return jsonify({'message': 'Faculty added successfully', 'faculty': Faculty.get(faculty_id)}), 201


@admin_bp.route('/faculty/<faculty_id>', methods=['PUT'])
@require_role('admin', message='Only admins can update faculty')
def update_faculty(faculty_id):
    data = json_body()
    if not Faculty.update(faculty_id, name=data.get('name'), faculty_code=data.get('facultyCode')):
        raise NotFoundError('Faculty not found')
    return jsonify({'message': 'Faculty updated successfully', 'faculty': Faculty.get(faculty_id)})


@admin_bp.route('/faculty/<faculty_id>', methods=['DELETE'])
@require_role('admin', message='Only admins can delete faculty')
def delete_faculty(faculty_id):
    if not Faculty.delete(faculty_id):
        raise NotFoundError('Faculty not found')
    return jsonify({'message': 'Faculty deleted successfully'})


@admin_bp.route('/faculty/bulk', methods=['POST'])
@require_role('admin', message='Only admins can import faculty')
def bulk_faculty():
    rows = json_body().get('faculty')
    if not isinstance(rows, list) or not rows:
        raise ValidationError('No faculty provided')
    summary = Faculty.bulk_upsert(rows)
    summary['total'] = len(rows)
    return jsonify(bulk_summary(summary, 'faculty')), 201


@admin_bp.route('/faculty/upload', methods=['POST'])
@require_role('admin', message='Only admins can import faculty')
def upload_faculty():
    filename, data = uploaded_file('Invalid file type. Please upload .xlsx, .xls or .csv')
    success, message, summary = process_faculty_spreadsheet(data, filename)
    if not success:
        raise ValidationError(message)
    return jsonify(bulk_summary(summary, 'faculty')), 201


# ------------------------------------------------------------------- students

@admin_bp.route('/students', methods=['GET'])
@require_role('admin', message='Only admins can view students')
def list_students():
    semester = request.args.get('semester')
    return jsonify(Student.get_all(
        semester=parse_semester(semester) if semester else None,
        course=request.args.get('course'),
        division=request.args.get('division'),
    ))


@admin_bp.route('/students', methods=['POST'])
@require_role('admin', message='Only admins can add students')
def add_student():
    data = json_body()
    name = clean_optional(data.get('name'))
    email = normalize_email(data.get('email'))
    division = clean_optional(data.get('division'), upper=True)
    if not name or not email or not data.get('semester') or not division:
        raise ValidationError('Missing required fields')
    semester = required_semester(data.get('semester'))

    if Student.get_by_email(email):
        raise ConflictError('A student with this email already exists')
    check_email_in_other_roles(email, 'student')

    student_id = Student.add(name, email, semester, division,
                             course=clean_optional(data.get('course')),
                             batch=data.get('batch'),
                             honours_course=data.get('honoursCourse'),
                             honours_batch=data.get('honoursBatch'))
    return jsonify({'message': 'Student added successfully', 'student': Student.get(student_id)}), 201


@admin_bp.route('/students/<student_id>', methods=['GET'])
@require_role('admin', message='Access denied')
def get_student(student_id):
    student = Student.get(student_id)
    if not student:
        raise NotFoundError('Student not found')
    return jsonify(student)


@admin_bp.route('/students/<student_id>', methods=['PUT'])
@require_role('admin', message='Only admins can update students')
def update_student(student_id):
    data = json_body()
    semester = required_semester(data['semester']) if data.get('semester') is not None else None
    division = None
    if data.get('division') is not None:
        division = clean_optional(data['division'], upper=True)
        if not division:
            raise ValidationError('Division cannot be empty')
    if not Student.update(student_id, name=data.get('name'), semester=semester,
                          course=clean_optional(data.get('course')), division=division,
                          batch=data.get('batch'),
                          honours_course=data.get('honoursCourse'),
                          honours_batch=data.get('honoursBatch')):
        raise NotFoundError('Student not found')
    return jsonify({'message': 'Student updated successfully', 'student': Student.get(student_id)})


@admin_bp.route('/students/<student_id>', methods=['DELETE'])
@require_role('admin', message='Only admins can delete students')
def delete_student(student_id):
    if not Student.delete(student_id):
        raise NotFoundError('Student not found')
    logger.info(f"Student {student_id} deleted with their responses")
    return jsonify({'message': 'Student deleted successfully'})


@admin_bp.route('/students/bulk', methods=['POST'])
@require_role('admin', message='Only admins can import students')
def bulk_students():
    rows = json_body().get('students')
    if not isinstance(rows, list) or not rows:
        raise ValidationError('No students provided')
    summary = Student.bulk_upsert(rows)
    summary['total'] = len(rows)
    logger.info(f"Bulk student import: {summary['created']} created, {summary['updated']} updated, "
                f"{len(summary['errors'])} errors")
    return jsonify(bulk_summary(summary, 'students')), 201


@admin_bp.route('/students/bulk', methods=['DELETE'])
@require_role('admin', message='Only admins can delete students')
def bulk_delete_students():
    ids = json_body().get('ids')
    if not isinstance(ids, list) or not ids:
        raise ValidationError('No student IDs provided')
    deleted = Student.bulk_delete(ids)
    return jsonify({'message': f'Deleted {deleted} student(s)', 'count': deleted})


@admin_bp.route('/students/upload', methods=['POST'])
@require_role('admin', message='Only admins can import students')
def upload_students():
    filename, data = uploaded_file('Invalid file type. Please upload .xlsx, .xls or .csv')
    success, message, summary = process_student_spreadsheet(data, filename)
    if not success:
        raise ValidationError(message)
    return jsonify(bulk_summary(summary, 'students')), 201


# ------------------------------------------------------------ question catalog

@admin_bp.route('/feedback-parameters', methods=['GET'])
@require_role('admin', message='Only admins can view feedback parameters')
def list_parameters():
    return jsonify(Question.get_all(request.args.get('formType')))


@admin_bp.route('/feedback-parameters', methods=['POST'])
@require_role('admin', message='Only admins can create parameters')
def create_parameter():
    data = json_body()
    text = clean_optional(data.get('text'))
    form_type = data.get('form_type')
    question_type = data.get('question_type')
    if not text or data.get('position') is None or not form_type or not question_type:
        raise ValidationError('Missing required fields')
    if form_type not in FORM_TYPES or question_type not in QUESTION_TYPES:
        raise ValidationError('Invalid form_type or question_type')
    return jsonify(Question.add(text, data['position'], form_type, question_type)), 201


@admin_bp.route('/feedback-parameters', methods=['PUT'])
@require_role('admin', message='Only admins can update parameters')
def update_parameter():
    data = json_body()
    if not data.get('id'):
        raise ValidationError('Parameter ID is required')
    if data.get('question_type') is not None and data['question_type'] not in QUESTION_TYPES:
        raise ValidationError('Invalid question_type')
    question = Question.update(data['id'], text=data.get('text'), position=data.get('position'),
                               question_type=data.get('question_type'))
    if not question:
        raise NotFoundError('Parameter not found')
    return jsonify(question)


@admin_bp.route('/feedback-parameters', methods=['DELETE'])
@require_role('admin', message='Only admins can delete parameters')
def delete_parameter():
    question_id = request.args.get('id')
    if not question_id:
        raise ValidationError('Parameter ID is required')
    response_count = Question.response_count(question_id)
    if response_count > 0:
        raise ValidationError('Cannot delete parameter with existing responses. '
                              'Delete responses first or archive the parameter.',
                              responseCount=response_count)
    if not Question.delete(question_id):
        raise NotFoundError('Parameter not found')
    return jsonify({'message': 'Parameter deleted successfully'})


@admin_bp.route('/feedback-parameters', methods=['PATCH'])
@require_role('admin', message='Only admins can reorder parameters')
def reorder_parameters():
    updates = json_body().get('updates')
    if not isinstance(updates, list):
        raise ValidationError('Updates array is required')
    Question.reorder(updates)
    return jsonify({'message': 'Positions updated successfully'})


@admin_bp.route('/feedback-parameters/reset', methods=['POST'])
@require_role('admin', message='Only admins can reset parameters')
def reset_parameters():
    theory_count, lab_count = Question.reset_defaults()
    return jsonify({
        'message': 'Questions reset to defaults',
        'theoryCount': theory_count,
        'labCount': lab_count,
    })


# ---------------------------------------------------------------------- forms

@admin_bp.route('/forms', methods=['POST'])
@require_role('admin', message='Only admins can create forms')
def create_forms_route():
    rows = json_body().get('forms')
    if not isinstance(rows, list) or not rows:
        raise ValidationError('No forms provided')
    created = create_forms(rows, current_app.config['ACADEMIC_YEAR'])
    return jsonify({'message': f'Created {len(created)} form(s)', 'forms': created}), 201


@admin_bp.route('/forms/generate', methods=['POST'])
@require_role('admin', message='Only admins can create forms')
def generate_forms_route():
    data = json_body()
    academic_year = clean_optional(data.get('academicYear')) or current_app.config['ACADEMIC_YEAR']
    semester = required_semester(data['semester']) if data.get('semester') else None
    result = generate_from_timetable(academic_year, semester=semester,
                                     course=clean_optional(data.get('course'), upper=True))
    result['message'] = f"Created {result['created']} form(s), skipped {result['skipped']}"
    return jsonify(result), 201


@admin_bp.route('/forms/<form_id>/status', methods=['PATCH'])
@require_role('admin', message='Only admins can update forms')
def set_form_status(form_id):
    status = json_body().get('status')
    if status not in FORM_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(FORM_STATUSES)}")
    if not FeedbackForm.set_status(form_id, status):
        raise NotFoundError('Form not found')
    return jsonify(FeedbackForm.get(form_id))


@admin_bp.route('/forms', methods=['DELETE'])
@require_role('admin', message='Only admins can delete forms')
def delete_form():
    form_id = request.args.get('id')
    if not form_id:
        raise ValidationError('Form id is required')
    if not FeedbackForm.delete([form_id]):
        raise NotFoundError('Form not found')
    return jsonify({'message': 'Form deleted successfully'})


@admin_bp.route('/forms/bulk', methods=['DELETE'])
@require_role('admin', message='Only admins can delete forms')
def bulk_delete_forms():
    ids = json_body().get('ids')
    if not isinstance(ids, list) or not ids:
        raise ValidationError('No form IDs provided')
    count = FeedbackForm.delete(ids)
    return jsonify({'message': f'Deleted {count} form(s)', 'count': count})


# ------------------------------------------------------------------ timetable

@admin_bp.route('/timetable', methods=['GET'])
@require_role('admin', message='Only admins can access timetable')
def list_timetable():
    return jsonify(Timetable.get_all(academic_year=request.args.get('academic_year')))


@admin_bp.route('/timetable', methods=['POST'])
@require_role('admin', message='Only admins can modify timetable')
def add_timetable_entries():
    entries = json_body().get('entries')
    if not isinstance(entries, list) or not entries:
        raise ValidationError('No entries provided')
    summary = add_entries(entries)
    summary['message'] = f"Added {summary['added']} timetable entries"
    return jsonify(summary), 201


@admin_bp.route('/timetable', methods=['DELETE'])
@require_role('admin', message='Only admins can modify timetable')
def clear_timetable():
    academic_year = request.args.get('academic_year')
    count = Timetable.delete(academic_year)
    scope = f"for {academic_year}" if academic_year else "(all years)"
    logger.info(f"Deleted {count} timetable entries {scope}")
    return jsonify({'message': f'Deleted {count} timetable entries {scope}', 'count': count})


@admin_bp.route('/timetable/import', methods=['POST'])
@require_role('admin', message='Only admins can modify timetable')
def import_timetable():
    filename, data = uploaded_file(None)
    if not filename.lower().endswith('.csv'):
        raise ValidationError('Please upload a CSV file')
    success, message, summary = import_timetable_csv(data)
    if not success:
        raise ValidationError(message)
    summary['message'] = message
    return jsonify(summary), 201


@admin_bp.route('/timetable/export', methods=['GET'])
@require_role('admin', message='Only admins can access timetable')
def export_timetable():
    csv_text = export_timetable_csv(request.args.get('academic_year'))
    return Response(csv_text, mimetype='text/csv',
                    headers={'Content-Disposition': 'attachment; filename=timetable.csv'})


@admin_bp.route('/google-sheet', methods=['GET'])
@require_role('admin', message='Only admins can import from the Google Sheet')
def google_sheet():
    sheet_url = request.args.get('url')
    csv_url = csv_export_url(sheet_url) if sheet_url else current_app.config['SHEET_CSV_URL']
    csv_text = fetch_sheet_csv(csv_url, timeout=current_app.config['HTTP_TIMEOUT'])
    return jsonify({'csv': csv_text})


@admin_bp.route('/parse-timetable', methods=['POST'])
@require_role('admin', message='Only admins can parse timetables')
def parse_timetable():
    filename, data = uploaded_file(None)
    if not filename.lower().endswith('.pdf'):
        raise ValidationError('Only PDF files are supported')

    text = extract_pdf_text(data)
    entries = parse_timetable_text(text, Faculty.get_all())
    valid, invalid = split_entries(entries)
    return jsonify({
        'success': True,
        'rawText': text[:2000],
        'entries': valid,
        'skippedEntries': invalid,
        'totalFound': len(entries),
        'validCount': len(valid),
        'skippedCount': len(invalid),
    })


@admin_bp.route('/timetable-images', methods=['GET'])
@require_role('admin', message='Only admins can view timetable images')
def list_timetable_images():
    full = request.args.get('full') == 'true'
    return jsonify(TimetableImage.get_all(include_data=full))


@admin_bp.route('/timetable-images/<int:image_id>', methods=['GET'])
@require_role('admin', message='Only admins can view timetable images')
def get_timetable_image(image_id):
    image = TimetableImage.get(image_id)
    if not image:
        raise NotFoundError('Image not found')
    return jsonify(image)


@admin_bp.route('/timetable-images', methods=['POST'])
@require_role('admin', message='Only admins can upload timetable images')
def upload_timetable_image():
    data = json_body()
    label = clean_optional(data.get('label'))
    if not label or not data.get('image_data') or not data.get('mime_type'):
        raise ValidationError('label, image_data, and mime_type are required')
    if data['mime_type'] not in ALLOWED_IMAGE_TYPES:
        raise ValidationError('Only PNG, JPEG, and WebP images are allowed')
    image = TimetableImage.add(label, data['image_data'], data['mime_type'])
    return jsonify({'message': 'Image uploaded successfully', 'image': image}), 201


@admin_bp.route('/timetable-images/<int:image_id>', methods=['DELETE'])
@require_role('admin', message='Only admins can delete timetable images')
def delete_timetable_image(image_id):
    if not TimetableImage.delete(image_id):
        raise NotFoundError('Image not found')
    return jsonify({'message': 'Image deleted successfully'})


# ----------------------------------------------------------------- monitoring

def _monitor_args():
    if not request.args.get('semester') or not request.args.get('course'):
        raise ValidationError('Semester and course are required')
    return (required_semester(request.args['semester']),
            request.args['course'].upper(),
            clean_optional(request.args.get('batch'), upper=True))


@admin_bp.route('/feedback/monitor', methods=['GET'])
@require_role('admin', message='Only admins can access monitoring data')
def feedback_monitor():
    semester, course, batch = _monitor_args()
    return jsonify(monitor_data(semester, course, batch))


@admin_bp.route('/feedback/non-submission.pdf', methods=['GET'])
@require_role('admin', message='Only admins can access monitoring data')
def non_submission_pdf():
    semester, course, batch = _monitor_args()
    pdf = generate_non_submission_report(semester, course, monitor_data(semester, course, batch),
                                         batch=batch)
    filename = f"non_submission_{course}_sem{semester}.pdf"
    return Response(pdf, mimetype='application/pdf',
                    headers={'Content-Disposition': f'attachment; filename={filename}'})
