from flask import Blueprint, request, jsonify

from feedback_app.services.auth import resolve_identity

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/role', methods=['GET'])
def user_role():
    """Role lookup used by the frontend right after sign-in."""
    email = request.args.get('email')
    if not email:
        return jsonify({'role': None}), 400

    auth = resolve_identity(email)
    if not auth.authenticated:
        return jsonify({
            'role': None,
            'email': auth.email,
            'message': 'User not registered in the system',
        })

    body = {'role': auth.role, 'email': auth.email, 'name': auth.name}
    if auth.student_id:
        body['studentId'] = auth.student_id
    if auth.faculty_id:
        body['facultyId'] = auth.faculty_id
    return jsonify(body)
