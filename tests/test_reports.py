import pytest

from conftest import as_user
from feedback_app.services.submission import submit_response
from report_generator import create_score_graph, generate_faculty_report


@pytest.fixture
def class_of(make_student):
    def _make(count, **kwargs):
        return [make_student(email=f'student{i}@college.edu', name=f'Student {i}', **kwargs)
                for i in range(count)]
    return _make


def overall(score, scale_3=3):
    """Theory ratings with every scale_3 question at ``scale_3`` and the 1-10 score at ``score``."""
    ratings = {f'theory_{i}': scale_3 for i in range(1, 7)}
    ratings['theory_7'] = score
    return ratings


class TestFormReport:
    def test_summary(self, client, admin_headers, class_of, make_form):
        students = class_of(2)
        form = make_form()
        submit_response(form['id'], students[0]['id'], overall(10), comment='  Loved it ')
        submit_response(form['id'], students[1]['id'], overall(4, scale_3=0), comment='')

        resp = client.get(f"/api/reports/forms/{form['id']}", headers=admin_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['responseCount'] == 2
        # first response averages 10, second (0 * 6 + 4) / 7
        assert body['avgRating'] == pytest.approx((10 + 4 / 7) / 2)
        by_id = {p['id']: p for p in body['parameterAverages']}
        assert by_id['theory_7']['display'] == '7.0/10'
        assert by_id['theory_1']['display'] == '1.5/3'
        assert [c['text'] for c in body['comments']] == ['Loved it']

    def test_unknown_form(self, client, admin_headers):
        assert client.get('/api/reports/forms/form_missing', headers=admin_headers).status_code == 404

    def test_faculty_only_sees_own_forms(self, client, make_faculty, make_form):
        make_faculty(email='ppm@college.edu')
        own = make_form(faculty_email='ppm@college.edu')
        other = make_form(faculty_email='sap@college.edu', faculty_name='S. A. Patil')
        headers = as_user('ppm@college.edu')

        assert client.get(f"/api/reports/forms/{own['id']}", headers=headers).status_code == 200
        resp = client.get(f"/api/reports/forms/{other['id']}", headers=headers)
        assert resp.status_code == 403
        assert resp.get_json()['error'] == 'You can only view your own reports'

    def test_students_cannot_view_reports(self, client, make_student, make_form):
        student = make_student()
        form = make_form()
        resp = client.get(f"/api/reports/forms/{form['id']}", headers=as_user(student['email']))
        assert resp.status_code == 403


class TestRankings:
    def test_ranking_order(self, client, admin_headers, make_faculty, class_of, make_form):
        make_faculty(email='amy@college.edu', name='Amy', code='AMY')
        make_faculty(email='bob@college.edu', name='Bob', code='BOB')
        make_faculty(email='cal@college.edu', name='Cal', code='CAL')
        students = class_of(2)
        amy = make_form(subject='Soft Computing', faculty_email='amy@college.edu', faculty_name='Amy')
        bob = make_form(subject='Machine Learning', faculty_email='bob@college.edu', faculty_name='Bob')

        submit_response(amy['id'], students[0]['id'], overall(8))
        submit_response(bob['id'], students[0]['id'], overall(8))
        submit_response(bob['id'], students[1]['id'], overall(8))

        resp = client.get('/api/reports/faculty', headers=admin_headers)
        assert resp.status_code == 200
        ranked = resp.get_json()
        assert [r['name'] for r in ranked] == ['Bob', 'Amy', 'Cal']
        assert ranked[0]['responseCount'] == 2
        assert ranked[-1]['display'] == '–'

    def test_admin_only(self, client, make_faculty):
        make_faculty()
        assert client.get('/api/reports/faculty', headers=as_user('ppm@college.edu')).status_code == 403


class TestFacultyReport:
    def test_breakdown(self, client, make_faculty, make_student, make_form):
        make_faculty()
        student = make_student()
        form = make_form()
        make_form(subject='Soft Computing')
        submit_response(form['id'], student['id'], overall(9))

        resp = client.get('/api/reports/faculty/PPM@college.edu', headers=as_user('ppm@college.edu'))
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['faculty']['name'] == 'P. P. Mehta'
        assert body['responseCount'] == 1
        assert body['formCount'] == 2
        assert sorted(row['display'] for row in body['forms']) == ['9.9', '–']

    def test_forms_without_faculty_row(self, client, admin_headers, make_form):
        make_form(faculty_email='guest@college.edu', faculty_name='Guest Lecturer')
        body = client.get('/api/reports/faculty/guest@college.edu', headers=admin_headers).get_json()
        assert body['faculty']['name'] == 'Guest Lecturer'
        assert body['responseCount'] == 0

    def test_unknown_faculty(self, client, admin_headers):
        resp = client.get('/api/reports/faculty/ghost@college.edu', headers=admin_headers)
        assert resp.status_code == 404

    def test_other_faculty_is_forbidden(self, client, make_faculty):
        make_faculty(email='ppm@college.edu')
        make_faculty(email='sap@college.edu', name='S. A. Patil', code='SAP')
        resp = client.get('/api/reports/faculty/sap@college.edu', headers=as_user('ppm@college.edu'))
        assert resp.status_code == 403

    def test_pdf(self, client, admin_headers, make_faculty, make_student, make_form):
        make_faculty()
        student = make_student()
        form = make_form()
        submit_response(form['id'], student['id'], overall(6))

        resp = client.get('/api/reports/faculty/ppm@college.edu/pdf', headers=admin_headers)
        assert resp.status_code == 200
        assert resp.mimetype == 'application/pdf'
        assert resp.data.startswith(b'%PDF')
        assert 'feedback_report_ppm.pdf' in resp.headers['Content-Disposition']


def test_faculty_report_without_forms_renders():
    breakdown = {'forms': [], 'formCount': 0, 'responseCount': 0, 'avgRating': 0.0, 'display': '–'}
    pdf = generate_faculty_report({'name': 'New Faculty', 'email': 'new@college.edu'}, breakdown)
    assert pdf.startswith(b'%PDF')


def test_score_graph_is_png():
    buf = create_score_graph([{'avgRating': 8.2}, {'avgRating': 0.0}, {'avgRating': 4.5}])
    assert buf.read(8) == b'\x89PNG\r\n\x1a\n'
