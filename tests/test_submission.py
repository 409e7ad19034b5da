import threading

import pytest

from conftest import as_user, theory_ratings
from feedback_app.errors import SubmissionError, ValidationError
from feedback_app.models import DraftFeedback, FeedbackResponse, Question
from feedback_app.models.database import get_db
from feedback_app.services.submission import submit_response, submit_bulk


def post_response(client, student, form_id, ratings=None, comment=None, caller=None):
    return client.post('/api/responses', headers=as_user(caller or student['email']), json={
        'formId': form_id,
        'studentId': student['id'],
        'ratings': ratings if ratings is not None else theory_ratings(),
        'comment': comment,
    })


class TestSubmissionGate:
    def test_successful_submission_snapshots_questions(self, client, make_student, make_form):
        student = make_student()
        form = make_form()

        resp = post_response(client, student, form['id'], comment='Very clear')
        assert resp.status_code == 201
        assert resp.get_json()['id'].startswith('resp_')

        [stored] = FeedbackResponse.get_all(form_id=form['id'])
        assert stored['comment'] == 'Very clear'
        items = {i['parameter_id']: i for i in stored['items']}
        assert items['theory_1']['question_type'] == 'scale_3'
        assert items['theory_7']['question_type'] == 'scale_1_10'
        assert items['theory_1']['question_text'].startswith('Interaction with students')

    def test_duplicate_submission_rejected(self, client, make_student, make_form):
        student = make_student()
        form = make_form()
        assert post_response(client, student, form['id']).status_code == 201

        resp = post_response(client, student, form['id'])
        assert resp.status_code == 409
        assert resp.get_json()['error'] == 'You have already submitted feedback for this form'
        assert len(FeedbackResponse.get_all(form_id=form['id'])) == 1

    def test_division_mismatch_is_not_authorized(self, client, make_student, make_form):
        student = make_student(division='B')
        form = make_form(division='A')

        resp = post_response(client, student, form['id'])
        assert resp.status_code == 403
        assert resp.get_json()['reason'] == 'NOT_AUTHORIZED'
        assert FeedbackResponse.get_all(form_id=form['id']) == []

    def test_form_without_batch_accepts_any_batch(self, client, make_student, make_form):
        student = make_student(batch='B2')
        form = make_form(batch=None)
        assert post_response(client, student, form['id']).status_code == 201

    def test_lab_form_requires_matching_batch(self, client, make_student, make_form):
        form = make_form(batch='B1')
        other = make_student(email='other@college.edu', batch='B2')
        resp = post_response(client, other, form['id'], ratings={'lab_1': 1, 'lab_2': 0, 'lab_3': 8})
        assert resp.status_code == 403

        member = make_student(email='member@college.edu', batch='B1')
        resp = post_response(client, member, form['id'], ratings={'lab_1': 1, 'lab_2': 0, 'lab_3': 8})
        assert resp.status_code == 201

    def test_closed_form_is_not_authorized(self, client, make_student, make_form, admin_headers):
        student = make_student()
        form = make_form()
        client.patch(f"/api/admin/forms/{form['id']}/status", headers=admin_headers,
                     json={'status': 'closed'})

        assert post_response(client, student, form['id']).status_code == 403

    def test_unknown_form(self, client, make_student):
        student = make_student()
        resp = post_response(client, student, 'form_missing')
        assert resp.status_code == 404
        assert resp.get_json()['error'] == 'Form not found'

    def test_unknown_student_checked_before_form(self, app, make_form):
        form = make_form()
        with pytest.raises(SubmissionError) as excinfo:
            submit_response('form_missing', 'stu_missing', {'theory_1': 3})
        assert excinfo.value.reason == 'STUDENT_NOT_FOUND'
        assert excinfo.value.status_code == 404

        with pytest.raises(SubmissionError):
            submit_response(form['id'], 'stu_missing', {'theory_1': 3})

    def test_student_cannot_submit_for_someone_else(self, client, make_student, make_form):
        me = make_student(email='me@college.edu')
        other = make_student(email='other@college.edu')
        form = make_form()

        resp = post_response(client, other, form['id'], caller=me['email'])
        assert resp.status_code == 403

    @pytest.mark.parametrize('body', [
        {'studentId': 'x', 'ratings': {'theory_1': 3}},
        {'formId': 'x', 'ratings': {'theory_1': 3}},
        {'formId': 'x', 'studentId': 'x'},
    ])
    def test_missing_fields(self, client, make_student, body):
        student = make_student()
        resp = client.post('/api/responses', headers=as_user(student['email']), json=body)
        assert resp.status_code == 400

    def test_empty_or_non_numeric_ratings(self, client, make_student, make_form):
        student = make_student()
        form = make_form()
        assert post_response(client, student, form['id'], ratings={}).status_code == 400
        assert post_response(client, student, form['id'], ratings={'theory_1': 'good'}).status_code == 400

    def test_unauthenticated_caller(self, client, make_student, make_form):
        student = make_student()
        form = make_form()
        resp = post_response(client, student, form['id'], caller='nobody@college.edu')
        assert resp.status_code == 401

    def test_ratings_are_clamped(self, app, make_student, make_form):
        student = make_student()
        form = make_form()
        submit_response(form['id'], student['id'], {'theory_7': 14, 'theory_1': -2})

        [stored] = FeedbackResponse.get_all(form_id=form['id'])
        ratings = {i['parameter_id']: i['rating'] for i in stored['items']}
        assert ratings == {'theory_7': 10.0, 'theory_1': 0.0}

    def test_submission_clears_draft(self, app, make_student, make_form):
        student = make_student()
        form = make_form()
        DraftFeedback.save(student['id'], {'currentFormIndex': 0, 'allRatings': {}})

        submit_response(form['id'], student['id'], theory_ratings())
        assert DraftFeedback.load(student['id']) is None


def test_concurrent_duplicate_submissions(app, make_student, make_form):
    student = make_student()
    form = make_form()
    barrier = threading.Barrier(2)
    statuses = []

    def submit():
        client = app.test_client()
        barrier.wait()
        resp = client.post('/api/responses', headers=as_user(student['email']), json={
            'formId': form['id'],
            'studentId': student['id'],
            'ratings': theory_ratings(),
        })
        statuses.append(resp.status_code)

    threads = [threading.Thread(target=submit) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(statuses) == [201, 409]
    assert len(FeedbackResponse.get_all(form_id=form['id'])) == 1


def test_unique_constraint_backs_up_the_gate(app, make_student, make_form):
    student = make_student()
    form = make_form()
    with get_db() as conn:
        conn.execute('''
            INSERT INTO feedback_responses (id, form_id, student_id) VALUES (?, ?, ?)
        ''', ('resp_manual', form['id'], student['id']))

    with pytest.raises(SubmissionError) as excinfo:
        submit_response(form['id'], student['id'], theory_ratings())
    assert excinfo.value.reason == 'DUPLICATE_SUBMISSION'


class TestSnapshotStability:
    def test_catalog_edit_does_not_change_submitted_items(self, client, make_student, make_form,
                                                          admin_headers):
        student = make_student()
        form = make_form()
        assert post_response(client, student, form['id']).status_code == 201

        client.put('/api/admin/feedback-parameters', headers=admin_headers,
                   json={'id': 'theory_1', 'text': 'Reworded question', 'question_type': 'scale_1_10'})

        [stored] = FeedbackResponse.get_all(form_id=form['id'])
        item = next(i for i in stored['items'] if i['parameter_id'] == 'theory_1')
        assert item['question_type'] == 'scale_3'
        assert item['question_text'] != 'Reworded question'

        report = client.get(f"/api/reports/forms/{form['id']}", headers=admin_headers).get_json()
        texts = [p['text'] for p in report['parameterAverages']]
        assert 'Reworded question' not in texts

    def test_form_questions_survive_catalog_changes(self, client, make_form, make_student,
                                                    admin_headers):
        form = make_form()
        Question.update('theory_2', text='Changed after creation')
        client.post('/api/admin/feedback-parameters/reset', headers=admin_headers)

        student = make_student()
        questions = client.get(f"/api/forms/{form['id']}/questions",
                               headers=as_user(student['email'])).get_json()
        assert len(questions) == 7
        assert all(q['text'] != 'Changed after creation' for q in questions)

    def test_deleting_unanswered_question_keeps_form_snapshot(self, client, make_form, make_student,
                                                              admin_headers):
        form = make_form()
        resp = client.delete('/api/admin/feedback-parameters?id=theory_6', headers=admin_headers)
        assert resp.status_code == 200

        student = make_student()
        assert post_response(client, student, form['id']).status_code == 201
        [stored] = FeedbackResponse.get_all(form_id=form['id'])
        item = next(i for i in stored['items'] if i['parameter_id'] == 'theory_6')
        assert item['question_type'] == 'scale_3'

    def test_question_with_responses_cannot_be_deleted(self, client, make_student, make_form,
                                                       admin_headers):
        student = make_student()
        form = make_form()
        post_response(client, student, form['id'])

        resp = client.delete('/api/admin/feedback-parameters?id=theory_1', headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()['responseCount'] == 1


class TestBulkSubmission:
    def test_all_forms_submitted_together(self, client, make_student, make_form):
        student = make_student()
        theory = make_form(subject='Soft Computing')
        lab = make_form(subject='ML Lab', batch='B1')
        student_b1 = make_student(email='b1@college.edu', batch='B1')

        resp = client.post('/api/responses/bulk', headers=as_user(student_b1['email']), json={
            'studentId': student_b1['id'],
            'submissions': [
                {'formId': theory['id'], 'ratings': theory_ratings()},
                {'formId': lab['id'], 'ratings': {'lab_1': 1, 'lab_2': 1, 'lab_3': 9}},
            ],
        })
        assert resp.status_code == 201
        assert resp.get_json()['count'] == 2
        assert FeedbackResponse.submitted_form_ids(student_b1['id']) == {theory['id'], lab['id']}
        assert FeedbackResponse.submitted_form_ids(student['id']) == set()

    def test_one_failure_aborts_everything(self, app, make_student, make_form):
        student = make_student()
        allowed = make_form(subject='Soft Computing')
        other_division = make_form(subject='Data Engineering', division='B')

        with pytest.raises(SubmissionError) as excinfo:
            submit_bulk(student['id'], [
                {'formId': allowed['id'], 'ratings': theory_ratings()},
                {'formId': other_division['id'], 'ratings': theory_ratings()},
            ])
        assert excinfo.value.reason == 'NOT_AUTHORIZED'
        assert excinfo.value.form_id == other_division['id']
        assert FeedbackResponse.get_all(student_id=student['id']) == []

    def test_already_submitted_forms_are_skipped(self, client, make_student, make_form):
        student = make_student()
        first = make_form(subject='Soft Computing')
        second = make_form(subject='Data Engineering')
        submit_response(first['id'], student['id'], theory_ratings())

        resp = client.post('/api/responses/bulk', headers=as_user(student['email']), json={
            'studentId': student['id'],
            'submissions': [
                {'formId': first['id'], 'ratings': theory_ratings(1)},
                {'formId': second['id'], 'ratings': theory_ratings()},
            ],
        })
        assert resp.status_code == 201
        assert resp.get_json()['count'] == 1
        assert FeedbackResponse.submitted_form_ids(student['id']) == {first['id'], second['id']}
        assert len(FeedbackResponse.get_all(student_id=student['id'])) == 2

    def test_invalid_submission_reports_form(self, app, make_student):
        student = make_student()
        with pytest.raises(ValidationError) as excinfo:
            submit_bulk(student['id'], [{'formId': 'form_x', 'ratings': {}}])
        assert 'form_x' in excinfo.value.message


class TestHonoursEligibility:
    @pytest.fixture
    def honours_student(self, make_student):
        return make_student(email='asha@college.edu', course='IT', division='A', batch='B1',
                            honours_course='AIML', honours_batch='H1')

    def test_honours_forms_are_listed(self, client, honours_student, make_form):
        regular = make_form(subject='Machine Learning')
        honours = make_form(subject='Deep Learning', course='AIML', division='H')
        honours_lab = make_form(subject='DL Lab', course='AIML', division='H', batch='H1')
        make_form(subject='DL Lab', course='AIML', division='H', batch='H2')
        make_form(subject='Deep Learning', course='AIML', division='H', semester=6)

        forms = client.get('/api/forms', headers=as_user(honours_student['email'])).get_json()
        assert {f['id'] for f in forms} == {regular['id'], honours['id'], honours_lab['id']}

    def test_honours_batch_decides_lab_forms(self, client, honours_student, make_form):
        honours_lab = make_form(subject='DL Lab', course='AIML', division='H', batch='H1')
        other_batch = make_form(subject='DL Lab', course='AIML', division='H', batch='H2')
        lab_ratings = {'lab_1': 1, 'lab_2': 1, 'lab_3': 9}

        assert post_response(client, honours_student, honours_lab['id'], lab_ratings).status_code == 201
        resp = post_response(client, honours_student, other_batch['id'], lab_ratings)
        assert resp.status_code == 403

    def test_bulk_submission_covers_regular_and_honours_forms(self, app, honours_student, make_form):
        regular = make_form(subject='Machine Learning')
        honours = make_form(subject='Deep Learning', course='AIML', division='H')

        ids = submit_bulk(honours_student['id'], [
            {'formId': regular['id'], 'ratings': theory_ratings()},
            {'formId': honours['id'], 'ratings': theory_ratings()},
        ])
        assert len(ids) == 2
        assert FeedbackResponse.submitted_form_ids(honours_student['id']) == {regular['id'],
                                                                             honours['id']}

    def test_without_honours_course_other_courses_stay_closed(self, app, make_student, make_form):
        student = make_student()
        honours = make_form(subject='Deep Learning', course='AIML', division='A')
        with pytest.raises(SubmissionError) as excinfo:
            submit_response(honours['id'], student['id'], theory_ratings())
        assert excinfo.value.reason == 'NOT_AUTHORIZED'
