"""
Rating normalization and report aggregation.

All functions here are pure: they take rows already loaded from the database
(responses with nested ``items``, form question snapshots, faculty rows) and
return plain dicts ready for ``jsonify``. Nothing is cached or pre-computed;
reports are rebuilt from the raw responses on every request.
"""

from typing import Dict, Iterable, List, Optional

from utils import normalize_email

DEFAULT_QUESTION_TYPE = 'scale_1_10'


def normalize_rating(rating: float, question_type: Optional[str]) -> float:
    """Rescale a raw rating onto the common 0-10 axis.

    - ``yes_no``: 0/1 times 10. Linear, so an averaged fraction such as 0.6
      maps to 6.0.
    - ``scale_3``: 1-3 mapped to (r / 3) * 10.
    - ``scale_1_10`` and anything unknown or missing: unchanged. A clamped 0
      is passed through as 0.
    """
    rating = float(rating)
    if question_type == 'yes_no':
        return rating * 10
    if question_type == 'scale_3':
        return (rating / 3) * 10
    return rating


def rating_display(raw_average: float, question_type: Optional[str]) -> str:
    """Format a raw per-question mean in the question's own scale."""
    if question_type == 'yes_no':
        return f"{raw_average * 100:.0f}% Yes"
    if question_type == 'scale_3':
        return f"{raw_average:.1f}/3"
    return f"{raw_average:.1f}/10"


def rating_band(normalized: float) -> str:
    if normalized >= 7:
        return 'good'
    if normalized >= 5:
        return 'medium'
    return 'poor'


def _item_type(item: Dict, question_map: Dict[str, Dict]) -> str:
    if item.get('question_type'):
        return item['question_type']
    question = question_map.get(item['parameter_id'])
    if question and question.get('type'):
        return question['type']
    return DEFAULT_QUESTION_TYPE


def response_average(items: List[Dict], question_map: Optional[Dict[str, Dict]] = None) -> float:
    """Mean of the normalized ratings of one response; 0 for no items."""
    if not items:
        return 0.0
    question_map = question_map or {}
    total = sum(normalize_rating(item['rating'], _item_type(item, question_map)) for item in items)
    return total / len(items)


def mean_response_average(responses: List[Dict],
                          question_map: Optional[Dict[str, Dict]] = None) -> float:
    """Mean of per-response averages; 0 when there are no responses."""
    if not responses:
        return 0.0
    return sum(response_average(r['items'], question_map) for r in responses) / len(responses)


def build_question_map(responses: List[Dict], form_questions: List[Dict]) -> Dict[str, Dict]:
    """Map parameter_id -> {text, type, position} for a form report.

    Snapshots embedded in response items win, since they record exactly what
    the student answered. Forms answered before items carried snapshots fall
    back to the form's question snapshot, and as a last resort to numbered
    placeholders built from the first response.
    """
    question_map = {}
    position = 1
    for response in responses:
        for item in response['items']:
            parameter_id = item['parameter_id']
            if item.get('question_text') and item.get('question_type') and parameter_id not in question_map:
                question_map[parameter_id] = {
                    'text': item['question_text'],
                    'type': item['question_type'],
                    'position': position,
                }
                position += 1

    if not question_map and form_questions:
        for index, question in enumerate(form_questions, start=1):
            question_map[question['original_param_id']] = {
                'text': question['question_text'],
                'type': question['question_type'],
                'position': index,
            }

    if not question_map and responses:
        for index, item in enumerate(responses[0]['items'], start=1):
            question_map[item['parameter_id']] = {
                'text': f"Question {index}",
                'type': item.get('question_type') or DEFAULT_QUESTION_TYPE,
                'position': index,
            }

    return question_map


def question_averages(responses: List[Dict], question_map: Dict[str, Dict]) -> List[Dict]:
    """Per-question raw and normalized means, in question order."""
    ordered = sorted(question_map.items(), key=lambda entry: entry[1]['position'])
    results = []
    for index, (parameter_id, question) in enumerate(ordered, start=1):
        ratings = [item['rating']
                   for response in responses
                   for item in response['items']
                   if item['parameter_id'] == parameter_id]
        question_type = question.get('type') or DEFAULT_QUESTION_TYPE
        raw_average = sum(ratings) / len(ratings) if ratings else 0.0
        normalized = normalize_rating(raw_average, question_type)
        results.append({
            'id': parameter_id,
            'index': index,
            'text': question['text'],
            'question_type': question_type,
            'average': raw_average,
            'normalizedAvg': normalized,
            'count': len(ratings),
            'display': rating_display(raw_average, question_type),
            'band': rating_band(normalized),
        })
    return results


def collect_comments(responses: List[Dict]) -> List[Dict]:
    """Non-empty comments, newest first."""
    comments = [{'text': r['comment'].strip(), 'date': r['submitted_at']}
                for r in responses
                if r.get('comment') and r['comment'].strip()]
    comments.sort(key=lambda c: c['date'] or '', reverse=True)
    return comments


def form_summary(form: Dict, responses: List[Dict], form_questions: List[Dict]) -> Dict:
    """Everything a single-form report shows."""
    if not responses:
        return {
            'form': form,
            'responseCount': 0,
            'avgRating': 0.0,
            'parameterAverages': [{
                'id': q['original_param_id'],
                'index': index,
                'text': q['question_text'],
                'question_type': q['question_type'] or DEFAULT_QUESTION_TYPE,
                'average': 0.0,
                'normalizedAvg': 0.0,
                'count': 0,
                'display': rating_display(0.0, q['question_type']),
                'band': rating_band(0.0),
            } for index, q in enumerate(form_questions, start=1)],
            'comments': [],
        }

    question_map = build_question_map(responses, form_questions)
    return {
        'form': form,
        'responseCount': len(responses),
        'avgRating': mean_response_average(responses, question_map),
        'parameterAverages': question_averages(responses, question_map),
        'comments': collect_comments(responses),
    }


def format_average(average: float, response_count: int) -> str:
    return f"{average:.1f}" if response_count else '–'


def faculty_rankings(faculty: Iterable[Dict], forms: List[Dict], responses: List[Dict]) -> List[Dict]:
    """Rank faculty by the mean of their per-response averages.

    Forms are matched to faculty by email, case-insensitively. Faculty with
    no responses get average 0, display "–" and sort after everyone with
    responses. Ties on average go to the larger response count, then to the
    name in alphabetical order.
    """
    forms_by_email = {}
    for form in forms:
        forms_by_email.setdefault(normalize_email(form['faculty_email']), []).append(form)

    responses_by_form = {}
    for response in responses:
        responses_by_form.setdefault(response['form_id'], []).append(response)

    rows = []
    for member in faculty:
        own_forms = forms_by_email.get(normalize_email(member['email']), [])
        own_responses = [r for f in own_forms for r in responses_by_form.get(f['id'], [])]
        average = mean_response_average(own_responses)
        rows.append({
            'id': member.get('id'),
            'name': member['name'],
            'email': member['email'],
            'formCount': len(own_forms),
            'responseCount': len(own_responses),
            'avgRating': average,
            'display': format_average(average, len(own_responses)),
        })

    rows.sort(key=lambda r: (r['responseCount'] == 0,
                             -r['avgRating'],
                             -r['responseCount'],
                             r['name'].lower()))
    return rows


def faculty_breakdown(forms: List[Dict], responses: List[Dict]) -> Dict:
    """Per-form statistics and the overall average for one faculty member."""
    responses_by_form = {}
    for response in responses:
        responses_by_form.setdefault(response['form_id'], []).append(response)

    form_rows = []
    for form in forms:
        own = responses_by_form.get(form['id'], [])
        average = mean_response_average(own)
        form_rows.append({
            'form': form,
            'responseCount': len(own),
            'avgRating': average,
            'display': format_average(average, len(own)),
        })

    all_responses = [r for f in forms for r in responses_by_form.get(f['id'], [])]
    overall = mean_response_average(all_responses)
    return {
        'formCount': len(forms),
        'responseCount': len(all_responses),
        'avgRating': overall,
        'display': format_average(overall, len(all_responses)),
        'forms': form_rows,
    }
