from .database import init_db, get_db, get_db_path, transaction
from .student import Student
from .faculty import Faculty
from .admin_user import AdminUser
from .question import Question
from .form import FeedbackForm
from .response import FeedbackResponse
from .timetable import Timetable, TimetableImage
from .draft import DraftFeedback

__all__ = ['init_db', 'get_db', 'get_db_path', 'transaction', 'Student', 'Faculty',
           'AdminUser', 'Question', 'FeedbackForm', 'FeedbackResponse', 'Timetable',
           'TimetableImage', 'DraftFeedback']
