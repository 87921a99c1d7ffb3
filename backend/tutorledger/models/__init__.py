from .students import Student
from .lessons import Lesson, LessonStatus
from .schedules import ScheduleSlot

__all__ = [
    'Student',
    'Lesson', 'LessonStatus',
    'ScheduleSlot',
]
