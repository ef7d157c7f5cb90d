"""SQLAlchemy ORM models."""

from portal.models.user import User
from portal.models.profile import Profile
from portal.models.course import Course
from portal.models.video import Video
from portal.models.course_video import CourseVideo
from portal.models.subscription import Subscription
from portal.models.course_password import CoursePassword

__all__ = [
    "User",
    "Profile",
    "Course",
    "Video",
    "CourseVideo",
    "Subscription",
    "CoursePassword",
]
