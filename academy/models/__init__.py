from .user import AuthProvider, User, UserRole
from .refresh_token import RefreshToken
from .course import Course, CourseLevel
from .enrollment import Enrollment, PaymentStatusEnum

__all__ = [
	"AuthProvider",
	"User",
	"UserRole",
	"RefreshToken",
	"Course",
	"CourseLevel",
	"Enrollment",
	"PaymentStatusEnum",
]
