from .course import CourseOut, CoursePage, CourseQuery, EnrolledCourseOut
from .enrollment import (
	CheckoutRequest,
	CheckoutResponse,
	DispatchSummaryOut,
	EnrollmentConfirmation,
	EnrollmentContact,
	EnrollmentOut,
	EnrollmentStatusOut,
	EnrollmentWithCourse,
	PaymentFailureCallback,
	PaymentOrderOut,
	PaymentSuccessCallback,
)
from .auth import (
	FederatedLoginInput,
	LoginInput,
	PasswordResetConfirm,
	PasswordResetRequest,
	ProfileUpdate,
	RefreshInput,
	Token,
	UserCreate,
	UserOut,
)
from .admin import AdminEnrollmentPage, AdminEnrollmentQuery, AdminStats

__all__ = [
	"CourseOut",
	"CoursePage",
	"CourseQuery",
	"EnrolledCourseOut",
	"CheckoutRequest",
	"CheckoutResponse",
	"DispatchSummaryOut",
	"EnrollmentConfirmation",
	"EnrollmentContact",
	"EnrollmentOut",
	"EnrollmentStatusOut",
	"EnrollmentWithCourse",
	"PaymentFailureCallback",
	"PaymentOrderOut",
	"PaymentSuccessCallback",
	"FederatedLoginInput",
	"LoginInput",
	"PasswordResetConfirm",
	"PasswordResetRequest",
	"ProfileUpdate",
	"RefreshInput",
	"Token",
	"UserCreate",
	"UserOut",
	"AdminEnrollmentPage",
	"AdminEnrollmentQuery",
	"AdminStats",
]
