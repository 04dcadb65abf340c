from .admin import AdminConsole, AdminConsoleError
from .catalog import CatalogError, CatalogService
from .enrollments import EnrollmentRepository, EnrollmentService, EnrollmentServiceError
from .identity import IdentityError, IdentityService
from .invoices import InvoiceError, InvoiceGenerator, compute_totals
from .notifications import DispatchSummary, NotificationDispatcher, get_notification_dispatcher
from .payments import PaymentGatewayError, SimulatedGateway, get_payment_gateway

__all__ = [
	"AdminConsole",
	"AdminConsoleError",
	"CatalogError",
	"CatalogService",
	"EnrollmentRepository",
	"EnrollmentService",
	"EnrollmentServiceError",
	"IdentityError",
	"IdentityService",
	"InvoiceError",
	"InvoiceGenerator",
	"compute_totals",
	"DispatchSummary",
	"NotificationDispatcher",
	"get_notification_dispatcher",
	"PaymentGatewayError",
	"SimulatedGateway",
	"get_payment_gateway",
]
