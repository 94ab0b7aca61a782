from airman.models.audit_log import AuditLog  # noqa: F401
from airman.models.availability import InstructorAvailability  # noqa: F401
from airman.models.booking import Booking, BookingStatus  # noqa: F401
from airman.models.notification import Notification, NotificationType  # noqa: F401
from airman.models.tenant import Tenant  # noqa: F401
from airman.models.user import User, UserRole  # noqa: F401
