from stableride.models.user import User
from stableride.models.booking import Booking, TripEnhancement
from stableride.models.admin import AdminUser, AuditLog
from stableride.models.payment import Payment
from stableride.models.service_area import ServiceArea
from stableride.models.integration import Integration
from stableride.models.policy import Policy, PolicyVersion
from stableride.models.business_hours import BusinessHours, Holiday

__all__ = [
    "User", "Booking", "TripEnhancement", "AdminUser", "AuditLog", "Payment",
    "ServiceArea", "Integration", "Policy", "PolicyVersion", "BusinessHours", "Holiday",
]
