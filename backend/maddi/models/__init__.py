from maddi.models.user import User
from maddi.models.billboard import Billboard
from maddi.models.booking import Booking
from maddi.models.calendar import BlockedDate, PricingOverride
from maddi.models.notification import Notification, CampaignMilestone
from maddi.models.admin import AdminUser, AdminInvitation

__all__ = [
    "User", "Billboard", "Booking", "BlockedDate", "PricingOverride",
    "Notification", "CampaignMilestone", "AdminUser", "AdminInvitation",
]
