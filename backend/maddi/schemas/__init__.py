from maddi.schemas.booking import BookingCreate, BookingResponse, BookingListResponse
from maddi.schemas.billboard import (
    BillboardCreate,
    BillboardResponse,
    BlockedDateCreate,
    BlockedDateResponse,
    PricingOverrideCreate,
    PricingOverrideResponse,
    AvailabilityResponse,
)
from maddi.schemas.admin import (
    InvitationCreate,
    InvitationResponse,
    InvitationDetails,
    InvitationAccept,
    AdminUserResponse,
)
from maddi.schemas.notification import NotificationResponse, LifecycleReportResponse

__all__ = [
    "BookingCreate", "BookingResponse", "BookingListResponse",
    "BillboardCreate", "BillboardResponse", "BlockedDateCreate", "BlockedDateResponse",
    "PricingOverrideCreate", "PricingOverrideResponse", "AvailabilityResponse",
    "InvitationCreate", "InvitationResponse", "InvitationDetails", "InvitationAccept",
    "AdminUserResponse",
    "NotificationResponse", "LifecycleReportResponse",
]
