from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.media_file import FileStatus, MediaFile  # noqa: F401
from app.models.subscription import (  # noqa: F401
    SubscriptionPlan,
    SubscriptionStatus,
    UserSubscription,
)
