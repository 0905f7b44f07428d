from .notification import (
    MarkAllReadResult,
    NotificationMeta,
    NotificationPage,
    NotificationPayload,
    NotificationRead,
    NotificationTestRequest,
    UnreadCount,
)
from .pagination import PaginationMeta
from .push_subscription import (
    PushDeliveryRead,
    PushMessage,
    PushSubscriptionCreate,
    PushSubscriptionKeys,
    PushSubscriptionRead,
    PushUnsubscribe,
)

__all__ = [
    "MarkAllReadResult",
    "NotificationMeta",
    "NotificationPage",
    "NotificationPayload",
    "NotificationRead",
    "NotificationTestRequest",
    "PaginationMeta",
    "PushDeliveryRead",
    "PushMessage",
    "PushSubscriptionCreate",
    "PushSubscriptionKeys",
    "PushSubscriptionRead",
    "PushUnsubscribe",
    "UnreadCount",
]
