from .notification import Notification
from .push_subscription import PushSubscription

__all__ = [
    "Notification",
    "PushSubscription",
]
