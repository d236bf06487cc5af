from .base import Base
from .identity import Identity
from .profile import Profile
from .subscription_plan import SubscriptionPlan
from .user_subscription import UserSubscription
from .payment_transaction import PaymentTransaction
from .usage_tracking import UsageTracking
from .analysis_history import AnalysisHistory
from .error_code import ErrorCode

__all__ = [
    "Base",
    "Identity",
    "Profile",
    "SubscriptionPlan",
    "UserSubscription",
    "PaymentTransaction",
    "UsageTracking",
    "AnalysisHistory",
    "ErrorCode",
]
