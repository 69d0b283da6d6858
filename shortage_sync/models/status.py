"""Status and alert-type enums shared by the ORM, the reconciler and the fan-out engine."""

from enum import Enum


class ProductStatus(str, Enum):
    """Canonical availability of a product."""

    AVAILABLE = "AVAILABLE"
    TENSION = "TENSION"
    SHORTAGE = "SHORTAGE"
    UNKNOWN = "UNKNOWN"


class AlertType(str, Enum):
    """What a subscription wants to hear about."""

    AVAILABLE = "AVAILABLE"
    TENSION = "TENSION"
    SHORTAGE = "SHORTAGE"
    ANY_CHANGE = "ANY_CHANGE"
    PREDICTION = "PREDICTION"

    def matches(self, status: ProductStatus) -> bool:
        """True if a change to `status` should notify a subscription of this type."""
        if self is AlertType.ANY_CHANGE:
            return True
        if self is AlertType.PREDICTION:
            return False
        return self.value == status.value


class NotificationType(str, Enum):
    """In-app notification kind, one per target status."""

    AVAILABLE_ALERT = "AVAILABLE_ALERT"
    TENSION_ALERT = "TENSION_ALERT"
    SHORTAGE_ALERT = "SHORTAGE_ALERT"
    STATUS_UPDATE = "STATUS_UPDATE"

    @classmethod
    def for_status(cls, status: ProductStatus) -> "NotificationType":
        return {
            ProductStatus.AVAILABLE: cls.AVAILABLE_ALERT,
            ProductStatus.TENSION: cls.TENSION_ALERT,
            ProductStatus.SHORTAGE: cls.SHORTAGE_ALERT,
        }.get(status, cls.STATUS_UPDATE)
