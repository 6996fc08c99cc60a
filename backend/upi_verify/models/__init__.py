from upi_verify.models.order import Order
from upi_verify.models.payment import UpiPayment, PaymentStatus, AdminAction
from upi_verify.models.upi_config import UpiConfig
from upi_verify.models.notification import Notification
from upi_verify.models.audit import AuditLog

__all__ = ["Order", "UpiPayment", "PaymentStatus", "AdminAction", "UpiConfig", "Notification", "AuditLog"]
