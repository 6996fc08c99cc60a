"""
UPI Config Service — Reads and updates the merchant's UPI destination.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from upi_verify.errors import DestinationNotConfigured
from upi_verify.models.upi_config import UpiConfig
from upi_verify.services.audit_service import AuditService

logger = logging.getLogger(__name__)

CONFIG_AUDIT_KEY = "upi-config"


class UpiConfigService:

    @staticmethod
    def get_active(db: Session) -> Optional[UpiConfig]:
        config = db.query(UpiConfig).filter(UpiConfig.is_active.is_(True)).first()
        if not config:
            logger.warning("No active UPI configuration found")
        return config

    @staticmethod
    def require_active(db: Session) -> UpiConfig:
        config = UpiConfigService.get_active(db)
        if not config:
            raise DestinationNotConfigured("UPI payment system is not configured")
        return config

    @staticmethod
    def to_dict(config: UpiConfig) -> dict:
        return {
            "upi_id": config.upi_id,
            "merchant_name": config.merchant_name,
            "qr_code_image": config.qr_code_image,
            "instructions": config.instructions,
        }

    @staticmethod
    def update(db: Session, changes: dict, admin_id: str) -> UpiConfig:
        """Create the singleton or apply a partial update to it."""
        config = UpiConfigService.get_active(db)

        if config is None:
            if not changes.get("upi_id"):
                raise DestinationNotConfigured("A UPI ID is required to create the UPI configuration")
            config = UpiConfig(is_active=True)
            db.add(config)

        for field in ("upi_id", "merchant_name", "qr_code_image", "instructions"):
            value = changes.get(field)
            if value:
                setattr(config, field, value)
        config.updated_by = admin_id

        db.flush()
        AuditService.log(
            db, CONFIG_AUDIT_KEY, "UPI_CONFIG_UPDATED",
            actor=admin_id,
            payload={k: v for k, v in changes.items() if v and k != "qr_code_image"},
        )
        db.commit()
        db.refresh(config)

        logger.info("UPI configuration updated by %s", admin_id)
        return config
