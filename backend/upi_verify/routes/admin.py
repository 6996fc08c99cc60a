"""
Admin Routes — UPI destination management and audit trail access.
"""
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from upi_verify.database import get_db
from upi_verify.schemas.schemas import AuditLogEntry, UpiConfigData, UpiConfigResponse, UpiConfigUpdateRequest
from upi_verify.services.audit_service import AuditService
from upi_verify.services.upi_config_service import UpiConfigService
from upi_verify.utils.validators import validate_upi_vpa

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.put("/upi-config", response_model=UpiConfigResponse)
def update_upi_config(
    payload: UpiConfigUpdateRequest,
    admin_id: str = Header(..., alias="admin-id"),
    db: Session = Depends(get_db),
):
    """Create or update the merchant's UPI destination."""
    if payload.upi_id is not None and not validate_upi_vpa(payload.upi_id):
        raise HTTPException(status_code=400, detail="Invalid UPI ID format. Expected format: name@bank")

    config = UpiConfigService.update(db, payload.model_dump(exclude_none=True), admin_id)
    return UpiConfigResponse(data=UpiConfigData(**UpiConfigService.to_dict(config)))


@router.get("/audit/{order_id}", response_model=list[AuditLogEntry])
def get_audit_trail(
    order_id: str,
    admin_id: str = Header(..., alias="admin-id"),
    db: Session = Depends(get_db),
):
    """Get the full payment audit trail for an order."""
    logs = AuditService.get_trail(db, order_id)
    if not logs:
        raise HTTPException(status_code=404, detail="No audit logs found for this order")
    return logs


@router.get("/audit/{order_id}/verify")
def verify_audit_chain(
    order_id: str,
    admin_id: str = Header(..., alias="admin-id"),
    db: Session = Depends(get_db),
):
    """Verify the integrity of the audit hash chain for an order."""
    return AuditService.verify_chain(db, order_id)
