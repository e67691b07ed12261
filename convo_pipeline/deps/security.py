"""Request-scoped dependencies for FastAPI routes.

Tenant resolution belongs to the wider platform; the pipeline only reads
the already-resolved tenant id from the ``X-Tenant-ID`` header.
"""

from typing import Optional
from uuid import UUID

import structlog
from fastapi import Header, HTTPException, status

logger = structlog.get_logger(__name__)

TENANT_HEADER = "X-Tenant-ID"


def get_tenant_id(
    x_tenant_id: Optional[str] = Header(default=None, alias=TENANT_HEADER),
) -> Optional[UUID]:
    """
    Resolve the caller's tenant.

    Returns None when the header is absent (system-wide scope). A header
    that is not a UUID is rejected with 400.

    Usage:
        @router.post("/pipeline/jobs")
        async def create_job(..., tenant_id: Optional[UUID] = Depends(get_tenant_id)):
            ...
    """
    if x_tenant_id is None or not x_tenant_id.strip():
        return None
    try:
        return UUID(x_tenant_id.strip())
    except ValueError:
        logger.warning("invalid_tenant_header", value=x_tenant_id[:64])
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{TENANT_HEADER} must be a UUID",
        ) from None
