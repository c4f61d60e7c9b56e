"""
Receipts Router - receipt scan metering

Receipt parsing itself runs elsewhere; this endpoint is called once per scan
to count it against the user's tier before the scan is processed.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import get_current_user
from backend.utils.responses import result_response
from database import get_db
from services.usage_service import UsageService

receipts_router = APIRouter(prefix="/api/receipts", tags=["receipts"])


@receipts_router.post("/scans")
async def record_scan(user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    result = await UsageService(db).record_receipt_scan(user)
    return result_response(result, error_status=403)
