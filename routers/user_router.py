"""
User Router - profile and entitlements of the signed-in user
"""

from fastapi import APIRouter, Depends

from auth_utils import get_current_user
from backend.billing.entitlements import entitlements_summary
from backend.utils.responses import success_response
from models.user import user_payload

user_router = APIRouter(prefix="/api/user", tags=["user"])


@user_router.get("")
async def get_profile(user=Depends(get_current_user)):
    return success_response(user_payload(user))


@user_router.get("/entitlements")
async def get_entitlements(user=Depends(get_current_user)):
    return success_response(entitlements_summary(user))
