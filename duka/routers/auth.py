from fastapi import APIRouter, Depends

from duka.core.auth import get_current_user
from duka.schemas.user import UserResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ---------------- CURRENT USER ----------------
@router.get("/me", response_model=UserResponse)
def me(current_user=Depends(get_current_user)):
    return current_user
