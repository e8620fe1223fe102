from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from ..database import get_db, get_supabase
from ..models.user import User
from ..models.enums import UserRole
from supabase import Client
import logging

security = HTTPBearer()
logger = logging.getLogger(__name__)


# Auth Helper Functions
async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
    supabase: Client = Depends(get_supabase),
) -> User:
    """Get current authenticated user from Supabase token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        # Verify token with Supabase
        auth_response = supabase.auth.get_user(credentials.credentials)

        if not auth_response.user:
            raise credentials_exception

        supabase_user = auth_response.user

        # Find user in our database by Supabase ID
        user = db.query(User).filter(User.supabase_id == supabase_user.id).first()

        # If user doesn't exist in our DB, create them
        if not user:
            user = User.create_from_supabase(supabase_user, db)

    except Exception as e:
        logger.error(f"Authentication error: {e}")
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated"
        )

    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Ensure the user may operate the background jobs"""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin permissions required",
        )
    return current_user
