from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import ValidationError
from app.core.config import settings
from app.core.database import get_db
from app.core.constants import RoleEnum
from app.schemas.token import TokenPayload

http_bearer = HTTPBearer(auto_error=False)

__all__ = ["get_db", "get_current_user", "require_roles", "get_current_admin", "get_current_teacher_or_admin"]

def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(http_bearer)
) -> TokenPayload:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    try:
        payload = jwt.decode(
            credentials.credentials, settings.SECRET_KEY, algorithms=["HS256"]
        )
        token_data = TokenPayload(**payload)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    if not token_data.sub or not token_data.role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )
    return token_data

def require_roles(*roles: RoleEnum):
    """Dependency that checks the caller's role against ``roles``."""
    allowed = {role.value for role in roles}

    def _verify_role(current_user: TokenPayload = Depends(get_current_user)) -> TokenPayload:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action."
            )
        return current_user
    return _verify_role

get_current_admin = require_roles(RoleEnum.ADMIN)
get_current_teacher_or_admin = require_roles(RoleEnum.TEACHER, RoleEnum.ADMIN)
