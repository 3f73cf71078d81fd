"""API Dependencies - Authentication

The identity collaborator is stubbed with a fixed user table; a token's
subject resolves to a user whose ``{user_id, role}`` is handed to the core.
"""
import logging

from fastapi import Depends, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from domain.auth import User, UserInDB
from domain.errors import (
    AlreadyInState, ConflictError, DomainError, ForbiddenError, NotFoundError,
    OverRefundError, SerializationFailure, ValidationError
)
from domain.value_objects import Actor
from infrastructure.security import decode_access_token, get_password_hash
from api.schemas import TokenData

logger = logging.getLogger("hotel.api")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# Mock user directory
# In production, this would be a call to the identity service
_fake_users_db = {
    "admin": {
        "username": "admin",
        "full_name": "Admin User",
        "email": "admin@example.com",
        "role": "admin",
        "plain_password": "admin123",
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174000"
    },
    "reception": {
        "username": "reception",
        "full_name": "Front Desk",
        "role": "receptionist",
        "plain_password": "reception123",
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174001"
    },
    "cleaner.x": {
        "username": "cleaner.x",
        "full_name": "Cleaner X",
        "role": "cleaner",
        "plain_password": "cleaner123",
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174002"
    },
    "cleaner.y": {
        "username": "cleaner.y",
        "full_name": "Cleaner Y",
        "role": "cleaner",
        "plain_password": "cleaner123",
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174003"
    },
    "guest": {
        "username": "guest",
        "full_name": "Guest User",
        "email": "guest@example.com",
        "role": "guest",
        "plain_password": "guest123",
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174004"
    },
    "former.staff": {
        "username": "former.staff",
        "full_name": "Former Staff",
        "role": "receptionist",
        "plain_password": "former123",
        "disabled": True,
        "user_id": "123e4567-e89b-12d3-a456-426614174005"
    }
}

fake_users_db = _fake_users_db

# Cache for hashed passwords
_password_hash_cache = {}

def _get_hashed_password(username: str) -> str:
    """Lazily hash passwords on first access"""
    if username not in _password_hash_cache:
        user = _fake_users_db.get(username)
        if user and "plain_password" in user:
            _password_hash_cache[username] = get_password_hash(user["plain_password"])
    return _password_hash_cache.get(username, "")

def get_user(db, username: str):
    if username in db:
        user_dict = db[username].copy()
        if "plain_password" in user_dict:
            user_dict["hashed_password"] = _get_hashed_password(username)
            del user_dict["plain_password"]
        return UserInDB(**user_dict)
    return None

async def get_current_user(token: str = Depends(oauth2_scheme)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = TokenData(username=username)
    except JWTError:
        raise credentials_exception
    
    user = get_user(_fake_users_db, username=token_data.username)
    if user is None:
        raise credentials_exception
    return user

async def get_current_active_user(current_user: User = Depends(get_current_user)):
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user

async def get_current_actor(current_user: User = Depends(get_current_active_user)) -> Actor:
    return current_user.as_actor()


# ============================================================================
# ERROR MAPPING
# ============================================================================

_STATUS_BY_ERROR = (
    (AlreadyInState, status.HTTP_409_CONFLICT),
    (SerializationFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (OverRefundError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
)

def to_http_exception(error: DomainError) -> HTTPException:
    """Translate a domain error into an HTTP error with a {code, message} body"""
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, mapped in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            status_code = mapped
            break
    if status_code >= 500:
        logger.error("%s: %s", error.code, error.message)
    else:
        logger.info("Rejected request with %s: %s", error.code, error.message)
    return HTTPException(status_code=status_code, detail=error.to_dict())

def request_validation_response(exc: RequestValidationError) -> JSONResponse:
    """Render framework-level request validation failures like any other ValidationError"""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    error = ValidationError(f"Invalid request ({problems})")
    logger.info("Rejected request with %s: %s", error.code, error.message)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": error.to_dict()})
