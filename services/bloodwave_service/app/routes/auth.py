from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from ..core.errors import AuthErrorKind
from ..dependencies import get_auth_service, get_current_user_id
from ..schemas import AuthResult, LoginRequest, RefreshRequest, RegisterRequest, UserSummary
from ..services import AuthService

router = APIRouter(prefix="/auth")

_ERROR_STATUS = {
    AuthErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.USERNAME_TAKEN: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.EMAIL_TAKEN: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.ACCOUNT_INACTIVE: status.HTTP_403_FORBIDDEN,
    AuthErrorKind.INVALID_OR_EXPIRED_REFRESH_TOKEN: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.USER_NOT_FOUND: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _respond(result: AuthResult) -> JSONResponse:
    if result.success:
        status_code = status.HTTP_200_OK
    else:
        status_code = _ERROR_STATUS.get(result.error, status.HTTP_400_BAD_REQUEST)
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@router.post("/register", response_model=AuthResult)
async def register(payload: RegisterRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    result = await service.register(payload.username, payload.password, str(payload.email))
    return _respond(result)


@router.post("/login", response_model=AuthResult)
async def login(payload: LoginRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    result = await service.login(payload.username, payload.password)
    return _respond(result)


@router.post("/refresh", response_model=AuthResult)
async def refresh(payload: RefreshRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    result = await service.refresh(payload.refresh_token)
    return _respond(result)


@router.post("/logout", response_model=AuthResult)
async def logout(
    user_id: int = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    result = await service.logout(user_id)
    return _respond(result)


@router.post("/deactivate", response_model=AuthResult)
async def deactivate(
    user_id: int = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    result = await service.deactivate(user_id)
    return _respond(result)


@router.get("/me", response_model=UserSummary)
async def me(
    user_id: int = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
) -> UserSummary:
    user = await service.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user
