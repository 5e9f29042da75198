"""Authentication endpoints: a signed login challenge exchanged for a JWT bound to an address."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Literal
from uuid import uuid4

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError

from governance.core.config import Settings, get_settings
from governance.fhe.client import derive_address, login_message
from governance.schemas.hexbytes import HexBytes

router = APIRouter()
security_scheme = HTTPBearer(auto_error=True)


class LoginRequest(BaseModel):
    verify_key: HexBytes
    signed_at: int
    signature: HexBytes


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    address: str


class TokenPayload(BaseModel):
    sub: str
    type: Literal["access"]
    iat: datetime
    exp: datetime
    jti: str


@dataclass(frozen=True)
class AuthenticatedCaller:
    address: str
    token_id: str


def _create_token(*, address: str, settings: Settings) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": address,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.access_token_expire_minutes)).timestamp()),
        "type": "access",
        "jti": uuid4().hex,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _decode_token(*, token: str, settings: Settings) -> TokenPayload:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:  # pragma: no cover - jose normalizes errors
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    try:
        return TokenPayload(**payload)
    except ValidationError as exc:  # pragma: no cover - validation handles data issues
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


def get_current_caller(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
) -> AuthenticatedCaller:
    payload = _decode_token(token=credentials.credentials, settings=get_settings())
    request.state.caller_address = payload.sub
    return AuthenticatedCaller(address=payload.sub, token_id=payload.jti)


@router.post("/login", response_model=TokenResponse, summary="Exchange a signed challenge for a JWT")
def login(request: LoginRequest) -> TokenResponse:
    settings = get_settings()
    now = int(datetime.now(UTC).timestamp())
    if abs(now - request.signed_at) > settings.login_signature_max_age_seconds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Login challenge expired")

    try:
        verify_key = Ed25519PublicKey.from_public_bytes(request.verify_key)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid verify key"
        ) from exc

    address = derive_address(request.verify_key)
    try:
        verify_key.verify(request.signature, login_message(address, request.signed_at))
    except InvalidSignature as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature") from exc

    return TokenResponse(
        access_token=_create_token(address=address, settings=settings),
        expires_in=settings.access_token_expire_minutes * 60,
        address=address,
    )


@router.get("/me", summary="Address bound to the presented token")
def whoami(caller: AuthenticatedCaller = Depends(get_current_caller)) -> dict[str, str]:
    return {"address": caller.address}


__all__ = ["AuthenticatedCaller", "TokenResponse", "get_current_caller", "login", "router"]
