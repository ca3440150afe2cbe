from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from typing import Annotated
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, ValidationError
from seatkeeper.core.config import SECRET_KEY, ALGORITHM, JWT_ISSUER, JWT_AUDIENCE
from seatkeeper.core.ctx import AUTH_ROLES_CTX, AUTH_SUBJECT_CTX
from seatkeeper.domain.exceptions import Unauthorized, Forbidden


oauth2_bearer = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=True)


class TokenPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sub: str
    iat: int
    nbf: int
    exp: int
    typ: str | None = None
    iss: str | None = None
    aud: str | list[str] | None = None
    roles: list[str] = []


async def get_token_payload(token: Annotated[str, Depends(oauth2_bearer)]) -> TokenPayload:
    try:
        raw_payload = jwt.decode(
            token,
            SECRET_KEY,
            algorithms=[ALGORITHM],
            issuer=JWT_ISSUER,
            audience=JWT_AUDIENCE,
            options={"verify_aud": True, "leeway": 5}
        )
        if raw_payload.get("typ") != "access":
            raise Unauthorized("Invalid token type", ctx={"reason": "invalid_type"})
        return TokenPayload.model_validate(raw_payload)
    except (JWTError, ValidationError):
        raise Unauthorized("Invalid authentication credentials", ctx={"reason": "invalid_token"})


def require_roles(*allowed_roles: str):
    allowed = set(allowed_roles)

    async def _inner(payload: Annotated[TokenPayload, Depends(get_token_payload)]) -> TokenPayload:
        roles = set(payload.roles)
        AUTH_ROLES_CTX.set(tuple(sorted(roles)))
        AUTH_SUBJECT_CTX.set(payload.sub)

        if allowed and roles.isdisjoint(allowed):
            raise Forbidden("Permission denied", ctx={"required": sorted(allowed), "user_roles": sorted(roles)})
        return payload
    return _inner
