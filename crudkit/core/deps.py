from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from crudkit.core.security import Claims, InvalidTokenError, MissingSecretError, TokenExpiredError, decode_token

bearer = HTTPBearer(auto_error=False)


def get_current_claims(request: Request, creds: HTTPAuthorizationCredentials = Depends(bearer)) -> Claims:
    if not creds:
        raise HTTPException(status_code=401, detail="missing bearer token")
    try:
        claims = decode_token(creds.credentials)
    except TokenExpiredError:
        raise HTTPException(status_code=401, detail="token expired")
    except InvalidTokenError:
        raise HTTPException(status_code=401, detail="invalid token")
    except MissingSecretError:
        raise HTTPException(status_code=500, detail="authentication is not configured")
    request.state.claims = claims
    return claims


def claims_from_request(request: Request) -> Claims | None:
    return getattr(request.state, "claims", None)
