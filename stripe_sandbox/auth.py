from fastapi import Header, HTTPException
from jose import JWTError, jwt

from stripe_sandbox import config


def verify_token(authorization: str = Header(None)):
    """Bearer-token guard for the passthrough routes.

    Only enforced when JWT_SECRET is set; the sandbox runs open by default.
    """
    secret = config.jwt_secret()
    if not secret:
        return None

    try:
        scheme, token = (authorization or "").split()
        if scheme.lower() != "bearer":
            raise ValueError("unsupported scheme")
        return jwt.decode(token, secret, algorithms=["HS256"])
    except (ValueError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")
