import time

import jwt

import support_chat.config.config as configs
from support_chat.errors import AuthenticationRequired, InvalidCredential
from support_chat.model.chat.kinds import PrincipalKind
from support_chat.model.chat.principal import Principal

ALGORITHM = "HS256"


def issue_token(
    principal_id: int,
    kind: PrincipalKind | str,
    name: str,
    email: str | None = None,
    secret: str | None = None,
    ttl_seconds: int | None = None,
    now: float | None = None,
) -> str:
    issued_at = int(now if now is not None else time.time())
    ttl = ttl_seconds if ttl_seconds is not None else configs.CHAT_TOKEN_TTL_SECONDS
    claims = {
        "id": principal_id,
        "kind": PrincipalKind(kind).value,
        "name": name,
        "email": email,
        "iat": issued_at,
        "exp": issued_at + ttl,
    }
    return jwt.encode(claims, secret or configs.CHAT_TOKEN_SECRET, algorithm=ALGORITHM)


def _resolve_kind(claims: dict) -> PrincipalKind:
    if "kind" in claims:
        try:
            return PrincipalKind(claims["kind"])
        except ValueError:
            raise InvalidCredential() from None
    if "isAdmin" in claims:
        return PrincipalKind.STAFF if claims["isAdmin"] else PrincipalKind.CUSTOMER
    raise InvalidCredential()


def verify_token(token: str | None, secret: str | None = None) -> Principal:
    """
    Decode an HS256 bearer token and return the principal it names.
    Raises AuthenticationRequired when no token is given and InvalidCredential
    for anything that fails signature, shape or expiry checks.
    Tokens carrying ``isAdmin`` instead of ``kind`` are accepted.
    """
    token = (token or "").strip()
    if not token:
        raise AuthenticationRequired()

    try:
        claims = jwt.decode(token, secret or configs.CHAT_TOKEN_SECRET, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise InvalidCredential("Authentication token expired") from None
    except jwt.InvalidTokenError:
        raise InvalidCredential() from None

    principal_id = claims.get("id")
    if not isinstance(principal_id, int) or isinstance(principal_id, bool):
        raise InvalidCredential()

    kind = _resolve_kind(claims)
    name = claims.get("name") or claims.get("email") or ("Staff" if kind is PrincipalKind.STAFF else "Customer")
    return Principal(id=principal_id, kind=kind, name=str(name), email=claims.get("email"))


def bearer_token(authorization: str) -> str:
    scheme, _, value = (authorization or "").strip().partition(" ")
    if scheme.lower() == "bearer":
        return value.strip()
    return ""
