from fastapi import Depends, Header, Request

from support_chat.errors import AccessDenied
from support_chat.model.chat.principal import Principal
from support_chat.service.auth.token import bearer_token, verify_token
from support_chat.service.chat.hub import ChatHub


def get_hub(request: Request) -> ChatHub:
    return request.app.state.chat_hub


def current_principal(authorization: str = Header(default="")) -> Principal:
    return verify_token(bearer_token(authorization))


def require_staff(principal: Principal = Depends(current_principal)) -> Principal:
    if not principal.is_staff:
        raise AccessDenied("Staff access required")
    return principal


def require_customer(principal: Principal = Depends(current_principal)) -> Principal:
    if principal.is_staff:
        raise AccessDenied("Customer access required")
    return principal
