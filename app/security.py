import os
import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request

from app.logger import logger

ADMIN_TOKEN_ENV = "ADMIN_API_TOKEN"


def _extract_token(x_admin_token: Optional[str], authorization: Optional[str]) -> str:
    if x_admin_token:
        return x_admin_token
    scheme, _, credentials = (authorization or "").partition(" ")
    if scheme.lower() == "bearer":
        return credentials.strip()
    return ""


def require_admin_token(
    request: Request,
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
    authorization: Optional[str] = Header(None),
) -> None:
    """手动触发与锁查看接口的管理员校验；未配置 ADMIN_API_TOKEN 时放行"""
    expected = os.getenv(ADMIN_TOKEN_ENV, "")
    if not expected:
        return

    provided = _extract_token(x_admin_token, authorization)
    if not secrets.compare_digest(provided, expected):
        client = request.client.host if request.client else "-"
        logger.warning(f"拒绝未授权的管理请求: {request.method} {request.url.path} from {client}")
        raise HTTPException(status_code=401, detail="Invalid admin token")
