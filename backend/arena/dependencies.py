from typing import Optional

from fastapi import Header

from arena.errors import ErrorCode, UnauthorizedError


def require_acting_user_id(x_user_id: Optional[int] = Header(default=None)) -> int:
    if x_user_id is None:
        raise UnauthorizedError(ErrorCode.UNAUTHORIZED)
    return x_user_id
