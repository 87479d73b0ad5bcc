from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Depends, Header, HTTPException


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


async def get_current_principal(
        x_user_id: Optional[str] = Header(default=None),
        x_user_role: Optional[str] = Header(default=None)) -> Principal:
    """
    Identity supplied by the gateway in front of this service.
    The headers are trusted as-is, nothing is re-authenticated here.
    """
    # ascii digits only, int() rejects unicode digits like "²"
    if x_user_id is None or not (x_user_id.isascii() and x_user_id.isdigit()) or int(x_user_id) <= 0:
        raise HTTPException(status_code=401, detail="Missing or invalid user identity")
    try:
        role = Role((x_user_role or Role.USER.value).lower())
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user role")
    return Principal(user_id=int(x_user_id), role=role)


async def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return principal
