"""
Request dependencies: caller identity and the booking engine.

Authentication happens upstream. The gateway verifies the student's token
and forwards the verified claims as headers; this service trusts them and
never sees credentials.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from campus_booking.services.booking_service import BookingEngine

STUDENT_ROLE = "student"
STAFF_ROLE = "staff"


@dataclass(frozen=True)
class Identity:
    user_id: int
    department: str
    role: str


async def get_identity(
    x_user_id: Optional[int] = Header(default=None),
    x_user_department: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Identity:
    if x_user_id is None or not x_user_department or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return Identity(user_id=x_user_id, department=x_user_department, role=x_user_role)


async def require_staff(identity: Identity = Depends(get_identity)) -> Identity:
    if identity.role != STAFF_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff access required",
        )
    return identity


def get_engine(request: Request) -> BookingEngine:
    return request.app.state.engine
