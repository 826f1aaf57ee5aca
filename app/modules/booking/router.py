"""Booking API router."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from app.modules.booking.schemas import BookingActionRequest, BookingRead
from app.modules.booking.service import BookingService, get_booking_service
from app.modules.identity.service import Principal, get_current_principal, get_optional_principal
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(tags=["booking"])


@router.post("/lesson-booking")
async def lesson_booking(
    payload: BookingActionRequest,
    service: BookingService = Depends(get_booking_service),
    principal: Principal | None = Depends(get_optional_principal),
) -> dict[str, Any]:
    """Run create, cancel or getAvailableSlots action."""
    response = await service.dispatch(payload, principal)
    return response.model_dump(mode="json")


@router.get("/bookings/my", response_model=Page[BookingRead])
async def list_my_bookings(
    pagination=Depends(get_pagination_params),
    service: BookingService = Depends(get_booking_service),
    principal: Principal = Depends(get_current_principal),
) -> Page[BookingRead]:
    """List bookings owned by current user."""
    items, total = await service.list_bookings(principal, pagination.limit, pagination.offset)
    serialized = [BookingRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)
