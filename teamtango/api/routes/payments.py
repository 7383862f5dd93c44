"""Payment route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.api.auth_dependencies import require_policy
from teamtango.database.db import get_db_session
from teamtango.models.schemas import PaymentCreate, PaymentResponse, RefundRequest
from teamtango.services import payment_service
from teamtango.services.errors import DomainError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/payments", response_model=List[PaymentResponse])
async def list_payments(
    user: dict = Depends(require_policy("payments", "list")),
    session: AsyncSession = Depends(get_db_session),
):
    return await payment_service.list_payments(session, user)


@router.get("/api/payments/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: int,
    user: dict = Depends(require_policy("payments", "list")),
    session: AsyncSession = Depends(get_db_session),
):
    return await payment_service.get_payment(session, payment_id, user)


@router.post("/api/payments", response_model=PaymentResponse, status_code=201)
async def process_payment(
    payload: PaymentCreate,
    user: dict = Depends(require_policy("payments", "create")),
    session: AsyncSession = Depends(get_db_session),
):
    """Pay for a booking. A successful payment confirms the booking."""
    try:
        return await payment_service.process_payment(
            session, payload.booking_id, payload.method, payload.amount, user
        )
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error processing payment for booking {payload.booking_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error processing payment")


@router.post("/api/payments/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: int,
    payload: RefundRequest,
    user: dict = Depends(require_policy("payments", "refund")),
    session: AsyncSession = Depends(get_db_session),
):
    """Refund a completed payment and cancel its booking (admin only)."""
    try:
        return await payment_service.refund_payment(session, payment_id, payload.reason, user)
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error refunding payment {payment_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error refunding payment")
