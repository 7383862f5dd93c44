"""
Venue feedback: ratings and comments.
"""

from typing import Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.database.models import Feedback, User, Venue
from teamtango.services.errors import ForbiddenError, NotFoundError, ValidationError
from teamtango.utils.constants import ADMIN_ROLES

logger = logging.getLogger(__name__)


def _feedback_to_dict(feedback: Feedback, user_name: Optional[str] = None, venue_name: Optional[str] = None) -> Dict:
    return {
        "id": feedback.id,
        "user_id": feedback.user_id,
        "user_name": user_name,
        "venue_id": feedback.venue_id,
        "venue_name": venue_name,
        "rating": feedback.rating,
        "comment": feedback.comment,
        "created_at": feedback.created_at.isoformat() if feedback.created_at else None,
    }


def _check_rating(rating: Optional[int]) -> None:
    if rating is None or not 1 <= rating <= 5:
        raise ValidationError("rating must be between 1 and 5")


def _feedback_query():
    return (
        select(Feedback, User.name, Venue.name)
        .join(User, Feedback.user_id == User.id)
        .join(Venue, Feedback.venue_id == Venue.id)
    )


async def list_feedback(session: AsyncSession, venue_id: Optional[int] = None) -> List[Dict]:
    query = _feedback_query()
    if venue_id is not None:
        query = query.where(Feedback.venue_id == venue_id)
    result = await session.execute(query.order_by(Feedback.created_at.desc(), Feedback.id.desc()))
    return [_feedback_to_dict(*row) for row in result.all()]


async def get_feedback(session: AsyncSession, feedback_id: int) -> Dict:
    row = (await session.execute(_feedback_query().where(Feedback.id == feedback_id))).first()
    if row is None:
        raise NotFoundError("Feedback not found")
    return _feedback_to_dict(*row)


async def create_feedback(
    session: AsyncSession, user: Dict, venue_id: Optional[int], rating: Optional[int], comment: Optional[str]
) -> Dict:
    if venue_id is None:
        raise ValidationError("venue_id is required")
    _check_rating(rating)
    if await session.get(Venue, venue_id) is None:
        raise NotFoundError("Venue not found")
    feedback = Feedback(user_id=user["id"], venue_id=venue_id, rating=rating, comment=comment)
    session.add(feedback)
    await session.flush()
    await session.commit()
    return await get_feedback(session, feedback.id)


async def _load_own(session: AsyncSession, feedback_id: int, user: Dict) -> Feedback:
    feedback = await session.get(Feedback, feedback_id)
    if feedback is None:
        raise NotFoundError("Feedback not found")
    if feedback.user_id != user["id"] and user["role_id"] not in ADMIN_ROLES:
        raise ForbiddenError("You can only change your own feedback", "not_owner")
    return feedback


async def update_feedback(
    session: AsyncSession, feedback_id: int, user: Dict, rating: Optional[int], comment: Optional[str]
) -> Dict:
    feedback = await _load_own(session, feedback_id, user)
    if rating is None and comment is None:
        raise ValidationError("No fields to update")
    if rating is not None:
        _check_rating(rating)
        feedback.rating = rating
    if comment is not None:
        feedback.comment = comment
    await session.commit()
    return await get_feedback(session, feedback_id)


async def delete_feedback(session: AsyncSession, feedback_id: int, user: Dict) -> None:
    feedback = await _load_own(session, feedback_id, user)
    await session.delete(feedback)
    await session.commit()
