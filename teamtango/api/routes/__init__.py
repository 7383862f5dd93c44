"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, constants) lives here; every sub-router
imports what it needs from this package.
"""

from fastapi import APIRouter
from slowapi import Limiter
from slowapi.util import get_remote_address

from teamtango.config import get_settings

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = get_settings().is_test
limiter = Limiter(key_func=get_remote_address)
if IS_TEST_ENV:

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()

# ---------------------------------------------------------------------------
# Shared constants
# ---------------------------------------------------------------------------
AUTH_RATE_LIMIT = "10/minute"

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from teamtango.api.routes.auth import router as auth_router  # noqa: E402
from teamtango.api.routes.users import router as users_router  # noqa: E402
from teamtango.api.routes.roles import router as roles_router  # noqa: E402
from teamtango.api.routes.sports import router as sports_router  # noqa: E402
from teamtango.api.routes.venues import router as venues_router  # noqa: E402
from teamtango.api.routes.bookings import router as bookings_router  # noqa: E402
from teamtango.api.routes.payments import router as payments_router  # noqa: E402
from teamtango.api.routes.teams import router as teams_router  # noqa: E402
from teamtango.api.routes.matches import router as matches_router  # noqa: E402
from teamtango.api.routes.feedback import router as feedback_router  # noqa: E402
from teamtango.api.routes.notifications import router as notifications_router  # noqa: E402
from teamtango.api.routes.analytics import router as analytics_router  # noqa: E402

router = APIRouter()
router.include_router(auth_router)
router.include_router(users_router)
router.include_router(roles_router)
router.include_router(sports_router)
router.include_router(venues_router)
router.include_router(bookings_router)
router.include_router(payments_router)
router.include_router(teams_router)
router.include_router(matches_router)
router.include_router(feedback_router)
router.include_router(notifications_router)
router.include_router(analytics_router)
