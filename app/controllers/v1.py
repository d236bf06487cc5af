from fastapi import APIRouter

from . import analyses, identities, payments, plans, profiles, subscriptions, usage

router = APIRouter(prefix="/v1")
router.include_router(plans.router)
router.include_router(profiles.router)
router.include_router(identities.router)
router.include_router(subscriptions.router)
# entitlement check, increment and the monthly reset sweep
router.include_router(usage.router)
router.include_router(payments.router)
router.include_router(analyses.router)
