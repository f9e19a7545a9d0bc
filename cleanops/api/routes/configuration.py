"""
Configuration routes.
Cancellation window, cancellation fee and payment hold timing.
"""

from fastapi import APIRouter, Depends

from ...lib import ConfigurationService, authorize, get_current_user
from ...models import Configuration, ConfigurationUpdate, User


router = APIRouter()


@router.get("", response_model=Configuration)
async def get_configuration(
    user: User = Depends(get_current_user)
):
    """Any admin can read the policy; the cancel dialog shows it."""
    authorize(user)
    service = ConfigurationService()
    return service.get()


@router.put("", response_model=Configuration)
async def update_configuration(
    body: ConfigurationUpdate,
    user: User = Depends(get_current_user)
):
    """Requires manage_pricing."""
    service = ConfigurationService()
    return service.update(user, **body.model_dump())
