# childcare/routers/banner.py
from fastapi import APIRouter, Depends, Request, status

from childcare.core.auth import require_admin
from childcare.schemas.banner import BannerRead, BannerTimerRead, BannerWrite
from childcare.services.banner_service import BannerLifecycleManager

router = APIRouter(prefix="/banner", tags=["Banner"])


def get_banner_manager(request: Request) -> BannerLifecycleManager:
    return request.app.state.banner_manager


@router.get("", response_model=BannerRead)
def read_banner(manager: BannerLifecycleManager = Depends(get_banner_manager)):
    """
    Return the live site-wide banner.

    Public endpoint. 404 when no banner is set or it has expired.
    """
    return BannerRead.from_banner(manager.get_current())


@router.post(
    "",
    response_model=BannerRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def replace_banner(
    payload: BannerWrite,
    manager: BannerLifecycleManager = Depends(get_banner_manager),
):
    """
    Install a banner, replacing the current one (admin only).

    Rules:
      - type: weather | closure | custom
      - message required for custom banners
      - expires_at in the future and at most 72h ahead
    """
    return BannerRead.from_banner(manager.replace(payload))


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_banner(manager: BannerLifecycleManager = Depends(get_banner_manager)):
    """Remove the banner (admin only). Succeeds when none is set."""
    manager.delete()


@router.get(
    "/timer",
    response_model=BannerTimerRead,
    dependencies=[Depends(require_admin)],
)
def read_timer(manager: BannerLifecycleManager = Depends(get_banner_manager)):
    """Whether an expiry timer is pending (admin diagnostics)."""
    return BannerTimerRead(timer_running=manager.is_timer_running())
