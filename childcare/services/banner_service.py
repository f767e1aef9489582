# childcare/services/banner_service.py
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from childcare.core.errors import InvalidArgumentError, NotFoundError
from childcare.models.banner import Banner, BannerType
from childcare.schemas.banner import BannerWrite

logger = logging.getLogger(__name__)

# Longest a banner may stay up
DEFAULT_MAX_DURATION = timedelta(hours=72)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BannerLifecycleManager:
    """
    Owns the single site-wide banner and its automatic expiry.

    State:
      - Empty: no banner installed
      - Active: a banner plus the generation number of its timer

    Every transition happens under one lock. Each install bumps the
    generation, and a timer only clears the slot if its own generation
    is still current when it fires. A timer that lost the race with
    `cancel()` therefore finds a newer generation and exits without
    touching the replacement banner.

    Reads never mutate: an expired-but-not-yet-cleared banner is
    reported as NotFound and left for its timer to remove.
    """

    def __init__(
        self,
        max_duration: timedelta = DEFAULT_MAX_DURATION,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.max_duration = max_duration
        self._clock = clock
        self._lock = threading.Lock()
        self._banner: Banner | None = None
        self._timer: threading.Timer | None = None
        self._generation = 0

    # ----- Reads -----

    def get_current(self) -> Banner:
        """
        Return the live banner.

        Raises:
            NotFoundError: if no banner is installed or it has expired.
        """
        with self._lock:
            banner = self._banner

        if banner is None:
            raise NotFoundError("No active banner")
        if banner.is_expired(self._clock()):
            raise NotFoundError("Banner has expired")
        return banner

    def is_timer_running(self) -> bool:
        with self._lock:
            return self._timer is not None

    # ----- Writes -----

    def replace(self, request: BannerWrite | None) -> Banner:
        """
        Validate and install a new banner, replacing any current one.

        All violations are collected before anything changes, so a
        rejected request leaves the installed banner and its timer
        exactly as they were.

        Raises:
            InvalidArgumentError: listing every violated field.
        """
        banner = self._build(request)

        with self._lock:
            self._cancel_timer_locked()
            self._generation += 1
            self._banner = banner
            self._start_timer_locked(banner, self._generation)

        logger.info(
            "Banner installed: type=%s expires_at=%s",
            banner.type.value,
            banner.expires_at.isoformat(),
        )
        return banner

    def delete(self) -> None:
        """Clear the banner and cancel its timer. Idempotent."""
        with self._lock:
            had_banner = self._banner is not None
            self._cancel_timer_locked()
            self._generation += 1
            self._banner = None

        if had_banner:
            logger.info("Banner cleared")

    def shutdown(self) -> None:
        """Cancel any pending timer (application shutdown)."""
        with self._lock:
            self._cancel_timer_locked()
            self._generation += 1

    # ----- Internals -----

    def _build(self, request: BannerWrite | None) -> Banner:
        if request is None:
            raise InvalidArgumentError(
                "Banner is required",
                [{"field": "banner", "message": "is required"}],
            )

        errors: list[dict[str, str]] = []
        message = request.message or ""

        try:
            banner_type = BannerType(request.type)
        except ValueError:
            banner_type = None
            errors.append(
                {"field": "type", "message": "must be weather, closure, or custom"}
            )

        if banner_type is BannerType.CUSTOM and not message.strip():
            errors.append(
                {"field": "message", "message": "is required for custom banners"}
            )

        expires_at = request.expires_at
        if expires_at.tzinfo is None or expires_at.utcoffset() is None:
            errors.append(
                {"field": "expires_at", "message": "must include a timezone offset"}
            )
        else:
            now = self._clock()
            if expires_at <= now:
                errors.append({"field": "expires_at", "message": "must be in the future"})
            elif expires_at > now + self.max_duration:
                hours = int(self.max_duration.total_seconds() // 3600)
                errors.append(
                    {
                        "field": "expires_at",
                        "message": f"cannot be more than {hours} hours in the future",
                    }
                )

        if errors:
            raise InvalidArgumentError("Invalid banner", errors)

        return Banner(type=banner_type, message=message, expires_at=expires_at)

    def _start_timer_locked(self, banner: Banner, generation: int) -> None:
        delay = (banner.expires_at - self._clock()).total_seconds()
        if delay <= 0:
            # Already past expiry: nothing to wait for.
            self._banner = None
            return

        timer = threading.Timer(delay, self._expire, args=(generation,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug("Stale banner timer (generation %s) ignored", generation)
                return
            self._banner = None
            self._timer = None

        logger.info("Banner expired, removed automatically")
