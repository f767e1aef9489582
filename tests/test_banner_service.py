import time
import unittest
from datetime import datetime, timedelta, timezone

from support import FakeClock

from childcare.core.errors import InvalidArgumentError, NotFoundError
from childcare.models.banner import BannerType
from childcare.schemas.banner import BannerWrite
from childcare.services.banner_service import BannerLifecycleManager


def wait_until(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def fields_of(error: InvalidArgumentError) -> list[str]:
    return [e["field"] for e in error.errors]


class BannerValidationTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.manager = BannerLifecycleManager(clock=self.clock)
        self.addCleanup(self.manager.shutdown)

    def write(self, **overrides) -> BannerWrite:
        values = {
            "type": "weather",
            "message": "Snow day",
            "expires_at": self.clock.now + timedelta(hours=2),
        }
        values.update(overrides)
        return BannerWrite(**values)

    def test_replace_then_get_returns_the_same_banner(self):
        request = self.write(type="closure", message="Closed Friday")
        self.manager.replace(request)

        banner = self.manager.get_current()
        self.assertEqual(banner.type, BannerType.CLOSURE)
        self.assertEqual(banner.message, "Closed Friday")
        self.assertEqual(banner.expires_at, request.expires_at)

    def test_missing_banner_is_invalid(self):
        with self.assertRaises(InvalidArgumentError):
            self.manager.replace(None)

    def test_past_expiry_is_rejected_and_current_banner_kept(self):
        self.manager.replace(self.write(message="first"))

        for expires_at in (self.clock.now, self.clock.now - timedelta(minutes=1)):
            with self.assertRaises(InvalidArgumentError) as ctx:
                self.manager.replace(self.write(message="second", expires_at=expires_at))
            self.assertEqual(fields_of(ctx.exception), ["expires_at"])

        self.assertEqual(self.manager.get_current().message, "first")

    def test_custom_banner_requires_message(self):
        for message in (None, "", "   "):
            with self.assertRaises(InvalidArgumentError) as ctx:
                self.manager.replace(self.write(type="custom", message=message))
            self.assertEqual(fields_of(ctx.exception), ["message"])

    def test_expiry_more_than_72_hours_ahead_is_rejected(self):
        with self.assertRaises(InvalidArgumentError):
            self.manager.replace(self.write(expires_at=self.clock.now + timedelta(hours=72, seconds=1)))

        banner = self.manager.replace(self.write(expires_at=self.clock.now + timedelta(hours=72)))
        self.assertEqual(banner.expires_at, self.clock.now + timedelta(hours=72))

    def test_unknown_type_is_rejected(self):
        with self.assertRaises(InvalidArgumentError) as ctx:
            self.manager.replace(self.write(type="storm"))
        self.assertEqual(fields_of(ctx.exception), ["type"])

    def test_every_violation_is_reported(self):
        with self.assertRaises(InvalidArgumentError) as ctx:
            self.manager.replace(
                self.write(type="custom", message="", expires_at=self.clock.now - timedelta(hours=1))
            )
        self.assertEqual(sorted(fields_of(ctx.exception)), ["expires_at", "message"])

    def test_naive_expiry_is_rejected(self):
        naive = datetime(2025, 5, 1, 18, 0)
        with self.assertRaises(InvalidArgumentError) as ctx:
            self.manager.replace(self.write(expires_at=naive))
        self.assertEqual(fields_of(ctx.exception), ["expires_at"])

    def test_get_current_on_empty_slot_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.manager.get_current()

    def test_expired_banner_is_not_found_and_read_does_not_mutate(self):
        self.manager.replace(self.write(expires_at=self.clock.now + timedelta(hours=1)))
        self.clock.now += timedelta(hours=2)

        with self.assertRaises(NotFoundError):
            self.manager.get_current()
        # The timer is the only thing that clears the slot.
        self.assertTrue(self.manager.is_timer_running())

    def test_delete_on_empty_slot_succeeds(self):
        self.manager.delete()
        self.manager.delete()
        self.assertFalse(self.manager.is_timer_running())

    def test_delete_clears_banner_and_timer(self):
        self.manager.replace(self.write())
        self.assertTrue(self.manager.is_timer_running())

        self.manager.delete()

        self.assertFalse(self.manager.is_timer_running())
        with self.assertRaises(NotFoundError):
            self.manager.get_current()

    def test_stale_timer_callback_leaves_replacement_alone(self):
        self.manager.replace(self.write(message="A"))
        stale_generation = self.manager._generation
        self.manager.replace(self.write(message="B"))

        # Simulate A's timer firing after it lost the race with cancel().
        self.manager._expire(stale_generation)

        self.assertEqual(self.manager.get_current().message, "B")
        self.assertTrue(self.manager.is_timer_running())


class BannerTimerTests(unittest.TestCase):
    def setUp(self):
        self.manager = BannerLifecycleManager()
        self.addCleanup(self.manager.shutdown)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def test_banner_is_removed_when_it_expires(self):
        self.manager.replace(
            BannerWrite(type="weather", message="Ice", expires_at=self.now() + timedelta(milliseconds=50))
        )
        time.sleep(0.1)

        with self.assertRaises(NotFoundError):
            self.manager.get_current()
        self.assertTrue(wait_until(lambda: not self.manager.is_timer_running()))
        self.assertIsNone(self.manager._banner)

    def test_replacing_before_expiry_keeps_the_new_banner(self):
        self.manager.replace(
            BannerWrite(type="weather", message="A", expires_at=self.now() + timedelta(milliseconds=50))
        )
        self.manager.replace(
            BannerWrite(type="closure", message="B", expires_at=self.now() + timedelta(hours=1))
        )
        time.sleep(0.15)

        banner = self.manager.get_current()
        self.assertEqual(banner.message, "B")
        self.assertTrue(self.manager.is_timer_running())


if __name__ == "__main__":
    unittest.main()
