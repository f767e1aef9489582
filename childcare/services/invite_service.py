# childcare/services/invite_service.py
import logging
import smtplib

from childcare.core.email_client import Mailer
from childcare.core.errors import DependencyError, store_call
from childcare.core.firebase import IdentityProvider

logger = logging.getLogger(__name__)

INVITE_SUBJECT = "You're Invited!"


class InviteService:
    """
    Invites a parent (or staff admin) to create an account.

    The e-mail goes out first; the `invitedUsers/{email}` record is only
    written once the mail was accepted by the SMTP server.
    """

    def __init__(self, mailer: Mailer, identity: IdentityProvider, signup_url: str):
        self.mailer = mailer
        self.identity = identity
        self.signup_url = signup_url

    def send_invite(self, email: str, admin: bool = False) -> None:
        """
        Raises:
            DependencyError: e-mail could not be sent or the invitation
                could not be recorded.
        """
        text_body = f"Your account is ready. Sign up here: {self.signup_url}"
        html_body = (
            f'<p>Your account is ready. <a href="{self.signup_url}">Click to sign up</a></p>'
        )

        try:
            self.mailer.send_email(
                to_email=email,
                subject=INVITE_SUBJECT,
                text_body=text_body,
                html_body=html_body,
            )
        except (smtplib.SMTPException, OSError, RuntimeError) as exc:
            logger.error("Invitation e-mail to %s failed: %s", email, exc)
            raise DependencyError("send_invite_email", exc) from exc

        with store_call("record_invitation"):
            self.identity.record_invitation(email, admin=admin)
        logger.info("Invitation sent to %s (admin=%s)", email, admin)
