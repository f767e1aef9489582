# send_test_invite.py

from childcare.core.config import get_settings
from childcare.core.email_client import SmtpMailer


def main():
    print("Sending test invitation email...")

    settings = get_settings()
    SmtpMailer(settings).send_email(
        to_email="YOUR_EMAIL@gmail.com",   # <-- change to the address you want to receive it
        subject="[Little Einstein] Test Invitation",
        text_body=f"Your account is ready. Sign up here: {settings.SIGNUP_URL}",
        html_body=f'<p>Your account is ready. <a href="{settings.SIGNUP_URL}">Click to sign up</a></p>',
    )

    print("If no errors: email sent! Check your inbox.")


if __name__ == "__main__":
    main()
