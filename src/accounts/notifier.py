from typing import Protocol

from accounts.models import Account, UserInvitation
from accounts.utils.logging import logger


class Notifier(Protocol):
    async def send(self, subject: str, body: str, to_address: str) -> None:
        """Deliver a message. Raises DeliveryFailed when it cannot."""
        ...


class LoggingNotifier:
    """Notifier for local development: logs messages instead of sending them."""

    async def send(self, subject: str, body: str, to_address: str) -> None:
        logger.info(f"Notification to {to_address}: {subject}\n{body}")


class InvitationMessageFormatter:
    def __init__(self, app_url: str):
        self.app_url = app_url.rstrip("/")

    def redemption_url(self, invitation: UserInvitation) -> str:
        return f"{self.app_url}/users/redeem/{invitation.redemption_code}"

    def password_change_url(self, invitation: UserInvitation) -> str:
        return f"{self.app_url}/users/change-password/{invitation.redemption_code}"

    def account_invitation(self, invitation: UserInvitation, account: Account):
        """Subject and body of an account membership invitation."""
        subject = f"Account Invitation: {account.acct_name}"

        lines = [
            "Hello,",
            "",
            f"You have been invited by {invitation.admin_username or 'an administrator'} "
            f"to join the account \"{account.acct_name}\"",
        ]
        if account.org_name:
            lines[-1] += f" of {account.org_name}"
            if account.department:
                lines[-1] += f", {account.department}"
        lines[-1] += "."

        lines += [
            "",
            "To accept the invitation, sign in (or create a user) and visit:",
            self.redemption_url(invitation),
            "",
            f"This invitation expires on {invitation.expiration_date:%Y-%m-%d %H:%M} UTC.",
        ]
        return subject, "\n".join(lines)

    def password_change(self, invitation: UserInvitation):
        subject = "Password Change Request"
        body = "\n".join(
            [
                "Hello,",
                "",
                "A request was made to change the password of your user.",
                "To choose a new password, visit:",
                self.password_change_url(invitation),
                "",
                "If you did not make this request you can ignore this message.",
                f"The link expires on {invitation.expiration_date:%Y-%m-%d %H:%M} UTC.",
            ]
        )
        return subject, body
