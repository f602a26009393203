import warnings
from dataclasses import dataclass
from typing import Optional

# Credential field aliases
Username = str
Password = str
Account = str
Email = str


@dataclass
class Basic:
    """
    Username and password login (``USER``/``PASS``, optionally ``ACCT``).

    FTP sends these in clear text on the control connection unless the
    session is wrapped in TLS, so prefer ``ftps://`` endpoints for anything
    that matters.

    Attributes:
        user: Username for the server.
        password: Password for the user.
        account: Optional account, for the few servers that ask for ``ACCT``.
    """

    user: Username
    password: Password
    account: Optional[Account] = None

    def __post_init__(self) -> None:
        """
        Validate credentials.

        Returns:
            None

        Raises:
            ValueError: If the username is empty.
        """
        if not self.user.strip():
            raise ValueError("Username cannot be empty or whitespace")

        if self.account is not None and not self.account.strip():
            raise ValueError("Account cannot be empty or whitespace")

        if not self.password:
            warnings.warn(
                f"Empty password for FTP user {self.user!r}. "
                "Use Guest for anonymous access."
            )

    @property
    def credentials(self):
        return self.user, self.password, self.account


@dataclass
class Guest:
    """
    Anonymous login.

    By convention anonymous FTP uses the user ``anonymous`` and the caller's
    email address as password.

    Attributes:
        email: Sent as the password. Servers log it, some validate its shape.
    """

    email: Email = "anonymous@"

    def __post_init__(self) -> None:
        if not self.email.strip():
            raise ValueError("Guest email cannot be empty or whitespace")

        if "@" not in self.email:
            warnings.warn(
                "Guest email has no '@'. "
                "Some servers reject anonymous logins without an email-like password."
            )

    @property
    def credentials(self):
        return "anonymous", self.email, None
