import ssl
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union


@dataclass
class SSL:
    """
    TLS configuration for ``ftps://`` endpoints (implicit FTPS).

    aioftp wraps both the control and the data connections with the same
    context, so a single configuration covers the whole session.

    Attributes:
        verify: Whether to verify the server certificate.
               Turning this off exposes the session (credentials included)
               to man-in-the-middle attacks.
        cert: Client certificate file, for servers that require mutual TLS.
        key: Private key file matching ``cert``.
        bundle: CA bundle to verify the server against, e.g. a private CA.
        ciphers: OpenSSL cipher list restricting the negotiated ciphers.
        context: A ready-made context, used as is when given.
    """

    verify: bool = True  # Verify the server certificate
    cert: Optional[str] = None  # Client certificate for mutual TLS
    key: Optional[str] = None  # Private key for mutual TLS
    bundle: Optional[str] = None  # Custom CA bundle
    ciphers: Optional[str] = None  # Allowed cipher suites
    context: Optional[ssl.SSLContext] = None  # Pre-built context

    def __post_init__(self) -> None:
        """
        Validate TLS files and build the context.

        Returns:
            None

        Raises:
            ValueError: If the configuration is inconsistent or a file is unusable.
        """
        if bool(self.cert) != bool(self.key):
            raise ValueError("Both certificate and key must be provided together for mutual TLS")

        for label, location in (("Certificate", self.cert), ("Private key", self.key), ("CA bundle", self.bundle)):
            if location and not Path(location).is_file():
                raise ValueError(f"{label} file not found: {location}")

        if self.context is not None and not isinstance(self.context, ssl.SSLContext):
            raise ValueError("SSL context must be an SSLContext object or None")

        if not self.verify:
            warnings.warn(
                "FTPS certificate verification is disabled. "
                "Credentials sent on this session can be intercepted.",
                UserWarning,
                stacklevel=3,
            )

        if self.context is not None:
            return

        try:
            ctx = ssl.create_default_context()
        except ssl.SSLError as error:
            raise ValueError(f"Failed to create default SSL context: {error}")

        if not self.verify:
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE

        try:
            if self.cert and self.key:
                ctx.load_cert_chain(self.cert, self.key)
            if self.bundle:
                ctx.load_verify_locations(cafile=self.bundle)
            if self.ciphers:
                ctx.set_ciphers(self.ciphers)
        except ssl.SSLError as error:
            raise ValueError(f"Invalid TLS configuration: {error}")
        except OSError as error:
            raise ValueError(f"Cannot read TLS files: {error}")

        self.context = ctx

    def resolve(self, secure: bool) -> Union[ssl.SSLContext, None]:
        """The value to hand to the wire client: a context for FTPS, None for plain FTP."""
        return self.context if secure else None
