"""Magic link encryption, issuance and validation.

A magic link carries an encrypted MagicLinkPayload in its ``magic`` query
parameter. Fernet provides authenticated encryption, so the payload is both
confidential and tamper-evident. The link itself is stateless; binding it to
a browser happens in AuthService by comparing the payload nonce with the
session's pending nonce.

Link format (fixed; changing it breaks issued, unclicked links):
    <origin>/validate-magic-link?magic=<token>
"""

import base64
import hashlib
import html
import logging
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError

from auth.exceptions import ConfigError, DecodeError, InvalidLinkError
from auth.types import MagicLinkPayload
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

VALIDATE_PATH = "/validate-magic-link"
MAGIC_PARAM = "magic"


def _derive_fernet_key(secret: str) -> bytes:
    """Stretch an arbitrary secret string into a 32-byte Fernet key."""
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class MagicLinkCodec:
    """Encrypts and decrypts magic link payloads with a server-held secret."""

    def __init__(self, secret: str | None):
        """
        Args:
            secret: Server secret. Loaded once at startup.

        Raises:
            ConfigError: If secret is missing or empty.
        """
        if not secret:
            raise ConfigError("Missing config: magic_link_secret")
        self._fernet = Fernet(_derive_fernet_key(secret))

    def encode(self, payload: MagicLinkPayload) -> str:
        """Serialize payload to JSON and encrypt it. Returns a URL-safe string."""
        plaintext = payload.model_dump_json().encode("utf-8")
        return self._fernet.encrypt(plaintext).decode("ascii")

    def decode(self, token: str) -> MagicLinkPayload:
        """Decrypt and parse an encoded payload.

        Raises:
            DecodeError: If the token is malformed, fails authentication
                (tampered or encrypted with another key), or does not parse
                into a MagicLinkPayload.
        """
        try:
            plaintext = self._fernet.decrypt(token.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as e:
            raise DecodeError("Payload failed decryption") from e

        try:
            return MagicLinkPayload.model_validate_json(plaintext)
        except ValidationError as e:
            raise DecodeError(f"Payload has invalid shape: {e.error_count()} errors") from e


class MagicLinkIssuer:
    """Builds magic link URLs under the configured public origin."""

    def __init__(self, codec: MagicLinkCodec, origin: str | None):
        """
        Raises:
            ConfigError: If origin is missing or not an absolute URL.
        """
        if not origin:
            raise ConfigError("Missing config: origin")

        parts = urlsplit(origin)
        if not parts.scheme or not parts.netloc:
            raise ConfigError(f"origin must be an absolute URL, got '{origin}'")

        self._codec = codec
        self._scheme = parts.scheme
        self._netloc = parts.netloc

    def issue(self, email: str, nonce: str) -> str:
        """Create a magic link for email bound to nonce, stamped with the current time."""
        payload = MagicLinkPayload(email=email, nonce=nonce, issued_at=now_utc())
        query = urlencode({MAGIC_PARAM: self._codec.encode(payload)})
        return urlunsplit((self._scheme, self._netloc, VALIDATE_PATH, query, ""))


class MagicLinkValidator:
    """Extracts and decrypts the payload of an incoming magic link.

    Expiry and nonce binding need session state and are checked by
    AuthService, not here.
    """

    def __init__(self, codec: MagicLinkCodec):
        self._codec = codec

    def validate(self, incoming_url: str) -> MagicLinkPayload:
        """Return the payload carried by incoming_url.

        Raises:
            InvalidLinkError: If the magic parameter is absent or cannot be decoded.
        """
        values = parse_qs(urlsplit(incoming_url).query).get(MAGIC_PARAM)
        if not values:
            raise InvalidLinkError("missing payload")

        try:
            return self._codec.decode(values[0])
        except DecodeError as e:
            logger.info(f"Rejected magic link: {e}")
            raise InvalidLinkError("malformed payload") from e


def render_magic_link_email(link: str, app_name: str) -> str:
    """HTML body of the login email."""
    return (
        "<div>"
        f"<h1>Log in to {html.escape(app_name)}</h1>"
        "<p>Hey there! Click the link below to finish logging in to the "
        f"{html.escape(app_name)} app.</p>"
        f'<a href="{html.escape(link, quote=True)}">Log In</a>'
        "</div>"
    )
