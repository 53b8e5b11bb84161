"""Exception hierarchy for allowlist and key-material failures.

Every failure the core can produce maps to exactly one subclass of
:class:`LedgeracioError`. Each carries the offending values as attributes so
callers (and the CLI) can report them without parsing messages.
"""

from __future__ import annotations

__all__ = [
    "BadKeyLengthError",
    "InvalidAddressError",
    "InvalidFilenameError",
    "InvalidKeyEncodingError",
    "InvalidMagicError",
    "InvalidSignatureError",
    "KeyAlreadySetError",
    "KeyMismatchError",
    "KeyNotSetError",
    "KeyStorageError",
    "LedgeracioError",
    "MalformedPayloadError",
    "NetworkMismatchError",
    "NonceOutOfRangeError",
    "RandomSourceError",
    "StaleNonceError",
    "TruncatedArtifactError",
    "UnknownNetworkError",
    "UnsupportedVersionError",
]


class LedgeracioError(Exception):
    """Base class for every error raised by :mod:`ledgeracio`."""


class InvalidMagicError(LedgeracioError, ValueError):
    """Raised when a secret key file does not start with the magic token."""

    def __init__(self) -> None:
        super().__init__("Not a Ledgeracio secret key: wrong magic number")


class UnsupportedVersionError(LedgeracioError, ValueError):
    """Raised when a key file declares a format version other than 1."""

    def __init__(self, found: int | str, expected: int = 1) -> None:
        self.found = found
        self.expected = expected
        super().__init__(
            f"Expected a version {expected} key, but got version {found}"
        )


class BadKeyLengthError(LedgeracioError, ValueError):
    """Raised when a secret key file has the wrong size."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Ledgeracio secret keys are {expected} bytes, not {actual}")


class InvalidKeyEncodingError(LedgeracioError, ValueError):
    """Raised when key bytes or an armored public key cannot be decoded."""


class NetworkMismatchError(LedgeracioError, ValueError):
    """Raised when two inputs are bound to different networks."""

    def __init__(
        self,
        expected: object,
        actual: object,
        *,
        subject: str = "input",
        line_number: int | None = None,
        text: str | None = None,
    ) -> None:
        self.expected = expected
        self.actual = actual
        self.line_number = line_number
        self.text = text
        if line_number is not None:
            message = (
                f"Network mismatch on line {line_number}: address {text} is for "
                f"network {actual}, but you asked to use network {expected}"
            )
        else:
            message = (
                f"Network mismatch: expected {subject} for network {expected}, "
                f"but got one for network {actual}"
            )
        super().__init__(message)


class InvalidAddressError(LedgeracioError, ValueError):
    """Raised when text is not a well-formed SS58 account address."""

    def __init__(
        self,
        reason: str,
        *,
        line_number: int | None = None,
        text: str | None = None,
    ) -> None:
        self.reason = reason
        self.line_number = line_number
        self.text = text
        if line_number is not None:
            message = f"Invalid address on line {line_number} ({text!r}): {reason}"
        elif text is not None:
            message = f"Invalid address {text!r}: {reason}"
        else:
            message = f"Invalid address: {reason}"
        super().__init__(message)


class InvalidSignatureError(LedgeracioError, ValueError):
    """Raised when an allowlist signature does not verify.

    The message deliberately carries no payload contents.
    """

    def __init__(self, public_key_hex: str) -> None:
        self.public_key_hex = public_key_hex
        super().__init__(
            f"Allowlist signature is not valid for public key {public_key_hex}"
        )


class MalformedPayloadError(LedgeracioError, ValueError):
    """Raised when a verified payload is not a whole number of account ids."""

    def __init__(self, body_length: int, chunk: int = 32) -> None:
        self.body_length = body_length
        self.remainder = body_length % chunk
        super().__init__(
            f"Allowlist body of {body_length} bytes is not a multiple of {chunk} "
            f"({self.remainder} trailing bytes)"
        )


class TruncatedArtifactError(LedgeracioError, ValueError):
    """Raised when an artifact is shorter than its header plus signature."""

    def __init__(self, minimum: int, actual: int) -> None:
        self.minimum = minimum
        self.actual = actual
        super().__init__(
            f"Signed allowlists are at least {minimum} bytes, not {actual}"
        )


class KeyMismatchError(LedgeracioError, ValueError):
    """Raised when a public key does not belong to the given secret key."""

    def __init__(self, expected_hex: str, actual_hex: str) -> None:
        self.expected_hex = expected_hex
        self.actual_hex = actual_hex
        super().__init__(
            f"Public key {actual_hex} does not match the secret key "
            f"(expected {expected_hex})"
        )


class UnknownNetworkError(LedgeracioError, ValueError):
    """Raised for network names or tags that are not accepted."""

    def __init__(self, network: object, reason: str | None = None) -> None:
        self.network = network
        super().__init__(reason or f"invalid network {network}")


class InvalidFilenameError(LedgeracioError, ValueError):
    """Raised when a key file prefix already carries an extension."""

    def __init__(self, path: object) -> None:
        self.path = path
        super().__init__(f"please provide a filename with no extension, not {path}")


class KeyStorageError(LedgeracioError, OSError):
    """Raised when reading or writing key, allowlist or state files fails."""


class RandomSourceError(LedgeracioError, RuntimeError):
    """Raised when the operating system entropy source fails."""


class NonceOutOfRangeError(LedgeracioError, ValueError):
    """Raised when a nonce does not fit in an unsigned 32-bit integer."""

    def __init__(self, nonce: int) -> None:
        self.nonce = nonce
        super().__init__(f"Nonce {nonce} does not fit in 32 bits (0..4294967295)")


class StaleNonceError(LedgeracioError, ValueError):
    """Raised when a nonce is not greater than the last one used for a key."""

    def __init__(self, nonce: int, last: int, public_key_hex: str) -> None:
        self.nonce = nonce
        self.last = last
        self.public_key_hex = public_key_hex
        super().__init__(
            f"Nonce {nonce} must be greater than {last}, the last nonce used "
            f"with key {public_key_hex}"
        )


class KeyAlreadySetError(LedgeracioError, RuntimeError):
    """Raised when setting a signing key on a store that already has one."""


class KeyNotSetError(LedgeracioError, RuntimeError):
    """Raised when reading the signing key from a store that has none."""
