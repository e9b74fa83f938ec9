from enum import Enum


class ErrorCode(str, Enum):
    NO_ADDRESS_FOR_FAMILY = "NoAddressForFamily"
    CONNECTION_TIMEOUT = "ConnectionTimeout"
    CONNECTION_REFUSED = "ConnectionRefused"
    TLS_VALIDATION_FAILED = "TlsValidationFailed"
    TLS_HANDSHAKE_FAILED = "TlsHandshakeFailed"
    HTTP_EXCHANGE_FAILED = "HttpExchangeFailed"
    DNS_LOOKUP_FAILED = "DnsLookupFailed"
    ADAPTER_ENUMERATION_FAILED = "AdapterEnumerationFailed"
    INTERNAL_ERROR = "InternalError"


class InvalidAddressError(ValueError):
    """Raised when a string is not a well-formed IPv4/IPv6 literal."""


class InvalidTargetError(ValueError):
    """Raised when a user-supplied URL or hostname cannot be probed."""
