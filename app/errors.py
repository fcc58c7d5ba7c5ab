"""
Email service exceptions

ConfigurationError, ValidationError and AttachmentFetchError are raised
before or beside a send; DeliveryError and its subclasses come from the
SMTP exchange itself and always carry the transport's summary text.
"""


class EmailServiceError(Exception):
    """Base class for every error raised by the email service"""

    pass


class ConfigurationError(EmailServiceError):
    """Raised when a required setting (API key, sender account, port) is missing or malformed"""

    pass


class ValidationError(EmailServiceError):
    """Raised when an outbound message is incomplete"""

    pass


class AttachmentFetchError(EmailServiceError):
    """Raised when an attachment could not be downloaded"""

    pass


class DeliveryError(EmailServiceError):
    """Raised when the SMTP relay could not accept a message"""

    pass


class UnreachableError(DeliveryError):
    """Relay could not be reached: connect, greeting, TLS or socket failure"""

    pass


class AuthenticationError(DeliveryError):
    """Relay rejected the configured credentials"""

    pass


class DispatchError(DeliveryError):
    """Relay refused the message or a recipient"""

    pass
