"""
Email Service using the configured SMTP relay
One transport factory and one verify-then-send dispatcher shared by every endpoint
"""

import asyncio
import logging
import re
import smtplib
import ssl
from dataclasses import dataclass, field
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from typing import ClassVar, Optional

import httpx

from .config import Settings
from .email_templates import (
    render_job_alert,
    render_job_application,
    render_matching_job,
    render_proposal_approval,
    render_verification_code,
)
from .errors import (
    AttachmentFetchError,
    AuthenticationError,
    ConfigurationError,
    DispatchError,
    UnreachableError,
    ValidationError,
)
from .schemas import (
    JobAlertRequest,
    JobApplicationRequest,
    MatchingJobRequest,
    ProposalApprovalRequest,
    VerificationCodeRequest,
)

logger = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465
RESUME_FETCH_TIMEOUT = 30.0
RESUME_CONTENT_TYPE = "application/pdf"
WHITESPACE_RE = re.compile(r"\s+")

JOBS_SENDER_NAME = "Velocity Jobs"
FELLOWSHIP_SENDER_NAME = "Velocity Fellowships"


@dataclass
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass
class OutboundMessage:
    """
    A fully rendered email ready for dispatch.

    sender_name only changes the display name of the From header; the
    mailbox and the envelope sender are always the configured account.
    """

    recipient: str
    subject: str
    html: str = ""
    text: str = ""
    sender_name: Optional[str] = None
    attachments: list[Attachment] = field(default_factory=list)

    def validate(self) -> None:
        if not self.recipient or not self.recipient.strip():
            raise ValidationError("Recipient is required")
        if not self.subject:
            raise ValidationError("Subject is required")
        if not self.html and not self.text:
            raise ValidationError("Either an HTML or a plain-text body is required")


@dataclass(frozen=True)
class DeliveryResult:
    message_id: str
    success: bool = True

    def to_dict(self) -> dict:
        return {"success": self.success, "messageId": self.message_id}


@dataclass(frozen=True)
class TransportConfig:
    host: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None

    # Fixed policy, in seconds
    connect_timeout: ClassVar[float] = 30.0
    greeting_timeout: ClassVar[float] = 15.0
    socket_timeout: ClassVar[float] = 30.0

    @property
    def use_implicit_tls(self) -> bool:
        return self.port == IMPLICIT_TLS_PORT

    @classmethod
    def from_settings(cls, settings: Settings) -> "TransportConfig":
        return cls(
            host=settings.email_host,
            port=settings.email_port,
            username=settings.email_user,
            password=settings.email_pass,
        )


def create_tls_context() -> ssl.SSLContext:
    """
    TLS context for the relay connection.

    Certificate and hostname checks are disabled so relays with self-signed
    or mismatched certificates are accepted.
    """
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class _GreetingTimeoutMixin:
    """Waits at most greeting_timeout for the 220 banner once the socket is open"""

    greeting_timeout = TransportConfig.greeting_timeout

    def _get_socket(self, host, port, timeout):
        sock = super()._get_socket(host, port, timeout)
        sock.settimeout(self.greeting_timeout)
        return sock


class RelaySMTP(_GreetingTimeoutMixin, smtplib.SMTP):
    pass


class RelaySMTPSSL(_GreetingTimeoutMixin, smtplib.SMTP_SSL):
    pass


def _describe(error: Exception) -> str:
    """Summary text of an smtplib error without the bytes repr"""
    code = getattr(error, "smtp_code", None)
    detail = getattr(error, "smtp_error", None)
    if code is not None and detail is not None:
        if isinstance(detail, bytes):
            detail = detail.decode("utf-8", errors="replace")
        return f"{code} {detail}"
    return str(error) or error.__class__.__name__


class SMTPTransport:
    """
    One SMTP session for one dispatch.

    Use as a context manager: verify() opens and authenticates the
    connection, send() submits the message, and the connection is closed
    on exit whatever happened in between.
    """

    def __init__(self, config: TransportConfig):
        self.config = config
        self._server: Optional[smtplib.SMTP] = None

    def __enter__(self) -> "SMTPTransport":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _connect(self) -> None:
        context = create_tls_context()
        if self.config.use_implicit_tls:
            server = RelaySMTPSSL(
                self.config.host,
                self.config.port,
                timeout=self.config.connect_timeout,
                context=context,
            )
        else:
            server = RelaySMTP(self.config.host, self.config.port, timeout=self.config.connect_timeout)
        # Owned from here on so close() releases it even if the handshake fails
        self._server = server
        server.sock.settimeout(self.config.socket_timeout)

        server.ehlo()
        if not self.config.use_implicit_tls and server.has_extn("starttls"):
            server.starttls(context=context)
            server.ehlo()

    def verify(self) -> None:
        """Check that the relay is reachable and accepts the credentials"""
        host, port = self.config.host, self.config.port
        try:
            self._connect()
            if self.config.username and self.config.password:
                self._server.login(self.config.username, self.config.password)
        except (smtplib.SMTPAuthenticationError, smtplib.SMTPNotSupportedError) as e:
            logger.error(f"❌ SMTP authentication failed on {host}:{port}: {_describe(e)}")
            raise AuthenticationError(f"SMTP authentication failed: {_describe(e)}") from e
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"❌ SMTP relay {host}:{port} unreachable: {_describe(e)}")
            raise UnreachableError(f"Could not connect to {host}:{port}: {_describe(e)}") from e
        logger.debug(f"SMTP relay {host}:{port} verified")

    def send(self, envelope_from: str, recipients: list[str], message: str) -> None:
        if self._server is None:
            raise DispatchError("SMTP transport used before verify()")
        try:
            refused = self._server.sendmail(envelope_from, recipients, message)
        except smtplib.SMTPRecipientsRefused as e:
            rejected = ", ".join(e.recipients)
            raise DispatchError(f"Recipient rejected by SMTP relay: {rejected}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise DispatchError(f"Failed to send email: {_describe(e)}") from e
        if refused:
            logger.warning(f"⚠️ SMTP relay refused some recipients: {', '.join(refused)}")

    def close(self) -> None:
        server, self._server = self._server, None
        if server is None:
            return
        try:
            server.quit()
        except (smtplib.SMTPException, OSError):
            server.close()


def create_transport(config: TransportConfig) -> SMTPTransport:
    """Build a fresh, unconnected transport; nothing is pooled between dispatches"""
    return SMTPTransport(config)


def build_mime_message(message: OutboundMessage, sender_address: str) -> tuple[MIMEMultipart, str]:
    """Assemble the MIME tree and return it with the Message-ID it carries"""
    msg = MIMEMultipart("mixed")
    msg["Subject"] = message.subject
    msg["From"] = (
        formataddr((message.sender_name, sender_address)) if message.sender_name else sender_address
    )
    msg["To"] = message.recipient
    msg["Date"] = formatdate(localtime=True)
    message_id = make_msgid(domain=sender_address.rpartition("@")[2] or None)
    msg["Message-ID"] = message_id

    body = MIMEMultipart("alternative")
    if message.text:
        body.attach(MIMEText(message.text, "plain", "utf-8"))
    if message.html:
        body.attach(MIMEText(message.html, "html", "utf-8"))
    msg.attach(body)

    for attachment in message.attachments:
        maintype, _, subtype = attachment.content_type.partition("/")
        part = MIMEBase(maintype or "application", subtype or "octet-stream")
        part.set_payload(attachment.content)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
        msg.attach(part)

    return msg, message_id


def _deliver(config: TransportConfig, envelope_from: str, recipients: list[str], payload: str) -> None:
    with create_transport(config) as transport:
        transport.verify()
        transport.send(envelope_from, recipients, payload)


async def send_email(message: OutboundMessage, settings: Settings) -> DeliveryResult:
    """
    Send an email through the configured SMTP relay

    Args:
        message: Rendered message
        settings: Process settings holding the relay host and account

    Returns:
        DeliveryResult with the Message-ID of the accepted message

    Raises:
        ValidationError / ConfigurationError before any network I/O,
        UnreachableError / AuthenticationError when the relay check fails,
        DispatchError when the relay refuses the message.
    """
    message.validate()
    if not settings.email_user:
        raise ConfigurationError("EMAIL_USER not configured in environment")

    config = TransportConfig.from_settings(settings)
    mime_message, message_id = build_mime_message(message, settings.email_user)

    logger.info(f"📧 Sending email via SMTP {config.host}:{config.port} to: {message.recipient}")
    try:
        await asyncio.to_thread(
            _deliver, config, settings.email_user, [message.recipient], mime_message.as_string()
        )
    except Exception as e:
        logger.error(f"❌ Email send error to {message.recipient}: {e}")
        raise

    logger.info(f"✅ Email sent successfully to {message.recipient}: {message_id}")
    return DeliveryResult(message_id=message_id)


def resume_filename(applicant_name: str) -> str:
    return f"{WHITESPACE_RE.sub('_', applicant_name)}_Resume.pdf"


async def fetch_resume_attachment(resume_url: str, applicant_name: str) -> Attachment:
    """Download the applicant's resume; raises AttachmentFetchError on any failure"""
    try:
        async with httpx.AsyncClient(timeout=RESUME_FETCH_TIMEOUT, follow_redirects=True) as client:
            response = await client.get(resume_url)
            response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise AttachmentFetchError(f"Could not fetch resume from {resume_url}: {e}") from e

    return Attachment(
        filename=resume_filename(applicant_name),
        content=response.content,
        content_type=RESUME_CONTENT_TYPE,
    )


# ============================================
# Pre-built senders, one per endpoint
# ============================================


async def send_job_alert_email(payload: JobAlertRequest, settings: Settings) -> DeliveryResult:
    rendered = render_job_alert(payload)
    return await send_email(
        OutboundMessage(
            recipient=payload.user_email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            sender_name=JOBS_SENDER_NAME,
        ),
        settings,
    )


async def send_matching_job_email(payload: MatchingJobRequest, settings: Settings) -> DeliveryResult:
    rendered = render_matching_job(payload)
    return await send_email(
        OutboundMessage(
            recipient=payload.user_email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            sender_name=JOBS_SENDER_NAME,
        ),
        settings,
    )


async def send_job_application_email(
    payload: JobApplicationRequest, settings: Settings
) -> DeliveryResult:
    """Forward an application to the recruiter; a resume that can't be fetched is skipped"""
    attachments = []
    if payload.resume_url:
        try:
            attachments.append(
                await fetch_resume_attachment(payload.resume_url, payload.applicant_name)
            )
        except AttachmentFetchError as e:
            logger.warning(f"⚠️ {e}. Sending application without resume")

    rendered = render_job_application(payload, has_resume=bool(attachments))
    return await send_email(
        OutboundMessage(
            recipient=payload.recruiter_email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            attachments=attachments,
        ),
        settings,
    )


async def send_proposal_approval_email(
    payload: ProposalApprovalRequest, settings: Settings
) -> DeliveryResult:
    rendered = render_proposal_approval(payload, frontend_url=settings.frontend_url)
    return await send_email(
        OutboundMessage(
            recipient=payload.student_email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            sender_name=FELLOWSHIP_SENDER_NAME,
        ),
        settings,
    )


async def send_verification_code_email(
    payload: VerificationCodeRequest, settings: Settings
) -> DeliveryResult:
    rendered = render_verification_code(payload)
    return await send_email(
        OutboundMessage(
            recipient=payload.email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            sender_name=FELLOWSHIP_SENDER_NAME,
        ),
        settings,
    )
