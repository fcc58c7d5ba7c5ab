"""
MJML Email Templates
Every notification renders to a subject, a compiled HTML body and a plain-text body.
Rendering is pure: no network, no settings lookups, no clock apart from the copyright year.
"""

import html
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from mjml import mjml_to_html

from .schemas import (
    AlertJob,
    JobAlertRequest,
    JobApplicationRequest,
    MatchingJobRequest,
    ProposalApprovalRequest,
    Salary,
    VerificationCodeRequest,
)

logger = logging.getLogger(__name__)

BRAND_NAME = "Velocity"
DESCRIPTION_LIMIT = 200
ELLIPSIS = "..."
DETAIL_SEPARATOR = " • "
DEFAULT_CURRENCY = "USD"
VERIFICATION_CODE_TTL_MINUTES = 10

# Dark job-board look used by alerts and matches
JOBS_THEME = {
    "primary": "#6366f1",
    "secondary": "#8b5cf6",
    "header_bg": "#6366f1",
    "header_text": "#ffffff",
    "background": "#000000",
    "card_bg": "#111111",
    "panel_bg": "#1c1c1e",
    "text_primary": "#ffffff",
    "text_secondary": "#aaaaaa",
    "text_muted": "#888888",
    "highlight": "#a78bfa",
    "border": "#333333",
}

# Light recruiter-facing look for forwarded applications
APPLICATION_THEME = {
    "primary": "#667eea",
    "secondary": "#764ba2",
    "header_bg": "#667eea",
    "header_text": "#ffffff",
    "background": "#f9f9f9",
    "card_bg": "#ffffff",
    "panel_bg": "#f9f9f9",
    "text_primary": "#111111",
    "text_secondary": "#333333",
    "text_muted": "#666666",
    "highlight": "#667eea",
    "border": "#e5e7eb",
}

# Green fellowship look for proposals and verification codes
FELLOWSHIP_THEME = {
    "primary": "#10b981",
    "secondary": "#059669",
    "header_bg": "#10b981",
    "header_text": "#ffffff",
    "background": "#f3f4f6",
    "card_bg": "#ffffff",
    "panel_bg": "#f0fdf4",
    "text_primary": "#111111",
    "text_secondary": "#555555",
    "text_muted": "#666666",
    "highlight": "#047857",
    "border": "#e5e7eb",
}


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


# ============================================
# Formatting helpers
# ============================================


def _e(value) -> str:
    """Escape user-provided text for the HTML body"""
    return html.escape(str(value), quote=True)


def format_number(value: Union[int, float]) -> str:
    """Group thousands the way en-US toLocaleString does (at most 3 decimals)"""
    if isinstance(value, float):
        if value.is_integer():
            return f"{int(value):,}"
        return f"{value:,.3f}".rstrip("0").rstrip(".")
    return f"{value:,}"


def format_salary(salary: Optional[Union[Salary, str]]) -> Optional[str]:
    """
    Format a salary range.

    Both bounds give "CUR min - max", a single bound gives "CUR n" and no
    bound gives None so the caller can drop the line entirely.
    """
    if not salary:
        return None
    if isinstance(salary, str):
        return salary
    if not salary.min and not salary.max:
        return None

    currency = salary.currency or DEFAULT_CURRENCY
    if salary.min and salary.max:
        return f"{currency} {format_number(salary.min)} - {format_number(salary.max)}"
    return f"{currency} {format_number(salary.min or salary.max)}"


def pluralize(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count > 1 else ''}"


def truncate(text: str, limit: int = DESCRIPTION_LIMIT) -> str:
    if len(text) > limit:
        return text[:limit] + ELLIPSIS
    return text


def format_posted_date(value: str) -> str:
    """Render an ISO date as M/D/YYYY, leaving anything unparseable untouched"""
    try:
        posted = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return value
    return f"{posted.month}/{posted.day}/{posted.year}"


def join_details(*parts: Optional[str]) -> str:
    return DETAIL_SEPARATOR.join(part for part in parts if part)


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e

    if isinstance(result, Mapping):
        if result.get("errors"):
            logger.warning(f"MJML compilation warnings: {result['errors']}")
        return result.get("html", "")
    return str(result)


# ============================================
# Base layout
# ============================================


def get_base_template(
    title: str,
    preview_text: str,
    tagline: str,
    content_sections: str,
    theme: dict,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
    footer_note: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section background-color="{theme['card_bg']}" padding="0 24px 24px 24px">
          <mj-column>
            <mj-button
              href="{_e(cta_url)}"
              background-color="{theme['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="10px"
              padding="8px 0"
              font-size="14px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    footer_notice = ""
    if footer_note:
        footer_notice = f"""
            <mj-text align="center" font-size="12px" color="{theme['text_muted']}" padding="8px 0 0 0">
              {footer_note}
            </mj-text>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif" />
          <mj-text font-size="14px" line-height="1.6" color="{theme['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{theme['background']}">
        <!-- Header -->
        <mj-section background-color="{theme['header_bg']}" padding="24px">
          <mj-column>
            <mj-text font-size="24px" font-weight="700" color="{theme['header_text']}" padding="0 0 4px 0">
              {BRAND_NAME}
            </mj-text>
            <mj-text font-size="13px" color="{theme['header_text']}" padding="0">
              {tagline}
            </mj-text>
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="{theme['card_bg']}" padding="24px">
          <mj-column>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="16px 20px">
          <mj-column>
            <mj-text align="center" font-size="11px" color="{theme['text_muted']}" padding="0">
              © {datetime.now().year} {BRAND_NAME}
            </mj-text>
            {footer_notice}
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _sign_off(theme: dict, closing: str = "Best of luck,") -> str:
    return f"""
    <mj-divider border-color="{theme['border']}" border-width="1px" padding="16px 0" />
    <mj-text color="{theme['text_muted']}" font-size="13px" padding="0">
      {closing}<br/><strong style="color: {theme['text_primary']};">The {BRAND_NAME} Team</strong>
    </mj-text>
    """


# ============================================
# Job alerts
# ============================================


def _alert_job_details(job: AlertJob) -> str:
    return join_details(
        job.location,
        job.employment_type,
        format_salary(job.salary),
        "Remote" if job.is_remote else None,
    )


def _alert_job_card(index: int, job: AlertJob, theme: dict) -> str:
    details = _alert_job_details(job)
    details_html = ""
    if details:
        details_html = f"""
    <mj-text color="{theme['text_muted']}" font-size="12px" padding="0 0 8px 0">
      {_e(details)}
    </mj-text>"""

    description_html = ""
    if job.description:
        description_html = f"""
    <mj-text color="{theme['text_secondary']}" font-size="13px" padding="0 0 8px 0">
      {_e(truncate(job.description))}
    </mj-text>"""

    return f"""
    <mj-text color="{theme['text_primary']}" font-size="16px" font-weight="600" padding="16px 0 4px 0">
      <span style="color: {theme['highlight']};">{index}.</span> {_e(job.title)}
    </mj-text>
    <mj-text color="{theme['highlight']}" font-size="14px" padding="0 0 8px 0">
      {_e(job.company)}
    </mj-text>{details_html}{description_html}
    <mj-text padding="0 0 8px 0">
      <a href="{_e(job.apply_link)}" style="color: {theme['primary']}; font-weight: 600; text-decoration: none;">Apply Now →</a>
    </mj-text>
    """


def render_job_alert(payload: JobAlertRequest) -> RenderedEmail:
    """Digest of jobs matching a saved alert"""
    theme = JOBS_THEME
    user_name = payload.user_name or "there"
    job_count = len(payload.jobs)

    subject = f'🎯 {pluralize(job_count, "New Job")} Matching "{payload.alert_title}"'

    cards = "".join(
        _alert_job_card(index, job, theme) for index, job in enumerate(payload.jobs, start=1)
    )
    content = f"""
    <mj-text color="{theme['text_primary']}" font-size="16px" padding="0 0 8px 0">
      Hello {_e(user_name)},
    </mj-text>
    <mj-text padding="0 0 12px 0">
      We found <strong style="color: {theme['text_primary']};">{pluralize(job_count, "new job")}</strong>
      matching: <span style="color: {theme['highlight']};">{_e(payload.alert_title)}</span>
    </mj-text>
    {cards}
    {_sign_off(theme)}
    """

    mjml_content = get_base_template(
        title=_e(subject),
        preview_text=f"{pluralize(job_count, 'new job')} matching {_e(payload.alert_title)}",
        tagline="Your Job Search Partner",
        content_sections=content,
        theme=theme,
    )

    text_jobs = []
    for index, job in enumerate(payload.jobs, start=1):
        lines = [f"{index}. {job.title} at {job.company}"]
        details = _alert_job_details(job)
        if details:
            lines.append(f"   {details}")
        if job.description:
            lines.append(f"   {truncate(job.description)}")
        lines.append(f"   Apply: {job.apply_link}")
        text_jobs.append("\n".join(lines))

    text = (
        f"Hello {user_name},\n\n"
        f'We found {pluralize(job_count, "job")} matching "{payload.alert_title}":\n\n'
        + "\n\n".join(text_jobs)
        + f"\n\nBest,\n{BRAND_NAME} Team"
    )

    return RenderedEmail(subject=subject, html=compile_mjml_to_html(mjml_content), text=text)


# ============================================
# Matching job
# ============================================


def render_matching_job(payload: MatchingJobRequest) -> RenderedEmail:
    """Single job that matches the user's profile"""
    theme = JOBS_THEME
    user_name = payload.user_name or "there"
    details = join_details(payload.job_location, payload.job_type, format_salary(payload.salary))
    description = truncate(payload.job_description) if payload.job_description else None
    posted = format_posted_date(payload.posted_date) if payload.posted_date else None

    subject = f"🎯 New Job Match: {payload.job_title} at {payload.company_name}"

    sections = [
        f"""
    <mj-text color="{theme['text_primary']}" font-size="16px" padding="0 0 16px 0">
      Hello {_e(user_name)},
    </mj-text>
    <mj-text color="{theme['text_primary']}" font-size="18px" font-weight="600" padding="0 0 4px 0">
      {_e(payload.job_title)}
    </mj-text>
    <mj-text color="{theme['secondary']}" font-size="14px" font-weight="600" padding="0 0 8px 0">
      {_e(payload.company_name)}
    </mj-text>"""
    ]
    if details:
        sections.append(
            f"""
    <mj-text color="{theme['text_muted']}" font-size="12px" padding="0 0 8px 0">
      📍 {_e(details)}
    </mj-text>"""
        )
    if description:
        sections.append(
            f"""
    <mj-text color="{theme['text_secondary']}" font-size="13px" padding="8px 0">
      {_e(description)}
    </mj-text>"""
        )
    if posted:
        sections.append(
            f"""
    <mj-text color="{theme['text_muted']}" font-size="12px" padding="8px 0">
      🕐 Posted: {_e(posted)}
    </mj-text>"""
        )
    sections.append(_sign_off(theme))

    mjml_content = get_base_template(
        title=_e(subject),
        preview_text=f"{_e(payload.job_title)} at {_e(payload.company_name)}",
        tagline="We found a job that matches your profile!",
        content_sections="".join(sections),
        theme=theme,
        cta_url=payload.apply_link,
        cta_label="Apply Now →",
    )

    text_lines = [f"Hello {user_name},", "", f"{payload.job_title} at {payload.company_name}"]
    if details:
        text_lines.append(details)
    if description:
        text_lines.extend(["", description])
    if posted:
        text_lines.append(f"Posted: {posted}")
    text_lines.extend(["", f"Apply: {payload.apply_link}", "", "Best,", f"{BRAND_NAME} Team"])

    return RenderedEmail(
        subject=subject, html=compile_mjml_to_html(mjml_content), text="\n".join(text_lines)
    )


# ============================================
# Job application forwarding
# ============================================


def render_job_application(payload: JobApplicationRequest, has_resume: bool = False) -> RenderedEmail:
    """Application forwarded to the recruiter, optionally with the resume attached"""
    theme = APPLICATION_THEME
    recruiter_name = payload.recruiter_name or "Hiring Manager"
    position = payload.job_title
    if payload.company_name:
        position = f"{payload.job_title} at {payload.company_name}"

    subject = f"Job Application for {payload.job_title} - {payload.applicant_name}"

    phone_html = ""
    if payload.applicant_phone:
        phone_html = f"<br/><strong>Phone:</strong> {_e(payload.applicant_phone)}"

    sections = [
        f"""
    <mj-text color="{theme['text_primary']}" font-size="20px" font-weight="600" padding="0 0 4px 0">
      New Job Application
    </mj-text>
    <mj-text color="{theme['text_muted']}" padding="0 0 16px 0">
      {_e(position)}
    </mj-text>
    <mj-text>
      Dear {_e(recruiter_name)},
    </mj-text>
    <mj-text>
      You have received a new application for <strong>{_e(payload.job_title)}</strong>.
    </mj-text>
    <mj-text container-background-color="{theme['panel_bg']}" padding="12px 16px">
      <strong>Name:</strong> {_e(payload.applicant_name)}<br/>
      <strong>Email:</strong> <a href="mailto:{_e(payload.applicant_email)}" style="color: {theme['primary']};">{_e(payload.applicant_email)}</a>{phone_html}
    </mj-text>"""
    ]
    if payload.message:
        sections.append(
            f"""
    <mj-text container-background-color="{theme['panel_bg']}" padding="12px 16px">
      <strong>Cover Message:</strong><br/>{_e(payload.message)}
    </mj-text>"""
        )
    if has_resume:
        sections.append(
            """
    <mj-text>
      Resume is attached to this email.
    </mj-text>"""
        )
    sections.append(
        f"""
    <mj-text>
      Best regards,<br/>{BRAND_NAME} Job Platform
    </mj-text>"""
    )

    mjml_content = get_base_template(
        title=_e(subject),
        preview_text=f"{_e(payload.applicant_name)} applied for {_e(payload.job_title)}",
        tagline="New Job Application",
        content_sections="".join(sections),
        theme=theme,
    )

    text_lines = [
        f"Dear {recruiter_name},",
        "",
        f"You have received a new application for {position}.",
        "",
        f"Name: {payload.applicant_name}",
        f"Email: {payload.applicant_email}",
    ]
    if payload.applicant_phone:
        text_lines.append(f"Phone: {payload.applicant_phone}")
    if payload.message:
        text_lines.extend(["", "Cover Message:", payload.message])
    if has_resume:
        text_lines.extend(["", "Resume is attached to this email."])
    text_lines.extend(["", "Best regards,", f"{BRAND_NAME} Job Platform"])

    return RenderedEmail(
        subject=subject, html=compile_mjml_to_html(mjml_content), text="\n".join(text_lines)
    )


# ============================================
# Fellowship emails
# ============================================


def conversation_url(frontend_url: str, chat_room_id: Optional[str]) -> str:
    base = f"{frontend_url.rstrip('/')}/fellowship/messages"
    if chat_room_id:
        return f"{base}/{chat_room_id}"
    return base


def render_proposal_approval(payload: ProposalApprovalRequest, frontend_url: str) -> RenderedEmail:
    """
    Tell a student their challenge proposal was accepted.

    frontend_url is the configured default; a frontendUrl in the payload wins.
    """
    theme = FELLOWSHIP_THEME
    student_name = payload.student_name or "there"
    corporate_name = payload.corporate_name or payload.company_name
    price = f"₹{format_number(payload.proposed_price)}"
    timeline = pluralize(payload.estimated_days, "day")
    chat_url = conversation_url(payload.frontend_url or frontend_url, payload.chat_room_id)

    subject = "🎉 Congratulations! Your Proposal Has Been Accepted"

    sections = [
        f"""
    <mj-text color="{theme['text_primary']}" font-size="16px" font-weight="600" padding="0 0 16px 0">
      Hello {_e(student_name)},
    </mj-text>
    <mj-text padding="0 0 16px 0">
      Congratulations! <strong style="color: {theme['text_primary']};">{_e(payload.company_name)}</strong>
      has accepted your proposal for the challenge:
    </mj-text>
    <mj-text container-background-color="{theme['panel_bg']}" color="{theme['highlight']}" font-size="13px" padding="16px">
      <strong style="font-size: 16px;">{_e(payload.challenge_title)}</strong><br/>
      💰 <strong>Agreed Price:</strong> {price}<br/>
      ⏱️ <strong>Timeline:</strong> {timeline}<br/>
      🏢 <strong>Company:</strong> {_e(payload.company_name)}
    </mj-text>"""
    ]
    if payload.feedback:
        sections.append(
            f"""
    <mj-text padding="16px 0 0 0">
      <strong style="color: #4338ca;">Message from {_e(corporate_name)}:</strong><br/>{_e(payload.feedback)}
    </mj-text>"""
        )
    sections.append(
        f"""
    <mj-text color="#1e3a8a" font-size="13px" padding="16px 0 0 0">
      <strong>📋 Next Steps:</strong>
      <ul style="margin: 8px 0 0 0; padding-left: 18px;">
        <li>Start a conversation with {_e(payload.company_name)}</li>
        <li>Clarify requirements and deliverables</li>
        <li>Set up milestones and checkpoints</li>
        <li>Begin working on the project</li>
      </ul>
    </mj-text>"""
    )
    sections.append(_sign_off(theme))

    mjml_content = get_base_template(
        title="Proposal Accepted!",
        preview_text=f"{_e(payload.company_name)} accepted your proposal",
        tagline="Great news from Velocity Fellowships",
        content_sections="".join(sections),
        theme=theme,
        cta_url=chat_url,
        cta_label="Start Conversation →",
    )

    text_lines = [
        f"Congratulations {student_name}!",
        "",
        f'Your proposal for "{payload.challenge_title}" has been accepted by {payload.company_name}!',
        "",
        f"Agreed Price: {price}",
        f"Timeline: {timeline}",
    ]
    if payload.feedback:
        text_lines.extend(["", f"Message from {corporate_name}: {payload.feedback}"])
    text_lines.extend(
        ["", f"Start conversation: {chat_url}", "", "Best,", f"{BRAND_NAME} Team"]
    )

    return RenderedEmail(
        subject=subject, html=compile_mjml_to_html(mjml_content), text="\n".join(text_lines)
    )


def render_verification_code(payload: VerificationCodeRequest) -> RenderedEmail:
    """One-time code for fellowship account verification"""
    theme = FELLOWSHIP_THEME
    subject = "Verify Your Fellowship Account"

    content = f"""
    <mj-text color="{theme['text_primary']}" font-size="16px">
      Hello,
    </mj-text>
    <mj-text font-size="16px">
      Use the following code to verify your account:
    </mj-text>
    <mj-text
      align="center"
      container-background-color="#f3f4f6"
      font-size="32px"
      font-weight="700"
      letter-spacing="8px"
      font-family="monospace"
      color="#1f2937"
      padding="24px">
      {_e(payload.code)}
    </mj-text>
    <mj-text align="center" color="#6b7280">
      This code expires in {VERIFICATION_CODE_TTL_MINUTES} minutes.
    </mj-text>
    """

    mjml_content = get_base_template(
        title=_e(subject),
        preview_text=f"Your verification code is {_e(payload.code)}",
        tagline="Velocity Fellowships",
        content_sections=content,
        theme=theme,
        footer_note="If you didn't request this, please ignore this email.",
    )

    text = (
        f"Your {BRAND_NAME} verification code is: {payload.code}\n"
        f"This code expires in {VERIFICATION_CODE_TTL_MINUTES} minutes."
    )

    return RenderedEmail(subject=subject, html=compile_mjml_to_html(mjml_content), text=text)
