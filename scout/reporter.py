"""
Email Reporter Module.

Renders selected candidates and their analyses into an HTML digest and
sends it via SMTP.
"""

import html
import logging
import re
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Optional

from .errors import DeliveryFailed
from .signals import ScoredCandidate, SignalFamily

logger = logging.getLogger("scout.reporter")

SMTP_TIMEOUT = 30

SECTION_TITLES = {
    SignalFamily.STOREFRONT: "App Store Movers",
    SignalFamily.FORUM: "Forum Pain Points",
    SignalFamily.SOCIAL: "Social Radar",
}
SECTION_ORDER = [SignalFamily.STOREFRONT, SignalFamily.FORUM, SignalFamily.SOCIAL]


@dataclass
class EmailConfig:
    """Email configuration for the reporter."""
    host: str
    port: int
    username: str
    password: str
    use_tls: bool
    email_from: str
    email_to: list[str]
    email_from_name: str = "Opportunity Scout"


@dataclass
class ComposedReport:
    """A rendered digest ready to be delivered."""
    subject: str
    html: str
    text: str
    recipients: list[str]
    candidate_count: int


@dataclass
class DeliveryResult:
    """Outcome of handing a report to the SMTP server."""
    delivered: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def format_analysis_html(text: str) -> str:
    """Escape analysis text and turn its light markdown into HTML."""
    formatted = html.escape(text)
    formatted = re.sub(r'\*\*(.*?)\*\*', r'<strong>\1</strong>', formatted)
    formatted = re.sub(r'\*(.*?)\*', r'<em>\1</em>', formatted)
    formatted = formatted.replace('\n\n', '</p><p style="margin: 12px 0;">')
    formatted = formatted.replace('\n', '<br>')
    return formatted


def _group_by_family(candidates: list[ScoredCandidate]) -> dict[SignalFamily, list[ScoredCandidate]]:
    grouped: dict[SignalFamily, list[ScoredCandidate]] = {}
    for candidate in candidates:
        grouped.setdefault(candidate.family, []).append(candidate)
    return grouped


class EmailReporter:
    """
    Sends opportunity digests via email.

    Each family gets its own section; social items share a single batch
    analysis shown once under the section.
    """

    def __init__(self, config: EmailConfig):
        """
        Initialize the email reporter.

        Args:
            config: Email configuration with SMTP credentials.
        """
        self.config = config
        logger.info(f"EmailReporter initialized for {config.host}:{config.port}")

    def _render_meta(self, candidate: ScoredCandidate) -> str:
        signal = candidate.signal
        if candidate.family == SignalFamily.STOREFRONT:
            bits = [f"#{signal.rank} {html.escape((signal.market or '').upper())}"]
            if signal.category:
                bits.append(html.escape(signal.category))
            if signal.price_formatted:
                bits.append(html.escape(signal.price_formatted))
            if signal.rating is not None:
                bits.append(f"★ {signal.rating:.1f}")
            if candidate.rank_delta is not None:
                bits.append(f"Δ {candidate.rank_delta:+d}")
            return " · ".join(bits)
        if candidate.family == SignalFamily.FORUM:
            return f"{html.escape(signal.source_label)} · score {candidate.score:g}"
        return html.escape(signal.source_label)

    def _render_item(self, candidate: ScoredCandidate, include_analysis: bool) -> str:
        signal = candidate.signal
        badges = "".join(
            f'<span style="border: 1px solid #000; padding: 2px 8px; font-size: 11px; margin-right: 6px; '
            f'font-family: monospace; text-transform: uppercase;">{html.escape(b)}</span>'
            for b in candidate.badges
        )
        summary = ""
        if signal.summary and candidate.family != SignalFamily.STOREFRONT:
            summary = f'<p style="margin: 8px 0; color: #444;">{html.escape(signal.summary)}</p>'
        analysis = ""
        if include_analysis and candidate.analysis:
            analysis = (
                '<div style="margin-top: 12px; padding: 12px 16px; border-left: 4px solid #000; background-color: #fafafa;">'
                f'<p style="margin: 0;">{format_analysis_html(candidate.analysis)}</p></div>'
            )

        return f"""
            <div style="margin-bottom: 28px; padding-bottom: 20px; border-bottom: 1px solid #ddd;">
                <div style="font-family: monospace; font-size: 12px; color: #666; margin-bottom: 6px;">{self._render_meta(candidate)}</div>
                <h3 style="margin: 0 0 8px 0; font-size: 18px;">
                    <a href="{html.escape(signal.url, quote=True)}" style="color: #000;">{html.escape(signal.title)}</a>
                </h3>
                <div>{badges}</div>
                {summary}
                {analysis}
            </div>"""

    def _render_section(self, family: SignalFamily, items: list[ScoredCandidate]) -> str:
        batch = family == SignalFamily.SOCIAL
        body = "".join(self._render_item(c, include_analysis=not batch) for c in items)
        if batch and items and items[0].analysis:
            body += (
                '<div style="padding: 12px 16px; border-left: 4px solid #000; background-color: #fafafa;">'
                f'<p style="margin: 0;">{format_analysis_html(items[0].analysis)}</p></div>'
            )
        return f"""
        <div style="padding: 30px 40px; border-bottom: 1px solid #000;">
            <div style="font-family: monospace; font-size: 13px; letter-spacing: 2px; margin-bottom: 20px; text-transform: uppercase;">
                {SECTION_TITLES[family]} ({len(items)})
            </div>
            {body}
        </div>"""

    def _generate_html_report(
        self,
        candidates: list[ScoredCandidate],
        provider_info: str,
    ) -> str:
        """
        Generate the HTML digest.

        Args:
            candidates: Selected candidates with analyses filled in.
            provider_info: LLM provider used for analysis.

        Returns:
            HTML formatted email body.
        """
        today = datetime.now().strftime("%B %d, %Y")
        grouped = _group_by_family(candidates)
        sections = "".join(
            self._render_section(family, grouped[family])
            for family in SECTION_ORDER
            if grouped.get(family)
        )

        return f"""
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Opportunity Digest - {today}</title>
</head>
<body style="font-family: 'Helvetica Neue', Helvetica, Arial, sans-serif; color: #111; line-height: 1.6; margin: 0; padding: 40px 20px; background-color: #f6f6f6;">
    <div style="max-width: 850px; margin: 0 auto; border: 1px solid #000; background-color: #fff;">

        <!-- Header -->
        <div style="border-bottom: 1px solid #000; padding: 30px 40px; background-color: #000; color: #fff;">
            <div style="font-family: monospace; font-size: 13px; letter-spacing: 2px; margin-bottom: 10px; opacity: 0.8; text-transform: uppercase;">
                Opportunity Scout
            </div>
            <table width="100%" cellpadding="0" cellspacing="0" border="0">
                <tr>
                    <td align="left">
                        <h1 style="margin: 0; font-size: 30px; font-weight: 700; text-transform: uppercase;">
                            Opportunity Digest
                        </h1>
                    </td>
                    <td align="right" style="font-family: monospace; font-size: 16px; opacity: 0.9;">
                        {today}
                    </td>
                </tr>
            </table>
        </div>

        <!-- Metadata Row -->
        <div style="padding: 15px 40px; border-bottom: 1px solid #000; font-family: monospace; font-size: 13px; background-color: #fcfcfc;">
            NEW SIGNALS: <strong>{len(candidates)}</strong>
        </div>

        {sections}

        <!-- Footer -->
        <div style="padding: 20px 40px; font-family: monospace; font-size: 11px; color: #999; text-transform: uppercase; letter-spacing: 1px; background-color: #fafafa;">
            ENGINE: {html.escape(provider_info.upper())} | {today}
        </div>
    </div>
</body>
</html>
"""

    def _generate_plain_text(self, candidates: list[ScoredCandidate]) -> str:
        """Plain text version of the digest."""
        today = datetime.now().strftime("%B %d, %Y")
        lines = [
            "OPPORTUNITY SCOUT",
            f"Opportunity Digest - {today}",
            "-" * 80,
        ]

        grouped = _group_by_family(candidates)
        for family in SECTION_ORDER:
            items = grouped.get(family)
            if not items:
                continue
            lines.append("")
            lines.append(f"== {SECTION_TITLES[family]} ({len(items)}) ==")
            for candidate in items:
                badges = f" [{', '.join(candidate.badges)}]" if candidate.badges else ""
                lines.append("")
                lines.append(f"* {candidate.title}{badges}")
                lines.append(f"  {candidate.url}")
                if family != SignalFamily.SOCIAL and candidate.analysis:
                    lines.append("")
                    lines.append(candidate.analysis)
            if family == SignalFamily.SOCIAL and items[0].analysis:
                lines.append("")
                lines.append(items[0].analysis)

        lines.append("")
        lines.append("-" * 80)
        return "\n".join(lines)

    def compose(self, candidates: list[ScoredCandidate], provider_info: str = "AI") -> ComposedReport:
        """Render the digest for the given candidates."""
        today = datetime.now().strftime("%B %d, %Y")
        subject = f"Scout: {len(candidates)} new opportunit{'y' if len(candidates) == 1 else 'ies'} - {today}"
        return ComposedReport(
            subject=subject,
            html=self._generate_html_report(candidates, provider_info),
            text=self._generate_plain_text(candidates),
            recipients=list(self.config.email_to),
            candidate_count=len(candidates),
        )

    def _send(self, msg: MIMEMultipart, recipients: list[str]) -> None:
        """Hand a message to the SMTP server. Raises DeliveryFailed."""
        try:
            if self.config.use_tls:
                server = smtplib.SMTP(self.config.host, self.config.port, timeout=SMTP_TIMEOUT)
                server.starttls()
            else:
                server = smtplib.SMTP_SSL(self.config.host, self.config.port, timeout=SMTP_TIMEOUT)

            try:
                server.login(self.config.username, self.config.password)
                server.sendmail(self.config.email_from, recipients, msg.as_string())
            finally:
                server.quit()

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"✗ SMTP authentication failed: {e}")
            logger.error("  Check SMTP_USERNAME and SMTP_PASSWORD in .env")
            raise DeliveryFailed(f"SMTP authentication failed: {e}") from e
        except smtplib.SMTPException as e:
            logger.error(f"✗ SMTP error ({type(e).__name__}): {e}")
            raise DeliveryFailed(f"SMTP error: {e}") from e
        except (TimeoutError, OSError) as e:
            logger.error(f"✗ Could not reach {self.config.host}:{self.config.port}: {e}")
            raise DeliveryFailed(f"SMTP connection failed: {e}") from e

    def _build_message(self, subject: str, text: str, html_body: str, recipients: list[str]) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((self.config.email_from_name, self.config.email_from))
        msg["To"] = ", ".join(recipients)
        msg["Message-ID"] = make_msgid(domain=self.config.email_from.partition("@")[2] or None)
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def send_report(self, report: ComposedReport) -> DeliveryResult:
        """
        Send a composed digest. Failures are logged and returned, never retried.

        Returns:
            DeliveryResult with the Message-ID on success.
        """
        if not report.recipients:
            logger.error("✗ No recipients configured")
            return DeliveryResult(delivered=False, error="no recipients")

        msg = self._build_message(report.subject, report.text, report.html, report.recipients)

        logger.info(f"Sending digest to {len(report.recipients)} recipient(s) via {self.config.host}:{self.config.port}")
        logger.info(f"Subject: {report.subject}")

        try:
            self._send(msg, report.recipients)
        except DeliveryFailed as e:
            return DeliveryResult(delivered=False, error=str(e))

        logger.info(f"✓ Digest sent ({msg['Message-ID']})")
        return DeliveryResult(delivered=True, message_id=msg["Message-ID"])

    def send_admin_email(
        self,
        diagnostics,
        alert_reason: str,
        admin_recipients: list[str],
    ) -> bool:
        """
        Send a plain diagnostics email to the admin recipients.

        Args:
            diagnostics: RunDiagnostics for the finished run.
            alert_reason: Why the admin is being alerted.
            admin_recipients: Where to send it.

        Returns:
            True if the email was sent.
        """
        if not admin_recipients:
            logger.warning("No admin recipients configured")
            return False

        summary = diagnostics.format_summary()
        body_html = f"<pre style=\"font-family: monospace; font-size: 13px;\">{html.escape(summary)}</pre>"
        subject = f"[Scout Admin] {alert_reason}"
        msg = self._build_message(subject, summary, body_html, admin_recipients)

        try:
            self._send(msg, admin_recipients)
        except DeliveryFailed as e:
            logger.error(f"Admin email failed: {e}")
            return False

        logger.info(f"✓ Admin email sent to {len(admin_recipients)} recipient(s)")
        return True


def create_reporter_from_config(
    host: str,
    port: int,
    username: str,
    password: str,
    use_tls: bool,
    email_from: str,
    email_to: list[str],
    email_from_name: str = "Opportunity Scout",
) -> EmailReporter:
    """
    Factory function to create an EmailReporter from configuration values.

    Returns:
        Configured EmailReporter instance.
    """
    config = EmailConfig(
        host=host,
        port=port,
        username=username,
        password=password,
        use_tls=use_tls,
        email_from=email_from,
        email_to=email_to,
        email_from_name=email_from_name,
    )
    return EmailReporter(config)
