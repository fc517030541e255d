import logging
import smtplib
from email.mime.text import MIMEText

from jinja2 import Environment, PackageLoader, select_autoescape

from storefront.config import settings

logger = logging.getLogger(__name__)

mail_templates = Environment(
    loader=PackageLoader("storefront", "templates"),
    autoescape=select_autoescape(["html"]),
)


def _money(value) -> str:
    return f"{value:,.2f}"


mail_templates.filters["money"] = _money


def render_mail(template: str, context: dict) -> str:
    return mail_templates.get_template(template).render(**context)


def send_mail(to: str, subject: str, body: str, subtype: str = "html") -> bool:
    if not settings.MAIL_HOST:
        logger.info("MAIL_HOST not configured, skipping mail %r to %s", subject, to)
        return False
    msg = MIMEText(body, subtype, "utf-8")
    msg["Subject"] = subject
    msg["From"] = settings.MAIL_FROM
    msg["To"] = to
    with smtplib.SMTP(settings.MAIL_HOST, settings.MAIL_PORT) as s:
        s.starttls()
        if settings.MAIL_USER:
            s.login(settings.MAIL_USER, settings.MAIL_PASS)
        s.sendmail(settings.MAIL_FROM, [to], msg.as_string())
    return True
