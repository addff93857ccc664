import logging
import os
import smtplib
from email.message import EmailMessage

from jinja2 import Environment, FileSystemLoader, select_autoescape

import config

logger = logging.getLogger(__name__)

templates = Environment(
    loader=FileSystemLoader(os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates", "emails")),
    autoescape=select_autoescape(["html"]),
)


class Mailer:
    def __init__(self, host=None, port=None, user=None, password=None, sender=None, timeout=None):
        self.host = config.SMTP_HOST if host is None else host
        self.port = port or config.SMTP_PORT
        self.user = config.SMTP_USER if user is None else user
        self.password = config.SMTP_PASSWORD if password is None else password
        self.sender = sender or config.MAIL_FROM
        self.timeout = timeout or config.SMTP_TIMEOUT

    def send(self, to: str, subject: str, html: str):
        if not self.host:
            logger.info("SMTP not configured, skipping email to %s: %s", to, subject)
            return
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(msg)
        logger.info("Sent email to %s: %s", to, subject)


def get_mailer():
    return Mailer()


def deliver(mailer, to: str, subject: str, html: str):
    try:
        mailer.send(to, subject, html)
    except Exception:
        logger.exception("Failed to send email to %s: %s", to, subject)


def order_confirmation(order):
    html = templates.get_template("order_confirmation.html").render(
        order=order,
        location=order.pickup_location,
        buyer_name=order.buyer.full_name if order.buyer else "",
        currency=config.CURRENCY,
    )
    return "Fashion Order Confirmation", html


def pickup_ready(order):
    buyer_name = (order.buyer.full_name if order.buyer else "") or "Customer"
    html = templates.get_template("pickup_ready.html").render(
        order=order,
        location=order.pickup_location,
        buyer_name=buyer_name,
    )
    return f"Your order #{order.id} is ready for pickup", html
