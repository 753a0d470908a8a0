# reagent_inventory/services/mailer.py
"""
Outbound email over SMTP.

Delivery is best effort: callers get a boolean and never an exception,
failures are written to the application log.
"""

import smtplib
from email.message import EmailMessage

from flask import current_app

from reagent_inventory.errors import NotificationDeliveryError


def deliver(to, subject, html):
    """Send one HTML email through the configured SMTP server.

    Args:
        to: Recipient address
        subject: Subject line
        html: HTML body

    Raises:
        NotificationDeliveryError: If the SMTP conversation fails
    """
    config = current_app.config

    message = EmailMessage()
    message['Subject'] = subject
    message['From'] = config['MAIL_DEFAULT_SENDER']
    message['To'] = to
    message.set_content('This message requires an HTML capable mail client.')
    message.add_alternative(html, subtype='html')

    try:
        with smtplib.SMTP(
            config['MAIL_SERVER'],
            config['MAIL_PORT'],
            timeout=config.get('MAIL_TIMEOUT', 10)
        ) as smtp:
            if config.get('MAIL_USE_TLS'):
                smtp.starttls()
            if config.get('MAIL_USERNAME'):
                smtp.login(config['MAIL_USERNAME'], config['MAIL_PASSWORD'])
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        raise NotificationDeliveryError(f"Could not send email to {to}: {e}") from e


def send_email(to, subject, html):
    """Send an email, reporting success instead of raising.

    Returns:
        bool: True if the SMTP server accepted the message
    """
    if not current_app.config.get('MAIL_SERVER'):
        current_app.logger.info(f"Email not configured. Would send to: {to}")
        return False

    try:
        deliver(to, subject, html)
    except NotificationDeliveryError as e:
        current_app.logger.error(f"Email error: {e.message}")
        return False

    current_app.logger.info(f"Email sent to {to}: {subject}")
    return True
