# reagent_inventory/services/notifier.py
"""
Admin alerts for reagents that run low or approach expiry.

Each alert is an in-app Notification row per active admin plus an email.
While an admin still has an unread alert of the same kind for a reagent,
no new one is created for them.
"""

from datetime import date

from flask import current_app, render_template
from sqlalchemy.exc import IntegrityError

from reagent_inventory.extensions import db
from reagent_inventory.models import Notification, Reagent, User
from reagent_inventory.services.mailer import send_email
from reagent_inventory.socket_events import notify_stock_alert


def low_stock_message(reagent):
    where = reagent.category.name if reagent.category else 'Unknown'
    if reagent.machine:
        where = f"{where} - {reagent.machine.name}"
    return (
        f"{reagent.name} ({where}) is running low. "
        f"Current: {reagent.current_stock} {reagent.unit}, "
        f"Minimum: {reagent.minimum_stock}"
    )


def expiry_message(reagent):
    lot = f" (lot {reagent.lot_number})" if reagent.lot_number else ''
    return (
        f"{reagent.name}{lot} expires on "
        f"{reagent.expiry_date.strftime('%Y-%m-%d')}. "
        f"Current stock: {reagent.current_stock} {reagent.unit}"
    )


def _alert_admins(reagent, kind, title, message, subject, template, admins):
    """Create one unread alert per admin and email it.

    Returns:
        int: Number of notification rows created
    """
    created = 0
    for admin in admins:
        if Notification.unread_for(admin.id, reagent.id, kind):
            current_app.logger.info(
                f"Skipping {kind} alert for {reagent.name}: "
                f"{admin.email} has an unread one"
            )
            continue

        notification = Notification(
            user_id=admin.id,
            type=kind,
            title=title,
            message=message,
            reagent_id=reagent.id
        )
        db.session.add(notification)
        try:
            db.session.commit()
        except IntegrityError:
            # A concurrent request created the same unread alert first
            db.session.rollback()
            continue
        created += 1

        html = render_template(template, reagent=reagent, admin=admin)
        if send_email(admin.email, subject, html):
            notification.email_sent = True
            db.session.commit()

    return created


def notify_low_stock(reagent):
    """Alert every active admin that a reagent is at or below its minimum.

    Args:
        reagent: Reagent model instance, already committed

    Returns:
        int: Number of admins considered, whether or not they were alerted
    """
    admins = User.active_admins()
    if not admins:
        current_app.logger.warning(f"No admins to notify about {reagent.name}")
        return 0

    created = _alert_admins(
        reagent,
        kind='low_stock',
        title='Low Stock Alert',
        message=low_stock_message(reagent),
        subject=f"Low Stock Alert: {reagent.name}",
        template='email/low_stock.html',
        admins=admins
    )
    notify_stock_alert(reagent, reagent.check_stock_level())

    current_app.logger.info(
        f"Low stock alert for {reagent.name}: {created} new of "
        f"{len(admins)} admins"
    )
    return len(admins)


def notify_expiring(days, today=None):
    """Alert admins about active reagents expiring within ``days``.

    Returns:
        int: Number of notification rows created
    """
    admins = User.active_admins()
    if not admins:
        return 0

    today = today or date.today()
    created = 0
    for reagent in Reagent.expiring_within(days, today=today):
        created += _alert_admins(
            reagent,
            kind='expiry',
            title='Expiry Warning',
            message=expiry_message(reagent),
            subject=f"Expiry Warning: {reagent.name}",
            template='email/expiry.html',
            admins=admins
        )
    current_app.logger.info(f"Expiry check ({days} days): {created} notifications created")
    return created
