import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from inksoul.core.config import settings

logger = logging.getLogger(__name__)

def send_email(to_email: str, subject: str, body: str) -> bool:
    if not settings.MAIL_ENABLED:
        logger.info("Mail disabled, not sending '%s' to %s", subject, to_email)
        return False

    try:
        msg = MIMEMultipart('alternative')
        msg['From'] = settings.MAIL_FROM
        msg['To'] = to_email
        msg['Subject'] = subject
        msg.attach(MIMEText(body, 'html'))

        if settings.MAIL_SSL:
            server = smtplib.SMTP_SSL(settings.MAIL_SERVER, settings.MAIL_PORT)
        else:
            server = smtplib.SMTP(settings.MAIL_SERVER, settings.MAIL_PORT)
            server.starttls()

        try:
            server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
            server.sendmail(settings.MAIL_FROM, to_email, msg.as_string())
        finally:
            server.quit()
        logger.info("Email '%s' sent to %s", subject, to_email)
        return True
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send email '%s' to %s", subject, to_email)
        return False

def _wrap(title: str, content: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #1a1a1a;">{title}</h2>
        {content}
        <p style="color: #888; font-size: 12px;">InkSoul - wear your ideas</p>
    </div>"""

def send_verification_email(to_email: str, user_name: str, verification_url: str) -> bool:
    if not settings.MAIL_ENABLED:
        logger.info("Email verification URL for %s: %s", to_email, verification_url)
    body = _wrap(
        "Verify your email",
        f"<p>Hi {user_name},</p><p>Confirm your address to finish setting up your account:</p>"
        f'<p><a href="{verification_url}">{verification_url}</a></p>',
    )
    return send_email(to_email, "Verify Your Email - InkSoul", body)

def send_password_reset_email(to_email: str, user_name: str, reset_url: str) -> bool:
    if not settings.MAIL_ENABLED:
        logger.info("Password reset URL for %s: %s", to_email, reset_url)
    body = _wrap(
        "Reset your password",
        f"<p>Hi {user_name},</p><p>This link is valid for one hour:</p>"
        f'<p><a href="{reset_url}">{reset_url}</a></p>'
        "<p>If you did not request a reset you can ignore this email.</p>",
    )
    return send_email(to_email, "Password Reset Request - InkSoul", body)

def format_order_items_for_email(items) -> str:
    rows = ""
    for item in items:
        rows += (
            f"<tr><td>{item.name} ({item.size}, {item.color})</td>"
            f"<td style='text-align:center;'>{item.quantity}</td>"
            f"<td style='text-align:right;'>${item.price * item.quantity:.2f}</td></tr>"
        )
    return f"<table width='100%'>{rows}</table>"

def send_order_confirmation_email(order, user_name: str) -> bool:
    to_email = (order.shipping_address or {}).get("email")
    if not to_email:
        logger.warning("No email in shipping address for order %s", order.order_number)
        return False

    discount = ""
    if order.discount_amount:
        discount = f"<p>Discount ({order.coupon_code}): -${order.discount_amount:.2f}</p>"
    body = _wrap(
        f"Order {order.order_number} confirmed",
        f"<p>Hi {user_name}, thanks for your order.</p>"
        f"{format_order_items_for_email(order.items)}"
        f"<p>Items: ${order.items_price:.2f}</p>"
        f"<p>Shipping: ${order.shipping_price:.2f}</p>"
        f"<p>Tax: ${order.tax_price:.2f}</p>"
        f"{discount}"
        f"<p><b>Total: ${order.total_price:.2f}</b></p>"
        f"<p>Ship to: {order.full_shipping_address}</p>",
    )
    return send_email(to_email, f"Order Confirmation {order.order_number} - InkSoul", body)

def send_order_status_email(order, user_name: str) -> bool:
    to_email = (order.shipping_address or {}).get("email")
    if not to_email:
        return False

    status = order.status.value
    tracking = ""
    if order.tracking_number:
        tracking = f"<p>Tracking: {order.shipping_carrier} {order.tracking_number}</p>"
    body = _wrap(
        f"Order {order.order_number} is {status}",
        f"<p>Hi {user_name},</p><p>Your order status changed to <b>{status}</b>.</p>{tracking}",
    )
    return send_email(to_email, f"Order {order.order_number} {status} - InkSoul", body)
