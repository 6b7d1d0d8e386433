"""
Delivery of purchase orders to suppliers.

A dispatcher takes an order, a method (email or whatsapp) and a recipient and
reports success or failure; it never raises for delivery problems. Email goes
through Django's mail framework, WhatsApp through an HTTP gateway configured by
WHATSAPP_API_URL / WHATSAPP_API_TOKEN.
"""
import logging
import smtplib
from dataclasses import dataclass

import requests
from django.core.mail import send_mail

from restock.core.conf import get_restock_settings

logger = logging.getLogger(__name__)

METHOD_EMAIL = 'email'
METHOD_WHATSAPP = 'whatsapp'


@dataclass
class DispatchResult:
    success: bool
    message: str


class NotificationDispatcher:
    """Interface for sending a purchase order to a supplier"""

    def send(self, order, method, recipient) -> DispatchResult:
        raise NotImplementedError


def format_purchase_order_message(order):
    """Plain-text body shared by email and WhatsApp"""
    lines = [
        f"Purchase Order {order.order_number}",
        f"Supplier: {order.supplier.name}",
        f"Date: {order.created_at:%d-%m-%Y}",
        "",
    ]
    for item in order.items.select_related('product'):
        product = item.product
        sku = f" [{product.sku}]" if product.sku else ""
        lines.append(
            f"- {product.name}{sku}: {item.quantity} {product.unit} x {item.unit_price} = {item.get_line_total()}"
        )
    lines.append("")
    lines.append(f"Total: {order.total_amount}")
    if order.expected_delivery_date:
        lines.append(f"Expected delivery: {order.expected_delivery_date:%d-%m-%Y}")
    if order.notes:
        lines.append(f"Notes: {order.notes}")
    return "\n".join(lines)


class DefaultDispatcher(NotificationDispatcher):
    def __init__(self, config=None):
        self.config = config or get_restock_settings()

    def send(self, order, method, recipient):
        if method == METHOD_EMAIL:
            return self.send_email(order, recipient)
        if method == METHOD_WHATSAPP:
            return self.send_whatsapp(order, recipient)
        return DispatchResult(False, f"Unsupported send method: {method}")

    def send_email(self, order, recipient):
        subject = f"Purchase Order {order.order_number}"
        try:
            delivered = send_mail(
                subject,
                format_purchase_order_message(order),
                self.config.default_from_email,
                [recipient],
                fail_silently=False,
            )
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email delivery of {order.order_number} to {recipient} failed: {e}")
            return DispatchResult(False, f"Email delivery failed: {e}")

        if not delivered:
            return DispatchResult(False, "Email backend did not accept the message")
        return DispatchResult(True, f"Purchase order emailed to {recipient}")

    def send_whatsapp(self, order, recipient):
        if not self.config.whatsapp_api_url:
            return DispatchResult(False, "WhatsApp gateway is not configured")

        headers = {'Content-Type': 'application/json'}
        if self.config.whatsapp_api_token:
            headers['Authorization'] = f"Bearer {self.config.whatsapp_api_token}"
        payload = {
            'to': recipient,
            'type': 'text',
            'text': {'body': format_purchase_order_message(order)},
        }

        try:
            response = requests.post(
                self.config.whatsapp_api_url,
                json=payload,
                headers=headers,
                timeout=self.config.dispatch_timeout,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout:
            logger.error(f"WhatsApp gateway timed out sending {order.order_number} to {recipient}")
            return DispatchResult(False, "WhatsApp gateway timed out")
        except requests.exceptions.RequestException as e:
            logger.error(f"WhatsApp delivery of {order.order_number} to {recipient} failed: {e}")
            return DispatchResult(False, f"WhatsApp delivery failed: {e}")

        return DispatchResult(True, f"Purchase order sent on WhatsApp to {recipient}")
