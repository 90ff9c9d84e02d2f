"""
Email Service
Sends order confirmations to customers
"""

import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from markupsafe import escape

from shoppos.utils.helpers import format_currency

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending customer emails"""

    def __init__(self, app):
        self.app = app

    def send_email(self, to_addresses, subject, html_content):
        """
        Send email with HTML content

        Args:
            to_addresses: List of recipient email addresses
            subject: Email subject
            html_content: HTML email body

        Returns:
            bool: True when the message was handed to the mail server
        """
        if self.app.config.get('MAIL_SUPPRESS_SEND'):
            logger.info(f"Mail sending suppressed: '{subject}' to {to_addresses}")
            return True

        try:
            msg = MIMEMultipart('alternative')
            msg['From'] = self.app.config['MAIL_DEFAULT_SENDER']
            msg['To'] = ', '.join(to_addresses)
            msg['Subject'] = subject

            msg.attach(MIMEText(html_content, 'html'))

            with smtplib.SMTP(self.app.config['MAIL_SERVER'],
                              self.app.config['MAIL_PORT']) as server:
                if self.app.config['MAIL_USE_TLS']:
                    server.starttls()

                if self.app.config.get('MAIL_USERNAME'):
                    server.login(self.app.config['MAIL_USERNAME'],
                                 self.app.config['MAIL_PASSWORD'])
                server.send_message(msg)

            logger.info(f"Email sent successfully to {to_addresses}")
            return True

        except Exception as e:
            logger.error(f"Error sending email: {e}")
            return False

    def generate_order_confirmation_html(self, order):
        """
        Generate HTML content for an order confirmation

        Args:
            order: Completed Order

        Returns:
            HTML string
        """
        currency_symbol = self.app.config.get('CURRENCY_SYMBOL', '$')
        store_name = escape(self.app.config.get('STORE_NAME', 'Shop POS'))
        store_address = escape(self.app.config.get('STORE_ADDRESS', ''))

        rows = ''
        for item in order.line_items:
            name = escape(item.variant.name) if item.variant else ''
            rows += f"""
                <tr>
                    <td>{name}</td>
                    <td>{item.quantity}</td>
                    <td>{format_currency(item.amount, currency_symbol)}</td>
                </tr>
            """

        for adjustment in order.adjustments:
            rows += f"""
                <tr>
                    <td colspan="2">{escape(adjustment.label)}</td>
                    <td>{format_currency(adjustment.amount, currency_symbol)}</td>
                </tr>
            """

        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
                .header {{ background-color: #3B82F6; color: white; padding: 20px; text-align: center; }}
                table {{ width: 100%; border-collapse: collapse; margin-top: 10px; }}
                th, td {{ padding: 10px; text-align: left; border-bottom: 1px solid #ddd; }}
                .total {{ font-weight: bold; }}
            </style>
        </head>
        <body>
            <div class="header">
                <h1>{store_name}</h1>
                <h2>Order {escape(order.number)}</h2>
            </div>
            <p>Thank you for shopping with us.</p>
            <table>
                <tr><th>Item</th><th>Qty</th><th>Amount</th></tr>
                {rows}
                <tr class="total">
                    <td colspan="2">Total</td>
                    <td>{format_currency(order.total, currency_symbol)}</td>
                </tr>
            </table>
            <p>{store_address}</p>
        </body>
        </html>
        """

    def send_order_confirmation(self, order):
        """Email the confirmation of a completed order to its customer"""
        if not order.email:
            logger.info(f"Order {order.number} has no email, confirmation not sent")
            return False

        subject = f"{self.app.config.get('STORE_NAME', 'Shop POS')} Order Confirmation #{order.number}"
        return self.send_email([order.email], subject, self.generate_order_confirmation_html(order))
