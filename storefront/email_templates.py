"""
MJML Email Templates
Transactional email templates for Genfity orders
"""

from typing import Optional

from .config import APP_URL

# Genfity brand colors
THEME = {
    "primary": "#2563eb",
    "primary_dark": "#1d4ed8",
    "primary_light": "#dbeafe",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#16a34a",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}

LOGO_URL = f"{APP_URL}/images/logo/logo.svg"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 20px">
          <mj-column>
            <mj-image src="{LOGO_URL}" alt="Genfity" width="140px" href="{APP_URL}" padding="0" />
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              © Genfity Digital Solution. All rights reserved.
            </mj-text>
            <mj-text align="center" font-size="12px" color="#94a3b8" padding="12px 0 0 0">
              This is an automated email. Please do not reply to this message.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _summary_row(label: str, value: str, strong: bool = False, color: Optional[str] = None) -> str:
    weight = "700" if strong else "400"
    return f"""
        <tr>
          <td style="padding: 6px 0; font-weight: {weight};">{label}</td>
          <td style="padding: 6px 0; text-align: right; font-weight: {weight}; color: {color or THEME['text_secondary']};">{value}</td>
        </tr>"""


def payment_success_template(
    customer_name: str,
    order_number: str,
    items: list[dict],
    subtotal: str,
    discount: Optional[str],
    service_fee: Optional[str],
    total: str,
    payment_method: str,
    order_date: str,
    payment_date: str,
) -> str:
    """
    Payment confirmation with an order summary.

    items carry pre-formatted name, quantity, price and total strings.
    discount and service_fee rows are omitted when None.
    """
    item_rows = "".join(
        f"""
        <tr>
          <td style="padding: 8px 0; border-bottom: 1px solid {THEME['border']};">{item['name']}</td>
          <td style="padding: 8px 0; border-bottom: 1px solid {THEME['border']}; text-align: center;">{item['quantity']}</td>
          <td style="padding: 8px 0; border-bottom: 1px solid {THEME['border']}; text-align: right;">{item['price']}</td>
          <td style="padding: 8px 0; border-bottom: 1px solid {THEME['border']}; text-align: right;">{item['total']}</td>
        </tr>"""
        for item in items
    )

    summary_rows = _summary_row("Subtotal", subtotal)
    if discount:
        summary_rows += _summary_row("Discount", f"-{discount}", color=THEME["success"])
    if service_fee:
        summary_rows += _summary_row("Service Fee", service_fee)
    summary_rows += _summary_row("Total Paid", total, strong=True, color=THEME["primary"])

    content = f"""
    <mj-text>
      Hi {customer_name},
    </mj-text>

    <mj-text>
      Thank you! Your payment for order <strong>#{order_number}</strong> has been confirmed
      and your services are being activated.
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}" padding="12px 0">
      Order Date: {order_date}<br/>
      Payment Date: {payment_date}<br/>
      Payment Method: {payment_method}
    </mj-text>

    <mj-table font-size="14px" color="{THEME['text_secondary']}" padding="12px 0">
      <tr style="text-align: left; color: {THEME['text_muted']};">
        <th style="padding: 8px 0;">Item</th>
        <th style="padding: 8px 0; text-align: center;">Qty</th>
        <th style="padding: 8px 0; text-align: right;">Price</th>
        <th style="padding: 8px 0; text-align: right;">Total</th>
      </tr>
      {item_rows}
    </mj-table>

    <mj-table font-size="15px" color="{THEME['text_secondary']}" padding="8px 0">
      {summary_rows}
    </mj-table>

    <mj-text font-size="14px" color="{THEME['text_muted']}" padding="20px 0 0 0">
      Check your dashboard for real-time status updates of your services.
    </mj-text>
    """

    return get_base_template(
        title="Payment Confirmed",
        preview_text=f"✅ Payment Confirmed - Order #{order_number}",
        content_sections=content,
        cta_url=f"{APP_URL}/dashboard",
        cta_label="Open Dashboard",
    )


def payment_failed_template(customer_name: str, order_number: str, amount: str, payment_method: str) -> str:
    content = f"""
    <mj-text>
      Hi {customer_name},
    </mj-text>

    <mj-text>
      Unfortunately, we couldn't process your payment of <strong>{amount}</strong>
      using <strong>{payment_method}</strong> for order #{order_number}.
    </mj-text>

    <mj-text>
      Please try again or choose a different payment method from your dashboard.
    </mj-text>
    """

    return get_base_template(
        title="Payment Failed",
        preview_text=f"Payment Failed - Order #{order_number}",
        content_sections=content,
        cta_url=f"{APP_URL}/dashboard",
        cta_label="Try Again",
    )
