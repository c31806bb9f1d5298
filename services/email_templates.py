"""
Transactional email templates.

Templates live in a DictLoader so the service has no filesystem layout to
ship. Autoescaping is on for every template and missing variables raise,
so a caller that forgets a field fails loudly in tests instead of sending a
half-filled email.
"""

from jinja2 import Environment, DictLoader, StrictUndefined, select_autoescape

BASE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{{ subject }}</title>
  <style>
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #1f2937; background: #f3f4f6; }
    .container { max-width: 600px; margin: 0 auto; padding: 24px; }
    .header { background: #111827; color: #fbbf24; padding: 20px; border-radius: 8px 8px 0 0; }
    .content { background: #ffffff; padding: 24px; border: 1px solid #e5e7eb; }
    .button { display: inline-block; background: #fbbf24; color: #111827; padding: 12px 20px;
              text-decoration: none; font-weight: bold; border-radius: 4px; }
    .code { font-size: 32px; letter-spacing: 8px; font-weight: bold; text-align: center; }
    .footer { font-size: 12px; color: #6b7280; padding: 12px; text-align: center; }
  </style>
</head>
<body>
  <div class="container">
    <div class="header"><h2 style="margin: 0;">WMX Services</h2></div>
    <div class="content">{% block content %}{% endblock %}</div>
    <div class="footer">
      <p>&copy; WMX Services. This is an automated message.</p>
      {% if unsubscribe_url is defined and unsubscribe_url %}
      <p><a href="{{ unsubscribe_url }}">Unsubscribe</a></p>
      {% endif %}
    </div>
  </div>
</body>
</html>
"""

TEMPLATES = {
    'base.html': BASE,

    'welcome.html': """{% extends "base.html" %}{% block content %}
<h1>Welcome, {{ name }}!</h1>
<p>Your WMX Services account is ready. From your dashboard you can follow project
progress, chat with our team and pay invoices.</p>
<p><a class="button" href="{{ dashboard_url }}">Open dashboard</a></p>
{% endblock %}""",

    'verification_code.html': """{% extends "base.html" %}{% block content %}
<h1>Verify your email</h1>
<p>Hi {{ name }}, use this code to finish creating your account:</p>
<p class="code">{{ code }}</p>
<p>The code expires in {{ expires_minutes }} minutes. If you did not sign up, ignore this email.</p>
{% endblock %}""",

    'password_reset.html': """{% extends "base.html" %}{% block content %}
<h1>Reset your password</h1>
<p>Hi {{ name }}, we received a request to reset your password.</p>
<p><a class="button" href="{{ reset_url }}">Choose a new password</a></p>
<p>This link expires in 1 hour. If you did not request a reset, you can ignore this email.</p>
{% endblock %}""",

    'magic_link.html': """{% extends "base.html" %}{% block content %}
<h1>Sign in to WMX Services</h1>
<p><a class="button" href="{{ sign_in_url }}">Sign in</a></p>
<p>This link can be used once and expires in 24 hours.</p>
{% endblock %}""",

    'project_status.html': """{% extends "base.html" %}{% block content %}
<h1>Project update: {{ project_title }}</h1>
<p>Hi {{ client_name }},</p>
<p>The status of <strong>{{ project_title }}</strong> changed from
<strong>{{ old_status }}</strong> to <strong>{{ new_status }}</strong>.</p>
<p>Progress: {{ progress }}%</p>
{% if message %}<p>{{ message }}</p>{% endif %}
<p><a class="button" href="{{ project_url }}">View project</a></p>
{% endblock %}""",

    'chat_notification.html': """{% extends "base.html" %}{% block content %}
<h1>New message in {{ project_title }}</h1>
<p>Hi {{ recipient_name }}, {{ sender_name }} wrote:</p>
<blockquote>{{ message_preview }}</blockquote>
<p><a class="button" href="{{ chat_url }}">Reply</a></p>
{% endblock %}""",

    'invoice_notification.html': """{% extends "base.html" %}{% block content %}
<h1>New invoice {{ invoice_number }}</h1>
<p>Hi {{ client_name }}, a new invoice was issued for <strong>{{ project_title }}</strong>.</p>
<p>Amount: <strong>{{ amount }}</strong><br>Due date: {{ due_date }}</p>
{% if description %}<p>{{ description }}</p>{% endif %}
<p><a class="button" href="{{ payment_url }}">Pay invoice</a></p>
{% endblock %}""",

    'invoice_reminder.html': """{% extends "base.html" %}{% block content %}
{% if is_overdue %}
<h1>Invoice {{ invoice_number }} is overdue</h1>
<p>Hi {{ client_name }}, invoice {{ invoice_number }} for <strong>{{ project_title }}</strong>
was due on {{ due_date }} and is {{ days_overdue }} day(s) overdue.</p>
{% else %}
<h1>Payment reminder: {{ invoice_number }}</h1>
<p>Hi {{ client_name }}, invoice {{ invoice_number }} for <strong>{{ project_title }}</strong>
is due on {{ due_date }}.</p>
{% endif %}
<p>Amount: <strong>{{ amount }}</strong></p>
<p><a class="button" href="{{ payment_url }}">Pay now</a></p>
{% endblock %}""",

    'payment_confirmation.html': """{% extends "base.html" %}{% block content %}
<h1>Payment received</h1>
<p>Hi {{ client_name }}, thank you! We received your payment for invoice
<strong>{{ invoice_number }}</strong> ({{ project_title }}).</p>
<p>Amount: <strong>{{ amount }}</strong><br>Method: {{ payment_method }}<br>Date: {{ paid_date }}</p>
<p><a class="button" href="{{ dashboard_url }}">Open dashboard</a></p>
{% endblock %}""",
}

_environment = Environment(
    loader=DictLoader(TEMPLATES),
    autoescape=select_autoescape(['html']),
    undefined=StrictUndefined,
)


def render_template(name: str, subject: str, **context) -> str:
    """Render an email template to HTML."""
    return _environment.get_template(name).render(subject=subject, **context)


def format_currency(amount, currency: str = 'IDR') -> str:
    """Format an amount the way invoices show it (IDR has no minor unit)."""
    if currency == 'IDR':
        return f"Rp {float(amount):,.0f}".replace(',', '.')
    return f"{currency} {float(amount):,.2f}"
