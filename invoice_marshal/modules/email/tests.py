"""
Tests para el módulo de Email: templates, mensajes MIME y tareas Celery.
No se abre ninguna conexión SMTP.
"""

import pytest

from invoice_marshal.modules.email.service import EmailService, email_service
from invoice_marshal.modules.email.tasks import (
    INVOICE_TEMPLATES, invoice_email_subject, send_invoice_email_task
)


@pytest.fixture
def invoice_variables():
    return {
        "client_name": "Charles Babbage",
        "invoice_number": 12,
        "invoice_name": "Website redesign",
        "due_date": "July 01, 2024",
        "total_amount": "$1,250.00",
        "balance_due": "$250.00",
        "invoice_link": "http://localhost:8000/invoices/abc/pdf",
        "note": "Payable by bank transfer",
        "from_name": "Lovelace Consulting",
        "from_email": "billing@lovelace.example.com",
        "from_address": "12 Analytical Row, London",
    }


@pytest.fixture
def sent_emails(monkeypatch):
    """Reemplaza el envío SMTP y guarda los correos que se hubieran enviado"""
    sent = []

    def fake_send_template_email(to_emails, subject, template_name, context, from_name=None, reply_to=None):
        html = email_service.render_template(template_name, context)
        sent.append({
            "to": to_emails, "subject": subject, "template": template_name,
            "html": html, "from_name": from_name, "reply_to": reply_to
        })
        return True

    monkeypatch.setattr(email_service, "send_template_email", fake_send_template_email)
    return sent


class TestTemplates:

    @pytest.mark.parametrize("template_name", sorted(INVOICE_TEMPLATES.values()))
    def test_invoice_templates_render(self, template_name, invoice_variables):
        html = EmailService().render_template(template_name, invoice_variables)

        assert "Charles Babbage" in html
        assert "$1,250.00" in html
        assert "http://localhost:8000/invoices/abc/pdf" in html

    def test_created_template_includes_note(self, invoice_variables):
        html = EmailService().render_template("invoice_created.html", invoice_variables)
        assert "Payable by bank transfer" in html

    def test_reminder_shows_balance_only_when_present(self, invoice_variables):
        service = EmailService()
        assert "$250.00" in service.render_template("invoice_reminder.html", invoice_variables)

        invoice_variables["balance_due"] = None
        assert "Balance due" not in service.render_template("invoice_reminder.html", invoice_variables)

    def test_values_are_escaped(self, invoice_variables):
        invoice_variables["client_name"] = "<script>alert(1)</script>"
        html = EmailService().render_template("invoice_created.html", invoice_variables)
        assert "<script>" not in html


class TestMessages:

    def test_build_message_uses_display_name(self):
        msg = EmailService().build_message(
            ["client@example.com"], "Hello", html_content="<p>Hi</p>",
            from_name="Lovelace Consulting", reply_to="billing@lovelace.example.com"
        )

        assert msg["Subject"] == "Hello"
        assert msg["From"].startswith("Lovelace Consulting <")
        assert msg["Reply-To"] == "billing@lovelace.example.com"
        assert msg["To"] == "client@example.com"

    def test_subjects(self, invoice_variables):
        assert invoice_email_subject("created", invoice_variables) == "New invoice #12 from Lovelace Consulting"
        assert invoice_email_subject("updated", invoice_variables) == "Invoice #12 has been updated"
        assert invoice_email_subject("reminder", invoice_variables) == "Invoice #12 from Lovelace Consulting"


class TestInvoiceEmailTask:

    def test_sends_with_sender_identity(self, sent_emails, invoice_variables):
        result = send_invoice_email_task.apply(args=("created", "charles@example.com", invoice_variables)).get()

        assert result["status"] == "success"
        assert len(sent_emails) == 1
        assert sent_emails[0]["template"] == "invoice_created.html"
        assert sent_emails[0]["from_name"] == "Lovelace Consulting"
        assert sent_emails[0]["reply_to"] == "billing@lovelace.example.com"

    def test_unknown_kind_is_not_retried(self, sent_emails, invoice_variables):
        result = send_invoice_email_task.apply(args=("paid", "charles@example.com", invoice_variables)).get()

        assert result["status"] == "failed"
        assert sent_emails == []

    def test_failed_send_returns_failed_after_retries(self, monkeypatch, invoice_variables):
        calls = []

        def failing_send(*args, **kwargs):
            calls.append(kwargs)
            return False

        monkeypatch.setattr(email_service, "send_template_email", failing_send)

        result = send_invoice_email_task.apply(args=("reminder", "charles@example.com", invoice_variables)).get()

        assert result["status"] == "failed"
        assert len(calls) == send_invoice_email_task.max_retries + 1
