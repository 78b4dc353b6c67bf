"""
Email rendering tests.

User-supplied names end up inside the HTML body and must be escaped.
"""

from etrans.services import email_service


class TestEmailHtml:
    def test_company_label_is_escaped_in_verification_email(self):
        html = email_service._verification_html("123456", "<script>alert(1)</script>")
        assert "<script>" not in html
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
        assert "123456" in html

    def test_names_are_escaped_in_welcome_email(self):
        html = email_service._welcome_html('<img src=x onerror="x">', "Diallo & Fils")
        assert "<img" not in html
        assert "&lt;img" in html
        assert "Diallo &amp; Fils" in html
