"""Quote email delivery (SendGrid) and the mailto fallback."""
