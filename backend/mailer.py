import smtplib
from email.mime.text import MIMEText


class SmtpMailer:
    """SMTP sender configured from app config; disabled when no host/sender is set."""

    def __init__(self, host=None, port=587, user=None, password=None, from_addr=None, logger=None):
        self.host = host
        self.port = int(port or 587)
        self.user = user
        self.password = password
        self.from_addr = from_addr or user
        self.logger = logger

    @classmethod
    def from_config(cls, config, logger=None):
        return cls(
            host=config.get('SMTP_HOST'),
            port=config.get('SMTP_PORT') or 587,
            user=config.get('SMTP_USER'),
            password=config.get('SMTP_PASSWORD'),
            from_addr=config.get('SMTP_FROM'),
            logger=logger,
        )

    @property
    def enabled(self):
        return bool(self.host and self.from_addr)

    def send(self, to_addr, subject, body, subtype='html'):
        if not to_addr:
            return False
        if not self.enabled:
            if self.logger:
                self.logger.info("SMTP not configured; skipping email to %s (%s)", to_addr, subject)
            return False

        msg = MIMEText(body, subtype)
        msg['Subject'] = subject
        msg['From'] = self.from_addr
        msg['To'] = to_addr

        with smtplib.SMTP(self.host, self.port) as server:
            server.starttls()
            if self.user and self.password:
                server.login(self.user, self.password)
            server.sendmail(self.from_addr, [to_addr], msg.as_string())
        return True


def verification_email(code, link):
    subject = 'Verify your email'
    body = (
        f"<p>Your verification code is <b>{code}</b> (valid 15 minutes).</p>"
        f"<p>Or click to verify: <a href=\"{link}\">{link}</a></p>"
    )
    return subject, body


def reset_email(code, link):
    subject = 'Reset your password'
    body = (
        f"<p>Your reset code is <b>{code}</b> (valid 15 minutes).</p>"
        f"<p>Or reset via link: <a href=\"{link}\">{link}</a></p>"
    )
    return subject, body
