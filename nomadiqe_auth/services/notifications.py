"""
Outbound e-mail.

Notifications are side effects: a failed delivery is reported as ``False``
and logged, and never undoes the work that triggered it.
"""

from typing import Tuple
from concurrent.futures import Future, ThreadPoolExecutor
from email.message import EmailMessage
from enum import Enum
import logging
import smtplib

from jinja2 import Environment, PackageLoader, select_autoescape

from .exceptions import DeliveryFailed

logger = logging.getLogger(__name__)


class TemplateKind(str, Enum):
    """Kinds of message we know how to render."""

    PASSWORD_RESET = 'password_reset'
    ADD_PASSWORD = 'add_password'
    VERIFICATION_CODE = 'verification_code'


SUBJECTS = {
    TemplateKind.PASSWORD_RESET: 'Reset your Nomadiqe password',
    TemplateKind.ADD_PASSWORD: 'Add a password to your Nomadiqe account',
    TemplateKind.VERIFICATION_CODE: 'Your Nomadiqe verification code',
}

_templates = Environment(
    loader=PackageLoader('nomadiqe_auth', 'templates/email'),
    autoescape=select_autoescape(['html'])
)


def render(kind: TemplateKind, data: dict) -> Tuple[str, str, str]:
    """Render the subject, plain-text body and HTML body of a message."""
    text = _templates.get_template(f'{kind.value}.txt').render(**data)
    html = _templates.get_template(f'{kind.value}.html').render(**data)
    return SUBJECTS[kind], text, html


class Notifier:
    """Sends templated messages to a recipient."""

    def send(self, recipient: str, kind: TemplateKind, data: dict) -> bool:
        """
        Render and deliver a message.

        Returns
        -------
        bool
            Whether the message was handed off successfully.

        """
        try:
            subject, text, html = render(kind, data)
            self._deliver(recipient, subject, text, html)
        except DeliveryFailed:
            logger.exception('Failed to send %s message to %s', kind.value,
                             recipient)
            return False
        except Exception:
            # Whatever triggered the message has already been committed.
            logger.exception('Unexpected error sending %s message to %s',
                             kind.value, recipient)
            return False
        return True

    def _deliver(self, recipient: str, subject: str, text: str,
                 html: str) -> None:
        raise NotImplementedError('Implemented in subclasses')


class LogNotifier(Notifier):
    """Logs messages instead of sending them. For development."""

    def _deliver(self, recipient: str, subject: str, text: str,
                 html: str) -> None:
        logger.info('E-mail delivery disabled, not sending "%s" to %s',
                    subject, recipient)


class SMTPNotifier(Notifier):
    """Delivers messages through an SMTP service."""

    def __init__(self, sender: str, host: str = '', port: int = 0,
                 username: str = '', password: str = '',
                 use_ssl: bool = False) -> None:
        self.sender = sender
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._use_ssl = use_ssl

    def _new_connection(self) -> smtplib.SMTP:
        if self._use_ssl:
            return smtplib.SMTP_SSL(host=self._host, port=self._port)
        return smtplib.SMTP(host=self._host, port=self._port)

    def _deliver(self, recipient: str, subject: str, text: str,
                 html: str) -> None:
        message = EmailMessage()
        message['Subject'] = subject
        message['From'] = self.sender
        message['To'] = recipient
        message.set_content(text)
        message.add_alternative(html, subtype='html')
        try:
            with self._new_connection() as conn:
                if self._username:
                    conn.login(self._username, self._password)
                conn.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryFailed(f'SMTP delivery failed: {e}') from e
        logger.debug('Sent "%s" to %s', subject, recipient)


class BackgroundNotifier(Notifier):
    """
    Hands messages to another notifier on a worker thread.

    :meth:`send` returns as soon as the message is queued, so that the time
    a request takes does not depend on whether a message was sent.
    """

    def __init__(self, notifier: Notifier, workers: int = 2) -> None:
        self._notifier = notifier
        self._executor = ThreadPoolExecutor(max_workers=workers,
                                            thread_name_prefix='notifier')

    def send(self, recipient: str, kind: TemplateKind, data: dict) -> bool:
        future = self._executor.submit(self._notifier.send, recipient, kind,
                                       dict(data))
        future.add_done_callback(self._report)
        return True

    def shutdown(self) -> None:
        """Wait for queued messages to be handed off."""
        self._executor.shutdown(wait=True)

    def _report(self, future: Future) -> None:
        if future.exception() is not None:
            logger.error('Notification failed', exc_info=future.exception())
