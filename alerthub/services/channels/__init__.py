"""
Notification channels (push, email, SMS).

Each sender wraps one external transport and never raises for expected
delivery failures.
"""

from .base import ChannelSender
from .email_sender import EmailSender
from .push_sender import FcmPushSender
from .sms_sender import TwilioSmsSender

__all__ = ["ChannelSender", "EmailSender", "FcmPushSender", "TwilioSmsSender"]
