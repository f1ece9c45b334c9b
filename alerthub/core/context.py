"""
Application context: every long-lived handle (store, channel senders, live
feed, scorers, dispatcher) built once and passed to whoever needs it.

LIFECYCLE:
    INIT → READY → SHUTDOWN

Tests build a context with fake senders and the in-memory store; the app
builds one at startup from settings.
"""

from enum import Enum
from typing import Any, Dict, Optional
import logging

from alerthub.config.firebase import get_db
from alerthub.services.alert_dispatcher import AlertDispatcher
from alerthub.services.channel_router import ChannelRouter
from alerthub.services.channels import ChannelSender, EmailSender, FcmPushSender, TwilioSmsSender
from alerthub.services.classifier import ClassifierRegistry
from alerthub.services.geocoding import GeocodingResolver
from alerthub.services.live_feed import LiveFeed
from alerthub.services.reputation_tracker import ReputationTracker
from alerthub.services.trust_scorer import TrustScorer

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    INIT = "init"
    READY = "ready"
    SHUTDOWN = "shutdown"


def default_senders() -> Dict[str, ChannelSender]:
    senders = [FcmPushSender(), EmailSender(), TwilioSmsSender()]
    for sender in senders:
        if not sender.is_configured():
            logger.warning(f"{sender.channel} channel not configured; sends will fail and stay retryable")
    return {sender.channel: sender for sender in senders}


class AppContext:

    def __init__(
        self,
        db: Optional[Any] = None,
        senders: Optional[Dict[str, ChannelSender]] = None,
        classifier: Optional[ClassifierRegistry] = None,
        geocoder: Optional[GeocodingResolver] = None,
        live_feed: Optional[LiveFeed] = None,
        send_timeout: Optional[float] = None,
    ):
        self.state = LifecycleState.INIT
        self._db = db
        self._senders = senders
        self._classifier = classifier
        self._geocoder = geocoder
        self._live_feed = live_feed
        self._send_timeout = send_timeout

        self.db: Any = None
        self.senders: Dict[str, ChannelSender] = {}
        self.classifier: Optional[ClassifierRegistry] = None
        self.geocoder: Optional[GeocodingResolver] = None
        self.live_feed: Optional[LiveFeed] = None
        self.reputation: Optional[ReputationTracker] = None
        self.trust_scorer: Optional[TrustScorer] = None
        self.router: Optional[ChannelRouter] = None
        self.dispatcher: Optional[AlertDispatcher] = None

    def initialize(self) -> "AppContext":
        if self.state == LifecycleState.READY:
            return self
        if self.state == LifecycleState.SHUTDOWN:
            raise RuntimeError("AppContext was shut down and cannot be re-initialized")

        self.db = self._db if self._db is not None else get_db()
        self.senders = self._senders if self._senders is not None else default_senders()
        self.classifier = self._classifier or ClassifierRegistry()
        self.geocoder = self._geocoder or GeocodingResolver()
        self.live_feed = self._live_feed or LiveFeed()

        self.reputation = ReputationTracker(self.db)
        self.trust_scorer = TrustScorer(self.db, self.reputation)
        self.router = ChannelRouter(self.senders, self.db, send_timeout=self._send_timeout)
        self.dispatcher = AlertDispatcher(
            self.router,
            db=self.db,
            classifier=self.classifier,
            live_feed=self.live_feed,
        )

        self.state = LifecycleState.READY
        logger.info(f"Application context ready (channels: {', '.join(sorted(self.senders))})")
        return self

    def require_ready(self) -> None:
        if self.state != LifecycleState.READY:
            raise RuntimeError(f"AppContext is {self.state.value}, not ready")

    def shutdown(self) -> None:
        if self.state == LifecycleState.SHUTDOWN:
            return
        for channel, sender in self.senders.items():
            try:
                sender.close()
            except Exception as e:
                logger.warning(f"Closing {channel} sender failed: {e}")
        if self.live_feed is not None:
            self.live_feed.close()
        self.state = LifecycleState.SHUTDOWN
        logger.info("Application context shut down")


_context: Optional[AppContext] = None


def get_context() -> AppContext:
    """Current ready context, built from settings on first use."""
    global _context
    if _context is None or _context.state == LifecycleState.SHUTDOWN:
        _context = AppContext().initialize()
    return _context


def set_context(context: Optional[AppContext]) -> None:
    global _context
    _context = context


def current_context() -> Optional[AppContext]:
    """The installed context, if any, without building one."""
    return _context
