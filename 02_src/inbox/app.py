"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol

from .assistant import SuggestionAssistant
from .attachments import (
    AttachmentUploader,
    HttpAttachmentStorage,
    IAttachmentStorage,
    LocalAttachmentStorage,
)
from .config import resolve_db_path
from .conversations import ConversationStore
from .delivery import (
    DeliveryRouter,
    HttpSendMessageAdapter,
    LoopbackAdapter,
    TelegramAdapter,
    TwilioWhatsAppAdapter,
)
from .dispatch import OutboundDispatcher
from .event_bus import EventBus
from .ingest import InboundIngestor
from .llm import ILLMProvider, LLMProvider
from .logging_config import get_logger
from .messages import MessageLog
from .models import Platform
from .realtime import BusRealtimeTransport, RealtimeSubscriber
from .storage import IStorage, Storage
from .tracker import Tracker
from .view import ConversationView

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...


def default_delivery_router() -> DeliveryRouter:
    """Build the router from the environment.

    The send-message function (SEND_MESSAGE_URL) is the default for every
    platform, loopback when it is not set. TELEGRAM_BOT_TOKEN and the
    TWILIO_* settings route their platform straight to the provider.
    """
    if os.getenv("SEND_MESSAGE_URL"):
        router = DeliveryRouter(default=HttpSendMessageAdapter())
    else:
        logger.warning("SEND_MESSAGE_URL not set, using loopback delivery")
        router = DeliveryRouter(default=LoopbackAdapter())

    if os.getenv("TELEGRAM_BOT_TOKEN"):
        router.register(Platform.TELEGRAM, TelegramAdapter())
    if os.getenv("TWILIO_ACCOUNT_SID"):
        router.register(Platform.WHATSAPP, TwilioWhatsAppAdapter())

    for platform in router.platforms:
        logger.info("Direct delivery for %s", platform.value)
    return router


def default_attachment_storage() -> IAttachmentStorage:
    """Upload endpoint when ATTACHMENT_UPLOAD_URL is set, local directory otherwise."""
    if os.getenv("ATTACHMENT_UPLOAD_URL"):
        return HttpAttachmentStorage()
    return LocalAttachmentStorage()


class Application:
    """Main application bootstrap.

    Owns every service handle; views are created per open conversation with
    create_view() and released on stop().
    """

    def __init__(
        self,
        db_path: str | None = None,
        llm_provider: ILLMProvider | None = None,
        delivery: DeliveryRouter | None = None,
        attachment_storage: IAttachmentStorage | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._llm_override = llm_provider
        self._delivery_override = delivery
        self._attachment_storage_override = attachment_storage

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._event_bus: EventBus | None = None
        self._tracker: Tracker | None = None
        self._transport: BusRealtimeTransport | None = None
        self._store: ConversationStore | None = None
        self._ingestor: InboundIngestor | None = None
        self._delivery: DeliveryRouter | None = None
        self._attachment_storage: IAttachmentStorage | None = None
        self._uploader: AttachmentUploader | None = None
        self._dispatcher: OutboundDispatcher | None = None
        self._llm: ILLMProvider | None = None
        self._assistant: SuggestionAssistant | None = None
        self._views: list[ConversationView] = []

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. EventBus and the realtime transport over it
        self._event_bus = EventBus()
        self._transport = BusRealtimeTransport(self._event_bus)

        # 3. Tracker (depends on EventBus + Storage)
        self._tracker = Tracker(self._event_bus, self._storage)
        await self._tracker.start()

        # 4. ConversationStore and inbound ingestion
        self._store = ConversationStore(self._storage, self._event_bus, self._tracker)
        self._ingestor = InboundIngestor(
            self._storage, self._store, self._event_bus, self._tracker
        )

        # 5. Outbound: delivery, attachments, dispatcher
        self._delivery = self._delivery_override or default_delivery_router()
        self._attachment_storage = (
            self._attachment_storage_override or default_attachment_storage()
        )
        self._uploader = AttachmentUploader(self._attachment_storage, self._tracker)
        self._dispatcher = OutboundDispatcher(
            store=self._store,
            storage=self._storage,
            event_bus=self._event_bus,
            delivery=self._delivery,
            uploader=self._uploader,
            tracker=self._tracker,
        )
        logger.info("Dispatcher initialized")

        # 6. LLM and suggestions (optional)
        self._llm = self._llm_override
        if self._llm is None:
            try:
                self._llm = LLMProvider()
            except ValueError as e:
                logger.warning("Reply suggestions disabled: %s", e)
        if self._llm is not None:
            self._assistant = SuggestionAssistant(
                self._llm, self._store, self._storage, self._tracker
            )
            logger.info("Suggestion assistant initialized")

        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        for view in self._views:
            await view.close()
        self._views.clear()
        if self._uploader:
            self._uploader.previews.release_all()
        if self._delivery and self._delivery_override is None:
            await self._delivery.aclose()
        # Close HTTP clients this application created itself.
        if self._attachment_storage and self._attachment_storage_override is None:
            close = getattr(self._attachment_storage, "aclose", None)
            if close is not None:
                await close()
        if self._llm and self._llm_override is None:
            await self._llm.aclose()
        self._delivery = self._attachment_storage = self._llm = None
        if self._tracker:
            await self._tracker.stop()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        # 1. Detach live views
        for view in self._views:
            await view.close()
        self._views.clear()

        # 2. Clear storage
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

        logger.info("Reset complete")

    def create_view(self) -> ConversationView:
        """Create a view with its own MessageLog and RealtimeSubscriber."""
        if not self._dispatcher:
            raise RuntimeError("Application not started")

        message_log = MessageLog(self._storage)
        subscriber = RealtimeSubscriber(
            self._transport,
            message_log,
            self._tracker,
            on_resync=message_log.load,
        )
        view = ConversationView(
            store=self._store,
            message_log=message_log,
            subscriber=subscriber,
            dispatcher=self._dispatcher,
            uploader=self._uploader,
            tracker=self._tracker,
            assistant=self._assistant,
        )
        self._views.append(view)
        return view

    async def release_view(self, view: ConversationView) -> None:
        await view.close()
        if view in self._views:
            self._views.remove(view)

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def tracker(self) -> Tracker:
        if not self._tracker:
            raise RuntimeError("Application not started")
        return self._tracker

    @property
    def conversations(self) -> ConversationStore:
        """Get conversation store instance."""
        if not self._store:
            raise RuntimeError("Application not started")
        return self._store

    @property
    def ingestor(self) -> InboundIngestor:
        if not self._ingestor:
            raise RuntimeError("Application not started")
        return self._ingestor

    @property
    def dispatcher(self) -> OutboundDispatcher:
        """Get dispatcher instance."""
        if not self._dispatcher:
            raise RuntimeError("Application not started")
        return self._dispatcher

    @property
    def uploader(self) -> AttachmentUploader:
        if not self._uploader:
            raise RuntimeError("Application not started")
        return self._uploader

    @property
    def assistant(self) -> SuggestionAssistant | None:
        """Suggestion assistant, None when no LLM is configured."""
        if not self._store:
            raise RuntimeError("Application not started")
        return self._assistant

    @property
    def transport(self) -> BusRealtimeTransport:
        if not self._transport:
            raise RuntimeError("Application not started")
        return self._transport
