"""ConversationView implementation."""

from ..assistant import ISuggestionAssistant
from ..attachments import AttachmentUploader
from ..conversations import IConversationStore
from ..dispatch import IOutboundDispatcher
from ..errors import DispatchInProgress, InboxError, NoContext
from ..logging_config import get_logger
from ..messages import MessageLog
from ..models import Attachment, Conversation, DispatchResult, Message, Notification
from ..realtime import RealtimeSubscriber, SubscriberState
from ..tracker import ITracker

logger = get_logger(__name__)


class ConversationView:
    """State of one open conversation: history, live updates and composer.

    Every boundary failure is caught here and turned into a Notification;
    nothing raises out of the view's actions.
    """

    def __init__(
        self,
        store: IConversationStore,
        message_log: MessageLog,
        subscriber: RealtimeSubscriber,
        dispatcher: IOutboundDispatcher,
        uploader: AttachmentUploader,
        tracker: ITracker,
        assistant: ISuggestionAssistant | None = None,
    ):
        self._store = store
        self._log = message_log
        self._subscriber = subscriber
        self._dispatcher = dispatcher
        self._uploader = uploader
        self._tracker = tracker
        self._assistant = assistant

        self.conversation: Conversation | None = None
        self.compose_text = ""
        self.attachment: Attachment | None = None
        self.preview_url: str | None = None
        self.notifications: list[Notification] = []
        self.loading = False
        self.sending = False
        self.suggesting = False

    # Reading

    @property
    def messages(self) -> list[Message]:
        return self._log.messages()

    @property
    def scroll_anchor(self) -> Message | None:
        return self._log.scroll_anchor()

    @property
    def live(self) -> bool:
        return self._subscriber.state is SubscriberState.ATTACHED

    async def open(self, conversation_id: str) -> Conversation | None:
        """Open a conversation: attach live updates, load history, mark read."""
        try:
            conversation = await self._store.select(conversation_id)
        except InboxError as e:
            self._notify_error(e)
            return None

        if self.conversation is not None and self.conversation.id != conversation_id:
            self._discard_compose()

        self.conversation = conversation
        self._log.reset(conversation_id)

        # Attach first; inserts that race the load are deduplicated by the log.
        try:
            await self._subscriber.attach(conversation_id)
        except InboxError as e:
            logger.warning(
                "Live updates unavailable: %s", e, extra={"conversation_id": conversation_id}
            )
            self._notify_error(e, "Live updates unavailable")

        await self.reload()

        if conversation.is_unread:
            try:
                await self._store.mark_read(conversation_id)
                self.conversation = await self._store.select(conversation_id)
            except InboxError as e:
                logger.warning("Mark read failed: %s", e, extra={"conversation_id": conversation_id})

        return self.conversation

    async def reload(self) -> list[Message]:
        """(Re)load the history of the open conversation."""
        if self.conversation is None:
            return []

        self.loading = True
        try:
            return await self._log.load(self.conversation.id)
        except InboxError as e:
            self._notify_error(e)
            return self._log.messages()
        finally:
            self.loading = False

    async def close(self) -> None:
        """Detach live updates and release composer resources."""
        await self._subscriber.detach()
        self._discard_compose()
        self.conversation = None
        self._log.reset(None)

    # Composing

    def set_compose(self, text: str) -> None:
        self.compose_text = text

    def attach_file(self, attachment: Attachment) -> bool:
        """Select an attachment; rejected files are never held."""
        try:
            self._uploader.validate(attachment)
        except InboxError as e:
            self._notify_error(e)
            return False

        self.clear_attachment()
        self.attachment = attachment
        self.preview_url = self._uploader.previews.create(attachment)
        return True

    def clear_attachment(self) -> None:
        self._uploader.previews.release(self.preview_url)
        self.preview_url = None
        self.attachment = None

    async def send(self) -> DispatchResult | None:
        """Send the composer content. The composer is kept on failure."""
        if self.conversation is None:
            return None
        if self.sending:
            self._notify_error(DispatchInProgress("Wait for the current message to be sent"))
            return None

        self.sending = True
        text, attachment = self.compose_text, self.attachment
        try:
            result = await self._dispatcher.send(
                self.conversation.id,
                text,
                attachment,
                log=self._log,
            )
        except InboxError as e:
            self._notify_error(e)
            return None
        finally:
            self.sending = False

        # Keep whatever was typed or attached while the send was in flight.
        if self.compose_text == text:
            self.compose_text = ""
        if self.attachment is attachment:
            self.clear_attachment()
        self.notifications.append(
            Notification(level="success", title="Message sent")
        )
        return result

    async def suggest(self) -> str | None:
        """Fill the composer with a reply suggestion. Best effort."""
        if self.conversation is None or self._assistant is None:
            self.notifications.append(
                Notification(level="info", title="Suggestions are unavailable")
            )
            return None

        self.suggesting = True
        try:
            suggestion = await self._assistant.suggest(
                self.conversation.id, self._log.messages()
            )
        except NoContext as e:
            self.notifications.append(
                Notification(level="info", title=e.title, detail=str(e), error_code=e.code)
            )
            return None
        except InboxError as e:
            self._notify_error(e, "Could not generate a suggestion")
            return None
        finally:
            self.suggesting = False

        self.compose_text = suggestion
        return suggestion

    def drain_notifications(self) -> list[Notification]:
        pending, self.notifications = self.notifications, []
        return pending

    def _discard_compose(self) -> None:
        self.compose_text = ""
        self.clear_attachment()

    def _notify_error(self, error: InboxError, title: str | None = None) -> None:
        self.notifications.append(
            Notification(
                level="error",
                title=title or error.title,
                detail=str(error),
                error_code=error.code,
            )
        )
