"""Session event publisher for pub/sub observers."""

import logging
from pubsub import pub

from ..models.chat import Message
from ..models.session import SessionState

logger = logging.getLogger(__name__)

MESSAGE_TOPIC = "chat2me.session.message"
STATE_TOPIC = "chat2me.session.state"
DRAFT_TOPIC = "chat2me.session.draft"


class SessionPublisher:
    """Publishes conversation session changes using pubsub.pub."""

    def __init__(self,
                 message_topic: str = MESSAGE_TOPIC,
                 state_topic: str = STATE_TOPIC,
                 draft_topic: str = DRAFT_TOPIC):
        """Initialize session publisher.

        Args:
            message_topic: Topic for newly appended transcript messages
            state_topic: Topic for session state snapshots
            draft_topic: Topic for draft text updates
        """
        self.message_topic = message_topic
        self.state_topic = state_topic
        self.draft_topic = draft_topic
        logger.info(f"SessionPublisher initialized with topics: {message_topic}, {state_topic}, {draft_topic}")

    def publish_message(self, message: Message) -> None:
        pub.sendMessage(self.message_topic, message=message)
        logger.debug(f"Published {message.author.value} message ({len(message.text)} chars)")

    def publish_state(self, state: SessionState) -> None:
        pub.sendMessage(self.state_topic, state=state)

    def publish_draft(self, draft: str) -> None:
        pub.sendMessage(self.draft_topic, draft=draft)
