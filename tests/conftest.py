from unittest.mock import AsyncMock, MagicMock

import pytest

from shble.errors import ShbleError


class RecordingViewer:
    """Viewer that keeps everything it is shown."""

    def __init__(self) -> None:
        self.tables: list[tuple[int, list[list[str]]]] = []
        self.texts: list[tuple[int, str]] = []
        self.errors: list[ShbleError] = []

    async def show_table(self, message_id, table):
        self.tables.append((message_id, table))

    async def show_text(self, message_id, text):
        self.texts.append((message_id, text))

    async def show_error(self, error):
        self.errors.append(error)


@pytest.fixture
def viewer():
    return RecordingViewer()


@pytest.fixture
def mock_update():
    """Create a mock Telegram Update with common attributes."""
    update = MagicMock()
    update.effective_user.id = 111
    update.effective_chat.id = 111
    update.message.reply_text = AsyncMock()
    return update


@pytest.fixture
def mock_context():
    """Create a mock context with config authorizing user 111."""
    context = MagicMock()
    config = MagicMock()
    config.telegram.authorized_users = [111]
    context.bot_data = {"config": config}
    context.bot.send_message = AsyncMock()
    return context
