"""Registry of connected viewers.

Lifecycle: one registry is created at startup and stored in the bot's
``bot_data``; :meth:`ConnectionRegistry.connect` adds an entry on
``/start``, :meth:`ConnectionRegistry.disconnect` removes it on ``/stop``,
and :meth:`ConnectionRegistry.close_all` empties it on shutdown.
"""

from __future__ import annotations

import copy
import itertools
import logging
from dataclasses import dataclass

from shble.config import RulesConfig, WireConfig
from shble.errors import ShbleError
from shble.rules.models import AxisOptions, AxisRuleText
from shble.stream import Viewer, ViewerConnection
from shble.transform import Table, compile_axis, transform_table

logger = logging.getLogger(__name__)


@dataclass
class ViewerSession:
    """A chat's connection plus the rules it has declared.

    ``last_output`` keeps the raw output of the latest run so that a rule
    change can re-render it without running the command again.
    """

    chat_id: int
    connection: ViewerConnection
    rows: AxisRuleText
    columns: AxisRuleText
    last_output: str | None = None

    def axis(self, name: str) -> AxisRuleText:
        if name == "rows":
            return self.rows
        if name == "columns":
            return self.columns
        raise KeyError(name)

    def compile_rules(self, issues: list[ShbleError] | None = None) -> tuple[AxisOptions, AxisOptions]:
        return compile_axis(self.rows, issues), compile_axis(self.columns, issues)

    async def publish_output(self, output: str) -> Table:
        """Transform ``output`` with the current rules and send it.

        Returns:
            The table that was published.
        """
        self.last_output = output
        rows, columns = self.compile_rules()
        table = transform_table(rows, columns, output)
        await self.connection.publish_table(table)
        return table


class ConnectionRegistry:
    """Maps chat ids to their open viewer sessions."""

    def __init__(self, wire: WireConfig | None = None, rules: RulesConfig | None = None) -> None:
        self._wire = wire or WireConfig()
        self._default_rules = rules or RulesConfig()
        self._sessions: dict[int, ViewerSession] = {}
        self._next_id = itertools.count(1)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, chat_id: int) -> bool:
        return chat_id in self._sessions

    def get(self, chat_id: int) -> ViewerSession | None:
        return self._sessions.get(chat_id)

    def connect(self, chat_id: int, viewer: Viewer) -> ViewerSession:
        """Open a connection for ``chat_id``, or return the existing one.

        The new session starts with a copy of the configured default rules.
        """
        session = self._sessions.get(chat_id)
        if session is not None:
            return session

        connection = ViewerConnection(next(self._next_id), viewer, self._wire)
        connection.start()
        session = ViewerSession(
            chat_id=chat_id,
            connection=connection,
            rows=copy.copy(self._default_rules.rows),
            columns=copy.copy(self._default_rules.columns),
        )
        self._sessions[chat_id] = session
        logger.info("Chat %d connected (connection %d)", chat_id, connection.connection_id)
        return session

    def reset_rules(self, session: ViewerSession) -> None:
        session.rows = copy.copy(self._default_rules.rows)
        session.columns = copy.copy(self._default_rules.columns)

    async def disconnect(self, chat_id: int) -> bool:
        """Close and forget the chat's connection.

        Returns:
            True if the chat was connected.
        """
        session = self._sessions.pop(chat_id, None)
        if session is None:
            return False
        dropped = await session.connection.close()
        logger.info("Chat %d disconnected, %d partial messages dropped", chat_id, dropped)
        return True

    async def close_all(self) -> None:
        for chat_id in list(self._sessions):
            await self.disconnect(chat_id)
