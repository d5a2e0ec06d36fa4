from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import discord
from discord.ext import commands

log = logging.getLogger(__name__)

RESUME = "▶️"
PAUSE = "⏸️"
SKIP = "⏭️"
STOP = "⏹️"

# Order matters: reactions are added to the status message in this order.
CONTROL_REACTIONS: tuple[str, ...] = (RESUME, PAUSE, SKIP, STOP)

ReactionHandler = Callable[[str, int], Awaitable[object]]


class ReactionListener:
    """Turns reactions on one status message into playback actions.

    The bot's own reactions and anything outside CONTROL_REACTIONS are
    ignored. After the action runs, the user's reaction is removed again so
    the same control can be clicked twice in a row.
    """

    def __init__(
        self,
        bot: commands.Bot,
        message: discord.Message,
        handler: ReactionHandler,
    ) -> None:
        self.bot = bot
        self.message = message
        self.handler = handler
        self._task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def accepts(self, payload: discord.RawReactionActionEvent) -> bool:
        if payload.message_id != self.message.id:
            return False
        if self.bot.user is not None and payload.user_id == self.bot.user.id:
            return False
        return str(payload.emoji) in CONTROL_REACTIONS

    async def attach(self) -> None:
        """Add the control reactions to the message and start listening."""
        for emoji in CONTROL_REACTIONS:
            try:
                await self.message.add_reaction(emoji)
            except discord.HTTPException as exc:
                log.warning("Could not add %s to message %s: %s", emoji, self.message.id, exc)
                break
        self.start()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._listen())
        log.info("Successfully created reaction listener for message %s", self.message.id)

    def stop(self) -> None:
        # Actions already dispatched run to completion; they may be the caller.
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _listen(self) -> None:
        while True:
            payload = await self.bot.wait_for("raw_reaction_add", check=self.accepts)
            task = asyncio.create_task(self.dispatch(payload))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def dispatch(self, payload: discord.RawReactionActionEvent) -> None:
        try:
            await self.handler(str(payload.emoji), payload.user_id)
        except Exception:
            log.exception("Reaction %s on message %s failed", payload.emoji, self.message.id)
        try:
            await self.message.remove_reaction(payload.emoji, discord.Object(id=payload.user_id))
        except discord.HTTPException:
            pass  # message deleted by a stop, or missing Manage Messages
