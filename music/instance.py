from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable

import discord
from discord.ext import commands

from .audio_source import TrackInfo, YTDLSource
from .controls import PAUSE, RESUME, SKIP, STOP, ReactionListener
from .embeds import now_playing_embed, queue_embed
from .i18n import t
from .metrics import (
    playback_errors_total,
    queue_size as metric_queue_size,
    tracks_played_total,
    voice_connections as metric_voice_connections,
)

if TYPE_CHECKING:
    from .registry import InstanceRegistry

log = logging.getLogger(__name__)

SourceFactory = Callable[[TrackInfo], Awaitable[discord.AudioSource]]


class PlayerState(Enum):
    IDLE = "Idle"
    PLAYING = "Playing"
    PAUSED = "Paused"


@dataclass(frozen=True)
class QueueItem:
    title: str | None
    duration: str
    index: int


class Instance:
    """Playback session for one guild.

    Owns the voice client, the song queue (index 0 is the song playing or
    about to play), the status message and its reaction controls. Commands
    for the guild are only accepted from ``message_channel``.

    Every state-changing coroutine runs under one lock, so a skip that
    arrives while a song is still resolving waits for it instead of
    interleaving. Once torn down the instance is ``closed`` and every
    operation becomes a no-op.
    """

    def __init__(
        self,
        *,
        bot: commands.Bot,
        registry: InstanceRegistry,
        message_channel: discord.TextChannel,
        voice_client: discord.VoiceClient,
        source_factory: SourceFactory | None = None,
        locale: str = "en",
        notice_delay: float = 3.0,
        volume: float = 0.5,
    ) -> None:
        self.bot = bot
        self._registry = registry
        self._message_channel = message_channel
        self.guild_id: int = message_channel.guild.id
        self.voice_client = voice_client
        self.locale = locale
        self.notice_delay = notice_delay
        self.volume = volume
        self._source_factory = source_factory or self._ytdl_source

        self.state = PlayerState.IDLE
        self.closed = False
        self.last_message: discord.Message | None = None
        self.reaction_listener: ReactionListener | None = None

        self._queue: list[TrackInfo] = []
        self._lock = asyncio.Lock()
        self._generation = 0  # bumped whenever the playing source is replaced
        self._loop: asyncio.AbstractEventLoop | None = None

    @classmethod
    async def create(
        cls,
        *,
        bot: commands.Bot,
        registry: InstanceRegistry,
        message_channel: discord.TextChannel,
        voice_channel: discord.VoiceChannel | discord.StageChannel,
        **kwargs,
    ) -> Instance:
        """Join *voice_channel* and register a new instance for the guild."""
        voice_client = await voice_channel.connect(self_deaf=True)
        metric_voice_connections.inc()
        instance = cls(
            bot=bot,
            registry=registry,
            message_channel=message_channel,
            voice_client=voice_client,
            **kwargs,
        )
        registry.add(instance.guild_id, instance)
        return instance

    @property
    def message_channel(self) -> discord.TextChannel:
        return self._message_channel

    async def _ytdl_source(self, song: TrackInfo) -> discord.AudioSource:
        return await YTDLSource.from_query(
            song.url, loop=asyncio.get_running_loop(), volume=self.volume
        )

    # ── queue ────────────────────────────────────────────────────────────

    def add_to_queue(self, song: TrackInfo) -> int:
        self._queue.append(song)
        if not self.closed:
            metric_queue_size.labels(guild_id=str(self.guild_id)).set(len(self._queue))
        return len(self._queue)

    def has_queue(self) -> bool:
        """True when something is waiting behind the current song."""
        return len(self._queue) > 1

    def get_queue_length(self) -> int:
        return len(self._queue)

    def get_current_song(self) -> TrackInfo | None:
        return self._queue[0] if self._queue else None

    def get_queue(self) -> list[QueueItem]:
        return [
            QueueItem(title=song.title, duration=song.duration_text, index=i)
            for i, song in enumerate(self._queue[1:], start=1)
        ]

    # ── playback ─────────────────────────────────────────────────────────

    async def play_song(self) -> bool:
        """Start the song at the front of the queue. False means the instance was torn down."""
        async with self._lock:
            return await self._play()

    async def pause_song(self) -> None:
        async with self._lock:
            if self.closed or self.state is not PlayerState.PLAYING:
                return
            self.voice_client.pause()
            self.state = PlayerState.PAUSED
            await self._notify(t("paused", self.locale, title=self._current_title()))

    async def resume_song(self) -> None:
        async with self._lock:
            if self.closed or self.state is not PlayerState.PAUSED:
                return
            self.voice_client.resume()
            self.state = PlayerState.PLAYING
            await self._notify(t("resumed", self.locale, title=self._current_title()))

    async def skip_song(self) -> None:
        async with self._lock:
            await self._skip()

    async def stop_bot(self) -> None:
        async with self._lock:
            await self._teardown()

    async def renew_status(self) -> None:
        """Re-send the status message, e.g. after a song was queued."""
        async with self._lock:
            if not self.closed:
                await self._render()

    async def handle_reaction(self, emoji: str, user_id: int) -> bool:
        actions = {
            RESUME: self.resume_song,
            PAUSE: self.pause_song,
            SKIP: self.skip_song,
            STOP: self.stop_bot,
        }
        action = actions.get(emoji)
        if action is None:
            return False
        log.debug("Reaction %s from %s in guild %s", emoji, user_id, self.guild_id)
        await action()
        return True

    # ── internals (lock held) ────────────────────────────────────────────

    async def _play(self) -> bool:
        if self.closed or not self._queue:
            return False
        if not self.voice_client.is_connected():
            log.warning("Voice client for guild %s is not connected", self.guild_id)
            await self._teardown()
            return False

        song = self._queue[0]
        try:
            source = await self._source_factory(song)
        except Exception as exc:
            log.error("Error playing %s: %s", song.title, exc)
            playback_errors_total.inc()
            await self._teardown()
            return False

        self._loop = asyncio.get_running_loop()
        self._generation += 1
        generation = self._generation
        try:
            self.voice_client.play(
                source, after=lambda error: self._after_play(generation, error)
            )
        except discord.ClientException as exc:
            log.error("Error playing %s: %s", song.title, exc)
            playback_errors_total.inc()
            source.cleanup()
            await self._teardown()
            return False

        self.state = PlayerState.PLAYING
        tracks_played_total.inc()
        log.info("Playing %s", song.title)
        await self._render()
        return True

    async def _skip(self) -> None:
        if self.closed:
            return
        self.state = PlayerState.IDLE
        if len(self._queue) <= 1:
            await self._teardown()
            return

        self._stop_audio()
        self._queue.pop(0)
        metric_queue_size.labels(guild_id=str(self.guild_id)).set(len(self._queue))
        await self._play()

    async def _teardown(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.state = PlayerState.IDLE

        if self.reaction_listener is not None:
            self.reaction_listener.stop()
            self.reaction_listener = None
        self._stop_audio()
        self._queue.clear()
        try:
            metric_queue_size.remove(str(self.guild_id))
        except KeyError:
            pass  # nothing was ever queued
        self._registry.remove(self.guild_id, self)

        try:
            await self.voice_client.disconnect(force=True)
        finally:
            metric_voice_connections.dec()
            if self.last_message is not None:
                await self._delete_message(self.last_message)
                self.last_message = None

    def _stop_audio(self) -> None:
        # Invalidate the after-callback of whatever is playing before stopping it
        self._generation += 1
        if self.voice_client.is_playing() or self.voice_client.is_paused():
            self.voice_client.stop()

    async def _render(self) -> None:
        song = self.get_current_song()
        if song is None:
            return
        embeds = [now_playing_embed(song, self.locale)]
        if self.has_queue():
            embeds.append(queue_embed(self.get_queue(), self.locale))

        if self.last_message is not None:
            await self._delete_message(self.last_message)
            self.last_message = None

        try:
            message = await self._message_channel.send(embeds=embeds)
        except discord.HTTPException as exc:
            log.warning("Could not send status message in guild %s: %s", self.guild_id, exc)
            return
        self.last_message = message

        if self.reaction_listener is not None:
            self.reaction_listener.stop()
        self.reaction_listener = ReactionListener(self.bot, message, self.handle_reaction)
        await self.reaction_listener.attach()

    async def _notify(self, content: str) -> None:
        try:
            await self._message_channel.send(content, delete_after=self.notice_delay)
        except discord.HTTPException as exc:
            log.warning("Could not send notice in guild %s: %s", self.guild_id, exc)

    @staticmethod
    async def _delete_message(message: discord.Message) -> None:
        try:
            await message.delete()
        except discord.HTTPException:
            pass

    def _current_title(self) -> str:
        song = self.get_current_song()
        return (song.title if song else None) or t("current_song", self.locale)

    # ── transport callbacks ──────────────────────────────────────────────

    def _after_play(self, generation: int, error: Exception | None) -> None:
        """Voice client ``after`` hook; runs on the audio thread."""
        if error:
            log.error("Playback error in guild %s: %s", self.guild_id, error)
            playback_errors_total.inc()
        if self._loop is None or self._loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self._on_track_end(generation), self._loop)

    async def _on_track_end(self, generation: int) -> None:
        async with self._lock:
            if self.closed or generation != self._generation:
                return
            # A pause also leaves the transport silent; only a real end advances
            if self.state is PlayerState.PAUSED:
                return
            log.info("Finished playing %s", self._current_title())
            await self._skip()
