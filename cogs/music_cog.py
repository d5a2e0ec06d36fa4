from __future__ import annotations

import dataclasses
import logging
from typing import Optional

import discord
import yt_dlp
from discord import app_commands
from discord.ext import commands

from music.audio_source import TrackInfo, YTDLSource
from music.config import BotConfig
from music.embeds import error_embed
from music.i18n import t
from music.instance import Instance
from music.registry import InstanceRegistry

log = logging.getLogger(__name__)


class MusicCog(commands.Cog):
    def __init__(
        self,
        bot: commands.Bot,
        config: BotConfig,
        instances: InstanceRegistry | None = None,
    ) -> None:
        self.bot = bot
        self.config = config
        self.instances = instances if instances is not None else InstanceRegistry()

    # ── helpers ──────────────────────────────────────────────────────────

    async def _reply_error(self, interaction: discord.Interaction, message: str) -> None:
        embed = error_embed(message, self.config.locale)
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=True)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=True)

    async def _resolve(self, query: str) -> Optional[TrackInfo]:
        try:
            return await YTDLSource.resolve(query, loop=self.bot.loop)
        except yt_dlp.utils.DownloadError as exc:
            log.warning("Could not resolve %r: %s", query, exc)
            return None

    async def _get_or_create_instance(
        self,
        interaction: discord.Interaction,
        voice_channel: discord.VoiceChannel | discord.StageChannel,
    ) -> Instance:
        instance = self.instances.get(interaction.guild.id)  # type: ignore[union-attr]
        if instance is None:
            instance = await Instance.create(
                bot=self.bot,
                registry=self.instances,
                message_channel=interaction.channel,  # type: ignore[arg-type]
                voice_channel=voice_channel,
                locale=self.config.locale,
                notice_delay=self.config.notice_delay,
                volume=self.config.volume,
            )
        return instance

    # ── commands ─────────────────────────────────────────────────────────

    @app_commands.command(name="play", description="Plays a song")
    @app_commands.describe(query="Song Query or URL")
    async def play(self, interaction: discord.Interaction, query: str) -> None:
        locale = self.config.locale
        if interaction.guild is None or not isinstance(interaction.channel, discord.TextChannel):
            await interaction.response.send_message(t("guild_only", locale), ephemeral=True)
            return

        member = interaction.user
        voice_channel = None
        if isinstance(member, discord.Member) and member.voice:
            voice_channel = member.voice.channel
        if voice_channel is None:
            await self._reply_error(interaction, t("not_in_voice", locale))
            return

        instance = self.instances.get(interaction.guild.id)
        if instance is not None and instance.message_channel.id != interaction.channel.id:
            await self._reply_error(
                interaction, t("bound_channel", locale, channel_id=instance.message_channel.id)
            )
            return

        await interaction.response.defer(ephemeral=True, thinking=True)

        song = await self._resolve(query)
        if song is None:
            await interaction.followup.send(t("no_results", locale, query=query), ephemeral=True)
            return
        song = dataclasses.replace(song, requester=member.display_name, requester_id=member.id)

        # Another /play may have created the instance while we were searching
        instance = await self._get_or_create_instance(interaction, voice_channel)
        if instance.message_channel.id != interaction.channel.id:
            await self._reply_error(
                interaction, t("bound_channel", locale, channel_id=instance.message_channel.id)
            )
            return

        instance.add_to_queue(song)
        if not instance.has_queue():
            if await instance.play_song():
                msg = t("now_playing_reply", locale, title=song.title)
            else:
                msg = t("failed_to_play", locale, title=song.title)
        else:
            await instance.renew_status()
            msg = t("added_to_queue", locale, title=song.title)
        await interaction.followup.send(msg, ephemeral=True)

    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        original = getattr(error, "original", error)
        name = interaction.command.name if interaction.command else "?"
        log.error("Command /%s failed: %s", name, original, exc_info=original)
        msg = t("command_error", self.config.locale, error=original)
        if interaction.response.is_done():
            await interaction.followup.send(msg, ephemeral=True)
        else:
            await interaction.response.send_message(msg, ephemeral=True)

    # ── events ───────────────────────────────────────────────────────────

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        """Tear the guild's instance down when the bot leaves or is kicked from voice."""
        if self.bot.user is None or member.id != self.bot.user.id:
            return
        if before.channel is None or after.channel is not None:
            return

        instance = self.instances.get(member.guild.id)
        if instance is not None:
            log.info("Disconnected from voice channel in guild %s", member.guild.id)
            await instance.stop_bot()

    async def cog_unload(self) -> None:
        for guild_id in self.instances:
            instance = self.instances.get(guild_id)
            if instance is not None:
                await instance.stop_bot()


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(MusicCog(bot, bot.config))  # type: ignore[attr-defined]
