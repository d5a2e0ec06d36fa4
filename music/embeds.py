from __future__ import annotations

import discord

from .audio_source import TrackInfo
from .i18n import t

NOW_PLAYING_COLOR = 0x71E1D2
ERROR_COLOR = 0xF20000


def now_playing_embed(song: TrackInfo, locale: str = "en") -> discord.Embed:
    embed = discord.Embed(title=t("now_playing", locale), color=NOW_PLAYING_COLOR)
    if song.thumbnail:
        embed.set_image(url=song.thumbnail)
    embed.add_field(
        name=song.title or t("current_song", locale),
        value=song.duration_text,
        inline=False,
    )
    if song.requester:
        embed.set_footer(text=t("requested_by", locale, name=song.requester))
    return embed


def queue_embed(items, locale: str = "en") -> discord.Embed:
    """List the songs waiting behind the current one (QueueItem sequence)."""
    embed = discord.Embed(title=t("queue", locale))
    # Embeds hold at most 25 fields
    for item in items[:25]:
        embed.add_field(
            name=f"{item.index}. {item.title or t('current_song', locale)}",
            value=item.duration,
            inline=False,
        )
    return embed


def error_embed(message: str, locale: str = "en") -> discord.Embed:
    embed = discord.Embed(color=ERROR_COLOR)
    embed.add_field(name=t("error_title", locale), value=message, inline=False)
    return embed
