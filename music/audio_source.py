from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import discord
import yt_dlp

from .metrics import ytdl_fetch_seconds
from .url_parser import InputType, classify

log = logging.getLogger(__name__)

YTDL_OPTIONS = {
    "format": "bestaudio[acodec=opus]/bestaudio/best",
    "noplaylist": True,
    "nocheckcertificate": True,
    "ignoreerrors": False,
    "quiet": True,
    "no_warnings": True,
    "default_search": "ytsearch",
    "source_address": "0.0.0.0",
}

FFMPEG_OPTIONS = {
    "before_options": (
        "-reconnect 1 -reconnect_streamed 1 -reconnect_on_network_error 1"
        " -reconnect_on_http_error 5xx -reconnect_delay_max 5"
    ),
    "options": "-vn -ar 48000 -bufsize 64k",
}


def format_duration(seconds: int) -> str:
    if seconds <= 0:
        return "LIVE"
    m, s = divmod(seconds, 60)
    h, m = divmod(m, 60)
    if h:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


@dataclass(frozen=True)
class TrackInfo:
    """Song metadata kept in the queue, resolved to a source just-in-time."""

    title: str | None
    url: str  # page URL handed to yt-dlp when the song comes up
    duration: int = 0  # seconds
    thumbnail: str = ""
    requester: str = ""
    requester_id: int = 0

    @property
    def duration_text(self) -> str:
        return format_duration(self.duration)

    @classmethod
    def from_info(cls, data: dict) -> TrackInfo:
        """Build from a yt-dlp info dict (full or flat extraction)."""
        thumbnail = data.get("thumbnail") or ""
        if not thumbnail and data.get("thumbnails"):
            thumbnail = data["thumbnails"][-1].get("url", "")
        return cls(
            title=data.get("title"),
            url=data.get("webpage_url") or data.get("url", ""),
            duration=int(data.get("duration", 0) or 0),
            thumbnail=thumbnail,
        )


class YTDLSource(discord.PCMVolumeTransformer):
    """FFmpegPCMAudio with volume control, built from yt-dlp results."""

    @classmethod
    async def from_query(
        cls,
        query: str,
        *,
        loop: asyncio.AbstractEventLoop,
        volume: float = 0.5,
    ) -> YTDLSource:
        """Create a playable source from a URL or search query."""
        ytdl = yt_dlp.YoutubeDL(YTDL_OPTIONS)
        with ytdl_fetch_seconds.time():
            data = await loop.run_in_executor(
                None, lambda: ytdl.extract_info(query, download=False)
            )

        if data is None:
            raise LookupError(f"Nothing playable for {query!r}")
        if "entries" in data:
            entries = [e for e in data["entries"] if e]
            if not entries:
                raise LookupError(f"Nothing playable for {query!r}")
            data = entries[0]

        stream_url = data["url"]
        log.debug("Resolved stream for %s", data.get("title"))
        source = discord.FFmpegPCMAudio(
            stream_url,
            before_options=FFMPEG_OPTIONS["before_options"],
            options=FFMPEG_OPTIONS["options"],
        )
        return cls(source, volume)

    @staticmethod
    async def search(
        query: str, *, loop: asyncio.AbstractEventLoop, limit: int = 5
    ) -> list[TrackInfo]:
        """Search YouTube and return lightweight TrackInfo results."""
        opts = {**YTDL_OPTIONS, "noplaylist": True, "extract_flat": "in_playlist"}
        ytdl = yt_dlp.YoutubeDL(opts)

        search_query = f"ytsearch{limit * 2}:{query}"
        data = await loop.run_in_executor(
            None, lambda: ytdl.extract_info(search_query, download=False)
        )

        results: list[TrackInfo] = []
        for entry in (data or {}).get("entries", []) or []:
            if entry is None:
                continue
            url = entry.get("webpage_url") or entry.get("url", "")
            # Only videos; channels and playlists also show up in search results
            if "watch?v=" not in url and "youtu.be/" not in url:
                continue
            results.append(TrackInfo.from_info({**entry, "webpage_url": url}))
            if len(results) >= limit:
                break
        return results

    @classmethod
    async def resolve(
        cls, query: str, *, loop: asyncio.AbstractEventLoop
    ) -> TrackInfo | None:
        """Turn a /play query into a single TrackInfo, or None if nothing matched."""
        input_type, value = classify(query)
        if input_type is InputType.SEARCH_QUERY:
            results = await cls.search(value, loop=loop, limit=1)
            return results[0] if results else None

        ytdl = yt_dlp.YoutubeDL({**YTDL_OPTIONS, "extract_flat": "in_playlist"})
        data = await loop.run_in_executor(
            None, lambda: ytdl.extract_info(value, download=False)
        )
        if data is None:
            return None
        if "entries" in data:
            entries = [e for e in data["entries"] if e]
            if not entries:
                return None
            data = entries[0]
        return TrackInfo.from_info(data)
