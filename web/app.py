"""Read-only status API for crabrave.

Shares the bot process and reads the MusicCog's instance registry directly.
Started when WEB_PORT is set.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import aiohttp.web as web

if TYPE_CHECKING:
    from discord.ext import commands

log = logging.getLogger(__name__)

routes = web.RouteTableDef()


def _get_cog(request: web.Request):
    bot: commands.Bot = request.app["bot"]
    cog = bot.get_cog("MusicCog")
    if cog is None:
        raise web.HTTPServiceUnavailable(text="MusicCog not loaded")
    return cog


@routes.get("/health")
async def health(request: web.Request) -> web.Response:
    bot = request.app["bot"]
    cog = bot.get_cog("MusicCog")
    return web.json_response({
        "status": "ok",
        "guilds": len(bot.guilds),
        "instances": len(cog.instances) if cog is not None else 0,
    })


@routes.get("/api/guilds/{guild_id}/queue")
async def get_queue(request: web.Request) -> web.Response:
    cog = _get_cog(request)
    try:
        guild_id = int(request.match_info["guild_id"])
    except ValueError:
        raise web.HTTPBadRequest(text="guild_id must be an integer") from None

    instance = cog.instances.get(guild_id)
    if instance is None:
        raise web.HTTPNotFound(text="No active instance for this guild")

    current = instance.get_current_song()
    return web.json_response({
        "state": instance.state.value,
        "channel_id": instance.message_channel.id,
        "current": {
            "title": current.title,
            "url": current.url,
            "duration": current.duration_text,
            "requester": current.requester,
        } if current else None,
        "queue": [
            {"index": item.index, "title": item.title, "duration": item.duration}
            for item in instance.get_queue()
        ],
    })


async def start_web_server(bot: commands.Bot, port: int = 8080) -> web.AppRunner:
    app = web.Application()
    app["bot"] = bot
    app.router.add_routes(routes)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()
    return runner
