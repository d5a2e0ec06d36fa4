import logging

import discord
from discord.ext import commands
from dotenv import load_dotenv

from music.config import BotConfig

log = logging.getLogger("crabrave")


class CrabRave(commands.AutoShardedBot):
    def __init__(self, config: BotConfig) -> None:
        intents = discord.Intents.default()
        intents.voice_states = True
        intents.guild_reactions = True
        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            application_id=config.client_id,
        )
        self.config = config

    async def setup_hook(self) -> None:
        from music.i18n import load_locales
        load_locales()

        await self.load_extension("cogs.music_cog")
        log.info("Added command play")
        await self.tree.sync()
        log.info("Command tree synced.")

        if self.config.metrics_port:
            try:
                from music.metrics import start_metrics_server
                start_metrics_server(self.config.metrics_port)
                log.info("Prometheus metrics server started on :%s", self.config.metrics_port)
            except OSError as exc:
                log.warning("Failed to start metrics server: %s", exc)

        if self.config.web_port:
            try:
                from web.app import start_web_server
                await start_web_server(self, self.config.web_port)
                log.info("Status server started on :%s", self.config.web_port)
            except OSError as exc:
                log.warning("Failed to start status server: %s", exc)

    async def on_ready(self) -> None:
        log.info("Bot is ready! Logged in as %s (ID: %s), %d guilds",
                 self.user, self.user.id, len(self.guilds))
        activity = discord.Activity(
            type=discord.ActivityType.listening,
            name="Crab Rave 10 Hours",
        )
        await self.change_presence(activity=activity)


def main() -> None:
    load_dotenv()
    config = BotConfig.from_env()

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    bot = CrabRave(config)
    bot.run(config.token, log_handler=None)


if __name__ == "__main__":
    main()
