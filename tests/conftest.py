import asyncio
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
import pytest_asyncio

from music.audio_source import TrackInfo
from music.i18n import load_locales
from music.instance import Instance
from music.registry import InstanceRegistry

GUILD_ID = 111
CHANNEL_ID = 555
BOT_USER_ID = 999
USER_ID = 222


@pytest.fixture(autouse=True, scope="session")
def _locales():
    load_locales()


def http_exception(cls=discord.HTTPException, status: int = 404) -> discord.HTTPException:
    response = MagicMock()
    response.status = status
    response.reason = "Not Found"
    return cls(response, "gone")


def make_message(message_id: int) -> MagicMock:
    message = MagicMock(spec=discord.Message)
    message.id = message_id
    message.delete = AsyncMock()
    message.add_reaction = AsyncMock()
    message.remove_reaction = AsyncMock()
    return message


# =============================================================================
# Songs
# =============================================================================


@pytest.fixture
def song_a():
    return TrackInfo(
        title="Song A",
        url="https://www.youtube.com/watch?v=aaaaaaaaaaa",
        duration=185,
        thumbnail="https://i.ytimg.com/vi/aaaaaaaaaaa/hqdefault.jpg",
    )


@pytest.fixture
def song_b():
    return TrackInfo(
        title="Song B",
        url="https://www.youtube.com/watch?v=bbbbbbbbbbb",
        duration=3725,
    )


@pytest.fixture
def song_c():
    return TrackInfo(title=None, url="https://www.youtube.com/watch?v=ccccccccccc")


# =============================================================================
# Discord collaborators
# =============================================================================


@pytest.fixture
def bot():
    """Bot whose wait_for never resolves, so reaction listeners just idle."""

    async def _never(*args, **kwargs):
        await asyncio.Event().wait()

    bot = MagicMock()
    bot.user = MagicMock()
    bot.user.id = BOT_USER_ID
    bot.wait_for = AsyncMock(side_effect=_never)
    return bot


@pytest.fixture
def message_channel():
    """Text channel that records every message it sends."""
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = CHANNEL_ID
    channel.guild = MagicMock()
    channel.guild.id = GUILD_ID
    channel.sent = []

    async def _send(*args, **kwargs):
        message = make_message(1000 + len(channel.sent))
        channel.sent.append(message)
        return message

    channel.send = AsyncMock(side_effect=_send)
    return channel


@pytest.fixture
def voice_client():
    vc = MagicMock(spec=discord.VoiceClient)
    vc.is_connected.return_value = True
    vc.is_playing.return_value = False
    vc.is_paused.return_value = False
    vc.disconnect = AsyncMock()
    return vc


@pytest.fixture
def audio_source():
    source = MagicMock(spec=discord.AudioSource)
    source.is_opus.return_value = False
    return source


@pytest.fixture
def source_factory(audio_source):
    return AsyncMock(return_value=audio_source)


@pytest.fixture
def registry():
    return InstanceRegistry()


@pytest_asyncio.fixture
async def instance(bot, registry, message_channel, voice_client, source_factory):
    """Registered instance backed by mocks; its reaction listener is stopped afterwards."""
    inst = Instance(
        bot=bot,
        registry=registry,
        message_channel=message_channel,
        voice_client=voice_client,
        source_factory=source_factory,
        notice_delay=3.0,
    )
    registry.add(GUILD_ID, inst)
    yield inst
    if inst.reaction_listener is not None:
        inst.reaction_listener.stop()
    await asyncio.sleep(0)
