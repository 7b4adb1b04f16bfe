import pytest

from voiceai.cli import DEFAULT_VOICES, VoiceChat
from voiceai.providers.base import Backend


@pytest.mark.asyncio
async def test_backend_command_switches_to_backend_default_voice(settings) -> None:
    chat = VoiceChat(settings, backend=Backend.OPENAI, voice="nova")

    assert await chat._handle_command("/backend elevenlabs")
    selection = chat.pipeline.selection
    assert selection.backend is Backend.ELEVENLABS
    assert selection.voice == DEFAULT_VOICES[Backend.ELEVENLABS]

    assert await chat._handle_command("/backend openai")
    assert chat.pipeline.selection.voice == "alloy"

    await chat.gateway.aclose()


@pytest.mark.asyncio
async def test_backend_command_keeps_voice_on_same_backend(settings) -> None:
    chat = VoiceChat(settings, backend=Backend.OPENAI, voice="nova")

    assert await chat._handle_command("/backend openai")
    assert chat.pipeline.selection.voice == "nova"

    await chat.gateway.aclose()
