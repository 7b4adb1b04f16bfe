"""Voice Chat CLI - talk to the assistant through the local microphone and speakers."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.style import Style
from rich.table import Table

from .audio.cache import PlayableAudioCache
from .audio.capture import AudioCaptureController
from .audio.devices import SoundDeviceInput, SoundDeviceSink
from .audio.encoding import EncodingAdapter
from .audio.playback import PlaybackCoordinator
from .config import Settings, get_settings
from .conversation import Conversation, Role
from .errors import VoiceAIError
from .notices import Notice, NoticeLevel
from .pipeline import VoicePipeline, VoiceSelection
from .providers.base import Backend, ProsodyParams
from .providers.gateway import ProviderGateway

USER_STYLE = Style(color="bright_blue", bold=True)
ASSISTANT_STYLE = Style(color="bright_green")
ERROR_STYLE = Style(color="red", bold=True)
INFO_STYLE = Style(color="cyan")

_NOTICE_STYLES = {
    NoticeLevel.INFO: INFO_STYLE,
    NoticeLevel.WARNING: Style(color="yellow"),
    NoticeLevel.ERROR: ERROR_STYLE,
}

DEFAULT_VOICES = {
    Backend.OPENAI: "alloy",
    Backend.ELEVENLABS: "21m00Tcm4TlvDq8ikWAM",
}


class VoiceChat:
    """Terminal front end wiring the voice pipeline to real audio devices."""

    def __init__(
        self,
        settings: Settings,
        *,
        backend: Backend,
        voice: str,
        input_device: Optional[str] = None,
        output_device: Optional[str] = None,
    ) -> None:
        self.console = Console()
        self.running = True
        self.cache = PlayableAudioCache(
            max_entries=settings.audio_cache_max_entries,
            max_age=settings.audio_cache_max_age_seconds,
            sweep_interval=settings.audio_cache_sweep_interval_seconds,
            enforce_capacity=settings.audio_cache_enforce_capacity,
        )
        self.gateway = ProviderGateway.from_settings(settings)
        self.playback = PlaybackCoordinator(
            SoundDeviceSink(output_device), notify=self._show_notice
        )
        self.pipeline = VoicePipeline(
            self.gateway,
            Conversation(self.cache),
            self.cache,
            self.playback,
            encoder=EncodingAdapter(
                max_bytes=settings.transcription_max_bytes,
                target_sample_rate=settings.target_sample_rate,
            ),
            notify=self._show_notice,
            selection=VoiceSelection(
                backend=backend,
                voice=voice,
                prosody=ProsodyParams.defaults_for(backend),
            ),
        )
        self.capture = AudioCaptureController(
            SoundDeviceInput(input_device),
            on_error=lambda error: self._show_notice(
                Notice.from_error("Recording Failed", error)
            ),
        )

    def _show_notice(self, notice: Notice) -> None:
        self.console.print(
            f"[bold]{notice.title}:[/bold] {notice.message}",
            style=_NOTICE_STYLES[notice.level],
        )

    def _show_help(self) -> None:
        """Show available commands."""
        help_text = """
[bold]Commands:[/bold]
  /record            Record from the microphone (Enter to stop) and get a spoken reply
  /speak <text>      Synthesize text with the current voice
  /voice <id>        Switch voice on the current backend
  /backend <name>    Switch speech backend (openai or elevenlabs)
  /voices            List voices for the current backend
  /history           Show the conversation so far
  /stop              Stop all playback
  /reset             Clear the conversation and cached audio
  /quit              Exit voice-chat

[bold]Shortcuts:[/bold]
  Plain text         Same as /speak
  Ctrl+D             Exit voice-chat
"""
        self.console.print(
            Panel(help_text.strip(), title="Voice Chat Help", border_style="blue")
        )

    async def _record(self) -> None:
        try:
            await self.capture.start()
        except VoiceAIError as exc:
            self._show_notice(Notice.from_error("Recording Failed", exc))
            return

        self.console.print("[bold red]● Recording[/bold red] - press Enter to stop")
        await asyncio.to_thread(sys.stdin.readline)
        resource = await self.capture.stop()
        if resource is None:
            return

        with self.console.status("Thinking..."):
            handle = await self.pipeline.handle_recording(resource)
        if handle is None:
            return
        turns = self.pipeline.conversation.turns
        for turn in turns[-2:]:
            style = USER_STYLE if turn.role is Role.USER else ASSISTANT_STYLE
            self.console.print(f"{turn.role.value.capitalize()}: {turn.text_content}", style=style)

    async def _speak(self, text: str) -> None:
        with self.console.status("Synthesizing..."):
            handle = await self.pipeline.speak(text)
        if handle is not None:
            self.console.print(f"[dim]Playing {handle.size} bytes[/dim]")

    async def _list_voices(self) -> None:
        backend = self.pipeline.selection.backend
        try:
            voices = await self.gateway.list_voices(backend)
        except VoiceAIError as exc:
            self._show_notice(Notice.from_error("Voice Catalog Unavailable", exc))
            return
        table = Table(title=f"{backend.value} voices")
        table.add_column("ID")
        table.add_column("Name")
        table.add_column("Category")
        for voice in voices:
            marker = " *" if voice.id == self.pipeline.selection.voice else ""
            table.add_row(voice.id, voice.name + marker, voice.category)
        self.console.print(table)

    def _show_history(self) -> None:
        turns = self.pipeline.conversation.turns
        if not turns:
            self.console.print("[dim]No conversation yet[/dim]")
            return
        for turn in turns:
            style = USER_STYLE if turn.role is Role.USER else ASSISTANT_STYLE
            audio = " [dim](audio)[/dim]" if turn.audio_ref else ""
            self.console.print(f"{turn.role.value.capitalize()}: {turn.text_content}{audio}", style=style)

    async def _handle_command(self, cmd: str) -> bool:
        """Handle slash commands. Returns True if handled."""
        parts = cmd.strip().split(maxsplit=1)
        if not parts:
            return False

        command = parts[0].lower()
        argument = parts[1].strip() if len(parts) > 1 else ""
        selection = self.pipeline.selection

        if command == "/help":
            self._show_help()
        elif command == "/quit":
            self.running = False
        elif command == "/record":
            await self._record()
        elif command == "/speak":
            if argument:
                await self._speak(argument)
            else:
                self.console.print("[dim]Usage: /speak <text>[/dim]")
        elif command == "/voice":
            if argument:
                self.pipeline.select_voice(argument, selection.backend)
                self.console.print(f"Voice set to {argument}", style=INFO_STYLE)
            else:
                self.console.print(f"Current voice: {selection.voice}", style=INFO_STYLE)
        elif command == "/backend":
            try:
                backend = Backend(argument.lower())
            except ValueError:
                self.console.print("[dim]Usage: /backend openai|elevenlabs[/dim]")
                return True
            if backend is not selection.backend:
                self.pipeline.select_voice(DEFAULT_VOICES[backend], backend)
            self.console.print(f"Backend set to {backend.value}", style=INFO_STYLE)
        elif command == "/voices":
            await self._list_voices()
        elif command == "/history":
            self._show_history()
        elif command == "/stop":
            self.playback.stop_all()
        elif command == "/reset":
            turns = self.pipeline.reset()
            self.console.print(f"[dim]Cleared {turns} turn(s)[/dim]")
        else:
            return False
        return True

    async def run(self) -> None:
        """Main chat loop."""
        self.cache.start()
        self.console.print()
        self.console.print(
            "[bold]Voice Chat[/bold] - Type /help for commands, Ctrl+D to exit",
            style=INFO_STYLE,
        )
        self.console.print()

        try:
            while self.running:
                try:
                    user_input = Prompt.ask("[bold blue]You[/bold blue]")
                    if not user_input.strip():
                        continue

                    if user_input.startswith("/"):
                        if await self._handle_command(user_input):
                            continue
                        self.console.print("[dim]Unknown command, try /help[/dim]")
                        continue

                    await self._speak(user_input)
                except EOFError:
                    self.console.print("\n[dim]Goodbye![/dim]")
                    break
                except KeyboardInterrupt:
                    self.console.print()
                    continue
        finally:
            await self.capture.aclose()
            self.playback.stop_all()
            await self.cache.aclose()
            await self.gateway.aclose()


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Voice Chat - talk to an assistant from the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  voiceai-chat                              OpenAI voice "alloy"
  voiceai-chat --backend elevenlabs --voice 21m00Tcm4TlvDq8ikWAM

Environment Variables:
  OPENAI_API_KEY, ELEVENLABS_API_KEY   Vendor credentials
  LOG_LEVEL                            Logging verbosity (default: WARNING)
""",
    )
    parser.add_argument(
        "--backend",
        "-b",
        choices=[backend.value for backend in Backend],
        default=None,
        help="Speech backend (default: $DEFAULT_BACKEND or openai)",
    )
    parser.add_argument("--voice", "-v", default=None, help="Voice id for speech")
    parser.add_argument("--input-device", default=None, help="sounddevice input device")
    parser.add_argument("--output-device", default=None, help="sounddevice output device")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level for pipeline diagnostics (default: WARNING)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    def signal_handler(sig, frame):
        print("\nExiting...")
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)

    settings = get_settings()
    backend = Backend(args.backend or settings.default_backend)
    voice = args.voice or DEFAULT_VOICES[backend]

    chat = VoiceChat(
        settings,
        backend=backend,
        voice=voice,
        input_device=args.input_device,
        output_device=args.output_device,
    )
    try:
        asyncio.run(chat.run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
