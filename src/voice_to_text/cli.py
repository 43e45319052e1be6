import argparse
import asyncio
import logging
import os
import signal
import sys
from collections.abc import Callable
from pathlib import Path

from voice_to_text.config import VoiceToTextConfig
from voice_to_text.domain.controller import SessionController
from voice_to_text.domain.events import DomainEvent, RecordPressed, RecordReleased
from voice_to_text.domain.state import SessionSnapshot, SessionState
from voice_to_text.log_format import ColoredFormatter
from voice_to_text.ports.control import CONTROL_ACTIONS

ENV_FILE_PATH = Path.home() / ".config" / "voice-to-text" / "env"


def _load_env_file(path: Path = ENV_FILE_PATH) -> None:
    if not path.exists():
        return
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key not in os.environ:
                os.environ[key] = value


def _configure_logging(verbose: bool, log_file: str) -> None:
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(ColoredFormatter(datefmt="%H:%M:%S"))
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s")
        )
        root.addHandler(file_handler)

    logging.getLogger("httpcore").setLevel(logging.INFO if verbose else logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.INFO if verbose else logging.WARNING)


def main() -> None:
    _load_env_file()
    parser = argparse.ArgumentParser(description="Push-to-talk voice transcription")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("press", help="Start recording (press)")
    subparsers.add_parser("release", help="Stop recording and transcribe (release)")
    subparsers.add_parser("status", help="Query session status")
    subparsers.add_parser("check", help="Run health checks")

    args = parser.parse_args()

    config = VoiceToTextConfig()
    _configure_logging(args.verbose, config.log_file)

    if args.command in CONTROL_ACTIONS:
        asyncio.run(_run_client_command(args.command, config))
    elif args.command == "check":
        sys.exit(_run_checks(config))
    else:
        asyncio.run(_run_interactive(config))


def _run_checks(config: VoiceToTextConfig) -> int:
    from voice_to_text.health import format_report, has_critical_failures, run_startup_checks

    results = run_startup_checks(config)
    print(format_report(results))
    return 1 if has_critical_failures(results) else 0


async def _run_client_command(command: str, config: VoiceToTextConfig) -> None:
    from voice_to_text.adapters.unix_control import UnixSocketControlClient

    client = UnixSocketControlClient(socket_path=config.socket_path)
    try:
        result = await client.send_command(command)
    except (ConnectionRefusedError, FileNotFoundError):
        print("voice-to-text is not running", file=sys.stderr)
        sys.exit(1)

    print(f"{result}")


def _print_snapshot(snapshot: SessionSnapshot) -> None:
    print(f"[{snapshot.state.name}] {snapshot.message}", flush=True)
    if snapshot.state == SessionState.DONE:
        print(snapshot.transcript, flush=True)


def _next_event(controller: SessionController) -> DomainEvent:
    if controller.state == SessionState.RECORDING:
        return RecordReleased()
    return RecordPressed()


async def _send_in_order(dispatch: Callable[[DomainEvent], asyncio.Task], event: DomainEvent) -> None:
    """Press runs to completion; release runs until the upload has started."""
    task = dispatch(event)
    if isinstance(event, RecordPressed):
        await task
    else:
        await asyncio.sleep(0)


async def _run_interactive(config: VoiceToTextConfig) -> None:
    from voice_to_text.factory import create_app
    from voice_to_text.health import run_startup_checks

    run_startup_checks(config, check_endpoint=False)
    controller, control = create_app(config)
    controller.subscribe(_print_snapshot)

    shutdown_event = asyncio.Event()
    pending: set[asyncio.Task] = set()
    shutdown_triggered = False

    def handle_signal() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            logging.warning("Forced exit")
            sys.exit(1)
        shutdown_triggered = True
        logging.info("Shutting down...")
        shutdown_event.set()

    def dispatch(event: DomainEvent) -> asyncio.Task:
        task = asyncio.create_task(controller.handle(event))
        pending.add(task)
        task.add_done_callback(pending.discard)
        return task

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    lines: asyncio.Queue[str] = asyncio.Queue()

    def on_stdin() -> None:
        lines.put_nowait(sys.stdin.readline())

    async def keyboard_loop() -> None:
        print("Press Enter to start recording, Enter again to stop, 'q' to quit.", flush=True)
        while True:
            line = await lines.get()
            if not line or line.strip().lower() == "q":
                shutdown_event.set()
                return
            await _send_in_order(dispatch, _next_event(controller))

    async def control_loop() -> None:
        async for cmd in control.commands():
            if cmd.action == "press":
                await _send_in_order(dispatch, RecordPressed())
            elif cmd.action == "release":
                await _send_in_order(dispatch, RecordReleased())
            elif cmd.action != "status":
                await control.send_response({"status": "error", "action": cmd.action})
                continue
            await control.send_response(
                {"status": "ok", "action": cmd.action, **controller.snapshot().to_dict()}
            )

    interactive = sys.stdin.isatty()
    try:
        await controller.initialize()
        await control.start()

        tasks = [asyncio.create_task(control_loop())]
        if interactive:
            loop.add_reader(sys.stdin, on_stdin)
            tasks.append(asyncio.create_task(keyboard_loop()))
        else:
            logging.info("stdin is not a terminal, accepting socket commands only")
        await shutdown_event.wait()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if pending:
            await asyncio.wait(pending, timeout=config.request_timeout_seconds)
    finally:
        if interactive:
            loop.remove_reader(sys.stdin)
        await controller.close()
        await control.stop()


if __name__ == "__main__":
    main()
