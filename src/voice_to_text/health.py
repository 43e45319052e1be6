import logging
import os
import tempfile
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from pathlib import Path

import sounddevice as sd

from voice_to_text.config import VoiceToTextConfig

logger = logging.getLogger(__name__)

CRITICAL_CHECKS = {"audio_device", "temp_dir"}


@dataclass
class HealthCheckResult:
    name: str
    passed: bool
    detail: str


def run_startup_checks(config: VoiceToTextConfig, check_endpoint: bool = True) -> list[HealthCheckResult]:
    results = [
        _check_audio_device(config),
        _check_credential(config),
        _check_temp_dir(config),
    ]
    if check_endpoint:
        results.append(_check_endpoint_reachable(config))

    passed = sum(1 for r in results if r.passed)

    logger.info("Health check: %d/%d passed", passed, len(results))
    for result in results:
        level = logging.INFO if result.passed else logging.WARNING
        symbol = "OK" if result.passed else "FAIL"
        logger.log(level, "  [%s] %s: %s", symbol, result.name, result.detail)

    return results


def has_critical_failures(results: list[HealthCheckResult]) -> bool:
    return any(not r.passed and r.name in CRITICAL_CHECKS for r in results)


def format_report(results: list[HealthCheckResult]) -> str:
    lines = []
    for result in results:
        symbol = "OK" if result.passed else "FAIL"
        lines.append(f"[{symbol:<4}] {result.name}: {result.detail}")
    return "\n".join(lines)


def _check_audio_device(config: VoiceToTextConfig) -> HealthCheckResult:
    name = "audio_device"
    device_name = config.capture_device
    try:
        if device_name:
            for dev in sd.query_devices():
                if device_name.lower() in dev["name"].lower() and dev["max_input_channels"] > 0:
                    return HealthCheckResult(name=name, passed=True, detail=f"Device '{device_name}' found")
        default = sd.query_devices(kind="input")
        if device_name:
            return HealthCheckResult(
                name=name,
                passed=True,
                detail=f"'{device_name}' not in PortAudio, default input: {default['name']}",
            )
        return HealthCheckResult(name=name, passed=True, detail=f"Default input: {default['name']}")
    except (sd.PortAudioError, ValueError):
        return HealthCheckResult(name=name, passed=False, detail="No input devices available")
    except Exception as exc:
        return HealthCheckResult(name=name, passed=False, detail=str(exc))


def _check_credential(config: VoiceToTextConfig) -> HealthCheckResult:
    name = "credential"
    if config.credential():
        return HealthCheckResult(name=name, passed=True, detail="API key loaded")
    source = config.openai_api_key_file or "OPENAI_API_KEY"
    return HealthCheckResult(name=name, passed=False, detail=f"Missing ({source})")


def _check_temp_dir(config: VoiceToTextConfig) -> HealthCheckResult:
    name = "temp_dir"
    directory = Path(config.temp_dir) if config.temp_dir else Path(tempfile.gettempdir())
    if not directory.exists():
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            return HealthCheckResult(name=name, passed=False, detail=f"Cannot create {directory}: {exc}")
    if not os.access(directory, os.W_OK):
        return HealthCheckResult(name=name, passed=False, detail=f"{directory} is not writable")
    return HealthCheckResult(name=name, passed=True, detail=str(directory))


def _check_endpoint_reachable(config: VoiceToTextConfig) -> HealthCheckResult:
    name = "endpoint"
    parsed = urllib.parse.urlsplit(config.transcription_url)
    base = f"{parsed.scheme}://{parsed.netloc}/"
    try:
        req = urllib.request.Request(base, method="HEAD")
        req.add_header("User-Agent", "voice-to-text/healthcheck")
        response = urllib.request.urlopen(req, timeout=3)
        return HealthCheckResult(name=name, passed=True, detail=f"Reachable ({response.status})")
    except urllib.error.HTTPError as exc:
        return HealthCheckResult(name=name, passed=True, detail=f"Reachable ({exc.code})")
    except urllib.error.URLError as exc:
        reason = str(exc.reason) if hasattr(exc, "reason") else str(exc)
        return HealthCheckResult(name=name, passed=False, detail=f"Unreachable: {reason}")
    except Exception as exc:
        return HealthCheckResult(name=name, passed=False, detail=f"Unreachable: {exc}")
