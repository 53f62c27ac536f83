import os

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


# Path to an unpacked Vosk model (e.g. vosk-model-small-en-us-0.15)
VOSK_MODEL_PATH = os.environ.get("VOSK_MODEL_PATH", "models/vosk")

# Set VOICE_DEBUG=1 to log partial transcripts and heartbeat restarts
DEBUG = _env_flag("VOICE_DEBUG", False)

_mic = os.environ.get("MIC_DEVICE", "").strip()

AUDIO = {
    "DEVICE": int(_mic) if _mic.isdigit() else None,
    "SAMPLE_RATE_FALLBACK": 16000,
    "BLOCKSIZE_DIVISOR": 32,   # ~30 ms blocks at 44.1/48 kHz
    "MIN_BLOCKSIZE": 1024,
}

VOICE = {
    "HEARTBEAT_S": _env_float("VOICE_HEARTBEAT_S", 30.0),
    "RETRY_DELAY_S": 2.0,
    "NETWORK_RETRY_DELAY_S": 3.0,
    "RESTART_ATTEMPTS": 2,     # immediate retry, then one delayed retry
    "SPEAK_FEEDBACK": _env_flag("VOICE_SPEAK_FEEDBACK", True),
}

TTS = {"RATE_SCALE": 1.1, "VOLUME": 0.8}

# Orders shown by the CLI demo pager
DEMO_ORDERS = 25
