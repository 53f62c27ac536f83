#!/usr/bin/env python3
"""
Voice order navigation entrypoint.

Examples:
  python3 main.py listen
  python3 main.py listen --orders 40 --no-speak
  python3 main.py type
  python3 main.py grammar --list
  python3 main.py parse-number "three hundred and five"


==============================
 Modes
==============================

1. listen
   Live offline recognition (Vosk + microphone) driving a demo order list.
   Press Enter to toggle the microphone, Ctrl+C to quit.
   Needs a Vosk model: set VOSK_MODEL_PATH (or .env) or pass --model.

2. type
   Same command handling, but transcripts are typed at the keyboard.
   Handy without a microphone or model.

3. grammar
   Show the recognizer vocabulary (spelled-out 0..1000 + command words).

4. parse-number
   Print what the spoken-number parser makes of some words.
"""

import argparse
import logging
import sys
from dataclasses import replace

from orders.pager import OrderPager, demo_orders
from utils.config import DEBUG, DEMO_ORDERS, VOSK_MODEL_PATH
from voice.commands import CommandDispatcher
from voice.grammar import build_vocabulary
from voice.numbers import parse_spoken_number


def _speech_feedback(enabled: bool):
    from voice.tts import Pyttsx3Synthesizer, SpeechFeedback
    return SpeechFeedback(Pyttsx3Synthesizer(), enabled=enabled)


# ---------- Modes ----------
def mode_listen(model_path: str, orders: int, speak: bool, device=None) -> int:
    # audio/model stacks are only needed here
    from voice.audio import MicrophoneStream
    from voice.session import SessionSettings, SessionState, VoiceSessionController
    from voice.vosk_engine import VoskEngine

    pager = OrderPager(demo_orders(orders))
    settings = SessionSettings.from_config()
    if not speak:
        settings = replace(settings, speak_feedback=False)

    controller = VoiceSessionController(
        engine=VoskEngine(model_path),
        callbacks=pager.callbacks(),
        microphone_factory=lambda: MicrophoneStream(device=device),
        feedback=_speech_feedback(speak),
        settings=settings,
        orders_length=len(pager),
        on_status=lambda s: print(f"[{s.kind}] {s.text}"),
    )
    print(f"[voice] engine: {controller.engine_info()}")
    print(f"[orders] {len(pager)} orders, showing {pager.current.title if pager.current else '-'}")
    print("Enter = mic on/off, Ctrl+C = quit")

    try:
        controller.start()
        while True:
            input()
            controller.toggle()
            if controller.state is SessionState.ERROR:
                print("[voice] Press Enter to try again")
    except (KeyboardInterrupt, EOFError):
        print("\n[voice] stopping…")
    finally:
        controller.close()
    return 0


def mode_type(orders: int, speak: bool) -> int:
    pager = OrderPager(demo_orders(orders))
    dispatcher = CommandDispatcher(pager.callbacks())
    feedback = _speech_feedback(speak)
    print("Type a command (e.g. 'open order twelve', 'next', 'help'); 'q' to quit.")
    try:
        while True:
            text = input("> ").strip()
            if not text:
                continue
            if text.lower() in ("q", "quit", "exit"):
                break
            result = dispatcher.process(text, len(pager))
            print(f"[{result.kind}] {result.message}")
            if result.success:
                feedback.speak(result.message)
    except (KeyboardInterrupt, EOFError):
        print()
    finally:
        feedback.close()
    return 0


def mode_grammar(list_words: bool) -> int:
    vocab = build_vocabulary()
    if list_words:
        for phrase in vocab:
            print(phrase)
    else:
        print(f"{len(vocab)} phrases (+ [unk])")
    return 0


def mode_parse_number(words) -> int:
    text = " ".join(words)
    value = parse_spoken_number(text)
    print(f"{text!r} -> {value}")
    return 0 if value is not None else 1


# ---------- CLI ----------
def build_parser():
    p = argparse.ArgumentParser(description="Voice order navigation")
    p.add_argument("--debug", action="store_true", help="Log partial transcripts and restarts")
    sub = p.add_subparsers(dest="mode", required=True)

    ls = sub.add_parser("listen", help="Live voice control of a demo order list")
    ls.add_argument("--model", default=VOSK_MODEL_PATH, help="Path to an unpacked Vosk model")
    ls.add_argument("--orders", type=int, default=DEMO_ORDERS)
    ls.add_argument("--device", type=int, default=None, help="sounddevice input index")
    ls.add_argument("--no-speak", action="store_true", help="Disable spoken confirmations")

    t = sub.add_parser("type", help="Type transcripts instead of speaking them")
    t.add_argument("--orders", type=int, default=DEMO_ORDERS)
    t.add_argument("--no-speak", action="store_true", help="Disable spoken confirmations")

    g = sub.add_parser("grammar", help="Show the recognizer vocabulary")
    g.add_argument("--list", action="store_true", help="Print every phrase")

    n = sub.add_parser("parse-number", help="Parse spoken number words")
    n.add_argument("words", nargs="+")

    return p


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if (args.debug or DEBUG) else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.mode == "listen":         return mode_listen(args.model, args.orders, not args.no_speak, args.device)
    elif args.mode == "type":         return mode_type(args.orders, not args.no_speak)
    elif args.mode == "grammar":      return mode_grammar(args.list)
    elif args.mode == "parse-number": return mode_parse_number(args.words)
    return 2


if __name__ == "__main__":
    sys.exit(main())
