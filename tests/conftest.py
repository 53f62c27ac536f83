"""Shared fakes: a scripted recognizer, a microphone, a synthesizer and a hand-cranked scheduler."""
import itertools

import pytest

from orders.pager import OrderPager, demo_orders
from voice.session import SessionSettings, VoiceSessionController
from voice.tts import SpeechFeedback


class FakeHandle:
    _ids = itertools.count(1)

    def __init__(self, listener):
        self.id = next(self._ids)
        self.listener = listener


class FakeEngine:
    def __init__(self):
        self.calls = []
        self.handle = None
        self.vocabulary = None
        self.sample_rate = None
        self.init_error = None
        self.start_errors = []   # raised by successive start() calls
        self.on_initialize = None
        self.running = False
        self.fed = []

    @property
    def listener(self):
        return self.handle.listener

    def initialize(self, vocabulary, sample_rate, listener):
        self.calls.append("initialize")
        self.vocabulary = vocabulary
        self.sample_rate = sample_rate
        if self.on_initialize:
            self.on_initialize()
        if self.init_error:
            raise self.init_error
        self.handle = FakeHandle(listener)
        return self.handle

    def start(self, handle):
        self.calls.append("start")
        if self.start_errors:
            raise self.start_errors.pop(0)
        self.running = True

    def stop(self, handle):
        self.calls.append("stop")
        self.running = False
        handle.listener.on_end()

    def feed(self, handle, data):
        self.fed.append(data)

    def release(self, handle):
        self.calls.append("release")
        self.running = False

    def engine_info(self):
        return {"engine": "fake", "offline": True}

    # -- test drivers --
    def say(self, text):
        self.listener.on_final_transcript(text)

    def partial(self, text):
        self.listener.on_partial_transcript(text)

    def error(self, kind):
        self.listener.on_error(kind)

    def end(self):
        self.running = False
        self.listener.on_end()


class FakeMicrophone:
    def __init__(self, open_error=None):
        self.sample_rate = 16000
        self._enabled = True
        self.enabled_changes = []
        self.callback = None
        self.opened = False
        self.closed = False
        self.open_error = open_error

    @property
    def enabled(self):
        return self._enabled

    @enabled.setter
    def enabled(self, value):
        self.enabled_changes.append(value)
        self._enabled = value

    def open(self, callback):
        if self.open_error:
            raise self.open_error
        self.callback = callback
        self.opened = True

    def close(self):
        self.closed = True

    def push(self, data):
        if self._enabled and self.callback:
            self.callback(data)


class FakeSynthesizer:
    """auto=True plays each utterance immediately; otherwise drive it with begin()/finish()."""

    def __init__(self, auto=True):
        self.auto = auto
        self.spoken = []
        self.pending = []
        self.error = None
        self.closed = False

    def speak(self, text, on_start=None, on_end=None):
        if self.error:
            raise self.error
        self.spoken.append(text)
        if self.auto:
            if on_start:
                on_start()
            if on_end:
                on_end()
        else:
            self.pending.append((text, on_start, on_end))

    def begin(self):
        _, on_start, _ = self.pending[0]
        if on_start:
            on_start()

    def finish(self):
        _, _, on_end = self.pending.pop(0)
        if on_end:
            on_end()

    def close(self):
        self.closed = True


class FakePyttsx3:
    """Stands in for the object pyttsx3.init() returns."""

    def __init__(self, fail=False):
        self.fail = fail
        self.said = []
        self.props = {"rate": 200}
        self.stopped = False

    def getProperty(self, name):
        return self.props[name]

    def setProperty(self, name, value):
        self.props[name] = value

    def say(self, text):
        self.said.append(text)

    def runAndWait(self):
        if self.fail:
            raise RuntimeError("audio device busy")

    def stop(self):
        self.stopped = True


class ManualTimer:
    def __init__(self, delay, fn, repeat):
        self.delay = delay
        self.fn = fn
        self.repeat = repeat
        self.cancelled = False
        self.fired = False

    @property
    def active(self):
        return not self.cancelled and not (self.fired and not self.repeat)

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    def __init__(self):
        self.timers = []

    def call_later(self, delay, fn):
        timer = ManualTimer(delay, fn, repeat=False)
        self.timers.append(timer)
        return timer

    def call_every(self, interval, fn):
        timer = ManualTimer(interval, fn, repeat=True)
        self.timers.append(timer)
        return timer

    def active(self, repeat=None):
        return [t for t in self.timers if t.active and (repeat is None or t.repeat == repeat)]

    def fire(self, timer):
        if not timer.active:
            return
        if not timer.repeat:
            timer.fired = True
        timer.fn()

    def fire_heartbeats(self):
        for timer in self.active(repeat=True):
            self.fire(timer)

    def fire_delayed(self):
        for timer in self.active(repeat=False):
            self.fire(timer)


class Harness:
    """A controller wired to fakes and a demo pager."""

    def __init__(self, orders=10, speak=True, synth_auto=True, mic_error=None, callbacks=None):
        self.engine = FakeEngine()
        self.synth = FakeSynthesizer(auto=synth_auto)
        self.scheduler = ManualScheduler()
        self.pager = OrderPager(demo_orders(orders))
        self.mics = []
        self.mic_error = mic_error
        self.statuses = []
        self.results = []
        self.settings = SessionSettings(
            heartbeat_interval=30.0,
            retry_delay=2.0,
            network_retry_delay=3.0,
            restart_attempts=2,
            speak_feedback=speak,
        )
        self.controller = VoiceSessionController(
            engine=self.engine,
            callbacks=callbacks or self.pager.callbacks(),
            microphone_factory=self._new_mic,
            feedback=SpeechFeedback(self.synth),
            settings=self.settings,
            scheduler=self.scheduler,
            orders_length=orders,
            on_status=self.statuses.append,
            on_result=self.results.append,
        )

    def _new_mic(self):
        mic = FakeMicrophone(open_error=self.mic_error)
        self.mics.append(mic)
        return mic

    @property
    def mic(self):
        return self.mics[-1]

    @property
    def status_texts(self):
        return [s.text for s in self.statuses]


@pytest.fixture
def make_harness():
    return Harness


@pytest.fixture
def harness():
    return Harness()
