import asyncio
import threading

from speech.playback import ClipAudioSink, SpeechPlaybackController

from conftest import FakeSynthesizer, silent_wav


class RecordingSink(ClipAudioSink):
    def __init__(self):
        super().__init__()
        self.events = []
        self.clips = []

    def load(self, data):
        clip = super().load(data)
        self.clips.append(clip)
        self.events.append(("load", clip.clip_id))
        return clip

    def release(self, clip):
        if not clip.released:
            self.events.append(("release", clip.clip_id))
        super().release(clip)


class GatedSynthesizer(FakeSynthesizer):
    """Blocks synthesis of one text until the gate opens."""

    def __init__(self, gated_text):
        super().__init__()
        self.gated_text = gated_text
        self.gate = threading.Event()

    def synthesize(self, text):
        if text == self.gated_text:
            self.gate.wait(2)
        return super().synthesize(text)


async def wait_for(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


def test_speak_plays_and_releases_clip():
    sink = RecordingSink()
    synth = FakeSynthesizer()
    controller = SpeechPlaybackController(synth, sink=sink)

    asyncio.run(controller.speak("Who is the user?"))

    assert synth.texts == ["Who is the user?"]
    assert len(sink.clips) == 1
    assert sink.clips[0].released
    assert sink.current is None
    assert not controller.speaking


def test_muted_controller_does_nothing():
    sink = RecordingSink()
    synth = FakeSynthesizer()
    controller = SpeechPlaybackController(synth, sink=sink, muted=True)

    asyncio.run(controller.speak("hello"))

    assert synth.texts == []
    assert sink.events == []


def test_blank_text_is_not_spoken():
    synth = FakeSynthesizer()
    controller = SpeechPlaybackController(synth, sink=RecordingSink())
    asyncio.run(controller.speak("   "))
    assert synth.texts == []


def test_synthesis_failure_is_reported_not_raised():
    sink = RecordingSink()
    controller = SpeechPlaybackController(FakeSynthesizer(fail=True), sink=sink)

    asyncio.run(controller.speak("hello"))

    assert controller.last_error == "tts failed"
    assert not controller.speaking
    assert sink.clips == []


def test_new_speech_releases_playing_clip_first():
    sink = RecordingSink()
    synth = FakeSynthesizer(clips={"long": silent_wav(5), "short": silent_wav(0.01)})
    controller = SpeechPlaybackController(synth, sink=sink)

    async def scenario():
        first = asyncio.create_task(controller.speak("long"))
        await wait_for(lambda: sink.current is not None)
        long_clip = sink.current

        await controller.speak("short")
        await asyncio.wait_for(first, timeout=1)
        return long_clip

    long_clip = asyncio.run(scenario())
    short_clip = sink.clips[1]

    assert sink.events == [
        ("load", long_clip.clip_id),
        ("release", long_clip.clip_id),
        ("load", short_clip.clip_id),
        ("release", short_clip.clip_id),
    ]
    assert all(clip.released for clip in sink.clips)
    assert not controller.speaking


def test_superseded_synthesis_is_dropped():
    sink = RecordingSink()
    synth = GatedSynthesizer("first")
    controller = SpeechPlaybackController(synth, sink=sink)

    async def scenario():
        first = asyncio.create_task(controller.speak("first"))
        await wait_for(lambda: controller.speaking)
        await controller.speak("second")
        synth.gate.set()
        await asyncio.wait_for(first, timeout=2)

    asyncio.run(scenario())

    assert len(sink.clips) == 1
    assert sink.clips[0].released
    assert not controller.speaking


def test_mute_stops_playback():
    sink = RecordingSink()
    synth = FakeSynthesizer(clips={"long": silent_wav(5)})
    controller = SpeechPlaybackController(synth, sink=sink)

    async def scenario():
        task = asyncio.create_task(controller.speak("long"))
        await wait_for(lambda: sink.current is not None)
        controller.mute()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(scenario())

    assert controller.muted
    assert not controller.speaking
    assert all(clip.released for clip in sink.clips)
