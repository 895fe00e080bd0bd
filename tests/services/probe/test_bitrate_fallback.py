from pathlib import Path

from rightprops.domain.dataclasses.reports import ScanReport
from rightprops.domain.enums import StreamKind
from rightprops.services.probe.bitrate_fallback import BitrateFallback

CLIP = Path("/media/clip.mkv")


def test_build_args_single_kind_selects_stream():
    args = BitrateFallback.build_args([StreamKind.audio])
    assert args[:2] == ["-select_streams", "a"]
    assert args[args.index("-show_entries") + 1] == "packet=duration,size:stream=codec_type,time_base,duration"
    assert args[-1] == "csv"


def test_build_args_two_kinds_tags_packets():
    args = BitrateFallback.build_args([StreamKind.video, StreamKind.audio])
    assert "-select_streams" not in args
    assert args[args.index("-show_entries") + 1].startswith("packet=codec_type,duration,size:")


def test_declared_duration_matches_summed_ticks(media):
    """Same bytes, same duration: declared seconds and summed ticks give one answer."""
    packets = ["packet,45000,125000"] * 8  # 1_000_000 bytes, 8s at 1/45000
    declared = media.FakeProber(lines={"packet=": packets + ["stream,video,1/45000,8.000000"]})
    summed = media.FakeProber(lines={"packet=": packets + ["stream,video,1/45000,N/A"]})

    a = BitrateFallback(declared).compute(CLIP, [StreamKind.video])
    b = BitrateFallback(summed).compute(CLIP, [StreamKind.video])
    assert a == b == {"FFProbe.Video.EncodingBitrate.Calculated": "1000000"}


def test_rounds_half_away_from_zero(media):
    # 8 * 5 bytes / 16 s = 2.5 bit/s
    prober = media.FakeProber(lines={"packet=": ["packet,N/A,5", "stream,audio,1/48000,16"]})
    out = BitrateFallback(prober).compute(CLIP, [StreamKind.audio])
    assert out == {"FFProbe.Audio.EncodingBitrate.Calculated": "3"}


def test_aggregate_ignores_malformed_lines(media):
    prober = media.FakeProber(
        lines={"packet=": ["", "packet", "packet,video", "side_data,x", "packet,video,10,100", "stream,video,1/10,N/A"]}
    )
    accs = BitrateFallback(prober).aggregate(CLIP, [StreamKind.video, StreamKind.audio])
    assert accs[StreamKind.video].sum_bytes == 100
    assert accs[StreamKind.video].sum_duration_ticks == 10
    assert accs[StreamKind.audio].packet_count == 0


def test_missing_stream_line_is_reported(media):
    report = ScanReport()
    prober = media.FakeProber(lines={"packet=": ["packet,10,100"]})
    out = BitrateFallback(prober, report).compute(CLIP, [StreamKind.video])
    assert out == {}
    assert report.warnings == 1
