import pytest

from tempo.core.errors import TrackDecodeError
from tempo.services.track_producer import _haversine, track_from_gpx

GPX = """<gpx version="1.1" creator="tests"
  xmlns="http://www.topografix.com/GPX/1/1"
  xmlns:gpxtpx="http://www.garmin.com/xmlschemas/TrackPointExtension/v1">
<trk><trkseg>
<trkpt lat="40.0000" lon="-75.0000"><ele>10</ele><time>2025-01-01T07:00:00Z</time>
  <extensions><gpxtpx:TrackPointExtension><gpxtpx:hr>140</gpxtpx:hr><gpxtpx:cad>84</gpxtpx:cad></gpxtpx:TrackPointExtension></extensions>
</trkpt>
<trkpt lat="40.0005" lon="-75.0000"><ele>12</ele></trkpt>
<trkpt lat="40.0010" lon="-75.0000"><ele>11</ele><time>2025-01-01T07:00:40Z</time>
  <extensions><gpxtpx:TrackPointExtension><gpxtpx:hr>150</gpxtpx:hr><gpxtpx:cad>86</gpxtpx:cad></gpxtpx:TrackPointExtension></extensions>
</trkpt>
<trkpt lat="40.0020" lon="-75.0000"><ele>15</ele><time>2025-01-01T07:01:20Z</time></trkpt>
</trkseg></trk></gpx>"""


def test_haversine_one_thousandth_degree_latitude():
    assert _haversine(40.0, -75.0, 40.001, -75.0) == pytest.approx(111.19, abs=0.01)


def test_gpx_points_become_track():
    track = track_from_gpx(GPX)
    # the untimed point is dropped
    assert len(track.points) == 3
    assert track.total_duration_s == pytest.approx(80.0)
    assert track.total_distance_m == pytest.approx(222.39, abs=0.05)
    assert track.points[0].cumulative_distance_m == 0.0
    assert track.points[0].heart_rate_bpm == 140
    assert track.points[1].cadence_rpm == 86
    assert track.points[2].heart_rate_bpm is None
    assert track.points[2].elevation_m == 15
    track.validate()


def test_gpx_needs_two_timed_points():
    single = GPX.split("<trkpt")[0] + "<trkpt" + GPX.split("<trkpt")[1] + "</trkseg></trk></gpx>"
    with pytest.raises(TrackDecodeError):
        track_from_gpx(single)


def test_gpx_garbage_rejected():
    with pytest.raises(TrackDecodeError):
        track_from_gpx("<not-gpx")
