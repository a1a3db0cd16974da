"""
exiftool metadata extraction: parsing, date normalization, soft failures
"""

import json
import os
import subprocess
import sys

import pytest

import file_operations
from file_operations import (
    PhotoMetadata,
    check_exiftool,
    extract_metadata,
    parse_exif_datetime,
    parse_exiftool_output,
)


def fake_run(stdout='', returncode=0, stderr='', exc=None, seen=None):
    def run(cmd, **kwargs):
        if seen is not None:
            seen.append((cmd, kwargs))
        if exc is not None:
            raise exc
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)
    return run


def exiftool_json(**tags):
    return json.dumps([dict(SourceFile='/photos/x.jpg', **tags)])


@pytest.mark.parametrize('raw, expected', [
    ('2024:05:01 10:00:00', '2024-05-01T10:00:00'),
    ('2024:05:01 10:00:00+02:00', '2024-05-01T10:00:00+02:00'),
    ('2024:05:01 10:00:00.250', '2024-05-01T10:00:00.250000'),
    ('0000:00:00 00:00:00', None),
    ('2024:13:40 10:00:00', None),
    ('not a date', None),
    ('', None),
    (None, None),
    (20240501, None),
])
def test_parse_exif_datetime(raw, expected):
    assert parse_exif_datetime(raw) == expected


def test_gps_and_original_date():
    meta = parse_exiftool_output(exiftool_json(
        GPSLatitude=48.8566, GPSLongitude=2.3522,
        DateTimeOriginal='2024:05:01 10:00:00', CreateDate='2020:01:01 00:00:00'))

    assert meta.has_gps
    assert meta.latitude == pytest.approx(48.8566)
    assert meta.longitude == pytest.approx(2.3522)
    assert meta.timestamp == '2024-05-01T10:00:00'


def test_create_date_fallback():
    meta = parse_exiftool_output(exiftool_json(CreateDate='2019:12:31 23:59:59'))
    assert meta.timestamp == '2019-12-31T23:59:59'
    assert not meta.has_gps


def test_negative_coordinates_are_kept_as_reported():
    meta = parse_exiftool_output(exiftool_json(GPSLatitude=-33.8688, GPSLongitude=-151.2093))
    assert (meta.latitude, meta.longitude) == (pytest.approx(-33.8688), pytest.approx(-151.2093))


def test_latitude_without_longitude_is_not_geolocated():
    meta = parse_exiftool_output(exiftool_json(GPSLatitude=10.0))
    assert meta == PhotoMetadata()


def test_non_numeric_coordinates_are_ignored():
    meta = parse_exiftool_output(exiftool_json(GPSLatitude='48 deg 51\' 24" N', GPSLongitude=2.35))
    assert not meta.has_gps


def test_invalid_capture_date_gives_null_timestamp():
    meta = parse_exiftool_output(exiftool_json(
        GPSLatitude=1.0, GPSLongitude=2.0, DateTimeOriginal='0000:00:00 00:00:00'))
    assert meta.has_gps
    assert meta.timestamp is None


@pytest.mark.parametrize('stdout', ['{}', '[]', '[1]', 'garbage'])
def test_unexpected_output_shape_raises(stdout):
    with pytest.raises(ValueError):
        parse_exiftool_output(stdout)


def test_extract_metadata_invokes_exiftool_json_numeric(monkeypatch):
    seen = []
    monkeypatch.setattr(file_operations.subprocess, 'run',
                        fake_run(stdout=exiftool_json(GPSLatitude=1.5, GPSLongitude=2.5), seen=seen))

    meta = extract_metadata('/photos/x.jpg')

    cmd, kwargs = seen[0]
    assert cmd == ['exiftool', '-j', '-n', '/photos/x.jpg']
    assert kwargs['timeout'] == file_operations.EXIFTOOL_TIMEOUT
    assert (kwargs['encoding'], kwargs['errors']) == ('utf-8', 'replace')
    assert meta == PhotoMetadata(1.5, 2.5, None)


@pytest.mark.parametrize('runner', [
    fake_run(exc=FileNotFoundError('exiftool')),
    fake_run(exc=subprocess.TimeoutExpired('exiftool', 30)),
    fake_run(returncode=1, stdout=exiftool_json(GPSLatitude=1.0, GPSLongitude=2.0), stderr='Error'),
    fake_run(stdout='this is not json'),
    fake_run(stdout='[]'),
])
def test_extract_metadata_soft_failures(monkeypatch, caplog, runner):
    monkeypatch.setattr(file_operations.subprocess, 'run', runner)

    with caplog.at_level('WARNING', logger='errors'):
        meta = extract_metadata('/photos/broken.jpg')

    assert meta == PhotoMetadata()
    assert '/photos/broken.jpg' in caplog.text


@pytest.mark.skipif(sys.platform == 'win32', reason='needs a shell script on PATH')
def test_extract_metadata_tolerates_non_utf8_output(tmp_path, monkeypatch):
    # Latin-1 tag value, as written by some older cameras and editors
    output = tmp_path / 'exiftool.out'
    output.write_bytes(b'[{"SourceFile":"x","Comment":"\xe9t\xe9","GPSLatitude":1.5,"GPSLongitude":2.5}]')
    script = tmp_path / 'bin' / 'exiftool'
    script.parent.mkdir()
    script.write_text(f"#!/bin/sh\ncat '{output}'\n")
    script.chmod(0o755)
    monkeypatch.setenv('PATH', str(script.parent) + os.pathsep + os.environ.get('PATH', ''))

    meta = extract_metadata(str(tmp_path / 'a.jpg'))

    assert meta == PhotoMetadata(1.5, 2.5, None)


def test_check_exiftool(monkeypatch):
    monkeypatch.setattr(file_operations.subprocess, 'run', fake_run(stdout='12.76'))
    assert check_exiftool() is True

    monkeypatch.setattr(file_operations.subprocess, 'run', fake_run(exc=FileNotFoundError('exiftool')))
    assert check_exiftool() is False
