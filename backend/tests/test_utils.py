"""
EcoPlate Backend — Utility Unit Tests
======================================

Pure functions only: geography, upload file checks, dates and streaks.
"""

from datetime import date, datetime, timezone

import pytest

from ecoplate.services.user_points import calculate_streaks, normalize_action_type
from ecoplate.utils.dates import parse_date_str, subtract_months, today_str
from ecoplate.utils.distance import (
    Coordinates,
    calculate_distance,
    format_coordinates,
    is_valid_singapore_coordinates,
    parse_coordinates,
)
from ecoplate.utils.file_utils import (
    generate_secure_filename,
    get_file_extension,
    sanitize_filename,
    validate_image_file,
    validate_image_magic_bytes,
)


class TestDistance:

    def test_same_point_is_zero(self):
        p = Coordinates(1.3521, 103.8198)
        assert calculate_distance(p, p) == 0

    def test_one_degree_of_latitude(self):
        d = calculate_distance(Coordinates(0, 0), Coordinates(1, 0))
        assert d == pytest.approx(111.19, abs=0.01)

    def test_symmetric(self):
        a = Coordinates(1.3521, 103.8198)
        b = Coordinates(1.2834, 103.8607)
        assert calculate_distance(a, b) == pytest.approx(calculate_distance(b, a))
        assert calculate_distance(a, b) == pytest.approx(8.9, abs=0.1)


class TestParseCoordinates:

    def test_plain_pair(self):
        assert parse_coordinates("1.3521,103.8198") == Coordinates(1.3521, 103.8198)

    def test_address_prefix(self):
        assert parse_coordinates("10 Bayfront Ave|1.2834, 103.8607") == Coordinates(1.2834, 103.8607)

    @pytest.mark.parametrize("value", [
        None,
        "",
        "a|b|1.3,103.8",
        "1.3",
        "1.3,103.8,5",
        "north,east",
        "1.3,",
        "nan,103.8",
    ])
    def test_rejects_malformed(self, value):
        assert parse_coordinates(value) is None

    def test_singapore_bounds_are_inclusive(self):
        assert is_valid_singapore_coordinates(Coordinates(1.15, 103.6)) is True
        assert is_valid_singapore_coordinates(Coordinates(1.3521, 103.8198)) is True
        assert is_valid_singapore_coordinates(Coordinates(1.5, 103.8)) is False
        assert is_valid_singapore_coordinates(Coordinates(1.3, 104.2)) is False

    def test_format_drops_trailing_zero(self):
        assert format_coordinates(Coordinates(1.0, 103.8198)) == "1,103.8198"


class TestFileUtils:

    def setup_method(self):
        self.jpeg = b"\xff\xd8\xff\xe0" + b"\x00" * 16
        self.png = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16

    def test_extension_rules(self):
        assert get_file_extension("PHOTO.JPG") == "jpg"
        assert get_file_extension("archive.tar.gz") == "gz"
        assert get_file_extension("noextension") == "bin"
        assert get_file_extension("file.") == ""

    def test_secure_filename_shape(self):
        name = generate_secure_filename(42, "../../evil name.PNG", prefix="listing")
        prefix, user_id, timestamp, rest = name.split("-", 3)
        token, ext = rest.split(".")
        assert prefix == "listing"
        assert user_id == "42"
        assert timestamp.isdigit()
        assert len(token) == 32
        assert ext == "png"

    def test_secure_filenames_are_unique(self):
        assert generate_secure_filename(1, "a.jpg") != generate_secure_filename(1, "a.jpg")

    def test_magic_bytes_detection(self):
        assert validate_image_magic_bytes(self.jpeg) == "jpeg"
        assert validate_image_magic_bytes(self.png) == "png"
        assert validate_image_magic_bytes(b"GIF89a") == "gif"
        assert validate_image_magic_bytes(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "webp"
        assert validate_image_magic_bytes(b"%PDF-1.4") is None
        assert validate_image_magic_bytes(b"\xff\xd8") is None

    def test_valid_jpeg(self):
        result = validate_image_file(self.jpeg, "photo.jpg", "image/jpeg")
        assert result.valid is True
        assert result.detected_type == "jpeg"

    def test_checks_run_in_order(self):
        too_big = validate_image_file(self.jpeg, "photo.jpg", "image/jpeg", max_size=4)
        assert too_big.error.startswith("File size exceeds maximum")

        bad_mime = validate_image_file(self.jpeg, "photo.jpg", "application/pdf")
        assert bad_mime.error == "Only JPEG, PNG, GIF, and WebP images are allowed"

        bad_ext = validate_image_file(self.jpeg, "photo.exe", "image/jpeg")
        assert bad_ext.error == "Invalid file extension"

        unknown = validate_image_file(b"hello world!", "photo.jpg", "image/jpeg")
        assert unknown.error == "File content does not match an allowed image type"

    def test_spoofed_type_rejected(self):
        result = validate_image_file(self.jpeg, "photo.png", "image/png")
        assert result.valid is False
        assert result.error == "File content does not match declared type"

    def test_sanitize_filename(self):
        assert sanitize_filename("../../etc/passwd") == "etcpasswd"
        assert sanitize_filename("a\\b\x00c.jpg") == "abc.jpg"
        assert sanitize_filename("....//x.png") == "x.png"


class TestDates:

    def test_today_str_format(self):
        moment = datetime(2024, 2, 29, 23, 59, tzinfo=timezone.utc)
        assert today_str(moment) == "2024-02-29"
        assert parse_date_str("2024-02-29") == date(2024, 2, 29)

    def test_subtract_months_snaps_to_first(self):
        assert subtract_months(datetime(2024, 3, 15), 12) == datetime(2023, 3, 1)
        assert subtract_months(datetime(2024, 1, 31), 1) == datetime(2023, 12, 1)
        assert subtract_months(datetime(2024, 5, 10), 0) == datetime(2024, 5, 1)


class TestStreaks:

    def setup_method(self):
        self.today = date(2024, 6, 10)

    def test_no_actions(self):
        assert calculate_streaks([], self.today) == (0, 0)

    def test_run_ending_today(self):
        days = [date(2024, 6, 8), date(2024, 6, 9), date(2024, 6, 10)]
        assert calculate_streaks(days, self.today) == (3, 3)

    def test_run_ending_yesterday_still_counts(self):
        days = [date(2024, 6, 8), date(2024, 6, 9)]
        assert calculate_streaks(days, self.today) == (2, 2)

    def test_broken_streak(self):
        days = [date(2024, 6, 1), date(2024, 6, 2), date(2024, 6, 3), date(2024, 6, 5)]
        assert calculate_streaks(days, self.today) == (0, 3)

    def test_duplicate_days_count_once(self):
        days = [date(2024, 6, 10), date(2024, 6, 10), date(2024, 6, 9)]
        assert calculate_streaks(days, self.today) == (2, 2)

    @pytest.mark.parametrize("raw,expected", [
        ("consumed", "consumed"),
        ("Consume", "consumed"),
        ("WASTE", "wasted"),
        ("shared", "shared"),
        ("sell", "sold"),
        ("sold", "sold"),
        ("donated", None),
        (None, None),
    ])
    def test_normalize_action_type(self, raw, expected):
        assert normalize_action_type(raw) == expected
