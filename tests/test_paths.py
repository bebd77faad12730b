"""Tests for paths.py -- image/root predicates and output path derivation."""

import pytest

from image_enhance_pipeline.paths import (
    build_output_path,
    is_image_path,
    is_inside_root,
    job_filename,
)


class TestIsImagePath:
    @pytest.mark.parametrize(
        "path",
        ["/input/a.png", "/input/a.jpg", "/input/a.jpeg", "/input/a.webp", "/A.JPG", "/b.WebP"],
    )
    def test_image_extensions(self, path):
        assert is_image_path(path) is True

    @pytest.mark.parametrize(
        "path",
        ["/input/a.gif", "/input/a.bmp", "/input/notes.txt", "/input/png", "/input/a.png.bak", ""],
    )
    def test_other_extensions(self, path):
        assert is_image_path(path) is False


class TestIsInsideRoot:
    def test_root_itself(self):
        assert is_inside_root("/input", "/input")

    def test_child(self):
        assert is_inside_root("/input/a.png", "/input")

    def test_nested_child(self):
        assert is_inside_root("/input/2024/trip/a.png", "/input")

    def test_sibling_with_shared_prefix_rejected(self):
        assert not is_inside_root("/input2/a.png", "/input")

    def test_unrelated_path_rejected(self):
        assert not is_inside_root("/output/a.png", "/input")

    def test_trailing_slash_on_root_ignored(self):
        assert is_inside_root("/input/a.png", "/input/")
        assert not is_inside_root("/input2/a.png", "/input/")

    def test_dropbox_root_contains_everything(self):
        assert is_inside_root("/anything/a.png", "/")
        assert is_inside_root("/a.png", "")


class TestBuildOutputPath:
    def test_configured_format(self):
        path = build_output_path(
            "/input/photo.JPG".lower(), "/output", "_ENHANCED", "png"
        )
        assert path == "/output/photo_ENHANCED.png"

    def test_keeps_original_extension_without_format(self):
        assert build_output_path("/input/photo.webp", "/output", "_X") == "/output/photo_X.webp"

    def test_defaults_to_png_without_extension(self):
        assert build_output_path("/input/photo", "/output", "_X") == "/output/photo_X.png"

    def test_collapses_duplicate_separators(self):
        path = build_output_path("/input/a.png", "/output/", "_E", "")
        assert path == "/output/a_E.png"
        assert "//" not in build_output_path("/input/a.png", "//output//", "_E")

    def test_format_is_lowercased(self):
        assert build_output_path("/input/a.png", "/out", "_E", " WEBP ") == "/out/a_E.webp"

    def test_only_last_dot_splits_extension(self):
        assert build_output_path("/in/my.photo.jpeg", "/out", "_E") == "/out/my.photo_E.jpeg"

    def test_flattens_nested_input_dirs(self):
        assert build_output_path("/input/2024/a.png", "/out", "", "jpeg") == "/out/a.jpeg"


class TestJobFilename:
    def test_last_component(self):
        assert job_filename("/input/sub/a.png") == "a.png"

    def test_empty_falls_back(self):
        assert job_filename("/input/") == "input.png"
