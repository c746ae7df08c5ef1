"""Tests for the theme/extension file scanner."""

from notrack.core.base import DetectionMethod
from notrack.core.catalog import get_supported_trackers
from notrack.core.config import Settings
from notrack.scanners import files
from notrack.scanners.files import scan_file_content, scan_files, scan_roots


def test_scan_finds_trackers(theme_dir):
    detected = scan_files([theme_dir], get_supported_trackers())
    assert [d.service_id for d in detected] == ["google_analytics", "hotjar"]
    ga, hotjar = detected
    assert ga.detection_method == DetectionMethod.FILE
    assert ga.evidence["file"].endswith("header.php")
    assert ga.extracted_id == "G-ABC1234"
    assert hotjar.evidence["file"].endswith("hotjar.js")
    assert hotjar.extracted_id == "3141592"


def test_vendor_directories_skipped(tmp_path):
    (tmp_path / "vendor" / "lib").mkdir(parents=True)
    (tmp_path / "vendor" / "lib" / "pixel.js").write_text("fbq('init', '123456789012345');")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "ga.js").write_text("ga('create', 'UA-1234-1');")
    assert scan_files([tmp_path], get_supported_trackers()) == []


def test_only_source_extensions_scanned(tmp_path):
    (tmp_path / "notes.txt").write_text("https://static.hotjar.com")
    (tmp_path / "layout.twig").write_text("<script src='https://static.hotjar.com/c/x.js'>")
    detected = scan_files([tmp_path], get_supported_trackers())
    assert len(detected) == 1
    assert detected[0].evidence["file"].endswith("layout.twig")


def test_keyword_without_id(tmp_path):
    (tmp_path / "footer.php").write_text("<!-- matomo.js loaded by the host -->")
    detected = scan_files([tmp_path], get_supported_trackers())
    assert [d.service_id for d in detected] == ["matomo"]
    assert detected[0].extracted_id is None


def test_missing_root_is_skipped(tmp_path, theme_dir):
    detected = scan_files([tmp_path / "missing", theme_dir], get_supported_trackers())
    assert len(detected) == 2


def test_oversized_files_skipped(tmp_path, monkeypatch):
    monkeypatch.setattr(files, "MAX_FILE_SIZE", 10)
    (tmp_path / "big.js").write_text("// https://static.hotjar.com/c/hotjar.js")
    assert scan_files([tmp_path], get_supported_trackers()) == []


def test_file_limit(tmp_path, monkeypatch):
    monkeypatch.setattr(files, "MAX_FILES", 1)
    (tmp_path / "a.js").write_text("hotjar")
    (tmp_path / "b.js").write_text("hotjar")
    assert len(scan_files([tmp_path], get_supported_trackers())) == 1


def test_one_file_can_match_several_trackers(tmp_path):
    catalog = get_supported_trackers()
    content = "ttq.load('C4ABCDEF'); pintrk('load', '2612345678901');"
    detected = scan_file_content(tmp_path / "mixed.js", content, catalog)
    assert {d.service_id: d.extracted_id for d in detected} == {
        "tiktok_pixel": "C4ABCDEF",
        "pinterest_tag": "2612345678901",
    }


def test_scan_roots_excludes_own_directory(tmp_path):
    theme = tmp_path / "theme"
    plugins = tmp_path / "plugins"
    settings = Settings(
        theme_dir=theme,
        child_theme_dir=theme,
        extension_dirs=[plugins / "shop", plugins / "notrack", plugins / "shop"],
        plugin_dir=plugins / "notrack",
    )
    assert scan_roots(settings) == [theme, plugins / "shop"]


def test_scan_roots_includes_child_theme(tmp_path):
    settings = Settings(theme_dir=tmp_path / "parent", child_theme_dir=tmp_path / "child")
    assert scan_roots(settings) == [tmp_path / "parent", tmp_path / "child"]


def test_single_keyword_file(tmp_path):
    path = tmp_path / "analytics.php"
    path.write_text("<?php // loads hotjar for the marketing team ?>")
    detected = scan_files([tmp_path], get_supported_trackers())
    assert len(detected) == 1
    assert detected[0].service_id == "hotjar"
    assert detected[0].detection_method == DetectionMethod.FILE
    assert detected[0].evidence == {"file": str(path)}
