"""
Tests for customization detection (framework_manager/customization.py).
"""

import hashlib

from framework_manager.customization import CustomizationDetector, fingerprint


class TestFingerprint:
    """Tests for content fingerprints."""

    def test_fingerprint_is_sha256(self):
        """Test fingerprint matches a SHA256 hex digest."""
        assert fingerprint(b"abc") == hashlib.sha256(b"abc").hexdigest()

    def test_fingerprint_differs_on_single_byte(self):
        """Test any change alters the fingerprint."""
        assert fingerprint(b"# Title\n") != fingerprint(b"# Title \n")


class TestCustomizationDetector:
    """Tests for CustomizationDetector.is_customized."""

    def test_identical_files_not_customized(self, tmp_path):
        """Test byte-identical files are pristine."""
        source = tmp_path / "source.md"
        installed = tmp_path / "installed.md"
        source.write_bytes(b"content\n")
        installed.write_bytes(b"content\n")
        assert CustomizationDetector().is_customized(installed, source) is False

    def test_modified_file_customized(self, tmp_path):
        """Test edited content is detected."""
        source = tmp_path / "source.md"
        installed = tmp_path / "installed.md"
        source.write_bytes(b"content\n")
        installed.write_bytes(b"content\nmy notes\n")
        assert CustomizationDetector().is_customized(installed, source) is True

    def test_line_ending_change_customized(self, tmp_path):
        """Test content is compared byte for byte."""
        source = tmp_path / "source.md"
        installed = tmp_path / "installed.md"
        source.write_bytes(b"a\nb\n")
        installed.write_bytes(b"a\r\nb\r\n")
        assert CustomizationDetector().is_customized(installed, source) is True

    def test_missing_installed_file_not_customized(self, tmp_path):
        """Test an unreadable installed file counts as not customized."""
        source = tmp_path / "source.md"
        source.write_bytes(b"content\n")
        assert CustomizationDetector().is_customized(tmp_path / "missing.md", source) is False

    def test_missing_source_not_customized(self, tmp_path):
        """Test an unreadable source counts as not customized."""
        installed = tmp_path / "installed.md"
        installed.write_bytes(b"content\n")
        assert CustomizationDetector().is_customized(installed, tmp_path / "missing.md") is False
