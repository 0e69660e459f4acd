"""Tests for host detection."""
from mystic.discovery.hwdetect import SystemDetector


class TestSystemDetector:
    """Test host facts used by deploy preflight."""

    def test_memory_from_meminfo(self, tmp_path):
        meminfo = tmp_path / "meminfo"
        meminfo.write_text("MemTotal:       32780064 kB\nMemFree:        1000000 kB\n")

        detector = SystemDetector(meminfo_path=meminfo)
        assert detector.memory_gb() == 31

    def test_memory_unknown(self, tmp_path):
        detector = SystemDetector(meminfo_path=tmp_path / "missing")
        assert detector.memory_gb() is None

    def test_disk_free(self, tmp_path):
        free = SystemDetector().disk_free_gb(tmp_path)
        assert isinstance(free, int)
        assert free >= 0

    def test_disk_free_missing_path(self, tmp_path):
        assert SystemDetector().disk_free_gb(tmp_path / "missing") is None

    def test_nvidia_gpu(self):
        detector = SystemDetector(run_cmd=lambda cmd: "NVIDIA GeForce RTX 4090\n")
        detector._cmd_exists = lambda cmd: True
        assert detector.nvidia_gpu() == "NVIDIA GeForce RTX 4090"

    def test_nvidia_driver_failure(self):
        detector = SystemDetector(
            run_cmd=lambda cmd: "NVIDIA-SMI has failed because it couldn't communicate with the driver"
        )
        detector._cmd_exists = lambda cmd: True
        assert detector.nvidia_gpu() is None

    def test_no_nvidia_smi(self):
        detector = SystemDetector(run_cmd=lambda cmd: "should not run")
        detector._cmd_exists = lambda cmd: False
        assert detector.nvidia_gpu() is None

    def test_detect_all_keys(self, tmp_path):
        detector = SystemDetector(meminfo_path=tmp_path / "missing")
        detector._cmd_exists = lambda cmd: False
        facts = detector.detect_all(tmp_path)
        assert set(facts) == {"root", "disk_free_gb", "memory_gb", "gpu"}
