import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional


class SystemDetector:
    """
    Collects the host facts the deploy preflight reports on.
    Disk, memory and GPU detection never raise; unknown values come back
    as None.
    """

    def __init__(self, run_cmd=None, meminfo_path: Path = Path("/proc/meminfo")):
        self.run_cmd = run_cmd or self._run
        self.meminfo_path = meminfo_path

    def detect_all(self, path: Path = Path(".")) -> Dict[str, Any]:
        return {
            "root": self.is_root(),
            "disk_free_gb": self.disk_free_gb(path),
            "memory_gb": self.memory_gb(),
            "gpu": self.nvidia_gpu(),
        }

    # -----------------------------
    #  Individual detectors
    # -----------------------------
    def is_root(self) -> bool:
        return os.geteuid() == 0

    def disk_free_gb(self, path: Path) -> Optional[int]:
        try:
            return shutil.disk_usage(path).free // (1024 ** 3)
        except OSError:
            return None

    def memory_gb(self) -> Optional[int]:
        try:
            meminfo = self.meminfo_path.read_text()
        except OSError:
            return None
        match = re.search(r"MemTotal:\s+(\d+)", meminfo)
        if not match:
            return None
        return int(match.group(1)) // 1024 // 1024

    def nvidia_gpu(self) -> Optional[str]:
        if not self._cmd_exists("nvidia-smi"):
            return None
        out = self.run_cmd("nvidia-smi --query-gpu=name --format=csv,noheader")
        lines = [line.strip() for line in out.splitlines() if line.strip()]
        if not lines or "failed" in lines[0].lower():
            return None
        return lines[0]

    # -----------------------------
    #  Utility helpers
    # -----------------------------
    def _cmd_exists(self, cmd: str) -> bool:
        return shutil.which(cmd) is not None

    def _run(self, cmd: str) -> str:
        return subprocess.getoutput(cmd)
