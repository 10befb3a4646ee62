import subprocess
import sys


def test_cli_help() -> None:
    cp = subprocess.run(
        [sys.executable, "-m", "varobs", "--help"],
        check=True,
        capture_output=True,
        text=True,
    )
    assert "varobs" in cp.stdout.lower()
