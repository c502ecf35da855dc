"""
Browser setup helper.

Installed as the ``pagefetch-install-browser`` console script. Downloads the
Chromium build used by Playwright unless a usable browser is already found.
"""
import subprocess
import sys

from pagefetch.errors import StartupFailure
from pagefetch.infrastructure.browser_supervisor import find_browser_executable


def install_browser() -> int:
    """
    Make sure a browser executable is available.

    Returns:
        Process exit code (0 on success)
    """
    try:
        path = find_browser_executable()
    except StartupFailure:
        path = None

    if path:
        print(f"Using browser at {path}")
        return 0

    print("Running 'playwright install chromium'...")
    try:
        result = subprocess.run(
            [sys.executable, "-m", "playwright", "install", "chromium"],
            check=True,
            capture_output=True,
            text=True
        )
        if result.stdout:
            print(result.stdout)
        print("Chromium browser installed successfully.")
        return 0
    except subprocess.CalledProcessError as e:
        print(f"Error installing Chromium browser for Playwright: {e}", file=sys.stderr)
        if e.stderr:
            print(e.stderr, file=sys.stderr)
    except FileNotFoundError as e:
        print(f"Error: Could not find Python executable: {e}", file=sys.stderr)

    print(
        "Please run the following command manually:\n"
        "  python -m playwright install chromium\n"
        "or point CHROME_EXECUTABLE at an installed Chrome/Chromium.",
        file=sys.stderr
    )
    return 1


def main():
    sys.exit(install_browser())


if __name__ == "__main__":
    main()
