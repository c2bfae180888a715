"""
Administrator/root privilege check with a single relaunch attempt.
"""
import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from typing import List, Optional

from ..errors import ElevationDeniedError

RELAUNCH_MARKER = "DEVCHAIN_ELEVATED_RELAUNCH"


@dataclass(frozen=True)
class ElevationToken:
    """
    Proof that the privilege precondition was checked.

    Trust store and hosts file mutations take a token as a parameter.
    """
    elevated: bool
    method: str


def require_token(token) -> ElevationToken:
    """Reject calls that did not go through ``ElevationService.ensure_elevated``."""
    if not isinstance(token, ElevationToken):
        raise ElevationDeniedError("This operation requires an elevation token")
    return token


class ElevationService:
    """Checks for administrator/root privileges once per process."""

    def __init__(self, required: bool = True, argv: Optional[List[str]] = None):
        self.required = required
        self.argv = list(sys.argv if argv is None else argv)
        self.logger = logging.getLogger(__name__)

    def is_elevated(self) -> bool:
        """Return True when running as root (POSIX) or administrator (Windows)."""
        if sys.platform == "win32":
            import ctypes
            try:
                return bool(ctypes.windll.shell32.IsUserAnAdmin())
            except (AttributeError, OSError):
                return False
        return os.geteuid() == 0

    def ensure_elevated(self) -> ElevationToken:
        """
        Return an elevation token, relaunching elevated at most once.

        When the relaunch starts the current process exits with the child's
        status.

        Raises:
            ElevationDeniedError: If privileges cannot be obtained
        """
        if not self.required:
            self.logger.info("Elevation not required by configuration")
            return ElevationToken(elevated=False, method="not-required")

        if self.is_elevated():
            return ElevationToken(elevated=True, method="already-elevated")

        if os.environ.get(RELAUNCH_MARKER):
            raise ElevationDeniedError("Relaunched process is still not elevated")

        self.logger.warning("Administrator privileges required, relaunching elevated")
        exit_code = self._relaunch()
        sys.exit(exit_code)

    def _relaunch(self) -> int:
        """Start one elevated copy of this process and return its exit status."""
        if sys.platform == "win32":
            return self._relaunch_windows()

        command = ["sudo", "env", f"{RELAUNCH_MARKER}=1", sys.executable, "-m", "devchain.main", *self.argv[1:]]
        try:
            completed = subprocess.run(command)
        except OSError as e:
            raise ElevationDeniedError(f"Must be an administrator to install certificates: {e}") from e
        return completed.returncode

    def _relaunch_windows(self) -> int:
        import ctypes
        os.environ[RELAUNCH_MARKER] = "1"
        params = subprocess.list2cmdline(["-m", "devchain.main", *self.argv[1:]])
        try:
            result = ctypes.windll.shell32.ShellExecuteW(None, "runas", sys.executable, params, None, 1)
        except (AttributeError, OSError) as e:
            raise ElevationDeniedError(f"Must be an administrator to install certificates: {e}") from e
        if result <= 32:
            raise ElevationDeniedError("Must be an administrator to install certificates")
        return 0
