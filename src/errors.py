"""Error taxonomy for the driver.

Fatal errors propagate to the caller. Soft errors (stack not found,
unsupported command, engine too old) are caught by the lifecycle layer,
logged, and turned into results instead of exceptions.
"""

from typing import Optional

PAGE_SIZE_FLAG_MARKER = 'unknown flag: --page-size'


class DriverError(Exception):
    """Base exception for driver errors."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class UnsupportedPlatformError(DriverError):
    """Requested cloud platform is not in the supported set."""

    def __init__(self, platform: Optional[str], supported: list[str]):
        self.platform = platform
        self.supported = list(supported)
        super().__init__(
            "E100",
            f"{platform} not supported now, supported cloud platform includes {self.supported}"
        )


class CredentialsNotFoundError(DriverError):
    """No credentials supplied and none found in the access file."""

    def __init__(self, alias: str, detail: str = ''):
        self.alias = alias
        message = f"Credentials not found for access alias '{alias}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__("E101", message)


class StackNotFoundError(DriverError):
    """Stack has no backing record in the engine."""

    def __init__(self, stack_name: str):
        self.stack_name = stack_name
        super().__init__("E200", f"Stack: {stack_name} not exist, please create it first!")


class UnsupportedCommandError(DriverError):
    """Unknown sub-command or wrong number of positional arguments."""

    def __init__(self, message: str):
        super().__init__("E300", message)


class EngineVersionIncompatibleError(DriverError):
    """Local engine binary is too old for the flags the driver passes."""

    def __init__(self, detail: str = ''):
        self.detail = detail
        super().__init__(
            "E400",
            "The local pulumi binary does not support the flags this driver uses. "
            "Please upgrade pulumi (https://www.pulumi.com/docs/install/) and retry."
        )


class PluginUnsupportedError(DriverError):
    """No plugin mapping exists for the platform."""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__("E401", f"No pulumi plugin available for platform: {platform}")


class EngineCommandError(DriverError):
    """A pulumi command exited non-zero."""

    def __init__(self, args: list[str], returncode: int, stdout: str = '', stderr: str = ''):
        self.args_list = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        detail = stderr.strip() or stdout.strip() or 'no output'
        super().__init__("E402", f"pulumi {' '.join(self.args_list)} failed (rc={returncode}): {detail}")


class EngineInstallError(DriverError):
    """Engine binary could not be installed."""

    def __init__(self, message: str):
        super().__init__("E500", message)


def classify_engine_failure(exc: BaseException) -> Optional[EngineVersionIncompatibleError]:
    """Return an EngineVersionIncompatibleError if exc carries the marker.

    Checks the exception text and, for EngineCommandError, the captured
    stdout/stderr. Returns None for any other failure.
    """
    texts = [str(exc)]
    if isinstance(exc, EngineCommandError):
        texts.extend([exc.stdout, exc.stderr])
    for text in texts:
        if text and PAGE_SIZE_FLAG_MARKER in text:
            return EngineVersionIncompatibleError(detail=text)
    return None
