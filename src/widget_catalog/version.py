"""Framework version lookup."""

import json
import logging
import subprocess
from pathlib import Path
from typing import Protocol, runtime_checkable

from .errors import ConfigurationError
from .models import VersionInfo

logger = logging.getLogger(__name__)


@runtime_checkable
class VersionInfoProvider(Protocol):
    """Anything that can report the framework version and channel."""

    def get_version(self) -> VersionInfo:
        ...


class StaticVersionProvider:
    """Serves an explicitly configured version."""

    def __init__(self, version: str, channel: str):
        self.info = VersionInfo(version=version, channel=channel)

    def get_version(self) -> VersionInfo:
        return self.info


class FlutterVersionProvider:
    """Asks the SDK's ``flutter`` tool for the framework version.

    Runs ``<sdk>/bin/flutter --version --machine`` and reads the
    ``frameworkVersion`` and ``channel`` keys of its JSON output.
    """

    def __init__(self, sdk_path: Path, timeout: int = 120):
        self.sdk_path = sdk_path
        self.timeout = timeout

    @property
    def executable(self) -> Path:
        return self.sdk_path / "bin" / "flutter"

    def get_version(self) -> VersionInfo:
        """Return the SDK's version info.

        Raises:
            ConfigurationError: the tool is missing, fails, or prints unexpected output
        """
        command = [str(self.executable), "--version", "--machine"]
        logger.debug("Running %s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ConfigurationError(f"Flutter tool not found: {self.executable}") from e
        except subprocess.CalledProcessError as e:
            raise ConfigurationError(
                f"'{' '.join(command)}' exited with status {e.returncode}: {e.stderr.strip()}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ConfigurationError(f"'{' '.join(command)}' timed out") from e

        return parse_version_output(result.stdout)


def parse_version_output(output: str) -> VersionInfo:
    """Parse the JSON printed by ``flutter --version --machine``.

    The tool may print progress lines before the JSON object, so parsing
    starts at the first ``{``.
    """
    start = output.find("{")
    if start == -1:
        raise ConfigurationError("Flutter version output contains no JSON")
    try:
        data = json.loads(output[start:])
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Malformed Flutter version output: {e}") from e

    version = data.get("frameworkVersion") if isinstance(data, dict) else None
    channel = data.get("channel") if isinstance(data, dict) else None
    if not isinstance(version, str) or not isinstance(channel, str):
        raise ConfigurationError("Flutter version output lacks 'frameworkVersion' or 'channel'")
    return VersionInfo(version=version, channel=channel)
