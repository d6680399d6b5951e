import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .Core.errors import ConfigError
from .Core.header import DEFAULT_ADDRESS, DEFAULT_PORT, ProxyContext

logger = logging.getLogger(__name__)

SETTINGS_FILE = "proxy-settings.json"

# key registry
ADDRESS = "Address"
PORT = "Port"
CONNECT_TIMEOUT = "ConnectTimeout"


class Settings:
    """
    Key/value settings kept in a JSON file.

    Reading a key that is missing stores the default back into the file, so a
    first run leaves behind a settings file listing every option.

    Attributes:
        settings_file (Path): Path of the JSON file
    """

    def __init__(self, settings_file: Union[str, Path] = SETTINGS_FILE):
        self.settings_file = Path(settings_file)
        self._values = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.settings_file.exists():
            return {}
        try:
            with open(self.settings_file, 'r', encoding='utf-8') as f:
                values = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Failed to load settings from {self.settings_file}", cause=e)
        if not isinstance(values, dict):
            raise ConfigError(f"Settings file {self.settings_file} must hold a JSON object")
        return values

    def save(self):
        try:
            self.settings_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.settings_file, 'w', encoding='utf-8') as f:
                json.dump(self._values, f, indent=4, ensure_ascii=False)
        except OSError as e:
            logger.warning(f"Failed to save settings to {self.settings_file}: {e}")

    def read(self, key: str, default: Any) -> Any:
        """
        Return the stored value for key, storing and returning default if absent.
        """
        if key in self._values:
            return self._values[key]
        self._values[key] = default
        self.save()
        return default

    def __contains__(self, key: str) -> bool:
        return key in self._values


def load_context(
    settings: Settings,
    address: Optional[str] = None,
    port: Optional[int] = None,
    connect_timeout: Optional[float] = None,
) -> ProxyContext:
    """
    Build the listen configuration from settings, letting explicit arguments win.

    Overrides are not written back to the settings file.

    Raises:
        ConfigError: A value has the wrong type or is out of range
    """
    stored_address = settings.read(ADDRESS, DEFAULT_ADDRESS)
    stored_port = settings.read(PORT, DEFAULT_PORT)
    stored_timeout = settings.read(CONNECT_TIMEOUT, 0)

    address = stored_address if address is None else address
    port = stored_port if port is None else port
    connect_timeout = stored_timeout if connect_timeout is None else connect_timeout

    if not isinstance(address, str):
        raise ConfigError(f"{ADDRESS} must be a string, got {address!r}")

    try:
        port = int(port)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{PORT} must be an integer, got {port!r}", cause=e)
    if not 0 <= port <= 65535:
        raise ConfigError(f"{PORT} out of range: {port}")

    try:
        connect_timeout = float(connect_timeout or 0)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{CONNECT_TIMEOUT} must be a number, got {connect_timeout!r}", cause=e)
    if connect_timeout < 0:
        raise ConfigError(f"{CONNECT_TIMEOUT} cannot be negative: {connect_timeout}")

    return ProxyContext(
        address=address,
        port=port,
        connect_timeout=connect_timeout or None,
    )
