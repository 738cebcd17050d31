import sys
from logging import Logger
from pathlib import Path

import yaml

"""
Config
Loads the sync's YAML configuration (Looker credentials, warehouse
destination, pool tuning) before a run is built. A config that cannot be
read is fatal at startup, so failures exit the process.
"""


class ConfigReader:
    def __init__(self, log: Logger, configs_path: Path) -> None:
        """Initializes the reader with a configuration file path and a logger.

        :param configs_path: Path to the YAML configuration file.
        :param log: Logger instance for logging messages.
        """
        self.configs_path = Path(configs_path)
        self.configs_data = None
        self.log = log

    def load_configurations(self) -> "ConfigReader":
        """Loads the YAML file into the configs_data attribute.

        :return: Self for fluent interface.
        :raises SystemExit: If the file does not exist, cannot be parsed, or
            does not hold a mapping at the top level.
        """
        try:
            self._check_path_exists()
        except FileNotFoundError as e:
            self.log.error("Issue loading file: %s" % (e))
            sys.exit(1)

        try:
            with open(self.configs_path, "rb") as configs_file:
                data = yaml.safe_load(configs_file)
        except (OSError, yaml.YAMLError) as e:
            self.log.error(
                "Issue loading file '%s': %s" % (self.configs_path, e)
            )
            sys.exit(1)

        if not isinstance(data, dict):
            self.log.error(
                "Config file '%s' must contain a mapping, got %s"
                % (self.configs_path, type(data).__name__)
            )
            sys.exit(1)
        self.configs_data = data
        return self

    def _check_path_exists(self) -> None:
        """Checks that the config path exists and is a regular file.

        :raises FileNotFoundError: If the configuration file does not exist.
        """
        if not self.configs_path.is_file():
            raise FileNotFoundError(
                "The file '%s' does not exist." % (self.configs_path)
            )
