# SPDX-FileCopyrightText: 2025 DB Systel GmbH
#
# SPDX-License-Identifier: Apache-2.0

"""Handling the private and organisation configuration"""

import logging
import os
import re

import yaml
from jsonschema import FormatChecker, validate
from jsonschema.exceptions import ValidationError

# Global files with settings for the app and org, e.g. GitHub token and org name
ORG_CONFIG_FILE = r"org\.ya?ml"
APP_CONFIG_FILE = r"app\.ya?ml"

# Schemas for config validation
APP_CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "github_token": {"type": "string"},
        "github_app_id": {"type": "integer"},
        "github_app_private_key": {"type": "string"},
        "workers": {"type": "integer", "minimum": 1},
    },
    "additionalProperties": False,
}
ORG_CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "org_name": {"type": "string"},
    },
    "additionalProperties": False,
    "required": ["org_name"],
}


def _find_matching_files(directory: str, pattern: str, only_one: bool = False) -> list[str]:
    """Paths of the files in `directory` whose name fully matches `pattern`,
    sorted by name. With `only_one`, only the first of them"""
    matching_files: list[str] = []

    # Validate directory existence
    if not os.path.isdir(directory):
        logging.error("'%s' is not a valid directory", directory)

    else:
        regex_pattern = re.compile(pattern + "$")

        for file_name in sorted(os.listdir(directory)):
            if regex_pattern.match(file_name):
                file_path = os.path.join(directory, file_name)
                if os.path.isfile(file_path):
                    matching_files.append(file_path)
                else:
                    logging.warning(
                        "'%s' looks like a file we searched for, but it's not. "
                        "Will not consider its contents",
                        file_path,
                    )

        if only_one and len(matching_files) > 1:
            matching_files = [matching_files[0]]
            logging.warning(
                "More than one configuration file for the pattern '%s' found. "
                "Reducing to the first match as wished: %s",
                pattern,
                matching_files[0],
            )

    if not matching_files:
        logging.info("No configuration file found for '%s' in '%s'", pattern, directory)

    return matching_files


def _read_config_file(file: str) -> dict:
    """Return dict of a YAML file"""
    logging.debug("Attempting to parse YAML file %s", file)
    with open(file, encoding="UTF-8") as yamlfile:
        config: dict = yaml.safe_load(yamlfile)

    if not config:
        config = {}

    return config


def _validate_config_schema(file: str, cfg: dict, schema: dict) -> None:
    """Validate the config against a JSON schema"""
    try:
        validate(instance=cfg, schema=schema, format_checker=FormatChecker())
    except ValidationError as e:
        logging.critical("Config validation of file %s failed: %s", file, e.message)
        raise ValueError(e) from None
    logging.debug("Config in file %s validated successfully against schema.", file)


def _parse_config_file(path: str, pattern: str, schema: dict) -> dict:
    """Find, read and validate a single configuration file. Returns an empty
    dict if there is none"""
    files = _find_matching_files(path, pattern, only_one=True)
    if not files:
        return {}

    cfg = _read_config_file(files[0])
    _validate_config_schema(file=files[0], cfg=cfg, schema=schema)
    return cfg


def parse_config_files(path: str) -> tuple[dict, dict]:
    """Parse all relevant files in the configuration directory. Returns a tuple
    of org config and app config"""
    cfg_org = _parse_config_file(path, ORG_CONFIG_FILE, ORG_CONFIG_SCHEMA)
    cfg_app = _parse_config_file(path, APP_CONFIG_FILE, APP_CONFIG_SCHEMA)

    return cfg_org, cfg_app
