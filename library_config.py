"""
Library Configuration - Scan root directories from config.json

Format:
    {"photosDirectories": ["./photos", "/mnt/external/photos"]}

Older shapes are still accepted:
    {"photosDirectories": "./photos"}
    {"photosDirectory": "./photos"}
"""

import json
import logging
import os

error_logger = logging.getLogger('errors')

DEFAULT_PHOTOS_DIRECTORIES = ['./photos']


def normalize_config(config):
    """
    Coerce a loaded config dict to the current shape.

    Returns:
        dict: Config with 'photosDirectories' as a list of strings
    """
    config = dict(config) if isinstance(config, dict) else {}

    directories = config.get('photosDirectories')
    if directories is None and config.get('photosDirectory'):
        directories = config.pop('photosDirectory')

    if isinstance(directories, str):
        directories = [directories]
    elif not isinstance(directories, list):
        directories = list(DEFAULT_PHOTOS_DIRECTORIES)

    config['photosDirectories'] = [d for d in directories if isinstance(d, str) and d.strip()]
    return config


def load_config(config_path):
    """
    Load scan configuration, falling back to defaults.

    Args:
        config_path: Path to config.json

    Returns:
        dict: Normalized config
    """
    config = {'photosDirectories': list(DEFAULT_PHOTOS_DIRECTORIES)}
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                config = json.load(f)
        except (OSError, ValueError) as e:
            error_logger.error(f"Error reading {config_path}, using defaults: {e}")
    return normalize_config(config)


def save_config(config_path, photos_directories):
    """
    Save the scan root list to config.json.

    Args:
        config_path: Path to config.json
        photos_directories: List of directory strings

    Returns:
        dict: The saved config
    """
    config = normalize_config({'photosDirectories': list(photos_directories)})
    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)
    return config


def get_scan_roots(config_path):
    """Config provider used by the scanner: the current root list."""
    return load_config(config_path)['photosDirectories']
