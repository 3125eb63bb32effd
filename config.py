#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Configuration module for Playlist Digest.

Defines configuration parameters and loads values from environment variables.
"""

import os
import logging
from typing import Dict, Any

# Initialize a basic logger for config loading issues
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Default configuration values
_CONFIG_DEFAULTS: Dict[str, Any] = {
    # API Keys
    "YOUTUBE_API_KEY": "",
    "GEMINI_API_KEY": "",

    # Input selection
    "PLAYLIST_ID": "PLoILbKo9rG3skRCj37Kn5Zj803hhiuRK6",
    "RELEASE_NOTES_DIR": "./releasenote",
    "REFERENCE_MIME_TYPE": "application/pdf",
    "MAX_VIDEOS_PER_RUN": 0,  # 0 = no limit

    # YouTube API Settings
    "BATCH_SIZE": 50,  # Max allowed by YouTube API for playlistItems.list
    "API_TIMEOUT_SECONDS": 10.0,  # Timeout for a single playlist page request

    # Gemini Settings
    "GEMINI_MODEL": "gemini-2.5-flash",
    "SUMMARY_TEMPERATURE": 0.1,
    "SUMMARY_THINKING_BUDGET": -1,  # -1 = dynamic thinking
    "VALIDATION_TEMPERATURE": 0.0,
    "VALIDATION_THINKING_BUDGET": 24576,

    # Concurrency
    "LLM_CONCURRENCY_LIMIT": 5,  # Concurrent videos in flight against Gemini

    # Output
    "OUTPUT_DIR": "markdown",
    "COLLISION_POLICY": "suffix",  # "suffix" or "overwrite"
    "DEFAULT_ENCODING": "utf-8",
    "LOG_FILE": "playlist_digest.log",
}

COLLISION_POLICIES = ("suffix", "overwrite")


class Config:
    """Configuration class that loads values from environment variables."""

    def __init__(self, load_from_env=True):
        """Initialize configuration with default values and optionally from environment.

        Args:
            load_from_env: Whether to load values from environment variables
        """
        for key, value in _CONFIG_DEFAULTS.items():
            setattr(self, key, value)

        if load_from_env:
            self.load_from_env()

    def load_from_env(self, warn_missing_keys=False):
        """Load configuration values from environment variables.

        Args:
            warn_missing_keys: Log a warning for each missing API key. Left off for
                the import-time load, which runs before any .env file is read.
        """
        self.YOUTUBE_API_KEY = os.environ.get("YOUTUBE_API_KEY", self.YOUTUBE_API_KEY)
        self.GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", self.GEMINI_API_KEY)

        self._load_str_from_env("PLAYLIST_ID")
        self._load_str_from_env("RELEASE_NOTES_DIR")
        self._load_str_from_env("OUTPUT_DIR")
        self._load_str_from_env("GEMINI_MODEL")
        self._load_str_from_env("LOG_FILE")

        policy = os.environ.get("COLLISION_POLICY")
        if policy is not None:
            if policy.strip().lower() in COLLISION_POLICIES:
                self.COLLISION_POLICY = policy.strip().lower()
            else:
                logger.warning(f"Invalid COLLISION_POLICY value: {policy}. Keeping '{self.COLLISION_POLICY}'.")

        self._load_int_from_env("MAX_VIDEOS_PER_RUN")
        self._load_int_from_env("BATCH_SIZE")
        self._load_float_from_env("API_TIMEOUT_SECONDS")
        self._load_float_from_env("SUMMARY_TEMPERATURE")
        self._load_int_from_env("SUMMARY_THINKING_BUDGET")
        self._load_float_from_env("VALIDATION_TEMPERATURE")
        self._load_int_from_env("VALIDATION_THINKING_BUDGET")

        if self._load_int_from_env("LLM_CONCURRENCY_LIMIT") and self.LLM_CONCURRENCY_LIMIT < 1:
            logger.warning(f"LLM_CONCURRENCY_LIMIT must be >= 1, got {self.LLM_CONCURRENCY_LIMIT}. Using 1.")
            self.LLM_CONCURRENCY_LIMIT = 1

        if warn_missing_keys:
            if not self.YOUTUBE_API_KEY:
                logger.warning("API key not found in env var YOUTUBE_API_KEY.")
            if not self.GEMINI_API_KEY:
                logger.warning("API key not found in env var GEMINI_API_KEY.")

    def _load_str_from_env(self, key):
        """Load a non-empty string value from environment variable.

        Args:
            key: The configuration key to load

        Returns:
            bool: True if the value was loaded, False otherwise
        """
        env_value = os.environ.get(key)
        if env_value is not None and env_value.strip():
            setattr(self, key, env_value.strip())
            return True
        return False

    def _load_int_from_env(self, key):
        """Load an integer value from environment variable.

        Args:
            key: The configuration key to load

        Returns:
            bool: True if the value was loaded, False otherwise
        """
        env_value = os.environ.get(key)
        if env_value is not None:
            try:
                setattr(self, key, int(env_value))
                return True
            except ValueError:
                logger.warning(f"Invalid integer value for {key}: {env_value}")
        return False

    def _load_float_from_env(self, key):
        """Load a float value from environment variable.

        Args:
            key: The configuration key to load

        Returns:
            bool: True if the value was loaded, False otherwise
        """
        env_value = os.environ.get(key)
        if env_value is not None:
            try:
                setattr(self, key, float(env_value))
                return True
            except ValueError:
                logger.warning(f"Invalid float value for {key}: {env_value}")
        return False


# Create a single instance of Config to be imported by other modules
config = Config(load_from_env=True)
