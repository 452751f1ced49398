"""Scan configuration and logging setup."""

import logging
from dataclasses import dataclass
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

DEFAULT_LARGE_FILE_THRESHOLD = 10 * 1024 * 1024
DEFAULT_MAX_TREE_DEPTH = 256


# ------------------ Configuration ------------------
@dataclass
class ScanConfig:
    """Configuration class for scan parameters"""
    max_workers: int = 4
    output_format: str = "text"  # text, json
    group_by: str = "lockfile"  # lockfile, package
    enable_logging: bool = True
    log_level: str = "WARNING"
    log_file: Optional[str] = None
    known_bad_path: Optional[str] = None
    large_file_threshold: int = DEFAULT_LARGE_FILE_THRESHOLD
    max_tree_depth: int = DEFAULT_MAX_TREE_DEPTH
    output_file: Optional[str] = None

    @classmethod
    def from_args(cls, args) -> "ScanConfig":
        """Build a configuration from parsed command line options"""
        config = cls()
        config.output_format = "json" if args.json else "text"
        config.group_by = args.group_by
        config.log_level = args.log_level
        config.log_file = args.log_file
        config.known_bad_path = args.known_bad
        config.output_file = args.output
        if args.workers is not None:
            config.max_workers = max(1, args.workers)
        return config


# ------------------ Logging ------------------
def setup_logging(config: ScanConfig):
    """Setup logging on stderr, plus a log file when one is configured"""
    if config.enable_logging:
        handlers = [logging.StreamHandler()]
        if config.log_file:
            handlers.append(logging.FileHandler(config.log_file))
        logging.basicConfig(
            level=getattr(logging, config.log_level.upper(), logging.WARNING),
            format=LOG_FORMAT,
            handlers=handlers,
            force=True,
        )
    else:
        logging.basicConfig(level=logging.CRITICAL, force=True)
