"""
Configuration for the CAM cleaner service and commands.
Values come from the environment; cam_cleaner.env is loaded first if present.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from dotenv import load_dotenv

from cam_geometry.normals import BulgePolicy, NormalizerConfig

load_dotenv('cam_cleaner.env')


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class CleanerConfig:
    """Service and command configuration"""

    # Server Configuration
    HOST = os.environ.get('CAM_CLEANER_HOST', '127.0.0.1')
    PORT = int(os.environ.get('CAM_CLEANER_PORT', 5000))
    DEBUG = _env_bool('CAM_CLEANER_DEBUG', False)

    # File Upload Configuration
    MAX_CONTENT_LENGTH = 50 * 1024 * 1024  # 50MB max file size
    ALLOWED_EXTENSIONS = {'dxf'}

    # Geometry
    MAX_SAGITTA = float(os.environ.get('CAM_CLEANER_MAX_SAGITTA', 0.01))

    # Logging Configuration
    LOG_LEVEL = os.environ.get('CAM_CLEANER_LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('CAM_CLEANER_LOG_FILE', '')
    LOG_MAX_SIZE = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    @classmethod
    def allowed_file(cls, filename: str) -> bool:
        return '.' in filename and filename.rsplit('.', 1)[1].lower() in cls.ALLOWED_EXTENSIONS

    @classmethod
    def validate_config(cls):
        """Validate configuration settings, returns a list of problems"""
        errors = []
        if not 0 < cls.PORT < 65536:
            errors.append(f"Invalid port: {cls.PORT}")
        if cls.MAX_SAGITTA <= 0:
            errors.append(f"Max sagitta must be positive, got {cls.MAX_SAGITTA}")
        if logging.getLevelName(cls.LOG_LEVEL.upper()) not in (
            logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL
        ):
            errors.append(f"Unknown log level: {cls.LOG_LEVEL}")
        if cls.LOG_FILE and not Path(cls.LOG_FILE).parent.exists():
            errors.append(f"Log directory does not exist: {Path(cls.LOG_FILE).parent}")
        return errors


def normalizer_config_from_env() -> NormalizerConfig:
    """Build the normalizer configuration from CAM_CLEANER_* variables"""
    policy = os.environ.get('CAM_CLEANER_BULGE_POLICY', BulgePolicy.NEGATE.value)
    try:
        bulge_policy = BulgePolicy(policy.strip().lower())
    except ValueError:
        raise ValueError(
            f"CAM_CLEANER_BULGE_POLICY must be one of "
            f"{[p.value for p in BulgePolicy]}, got {policy!r}"
        )
    return NormalizerConfig(
        canonical_tolerance=float(os.environ.get('CAM_CLEANER_CANONICAL_TOLERANCE', 0.0)),
        antiparallel_tolerance=float(os.environ.get('CAM_CLEANER_ANTIPARALLEL_TOLERANCE', 1e-9)),
        bulge_policy=bulge_policy,
    )


def configure_logging(level: str = None, log_file: str = None):
    """Configure structured logging to stdout and, optionally, a rotating file"""
    level = (level or CleanerConfig.LOG_LEVEL).upper()
    log_file = CleanerConfig.LOG_FILE if log_file is None else log_file

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(RotatingFileHandler(
            log_file,
            maxBytes=CleanerConfig.LOG_MAX_SIZE,
            backupCount=CleanerConfig.LOG_BACKUP_COUNT,
        ))

    logging.basicConfig(
        level=level,
        format=CleanerConfig.LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
