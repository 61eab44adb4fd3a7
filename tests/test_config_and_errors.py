"""
Tests for configuration loading and the error handler.
"""

import logging

import pytest

from cam_geometry import BulgePolicy
from cleaner_config import CleanerConfig, configure_logging, normalizer_config_from_env
from error_handler import ErrorHandler, handle_errors


def test_normalizer_config_defaults(monkeypatch):
    for name in ('CAM_CLEANER_BULGE_POLICY', 'CAM_CLEANER_CANONICAL_TOLERANCE',
                 'CAM_CLEANER_ANTIPARALLEL_TOLERANCE'):
        monkeypatch.delenv(name, raising=False)

    config = normalizer_config_from_env()
    assert config.bulge_policy is BulgePolicy.NEGATE
    assert config.canonical_tolerance == 0.0


def test_normalizer_config_from_env(monkeypatch):
    monkeypatch.setenv('CAM_CLEANER_BULGE_POLICY', 'Handedness')
    monkeypatch.setenv('CAM_CLEANER_CANONICAL_TOLERANCE', '1e-10')

    config = normalizer_config_from_env()
    assert config.bulge_policy is BulgePolicy.HANDEDNESS
    assert config.canonical_tolerance == 1e-10


def test_invalid_bulge_policy(monkeypatch):
    monkeypatch.setenv('CAM_CLEANER_BULGE_POLICY', 'mirror')
    with pytest.raises(ValueError):
        normalizer_config_from_env()


def test_allowed_file():
    assert CleanerConfig.allowed_file('part.DXF')
    assert not CleanerConfig.allowed_file('part.dwg')
    assert not CleanerConfig.allowed_file('dxf')


def test_default_config_is_valid():
    assert CleanerConfig.validate_config() == []


def test_configure_logging_with_file(tmp_path):
    log_file = tmp_path / 'cleaner.log'
    configure_logging(level='DEBUG', log_file=str(log_file))
    logging.getLogger('test').debug('hello')

    for handler in logging.getLogger().handlers:
        handler.flush()
    assert 'hello' in log_file.read_text()
    configure_logging(log_file='')


def test_error_threshold_triggers_alert():
    handler = ErrorHandler()
    handler.error_thresholds['geometry_error'] = 2

    handler.log_error('geometry_error', ValueError('first'))
    assert handler.get_error_stats()['alerts'] == []
    handler.log_error('geometry_error', ValueError('second'))

    stats = handler.get_error_stats()
    assert stats['alerts'] == ['geometry_error_ValueError']
    assert stats['total_errors'] == 2
    handler.reset_error_counts()
    assert handler.get_error_stats()['total_errors'] == 0


def test_handle_errors_fallback_and_reraise():
    @handle_errors('processing_error', fallback_response={'ok': False})
    def broken():
        raise RuntimeError('boom')

    @handle_errors('processing_error')
    def broken_strict():
        raise RuntimeError('boom')

    assert broken() == {'ok': False}
    with pytest.raises(RuntimeError):
        broken_strict()
