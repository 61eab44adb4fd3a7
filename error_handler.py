"""
Error handling for the CAM cleaner commands and web service.
Counts errors per type, logs them with context and raises alerts on repeats.
"""

import logging
import threading
import traceback
from datetime import datetime
from functools import wraps
from typing import Any, Dict

from ezdxf.lldxf.const import DXFStructureError

from cam_geometry.polyline import GeometryError

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Raised when a drawing command cannot run"""
    pass


class EntityNotFound(CommandError):
    pass


class CommitError(CommandError):
    pass


class ErrorHandler:
    """Centralized error handling and logging"""

    def __init__(self):
        self.error_counts = {}
        self.error_thresholds = {
            'file_error': 15,
            'geometry_error': 20,
            'command_error': 10,
            'processing_error': 20
        }
        self.alerted = set()
        self.lock = threading.Lock()

    def log_error(self, error_type: str, error: Exception, context: Dict[str, Any] = None):
        """Log error with context and check thresholds"""
        error_key = f"{error_type}_{type(error).__name__}"

        with self.lock:
            self.error_counts[error_key] = self.error_counts.get(error_key, 0) + 1
            count = self.error_counts[error_key]

        error_details = {
            'timestamp': datetime.now().isoformat(),
            'error_type': error_type,
            'error_class': type(error).__name__,
            'error_message': str(error),
            'traceback': traceback.format_exc(),
            'context': context or {},
            'count': count
        }

        logger.error(f"Error {error_key}: {error_details['error_message']} (context: {error_details['context']})")
        logger.debug(error_details['traceback'])

        threshold = self.error_thresholds.get(error_type, 10)
        if count >= threshold:
            self._trigger_alert(error_key, error_details)

    def _trigger_alert(self, error_key: str, error_details: Dict[str, Any]):
        """Flag an error key once its count reaches the threshold"""
        with self.lock:
            self.alerted.add(error_key)
        logger.critical(f"Error threshold exceeded for {error_key}: {error_details['count']} occurrences")

    def get_error_stats(self) -> Dict[str, Any]:
        """Get error statistics"""
        with self.lock:
            return {
                'error_counts': dict(self.error_counts),
                'total_errors': sum(self.error_counts.values()),
                'error_thresholds': dict(self.error_thresholds),
                'alerts': sorted(self.alerted)
            }

    def reset_error_counts(self):
        with self.lock:
            self.error_counts.clear()
            self.alerted.clear()
        logger.info("Error counts reset")


# Global error handler instance
error_handler = ErrorHandler()


def create_error_response(error_message: str, error_code: int = 500, details: Dict[str, Any] = None) -> tuple:
    """Create standardized error response"""
    response = {
        'success': False,
        'error': error_message,
        'timestamp': datetime.now().isoformat(),
        'details': details or {}
    }
    return response, error_code


def handle_errors(error_type: str, fallback_response: Any = None):
    """Decorator that logs any exception; returns fallback_response or re-raises"""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                context = {
                    'function': func.__name__,
                    'args_count': len(args),
                    'kwargs_keys': list(kwargs.keys()) if kwargs else []
                }
                error_handler.log_error(error_type, e, context)
                if fallback_response is not None:
                    return fallback_response
                raise
        return wrapper
    return decorator


def handle_processing_errors(func):
    """Specialized error handler for DXF processing views"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DXFStructureError as e:
            error_handler.log_error('file_error', e, {'operation': func.__name__})
            return create_error_response(f'Invalid DXF file: {e}', 400)
        except EntityNotFound as e:
            error_handler.log_error('command_error', e, {'operation': func.__name__})
            return create_error_response(str(e), 404)
        except CommandError as e:
            error_handler.log_error('command_error', e, {'operation': func.__name__})
            return create_error_response(str(e), 422)
        except GeometryError as e:
            error_handler.log_error('geometry_error', e, {'operation': func.__name__})
            return create_error_response(f'Geometry error: {e}', 422)
        except Exception as e:
            error_handler.log_error('processing_error', e, {'operation': func.__name__})
            return create_error_response('Processing error', 500, {'error_class': type(e).__name__})
    return wrapper


def log_performance(func):
    """Decorator to log function performance"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = datetime.now()
        try:
            result = func(*args, **kwargs)
            duration = (datetime.now() - start_time).total_seconds()
            logger.info(f"Function {func.__name__} completed in {duration:.2f}s")
            return result
        except Exception as e:
            duration = (datetime.now() - start_time).total_seconds()
            logger.error(f"Function {func.__name__} failed after {duration:.2f}s: {e}")
            raise
    return wrapper
