"""
Logging for dsconverge.
"""

from twisted.python.log import err, msg

from dsconverge.log.bound import BoundLog
from dsconverge.log.setup import observer_factory, observer_factory_debug


log = BoundLog(msg, err).bind(system='dsconverge')


def log_and_reraise(failure, log, why, **fields):
    """
    Errback that logs ``failure`` at error level with ``why`` as the reason
    and then propagates it unchanged.
    """
    log.err(failure, why, **fields)
    return failure


__all__ = ['observer_factory', 'observer_factory_debug', 'log',
           'log_and_reraise']
