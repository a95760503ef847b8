"""
Bound logging on top of twisted's legacy log functions.
"""

import functools


class BoundLog(object):
    """
    Holds partially applied versions of ``msg`` and ``err`` so that context
    fields (remote host, device group, convergence state) travel with every
    message logged through it.

    :ivar msg: The function to call for logging non-error messages.
    :ivar err: The function to call for logging errors.
    """
    def __init__(self, msg, err):
        self.msg = msg
        self.err = err

    def bind(self, **kwargs):
        """
        Return a new :class:`BoundLog` whose ``msg`` and ``err`` carry the
        given keyword arguments in addition to those already bound.

        :params dict kwargs: fields accepted by :py:func:`log.msg` and
            :py:func:`log.err`.
        :rtype: BoundLog
        """
        msg = functools.partial(self.msg, **kwargs)
        err = functools.partial(self.err, **kwargs)

        return self.__class__(msg, err)


def bound_log_kwargs(log):
    """
    Return the fields bound to ``log``, later bindings taking precedence.
    """
    f = log.msg
    kwargs_list = []
    while isinstance(f, functools.partial):
        kwargs_list.append(f.keywords)
        f = f.func
    kwargs = {}
    for kwa in reversed(kwargs_list):
        kwargs.update(kwa)
    return kwargs
