"""
Module that provides retrying-at-a-particular-interval functionality, and the
bounded "retry until ready" polling used while waiting for device groups and
config sync to propagate between appliances.
"""

import attr

from twisted.internet import defer

from dsconverge.util.config import config_value


class _Retrier(object):
    """
    Helper class used to implement and to store the state of retrying an
    operation.  To be called by :py:func:``retry``

    :ivar callable do_work: function to be retried - should take no arguments
        and can be either synchronous or return a deferred
    :ivar callable can_retry: function that takes a failure and returns a
        boolean representing whether or not the next attempt should be made, or
        if all retries should be aborted.  Should be synchronous.
    :ivar callable next_interval: function that takes a failure and returns
        the number of seconds until the next attempt as a float.  Should be
        synchronous.
    :ivar IReactorTime clock: clock used to schedule the next attempt

    :ivar Deferred deferred: fires with the eventual success of ``do_work``
        or with its last failure.
    :ivar Deferred current_work: the attempt in progress, cancelled along
        with ``deferred``.
    :ivar IDelayedCall delayed_call: the next scheduled attempt, cancelled
        along with ``deferred``.
    :ivar bool cancelled: whether ``deferred`` has been cancelled.
    """
    def __init__(self, do_work, can_retry, next_interval, clock):
        self.do_work = do_work
        self.can_retry = can_retry
        self.next_interval = next_interval
        self.clock = clock

        self.deferred = defer.Deferred(self.handle_cancellation)

        self.current_work = None
        self.delayed_call = None
        self.cancelled = False

    def clear_current_work(self, anything):
        """
        To be used as a passthrough that also clears out the current work.
        """
        self.current_work = None
        return anything

    def handle_failure(self, f):
        """
        On a failure, either propagate the failure if it is terminal (and
        canceling ``self.deferred`` is terminal, no matter what
        ``self.can_retry`` has to say about it), or schedule the next retry
        of ``self.do_work``
        """
        if self.cancelled:
            raise defer.CancelledError()

        if not self.can_retry(f):
            return f

        self.delayed_call = self.clock.callLater(self.next_interval(f),
                                                 self.do_real_work)

    def handle_cancellation(self, _deferred):
        """
        If ``self.deferred`` is cancelled, then the work already in progress
        and scheduled needs to be cancelled.
        """
        self.cancelled = True

        if self.delayed_call is not None:
            self.delayed_call.cancel()

        if self.current_work is not None:
            self.current_work.cancel()

    def do_real_work(self):
        """
        Do the work and hook up the result handling.  The order in which the
        callbacks are added matters.
        """
        self.delayed_call = None

        # self.current_work might be cleared on the next line already if
        # do_work returned a fired deferred, so keep our own name for it.
        self.current_work = work_d = defer.maybeDeferred(self.do_work)

        work_d.addBoth(self.clear_current_work)
        work_d.addCallback(self.deferred.callback)
        # only errors past this point: decide whether they are terminal
        work_d.addErrback(self.handle_failure)
        work_d.addErrback(self.deferred.errback)

    def start(self):
        """
        Kick the whole thing off by calling ``do_real_work``, and return
        ``self.deferred``
        """
        self.do_real_work()
        return self.deferred


def transient_errors_except(*args):
    """
    Returns a ``can_retry`` function for :py:func:retry` that ignores all
    errors as transient except the ``Exception`` types specified.

    :return: a function that accepts a :class:`Failure` and returns ``True``
        only if the :class:`Failure` does not wrap an Exception passed in the
        args.  If no args are passed, all :class:`Exception`s are treated as
        transient.
    """
    def can_retry(f):
        return not f.check(*args)

    return can_retry


def retry_times(max_tries):
    """
    Returns a ``can_retry`` function for :py:func:retry` that ignores all
    errors and returns True until it has been called `max_tries` number of times
    """
    return RetryTimes(max_retries=max_tries)


def compose_retries(*can_retry_funcs):
    """
    Compose ``can_retry`` functions into one that returns True only if all of
    them do, calling them in order and stopping at the first False.
    """
    def can_retry(f):
        for func in can_retry_funcs:
            if not func(f):
                return False
        return True

    return can_retry


def repeating_interval(interval):
    """
    Returns a ``next_interval`` function for :py:func:retry` that returns the
    specified interval all the time.
    """
    return lambda f: interval


def retry(do_work, can_retry, next_interval, clock=None):
    """
    Retries the `do_work` function if it does not succeed and the ``can_retry``
    callable returns ``True``.  The next time the `do_work` function is retried
    is dependent upon the return value of the function ``next_interval``, which
    should return the number of seconds before the next attempt.

    :param callable do_work: function to be retried - should take no arguments
        and can be either synchronous or return a deferred
    :param callable can_retry: function of a failure returning whether the
        next attempt should be made.
    :param callable next_interval: function of a failure returning the
        number of seconds until the next attempt.
    :param IReactorTime clock: defaults to the global reactor.

    :return: a Deferred which fires with the result of the ``do_work``,
        if successful, or the failure of the ``do_work``, if cannot be retried
    """
    if clock is None:  # pragma: no cover
        from twisted.internet import reactor
        clock = reactor

    return _Retrier(do_work, can_retry, next_interval, clock).start()


@attr.s
class BackoffInterval(object):
    """
    A ``next_interval`` callable returning ``start`` first and then the
    previous interval multiplied by ``factor`` on every later call.
    """
    start = attr.ib()
    factor = attr.ib(default=2)
    last_interval = attr.ib(default=None)

    def __call__(self, failure):
        """Return the next interval in the sequence."""
        if self.last_interval is None:
            self.last_interval = self.start
        else:
            self.last_interval *= self.factor
        return self.last_interval


@attr.s
class RetryTimes(object):
    """
    A callable that returns True until it's been called ``max_retries`` times.
    """
    max_retries = attr.ib()
    tries = attr.ib(default=0)

    def __call__(self, failure):
        """Return True if this has been called <= ``max_retries``."""
        self.tries += 1
        return self.tries <= self.max_retries


@attr.s(frozen=True)
class RetryPolicy(object):
    """
    Bounds on how long to keep polling for something to become ready.

    :ivar int max_retries: number of attempts after the first one.
    :ivar float interval: seconds before the first retry.
    :ivar float backoff: multiplier applied to the interval after each retry.
    """
    max_retries = attr.ib()
    interval = attr.ib()
    backoff = attr.ib(default=1)

    def can_retry(self, *terminal):
        """
        Return a fresh ``can_retry`` function enforcing this policy, never
        retrying the given ``terminal`` exception types.
        """
        return compose_retries(transient_errors_except(*terminal),
                               retry_times(self.max_retries))

    def next_interval(self):
        """Return a fresh ``next_interval`` function for this policy."""
        if self.backoff == 1:
            return repeating_interval(self.interval)
        return BackoffInterval(start=self.interval, factor=self.backoff)


RETRY_POLICIES = {
    # waiting for another appliance to create a device group
    'short': RetryPolicy(max_retries=3, interval=0.3),
    # waiting for sync after this appliance was added to a trust domain
    'default': RetryPolicy(max_retries=90, interval=10),
    # waiting for members to sync after the owner creates a device group
    'group_sync': RetryPolicy(max_retries=3, interval=10),
}


def retry_policy(name):
    """
    Return the named :class:`RetryPolicy`, with any fields overridden by the
    ``retry_policies.<name>`` config value.

    :raises KeyError: if there is no such policy.
    """
    policy = RETRY_POLICIES[name]
    overrides = config_value('retry_policies.' + name)
    if overrides:
        policy = attr.evolve(policy, **overrides)
    return policy


class RetryTimeout(Exception):
    """
    Raised by :func:`retry_until` when something did not become ready within
    its retry budget.

    :ivar str description: what was being waited for
    :ivar int attempts: how many times it was checked
    :ivar Failure reason: the failure of the last check
    """
    def __init__(self, description, attempts, reason):
        super(RetryTimeout, self).__init__(
            '{desc} not ready after {attempts} attempts: {reason}'.format(
                desc=description, attempts=attempts,
                reason=reason.getErrorMessage()))
        self.description = description
        self.attempts = attempts
        self.reason = reason


def retry_until(check, policy, clock=None, description=None, terminal=()):
    """
    Call ``check`` until it succeeds, as bounded by ``policy``.  A check
    signals "not ready yet" by failing.

    :param callable check: takes no arguments, may return a Deferred
    :param RetryPolicy policy: attempt budget and spacing
    :param IReactorTime clock: clock to wait on, defaults to the reactor
    :param str description: what is being waited for, used in the timeout
    :param tuple terminal: exception types that stop the polling and are
        propagated as they are

    :return: Deferred firing with the result of the successful check, or
        failing with :class:`RetryTimeout` carrying the last failure.
    """
    terminal = (defer.CancelledError,) + tuple(terminal)
    attempts = [0]

    def attempt():
        attempts[0] += 1
        return check()

    def timed_out(f):
        if f.check(*terminal):
            return f
        raise RetryTimeout(description or repr(check), attempts[0], f)

    d = retry(attempt, can_retry=policy.can_retry(*terminal),
              next_interval=policy.next_interval(), clock=clock)
    return d.addErrback(timed_out)
