"""
The appliance operations convergence depends on, and the errors raised when
they fail.

The REST transport, authentication and the multi-step cluster join live
outside this package.  They are provided by whatever implements
:class:`IAppliance`; every method returns a Deferred.
"""

from twisted.internet import defer
from twisted.internet.abstract import isIPAddress, isIPv6Address

from zope.interface import Interface

from dsconverge.log.formatters import serialize_to_jsonable
from dsconverge.model import DeviceInfo


class IAppliance(Interface):
    """
    The local appliance being converged.
    """

    def set_config_sync_ip(address, retry_policy):
        """
        Set the local config sync address (``"none"`` to clear it).  The
        appliance may retry the change according to ``retry_policy``.
        """

    def device_info():
        """
        :return: Deferred firing with a dict with at least ``hostname`` and
            ``managementAddress``.
        """

    def modify_device(hostname, body):
        """
        Update the device object named ``hostname`` with the attributes in
        ``body``.
        """

    def list_self_ips():
        """
        :return: Deferred firing with a list of dicts with an ``address``,
            which may carry a network prefix.
        """

    def connect_remote(host, username, password):
        """
        :return: Deferred firing with an :class:`IRemoteAppliance` for the
            appliance at ``host``.
        """

    def is_sync_complete(connected_devices):
        """
        :param connected_devices: names of devices expected to be in sync, or
            None for whatever the appliance is connected to.
        :return: Deferred firing with a bool.
        """

    def are_in_trust_group(names):
        """
        :return: Deferred firing with the subset of ``names`` that are in
            this appliance's trust domain.
        """

    def create_device_group(name, type, devices, options):
        """
        Create a device group containing ``devices``.  ``options`` is the
        JSON form of :class:`dsconverge.model.SyncOptions`.
        """

    def sync(direction, group_name):
        """
        Start a config sync of ``group_name`` in ``direction``
        (``"to-group"`` or ``"from-group"``).
        """

    def has_device_group(name):
        """
        :return: Deferred firing with whether the device group exists here.
        """

    def add_to_device_group(hostname, group_name):
        """
        Add the device ``hostname`` to an existing device group.
        """

    def list_device_group_devices(group_name):
        """
        :return: Deferred firing with a list of dicts with a ``name`` for
            every device in the group, or None if there is no such list.
        """

    def remove_from_device_group(names, group_name):
        """
        Remove the named devices from the device group.
        """

    def join_cluster(group_name, remote_host, remote_username,
                     remote_password, noninteractive, options):
        """
        Join this appliance to the trust domain and device group owned by
        ``remote_host`` in one go, syncing as needed.  ``options`` holds the
        ``product`` and the ``sync_comp_devices`` to sync with.

        ``noninteractive`` is always True: the join must never prompt.  It
        is not the "remote host is local" flag of f5-cloud-libs'
        ``joinCluster``.  Implementations wrapping that call pass False
        there, since the remote host is never the local appliance here.
        """


class IRemoteAppliance(Interface):
    """
    An appliance reached with credentials from the declaration.
    """

    def add_to_trust(hostname, management_address, username, password):
        """
        Add the device ``hostname`` at ``management_address`` to this
        appliance's trust domain, authenticating to it with the given
        credentials.
        """


class RemoteOperationError(Exception):
    """
    An operation on the local or a remote appliance failed.

    :ivar Failure reason: the underlying failure
    :ivar str operation: the :class:`IAppliance` operation that failed
    """
    def __init__(self, reason, operation):
        super(RemoteOperationError, self).__init__(
            '{0} failed: {1}'.format(operation, reason.getErrorMessage()))
        self.reason = reason
        self.operation = operation

    @property
    def details(self):
        """
        Return `dict` of all the details within this object
        """
        return {'operation': self.operation,
                'reason': self.reason.getErrorMessage(),
                'exception_type': self.reason.type.__name__}


@serialize_to_jsonable.register(RemoteOperationError)
def _serialize_remote_operation_error(error):
    return error.details


class DnsResolutionError(Exception):
    """
    A remote host named in the declaration could not be resolved.
    """
    def __init__(self, host, reason):
        super(DnsResolutionError, self).__init__(
            'Unable to resolve host {0}: {1}'.format(
                host, reason.getErrorMessage()))
        self.host = host
        self.reason = reason


class SelfIPLookupError(LookupError):
    """
    The self IPs of the local appliance could not be read.
    """
    def __init__(self, reason):
        super(SelfIPLookupError, self).__init__(
            'Unable to list self IPs: {0}'.format(reason.getErrorMessage()))
        self.reason = reason


# Errors that already say which step of convergence failed.
_DOMAIN_ERRORS = (RemoteOperationError, DnsResolutionError, SelfIPLookupError)


def wrap_remote_error(failure, operation):
    """
    Errback wrapping any failure that isn't already one of ours in a
    :class:`RemoteOperationError` naming ``operation``.
    """
    if failure.check(*_DOMAIN_ERRORS):
        return failure
    raise RemoteOperationError(failure, operation)


def remote_call(operation, func, *args, **kwargs):
    """
    Call an appliance method and wrap its failure, synchronous or not, in a
    :class:`RemoteOperationError`.

    :param str operation: the name reported if the call fails
    :return: Deferred firing with the method's result
    """
    d = defer.maybeDeferred(func, *args, **kwargs)
    return d.addErrback(wrap_remote_error, operation)


def get_device_info(appliance):
    """
    :return: Deferred firing with the :class:`DeviceInfo` of ``appliance``.
    """
    d = remote_call('device_info', appliance.device_info)
    return d.addCallback(DeviceInfo.from_json)


def check_dns_resolution(host, reactor=None):
    """
    Check that ``host`` resolves.  Address literals are not looked up.

    :return: Deferred firing with None, or failing with
        :class:`DnsResolutionError`.
    """
    if isIPAddress(host) or isIPv6Address(host):
        return defer.succeed(None)

    if reactor is None:  # pragma: no cover
        from twisted.internet import reactor

    def unresolved(f):
        raise DnsResolutionError(host, f)

    d = defer.maybeDeferred(reactor.resolve, host)
    return d.addCallbacks(lambda _: None, unresolved)
