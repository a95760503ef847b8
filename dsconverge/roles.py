"""
Working out which side of a trust relationship the local appliance is on.
"""

from twisted.internet import defer

from dsconverge.appliance import SelfIPLookupError, remote_call
from dsconverge.model import strip_cidr


def is_remote_host(context, device_info, remote_host):
    """
    Decide whether the local appliance is the ``remote_host`` that a trust
    declaration points at.  Another appliance may name us by hostname, by
    management address or by one of our self IPs.

    :param ConvergenceContext context: the convergence run
    :param DeviceInfo device_info: identity of the local appliance
    :param str remote_host: host named in the declaration

    :return: Deferred firing with a bool, or failing with
        :class:`SelfIPLookupError` if the self IPs cannot be read.
    """
    if remote_host in (device_info.hostname, device_info.management_address):
        return defer.succeed(True)

    def matches(self_ips):
        if not isinstance(self_ips, list):
            return False
        return any(strip_cidr(self_ip['address']) == remote_host
                   for self_ip in self_ips)

    def lookup_failed(f):
        context.log.err(f, 'Error determining if we are remote host',
                        remote_host=remote_host)
        raise SelfIPLookupError(f)

    d = remote_call('list_self_ips', context.appliance.list_self_ips)
    return d.addCallbacks(matches, lookup_failed)
