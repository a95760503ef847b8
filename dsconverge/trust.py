"""
Establishing trust between the local appliance and the declared remote host.
"""

from twisted.internet import defer

from dsconverge.appliance import get_device_info, remote_call
from dsconverge.log import log_and_reraise
from dsconverge.roles import is_remote_host
from dsconverge.util.retry import retry_policy, retry_until


class SyncIncomplete(Exception):
    """
    The appliance reported that config sync has not completed yet.
    """
    def __init__(self, connected_devices=None):
        super(SyncIncomplete, self).__init__(
            'Sync not complete with {0}'.format(
                'connected devices' if connected_devices is None
                else ', '.join(connected_devices)))
        self.connected_devices = connected_devices


def wait_for_sync_complete(context, policy, connected_devices=None):
    """
    Poll the local appliance until it reports config sync complete.

    :param RetryPolicy policy: how long to keep polling
    :param connected_devices: devices that must be in sync, or None

    :return: Deferred firing with None, or failing with
        :class:`dsconverge.util.retry.RetryTimeout`.
    """
    if connected_devices is not None:
        connected_devices = list(connected_devices)

    def check():
        d = remote_call('is_sync_complete',
                        context.appliance.is_sync_complete, connected_devices)
        return d.addCallback(complete)

    def complete(is_complete):
        if not is_complete:
            raise SyncIncomplete(connected_devices)

    d = retry_until(check, policy, clock=context.clock,
                    description='Config sync')
    return d.addCallback(lambda _: None)


def request_trust(context, device_info, device_trust):
    """
    Ask the remote host to add the local appliance to its trust domain, then
    wait for the resulting sync.
    """
    log = context.log.bind(remote_host=device_trust.remote_host)

    def connected(remote):
        log.msg('Requesting to be added to remote trust')
        return remote_call('add_to_trust', remote.add_to_trust,
                           device_info.hostname,
                           device_info.management_address,
                           device_trust.local_username,
                           device_trust.local_password)

    d = defer.maybeDeferred(context.check_dns, device_trust.remote_host)
    d.addCallback(lambda _: remote_call(
        'connect_remote', context.appliance.connect_remote,
        device_trust.remote_host, device_trust.remote_username,
        device_trust.remote_password))
    d.addCallback(connected)
    d.addCallback(lambda _: wait_for_sync_complete(
        context, retry_policy('default')))
    d.addErrback(log_and_reraise, log, 'Could not add to remote trust')
    return d


def establish_trust(context):
    """
    Make sure the local appliance and the declared remote host trust each
    other.  Only the side that is not the remote host acts: it asks the
    remote host to add it.  The remote host is the trust anchor and waits to
    be contacted.

    :return: Deferred firing with None.
    """
    device_trust = context.declaration.device_trust
    if device_trust is None:
        return defer.succeed(None)

    log = context.log.bind(remote_host=device_trust.remote_host)

    def got_device_info(device_info):
        d = is_remote_host(context, device_info, device_trust.remote_host)
        return d.addCallback(maybe_request_trust, device_info)

    def maybe_request_trust(is_remote, device_info):
        if is_remote:
            log.msg('This device is the remote host, nothing to add to trust')
            return None
        return request_trust(context, device_info, device_trust)

    d = get_device_info(context.appliance)
    d.addCallback(got_device_info)
    d.addErrback(log_and_reraise, log, 'Error adding to trust')
    return d
