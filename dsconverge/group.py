"""
Creating or joining the declared device group.
"""

from twisted.internet import defer

from dsconverge.appliance import get_device_info, remote_call
from dsconverge.log import log_and_reraise
from dsconverge.membership import prune_device_group
from dsconverge.trust import wait_for_sync_complete
from dsconverge.util.retry import retry_policy, retry_until


class NoSuchDeviceGroup(Exception):
    """
    The device group does not exist on this appliance (yet).
    """
    def __init__(self, group_name):
        super(NoSuchDeviceGroup, self).__init__(
            'Device group {0} does not exist on this device.'.format(
                group_name))
        self.group_name = group_name


def create_device_group(context, device_group):
    """
    Create the device group on its owner with the declared members that are
    already trusted, prune anything undeclared, and sync the group if it
    contains other devices or lost some.

    :return: Deferred firing with None.
    """
    appliance = context.appliance
    members = device_group.members
    log = context.log.bind(device_group=device_group.name)

    def create(trusted):
        log.msg('Creating device group with {devices}', devices=trusted)
        d = remote_call('create_device_group', appliance.create_device_group,
                        device_group.name, device_group.type, trusted,
                        device_group.sync_options.as_json())
        # anything besides ourselves needs an initial sync
        return d.addCallback(lambda _: len(trusted) > 0)

    def prune(needs_sync):
        d = prune_device_group(context, device_group.name, members)
        return d.addCallback(lambda pruned: needs_sync or pruned)

    def maybe_sync(needs_sync):
        if not needs_sync:
            return None
        d = remote_call('sync', appliance.sync, 'to-group', device_group.name)
        d.addCallback(lambda _: wait_for_sync_complete(
            context, retry_policy('group_sync'), members))
        return d

    d = remote_call('are_in_trust_group', appliance.are_in_trust_group,
                    list(members or []))
    d.addCallback(create)
    d.addCallback(prune)
    d.addCallback(maybe_sync)
    d.addErrback(log_and_reraise, log, 'Error creating device group')
    return d


def wait_for_device_group(context, group_name):
    """
    Wait for a device group to show up locally.  Its owner may not have
    created it yet, or it may not have synced to us yet.
    """
    def check():
        d = remote_call('has_device_group',
                        context.appliance.has_device_group, group_name)
        return d.addCallback(exists)

    def exists(has_device_group):
        if not has_device_group:
            raise NoSuchDeviceGroup(group_name)

    return retry_until(check, retry_policy('short'), clock=context.clock,
                       description='Device group {0}'.format(group_name))


def join_device_group(context, group_name, hostname):
    """
    Add the local appliance to an existing device group, once it exists.

    :return: Deferred firing with None.
    """
    log = context.log.bind(device_group=group_name)
    d = wait_for_device_group(context, group_name)
    d.addCallback(lambda _: remote_call(
        'add_to_device_group', context.appliance.add_to_device_group,
        hostname, group_name))
    d.addCallback(lambda _: log.msg('Joined device group'))
    d.addErrback(log_and_reraise, log, 'Error joining device group')
    return d


def establish_group(context):
    """
    Create the declared device group if the local appliance owns it,
    otherwise join it.  Either way, undeclared members are pruned.

    :return: Deferred firing with None.
    """
    device_group = context.declaration.device_group
    if device_group is None:
        return defer.succeed(None)

    log = context.log.bind(device_group=device_group.name)

    def create_or_join(device_info):
        if device_info.hostname == device_group.owner:
            return create_device_group(context, device_group)

        d = join_device_group(context, device_group.name,
                              device_info.hostname)
        d.addCallback(lambda _: prune_device_group(
            context, device_group.name, device_group.members))
        return d.addCallback(lambda _: None)

    d = get_device_info(context.appliance)
    d.addCallback(create_or_join)
    d.addErrback(log_and_reraise, log, 'Error handling device group')
    return d
