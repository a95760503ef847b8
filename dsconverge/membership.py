"""
Reconciling the members of a device group with the declared members.
"""

from twisted.internet import defer

from dsconverge.appliance import remote_call


def devices_to_remove(devices, members):
    """
    Names of the ``devices`` (dicts with a ``name``) that are not in
    ``members``, in the order the appliance listed them.
    """
    wanted = set(members)
    return [device['name'] for device in devices
            if device['name'] not in wanted]


def prune_device_group(context, group_name, members):
    """
    Remove devices that are not declared members from a device group.
    Devices are never added here; that is up to creating or joining the
    group.

    :param ConvergenceContext context: the convergence run
    :param str group_name: device group to prune
    :param members: names that may stay in the group.  If None, membership
        was not declared and the group is left alone.

    :return: Deferred firing with True if any device was removed.
    """
    if members is None:
        return defer.succeed(False)

    log = context.log.bind(device_group=group_name)
    appliance = context.appliance

    def prune(devices):
        if not isinstance(devices, list):
            return False

        to_remove = devices_to_remove(devices, members)
        if not to_remove:
            return False

        log.msg('Removing {removed} from device group', removed=to_remove)
        d = remote_call('remove_from_device_group',
                        appliance.remove_from_device_group,
                        to_remove, group_name)
        return d.addCallback(lambda _: True)

    d = remote_call('list_device_group_devices',
                    appliance.list_device_group_devices, group_name)
    return d.addCallback(prune)
