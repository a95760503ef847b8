"""
Choosing between a combined cluster join and separate trust and group
handling.
"""

from twisted.internet import defer

from dsconverge.appliance import get_device_info, remote_call
from dsconverge.group import establish_group
from dsconverge.log import log_and_reraise
from dsconverge.membership import prune_device_group
from dsconverge.roles import is_remote_host
from dsconverge.trust import establish_trust
from dsconverge.util.config import config_value


def join_cluster(context):
    """
    Join the trust domain and device group of the remote host in one
    operation, then prune whatever the join left in the group that is not
    declared.

    :return: Deferred firing with None.
    """
    declaration = context.declaration
    device_trust = declaration.device_trust
    device_group = declaration.device_group
    members = device_group.members
    log = context.log.bind(remote_host=device_trust.remote_host,
                           device_group=device_group.name)

    options = {
        'product': config_value('product', 'BIG-IP'),
        'sync_comp_devices': None if members is None else list(members)
    }

    def join(_):
        log.msg('Joining cluster')
        return remote_call('join_cluster', context.appliance.join_cluster,
                           device_group.name, device_trust.remote_host,
                           device_trust.remote_username,
                           device_trust.remote_password,
                           noninteractive=True, options=options)

    d = defer.maybeDeferred(context.check_dns, device_trust.remote_host)
    d.addCallback(join)
    d.addCallback(lambda _: prune_device_group(
        context, device_group.name, members))
    return d.addCallback(lambda _: None)


def establish_trust_and_group(context):
    """
    Converge trust and device group membership.

    With both sections declared, a device that is neither the group owner
    nor the trust anchor joins the cluster in one go; the owner or anchor
    only handles the group.  Otherwise trust and group are handled one
    after the other.

    :return: Deferred firing with None.
    """
    device_trust = context.declaration.device_trust
    device_group = context.declaration.device_group

    if device_trust is None or device_group is None:
        d = establish_trust(context)
        d.addCallback(lambda _: establish_group(context))
        d.addErrback(log_and_reraise, context.log,
                     'Error handling device trust and group')
        return d

    def resolve_role(device_info):
        if device_info.hostname == device_group.owner:
            return True
        return is_remote_host(context, device_info, device_trust.remote_host)

    def create_or_join(is_remote):
        if is_remote:
            return establish_group(context)
        context.log.msg('Passing off to join cluster')
        return join_cluster(context)

    d = get_device_info(context.appliance)
    d.addCallback(resolve_role)
    d.addCallback(create_or_join)
    d.addErrback(log_and_reraise, context.log,
                 'Error creating/joining device trust/group')
    return d
