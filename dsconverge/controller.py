"""
The DSC convergence controller: runs the stages that bring an appliance's
clustering configuration in line with a declaration, one after the other.

Stage order is fixed because later stages depend on what earlier ones set
up::

    IDLE -> SYNCING_CONFIG_SYNC_ADDR -> SETTING_FAILOVER_ADDR
         -> RESOLVING_TRUST_AND_GROUP -> DONE | FAILED

Each stage does nothing if its declaration section is absent.  Nothing is
retried at this level and nothing is rolled back on failure.
"""

import attr

from constantly import NamedConstant, Names

from twisted.internet import defer

from dsconverge.appliance import (
    check_dns_resolution, get_device_info, remote_call)
from dsconverge.join import establish_trust_and_group
from dsconverge.log import log as default_log, log_and_reraise
from dsconverge.model import strip_cidr
from dsconverge.util.retry import retry_policy


class ConvergenceState(Names):
    """
    Constants representing where a convergence run is.
    """
    IDLE = NamedConstant()
    SYNCING_CONFIG_SYNC_ADDR = NamedConstant()
    SETTING_FAILOVER_ADDR = NamedConstant()
    RESOLVING_TRUST_AND_GROUP = NamedConstant()

    DONE = NamedConstant()
    """
    Every stage succeeded.
    """

    FAILED = NamedConstant()
    """
    A stage failed; the appliance may be partly converged.
    """


@attr.s(frozen=True)
class ConvergenceContext(object):
    """
    Everything a convergence stage needs, passed explicitly to each stage.

    :ivar BoundLog log: log bound with the fields of this run
    :ivar IAppliance appliance: the local appliance
    :ivar Declaration declaration: desired state
    :ivar IReactorTime clock: used to wait between polls, defaults to the
        reactor
    :ivar callable check_dns: host -> Deferred failing with
        :class:`DnsResolutionError` if host does not resolve
    """
    log = attr.ib()
    appliance = attr.ib()
    declaration = attr.ib()
    clock = attr.ib(default=None)
    check_dns = attr.ib(default=check_dns_resolution)


def failover_unicast_body(failover_unicast):
    """
    Device attributes setting the failover unicast address declared in
    ``failover_unicast``.
    """
    address = failover_unicast.address or 'none'
    if address == 'none':
        return {'unicastAddress': 'none'}
    return {'unicastAddress': [{'port': failover_unicast.port,
                                'ip': strip_cidr(address)}]}


def set_config_sync_address(context):
    """
    Set the local config sync address.

    :return: Deferred firing with None.
    """
    config_sync = context.declaration.config_sync
    if config_sync is None:
        return defer.succeed(None)

    address = strip_cidr(config_sync.configsync_ip or 'none')
    context.log.msg('Setting config sync address to {address}',
                    address=address)
    d = remote_call('set_config_sync_ip', context.appliance.set_config_sync_ip,
                    address, retry_policy('short'))
    d.addCallback(lambda _: None)
    d.addErrback(log_and_reraise, context.log,
                 'Error setting config sync address')
    return d


def set_failover_unicast_address(context):
    """
    Set the unicast address used for network failover on the local device.

    :return: Deferred firing with None.
    """
    failover_unicast = context.declaration.failover_unicast
    if failover_unicast is None:
        return defer.succeed(None)

    body = failover_unicast_body(failover_unicast)

    def modify(device_info):
        return remote_call('modify_device', context.appliance.modify_device,
                           device_info.hostname, body)

    d = get_device_info(context.appliance)
    d.addCallback(modify)
    d.addCallback(lambda _: None)
    d.addErrback(log_and_reraise, context.log,
                 'Error setting failover unicast address')
    return d


STAGES = [
    (ConvergenceState.SYNCING_CONFIG_SYNC_ADDR, set_config_sync_address),
    (ConvergenceState.SETTING_FAILOVER_ADDR, set_failover_unicast_address),
    (ConvergenceState.RESOLVING_TRUST_AND_GROUP, establish_trust_and_group),
]


def run_stages(context, stages):
    """
    Run ``stages`` (pairs of state and stage function) in order, each one
    starting once the previous one has succeeded.

    :return: Deferred firing with :obj:`ConvergenceState.DONE`, or failing
        with the first stage's error.
    """
    current = [ConvergenceState.IDLE]

    def enter(_, state, stage):
        context.log.msg('Convergence state changed', dsc_state=state.name)
        current[0] = state
        return stage(context)

    def done(_):
        context.log.msg('DSC declaration processed',
                        dsc_state=ConvergenceState.DONE.name)
        return ConvergenceState.DONE

    def failed(f):
        return log_and_reraise(f, context.log,
                               'Error processing DSC declaration',
                               dsc_state=ConvergenceState.FAILED.name,
                               failed_state=current[0].name)

    d = defer.succeed(None)
    for state, stage in stages:
        d.addCallback(enter, state, stage)
    return d.addCallbacks(done, failed)


def converge_dsc(appliance, declaration, log=None, clock=None,
                 check_dns=None):
    """
    Converge the clustering configuration of ``appliance`` to
    ``declaration`` in a single pass.  Runs against the same appliance must
    be serialized by the caller.

    :param IAppliance appliance: the local appliance
    :param Declaration declaration: desired DSC state
    :param BoundLog log: log to bind; defaults to the dsconverge log
    :param IReactorTime clock: clock for polling waits
    :param callable check_dns: replaces :func:`check_dns_resolution`

    :return: Deferred firing with :obj:`ConvergenceState.DONE`, or failing
        with the error of the stage that failed.
    """
    log = (log if log is not None else default_log).bind(
        dsc_run='converge')
    context = ConvergenceContext(
        log=log, appliance=appliance, declaration=declaration, clock=clock,
        check_dns=check_dns if check_dns is not None else check_dns_resolution)
    return run_stages(context, STAGES)
