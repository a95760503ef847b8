"""
Data classes for the desired DSC state read from a declaration and for the
device information read back from an appliance.
"""
import attr
from attr.validators import instance_of, optional

from pyrsistent import PVector, pvector

from dsconverge.json_schema import validate
from dsconverge.json_schema.dsc_schemas import common as common_schema


def strip_cidr(address):
    """
    Remove a trailing network prefix (``/24``) from an address.  Addresses
    in a declaration may be JSON pointers to something with a CIDR.
    """
    return address.split('/', 1)[0]


def _members(members):
    return None if members is None else pvector(members)


@attr.s(frozen=True)
class ConfigSync(object):
    """
    :ivar str configsync_ip: local address used for config sync, or None
    """
    configsync_ip = attr.ib(validator=optional(instance_of(str)))

    @classmethod
    def from_json(cls, blob):
        return cls(configsync_ip=blob.get('configsyncIp'))


@attr.s(frozen=True)
class FailoverUnicast(object):
    """
    :ivar str address: unicast address for network failover, ``"none"`` or
        None to clear it
    :ivar int port: unicast port
    """
    address = attr.ib(validator=optional(instance_of(str)))
    port = attr.ib(default=None)

    @classmethod
    def from_json(cls, blob):
        return cls(address=blob.get('address'), port=blob.get('port'))


@attr.s(frozen=True, repr=False)
class DeviceTrust(object):
    """
    How to reach the appliance that anchors the trust domain, and the
    credentials each side uses to talk to the other.

    :ivar str remote_host: hostname or address of the trust anchor
    """
    remote_host = attr.ib(validator=instance_of(str))
    local_username = attr.ib(default=None)
    local_password = attr.ib(default=None)
    remote_username = attr.ib(default=None)
    remote_password = attr.ib(default=None)

    def __repr__(self):
        return 'DeviceTrust(remote_host={0!r})'.format(self.remote_host)

    @classmethod
    def from_json(cls, blob):
        return cls(remote_host=blob['remoteHost'],
                   local_username=blob.get('localUsername'),
                   local_password=blob.get('localPassword'),
                   remote_username=blob.get('remoteUsername'),
                   remote_password=blob.get('remotePassword'))


@attr.s(frozen=True)
class SyncOptions(object):
    """
    Sync behaviour of a device group, as sent when the group is created.
    """
    auto_sync = attr.ib(default=None)
    save_on_auto_sync = attr.ib(default=None)
    network_failover = attr.ib(default=None)
    full_load_on_sync = attr.ib(default=None)
    asm_sync = attr.ib(default=None)

    def as_json(self):
        """Return the options in the shape the appliance API expects."""
        return {'autoSync': self.auto_sync,
                'saveOnAutoSync': self.save_on_auto_sync,
                'networkFailover': self.network_failover,
                'fullLoadOnSync': self.full_load_on_sync,
                'asmSync': self.asm_sync}


@attr.s(frozen=True)
class DeviceGroup(object):
    """
    The device group the appliance should belong to.

    :ivar str name: group name
    :ivar str owner: hostname of the appliance that creates the group
    :ivar str type: ``sync-failover`` or ``sync-only``
    :ivar members: hostnames that should be in the group, or None when
        membership is not declared and must be left alone
    :ivar SyncOptions sync_options: sync behaviour of the group
    """
    name = attr.ib(validator=instance_of(str))
    owner = attr.ib(default=None)
    type = attr.ib(default=None)
    members = attr.ib(default=None, converter=_members,
                      validator=optional(instance_of(PVector)))
    sync_options = attr.ib(default=SyncOptions())

    @classmethod
    def from_json(cls, name, blob):
        return cls(
            name=name,
            owner=blob.get('owner'),
            type=blob.get('type'),
            members=blob.get('members'),
            sync_options=SyncOptions(
                auto_sync=blob.get('autoSync'),
                save_on_auto_sync=blob.get('saveOnAutoSync'),
                network_failover=blob.get('networkFailover'),
                full_load_on_sync=blob.get('fullLoadOnSync'),
                asm_sync=blob.get('asmSync')))


def _section(blob, key, from_json):
    value = blob.get(key)
    return None if value is None else from_json(value)


def _device_group(groups):
    """
    Return the one :class:`DeviceGroup` in the ``DeviceGroup`` section, or
    None when the section declares no group (empty, or a null body).
    """
    if not groups:
        return None
    [(name, body)] = groups.items()
    if body is None:
        return None
    return DeviceGroup.from_json(name, body)


@attr.s(frozen=True)
class Declaration(object):
    """
    The DSC part of a declaration.  Every section is optional; a missing
    section means the matching convergence stage does nothing.
    """
    config_sync = attr.ib(default=None,
                          validator=optional(instance_of(ConfigSync)))
    failover_unicast = attr.ib(
        default=None, validator=optional(instance_of(FailoverUnicast)))
    device_trust = attr.ib(default=None,
                           validator=optional(instance_of(DeviceTrust)))
    device_group = attr.ib(default=None,
                           validator=optional(instance_of(DeviceGroup)))

    @classmethod
    def from_json(cls, blob):
        """
        Build a :class:`Declaration` from a parsed declaration, either the
        whole document or just its ``Common`` object.

        :raises jsonschema.ValidationError: if the DSC sections are malformed,
            for instance when more than one device group is declared.
        """
        common = blob.get('Common', blob)
        validate(common, common_schema)
        return cls(
            config_sync=_section(common, 'ConfigSync', ConfigSync.from_json),
            failover_unicast=_section(common, 'FailoverUnicast',
                                      FailoverUnicast.from_json),
            device_trust=_section(common, 'DeviceTrust',
                                  DeviceTrust.from_json),
            device_group=_device_group(common.get('DeviceGroup')))


@attr.s(frozen=True)
class DeviceInfo(object):
    """
    Identity of an appliance as it reports it.
    """
    hostname = attr.ib()
    management_address = attr.ib()

    @classmethod
    def from_json(cls, blob):
        return cls(hostname=blob['hostname'],
                   management_address=blob.get('managementAddress'))
