"""
Tests for :mod:`dsconverge.group`
"""
import mock

from twisted.internet.defer import succeed
from twisted.internet.task import Clock
from twisted.trial.unittest import SynchronousTestCase

from dsconverge.appliance import RemoteOperationError
from dsconverge.group import NoSuchDeviceGroup, establish_group
from dsconverge.model import Declaration, DeviceGroup, SyncOptions
from dsconverge.test.utils import (
    CheckFailure, DummyException, IsBoundWith, make_context, mock_appliance,
    patch, returns)
from dsconverge.util.retry import RetryTimeout


def device_group(owner='bigip1.example.com',
                 members=('bigip1.example.com', 'bigip2.example.com')):
    """
    Declared sync-failover group ``failoverGroup``.
    """
    return DeviceGroup(
        name='failoverGroup', owner=owner, type='sync-failover',
        members=None if members is None else list(members),
        sync_options=SyncOptions(auto_sync=True, network_failover=True))


class EstablishGroupTests(SynchronousTestCase):
    """
    Tests for :func:`establish_group`
    """
    def setUp(self):
        """
        Appliance bigip1, whose group currently holds bigip1 and bigip2.
        """
        self.clock = Clock()
        self.appliance = mock_appliance(**{
            'are_in_trust_group.side_effect': returns(['bigip2.example.com']),
            'has_device_group.side_effect': returns(True),
            'is_sync_complete.side_effect': returns(True),
            'list_device_group_devices.side_effect': returns(
                [{'name': 'bigip1.example.com'},
                 {'name': 'bigip2.example.com'}])})

    def establish(self, group):
        """
        Establish the declared ``group`` on the appliance.
        """
        self.context = make_context(Declaration(device_group=group),
                                    appliance=self.appliance,
                                    clock=self.clock)
        return establish_group(self.context)

    def test_no_group_declared(self):
        """
        Nothing happens when no group is declared.
        """
        self.assertIsNone(self.successResultOf(self.establish(None)))
        self.assertFalse(self.appliance.device_info.called)

    def test_owner_creates_and_syncs(self):
        """
        The owner creates the group with the declared members it trusts,
        then syncs the group and waits for the members to be in sync.
        """
        self.assertIsNone(self.successResultOf(
            self.establish(device_group())))

        self.appliance.are_in_trust_group.assert_called_once_with(
            ['bigip1.example.com', 'bigip2.example.com'])
        self.appliance.create_device_group.assert_called_once_with(
            'failoverGroup', 'sync-failover', ['bigip2.example.com'],
            {'autoSync': True, 'saveOnAutoSync': None,
             'networkFailover': True, 'fullLoadOnSync': None,
             'asmSync': None})
        self.appliance.sync.assert_called_once_with(
            'to-group', 'failoverGroup')
        self.appliance.is_sync_complete.assert_called_once_with(
            ['bigip1.example.com', 'bigip2.example.com'])
        self.assertFalse(self.appliance.has_device_group.called)
        self.assertFalse(self.appliance.add_to_device_group.called)

    def test_owner_alone_does_not_sync(self):
        """
        If no other device is trusted and nothing was pruned, the group is
        not synced.
        """
        self.appliance.are_in_trust_group.side_effect = returns([])
        self.assertIsNone(self.successResultOf(
            self.establish(device_group())))
        self.appliance.create_device_group.assert_called_once_with(
            'failoverGroup', 'sync-failover', [], mock.ANY)
        self.assertFalse(self.appliance.sync.called)
        self.assertFalse(self.appliance.is_sync_complete.called)

    def test_owner_syncs_after_pruning(self):
        """
        Removing undeclared devices is enough to need a sync.
        """
        self.appliance.are_in_trust_group.side_effect = returns([])
        self.assertIsNone(self.successResultOf(
            self.establish(device_group(members=['bigip1.example.com']))))
        self.appliance.remove_from_device_group.assert_called_once_with(
            ['bigip2.example.com'], 'failoverGroup')
        self.appliance.sync.assert_called_once_with(
            'to-group', 'failoverGroup')

    def test_owner_members_not_declared(self):
        """
        Without declared members, the group is created empty and never
        pruned.
        """
        self.appliance.are_in_trust_group.side_effect = returns([])
        self.assertIsNone(self.successResultOf(
            self.establish(device_group(members=None))))
        self.appliance.are_in_trust_group.assert_called_once_with([])
        self.assertFalse(self.appliance.list_device_group_devices.called)
        self.assertFalse(self.appliance.sync.called)

    def test_owner_create_fails(self):
        """
        A failure to create the group is logged and propagated.
        """
        self.appliance.create_device_group.side_effect = DummyException()
        f = self.failureResultOf(self.establish(device_group()),
                                 RemoteOperationError)
        self.assertEqual(f.value.operation, 'create_device_group')
        self.assertFalse(self.appliance.sync.called)
        self.context.log.err.assert_any_call(
            CheckFailure(RemoteOperationError), 'Error creating device group',
            device_group='failoverGroup')

    def test_group_sync_timeout(self):
        """
        If members don't sync within the group sync policy, creating the
        group fails with :class:`RetryTimeout`.
        """
        self.appliance.is_sync_complete.side_effect = returns(False)
        d = self.establish(device_group())
        self.clock.pump([10] * 3)
        f = self.failureResultOf(d, RetryTimeout)
        self.assertEqual(f.value.attempts, 4)

    def test_joiner_waits_then_joins(self):
        """
        A device that doesn't own the group waits for the group to appear,
        adds itself and prunes.  It never creates the group.
        """
        exists = [False, False, True]
        self.appliance.has_device_group.side_effect = (
            lambda name: succeed(exists.pop(0)))
        d = self.establish(device_group(
            owner='bigip2.example.com', members=['bigip1.example.com']))

        self.assertNoResult(d)
        self.clock.advance(0.3)
        self.assertNoResult(d)
        self.assertFalse(self.appliance.add_to_device_group.called)
        self.clock.advance(0.3)
        self.assertIsNone(self.successResultOf(d))

        self.assertEqual(self.appliance.has_device_group.call_count, 3)
        self.appliance.add_to_device_group.assert_called_once_with(
            'bigip1.example.com', 'failoverGroup')
        self.appliance.remove_from_device_group.assert_called_once_with(
            ['bigip2.example.com'], 'failoverGroup')
        self.assertFalse(self.appliance.create_device_group.called)
        self.assertFalse(self.appliance.sync.called)

    def test_joiner_group_never_appears(self):
        """
        If the group doesn't show up in time, joining fails without adding
        the device.
        """
        self.appliance.has_device_group.side_effect = returns(False)
        d = self.establish(device_group(owner='bigip2.example.com'))
        self.clock.pump([0.3] * 3)

        f = self.failureResultOf(d, RetryTimeout)
        self.assertTrue(f.value.reason.check(NoSuchDeviceGroup))
        self.assertEqual(self.appliance.has_device_group.call_count, 4)
        self.assertFalse(self.appliance.add_to_device_group.called)
        self.context.log.err.assert_any_call(
            CheckFailure(RetryTimeout), 'Error joining device group',
            device_group='failoverGroup')

    def test_owner_errors_logged_with_device_group(self):
        """
        The owner's errors are logged at each level through logs bound to
        the device group.
        """
        log_and_reraise = patch(self, 'dsconverge.group.log_and_reraise',
                                side_effect=lambda f, log, why: f)
        self.appliance.create_device_group.side_effect = DummyException()
        self.failureResultOf(self.establish(device_group()),
                             RemoteOperationError)
        self.assertEqual(log_and_reraise.mock_calls, [
            mock.call(CheckFailure(RemoteOperationError),
                      IsBoundWith(device_group='failoverGroup'),
                      'Error creating device group'),
            mock.call(CheckFailure(RemoteOperationError),
                      IsBoundWith(device_group='failoverGroup'),
                      'Error handling device group')])

    def test_joiner_errors_logged_with_device_group(self):
        """
        A joiner's errors are logged at each level through logs bound to
        the device group.
        """
        log_and_reraise = patch(self, 'dsconverge.group.log_and_reraise',
                                side_effect=lambda f, log, why: f)
        self.appliance.add_to_device_group.side_effect = DummyException()
        self.failureResultOf(
            self.establish(device_group(owner='bigip2.example.com')),
            RemoteOperationError)
        self.assertEqual(log_and_reraise.mock_calls, [
            mock.call(CheckFailure(RemoteOperationError),
                      IsBoundWith(device_group='failoverGroup'),
                      'Error joining device group'),
            mock.call(CheckFailure(RemoteOperationError),
                      IsBoundWith(device_group='failoverGroup'),
                      'Error handling device group')])
