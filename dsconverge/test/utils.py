"""
Mixins and utilities to be used for testing.
"""
import json

import mock

from twisted.internet.defer import succeed
from twisted.python.failure import Failure

from zope.interface import directlyProvides, interface

from dsconverge.appliance import IAppliance
from dsconverge.controller import ConvergenceContext
from dsconverge.log.bound import BoundLog, bound_log_kwargs
from dsconverge.model import DeviceInfo
from dsconverge.util.config import set_config_data


class IsBoundWith(object):
    """
    Compares equal to a BoundLog bound with exactly the given fields.
    """
    def __init__(self, **kwargs):
        self.kwargs = kwargs

    def __repr__(self):
        return 'IsBoundWith {}'.format(self.kwargs)

    def __eq__(self, other):
        return (isinstance(other, BoundLog) and
                bound_log_kwargs(other) == self.kwargs)

    def __ne__(self, other):
        return not self == other


class CheckFailure(object):
    """
    Class that can be passed to an `assertEquals` or `assert_called_with` -
    shortens checking whether a `twisted.python.failure.Failure` wraps an
    Exception of a particular type.
    """
    def __init__(self, exception_type):
        self.exception_type = exception_type

    def __eq__(self, other):
        return isinstance(other, Failure) and other.check(
            self.exception_type)

    def __ne__(self, other):
        return not self == other

    def __repr__(self):
        return 'CheckFailure({0})'.format(self.exception_type.__name__)


def iMock(*ifaces, **kwargs):
    """
    Creates a mock object that provides a particular interface.

    Methods of the interface are autospecced.  Keyword arguments whose first
    dotted component names a method configure that method, for instance
    ``**{'device_info.return_value': succeed({...})}``.

    :param iface: the interface to provide
    :type iface: :class:``zope.interface.Interface``

    :returns: a mock object that is specced to have the attributes and methods
        as a provider of the interface
    :rtype: :class:``mock.MagicMock``
    """
    all_names = [name for iface in ifaces for name in iface.names()]

    attribute_kwargs = {}
    for k, v in list(kwargs.items()):
        result = k.split('.', 1)
        if result[0] in all_names:
            attribute_kwargs.setdefault(result[0], {})[result[1]] = v
            kwargs.pop(k)

    kwargs.pop('spec', None)

    imock = mock.MagicMock(spec=all_names, **kwargs)
    directlyProvides(imock, *ifaces)

    for iface in ifaces:
        for attr in iface:
            if isinstance(iface[attr], interface.Method):
                # mock can only autospec real functions, so build one with
                # the interface method's signature.
                fake_func = eval("lambda {0}: None".format(
                    iface[attr].getSignatureString().strip('()')))

                fmock = mock.create_autospec(
                    fake_func, **attribute_kwargs.get(attr, {}))

                setattr(imock, attr, fmock)

            elif isinstance(iface[attr], interface.Attribute):
                setattr(imock, attr, attribute_kwargs.get(attr, None))

    return imock


def patch(testcase, *args, **kwargs):
    """
    Patches and starts a test case, taking care of the cleanup.
    """
    if not getattr(testcase, '_stopallAdded', False):
        testcase.addCleanup(mock.patch.stopall)
        testcase._stopallAdded = True

    return mock.patch(*args, **kwargs).start()


class SameJSON(object):
    """
    Compare an expected decoded JSON structure to a string of JSON by
    decoding the input string and comparing the resulting structure to our
    expected structure.

    Example::

        foo.assert_called_once_with(SameJSON({'success': True}))
    """
    def __init__(self, expected):
        """
        :param expected: The expected result of JSON decoding.
        """
        self._expected = expected

    def __eq__(self, other):
        """
        :param str other: A string of JSON that will be decoded and compared
            to our expected structure.

        :return: `True` if the the result of decoding `other` compares equal
            to our expected structure, otherwise `False`
        :rtype: bool
        """
        return self._expected == json.loads(other)

    def __repr__(self):
        """
        repr containing the expected object.
        """
        return 'SameJSON({0!r})'.format(self._expected)


def mock_log(*args, **kwargs):
    """
    Returns a BoundLog whose msg and err methods are mocks.  Makes it easier
    to test logging, since instead of making a mock object and testing::

        log.bind.return_value.msg.assert_called_with(...)

    This can be done instead::

        log.msg.assert_called_with(mock.ANY, bound_value1="val", ...)

    Since in all likelyhood, testing that certain values are bound would be
    more important than testing the exact logged message.
    """
    msg = mock.Mock(spec=[])
    msg.return_value = None
    err = mock.Mock(spec=[])
    err.return_value = None
    return BoundLog(msg, err)


class DummyException(Exception):
    """
    Fake exception
    """


def set_config_for_test(testcase, data):
    """
    Set config data for test. Will reset to {} after test is run
    """
    set_config_data(data)
    testcase.addCleanup(set_config_data, {})


def returns(value):
    """
    Return a ``side_effect`` that succeeds with ``value`` on every call,
    with a new Deferred each time.
    """
    return lambda *args, **kwargs: succeed(value)


def mock_appliance(hostname='bigip1.example.com',
                   management_address='10.0.0.1', **kwargs):
    """
    Return an :class:`IAppliance` mock whose methods all succeed with None,
    apart from ``device_info`` which reports the given identity.  Methods
    can be further configured as in :func:`iMock`, which replaces their
    defaults.
    """
    configured = set(k.split('.', 1)[0] for k in kwargs)
    results = dict.fromkeys(IAppliance.names())
    results['device_info'] = {'hostname': hostname,
                              'managementAddress': management_address}
    for name, result in results.items():
        if name not in configured:
            kwargs['{0}.side_effect'.format(name)] = returns(result)
    return iMock(IAppliance, **kwargs)


def make_context(declaration, appliance=None, clock=None, log=None,
                 check_dns=None):
    """
    Return a :class:`ConvergenceContext` with a mock log and a DNS check
    that always succeeds.
    """
    return ConvergenceContext(
        log=log if log is not None else mock_log(),
        appliance=appliance if appliance is not None else mock_appliance(),
        declaration=declaration,
        clock=clock,
        check_dns=(check_dns if check_dns is not None
                   else mock.Mock(side_effect=returns(None))))


DEVICE = DeviceInfo(hostname='bigip1.example.com',
                    management_address='10.0.0.1')
