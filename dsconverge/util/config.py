"""
Global configuration for a convergence process.

Hosts set the configuration once (usually from a JSON file) and the
convergence stages read individual values by dotted path, for instance
``config_value('retry_policies.short.interval')``.
"""
from toolz.dicttoolz import get_in, update_in

_config_data = {}


def set_config_data(data):
    """
    Set the global configuration data.

    :param dict data: The configuration data, probably loaded from some JSON.
    """
    global _config_data
    _config_data = data


def update_config_data(name, value):
    """
    Update a single value in the existing configuration.

    :param str name: ``.`` separated path to a configuration value
        stored in a nested dictionary.
    :param value: Value to be updated
    """
    global _config_data
    _config_data = update_in(_config_data, name.split('.'), lambda _: value)


def config_value(name, default=None):
    """
    :param str name: ``.`` separated path to a configuration value
        stored in a nested dictionary.
    :param default: returned when nothing is configured at ``name``.

    :returns: The value specified in the configuration, or ``default``.
    """
    return get_in(name.split('.'), _config_data, default)
