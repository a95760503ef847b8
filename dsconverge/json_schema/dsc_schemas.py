"""
Schemas for the DSC sections of a declaration's ``Common`` object.

Only what convergence depends on is described here.  The enclosing
onboarding engine validates the rest of the declaration.
"""

_string_or_null = {"type": ["string", "null"]}

config_sync = {
    "type": "object",
    "properties": {
        "configsyncIp": _string_or_null
    }
}

failover_unicast = {
    "type": "object",
    "properties": {
        "address": _string_or_null,
        "port": {"type": "integer", "minimum": 0, "maximum": 65535}
    }
}

device_trust = {
    "type": "object",
    "properties": {
        "remoteHost": {"type": "string", "minLength": 1},
        "localUsername": {"type": "string"},
        "localPassword": {"type": "string"},
        "remoteUsername": {"type": "string"},
        "remotePassword": {"type": "string"}
    },
    "required": ["remoteHost"]
}

device_group_body = {
    "type": ["object", "null"],
    "properties": {
        "owner": {"type": "string"},
        "type": {"type": "string", "enum": ["sync-failover", "sync-only"]},
        "members": {
            "type": "array",
            "items": {"type": "string"},
            "uniqueItems": True
        },
        "autoSync": {"type": "boolean"},
        "saveOnAutoSync": {"type": "boolean"},
        "networkFailover": {"type": "boolean"},
        "fullLoadOnSync": {"type": "boolean"},
        "asmSync": {"type": "boolean"}
    }
}

# A declaration describes at most one device group, keyed by its name.
device_group = {
    "type": "object",
    "maxProperties": 1,
    "additionalProperties": device_group_body
}

common = {
    "type": "object",
    "properties": {
        "ConfigSync": config_sync,
        "FailoverUnicast": failover_unicast,
        "DeviceTrust": device_trust,
        "DeviceGroup": device_group
    }
}
